"""Tests for the order state machine: who may act, from which state, on which items."""

from datetime import UTC, datetime

import pytest
from marketplace.exceptions import InvalidTrackingFormat, InvalidTransition
from marketplace.order.actor import Admin, Customer, Supplier, System
from marketplace.order.reconciliation import GatewayNotice
from marketplace.order.state_machine import (
    TRANSITIONS,
    Action,
    allowed_roles,
    authorize,
    derive_order_status,
)
from marketplace.order.status import FulfillmentStatus, OrderStatus, PaymentStatus

ADMIN = Admin(id="admin-001")


def _approve(order, transaction_id="txn-approved"):
    order.reconcile_payment(
        GatewayNotice(
            external_reference=str(order.id),
            external_transaction_id=transaction_id,
            gateway_status="approved",
            transaction_amount=order.total,
            timestamp=datetime.now(UTC),
        )
    )


def _stages(order):
    return {item.supplier_id: item.fulfillment_status for item in order.items}


class TestAuthorizationTable:
    def test_only_admin_and_system_may_deliver(self):
        assert allowed_roles(Action.MARK_DELIVERED) == {ADMIN.role, System().role}

    def test_customers_may_only_cancel_and_retry(self):
        customer_actions = {action for (action, role) in TRANSITIONS if role.value == "customer"}
        assert customer_actions == {Action.CANCEL, Action.RETRY_PAYMENT}

    def test_grant_names_the_suppliers_items_only(self, make_order):
        order = make_order()
        grant = authorize(order, Action.CONFIRM, Supplier(id="sup-a"))
        assert [item.supplier_id for item in grant.items] == ["sup-a"]

    def test_admin_grant_covers_every_pending_item(self, make_order):
        order = make_order()
        grant = authorize(order, Action.CONFIRM, ADMIN)
        assert len(grant.items) == 2


class TestConfirm:
    def test_first_supplier_confirm_keeps_order_pending(self, make_order):
        order = make_order()
        order.confirm(Supplier(id="sup-a"))
        assert order.status == OrderStatus.PENDING.value
        assert _stages(order) == {"sup-a": "confirmed", "sup-b": "pending"}

    def test_last_supplier_confirm_confirms_order(self, make_order):
        order = make_order()
        order.confirm(Supplier(id="sup-a"))
        order.confirm(Supplier(id="sup-b"))
        assert order.status == OrderStatus.CONFIRMED.value

    def test_admin_confirm_confirms_everything(self, make_order):
        order = make_order()
        order.confirm(ADMIN, note="Checked stock by phone")
        assert order.status == OrderStatus.CONFIRMED.value
        assert set(_stages(order).values()) == {"confirmed"}
        assert order.status_history[-1].changed_by == "admin:admin-001"
        assert order.status_history[-1].note == "Checked stock by phone"

    def test_customer_cannot_confirm(self, make_order):
        order = make_order()
        with pytest.raises(InvalidTransition):
            order.confirm(Customer(id="cust-001"))

    def test_supplier_without_items_is_refused(self, make_order):
        order = make_order()
        with pytest.raises(InvalidTransition) as exc:
            order.confirm(Supplier(id="sup-z"))
        assert "no items" in exc.value.reason

    def test_supplier_cannot_confirm_twice(self, make_order):
        order = make_order()
        order.confirm(Supplier(id="sup-a"))
        with pytest.raises(InvalidTransition):
            order.confirm(Supplier(id="sup-a"))


class TestProcessingAndShipping:
    def test_start_processing_requires_confirmed(self, make_order):
        order = make_order()
        with pytest.raises(InvalidTransition):
            order.start_processing(ADMIN)

    def test_start_processing(self, make_order):
        order = make_order()
        order.confirm(ADMIN)
        order.start_processing(Supplier(id="sup-b"))
        assert order.status == OrderStatus.PROCESSING.value

    def test_home_delivery_needs_tracking_number(self, make_order):
        order = make_order()
        order.confirm(ADMIN)
        with pytest.raises(InvalidTransition) as exc:
            order.mark_shipped(Supplier(id="sup-a"))
        assert "tracking number" in exc.value.reason

    def test_malformed_tracking_number_is_rejected(self, make_order):
        order = make_order()
        order.confirm(ADMIN)
        with pytest.raises(InvalidTrackingFormat):
            order.mark_shipped(Supplier(id="sup-a"), tracking_number="has space")

    def test_pickup_ships_without_tracking(self, make_order):
        order = make_order(shipping_method="pickup")
        order.confirm(ADMIN)
        order.mark_shipped(ADMIN)
        assert order.status == OrderStatus.SHIPPED.value

    def test_order_ships_when_last_supplier_ships(self, make_order):
        order = make_order()
        order.confirm(ADMIN)
        order.mark_shipped(Supplier(id="sup-a"), tracking_number="AR1234-XYZ", carrier="Andreani")
        assert order.status == OrderStatus.CONFIRMED.value
        order.mark_shipped(Supplier(id="sup-b"), tracking_number="OCA-99887766")
        assert order.status == OrderStatus.SHIPPED.value
        assert {item.supplier_id: item.tracking_number for item in order.items} == {
            "sup-a": "AR1234-XYZ",
            "sup-b": "OCA-99887766",
        }

    def test_update_tracking_keeps_status(self, make_order):
        order = make_order()
        order.confirm(ADMIN)
        order.update_tracking(Supplier(id="sup-a"), "AR1234-XYZ", tracking_url="https://track.test/AR1234-XYZ")
        assert order.status == OrderStatus.CONFIRMED.value
        assert order.tracking_url == "https://track.test/AR1234-XYZ"
        assert order.status_history[-1].status == OrderStatus.CONFIRMED.value


class TestDelivery:
    def _shipped(self, make_order):
        order = make_order()
        order.confirm(ADMIN)
        order.mark_shipped(ADMIN, tracking_number="AR1234-XYZ")
        return order

    def test_delivery_refused_until_payment_approved(self, make_order):
        order = self._shipped(make_order)
        with pytest.raises(InvalidTransition) as exc:
            order.mark_delivered(ADMIN)
        assert exc.value.payment_status == PaymentStatus.PENDING.value
        assert order.status == OrderStatus.SHIPPED.value

    def test_delivery_after_approval(self, make_order):
        order = self._shipped(make_order)
        _approve(order)
        order.mark_delivered(System())
        assert order.status == OrderStatus.DELIVERED.value

    def test_supplier_cannot_mark_delivered(self, make_order):
        order = self._shipped(make_order)
        _approve(order)
        with pytest.raises(InvalidTransition):
            order.mark_delivered(Supplier(id="sup-a"))

    def test_delivered_is_terminal(self, make_order):
        order = self._shipped(make_order)
        _approve(order)
        order.mark_delivered(ADMIN)
        with pytest.raises(InvalidTransition):
            order.cancel(ADMIN)


class TestCancel:
    def test_customer_cancels_pending_order(self, make_order):
        order = make_order()
        order.cancel(Customer(id="cust-001"), reason="Changed my mind")
        assert order.status == OrderStatus.CANCELLED.value
        assert set(_stages(order).values()) == {"cancelled"}

    def test_customer_cannot_cancel_someone_elses_order(self, make_order):
        order = make_order()
        with pytest.raises(InvalidTransition):
            order.cancel(Customer(id="cust-999"))

    def test_customer_cannot_cancel_confirmed_order(self, make_order):
        order = make_order()
        order.confirm(ADMIN)
        with pytest.raises(InvalidTransition):
            order.cancel(Customer(id="cust-001"))

    def test_customer_cancel_of_shipped_order_leaves_it_unchanged(self, make_order):
        order = make_order()
        order.confirm(ADMIN)
        order.mark_shipped(ADMIN, tracking_number="AR1234-XYZ")
        version, history = order.version, len(order.status_history)

        with pytest.raises(InvalidTransition) as exc:
            order.cancel(Customer(id="cust-001"))

        assert exc.value.status == OrderStatus.SHIPPED.value
        assert order.status == OrderStatus.SHIPPED.value
        assert order.version == version
        assert len(order.status_history) == history

    def test_supplier_cancel_cancels_the_whole_order(self, make_order):
        order = make_order()
        order.cancel(Supplier(id="sup-b"), reason="Out of stock")
        assert order.status == OrderStatus.CANCELLED.value
        assert _stages(order) == {"sup-a": "cancelled", "sup-b": "cancelled"}
        assert order.status_history[-1].changed_by == "supplier:sup-b"

    def test_supplier_cancel_leaves_nothing_to_settle(self, make_order):
        order = make_order()
        order.cancel(Supplier(id="sup-b"))
        _approve(order)

        assert order.payment_status == PaymentStatus.APPROVED.value
        assert order.commission_details is None

    def test_supplier_cannot_cancel_foreign_order(self, make_order):
        order = make_order()
        with pytest.raises(InvalidTransition):
            order.cancel(Supplier(id="sup-z"))
        assert order.status == OrderStatus.PENDING.value

    def test_supplier_cancels_confirmed_order(self, make_order):
        order = make_order()
        order.confirm(ADMIN)
        order.cancel(Supplier(id="sup-a"))
        assert order.status == OrderStatus.CANCELLED.value

    def test_supplier_cannot_cancel_shipped_order(self, make_order):
        order = make_order()
        order.confirm(ADMIN)
        order.mark_shipped(ADMIN, tracking_number="AR1234-XYZ")
        with pytest.raises(InvalidTransition):
            order.cancel(Supplier(id="sup-a"))

    def test_admin_cancels_confirmed_order_with_shipped_items(self, make_order):
        order = make_order()
        order.confirm(ADMIN)
        order.mark_shipped(Supplier(id="sup-a"), tracking_number="AR1234-XYZ")
        order.cancel(ADMIN, reason="Fraud check failed")
        assert order.status == OrderStatus.CANCELLED.value

    def test_system_cannot_cancel(self, make_order):
        order = make_order()
        with pytest.raises(InvalidTransition):
            order.cancel(System())


class TestDeriveOrderStatus:
    def test_all_cancelled(self):
        stages = [FulfillmentStatus.CANCELLED.value] * 2
        assert derive_order_status(OrderStatus.PENDING, stages) is OrderStatus.CANCELLED

    def test_cancelled_items_are_ignored(self):
        stages = [FulfillmentStatus.SHIPPED.value, FulfillmentStatus.CANCELLED.value]
        assert derive_order_status(OrderStatus.CONFIRMED, stages) is OrderStatus.SHIPPED

    def test_slowest_item_holds_the_order_back(self):
        stages = [FulfillmentStatus.SHIPPED.value, FulfillmentStatus.PENDING.value]
        assert derive_order_status(OrderStatus.PENDING, stages) is OrderStatus.PENDING

    def test_processing_is_not_downgraded(self):
        stages = [FulfillmentStatus.CONFIRMED.value, FulfillmentStatus.SHIPPED.value]
        assert derive_order_status(OrderStatus.PROCESSING, stages) is OrderStatus.PROCESSING
