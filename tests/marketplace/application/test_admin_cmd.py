"""Admin status changes and order messages."""

from datetime import UTC, datetime

import pytest
from marketplace.messaging.port import Topic
from marketplace.order.admin import SendOrderMessage, status_command
from marketplace.order.cancellation import CancelOrder
from marketplace.order.fulfillment import ConfirmOrder, MarkShipped, StartProcessing
from protean import current_domain
from protean.exceptions import ValidationError


class TestStatusCommand:
    def test_maps_status_to_command(self):
        assert isinstance(status_command("o-1", "confirmed", "admin-1"), ConfirmOrder)
        assert isinstance(status_command("o-1", "processing", "admin-1"), StartProcessing)
        assert isinstance(status_command("o-1", "cancelled", "admin-1", note="Fraud"), CancelOrder)

    def test_shipping_carries_tracking(self):
        command = status_command("o-1", "shipped", "admin-1", tracking_number="AR1234-XYZ", carrier="OCA")
        assert isinstance(command, MarkShipped)
        assert command.tracking_number == "AR1234-XYZ"
        assert command.actor_role == "admin"
        assert command.actor_id == "admin-1"

    def test_cancel_note_becomes_reason(self):
        assert status_command("o-1", "cancelled", "admin-1", note="Fraud").reason == "Fraud"

    def test_unknown_status(self):
        with pytest.raises(ValidationError) as exc:
            status_command("o-1", "lost", "admin-1")
        assert "status" in exc.value.messages

    def test_back_to_pending_is_refused(self):
        with pytest.raises(ValidationError):
            status_command("o-1", "pending", "admin-1")


class TestAdminDrivesLifecycle:
    def test_admin_walks_order_to_delivery(self, place_order, webhook, load_order):
        order_id = place_order()
        webhook(order_id, "txn-1", "approved", event_timestamp=datetime.now(UTC))
        for target in ("confirmed", "processing"):
            current_domain.process(status_command(order_id, target, "admin-1"))
        current_domain.process(status_command(order_id, "shipped", "admin-1", tracking_number="AR1234-XYZ"))
        current_domain.process(status_command(order_id, "delivered", "admin-1"))

        order = load_order(order_id)
        assert order.status == "delivered"
        assert order.payment_status == "approved"
        assert "admin:admin-1" in {entry.changed_by for entry in order.status_history}


class TestSendOrderMessage:
    def _send(self, order_id, recipient):
        command = SendOrderMessage(order_id=order_id, admin_id="admin-1", recipient=recipient, message="Hola")
        return current_domain.process(command, asynchronous=False)

    def test_to_customer(self, place_order, dispatcher, load_order):
        order_id = place_order()

        assert self._send(order_id, "customer") == 1
        [message] = dispatcher.sent_to("cust-001", Topic.ADMIN_MESSAGE)
        assert message.body == f"[{load_order(order_id).order_number}] Hola"

    def test_to_suppliers(self, place_order, dispatcher):
        order_id = place_order()

        assert self._send(order_id, "suppliers") == 2
        assert dispatcher.sent_to("cust-001", Topic.ADMIN_MESSAGE) == []

    def test_to_everyone(self, place_order):
        assert self._send(place_order(), "all") == 3

    def test_message_does_not_change_the_order(self, place_order, load_order):
        order_id = place_order()
        version = load_order(order_id).version
        self._send(order_id, "all")
        assert load_order(order_id).version == version

    def test_rejected_deliveries_are_not_counted(self, place_order, dispatcher):
        order_id = place_order()
        dispatcher.should_fail = True
        assert self._send(order_id, "all") == 0
