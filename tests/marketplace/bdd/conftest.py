"""Shared BDD fixtures and step definitions for the order pipeline."""

from datetime import UTC, datetime

import pytest
from marketplace.exceptions import InvalidTransition
from marketplace.order.cancellation import CancelOrder
from marketplace.order.fulfillment import ConfirmOrder, MarkDelivered, MarkShipped
from protean import current_domain
from pytest_bdd import given, parsers, then, when


@pytest.fixture()
def outcome():
    """Container for the last webhook outcome and any refused action."""
    return {"webhook": None, "exc": None, "last_event_at": None}


def _process(command):
    return current_domain.process(command, asynchronous=False)


def _attempt(command, outcome):
    try:
        _process(command)
    except InvalidTransition as exc:
        outcome["exc"] = exc


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(
    parsers.cfparse('an order with items from "{first}" priced {first_price:d} and "{second}" priced {second_price:d}'),
    target_fixture="order_id",
)
def two_supplier_order(place_order, line, first, first_price, second, second_price):
    return place_order(items=[line(first, float(first_price)), line(second, float(second_price))])


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('supplier "{supplier_id}" confirms the order'))
def supplier_confirms(order_id, supplier_id):
    _process(ConfirmOrder(order_id=order_id, actor_role="supplier", actor_id=supplier_id))


@when(parsers.cfparse('supplier "{supplier_id}" ships with tracking "{tracking_number}"'))
def supplier_ships(order_id, supplier_id, tracking_number):
    _process(
        MarkShipped(
            order_id=order_id,
            actor_role="supplier",
            actor_id=supplier_id,
            tracking_number=tracking_number,
        )
    )


@when(parsers.cfparse('customer "{customer_id}" cancels the order'))
def customer_cancels(order_id, customer_id):
    _process(CancelOrder(order_id=order_id, actor_role="customer", actor_id=customer_id))


@when(parsers.cfparse('customer "{customer_id}" tries to cancel the order'))
def customer_tries_to_cancel(order_id, customer_id, outcome):
    _attempt(CancelOrder(order_id=order_id, actor_role="customer", actor_id=customer_id), outcome)


@when("the admin marks the order delivered")
def admin_delivers(order_id):
    _process(MarkDelivered(order_id=order_id, actor_role="admin", actor_id="admin-1"))


@when("the admin tries to mark the order delivered")
def admin_tries_to_deliver(order_id, outcome):
    _attempt(MarkDelivered(order_id=order_id, actor_role="admin", actor_id="admin-1"), outcome)


@when(parsers.cfparse('the gateway reports transaction "{transaction_id}" as "{status}"'))
def gateway_reports(order_id, webhook, outcome, transaction_id, status):
    at = datetime.now(UTC)
    outcome["last_event_at"] = at
    outcome["webhook"] = webhook(order_id, transaction_id, status, event_timestamp=at)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def order_status_is(order_id, load_order, status):
    assert load_order(order_id).status == status


@then(parsers.cfparse('the payment status is "{status}"'))
def payment_status_is(order_id, load_order, status):
    assert load_order(order_id).payment_status == status


@then("the action is refused")
def action_refused(outcome):
    assert isinstance(outcome["exc"], InvalidTransition)


@then(parsers.cfparse('the last webhook outcome is "{expected}"'))
def last_webhook_outcome(outcome, expected):
    assert outcome["webhook"] == expected


@then(parsers.cfparse('the items of "{supplier_id}" are "{stage}"'))
def items_of_supplier_are(order_id, load_order, supplier_id, stage):
    items = load_order(order_id).items_of(supplier_id)
    assert items
    assert all(item.fulfillment_status == stage for item in items)


@then(parsers.cfparse('every item is "{stage}"'))
def every_item_is(order_id, load_order, stage):
    assert all(item.fulfillment_status == stage for item in load_order(order_id).items)
