"""Tells customers and suppliers what happened to their orders.

Reacts to Order events after they are committed and asks the messaging
service for one message per recipient. Delivery is best effort: a failed
request is logged and never undoes the order change that caused it.
"""

import json

import structlog
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from marketplace.domain import marketplace
from marketplace.messaging import get_dispatcher
from marketplace.messaging.port import MessageRequest, Topic
from marketplace.order.events import (
    ItemsCancelled,
    ItemsConfirmed,
    ItemsShipped,
    OrderDelivered,
    OrderPlaced,
    PaymentReconciled,
    TrackingUpdated,
)
from marketplace.order.order import Order
from marketplace.order.status import OrderStatus, PaymentStatus

logger = structlog.get_logger(__name__)


def _notify(order_id, recipients, topic: Topic, body: str) -> None:
    dispatcher = get_dispatcher()
    for recipient_id, role in recipients:
        try:
            receipt = dispatcher.request_message(
                MessageRequest(
                    recipient_id=str(recipient_id),
                    recipient_role=role,
                    order_id=str(order_id),
                    topic=topic,
                    body=body,
                )
            )
        except Exception as e:
            logger.error(
                "Notification request failed",
                order_id=str(order_id),
                recipient_id=str(recipient_id),
                topic=topic.value,
                error=str(e),
            )
            continue

        if not receipt.accepted:
            logger.warning(
                "Notification request not accepted",
                order_id=str(order_id),
                recipient_id=str(recipient_id),
                topic=topic.value,
                error=receipt.error,
            )


def _load(order_id):
    try:
        return current_domain.repository_for(Order).get(order_id)
    except Exception:
        logger.error("Failed to load order for notification", order_id=str(order_id))
        return None


def _customer(order):
    return [(order.customer.customer_id, "customer")]


def _suppliers(order):
    return [(sid, "supplier") for sid in order.supplier_ids()]


@marketplace.event_handler(part_of=Order)
class OrderNotificationHandler:
    @handle(OrderPlaced)
    def on_order_placed(self, event: OrderPlaced) -> None:
        customer = json.loads(event.customer)
        items = json.loads(event.items)

        _notify(
            event.order_id,
            [(customer["customer_id"], "customer")],
            Topic.ORDER_PLACED,
            f"We received your order {event.order_number}. Total: {event.total:.2f} {event.currency}.",
        )

        per_supplier: dict[str, int] = {}
        for item in items:
            per_supplier[str(item["supplier_id"])] = per_supplier.get(str(item["supplier_id"]), 0) + 1
        for supplier_id, count in per_supplier.items():
            _notify(
                event.order_id,
                [(supplier_id, "supplier")],
                Topic.ORDER_PLACED,
                f"New order {event.order_number}: {count} item(s) to confirm.",
            )

    @handle(ItemsConfirmed)
    def on_items_confirmed(self, event: ItemsConfirmed) -> None:
        if event.order_status != OrderStatus.CONFIRMED.value:
            return
        order = _load(event.order_id)
        if order is None:
            return
        _notify(order.id, _customer(order), Topic.ORDER_CONFIRMED, f"Your order {order.order_number} was confirmed.")

    @handle(ItemsShipped)
    def on_items_shipped(self, event: ItemsShipped) -> None:
        order = _load(event.order_id)
        if order is None:
            return
        body = f"Items of your order {order.order_number} are on their way."
        if event.tracking_number:
            body += f" Tracking: {event.tracking_number}"
            if event.carrier:
                body += f" ({event.carrier})"
        _notify(order.id, _customer(order), Topic.ORDER_SHIPPED, body)

    @handle(TrackingUpdated)
    def on_tracking_updated(self, event: TrackingUpdated) -> None:
        order = _load(event.order_id)
        if order is None:
            return
        _notify(
            order.id,
            _customer(order),
            Topic.TRACKING_UPDATED,
            f"New tracking number for order {order.order_number}: {event.tracking_number}",
        )

    @handle(OrderDelivered)
    def on_order_delivered(self, event: OrderDelivered) -> None:
        order = _load(event.order_id)
        if order is None:
            return
        body = f"Order {order.order_number} was delivered."
        _notify(order.id, _customer(order) + _suppliers(order), Topic.ORDER_DELIVERED, body)

    @handle(ItemsCancelled)
    def on_items_cancelled(self, event: ItemsCancelled) -> None:
        order = _load(event.order_id)
        if order is None:
            return
        reason = f" Reason: {event.reason}" if event.reason else ""
        _notify(
            order.id,
            _customer(order) + _suppliers(order),
            Topic.ORDER_CANCELLED,
            f"Order {order.order_number} was cancelled.{reason}",
        )

    @handle(PaymentReconciled)
    def on_payment_reconciled(self, event: PaymentReconciled) -> None:
        if event.payment_status == event.previous_payment_status:
            return

        if event.payment_status == PaymentStatus.APPROVED.value:
            order = _load(event.order_id)
            if order is None:
                return
            _notify(
                order.id,
                _customer(order) + _suppliers(order),
                Topic.PAYMENT_APPROVED,
                f"Payment for order {order.order_number} was approved.",
            )
        elif event.payment_status in (PaymentStatus.REJECTED.value, PaymentStatus.FAILED.value):
            order = _load(event.order_id)
            if order is None:
                return
            _notify(
                order.id,
                _customer(order),
                Topic.PAYMENT_FAILED,
                f"Payment for order {order.order_number} did not go through. You can retry from your order page.",
            )
