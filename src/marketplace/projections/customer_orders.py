"""Customer order list — what a customer sees on "My orders"."""

import json

from protean.core.projector import on
from protean.fields import DateTime, Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.order.events import (
    ItemsCancelled,
    ItemsConfirmed,
    ItemsShipped,
    OrderDelivered,
    OrderPlaced,
    PaymentIntentCreated,
    PaymentReconciled,
    ProcessingStarted,
    TrackingUpdated,
)
from marketplace.order.order import Order
from marketplace.order.status import OrderStatus, PaymentStatus

# Presentation aliases; the order itself only knows the canonical values
PAYMENT_DISPLAY = {
    PaymentStatus.PENDING.value: "pending",
    PaymentStatus.IN_PROCESS.value: "processing",
    PaymentStatus.APPROVED.value: "paid",
    PaymentStatus.REJECTED.value: "failed",
    PaymentStatus.FAILED.value: "failed",
    PaymentStatus.REFUNDED.value: "refunded",
}


def display_payment_status(payment_status: str) -> str:
    return PAYMENT_DISPLAY.get(payment_status, payment_status)


@marketplace.projection
class CustomerOrderView:
    order_id = Identifier(identifier=True, required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    status = String(required=True)
    payment_status = String(required=True)
    payment_display = String()
    total = Float()
    currency = String(default="ARS")
    item_count = Integer(default=0)
    supplier_count = Integer(default=0)
    shipping_method = String()
    pickup_date = String()
    pickup_location = Text()  # JSON: location dict
    tracking_number = String()
    carrier = String()
    checkout_url = String()
    placed_at = DateTime()
    updated_at = DateTime()


@marketplace.projector(projector_for=CustomerOrderView, aggregates=[Order])
class CustomerOrderViewProjector:
    @on(OrderPlaced)
    def on_order_placed(self, event):
        customer = json.loads(event.customer)
        items = json.loads(event.items)
        current_domain.repository_for(CustomerOrderView).add(
            CustomerOrderView(
                order_id=event.order_id,
                order_number=event.order_number,
                customer_id=customer["customer_id"],
                status=OrderStatus.PENDING.value,
                payment_status=PaymentStatus.PENDING.value,
                payment_display=display_payment_status(PaymentStatus.PENDING.value),
                total=event.total,
                currency=event.currency,
                item_count=sum(int(item["quantity"]) for item in items),
                supplier_count=len({str(item["supplier_id"]) for item in items}),
                shipping_method=event.shipping_method,
                pickup_date=event.pickup_date,
                pickup_location=event.pickup_location,
                placed_at=event.placed_at,
                updated_at=event.placed_at,
            )
        )

    def _update(self, order_id, updated_at=None, **fields):
        repo = current_domain.repository_for(CustomerOrderView)
        view = repo.get(order_id)
        for name, value in fields.items():
            setattr(view, name, value)
        if updated_at:
            view.updated_at = updated_at
        repo.add(view)

    @on(PaymentIntentCreated)
    def on_payment_intent_created(self, event):
        self._update(event.order_id, event.created_at, checkout_url=event.checkout_url)

    @on(ItemsConfirmed)
    def on_items_confirmed(self, event):
        self._update(event.order_id, event.occurred_at, status=event.order_status)

    @on(ProcessingStarted)
    def on_processing_started(self, event):
        self._update(event.order_id, event.occurred_at, status=event.order_status)

    @on(ItemsShipped)
    def on_items_shipped(self, event):
        fields = {"status": event.order_status}
        if event.tracking_number:
            fields["tracking_number"] = event.tracking_number
            fields["carrier"] = event.carrier
        self._update(event.order_id, event.occurred_at, **fields)

    @on(TrackingUpdated)
    def on_tracking_updated(self, event):
        self._update(
            event.order_id,
            event.occurred_at,
            tracking_number=event.tracking_number,
            carrier=event.carrier,
        )

    @on(OrderDelivered)
    def on_order_delivered(self, event):
        self._update(event.order_id, event.delivered_at, status=OrderStatus.DELIVERED.value)

    @on(ItemsCancelled)
    def on_items_cancelled(self, event):
        self._update(event.order_id, event.occurred_at, status=event.order_status)

    @on(PaymentReconciled)
    def on_payment_reconciled(self, event):
        self._update(
            event.order_id,
            event.reconciled_at,
            payment_status=event.payment_status,
            payment_display=display_payment_status(event.payment_status),
        )
