"""Supplier order queue, one row per (order, supplier).

Each supplier sees only its own lines of a multi-supplier order: how many
items, their subtotal and the stage they are in.
"""

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
    PaymentReconciled,
    ProcessingStarted,
    TrackingUpdated,
)
from marketplace.order.order import Order
from marketplace.order.status import FulfillmentStatus, OrderStatus, PaymentStatus


def view_id(order_id, supplier_id) -> str:
    return f"{order_id}:{supplier_id}"


@marketplace.projection
class SupplierOrderView:
    view_id = Identifier(identifier=True, required=True)
    order_id = Identifier(required=True)
    supplier_id = Identifier(required=True)
    order_number = String(required=True)
    customer_name = String()
    item_ids = Text()  # JSON: ids of this supplier's items
    item_count = Integer(default=0)
    subtotal = Float(default=0.0)
    fulfillment_status = String(default=FulfillmentStatus.PENDING.value)
    order_status = String(default=OrderStatus.PENDING.value)
    payment_status = String(default=PaymentStatus.PENDING.value)
    shipping_method = String()
    tracking_number = String()
    placed_at = DateTime()
    updated_at = DateTime()


@marketplace.projector(projector_for=SupplierOrderView, aggregates=[Order])
class SupplierOrderViewProjector:
    @on(OrderPlaced)
    def on_order_placed(self, event):
        customer = json.loads(event.customer)
        lines: dict[str, list[dict]] = {}
        for item in json.loads(event.items):
            lines.setdefault(str(item["supplier_id"]), []).append(item)

        repo = current_domain.repository_for(SupplierOrderView)
        for supplier_id, items in lines.items():
            repo.add(
                SupplierOrderView(
                    view_id=view_id(event.order_id, supplier_id),
                    order_id=event.order_id,
                    supplier_id=supplier_id,
                    order_number=event.order_number,
                    customer_name=customer.get("name"),
                    item_ids=json.dumps([item["id"] for item in items]),
                    item_count=sum(int(item["quantity"]) for item in items),
                    subtotal=round(sum(float(item["quantity"]) * float(item["unit_price"]) for item in items), 2),
                    shipping_method=event.shipping_method,
                    placed_at=event.placed_at,
                    updated_at=event.placed_at,
                )
            )

    def _rows(self, order_id):
        repo = current_domain.repository_for(SupplierOrderView)
        return repo, repo._dao.query.filter(order_id=str(order_id)).all().items

    def _update_items(self, event, stage: FulfillmentStatus, **fields):
        touched = set(json.loads(event.item_ids) if event.item_ids else [])
        repo, rows = self._rows(event.order_id)
        for row in rows:
            if touched & set(json.loads(row.item_ids or "[]")):
                if stage is not None:
                    row.fulfillment_status = stage.value
                for name, value in fields.items():
                    if value:
                        setattr(row, name, value)
            if getattr(event, "order_status", None):
                row.order_status = event.order_status
            row.updated_at = event.occurred_at
            repo.add(row)

    def _update_all(self, order_id, updated_at, **fields):
        repo, rows = self._rows(order_id)
        for row in rows:
            for name, value in fields.items():
                setattr(row, name, value)
            row.updated_at = updated_at
            repo.add(row)

    @on(ItemsConfirmed)
    def on_items_confirmed(self, event):
        self._update_items(event, FulfillmentStatus.CONFIRMED)

    @on(ProcessingStarted)
    def on_processing_started(self, event):
        self._update_all(event.order_id, event.occurred_at, order_status=event.order_status)

    @on(ItemsShipped)
    def on_items_shipped(self, event):
        self._update_items(event, FulfillmentStatus.SHIPPED, tracking_number=event.tracking_number)

    @on(TrackingUpdated)
    def on_tracking_updated(self, event):
        self._update_items(event, None, tracking_number=event.tracking_number)

    @on(ItemsCancelled)
    def on_items_cancelled(self, event):
        self._update_items(event, FulfillmentStatus.CANCELLED)

    @on(OrderDelivered)
    def on_order_delivered(self, event):
        self._update_all(event.order_id, event.delivered_at, order_status=OrderStatus.DELIVERED.value)

    @on(PaymentReconciled)
    def on_payment_reconciled(self, event):
        self._update_all(event.order_id, event.reconciled_at, payment_status=event.payment_status)
