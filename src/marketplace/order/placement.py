"""Order placement — command and handler.

Checkout submits one order for items of several suppliers. The pickup
location is resolved and the first gateway intent is opened before the order
is written, so the write itself never waits on a remote call.
"""

import json
from uuid import uuid4

import structlog
from protean import handle
from protean.fields import Date, Float, Identifier, String, Text
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.fulfillment.pickup import resolve_pickup_location
from marketplace.gateway import get_gateway
from marketplace.order.order import Order
from marketplace.order.status import ShippingMethod

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Order")
class PlaceOrder:
    customer_id = Identifier(required=True)
    customer_name = String(max_length=255)
    customer_email = String(max_length=255)
    customer_phone = String(max_length=50)
    items = Text(required=True)  # JSON: list of item dicts
    subtotal = Float(required=True)
    discount = Float(default=0.0)
    shipping = Float(default=0.0)
    total = Float(required=True)
    currency = String(max_length=3)
    shipping_method = String(required=True, max_length=20)
    shipping_address = Text()  # JSON: address dict
    pickup_date = Date()
    payment_method = String(max_length=50)
    notes = String(max_length=1000)
    idempotency_key = String(max_length=255)


def _loads(value):
    return json.loads(value) if isinstance(value, str) else value


@marketplace.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        items_data = _loads(command.items) or []
        shipping_address = _loads(command.shipping_address) if command.shipping_address else None

        pickup_location = None
        if command.shipping_method == ShippingMethod.PICKUP.value:
            supplier_ids = [item.get("supplier_id") for item in items_data if item.get("supplier_id")]
            pickup_location = resolve_pickup_location(supplier_ids).to_dict()

        order = Order.place(
            customer={
                "customer_id": command.customer_id,
                "name": command.customer_name,
                "email": command.customer_email,
                "phone": command.customer_phone,
            },
            items_data=items_data,
            subtotal=command.subtotal,
            discount=command.discount or 0.0,
            shipping=command.shipping or 0.0,
            total=command.total,
            shipping_method=command.shipping_method,
            shipping_address=shipping_address,
            pickup_date=command.pickup_date,
            pickup_location=pickup_location,
            payment_method=command.payment_method,
            currency=command.currency,
            notes=command.notes,
        )

        idempotency_key = command.idempotency_key or f"{order.id}:checkout:{uuid4().hex[:8]}"
        intent = get_gateway().create_payment_intent(
            order_id=str(order.id),
            order_number=order.order_number,
            amount=order.total,
            currency=order.currency,
            idempotency_key=idempotency_key,
        )
        order.open_payment_intent(intent, idempotency_key)

        current_domain.repository_for(Order).add(order)
        logger.info(
            "Order placed",
            order_id=str(order.id),
            order_number=order.order_number,
            suppliers=order.supplier_ids(),
            total=order.total,
        )
        return str(order.id)
