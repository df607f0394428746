"""Domain events for the Order aggregate.

Events are the order's source of truth: the aggregate's state is rebuilt by
replaying them through its ``@apply`` handlers, and projections and the
notification handler react to them. Lists and nested documents travel as
JSON text.
"""

from protean.fields import Boolean, DateTime, Float, Identifier, String, Text

from marketplace.domain import marketplace


@marketplace.event(part_of="Order")
class OrderPlaced:
    """A customer checked out an order spanning one or more suppliers."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer = Text(required=True)  # JSON: customer reference
    items = Text(required=True)  # JSON: list of item dicts
    subtotal = Float(required=True)
    discount = Float(default=0.0)
    shipping = Float(default=0.0)
    total = Float(required=True)
    currency = String(default="ARS")
    payment_method = String()
    shipping_method = String(required=True)
    shipping_address = Text()  # JSON: address dict, home delivery only
    pickup_date = String()  # ISO date, pickup only
    pickup_location = Text()  # JSON: location dict, pickup only
    notes = String()
    placed_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class PaymentIntentCreated:
    """A gateway checkout intent was opened for the order.

    On retries, every earlier intent is listed as superseded.
    """

    __version__ = 1

    order_id = Identifier(required=True)
    intent_id = String(required=True)
    checkout_url = String()
    idempotency_key = String()
    superseded_intent_ids = Text()  # JSON: list of intent ids
    is_retry = Boolean(default=False)
    changed_by = String()
    expires_at = DateTime()
    created_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class ItemsConfirmed:
    """A supplier (or an admin) confirmed items of the order."""

    __version__ = 1

    order_id = Identifier(required=True)
    supplier_id = Identifier()
    item_ids = Text(required=True)  # JSON: list of item ids
    order_status = String(required=True)
    changed_by = String(required=True)
    note = String()
    occurred_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class ProcessingStarted:
    """Preparation of a confirmed order started."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_status = String(required=True)
    changed_by = String(required=True)
    note = String()
    occurred_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class ItemsShipped:
    """Items were handed to a carrier, or set aside for pickup."""

    __version__ = 1

    order_id = Identifier(required=True)
    supplier_id = Identifier()
    item_ids = Text(required=True)  # JSON: list of item ids
    tracking_number = String()
    carrier = String()
    order_status = String(required=True)
    changed_by = String(required=True)
    note = String()
    occurred_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class TrackingUpdated:
    """A tracking number was attached to items without changing the status."""

    __version__ = 1

    order_id = Identifier(required=True)
    supplier_id = Identifier()
    item_ids = Text(required=True)  # JSON: list of item ids
    tracking_number = String(required=True)
    carrier = String()
    tracking_url = String()
    changed_by = String(required=True)
    note = String()
    occurred_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderDelivered:
    """The order reached the customer (delivered or collected)."""

    __version__ = 1

    order_id = Identifier(required=True)
    changed_by = String(required=True)
    note = String()
    delivered_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class ItemsCancelled:
    """Items were withdrawn. When none remain active, the order is cancelled."""

    __version__ = 1

    order_id = Identifier(required=True)
    supplier_id = Identifier()
    item_ids = Text(required=True)  # JSON: list of item ids
    order_status = String(required=True)
    reason = String()
    changed_by = String(required=True)
    occurred_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class PaymentReconciled:
    """A gateway notification was applied to the order's payment."""

    __version__ = 1

    order_id = Identifier(required=True)
    external_transaction_id = String(required=True)
    gateway_status = String(required=True)
    previous_payment_status = String(required=True)
    payment_status = String(required=True)
    transaction_amount = Float()
    net_received_amount = Float()
    status_detail = String()
    payment_method = String()
    intent_id = String()
    details = Text()  # JSON: additional gateway fields, stored as received
    event_timestamp = DateTime()
    reconciled_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class CommissionFrozen:
    """The settlement for an approved payment was computed and frozen."""

    __version__ = 1

    order_id = Identifier(required=True)
    total = Float(required=True)
    platform_fee = Float(required=True)
    processing_fee = Float(required=True)
    platform_commission = Float(required=True)
    supplier_earnings = Text(required=True)  # JSON: {supplier_id: amount}
    platform_fee_rate = String(required=True)
    processing_fee_rate = String(required=True)
    frozen_at = DateTime(required=True)
