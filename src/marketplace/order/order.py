"""Order aggregate (Event Sourced) — the core of the marketplace domain.

An order is placed once, atomically, with every item and an initial
``pending`` history entry, and is never deleted: cancellation is a status.
All later changes go through the methods below, each of which asks the state
machine for permission first and then raises one event. State is rebuilt from
those events by the ``@apply`` handlers, which also bump ``version`` so callers
can make compare-and-swap style writes.

Status (order level)::

    pending → confirmed → processing → shipped → delivered
    pending | confirmed → cancelled

Payment status moves independently, driven by gateway notifications::

    pending → in_process → approved | rejected | failed → refunded
"""

import json
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from uuid import uuid4

import structlog
from protean import apply
from protean.exceptions import ValidationError
from protean.fields import (
    Date,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from marketplace import config
from marketplace.domain import marketplace
from marketplace.exceptions import DuplicateEvent, StaleIntentEvent
from marketplace.fulfillment.address import validate_shipping_address
from marketplace.fulfillment.pickup import resolve_pickup_date
from marketplace.fulfillment.tracking import validate_tracking_number
from marketplace.order import commission
from marketplace.order.actor import Actor, Role, describe
from marketplace.order.commission import to_money
from marketplace.order.events import (
    CommissionFrozen,
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
from marketplace.order.reconciliation import (
    GATEWAY_STATUS_MAX_LENGTH,
    GatewayNotice,
    as_utc,
    next_payment_status,
)
from marketplace.order.state_machine import Action, authorize, derive_order_status, reject
from marketplace.order.status import (
    FulfillmentStatus,
    OrderStatus,
    PaymentStatus,
    ShippingMethod,
)

logger = structlog.get_logger(__name__)

TOTALS_TOLERANCE = Decimal("0.005")


def generate_order_number(placed_at: datetime) -> str:
    return f"ORD-{placed_at:%Y%m%d}-{uuid4().hex[:8].upper()}"


def intent_expiry(now: datetime | None = None) -> datetime:
    """When a freshly created checkout intent stops accepting payments."""
    return (now or datetime.now(UTC)) + timedelta(minutes=config.PAYMENT_INTENT_TTL_MINUTES)


def check_totals(line_totals, subtotal, discount, shipping, total) -> None:
    """``Σ line_total == subtotal`` and ``subtotal - discount + shipping == total``, to the cent."""
    errors = {}
    lines = sum((Decimal(str(v)) for v in line_totals), Decimal("0"))
    subtotal, discount, shipping, total = (Decimal(str(v or 0)) for v in (subtotal, discount, shipping, total))

    if abs(lines - subtotal) > TOTALS_TOLERANCE:
        errors["subtotal"] = [f"Subtotal {subtotal} does not match the sum of line totals {lines}"]
    expected_total = subtotal - discount + shipping
    if abs(expected_total - total) > TOTALS_TOLERANCE:
        errors["total"] = [f"Total {total} does not equal subtotal - discount + shipping ({expected_total})"]
    for name, value in (("discount", discount), ("shipping", shipping), ("total", total)):
        if value < 0:
            errors[name] = [f"{name.capitalize()} cannot be negative"]
    if errors:
        raise ValidationError(errors)


def _normalize_items(items_data) -> list[dict]:
    if not items_data:
        raise ValidationError({"items": ["An order needs at least one item"]})

    errors = {}
    items = []
    for index, raw in enumerate(items_data):
        prefix = f"items[{index}]"
        for key in ("product_id", "supplier_id"):
            if not raw.get(key):
                errors[f"{prefix}.{key}"] = ["is required"]
        try:
            quantity = int(raw.get("quantity", 0))
        except (TypeError, ValueError):
            quantity = 0
        if quantity < 1:
            errors[f"{prefix}.quantity"] = ["must be at least 1"]
        try:
            unit_price = float(raw.get("unit_price"))
        except (TypeError, ValueError):
            unit_price = -1.0
        if unit_price < 0:
            errors[f"{prefix}.unit_price"] = ["must be zero or more"]

        items.append(
            {
                "id": str(uuid4()),
                "product_id": str(raw.get("product_id", "")),
                "product_name": raw.get("product_name") or raw.get("name") or "",
                "supplier_id": str(raw.get("supplier_id", "")),
                "supplier_name": raw.get("supplier_name") or "",
                "supplier_contact": raw.get("supplier_contact") or "",
                "variant": raw.get("variant") or None,
                "quantity": quantity,
                "unit_price": unit_price,
                "fulfillment_status": FulfillmentStatus.PENDING.value,
            }
        )
    if errors:
        raise ValidationError(errors)
    return items


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@marketplace.value_object(part_of="Order")
class CustomerReference:
    """Who placed the order. A weak reference: the order never owns the customer."""

    customer_id = Identifier(required=True)
    name = String(max_length=255)
    email = String(max_length=255)
    phone = String(max_length=50)


@marketplace.value_object(part_of="Order")
class ShippingAddress:
    """Home-delivery address captured at checkout."""

    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    state = String(required=True, max_length=100)
    zip_code = String(required=True, max_length=20)
    country = String(required=True, max_length=100)
    notes = String(max_length=500)


@marketplace.value_object(part_of="Order")
class PickupPoint:
    """Where a pickup order is collected. Display data resolved at checkout."""

    location_id = String(required=True, max_length=100)
    supplier_name = String(max_length=255)
    address = String(max_length=500)
    phone = String(max_length=50)
    email = String(max_length=255)
    business_hours = String(max_length=255)


@marketplace.value_object(part_of="Order")
class PaymentDetails:
    """Gateway reference fields for the latest applied payment notification."""

    external_transaction_id = String(max_length=255)
    gateway_status = String(max_length=50)
    status_detail = String(max_length=255)
    transaction_amount = Float()
    net_received_amount = Float()
    payment_method = String(max_length=50)
    intent_id = String(max_length=255)
    raw = Text()  # JSON: additional gateway fields, opaque
    last_event_at = DateTime()
    paid_at = DateTime()
    refunded_at = DateTime()


@marketplace.value_object(part_of="Order")
class CommissionDetails:
    """Frozen settlement snapshot. Set once, when payment is first approved."""

    total = Float(required=True)
    platform_fee = Float(required=True)
    processing_fee = Float(required=True)
    platform_commission = Float(required=True)
    supplier_earnings = Text(required=True)  # JSON: {supplier_id: amount}
    platform_fee_rate = String(max_length=10)
    processing_fee_rate = String(max_length=10)
    frozen_at = DateTime()

    @property
    def earnings(self) -> dict[str, float]:
        return json.loads(self.supplier_earnings) if self.supplier_earnings else {}


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@marketplace.entity(part_of="Order")
class OrderItem:
    """A line of the order, sold and fulfilled by exactly one supplier."""

    product_id = Identifier(required=True)
    product_name = String(max_length=255)
    supplier_id = Identifier(required=True)
    supplier_name = String(max_length=255)
    supplier_contact = String(max_length=255)
    variant = String(max_length=100)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    fulfillment_status = String(
        choices=FulfillmentStatus,
        default=FulfillmentStatus.PENDING.value,
    )
    tracking_number = String(max_length=40)
    carrier = String(max_length=100)

    @property
    def line_total(self) -> float:
        return float(to_money(Decimal(str(self.quantity)) * Decimal(str(self.unit_price))))


@marketplace.entity(part_of="Order")
class StatusEntry:
    """One line of the append-only status history."""

    status = String(required=True, max_length=50)
    note = String(max_length=500)
    changed_by = String(max_length=255)
    timestamp = DateTime(required=True)


@marketplace.entity(part_of="Order")
class GatewayEvent:
    """Ledger of applied gateway notifications, keyed by transaction id."""

    external_transaction_id = String(required=True, max_length=255)
    gateway_status = String(max_length=50)
    payment_status = String(max_length=50)
    event_timestamp = DateTime()
    applied_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Aggregate Root (Event Sourced)
# ---------------------------------------------------------------------------
@marketplace.aggregate(is_event_sourced=True)
class Order:
    order_number = String(max_length=50)
    customer = ValueObject(CustomerReference)
    items = HasMany(OrderItem)
    subtotal = Float(default=0.0)
    discount = Float(default=0.0)
    shipping = Float(default=0.0)
    total = Float(default=0.0)
    currency = String(max_length=3, default="ARS")
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    payment_method = String(max_length=50)
    payment_details = ValueObject(PaymentDetails)
    payment_intent_id = String(max_length=255)
    payment_intent_key = String(max_length=255)
    payment_intent_created_at = DateTime()
    checkout_url = String(max_length=500)
    superseded_intent_ids = Text()  # JSON: list of intent ids
    shipping_method = String(choices=ShippingMethod, default=ShippingMethod.HOME_DELIVERY.value)
    shipping_address = ValueObject(ShippingAddress)
    pickup_date = Date()
    pickup_point = ValueObject(PickupPoint)
    commission_details = ValueObject(CommissionDetails)
    tracking_number = String(max_length=40)
    carrier = String(max_length=100)
    tracking_url = String(max_length=500)
    status_history = HasMany(StatusEntry)
    gateway_events = HasMany(GatewayEvent)
    notes = String(max_length=1000)
    version = Integer(default=0)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        customer: dict,
        items_data: list[dict],
        subtotal: float,
        total: float,
        shipping_method: str,
        discount: float = 0.0,
        shipping: float = 0.0,
        shipping_address: dict | None = None,
        pickup_date: date | None = None,
        pickup_location: dict | None = None,
        payment_method: str | None = None,
        currency: str | None = None,
        notes: str | None = None,
        now: datetime | None = None,
    ):
        """Place a new order from checkout data.

        Validates the shipping branch and the totals before anything is
        recorded. ``pickup_location`` must already be resolved for pickup
        orders; ``pickup_date`` defaults to the earliest legal date.
        """
        now = now or datetime.now(UTC)

        if not customer or not customer.get("customer_id"):
            raise ValidationError({"customer.customer_id": ["is required"]})

        try:
            method = ShippingMethod(shipping_method)
        except ValueError:
            raise ValidationError({"shipping_method": [f"Unknown shipping method '{shipping_method}'"]}) from None

        address_json = None
        pickup_iso = None
        location_json = None
        if method is ShippingMethod.HOME_DELIVERY:
            if pickup_date is not None or pickup_location:
                raise ValidationError({"pickup_date": ["Home delivery orders cannot carry a pickup date"]})
            address_json = json.dumps(validate_shipping_address(shipping_address))
        else:
            if shipping_address:
                raise ValidationError({"shipping_address": ["Pickup orders cannot carry a shipping address"]})
            if not pickup_location:
                raise ValidationError({"pickup_location": ["A pickup location is required for pickup orders"]})
            pickup_iso = resolve_pickup_date(pickup_date, now).isoformat()
            location_json = json.dumps(pickup_location)

        items = _normalize_items(items_data)
        line_totals = [to_money(Decimal(str(i["quantity"])) * Decimal(str(i["unit_price"]))) for i in items]
        check_totals(line_totals, subtotal, discount, shipping, total)

        order = cls._create_new()
        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=generate_order_number(now),
                customer=json.dumps({k: v for k, v in customer.items() if v is not None}),
                items=json.dumps(items),
                subtotal=float(subtotal),
                discount=float(discount or 0.0),
                shipping=float(shipping or 0.0),
                total=float(total),
                currency=currency or config.currency(),
                payment_method=payment_method,
                shipping_method=method.value,
                shipping_address=address_json,
                pickup_date=pickup_iso,
                pickup_location=location_json,
                notes=notes,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    @property
    def superseded_intents(self) -> list[str]:
        return json.loads(self.superseded_intent_ids) if self.superseded_intent_ids else []

    def items_of(self, supplier_id) -> list:
        return [item for item in self.items if str(item.supplier_id) == str(supplier_id)]

    def supplier_ids(self) -> list[str]:
        return list(dict.fromkeys(str(item.supplier_id) for item in self.items))

    def has_applied(self, external_transaction_id: str) -> bool:
        return any(e.external_transaction_id == external_transaction_id for e in self.gateway_events)

    def _assert_totals_consistent(self) -> None:
        check_totals(
            [item.line_total for item in self.items],
            self.subtotal,
            self.discount,
            self.shipping,
            self.total,
        )

    def _status_after(self, item_ids, stage: FulfillmentStatus) -> OrderStatus:
        stages = [stage.value if str(item.id) in item_ids else item.fulfillment_status for item in self.items]
        return derive_order_status(OrderStatus(self.status), stages)

    def _touch(self, moment) -> None:
        self.version = (self.version or 0) + 1
        self.updated_at = moment

    def _record_history(self, status, note, changed_by, moment) -> None:
        self.add_status_history(StatusEntry(status=status, note=note, changed_by=changed_by, timestamp=moment))

    def _set_item_stage(self, item_ids_json, stage: FulfillmentStatus, **fields) -> None:
        item_ids = json.loads(item_ids_json) if item_ids_json else []
        for item in self.items:
            if str(item.id) in item_ids:
                item.fulfillment_status = stage.value
                for name, value in fields.items():
                    if value:
                        setattr(item, name, value)

    @staticmethod
    def _supplier_of(actor: Actor) -> str | None:
        return actor.id if actor.role is Role.SUPPLIER else None

    # -------------------------------------------------------------------
    # Fulfilment
    # -------------------------------------------------------------------
    def confirm(self, actor: Actor, note: str | None = None) -> None:
        """Confirm the actor's items (a supplier) or every pending item (an admin)."""
        grant = authorize(self, Action.CONFIRM, actor)
        self._assert_totals_consistent()

        item_ids = [str(item.id) for item in grant.items]
        new_status = self._status_after(item_ids, FulfillmentStatus.CONFIRMED)
        self.raise_(
            ItemsConfirmed(
                order_id=str(self.id),
                supplier_id=self._supplier_of(actor),
                item_ids=json.dumps(item_ids),
                order_status=new_status.value,
                changed_by=describe(actor),
                note=note or f"{len(item_ids)} item(s) confirmed",
                occurred_at=datetime.now(UTC),
            )
        )

    def start_processing(self, actor: Actor, note: str | None = None) -> None:
        authorize(self, Action.START_PROCESSING, actor)
        self._assert_totals_consistent()
        self.raise_(
            ProcessingStarted(
                order_id=str(self.id),
                order_status=OrderStatus.PROCESSING.value,
                changed_by=describe(actor),
                note=note or "Order is being prepared",
                occurred_at=datetime.now(UTC),
            )
        )

    def mark_shipped(
        self,
        actor: Actor,
        tracking_number: str | None = None,
        carrier: str | None = None,
        note: str | None = None,
    ) -> None:
        """Ship the actor's confirmed items. Home deliveries need a tracking number."""
        grant = authorize(self, Action.MARK_SHIPPED, actor)
        if tracking_number:
            tracking_number = validate_tracking_number(tracking_number)

        if ShippingMethod(self.shipping_method) is ShippingMethod.HOME_DELIVERY:
            untracked = [item for item in grant.items if not (tracking_number or item.tracking_number)]
            if untracked:
                raise reject(self, Action.MARK_SHIPPED, actor, "a tracking number is required for home delivery")
        self._assert_totals_consistent()

        item_ids = [str(item.id) for item in grant.items]
        new_status = self._status_after(item_ids, FulfillmentStatus.SHIPPED)
        self.raise_(
            ItemsShipped(
                order_id=str(self.id),
                supplier_id=self._supplier_of(actor),
                item_ids=json.dumps(item_ids),
                tracking_number=tracking_number,
                carrier=carrier,
                order_status=new_status.value,
                changed_by=describe(actor),
                note=note or f"{len(item_ids)} item(s) shipped",
                occurred_at=datetime.now(UTC),
            )
        )

    def update_tracking(
        self,
        actor: Actor,
        tracking_number: str,
        carrier: str | None = None,
        tracking_url: str | None = None,
        note: str | None = None,
    ) -> None:
        """Attach a tracking number to the actor's items. The status does not change."""
        grant = authorize(self, Action.UPDATE_TRACKING, actor)
        tracking_number = validate_tracking_number(tracking_number)
        self._assert_totals_consistent()

        self.raise_(
            TrackingUpdated(
                order_id=str(self.id),
                supplier_id=self._supplier_of(actor),
                item_ids=json.dumps([str(item.id) for item in grant.items]),
                tracking_number=tracking_number,
                carrier=carrier,
                tracking_url=tracking_url,
                changed_by=describe(actor),
                note=note or f"Tracking number {tracking_number}",
                occurred_at=datetime.now(UTC),
            )
        )

    def mark_delivered(self, actor: Actor, note: str | None = None) -> None:
        """Record delivery. Refused unless payment is approved."""
        authorize(self, Action.MARK_DELIVERED, actor)
        self._assert_totals_consistent()
        self.raise_(
            OrderDelivered(
                order_id=str(self.id),
                changed_by=describe(actor),
                note=note or "Order delivered",
                delivered_at=datetime.now(UTC),
            )
        )

    def cancel(self, actor: Actor, reason: str | None = None) -> None:
        """Cancel the whole order. Suppliers may do so only for orders they sell on."""
        grant = authorize(self, Action.CANCEL, actor)
        self._assert_totals_consistent()

        item_ids = [str(item.id) for item in grant.items]
        new_status = self._status_after(item_ids, FulfillmentStatus.CANCELLED)
        self.raise_(
            ItemsCancelled(
                order_id=str(self.id),
                supplier_id=self._supplier_of(actor),
                item_ids=json.dumps(item_ids),
                order_status=new_status.value,
                reason=reason or "Cancelled",
                changed_by=describe(actor),
                occurred_at=datetime.now(UTC),
            )
        )

    # -------------------------------------------------------------------
    # Payment intents
    # -------------------------------------------------------------------
    def open_payment_intent(self, intent, idempotency_key: str) -> None:
        """Attach the checkout intent created right after placement."""
        if self.payment_intent_id:
            raise ValidationError({"payment_intent": ["The order already has a payment intent"]})
        self.raise_(
            PaymentIntentCreated(
                order_id=str(self.id),
                intent_id=intent.intent_id,
                checkout_url=intent.checkout_url,
                idempotency_key=idempotency_key,
                superseded_intent_ids=json.dumps([]),
                is_retry=False,
                changed_by="system:checkout",
                expires_at=intent.expires_at,
                created_at=intent.created_at,
            )
        )

    def retry_payment(self, actor: Actor, intent, idempotency_key: str) -> None:
        """Switch the order to a fresh gateway intent, superseding every earlier one."""
        authorize(self, Action.RETRY_PAYMENT, actor)
        self._assert_totals_consistent()

        superseded = self.superseded_intents
        if self.payment_intent_id and self.payment_intent_id not in superseded:
            superseded.append(self.payment_intent_id)
        self.raise_(
            PaymentIntentCreated(
                order_id=str(self.id),
                intent_id=intent.intent_id,
                checkout_url=intent.checkout_url,
                idempotency_key=idempotency_key,
                superseded_intent_ids=json.dumps(superseded),
                is_retry=True,
                changed_by=describe(actor),
                expires_at=intent.expires_at,
                created_at=intent.created_at,
            )
        )

    # -------------------------------------------------------------------
    # Payment reconciliation
    # -------------------------------------------------------------------
    def _assert_current_intent(self, notice: GatewayNotice) -> None:
        superseded = self.superseded_intents
        if notice.intent_id and notice.intent_id in superseded:
            raise StaleIntentEvent(str(self.id), notice.external_transaction_id, "intent was superseded by a retry")
        if (
            superseded
            and notice.timestamp is not None
            and self.payment_intent_created_at is not None
            and as_utc(notice.timestamp) < as_utc(self.payment_intent_created_at)
        ):
            raise StaleIntentEvent(str(self.id), notice.external_transaction_id, "predates the current payment intent")

    def reconcile_payment(self, notice: GatewayNotice) -> PaymentStatus:
        """Apply a gateway notification exactly once.

        Raises ``DuplicateEvent`` for a transaction id already in the ledger,
        and ``StaleIntentEvent``/``OutOfOrderEvent`` for notifications that must
        be acknowledged but not applied. Freezes the commission on the first
        approval.
        """
        if self.has_applied(notice.external_transaction_id):
            raise DuplicateEvent(str(self.id), notice.external_transaction_id)
        self._assert_current_intent(notice)
        self._assert_totals_consistent()

        current = PaymentStatus(self.payment_status)
        last_event_at = self.payment_details.last_event_at if self.payment_details else None
        target = next_payment_status(str(self.id), current, last_event_at, notice)

        self.raise_(
            PaymentReconciled(
                order_id=str(self.id),
                external_transaction_id=notice.external_transaction_id,
                gateway_status=notice.gateway_status[:GATEWAY_STATUS_MAX_LENGTH],
                previous_payment_status=current.value,
                payment_status=target.value,
                transaction_amount=notice.transaction_amount,
                net_received_amount=notice.net_received_amount,
                status_detail=notice.status_detail,
                payment_method=notice.payment_method,
                intent_id=notice.intent_id,
                details=json.dumps(notice.extra, default=str) if notice.extra else None,
                event_timestamp=notice.timestamp,
                reconciled_at=datetime.now(UTC),
            )
        )

        if target is PaymentStatus.APPROVED and current is not PaymentStatus.APPROVED:
            if OrderStatus(self.status) is OrderStatus.CANCELLED:
                logger.warning(
                    "Payment approved for a cancelled order; refund required",
                    order_id=str(self.id),
                    external_transaction_id=notice.external_transaction_id,
                )
            else:
                commission.freeze(self)
        return target

    def record_commission(self, breakdown) -> None:
        """Record the settlement snapshot. Later calls are no-ops."""
        if self.commission_details is not None:
            return
        payload = breakdown.to_payload()
        self.raise_(
            CommissionFrozen(
                order_id=str(self.id),
                total=payload["total"],
                platform_fee=payload["platform_fee"],
                processing_fee=payload["processing_fee"],
                platform_commission=payload["platform_commission"],
                supplier_earnings=json.dumps(payload["supplier_earnings"]),
                platform_fee_rate=payload["platform_fee_rate"],
                processing_fee_rate=payload["processing_fee_rate"],
                frozen_at=datetime.now(UTC),
            )
        )

    # -------------------------------------------------------------------
    # @apply methods: rebuild state during event replay
    # -------------------------------------------------------------------
    @apply
    def _on_order_placed(self, event: OrderPlaced):
        self.id = event.order_id
        self.order_number = event.order_number
        self.customer = CustomerReference(**json.loads(event.customer))
        self.items = [OrderItem(**item_data) for item_data in json.loads(event.items)]
        self.subtotal = event.subtotal
        self.discount = event.discount or 0.0
        self.shipping = event.shipping or 0.0
        self.total = event.total
        self.currency = event.currency
        self.payment_method = event.payment_method
        self.status = OrderStatus.PENDING.value
        self.payment_status = PaymentStatus.PENDING.value
        self.shipping_method = event.shipping_method
        if event.shipping_address:
            self.shipping_address = ShippingAddress(**json.loads(event.shipping_address))
        if event.pickup_date:
            self.pickup_date = date.fromisoformat(event.pickup_date)
        if event.pickup_location:
            self.pickup_point = PickupPoint(**json.loads(event.pickup_location))
        self.notes = event.notes
        self.created_at = event.placed_at
        self._record_history(
            OrderStatus.PENDING.value,
            "Order placed",
            f"customer:{self.customer.customer_id}",
            event.placed_at,
        )
        self._touch(event.placed_at)

    @apply
    def _on_payment_intent_created(self, event: PaymentIntentCreated):
        self.payment_intent_id = event.intent_id
        self.payment_intent_key = event.idempotency_key
        self.payment_intent_created_at = event.created_at
        self.checkout_url = event.checkout_url
        self.superseded_intent_ids = event.superseded_intent_ids
        if event.is_retry:
            self.payment_status = PaymentStatus.PENDING.value
            self._record_history(self.status, "Payment retry requested", event.changed_by, event.created_at)
        self._touch(event.created_at)

    @apply
    def _on_items_confirmed(self, event: ItemsConfirmed):
        self._set_item_stage(event.item_ids, FulfillmentStatus.CONFIRMED)
        self.status = event.order_status
        self._record_history(event.order_status, event.note, event.changed_by, event.occurred_at)
        self._touch(event.occurred_at)

    @apply
    def _on_processing_started(self, event: ProcessingStarted):
        self.status = event.order_status
        self._record_history(event.order_status, event.note, event.changed_by, event.occurred_at)
        self._touch(event.occurred_at)

    @apply
    def _on_items_shipped(self, event: ItemsShipped):
        self._set_item_stage(
            event.item_ids,
            FulfillmentStatus.SHIPPED,
            tracking_number=event.tracking_number,
            carrier=event.carrier,
        )
        if event.tracking_number:
            self.tracking_number = event.tracking_number
            self.carrier = event.carrier or self.carrier
        self.status = event.order_status
        self._record_history(event.order_status, event.note, event.changed_by, event.occurred_at)
        self._touch(event.occurred_at)

    @apply
    def _on_tracking_updated(self, event: TrackingUpdated):
        item_ids = json.loads(event.item_ids) if event.item_ids else []
        for item in self.items:
            if str(item.id) in item_ids:
                item.tracking_number = event.tracking_number
                item.carrier = event.carrier or item.carrier
        self.tracking_number = event.tracking_number
        self.carrier = event.carrier or self.carrier
        self.tracking_url = event.tracking_url or self.tracking_url
        self._record_history(self.status, event.note, event.changed_by, event.occurred_at)
        self._touch(event.occurred_at)

    @apply
    def _on_order_delivered(self, event: OrderDelivered):
        self.status = OrderStatus.DELIVERED.value
        self._record_history(OrderStatus.DELIVERED.value, event.note, event.changed_by, event.delivered_at)
        self._touch(event.delivered_at)

    @apply
    def _on_items_cancelled(self, event: ItemsCancelled):
        self._set_item_stage(event.item_ids, FulfillmentStatus.CANCELLED)
        self.status = event.order_status
        self._record_history(event.order_status, event.reason, event.changed_by, event.occurred_at)
        self._touch(event.occurred_at)

    @apply
    def _on_payment_reconciled(self, event: PaymentReconciled):
        previous = self.payment_details
        last_event_at = previous.last_event_at if previous else None
        if event.event_timestamp is not None and (
            last_event_at is None or as_utc(event.event_timestamp) > as_utc(last_event_at)
        ):
            last_event_at = event.event_timestamp

        became = event.payment_status != event.previous_payment_status
        paid_at = previous.paid_at if previous else None
        refunded_at = previous.refunded_at if previous else None
        if became and event.payment_status == PaymentStatus.APPROVED.value:
            paid_at = event.reconciled_at
        if became and event.payment_status == PaymentStatus.REFUNDED.value:
            refunded_at = event.reconciled_at

        self.payment_details = PaymentDetails(
            external_transaction_id=event.external_transaction_id,
            gateway_status=event.gateway_status,
            status_detail=event.status_detail,
            transaction_amount=event.transaction_amount,
            net_received_amount=event.net_received_amount,
            payment_method=event.payment_method,
            intent_id=event.intent_id,
            raw=event.details,
            last_event_at=last_event_at,
            paid_at=paid_at,
            refunded_at=refunded_at,
        )
        self.payment_status = event.payment_status
        if event.payment_method:
            self.payment_method = event.payment_method
        self.add_gateway_events(
            GatewayEvent(
                external_transaction_id=event.external_transaction_id,
                gateway_status=event.gateway_status,
                payment_status=event.payment_status,
                event_timestamp=event.event_timestamp,
                applied_at=event.reconciled_at,
            )
        )
        if became:
            self._record_history(
                self.status,
                f"Payment {event.previous_payment_status} → {event.payment_status}",
                "system:gateway",
                event.reconciled_at,
            )
        self._touch(event.reconciled_at)

    @apply
    def _on_commission_frozen(self, event: CommissionFrozen):
        self.commission_details = CommissionDetails(
            total=event.total,
            platform_fee=event.platform_fee,
            processing_fee=event.processing_fee,
            platform_commission=event.platform_commission,
            supplier_earnings=event.supplier_earnings,
            platform_fee_rate=event.platform_fee_rate,
            processing_fee_rate=event.processing_fee_rate,
            frozen_at=event.frozen_at,
        )
        self._touch(event.frozen_at)
