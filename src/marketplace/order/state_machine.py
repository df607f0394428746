"""Who may do what to an order, and from which state.

Happy path::

    pending → confirmed → processing → shipped → delivered

``cancelled`` is reachable from ``pending`` or ``confirmed`` only. ``delivered``
and ``cancelled`` are terminal.

The authorization table below is the single source of truth for role checks.
Each rule is keyed by ``(action, role)`` and states the order statuses it
accepts, the payment statuses it requires (if any), whether the actor must own
the order or the items, and which per-item stages the action moves.

Multi-supplier orders advance item by item: a supplier's confirm/ship only
touches that supplier's items, and the order-level status is derived from the
stages of all non-cancelled items (see ``derive_order_status``). Cancelling
is all or nothing: any supplier on the order may cancel it as a whole.
"""

from dataclasses import dataclass
from enum import Enum

from marketplace.exceptions import InvalidTransition
from marketplace.order.actor import Actor, Role
from marketplace.order.status import FulfillmentStatus, OrderStatus, PaymentStatus


class Action(Enum):
    CONFIRM = "confirm"
    START_PROCESSING = "start_processing"
    MARK_SHIPPED = "mark_shipped"
    MARK_DELIVERED = "mark_delivered"
    CANCEL = "cancel"
    UPDATE_TRACKING = "update_tracking"
    RETRY_PAYMENT = "retry_payment"


class Scope(Enum):
    ORDER = "order"
    OWN_ORDER = "own_order"  # customer must be the order's customer
    OWN_ITEMS = "own_items"  # supplier acts on their items only
    PARTICIPANT = "participant"  # supplier must sell on the order; acts on every item


@dataclass(frozen=True)
class Rule:
    from_statuses: frozenset[OrderStatus]
    result: OrderStatus | None = None  # None: order status unchanged
    scope: Scope = Scope.ORDER
    payment_statuses: frozenset[PaymentStatus] | None = None
    item_stages: frozenset[FulfillmentStatus] | None = None  # stages the action moves items from


@dataclass(frozen=True)
class Grant:
    """An authorized action and the items it applies to."""

    action: Action
    actor: Actor
    rule: Rule
    items: tuple


_S = OrderStatus
_P = PaymentStatus
_F = FulfillmentStatus

_CONFIRM = Rule(frozenset({_S.PENDING}), _S.CONFIRMED, item_stages=frozenset({_F.PENDING}))
_START_PROCESSING = Rule(frozenset({_S.CONFIRMED}), _S.PROCESSING)
_MARK_SHIPPED = Rule(frozenset({_S.CONFIRMED, _S.PROCESSING}), _S.SHIPPED, item_stages=frozenset({_F.CONFIRMED}))
_MARK_DELIVERED = Rule(frozenset({_S.SHIPPED}), _S.DELIVERED, payment_statuses=frozenset({_P.APPROVED}))
# Whole-order cancellation also withdraws items a supplier already shipped
_CANCEL_ORDER = Rule(
    frozenset({_S.PENDING, _S.CONFIRMED}),
    _S.CANCELLED,
    item_stages=frozenset({_F.PENDING, _F.CONFIRMED, _F.SHIPPED}),
)
_CANCEL_AS_SUPPLIER = Rule(
    _CANCEL_ORDER.from_statuses,
    _S.CANCELLED,
    Scope.PARTICIPANT,
    item_stages=_CANCEL_ORDER.item_stages,
)
_UPDATE_TRACKING = Rule(
    frozenset({_S.CONFIRMED, _S.PROCESSING, _S.SHIPPED}),
    item_stages=frozenset({_F.CONFIRMED, _F.SHIPPED}),
)


def _own_items(rule: Rule) -> Rule:
    return Rule(rule.from_statuses, rule.result, Scope.OWN_ITEMS, rule.payment_statuses, rule.item_stages)


TRANSITIONS: dict[tuple[Action, Role], Rule] = {
    (Action.CONFIRM, Role.SUPPLIER): _own_items(_CONFIRM),
    (Action.CONFIRM, Role.ADMIN): _CONFIRM,
    (Action.START_PROCESSING, Role.SUPPLIER): _own_items(_START_PROCESSING),
    (Action.START_PROCESSING, Role.ADMIN): _START_PROCESSING,
    (Action.MARK_SHIPPED, Role.SUPPLIER): _own_items(_MARK_SHIPPED),
    (Action.MARK_SHIPPED, Role.ADMIN): _MARK_SHIPPED,
    (Action.MARK_DELIVERED, Role.ADMIN): _MARK_DELIVERED,
    (Action.MARK_DELIVERED, Role.SYSTEM): _MARK_DELIVERED,
    (Action.CANCEL, Role.CUSTOMER): Rule(
        frozenset({_S.PENDING}),
        _S.CANCELLED,
        Scope.OWN_ORDER,
        item_stages=frozenset({_F.PENDING, _F.CONFIRMED}),
    ),
    (Action.CANCEL, Role.SUPPLIER): _CANCEL_AS_SUPPLIER,
    (Action.CANCEL, Role.ADMIN): _CANCEL_ORDER,
    (Action.UPDATE_TRACKING, Role.SUPPLIER): _own_items(_UPDATE_TRACKING),
    (Action.UPDATE_TRACKING, Role.ADMIN): _UPDATE_TRACKING,
    (Action.RETRY_PAYMENT, Role.CUSTOMER): Rule(
        frozenset({_S.PENDING}),
        scope=Scope.OWN_ORDER,
        payment_statuses=frozenset({_P.PENDING, _P.REJECTED, _P.FAILED}),
    ),
}


def reject(order, action: Action, actor: Actor, reason: str) -> InvalidTransition:
    """Build the error for a refused action, carrying the order's current state."""
    return InvalidTransition(
        action=action.value,
        role=actor.role.value,
        status=order.status,
        payment_status=order.payment_status,
        reason=reason,
    )


def allowed_roles(action: Action) -> set[Role]:
    return {role for (act, role) in TRANSITIONS if act == action}


def authorize(order, action: Action, actor: Actor) -> Grant:
    """Check ``actor`` may perform ``action`` on ``order`` right now.

    Returns a ``Grant`` naming the items the action applies to. Raises
    ``InvalidTransition`` without touching the order otherwise.
    """
    rule = TRANSITIONS.get((action, actor.role))
    if rule is None:
        roles = ", ".join(sorted(r.value for r in allowed_roles(action)))
        raise reject(order, action, actor, f"only {roles} may {action.value}")

    if rule.scope is Scope.OWN_ORDER and str(order.customer.customer_id) != str(actor.id):
        raise reject(order, action, actor, "order belongs to another customer")

    items = list(order.items)
    if rule.scope is Scope.OWN_ITEMS:
        items = [item for item in items if str(item.supplier_id) == str(actor.id)]
        if not items:
            raise reject(order, action, actor, "supplier has no items in this order")
    if rule.scope is Scope.PARTICIPANT and not any(str(item.supplier_id) == str(actor.id) for item in items):
        raise reject(order, action, actor, "supplier has no items in this order")

    status = OrderStatus(order.status)
    if status not in rule.from_statuses:
        accepted = ", ".join(sorted(s.value for s in rule.from_statuses))
        raise reject(order, action, actor, f"order must be {accepted}")

    if rule.payment_statuses is not None and PaymentStatus(order.payment_status) not in rule.payment_statuses:
        accepted = ", ".join(sorted(s.value for s in rule.payment_statuses))
        raise reject(order, action, actor, f"payment must be {accepted}")

    if rule.item_stages is not None:
        items = [item for item in items if FulfillmentStatus(item.fulfillment_status) in rule.item_stages]
        if not items:
            raise reject(order, action, actor, "no items awaiting this action")

    return Grant(action=action, actor=actor, rule=rule, items=tuple(items))


_STAGE_RANK = {
    FulfillmentStatus.PENDING: 0,
    FulfillmentStatus.CONFIRMED: 1,
    FulfillmentStatus.SHIPPED: 2,
}


def derive_order_status(current: OrderStatus, stages) -> OrderStatus:
    """Order-level status implied by per-item stages after an item-level action.

    The order reaches a stage only once every non-cancelled item has reached
    it, so the last supplier to act is the one that moves the order.
    """
    active = [FulfillmentStatus(s) for s in stages if FulfillmentStatus(s) != FulfillmentStatus.CANCELLED]
    if not active:
        return OrderStatus.CANCELLED

    floor = min(_STAGE_RANK[s] for s in active)
    if floor >= _STAGE_RANK[FulfillmentStatus.SHIPPED]:
        return OrderStatus.SHIPPED
    if floor >= _STAGE_RANK[FulfillmentStatus.CONFIRMED] and current == OrderStatus.PENDING:
        return OrderStatus.CONFIRMED
    return current
