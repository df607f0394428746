"""Payment reconciliation rules.

Gateway notifications arrive at least once, in any order, and possibly for
intents the customer already abandoned. These rules decide whether a
notification moves the order's payment status. The Order aggregate applies
them inside a single guarded write together with the idempotency ledger.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime

from marketplace.exceptions import OutOfOrderEvent
from marketplace.order.status import PaymentStatus

# Gateway vocabulary → internal status. Anything missing maps to FAILED.
GATEWAY_STATUS_MAP = {
    "approved": PaymentStatus.APPROVED,
    "pending": PaymentStatus.IN_PROCESS,
    "in_process": PaymentStatus.IN_PROCESS,
    "authorized": PaymentStatus.IN_PROCESS,
    "in_mediation": PaymentStatus.IN_PROCESS,
    "rejected": PaymentStatus.REJECTED,
    "refunded": PaymentStatus.REFUNDED,
    "charged_back": PaymentStatus.REFUNDED,
}

# pending < in_process < {approved, rejected, failed} < refunded
_RANK = {
    PaymentStatus.PENDING: 0,
    PaymentStatus.IN_PROCESS: 1,
    PaymentStatus.APPROVED: 2,
    PaymentStatus.REJECTED: 2,
    PaymentStatus.FAILED: 2,
    PaymentStatus.REFUNDED: 3,
}

_RETRYABLE = frozenset({PaymentStatus.REJECTED, PaymentStatus.FAILED})

# Raw gateway status as kept in the payment record and ledger
GATEWAY_STATUS_MAX_LENGTH = 50


@dataclass(frozen=True)
class GatewayNotice:
    """One payment notification, from a webhook or from polling the gateway."""

    external_reference: str
    external_transaction_id: str
    gateway_status: str
    transaction_amount: float | None = None
    net_received_amount: float | None = None
    timestamp: datetime | None = None
    intent_id: str | None = None
    status_detail: str | None = None
    payment_method: str | None = None
    extra: dict = field(default_factory=dict)

    @property
    def payment_status(self) -> PaymentStatus:
        return map_gateway_status(self.gateway_status)


def as_utc(moment: datetime | None) -> datetime | None:
    if moment is None or moment.tzinfo is not None:
        return moment
    return moment.replace(tzinfo=UTC)


def map_gateway_status(gateway_status: str | None) -> PaymentStatus:
    """Translate gateway vocabulary. Unknown values fail closed."""
    return GATEWAY_STATUS_MAP.get((gateway_status or "").strip().lower(), PaymentStatus.FAILED)


def is_later(candidate: PaymentStatus, current: PaymentStatus) -> bool:
    return _RANK[candidate] > _RANK[current]


def next_payment_status(
    order_id: str,
    current: PaymentStatus,
    last_event_at: datetime | None,
    notice: GatewayNotice,
) -> PaymentStatus:
    """Payment status after ``notice``, or ``OutOfOrderEvent`` if it must be discarded.

    - A repeat of the current status is accepted and changes nothing.
    - ``refunded`` is final.
    - A strictly later state is accepted even when the notice is older.
    - Otherwise an older notice is discarded.
    - A newer notice may leave ``rejected``/``failed`` (the customer paid again).
    - Anything else would move the status backwards, e.g. ``approved`` to ``rejected``.
    """
    target = notice.payment_status
    if target == current:
        return current

    if current == PaymentStatus.REFUNDED:
        raise OutOfOrderEvent(order_id, notice.external_transaction_id, "refunded payments are final")

    if is_later(target, current):
        return target

    event_at, last_at = as_utc(notice.timestamp), as_utc(last_event_at)
    if event_at is not None and last_at is not None and event_at < last_at:
        raise OutOfOrderEvent(
            order_id,
            notice.external_transaction_id,
            f"older than the last applied event ({current.value} → {target.value})",
        )

    if current in _RETRYABLE:
        return target

    raise OutOfOrderEvent(
        order_id,
        notice.external_transaction_id,
        f"would move payment backwards ({current.value} → {target.value})",
    )
