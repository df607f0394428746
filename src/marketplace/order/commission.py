"""Commission settlement for multi-supplier orders.

The breakdown splits an order total into three buckets:

- ``processing_fee``: ``total * processing_fee_rate``, kept for the payment processor
- ``supplier_earnings``: per supplier, ``Σ line_total * (1 - platform_fee_rate)``
- ``platform_fee``: whatever remains, so the buckets always sum to ``total``

Every amount is rounded half-up to cents. ``platform_commission`` reports the
gross ``total * platform_fee_rate`` for reference; the difference between it
and ``platform_fee`` is what the platform absorbs (processing costs, rounding
remainders, discounts).
"""

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal

import structlog

from marketplace import config
from marketplace.exceptions import InconsistentCommission

logger = structlog.get_logger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value) -> Decimal:
    """Round a number to currency precision, half-up."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def line_total(item) -> Decimal:
    return to_money(Decimal(str(item.quantity)) * Decimal(str(item.unit_price)))


@dataclass(frozen=True)
class CommissionBreakdown:
    total: Decimal
    platform_fee: Decimal
    processing_fee: Decimal
    platform_commission: Decimal
    supplier_earnings: dict[str, Decimal] = field(default_factory=dict)
    platform_fee_rate: Decimal = ZERO
    processing_fee_rate: Decimal = ZERO

    @property
    def platform_adjustment(self) -> Decimal:
        return self.platform_fee - self.platform_commission

    @property
    def components_sum(self) -> Decimal:
        return self.platform_fee + self.processing_fee + sum(self.supplier_earnings.values(), ZERO)

    def to_payload(self) -> dict:
        """Plain values for events and API responses."""
        return {
            "total": float(self.total),
            "platform_fee": float(self.platform_fee),
            "processing_fee": float(self.processing_fee),
            "platform_commission": float(self.platform_commission),
            "supplier_earnings": {supplier: float(amount) for supplier, amount in self.supplier_earnings.items()},
            "platform_fee_rate": str(self.platform_fee_rate),
            "processing_fee_rate": str(self.processing_fee_rate),
        }


def calculate(items, total, platform_fee_rate=None, processing_fee_rate=None, order_id=None) -> CommissionBreakdown:
    """Compute the settlement for ``items`` (anything with supplier_id, quantity, unit_price).

    Raises ``InconsistentCommission`` if the result does not reconcile.
    """
    platform_rate = Decimal(str(platform_fee_rate)) if platform_fee_rate is not None else config.platform_fee_rate()
    processing_rate = (
        Decimal(str(processing_fee_rate)) if processing_fee_rate is not None else config.processing_fee_rate()
    )
    total = to_money(total)

    sold_by_supplier: dict[str, Decimal] = {}
    for item in items:
        supplier_id = str(item.supplier_id)
        sold_by_supplier[supplier_id] = sold_by_supplier.get(supplier_id, ZERO) + line_total(item)

    earnings = {supplier: to_money(sold * (1 - platform_rate)) for supplier, sold in sold_by_supplier.items()}
    processing_fee = to_money(total * processing_rate)
    platform_fee = total - processing_fee - sum(earnings.values(), ZERO)

    breakdown = CommissionBreakdown(
        total=total,
        platform_fee=platform_fee,
        processing_fee=processing_fee,
        platform_commission=to_money(total * platform_rate),
        supplier_earnings=earnings,
        platform_fee_rate=platform_rate,
        processing_fee_rate=processing_rate,
    )
    _check_reconciles(breakdown, order_id)
    return breakdown


def _check_reconciles(breakdown: CommissionBreakdown, order_id) -> None:
    negative = [supplier for supplier, amount in breakdown.supplier_earnings.items() if amount < ZERO]
    if breakdown.components_sum != breakdown.total or breakdown.processing_fee < ZERO or negative:
        raise InconsistentCommission(order_id, breakdown.total, breakdown.to_payload())

    if breakdown.platform_fee < ZERO:
        logger.warning(
            "Platform fee is negative; discount exceeds the platform's share",
            order_id=order_id,
            platform_fee=str(breakdown.platform_fee),
        )


def freeze(order, platform_fee_rate=None, processing_fee_rate=None) -> CommissionBreakdown | None:
    """Compute and record the settlement snapshot once.

    Returns ``None`` when the order already carries one.
    """
    if order.commission_details is not None:
        return None

    try:
        breakdown = calculate(
            order.items,
            order.total,
            platform_fee_rate=platform_fee_rate,
            processing_fee_rate=processing_fee_rate,
            order_id=str(order.id),
        )
    except InconsistentCommission as exc:
        logger.critical(
            "Commission does not reconcile; freeze aborted",
            order_id=str(order.id),
            total=str(exc.total),
            components=exc.components,
        )
        raise

    order.record_commission(breakdown)
    return breakdown
