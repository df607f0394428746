"""Takes paid orders out of stock.

Runs after the first approval of an order's payment is committed. The
inventory refuses a second deduction for the same order, so replayed or
repeated approvals never take stock twice.
"""

import structlog
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from marketplace.domain import marketplace
from marketplace.inventory import get_inventory
from marketplace.inventory.port import StockLine
from marketplace.order.events import PaymentReconciled
from marketplace.order.order import Order
from marketplace.order.status import OrderStatus, PaymentStatus

logger = structlog.get_logger(__name__)

_APPROVED = PaymentStatus.APPROVED.value


@marketplace.event_handler(part_of=Order)
class StockDeductionHandler:
    @handle(PaymentReconciled)
    def deduct_on_first_approval(self, event: PaymentReconciled) -> None:
        if event.payment_status != _APPROVED or event.previous_payment_status == _APPROVED:
            return

        order = current_domain.repository_for(Order).get(event.order_id)
        if order.status == OrderStatus.CANCELLED.value:
            # Paid after cancelling; the refund path owns this order now
            logger.warning("Stock left untouched for cancelled order", order_id=str(order.id))
            return

        lines = [StockLine(product_id=str(item.product_id), quantity=item.quantity) for item in order.items]
        try:
            deduction = get_inventory().deduct_for_order(str(order.id), lines)
        except Exception as e:
            logger.error("Stock deduction failed", order_id=str(order.id), error=str(e))
            return

        if not deduction.applied:
            logger.info("Stock already deducted", order_id=str(order.id))
            return
        if deduction.short_product_ids:
            logger.warning(
                "Insufficient stock for paid order",
                order_id=str(order.id),
                product_ids=deduction.short_product_ids,
            )
        logger.info("Stock deducted", order_id=str(order.id), lines=len(lines))
