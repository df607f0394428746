"""Order cancellation — command and handler."""

import structlog
from protean import handle
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.order.actor import actor_from
from marketplace.order.concurrency import load_for_update
from marketplace.order.order import Order

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Order")
class CancelOrder:
    """Cancel a whole order."""

    order_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)
    actor_id = Identifier()
    reason = String(max_length=500)
    expected_version = Integer()


@marketplace.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        order = load_for_update(command.order_id, command.expected_version)
        order.cancel(actor_from(command.actor_role, command.actor_id), reason=command.reason)
        current_domain.repository_for(Order).add(order)
        logger.info(
            "Order cancellation recorded",
            order_id=str(order.id),
            status=order.status,
            actor=command.actor_role,
            reason=command.reason,
        )
