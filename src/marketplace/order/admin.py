"""Admin operations on orders.

Admins move orders through the same state machine as everyone else; the
helper below turns an admin "set status to X" request into the command for
the matching action. ``SendOrderMessage`` lets an admin write to the people
on an order without touching its state.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.messaging import get_dispatcher
from marketplace.messaging.port import MessageRequest, Topic
from marketplace.order.cancellation import CancelOrder
from marketplace.order.fulfillment import ConfirmOrder, MarkDelivered, MarkShipped, StartProcessing
from marketplace.order.order import Order
from marketplace.order.status import OrderStatus

logger = structlog.get_logger(__name__)

RECIPIENTS = ("customer", "suppliers", "all")


def status_command(
    order_id,
    target_status,
    admin_id,
    note=None,
    tracking_number=None,
    carrier=None,
    expected_version=None,
):
    """Build the command that moves ``order_id`` to ``target_status`` as an admin."""
    try:
        target = OrderStatus(target_status)
    except ValueError:
        raise ValidationError({"status": [f"Unknown status '{target_status}'"]}) from None

    common = {
        "order_id": order_id,
        "actor_role": "admin",
        "actor_id": admin_id,
        "expected_version": expected_version,
    }
    if target is OrderStatus.CONFIRMED:
        return ConfirmOrder(note=note, **common)
    if target is OrderStatus.PROCESSING:
        return StartProcessing(note=note, **common)
    if target is OrderStatus.SHIPPED:
        return MarkShipped(tracking_number=tracking_number, carrier=carrier, note=note, **common)
    if target is OrderStatus.DELIVERED:
        return MarkDelivered(note=note, **common)
    if target is OrderStatus.CANCELLED:
        return CancelOrder(reason=note, **common)
    raise ValidationError({"status": [f"Orders cannot be moved back to '{target.value}'"]})


@marketplace.command(part_of="Order")
class SendOrderMessage:
    order_id = Identifier(required=True)
    admin_id = Identifier(required=True)
    recipient = String(required=True, choices=RECIPIENTS)
    message = String(required=True, max_length=2000)


@marketplace.command_handler(part_of=Order)
class AdminMessageHandler:
    @handle(SendOrderMessage)
    def send_order_message(self, command):
        order = current_domain.repository_for(Order).get(command.order_id)

        recipients = []
        if command.recipient in ("customer", "all"):
            recipients.append((str(order.customer.customer_id), "customer"))
        if command.recipient in ("suppliers", "all"):
            recipients.extend((supplier_id, "supplier") for supplier_id in order.supplier_ids())

        dispatcher = get_dispatcher()
        accepted = 0
        for recipient_id, role in recipients:
            receipt = dispatcher.request_message(
                MessageRequest(
                    recipient_id=recipient_id,
                    recipient_role=role,
                    order_id=str(order.id),
                    topic=Topic.ADMIN_MESSAGE,
                    body=f"[{order.order_number}] {command.message}",
                )
            )
            if receipt.accepted:
                accepted += 1
            else:
                logger.warning(
                    "Admin message not accepted",
                    order_id=str(order.id),
                    recipient_id=recipient_id,
                    error=receipt.error,
                )

        logger.info(
            "Admin message sent",
            order_id=str(order.id),
            admin_id=str(command.admin_id),
            recipients=len(recipients),
            accepted=accepted,
        )
        return accepted
