"""Payment retry — command and handler.

A customer whose payment was rejected (or never completed) asks for a fresh
checkout link. The new gateway intent supersedes every earlier one; replaying
the same idempotency key returns the intent already opened for it.
"""

from uuid import uuid4

import structlog
from protean import handle
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.gateway import get_gateway
from marketplace.order.actor import Customer
from marketplace.order.concurrency import load_for_update
from marketplace.order.order import Order, intent_expiry
from marketplace.order.state_machine import Action, authorize

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Order")
class RetryPayment:
    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    idempotency_key = String(max_length=255)
    expected_version = Integer()


@marketplace.command_handler(part_of=Order)
class RetryPaymentHandler:
    @handle(RetryPayment)
    def retry_payment(self, command):
        order = load_for_update(command.order_id, command.expected_version)

        actor = Customer(id=str(command.customer_id))
        # Refuse before replaying or opening anything at the gateway
        authorize(order, Action.RETRY_PAYMENT, actor)

        if command.idempotency_key and command.idempotency_key == order.payment_intent_key:
            logger.info("Payment retry replayed", order_id=str(order.id), intent_id=order.payment_intent_id)
            return order.payment_intent_id

        idempotency_key = command.idempotency_key or f"{order.id}:retry:{uuid4().hex[:8]}"
        intent = get_gateway().create_payment_intent(
            order_id=str(order.id),
            order_number=order.order_number,
            amount=order.total,
            currency=order.currency,
            idempotency_key=idempotency_key,
            expires_at=intent_expiry(),
        )
        order.retry_payment(actor, intent, idempotency_key)

        current_domain.repository_for(Order).add(order)
        logger.info(
            "Payment retry opened",
            order_id=str(order.id),
            intent_id=intent.intent_id,
            superseded=order.superseded_intents,
        )
        return intent.intent_id
