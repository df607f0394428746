"""Withdraws superseded gateway intents after a payment retry is committed."""

import json

import structlog
from protean.utils.mixins import handle

from marketplace.domain import marketplace
from marketplace.gateway import get_gateway
from marketplace.order.events import PaymentIntentCreated
from marketplace.order.order import Order

logger = structlog.get_logger(__name__)


@marketplace.event_handler(part_of=Order)
class SupersededIntentHandler:
    @handle(PaymentIntentCreated)
    def withdraw_superseded_intents(self, event: PaymentIntentCreated) -> None:
        if not event.is_retry:
            return

        gateway = get_gateway()
        for intent_id in json.loads(event.superseded_intent_ids or "[]"):
            try:
                withdrawn = gateway.cancel_payment_intent(intent_id)
            except Exception as e:
                # Notices for this intent are still refused by the order
                logger.error(
                    "Failed to withdraw superseded intent",
                    order_id=str(event.order_id),
                    intent_id=intent_id,
                    error=str(e),
                )
                continue
            logger.info(
                "Superseded intent withdrawn",
                order_id=str(event.order_id),
                intent_id=intent_id,
                withdrawn=withdrawn,
            )
