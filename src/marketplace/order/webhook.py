"""Gateway notifications — webhook and polling commands.

Both paths build a ``GatewayNotice`` and hand it to the order. Duplicates,
out-of-order deliveries and notices for superseded intents are acknowledged
without changing the order; the handler returns an outcome string that the
webhook endpoint echoes back to the gateway.
"""

import json

import structlog
from protean import handle
from protean.fields import DateTime, Float, Identifier, String, Text
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.exceptions import DuplicateEvent, GatewayEventRejected
from marketplace.gateway import get_gateway
from marketplace.order.order import Order
from marketplace.order.reconciliation import GatewayNotice

logger = structlog.get_logger(__name__)

APPLIED = "applied"
NO_PAYMENT = "no_payment"


@marketplace.command(part_of="Order")
class ReconcilePayment:
    order_id = Identifier(required=True)
    external_transaction_id = String(required=True, max_length=255)
    gateway_status = Text(required=True)  # mapped in full; unknown values fail closed
    transaction_amount = Float()
    net_received_amount = Float()
    event_timestamp = DateTime()
    intent_id = String(max_length=255)
    status_detail = String(max_length=255)
    payment_method = String(max_length=50)
    details = Text()  # JSON: remaining gateway fields


@marketplace.command(part_of="Order")
class SyncPaymentStatus:
    """Ask the gateway for the latest payment instead of waiting for a webhook."""

    order_id = Identifier(required=True)


def _apply_notice(order, notice: GatewayNotice) -> str:
    try:
        status = order.reconcile_payment(notice)
    except DuplicateEvent:
        logger.info(
            "Duplicate gateway event acknowledged",
            order_id=str(order.id),
            external_transaction_id=notice.external_transaction_id,
        )
        return DuplicateEvent.outcome
    except GatewayEventRejected as exc:
        logger.warning(
            "Gateway event not applied",
            order_id=str(order.id),
            external_transaction_id=notice.external_transaction_id,
            outcome=exc.outcome,
            reason=exc.reason,
        )
        return exc.outcome

    current_domain.repository_for(Order).add(order)
    logger.info(
        "Payment reconciled",
        order_id=str(order.id),
        external_transaction_id=notice.external_transaction_id,
        gateway_status=notice.gateway_status,
        payment_status=status.value,
    )
    return APPLIED


@marketplace.command_handler(part_of=Order)
class PaymentNotificationHandler:
    @handle(ReconcilePayment)
    def reconcile_payment(self, command):
        order = current_domain.repository_for(Order).get(command.order_id)
        notice = GatewayNotice(
            external_reference=str(command.order_id),
            external_transaction_id=command.external_transaction_id,
            gateway_status=command.gateway_status,
            transaction_amount=command.transaction_amount,
            net_received_amount=command.net_received_amount,
            timestamp=command.event_timestamp,
            intent_id=command.intent_id,
            status_detail=command.status_detail,
            payment_method=command.payment_method,
            extra=json.loads(command.details) if command.details else {},
        )
        return _apply_notice(order, notice)

    @handle(SyncPaymentStatus)
    def sync_payment_status(self, command):
        order = current_domain.repository_for(Order).get(command.order_id)
        payment = get_gateway().fetch_latest_payment(str(order.id), order.payment_intent_id)
        if payment is None:
            logger.info("No gateway payment to sync", order_id=str(order.id), intent_id=order.payment_intent_id)
            return NO_PAYMENT

        notice = GatewayNotice(
            external_reference=payment.external_reference,
            external_transaction_id=payment.external_transaction_id,
            gateway_status=payment.status,
            transaction_amount=payment.transaction_amount,
            net_received_amount=payment.net_received_amount,
            timestamp=payment.timestamp,
            intent_id=payment.intent_id,
            status_detail=payment.status_detail,
            payment_method=payment.payment_method,
            extra=dict(payment.extra),
        )
        return _apply_notice(order, notice)
