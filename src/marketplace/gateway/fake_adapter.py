"""Configurable fake payment gateway for development and testing.

Simulates a hosted-checkout gateway without any external calls. Tests and the
``/webhooks/gateway/configure`` endpoint can make intent creation fail, and
``record_payment`` stages the payment that ``fetch_latest_payment`` reports.
"""

from datetime import UTC, datetime
from uuid import uuid4

from marketplace.gateway.port import GatewayError, GatewayPayment, PaymentGateway, PaymentIntent

TEST_SIGNATURE = "test-signature"


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self, webhook_secret: str = TEST_SIGNATURE) -> None:
        self.webhook_secret = webhook_secret
        self.should_succeed: bool = True
        self.failure_reason: str = "Gateway unavailable"
        self.intents: dict[str, PaymentIntent] = {}
        self.intents_by_key: dict[str, PaymentIntent] = {}
        self.cancelled_intents: list[str] = []
        self.payments: dict[str, GatewayPayment] = {}
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool, failure_reason: str = "Gateway unavailable") -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def create_payment_intent(
        self,
        order_id: str,
        order_number: str,
        amount: float,
        currency: str,
        idempotency_key: str,
        expires_at: datetime | None = None,
    ) -> PaymentIntent:
        self.calls.append(
            {
                "method": "create_payment_intent",
                "order_id": order_id,
                "order_number": order_number,
                "amount": amount,
                "currency": currency,
                "idempotency_key": idempotency_key,
            }
        )
        if not self.should_succeed:
            raise GatewayError(self.failure_reason)

        # Same key, same intent, like a real gateway's idempotent create
        if idempotency_key in self.intents_by_key:
            return self.intents_by_key[idempotency_key]

        intent_id = f"fake_pref_{uuid4().hex[:12]}"
        intent = PaymentIntent(
            intent_id=intent_id,
            checkout_url=f"https://checkout.fake-gateway.test/{intent_id}",
            created_at=datetime.now(UTC),
            expires_at=expires_at,
        )
        self.intents[intent_id] = intent
        self.intents_by_key[idempotency_key] = intent
        return intent

    def cancel_payment_intent(self, intent_id: str) -> bool:
        self.calls.append({"method": "cancel_payment_intent", "intent_id": intent_id})
        if intent_id not in self.intents:
            return False
        self.cancelled_intents.append(intent_id)
        return True

    def record_payment(self, payment: GatewayPayment) -> None:
        """Stage what ``fetch_latest_payment`` returns for the payment's order."""
        self.payments[payment.external_reference] = payment

    def fetch_latest_payment(self, order_id: str, intent_id: str | None) -> GatewayPayment | None:
        self.calls.append({"method": "fetch_latest_payment", "order_id": order_id, "intent_id": intent_id})
        payment = self.payments.get(order_id)
        if payment is None or (intent_id and payment.intent_id and payment.intent_id != intent_id):
            return None
        return payment

    def verify_webhook_signature(self, payload: str, signature: str) -> bool:  # noqa: ARG002
        return signature == self.webhook_secret
