"""MercadoPago gateway adapter (production stub).

Placeholder for the real MercadoPago SDK integration. In production this would
create checkout preferences with ``external_reference`` set to the order id,
expire superseded preferences, and query payments by preference.
Webhook deliveries are authenticated with an HMAC of the raw payload.
"""

import hashlib
import hmac
from datetime import datetime

from marketplace.gateway.port import GatewayPayment, PaymentGateway, PaymentIntent


class MercadoPagoGateway(PaymentGateway):
    """Production MercadoPago adapter. Only signature checks are implemented."""

    def __init__(self, access_token: str, webhook_secret: str) -> None:
        self.access_token = access_token
        self.webhook_secret = webhook_secret

    def create_payment_intent(
        self,
        order_id: str,
        order_number: str,
        amount: float,
        currency: str,
        idempotency_key: str,
        expires_at: datetime | None = None,
    ) -> PaymentIntent:
        raise NotImplementedError(
            "MercadoPagoGateway.create_payment_intent() is not yet implemented. Create a checkout preference here."
        )

    def cancel_payment_intent(self, intent_id: str) -> bool:
        raise NotImplementedError(
            "MercadoPagoGateway.cancel_payment_intent() is not yet implemented. Expire the preference here."
        )

    def fetch_latest_payment(self, order_id: str, intent_id: str | None) -> GatewayPayment | None:
        raise NotImplementedError(
            "MercadoPagoGateway.fetch_latest_payment() is not yet implemented. Search payments by external_reference."
        )

    def verify_webhook_signature(self, payload: str, signature: str) -> bool:
        if not self.webhook_secret or not signature:
            return False
        expected = hmac.new(self.webhook_secret.encode(), payload.encode(), hashlib.sha256).hexdigest()
        return hmac.compare_digest(expected, signature)
