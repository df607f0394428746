"""Payment gateway port (abstract interface).

The order pipeline only needs four things from a gateway: open a checkout
intent for an order, withdraw an intent that was superseded, look up the
latest payment for an intent, and authenticate webhook deliveries.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime


class GatewayError(Exception):
    """The gateway could not complete a request."""


@dataclass(frozen=True)
class PaymentIntent:
    """A checkout preference the customer pays through."""

    intent_id: str
    checkout_url: str
    created_at: datetime
    expires_at: datetime | None = None


@dataclass(frozen=True)
class GatewayPayment:
    """The gateway's view of a payment made against an intent."""

    external_reference: str
    external_transaction_id: str
    status: str
    transaction_amount: float | None = None
    net_received_amount: float | None = None
    timestamp: datetime | None = None
    intent_id: str | None = None
    status_detail: str | None = None
    payment_method: str | None = None
    extra: dict = field(default_factory=dict)


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def create_payment_intent(
        self,
        order_id: str,
        order_number: str,
        amount: float,
        currency: str,
        idempotency_key: str,
        expires_at: datetime | None = None,
    ) -> PaymentIntent:
        """Open a checkout intent whose external reference is ``order_id``."""
        ...

    @abstractmethod
    def cancel_payment_intent(self, intent_id: str) -> bool:
        """Withdraw an intent so it can no longer be paid."""
        ...

    @abstractmethod
    def fetch_latest_payment(self, order_id: str, intent_id: str | None) -> GatewayPayment | None:
        """Most recent payment recorded for the order's intent, if any."""
        ...

    @abstractmethod
    def verify_webhook_signature(self, payload: str, signature: str) -> bool:
        """Verify that a webhook payload is authentically from the gateway."""
        ...
