"""Payment gateway factory.

Provides get_gateway() / set_gateway() to swap implementations:
- FakeGateway for development and testing (default)
- MercadoPagoGateway for production, with PAYMENT_GATEWAY_ADAPTER=mercadopago
"""

import os

from marketplace.gateway.port import PaymentGateway

_current_gateway: PaymentGateway | None = None


def _build_gateway() -> PaymentGateway:
    adapter = os.environ.get("PAYMENT_GATEWAY_ADAPTER", "fake")
    if adapter == "fake":
        from marketplace.gateway.fake_adapter import FakeGateway

        return FakeGateway()
    if adapter == "mercadopago":
        from marketplace.gateway.mercadopago_adapter import MercadoPagoGateway

        return MercadoPagoGateway(
            access_token=os.environ.get("MERCADOPAGO_ACCESS_TOKEN", ""),
            webhook_secret=os.environ.get("GATEWAY_WEBHOOK_SECRET", ""),
        )
    raise ValueError(f"Unknown payment gateway adapter: {adapter}")


def get_gateway() -> PaymentGateway:
    """Return the current payment gateway. Defaults to FakeGateway."""
    global _current_gateway
    if _current_gateway is None:
        _current_gateway = _build_gateway()
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    """Override the active payment gateway (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Reset to default gateway."""
    global _current_gateway
    _current_gateway = None
