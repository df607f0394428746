"""Business settings for the Marketplace domain.

Framework configuration (databases, event store, processing mode) lives in
``domain.toml``. The values here are commercial settings that operators tune
per deployment, read from the environment with sensible defaults.
"""

import os
from decimal import Decimal

DEFAULT_PLATFORM_FEE_RATE = "0.10"
DEFAULT_PROCESSING_FEE_RATE = "0.05"
DEFAULT_CURRENCY = "ARS"
DEFAULT_PICKUP_LEAD_WEEKDAYS = 3
DEFAULT_BUSINESS_HOURS = "Lun-Vie 9:00-18:00, Sáb 9:00-13:00"

# Retry intents expire after this many minutes at the gateway
PAYMENT_INTENT_TTL_MINUTES = 30


def platform_fee_rate() -> Decimal:
    return Decimal(os.environ.get("MARKETPLACE_PLATFORM_FEE_RATE", DEFAULT_PLATFORM_FEE_RATE))


def processing_fee_rate() -> Decimal:
    return Decimal(os.environ.get("MARKETPLACE_PROCESSING_FEE_RATE", DEFAULT_PROCESSING_FEE_RATE))


def currency() -> str:
    return os.environ.get("MARKETPLACE_CURRENCY", DEFAULT_CURRENCY)


def pickup_lead_weekdays() -> int:
    return int(os.environ.get("MARKETPLACE_PICKUP_LEAD_WEEKDAYS", DEFAULT_PICKUP_LEAD_WEEKDAYS))


def is_production() -> bool:
    return os.environ.get("PROTEAN_ENV") == "production"
