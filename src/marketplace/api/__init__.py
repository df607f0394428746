"""Marketplace API package."""

from marketplace.api.errors import register_marketplace_exception_handlers
from marketplace.api.routes import (
    admin_router,
    fulfillment_router,
    order_router,
    supplier_router,
    webhook_router,
)

__all__ = [
    "order_router",
    "supplier_router",
    "admin_router",
    "webhook_router",
    "fulfillment_router",
    "register_marketplace_exception_handlers",
]
