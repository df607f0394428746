"""Canonical status vocabularies of an order.

Wire values equal the stored values. Display aliases for customers live in
the read models, never here.
"""

from enum import Enum


class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(Enum):
    PENDING = "pending"
    IN_PROCESS = "in_process"
    APPROVED = "approved"
    REJECTED = "rejected"
    REFUNDED = "refunded"
    FAILED = "failed"


class ShippingMethod(Enum):
    HOME_DELIVERY = "home_delivery"
    PICKUP = "pickup"


class FulfillmentStatus(Enum):
    """Per-item stage, advanced by the supplier that owns the item."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    CANCELLED = "cancelled"
