"""Notification dispatcher port.

The order pipeline asks for a message to be created whenever something a
customer or supplier should hear about happens. Delivering it (chat threads,
e-mail, push) belongs to the messaging service behind this port.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum


class Topic(Enum):
    ORDER_PLACED = "order_placed"
    ORDER_CONFIRMED = "order_confirmed"
    ORDER_SHIPPED = "order_shipped"
    ORDER_DELIVERED = "order_delivered"
    ORDER_CANCELLED = "order_cancelled"
    TRACKING_UPDATED = "tracking_updated"
    PAYMENT_APPROVED = "payment_approved"
    PAYMENT_FAILED = "payment_failed"
    ADMIN_MESSAGE = "admin_message"


@dataclass(frozen=True)
class MessageRequest:
    recipient_id: str
    recipient_role: str  # customer, supplier
    order_id: str
    topic: Topic
    body: str


@dataclass(frozen=True)
class MessageReceipt:
    accepted: bool
    message_id: str | None = None
    error: str | None = None


class NotificationDispatcher(ABC):
    """Abstract notification dispatcher interface."""

    @abstractmethod
    def request_message(self, request: MessageRequest) -> MessageReceipt:
        """Ask the messaging service to deliver ``request``."""
        ...
