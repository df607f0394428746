"""Inventory port.

Stock belongs to the catalogue side of the platform. Once an order is paid
the pipeline asks it to take the ordered quantities out of stock, and it asks
only once per order however many approvals the gateway sends.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


class InventoryError(Exception):
    """The inventory service could not be reached or refused the request."""


@dataclass(frozen=True)
class StockLine:
    product_id: str
    quantity: int


@dataclass(frozen=True)
class StockDeduction:
    applied: bool  # False when this order's stock was already taken
    short_product_ids: list[str] = field(default_factory=list)


class Inventory(ABC):
    """Abstract stock keeper."""

    @abstractmethod
    def deduct_for_order(self, order_id: str, lines: list[StockLine]) -> StockDeduction:
        """Take ``lines`` out of stock on behalf of ``order_id``.

        Repeated calls for the same order change nothing and report
        ``applied=False``. A line is skipped, and reported as short, when its
        product does not have the full quantity left.
        """
        ...
