"""Supplier directory port.

Suppliers are owned by the catalogue side of the platform; orders only hold
weak references to them. The directory is how the order pipeline looks up
what it needs to show a customer where to collect a pickup order.
"""

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass

from marketplace.config import DEFAULT_BUSINESS_HOURS


@dataclass(frozen=True)
class PickupLocation:
    """Read-only display data for a place where orders are collected."""

    location_id: str
    supplier_name: str
    address: str
    phone: str = ""
    email: str = ""
    business_hours: str = DEFAULT_BUSINESS_HOURS

    def to_dict(self) -> dict:
        return asdict(self)


class SupplierDirectory(ABC):
    """Abstract supplier lookup."""

    @abstractmethod
    def pickup_location_for(self, supplier_id: str) -> PickupLocation | None:
        """Where the supplier's items are collected, or None if it does not offer pickup."""
        ...
