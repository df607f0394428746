"""Who is acting on an order.

Every state machine operation receives one of these variants explicitly, so
role checks live in the authorization table instead of in request handlers.
"""

from dataclasses import dataclass
from enum import Enum

from protean.exceptions import ValidationError


class Role(Enum):
    CUSTOMER = "customer"
    SUPPLIER = "supplier"
    ADMIN = "admin"
    SYSTEM = "system"


@dataclass(frozen=True)
class Customer:
    id: str
    role = Role.CUSTOMER


@dataclass(frozen=True)
class Supplier:
    id: str
    role = Role.SUPPLIER


@dataclass(frozen=True)
class Admin:
    id: str
    role = Role.ADMIN


@dataclass(frozen=True)
class System:
    """Automated callers, e.g. a carrier confirming a delivery."""

    id: str = "system"
    role = Role.SYSTEM


Actor = Customer | Supplier | Admin | System

_BY_ROLE = {
    Role.CUSTOMER: Customer,
    Role.SUPPLIER: Supplier,
    Role.ADMIN: Admin,
    Role.SYSTEM: System,
}


def actor_from(role: str, actor_id: str | None = None) -> Actor:
    """Build an actor from the role/id pair carried by commands."""
    try:
        kind = _BY_ROLE[Role(role)]
    except ValueError:
        raise ValidationError({"actor_role": [f"Unknown role '{role}'"]}) from None

    if kind is System:
        return System(id=actor_id or "system")
    if not actor_id:
        raise ValidationError({"actor_id": [f"An id is required for role '{role}'"]})
    return kind(id=str(actor_id))


def describe(actor: Actor) -> str:
    """Compact ``role:id`` label stored in status history."""
    return f"{actor.role.value}:{actor.id}"
