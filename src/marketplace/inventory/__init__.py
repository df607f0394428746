"""Inventory factory.

Uses the in-memory inventory by default. Other adapters are selected with the
INVENTORY_ADAPTER environment variable.
"""

import os

from marketplace.inventory.port import Inventory

_inventory_instance: Inventory | None = None


def get_inventory() -> Inventory:
    """Return the configured inventory (singleton)."""
    global _inventory_instance
    if _inventory_instance is None:
        adapter = os.environ.get("INVENTORY_ADAPTER", "memory")
        if adapter == "memory":
            from marketplace.inventory.memory_adapter import InMemoryInventory

            _inventory_instance = InMemoryInventory()
        else:
            raise ValueError(f"Unknown inventory adapter: {adapter}")
    return _inventory_instance


def set_inventory(inventory: Inventory) -> None:
    global _inventory_instance
    _inventory_instance = inventory


def reset_inventory() -> None:
    """Reset the inventory singleton (useful for testing)."""
    global _inventory_instance
    _inventory_instance = None
