"""Supplier directory factory.

Uses the in-memory directory by default. Other adapters are selected with the
SUPPLIER_DIRECTORY_ADAPTER environment variable.
"""

import os

from marketplace.suppliers.port import SupplierDirectory

_directory_instance: SupplierDirectory | None = None


def get_supplier_directory() -> SupplierDirectory:
    """Return the configured supplier directory (singleton)."""
    global _directory_instance
    if _directory_instance is None:
        adapter = os.environ.get("SUPPLIER_DIRECTORY_ADAPTER", "memory")
        if adapter == "memory":
            from marketplace.suppliers.memory_adapter import InMemorySupplierDirectory

            _directory_instance = InMemorySupplierDirectory()
        else:
            raise ValueError(f"Unknown supplier directory adapter: {adapter}")
    return _directory_instance


def set_supplier_directory(directory: SupplierDirectory) -> None:
    global _directory_instance
    _directory_instance = directory


def reset_supplier_directory() -> None:
    """Reset the directory singleton (useful for testing)."""
    global _directory_instance
    _directory_instance = None
