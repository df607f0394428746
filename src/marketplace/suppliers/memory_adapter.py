"""In-memory supplier directory for development and testing."""

from marketplace.suppliers.port import PickupLocation, SupplierDirectory


class InMemorySupplierDirectory(SupplierDirectory):
    def __init__(self) -> None:
        self.locations: dict[str, PickupLocation] = {}

    def register(self, supplier_id: str, location: PickupLocation) -> None:
        self.locations[str(supplier_id)] = location

    def pickup_location_for(self, supplier_id: str) -> PickupLocation | None:
        return self.locations.get(str(supplier_id))
