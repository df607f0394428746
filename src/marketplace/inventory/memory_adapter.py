"""In-memory inventory for development and testing."""

from marketplace.inventory.port import Inventory, InventoryError, StockDeduction, StockLine


class InMemoryInventory(Inventory):
    def __init__(self) -> None:
        self.stock: dict[str, int] = {}
        self.deductions: dict[str, list[StockLine]] = {}
        self.should_fail: bool = False

    def restock(self, product_id: str, quantity: int) -> None:
        self.stock[str(product_id)] = self.stock.get(str(product_id), 0) + quantity

    def deduct_for_order(self, order_id: str, lines: list[StockLine]) -> StockDeduction:
        if self.should_fail:
            raise InventoryError("Inventory service unavailable")
        if str(order_id) in self.deductions:
            return StockDeduction(applied=False)

        taken, short = [], []
        for line in lines:
            available = self.stock.get(line.product_id, 0)
            if available < line.quantity:
                short.append(line.product_id)
                continue
            self.stock[line.product_id] = available - line.quantity
            taken.append(line)

        self.deductions[str(order_id)] = taken
        return StockDeduction(applied=True, short_product_ids=short)
