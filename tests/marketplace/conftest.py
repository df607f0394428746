import json
from datetime import UTC, datetime

import pytest
from protean.integrations.pytest import DomainFixture

# A Monday: the earliest pickup is the Thursday after
MONDAY_NOON = datetime(2026, 3, 2, 12, 0, tzinfo=UTC)

ADDRESS = {
    "street": "Av. Corrientes 1234",
    "city": "Buenos Aires",
    "state": "CABA",
    "zip_code": "C1043",
    "country": "AR",
}

PICKUP_LOCATION = {
    "location_id": "loc-palermo",
    "supplier_name": "Mercado de Palermo",
    "address": "Honduras 5000, Buenos Aires",
    "phone": "+54 11 5555-0000",
    "email": "retiros@palermo.test",
    "business_hours": "Lun-Vie 9:00-18:00",
}


def _line(supplier_id, unit_price, quantity=1, product_id=None):
    return {
        "product_id": product_id or f"prod-{supplier_id}-{int(unit_price)}",
        "product_name": f"Product from {supplier_id}",
        "supplier_id": supplier_id,
        "supplier_name": supplier_id.upper(),
        "quantity": quantity,
        "unit_price": unit_price,
    }


@pytest.fixture(scope="session")
def marketplace_bed():
    from marketplace.domain import marketplace

    bed = DomainFixture(marketplace)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(marketplace_bed):
    with marketplace_bed.domain_context():
        yield


@pytest.fixture()
def gateway():
    from marketplace.gateway import get_gateway

    return get_gateway()


@pytest.fixture()
def dispatcher():
    from marketplace.messaging import get_dispatcher

    return get_dispatcher()


@pytest.fixture()
def supplier_directory():
    from marketplace.suppliers import get_supplier_directory

    return get_supplier_directory()


@pytest.fixture()
def inventory():
    from marketplace.inventory import get_inventory

    return get_inventory()


@pytest.fixture()
def line():
    """Build one checkout line: ``line("sup-a", 1000.0, quantity=2)``."""
    return _line


@pytest.fixture()
def pickup_suppliers(supplier_directory):
    """Register sup-a and sup-b at the same pickup location."""
    from marketplace.suppliers.port import PickupLocation

    location = PickupLocation(**PICKUP_LOCATION)
    supplier_directory.register("sup-a", location)
    supplier_directory.register("sup-b", location)
    return location


@pytest.fixture()
def make_order():
    """Place an Order aggregate in memory (not persisted).

    Defaults to the two-supplier order used throughout: sup-a sells 1000,
    sup-b sells 500, home delivery, total 1500.
    """
    from marketplace.order.order import Order

    def _make(items=None, shipping_method="home_delivery", customer_id="cust-001", discount=0.0, shipping=0.0, **kw):
        items = items or [_line("sup-a", 1000.0), _line("sup-b", 500.0)]
        subtotal = sum(i["quantity"] * i["unit_price"] for i in items)
        if shipping_method == "home_delivery":
            kw.setdefault("shipping_address", dict(ADDRESS))
        else:
            kw.setdefault("pickup_location", dict(PICKUP_LOCATION))
        kw.setdefault("now", MONDAY_NOON)
        return Order.place(
            customer={"customer_id": customer_id, "name": "Ana Pérez", "email": "ana@example.com"},
            items_data=items,
            subtotal=subtotal,
            discount=discount,
            shipping=shipping,
            total=subtotal - discount + shipping,
            shipping_method=shipping_method,
            **kw,
        )

    return _make


@pytest.fixture()
def place_order():
    """Process a PlaceOrder command and return the new order id."""
    from protean import current_domain

    from marketplace.order.placement import PlaceOrder

    def _place(items=None, shipping_method="home_delivery", customer_id="cust-001", **kw):
        items = items or [_line("sup-a", 1000.0), _line("sup-b", 500.0)]
        subtotal = sum(i["quantity"] * i["unit_price"] for i in items)
        if shipping_method == "home_delivery":
            kw.setdefault("shipping_address", json.dumps(ADDRESS))
        command = PlaceOrder(
            customer_id=customer_id,
            customer_name="Ana Pérez",
            customer_email="ana@example.com",
            items=json.dumps(items),
            subtotal=subtotal,
            total=kw.pop("total", subtotal),
            shipping_method=shipping_method,
            **kw,
        )
        return current_domain.process(command, asynchronous=False)

    return _place


@pytest.fixture()
def webhook():
    """Process a ReconcilePayment command and return its outcome."""
    from protean import current_domain

    from marketplace.order.webhook import ReconcilePayment

    def _send(order_id, transaction_id, status, **kw):
        command = ReconcilePayment(
            order_id=order_id,
            external_transaction_id=transaction_id,
            gateway_status=status,
            **kw,
        )
        return current_domain.process(command, asynchronous=False)

    return _send


@pytest.fixture()
def load_order():
    from protean import current_domain

    from marketplace.order.order import Order

    def _load(order_id):
        return current_domain.repository_for(Order).get(order_id)

    return _load


@pytest.fixture(autouse=True)
def _clean_stores(_ctx):
    """Clear databases and the event store after every test."""
    yield

    from protean import current_domain

    for _, provider in current_domain.providers.items():
        provider._data_reset()
    current_domain.event_store.store._data_reset()
