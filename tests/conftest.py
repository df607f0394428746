import os
from pathlib import Path

import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Pytest hook to run before collecting tests.

    Select the config overlay before any domain is imported, so the
    marketplace domain picks it up when it initializes.
    """
    os.environ["PROTEAN_ENV"] = session.config.option.env


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = Path(item.fspath)

        if "/domain/" in str(test_path):
            item.add_marker(pytest.mark.domain)
        elif "/application/" in str(test_path):
            item.add_marker(pytest.mark.application)
        elif "/integration/" in str(test_path):
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


@pytest.fixture(autouse=True)
def reset_adapters():
    """Give every test fresh fakes for every outbound adapter."""
    from marketplace.gateway import reset_gateway
    from marketplace.inventory import reset_inventory
    from marketplace.messaging import reset_dispatcher
    from marketplace.suppliers import reset_supplier_directory

    reset_gateway()
    reset_dispatcher()
    reset_supplier_directory()
    reset_inventory()
    yield
    reset_gateway()
    reset_dispatcher()
    reset_supplier_directory()
    reset_inventory()
