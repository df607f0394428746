"""Optimistic concurrency for order writes.

Two guards stack up. Commands may carry the ``version`` the caller last saw;
``load_for_update`` refuses to work on an order that moved on since. Then the
event store appends the new events against the version the handler loaded,
so a writer that raced us in between fails with Protean's
``ExpectedVersionError``, which ``dispatch`` reports as ``ConflictError``.
Neither guard retries.
"""

import structlog
from protean.exceptions import ExpectedVersionError
from protean.utils.globals import current_domain

from marketplace.exceptions import ConflictError
from marketplace.order.order import Order

logger = structlog.get_logger(__name__)


def load_for_update(order_id, expected_version=None):
    """Load an order, refusing if it is not at ``expected_version``."""
    order = current_domain.repository_for(Order).get(order_id)
    if expected_version is not None and order.version != expected_version:
        logger.info(
            "Stale write refused",
            order_id=str(order_id),
            expected_version=expected_version,
            actual_version=order.version,
        )
        raise ConflictError(str(order_id), expected_version, order.version)
    return order


def dispatch(command):
    """Process ``command`` synchronously, surfacing lost races as ``ConflictError``."""
    try:
        return current_domain.process(command, asynchronous=False)
    except ExpectedVersionError as exc:
        order_id = getattr(command, "order_id", None)
        logger.warning("Concurrent write lost the race", order_id=str(order_id), error=str(exc))
        raise ConflictError(str(order_id)) from exc
