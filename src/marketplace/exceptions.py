"""Error taxonomy of the order pipeline.

Malformed input is reported with Protean's ``ValidationError`` (a
``{field: [messages]}`` dict), like everywhere else in the codebase. The
classes below cover the failures that are not about input shape.
"""

from protean.exceptions import ValidationError


class MarketplaceError(Exception):
    """Base class for order pipeline failures."""


class InvalidTrackingFormat(ValidationError):
    """Tracking number does not match the accepted carrier format."""

    def __init__(self, tracking_number):
        self.tracking_number = tracking_number
        super().__init__(
            {
                "tracking_number": [
                    f"'{tracking_number}' is not a valid tracking number "
                    "(4-40 characters: letters, digits, '-', '_' or '.')"
                ]
            }
        )


class InvalidTransition(MarketplaceError):
    """The requested action is illegal for the order's current state or the actor.

    Carries the order's current ``(status, payment_status)`` so callers can
    reconcile their view before trying again.
    """

    def __init__(self, action, role, status, payment_status, reason):
        self.action = action
        self.role = role
        self.status = status
        self.payment_status = payment_status
        self.reason = reason
        super().__init__(f"Cannot {action} as {role}: {reason} (status={status}, payment_status={payment_status})")

    def to_dict(self) -> dict:
        return {
            "error": str(self),
            "action": self.action,
            "role": self.role,
            "status": self.status,
            "payment_status": self.payment_status,
        }


class ConflictError(MarketplaceError):
    """The order changed since it was read. Re-fetch before retrying."""

    def __init__(self, order_id, expected_version=None, actual_version=None):
        self.order_id = order_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        if expected_version is None:
            message = f"Order {order_id} was modified concurrently"
        else:
            message = f"Order {order_id} is at version {actual_version}, expected {expected_version}"
        super().__init__(message)


class GatewayEventRejected(MarketplaceError):
    """A gateway event that must be acknowledged but not applied."""

    outcome = "ignored"

    def __init__(self, order_id, external_transaction_id, reason=""):
        self.order_id = order_id
        self.external_transaction_id = external_transaction_id
        self.reason = reason
        super().__init__(f"{type(self).__name__}: {external_transaction_id} for order {order_id} {reason}".strip())


class DuplicateEvent(GatewayEventRejected):
    """The gateway event was already applied to the order."""

    outcome = "duplicate"


class OutOfOrderEvent(GatewayEventRejected):
    """The gateway event would move the payment status backwards."""

    outcome = "out_of_order"


class StaleIntentEvent(GatewayEventRejected):
    """The gateway event belongs to a payment intent that was superseded by a retry."""

    outcome = "stale_intent"


class InconsistentCommission(MarketplaceError):
    """Commission components do not reconcile to the order total. Never expected."""

    def __init__(self, order_id, total, components):
        self.order_id = order_id
        self.total = total
        self.components = components
        super().__init__(f"Commission for order {order_id} does not reconcile to {total}: {components}")
