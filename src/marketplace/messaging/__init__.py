"""Notification dispatcher registry.

Uses the fake dispatcher by default; a real messaging client can be wired in
with set_dispatcher() at application start-up.
"""

from marketplace.messaging.port import NotificationDispatcher

_dispatcher_instance: NotificationDispatcher | None = None


def get_dispatcher() -> NotificationDispatcher:
    """Return the configured dispatcher (singleton)."""
    global _dispatcher_instance
    if _dispatcher_instance is None:
        from marketplace.messaging.fake_adapter import FakeNotificationDispatcher

        _dispatcher_instance = FakeNotificationDispatcher()
    return _dispatcher_instance


def set_dispatcher(dispatcher: NotificationDispatcher) -> None:
    global _dispatcher_instance
    _dispatcher_instance = dispatcher


def reset_dispatcher() -> None:
    """Reset the dispatcher singleton (useful for testing)."""
    global _dispatcher_instance
    _dispatcher_instance = None
