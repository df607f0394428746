"""Carrier tracking number validation."""

import re

from marketplace.exceptions import InvalidTrackingFormat

TRACKING_NUMBER_PATTERN = re.compile(r"[A-Za-z0-9\-_.]{4,40}")


def validate_tracking_number(tracking_number: str | None) -> str:
    """Return the trimmed tracking number, or raise ``InvalidTrackingFormat``."""
    value = (tracking_number or "").strip()
    if not TRACKING_NUMBER_PATTERN.fullmatch(value):
        raise InvalidTrackingFormat(tracking_number)
    return value
