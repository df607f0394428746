"""Pickup scheduling and pickup-location resolution."""

from datetime import date, datetime, timedelta

from protean.exceptions import ValidationError

from marketplace import config
from marketplace.suppliers import get_supplier_directory
from marketplace.suppliers.port import PickupLocation


def _is_weekday(day: date) -> bool:
    return day.weekday() < 5


def compute_min_pickup_date(now: datetime | date, lead_weekdays: int | None = None) -> date:
    """Earliest pickup date: step forward from ``now`` until ``lead_weekdays`` weekdays have passed.

    Saturdays and Sundays are skipped, so Friday, Saturday and Sunday all
    lead to the following Wednesday with the default lead of three.
    """
    if lead_weekdays is None:
        lead_weekdays = config.pickup_lead_weekdays()

    day = now.date() if isinstance(now, datetime) else now
    counted = 0
    while counted < lead_weekdays:
        day += timedelta(days=1)
        if _is_weekday(day):
            counted += 1
    return day


def resolve_pickup_date(requested: date | None, now: datetime) -> date:
    """Validate a requested pickup date, defaulting to the earliest legal one."""
    earliest = compute_min_pickup_date(now)
    if requested is None:
        return earliest
    if isinstance(requested, datetime):
        requested = requested.date()
    if requested < earliest:
        raise ValidationError(
            {"pickup_date": [f"Pickup date {requested.isoformat()} is before the earliest date {earliest.isoformat()}"]}
        )
    if not _is_weekday(requested):
        raise ValidationError({"pickup_date": [f"Pickup is not available on weekends ({requested.isoformat()})"]})
    return requested


def resolve_pickup_location(supplier_ids) -> PickupLocation:
    """The single location every supplier in the order hands items over at.

    Orders whose suppliers pick up at different places cannot be collected
    in one visit and are refused.
    """
    directory = get_supplier_directory()
    locations: dict[str, PickupLocation] = {}
    missing = []
    for supplier_id in dict.fromkeys(str(s) for s in supplier_ids):
        location = directory.pickup_location_for(supplier_id)
        if location is None:
            missing.append(supplier_id)
        else:
            locations[location.location_id] = location

    if missing:
        raise ValidationError({"shipping_method": [f"Pickup is not offered by supplier(s): {', '.join(missing)}"]})
    if len(locations) != 1:
        raise ValidationError(
            {"shipping_method": ["Pickup is only available when every item is collected from a single location"]}
        )
    return next(iter(locations.values()))
