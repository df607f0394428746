"""Home-delivery address validation."""

from protean.exceptions import ValidationError

REQUIRED_ADDRESS_FIELDS = ("street", "city", "state", "zip_code", "country")


def validate_shipping_address(address: dict | None) -> dict:
    """Return the address with trimmed values, or raise naming every blank field."""
    address = address or {}
    cleaned = {key: (value.strip() if isinstance(value, str) else value) for key, value in address.items()}
    blank = [name for name in REQUIRED_ADDRESS_FIELDS if not cleaned.get(name)]
    if blank:
        raise ValidationError({f"shipping_address.{name}": ["is required for home delivery"] for name in blank})
    return cleaned
