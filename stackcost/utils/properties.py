"""
Accessors for the untyped resource property bag.

Template properties may hold literals, numeric strings or unresolved intrinsic
functions ({"Ref": ...}). Anything that is not a usable literal falls back to
the caller's default.
"""
from typing import Any, Mapping


def get_string_property(properties: Mapping[str, Any], key: str, default: str) -> str:
    """
    Read a non-empty string property.

    Args:
        properties: Resource property bag
        key: Property name (e.g., 'InstanceType')
        default: Value used when the property is missing, empty or not a literal

    Returns:
        Property value or default
    """
    value = properties.get(key)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def get_float_property(properties: Mapping[str, Any], key: str, default: float) -> float:
    """
    Read a positive numeric property (numbers and numeric strings).

    Args:
        properties: Resource property bag
        key: Property name (e.g., 'Size')
        default: Value used when the property is missing, non-numeric or not positive

    Returns:
        Property value or default
    """
    value = properties.get(key)
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return default
    else:
        return default

    return number if number > 0 else default


def get_bool_property(properties: Mapping[str, Any], key: str, default: bool) -> bool:
    """
    Read a boolean property (booleans and "true"/"false" strings).
    """
    value = properties.get(key)
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized == "true":
            return True
        if normalized == "false":
            return False
    return default
