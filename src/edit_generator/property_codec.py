"""Typed property values and their comma-joined wire encoding."""
from __future__ import annotations

import math
from enum import Enum
from typing import Any, Union

from .errors import InvalidPropertyValue

DecodedValue = Union[tuple[float, ...], float, bool, str]


class PropertyType(str, Enum):
    VECTOR3 = "vector3"
    TRANSFORM2D = "transform2d"
    COLOR3 = "color3"
    FRAME = "frame"
    MATERIAL = "material"
    NUMBER = "number"
    BOOLEAN = "boolean"
    STRING = "string"


# Editor-native type names the model tends to emit.
TYPE_ALIASES: dict[str, PropertyType] = {
    "vector3": PropertyType.VECTOR3,
    "udim2": PropertyType.TRANSFORM2D,
    "transform2d": PropertyType.TRANSFORM2D,
    "color3": PropertyType.COLOR3,
    "cframe": PropertyType.FRAME,
    "frame": PropertyType.FRAME,
    "material": PropertyType.MATERIAL,
    "brickcolor": PropertyType.MATERIAL,
    "enum": PropertyType.MATERIAL,
    "number": PropertyType.NUMBER,
    "float": PropertyType.NUMBER,
    "int": PropertyType.NUMBER,
    "boolean": PropertyType.BOOLEAN,
    "bool": PropertyType.BOOLEAN,
    "string": PropertyType.STRING,
}

# (min components, max components or None for unbounded)
_COMPONENT_COUNTS: dict[PropertyType, tuple[int, int | None]] = {
    PropertyType.VECTOR3: (3, 3),
    PropertyType.TRANSFORM2D: (4, 4),
    PropertyType.COLOR3: (3, 3),
    PropertyType.FRAME: (3, None),
}


def resolve_type(tag: Any) -> PropertyType | None:
    """Map a wire type tag (case-insensitive, aliases allowed) to a PropertyType."""
    if isinstance(tag, PropertyType):
        return tag
    if not isinstance(tag, str):
        return None
    return TYPE_ALIASES.get(tag.strip().lower())


def format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def _to_finite_float(raw: Any, ptype: PropertyType) -> float:
    if isinstance(raw, bool):
        raise InvalidPropertyValue(f"{ptype.value} component must be numeric, got boolean")
    try:
        number = float(str(raw).strip()) if isinstance(raw, str) else float(raw)
    except (TypeError, ValueError):
        raise InvalidPropertyValue(f"{ptype.value} component {raw!r} is not a number") from None
    if not math.isfinite(number):
        raise InvalidPropertyValue(f"{ptype.value} component {raw!r} is not finite")
    return number


def _split_components(value: Any, ptype: PropertyType) -> list[Any]:
    if isinstance(value, str):
        return value.split(",")
    if isinstance(value, (list, tuple)):
        return list(value)
    raise InvalidPropertyValue(f"{ptype.value} value must be a comma-separated string")


def _decode_components(value: Any, ptype: PropertyType) -> tuple[float, ...]:
    parts = _split_components(value, ptype)
    low, high = _COMPONENT_COUNTS[ptype]
    if len(parts) < low or (high is not None and len(parts) > high):
        expected = str(low) if low == high else f"at least {low}"
        raise InvalidPropertyValue(
            f"{ptype.value} expects {expected} components, got {len(parts)}"
        )
    numbers = tuple(_to_finite_float(part, ptype) for part in parts)
    if ptype is PropertyType.COLOR3 and any(n < 0.0 or n > 1.0 for n in numbers):
        raise InvalidPropertyValue("color3 components must be within [0, 1]")
    return numbers


def decode(ptype: PropertyType | str, value: Any) -> DecodedValue:
    """Decode a wire value into its typed Python form.

    Raises InvalidPropertyValue when the component count or a numeric range is
    violated. Open string types (string, material) pass through unchanged.
    """
    resolved = resolve_type(ptype) or PropertyType.STRING

    if resolved in _COMPONENT_COUNTS:
        return _decode_components(value, resolved)

    if resolved is PropertyType.NUMBER:
        return _to_finite_float(value, resolved)

    if resolved is PropertyType.BOOLEAN:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ("true", "false"):
            return value.strip().lower() == "true"
        raise InvalidPropertyValue(f"boolean value must be 'true' or 'false', got {value!r}")

    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return format_number(value)
    raise InvalidPropertyValue(f"{resolved.value} value must be a string, got {type(value).__name__}")


def encode(ptype: PropertyType | str, value: Any) -> str:
    """Encode a typed value to its canonical wire string."""
    resolved = resolve_type(ptype) or PropertyType.STRING

    if resolved in _COMPONENT_COUNTS:
        components = _decode_components(value, resolved)
        return ",".join(format_number(c) for c in components)
    if resolved is PropertyType.NUMBER:
        return format_number(_to_finite_float(value, resolved))
    if resolved is PropertyType.BOOLEAN:
        return "true" if decode(resolved, value) else "false"
    return str(decode(resolved, value))
