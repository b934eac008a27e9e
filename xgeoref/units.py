"""Units module for interpreting the ``units`` attribute of coordinates."""

from __future__ import annotations

import math
import re

import pint

# Unit strings (lowercase) that udunits understands as plain degrees, with an
# optional direction suffix.
UD_UNITS_LAT = [
    "degrees_north",
    "degree_north",
    "degree_n",
    "degrees_n",
    "degreen",
    "degreesn",
    "degrees north",
    "degree north",
    "degree n",
    "degrees n",
]
UD_UNITS_LON = [
    "degrees_east",
    "degree_east",
    "degree_e",
    "degrees_e",
    "degreee",
    "degreese",
    "degrees east",
    "degree east",
    "degree e",
    "degrees e",
]

#: "<unit> since <epoch>", the unit of temporal axes.
TIME_UNIT_PATTERN = re.compile(r"(.+)\Wsince\W(.+)", re.IGNORECASE)

ureg = pint.UnitRegistry()

DEGREES = ureg.Unit("degree")
RADIANS = ureg.Unit("radian")

# Directions of the CF "positive" attribute and of unit suffixes. Single
# letters are recognized only for east and north, the only ones used by
# udunits ("degreesE", "degrees_N").
_UDUNITS_SUFFIX = re.compile(r"degrees?[en]")

_DIRECTIONS = {
    "e": "east",
    "n": "north",
    "east": "east",
    "west": "west",
    "north": "north",
    "south": "south",
    "up": "up",
    "down": "down",
}


def parse_unit(units: str | None) -> pint.Unit | None:
    """Parses a unit string, returning ``None`` if it is absent or invalid.

    Latitude and longitude units are sanitised to ``"degrees"`` before parsing.
    Temporal units of the "<unit> since <epoch>" form are not parsed, use
    :func:`split_time_unit` for them.
    """
    if units is None or not isinstance(units, str) or not units.strip():
        return None

    text = units.strip()
    if text.lower() in UD_UNITS_LAT or text.lower() in UD_UNITS_LON:
        text = "degrees"
    elif TIME_UNIT_PATTERN.fullmatch(text):
        return None

    try:
        return ureg.Unit(text)
    except (pint.errors.PintError, ValueError, TypeError, AttributeError):
        return None


def convert(value: float, source: pint.Unit | str, target: pint.Unit | str) -> float:
    """Converts a value between two compatible units."""
    return float(ureg.Quantity(value, source).to(target).magnitude)


def direction_of(units: str | None) -> str | None:
    """Returns the direction encoded as a suffix of an angular unit.

    The suffix is whatever follows the last ``_`` or space character, for
    example ``"degrees_east"`` gives ``"east"`` and ``"degrees N"`` gives
    ``"north"``. The udunits forms without separator (``"degreesE"``) are
    also recognized.

    Parameters
    ----------
    units : str | None
        The unit string.

    Returns
    -------
    str | None
        One of "east", "west", "north", "south", "up" or "down", or ``None``.
    """
    if not isinstance(units, str):
        return None

    text = units.strip().lower()
    split = max(text.rfind("_"), text.rfind(" "))
    if split >= 0:
        suffix = text[split + 1 :]
    elif _UDUNITS_SUFFIX.fullmatch(text):
        suffix = text[-1]
    else:
        return None

    if len(suffix) == 1 and suffix not in ("e", "n"):
        return None

    return _DIRECTIONS.get(suffix)


def is_angular(units: str | None) -> bool:
    """Returns whether the units are degrees or radians."""
    unit = parse_unit(units)
    if unit is None:
        return False

    return unit == DEGREES or unit == RADIANS


def is_temporal(units: str | None) -> bool:
    """Returns whether the units are a duration or a "<unit> since <epoch>"."""
    if split_time_unit(units) is not None:
        return True

    unit = parse_unit(units)
    if unit is None:
        return False

    return unit.is_compatible_with(ureg.second)


def is_pressure(units: str | None) -> bool:
    """Returns whether the units are convertible to pascals."""
    unit = parse_unit(units)
    if unit is None:
        return False

    return unit.is_compatible_with(ureg.pascal)


def split_time_unit(units: str | None) -> tuple[str, str] | None:
    """Splits ``"hours since 2000-01-01"`` into ``("hours", "2000-01-01")``.

    Returns ``None`` if the units are not of the "<unit> since <epoch>" form.
    """
    if not isinstance(units, str):
        return None

    match = TIME_UNIT_PATTERN.fullmatch(units.strip())
    if match is None:
        return None

    return match.group(1).strip(), match.group(2).strip()


def wraparound_period(units: str | None) -> float:
    """Returns the period of a longitude axis in the given units.

    Returns NaN if the units are not angular.
    """
    unit = parse_unit(units)
    if unit is None:
        # Longitudes without units are assumed in degrees.
        return 360.0 if units is None else float("nan")

    if unit == DEGREES:
        return 360.0
    if unit == RADIANS:
        return 2 * math.pi

    return float("nan")
