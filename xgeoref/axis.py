"""
Axis module for identifying the role of coordinate variables (longitude,
latitude, height, time, ...) from their attributes, names and units.
"""

from __future__ import annotations

import enum
import re
from typing import Callable, Literal

import numpy as np
import xarray as xr

from xgeoref import units as _units

# https://cf-xarray.readthedocs.io/en/latest/coord_axes.html#axis-names
CFAxisKey = Literal["X", "Y", "T", "Z"]

CF_ATTR_AXIS = "axis"
CF_ATTR_AXIS_TYPE = "_CoordinateAxisType"
CF_ATTR_STD_NAME = "standard_name"
CF_ATTR_UNITS = "units"
CF_ATTR_POSITIVE = "positive"

#: Attributes containing free text, in preference order.
DESCRIPTION_ATTRS = ("long_name", "description", "title")


class AxisKind(enum.Enum):
    """The kind of a coordinate axis, identified by a one-character code."""

    LONGITUDE = "λ"
    LATITUDE = "φ"
    HEIGHT = "H"
    DEPTH = "D"
    EASTING = "E"
    NORTHING = "N"
    TIME = "t"
    X = "x"
    Y = "y"
    Z = "z"

    @property
    def is_ambiguous(self) -> bool:
        """Whether this kind is a generic placeholder (``x``, ``y`` or ``z``)."""
        return self in (AxisKind.X, AxisKind.Y, AxisKind.Z)

    @property
    def role(self) -> CFAxisKey:
        """The CF axis (``"X"``, ``"Y"``, ``"Z"`` or ``"T"``) of this kind."""
        return _ROLES[self]

    @property
    def direction(self) -> str:
        """The direction of increasing values for axes of this kind."""
        return _DIRECTIONS[self]


_ROLES: dict[AxisKind, CFAxisKey] = {
    AxisKind.LONGITUDE: "X",
    AxisKind.EASTING: "X",
    AxisKind.X: "X",
    AxisKind.LATITUDE: "Y",
    AxisKind.NORTHING: "Y",
    AxisKind.Y: "Y",
    AxisKind.HEIGHT: "Z",
    AxisKind.DEPTH: "Z",
    AxisKind.Z: "Z",
    AxisKind.TIME: "T",
}

_DIRECTIONS: dict[AxisKind, str] = {
    AxisKind.LONGITUDE: "east",
    AxisKind.EASTING: "east",
    AxisKind.X: "east",
    AxisKind.LATITUDE: "north",
    AxisKind.NORTHING: "north",
    AxisKind.Y: "north",
    AxisKind.HEIGHT: "up",
    AxisKind.DEPTH: "down",
    AxisKind.Z: "up",
    AxisKind.TIME: "future",
}

# A dictionary that maps common variable names (lowercase) to axis kinds. The
# same table is used for the "standard_name" attribute, the free text of
# "long_name" and the variable name.
VAR_NAME_MAP: dict[str, AxisKind] = {
    "longitude": AxisKind.LONGITUDE,
    "lon": AxisKind.LONGITUDE,
    "long": AxisKind.LONGITUDE,
    "latitude": AxisKind.LATITUDE,
    "lat": AxisKind.LATITUDE,
    "height": AxisKind.HEIGHT,
    "altitude": AxisKind.HEIGHT,
    "elevation": AxisKind.HEIGHT,
    "elev": AxisKind.HEIGHT,
    "barometric_altitude": AxisKind.HEIGHT,
    "geopotential_height": AxisKind.HEIGHT,
    "depth": AxisKind.DEPTH,
    "depth_below_sea": AxisKind.DEPTH,
    "depth_below_geoid": AxisKind.DEPTH,
    "time": AxisKind.TIME,
    "projection_x_coordinate": AxisKind.EASTING,
    "easting": AxisKind.EASTING,
    "projection_y_coordinate": AxisKind.NORTHING,
    "northing": AxisKind.NORTHING,
    "x": AxisKind.X,
    "y": AxisKind.Y,
    "z": AxisKind.Z,
    "pressure": AxisKind.Z,
    "air_pressure": AxisKind.Z,
    "lev": AxisKind.Z,
    "plev": AxisKind.Z,
    "level": AxisKind.Z,
}

# Values of the "_CoordinateAxisType" attribute written by netCDF-Java.
AXIS_TYPE_MAP: dict[str, AxisKind] = {
    "lon": AxisKind.LONGITUDE,
    "lat": AxisKind.LATITUDE,
    "height": AxisKind.HEIGHT,
    "pressure": AxisKind.Z,
    "time": AxisKind.TIME,
    "runtime": AxisKind.TIME,
    "geox": AxisKind.EASTING,
    "geoy": AxisKind.NORTHING,
    "geoz": AxisKind.Z,
}

# Values of the CF "axis" attribute.
CF_AXIS_MAP: dict[str, AxisKind] = {
    "x": AxisKind.X,
    "y": AxisKind.Y,
    "z": AxisKind.Z,
    "t": AxisKind.TIME,
}

_WORD = re.compile(r"[a-z_]+")


def abbreviation(variable: xr.DataArray, use_unit: bool = True) -> AxisKind | None:
    """Identifies the kind of axis represented by a coordinate variable.

    The following sources are checked in order: the ``_CoordinateAxisType``
    and CF ``axis`` attributes, the ``standard_name`` attribute, the free text
    of ``long_name``, ``description`` or ``title``, the direction of an angular
    unit (e.g., "degrees_east"), the variable name and finally whether the
    unit is temporal or a pressure. The first source giving a definitive kind
    wins. The generic ``x``, ``y`` and ``z`` kinds are only returned if no
    source gives a definitive kind, in which case the first generic kind
    found is returned.

    Parameters
    ----------
    variable : xr.DataArray
        The coordinate variable.
    use_unit : bool, optional
        Whether the ``units`` attribute can be used, by default True.

    Returns
    -------
    AxisKind | None
        The kind of axis, or None if it can not be determined.

    Examples
    --------
    >>> lat = xr.DataArray([0.0, 1.0], dims="y", attrs={"units": "degrees_north"})
    >>> abbreviation(lat)
    <AxisKind.LATITUDE: 'φ'>
    """
    strategies: list[Callable[[xr.DataArray], AxisKind | None]] = [
        _from_axis_type,
        _from_cf_axis,
        _from_standard_name,
        _from_description,
    ]
    if use_unit:
        strategies.append(_from_angular_unit)
    strategies.append(_from_name)
    if use_unit:
        strategies.append(_from_unit_kind)

    fallback: AxisKind | None = None
    for strategy in strategies:
        kind = strategy(variable)
        if kind is None:
            continue

        if not kind.is_ambiguous:
            return kind

        if fallback is None:
            fallback = kind

    return fallback


def _lookup(text, table: dict[str, AxisKind] = VAR_NAME_MAP) -> AxisKind | None:
    if not isinstance(text, str):
        return None

    return table.get(text.strip().lower())


def _from_axis_type(variable: xr.DataArray) -> AxisKind | None:
    return _lookup(variable.attrs.get(CF_ATTR_AXIS_TYPE), AXIS_TYPE_MAP)


def _from_cf_axis(variable: xr.DataArray) -> AxisKind | None:
    return _lookup(variable.attrs.get(CF_ATTR_AXIS), CF_AXIS_MAP)


def _from_standard_name(variable: xr.DataArray) -> AxisKind | None:
    return _lookup(variable.attrs.get(CF_ATTR_STD_NAME))


def _from_description(variable: xr.DataArray) -> AxisKind | None:
    for attr in DESCRIPTION_ATTRS:
        text = variable.attrs.get(attr)
        if not isinstance(text, str) or not text.strip():
            continue

        kind = _lookup(text)
        if kind is None:
            # "Latitude (degree)" or "Time of observation".
            words = _WORD.findall(text.lower())
            kind = _lookup(words[0]) if words else None

        # Only the first free text attribute is used.
        return kind

    return None


def _from_angular_unit(variable: xr.DataArray) -> AxisKind | None:
    units = variable.attrs.get(CF_ATTR_UNITS)
    if not _units.is_angular(units):
        return None

    direction = _units.direction_of(units)
    if direction in ("east", "west"):
        return AxisKind.LONGITUDE
    if direction in ("north", "south"):
        return AxisKind.LATITUDE

    return None


def _from_name(variable: xr.DataArray) -> AxisKind | None:
    return _lookup(None if variable.name is None else str(variable.name))


def _from_unit_kind(variable: xr.DataArray) -> AxisKind | None:
    units = variable.attrs.get(CF_ATTR_UNITS)
    if _units.is_temporal(units):
        return AxisKind.TIME
    if _units.is_pressure(units):
        return AxisKind.Z

    return None


# Axis directions
# ===============
_OPPOSITES = {
    "east": "west",
    "west": "east",
    "north": "south",
    "south": "north",
    "up": "down",
    "down": "up",
    "future": "past",
    "past": "future",
}


def absolute_direction(direction: str | None) -> str | None:
    """Returns the direction pointing toward positive values ("west" gives "east")."""
    if direction is None:
        return None

    direction = direction.lower()
    if direction in ("west", "south", "down", "past"):
        return _OPPOSITES[direction]

    return direction


def is_opposite(direction: str | None) -> bool:
    """Returns whether the direction points toward negative values."""
    return direction is not None and direction.lower() in ("west", "south", "down", "past")


def is_colinear(first: str | None, second: str | None) -> bool:
    """Returns whether two directions are equal or opposite."""
    if first is None or second is None:
        return False

    return absolute_direction(first) == absolute_direction(second)


def opposite(direction: str) -> str:
    """Returns the direction opposite to the given one."""
    return _OPPOSITES.get(direction.lower(), direction)


# Longitude orientation
# =====================
def _is_in_orientation(da: xr.DataArray | np.ndarray, to: tuple[float, float]) -> bool:
    """
    Check if the values in an array conform to a specified orientation range.

    Parameters
    ----------
    da : xr.DataArray | np.ndarray
        The longitude values to check. NaN values are ignored.
    to : tuple[float, float]
        The orientation to check. Supported orientations include:

        * (-180, 180): represents [-180, 180) in math notation
        * (0, 360): represents [0, 360) in math notation

    Returns
    -------
    bool
        True if all values fall within the specified range, False otherwise.
    """
    values = np.asarray(da, dtype=np.float64)
    values = values[np.isfinite(values)]

    if to == (-180, 180):
        return bool(np.all(values >= -180) and np.all(values <= 180))

    return bool(np.all(values >= 0) and np.all(values <= 360))


def longitude_range(values: xr.DataArray | np.ndarray) -> tuple[float, float]:
    """Returns the longitude range convention used by the given values.

    Returns ``(0, 360)`` if the values are all positive and some of them exceed
    180°, ``(-180, 180)`` otherwise.
    """
    if not _is_in_orientation(values, (-180, 180)) and _is_in_orientation(
        values, (0, 360)
    ):
        return (0, 360)

    return (-180, 180)
