"""
Dates module for decoding time values stored as packed calendar fields
(e.g., ``20181017.5`` with units ``"day as %Y%m%d.%f"``) into the standard
"<unit> since <epoch>" encoding.
"""

from __future__ import annotations

import itertools
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

import cftime
import numpy as np
import xarray as xr
from dateutil import parser

from xgeoref._logger import _setup_custom_logger
from xgeoref.listeners import StoreListeners
from xgeoref.units import convert, split_time_unit

logger = _setup_custom_logger(__name__)

#: The units of the normalized values when no axis provides its own units.
DEFAULT_TIME_UNITS = "days since 1970-01-01 00:00:00"
#: The calendar used when neither the variable nor its axis declares one.
DEFAULT_CALENDAR = "standard"
#: The year substituted to year 0 in climatological (yearless) dates.
PLACEHOLDER_YEAR = 1
# Fields wider than 9 digits do not fit in a signed 32-bit integer.
MAX_FIELD_DIGITS = 9

UNIX_EPOCH_UNITS = "days since 1970-01-01 00:00:00"

#: The fields following the year, from the most to the least significant.
FIELDS = ("month", "day", "hour", "minute", "second")

# Mean Gregorian lengths in days, used for scaling the fractional part of the
# least significant field.
FIELD_DAYS = {
    "year": 365.2425,
    "month": 30.436875,
    "day": 1.0,
    "hour": 1 / 24,
    "minute": 1 / 1440,
    "second": 1 / 86400,
}


@dataclass(frozen=True)
class DateEncoding:
    """The bases of the packed fields that follow the year.

    For example ``CCYYMMDD`` packs a month and a day on two digits each, which
    gives ``bases=(100, 100)``.
    """

    bases: tuple[int, ...]

    @property
    def fields(self) -> tuple[str, ...]:
        return FIELDS[: len(self.bases)]

    @property
    def last_field(self) -> str:
        return self.fields[-1] if self.bases else "year"


@dataclass(frozen=True)
class DatePattern:
    """A recognizer of a non-standard date encoding in the ``units`` attribute.

    Attributes
    ----------
    name : str
        A short name for log messages.
    parse : Callable[[str], DateEncoding | None]
        Returns the field bases if the units match this pattern, or None.
    time_axes_only : bool
        Whether this pattern applies only to variables identified as time
        axes. Otherwise it applies to any one-dimensional variable.
    """

    name: str
    parse: Callable[[str], DateEncoding | None]
    time_axes_only: bool

    def match(self, units: str | None) -> DateEncoding | None:
        if not isinstance(units, str):
            return None

        return self.parse(units.strip())


_PACKED_DAYS = re.compile(r"days?\s+as\s+%Y%m%d(?:\.%f)?", re.IGNORECASE)
_CLIMATOLOGICAL = re.compile(r"CCYY([A-Z]*)")
_CLIMATOLOGICAL_LETTERS = "MDHMS"


def _parse_packed_days(units: str) -> DateEncoding | None:
    if _PACKED_DAYS.fullmatch(units) is None:
        return None

    return DateEncoding((100, 100))


def _parse_climatological(units: str) -> DateEncoding | None:
    match = _CLIMATOLOGICAL.fullmatch(units.upper())
    if match is None:
        return None

    runs = [(letter, len(list(group))) for letter, group in itertools.groupby(match.group(1))]
    if len(runs) > len(_CLIMATOLOGICAL_LETTERS):
        return None

    for (letter, digits), expected in zip(runs, _CLIMATOLOGICAL_LETTERS):
        if letter != expected or digits > MAX_FIELD_DIGITS:
            return None

    return DateEncoding(tuple(10**digits for _, digits in runs))


#: Dates packed as "YYYYMMDD.fraction" numbers, in any 1-D variable.
PACKED_DAYS = DatePattern("day as %Y%m%d", _parse_packed_days, time_axes_only=False)
#: Dates with a "CCYYMMDD"-like template as units, in time axes only.
CLIMATOLOGICAL = DatePattern("CCYYMMDD", _parse_climatological, time_axes_only=True)

DATE_PATTERNS: tuple[DatePattern, ...] = (PACKED_DAYS, CLIMATOLOGICAL)


def find_date_encoding(
    units: str | None,
    is_time_axis: bool,
    patterns: tuple[DatePattern, ...] = DATE_PATTERNS,
) -> DateEncoding | None:
    """Returns the encoding of the first pattern matching the units, if any."""
    for pattern in patterns:
        if pattern.time_axes_only and not is_time_axis:
            continue

        encoding = pattern.match(units)
        if encoding is not None:
            return encoding

    return None


def normalize_dates(
    variable: xr.DataArray,
    is_time_axis: bool = False,
    axis: xr.DataArray | None = None,
    patterns: tuple[DatePattern, ...] = DATE_PATTERNS,
    listeners: StoreListeners | None = None,
) -> xr.DataArray | None:
    """Converts packed dates to the "<unit> since <epoch>" encoding.

    Parameters
    ----------
    variable : xr.DataArray
        A one-dimensional variable, or a two-dimensional array of characters.
    is_time_axis : bool, optional
        Whether the variable has been identified as a time axis, by default
        False. Patterns restricted to time axes are skipped otherwise.
    axis : xr.DataArray | None, optional
        The axis variable of the variable's dimension. If its units are of the
        "<unit> since <epoch>" form, the result uses the same units.
    patterns : tuple[DatePattern, ...], optional
        The patterns to try in order, by default ``DATE_PATTERNS``.
    listeners : StoreListeners | None, optional
        Where to report dates that can not be represented.

    Returns
    -------
    xr.DataArray | None
        A new variable with float64 values and rewritten ``units``, or None
        if the units do not match any pattern.

    Examples
    --------
    >>> da = xr.DataArray([20181017.0], dims="time", attrs={"units": "day as %Y%m%d.%f"})
    >>> normalize_dates(da).values
    array([17821.])
    """
    units = variable.attrs.get("units")
    encoding = find_date_encoding(units, is_time_axis, patterns)
    if encoding is None:
        return None

    values = _as_numbers(variable)
    if values is None:
        logger.debug(
            f"'{variable.name}' has packed date units but is not one-dimensional."
        )
        return None

    calendar = variable.attrs.get("calendar")
    target_units = DEFAULT_TIME_UNITS
    if axis is not None:
        if split_time_unit(axis.attrs.get("units")) is not None:
            target_units = axis.attrs["units"]
        if calendar is None:
            calendar = axis.attrs.get("calendar")

    if not isinstance(calendar, str):
        calendar = DEFAULT_CALENDAR

    days = _to_unix_days(values, encoding, calendar, variable.name, listeners)
    offset, scale = _conversion(target_units, calendar)

    attrs = dict(variable.attrs)
    attrs["units"] = target_units
    if calendar != DEFAULT_CALENDAR or "calendar" in variable.attrs:
        attrs["calendar"] = calendar

    result = xr.DataArray(
        (days - offset) * scale,
        dims=variable.dims[:1],
        attrs=attrs,
        name=variable.name,
    )
    result.encoding = dict(variable.encoding)
    result.encoding["original_units"] = units

    return result


def _as_numbers(variable: xr.DataArray) -> np.ndarray | None:
    data = np.asarray(variable.values)

    if data.ndim == 2 and data.dtype.kind == "S" and data.dtype.itemsize == 1:
        # Character arrays whose last dimension is the string length.
        data = np.array([b"".join(row) for row in data])

    if data.ndim != 1:
        return None

    if data.dtype.kind in "SUO":
        return np.array([_parse_number(item) for item in data], dtype=np.float64)

    return data.astype(np.float64)


def _parse_number(item) -> float:
    if isinstance(item, bytes):
        item = item.decode("utf-8", errors="replace")

    try:
        return float(str(item).strip())
    except ValueError:
        return np.nan


def _to_unix_days(
    values: np.ndarray,
    encoding: DateEncoding,
    calendar: str,
    name,
    listeners: StoreListeners | None,
) -> np.ndarray:
    """Decomposes packed values into fields and counts days since 1970-01-01."""
    finite = np.isfinite(values)
    whole = np.floor(np.where(finite, values, 0)).astype(np.int64)
    fraction = values - whole

    fields: dict[str, np.ndarray] = {}
    remaining = whole
    for field, base in reversed(list(zip(encoding.fields, encoding.bases))):
        fields[field] = remaining % base
        remaining = remaining // base

    years = np.where(remaining == 0, PLACEHOLDER_YEAR, remaining)
    months = fields.get("month", np.ones_like(whole))
    days_of_month = fields.get("day", np.ones_like(whole))

    result = np.full(values.shape, np.nan)
    indices = []
    dates = []
    invalid = 0
    for i in np.flatnonzero(finite):
        try:
            dates.append(
                cftime.datetime(
                    int(years[i]),
                    int(months[i]),
                    int(days_of_month[i]),
                    calendar=calendar,
                )
            )
        except ValueError:
            invalid += 1
            continue

        indices.append(i)

    if invalid and listeners is not None:
        listeners.warning(
            f"{invalid} value(s) of '{name}' are not valid dates in the "
            f"'{calendar}' calendar and are replaced by NaN.",
            variable=None if name is None else str(name),
        )

    if not dates:
        return result

    result[indices] = cftime.date2num(dates, UNIX_EPOCH_UNITS, calendar=calendar)

    for field, divisor in (("hour", 24), ("minute", 1440), ("second", 86400)):
        if field in fields:
            result += fields[field] / divisor

    result += fraction * FIELD_DAYS[encoding.last_field]

    return result


def _conversion(target_units: str, calendar: str) -> tuple[float, float]:
    """Returns the offset (in days since 1970) and scale to the target units.

    The epoch may carry a timezone (e.g., "hours since 2000-01-01 00:00 +05:00"),
    in which case it is shifted to UTC.
    """
    unit_name, epoch_text = split_time_unit(target_units)  # type: ignore[misc]
    epoch: datetime = parser.parse(epoch_text, default=datetime(2000, 1, 1))

    offset = cftime.date2num(
        cftime.datetime(
            epoch.year,
            epoch.month,
            epoch.day,
            epoch.hour,
            epoch.minute,
            epoch.second,
            epoch.microsecond,
            calendar=calendar,
        ),
        UNIX_EPOCH_UNITS,
        calendar=calendar,
    )

    utcoffset = epoch.utcoffset()
    if utcoffset is not None:
        offset -= utcoffset.total_seconds() / 86400

    scale = convert(1.0, "day", unit_name)

    return float(offset), float(scale)
