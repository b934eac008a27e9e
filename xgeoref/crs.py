"""
CRS module for assembling the coordinate reference system of a grid.

Two CRS can be inferred for a data variable:

* the *implicit* CRS, assembled from the kinds of its coordinate axes
  (longitude and latitude give a geographic CRS, a time axis gives a temporal
  CRS, ...);
* the *explicit* CRS, read from a CF grid mapping variable (``crs_wkt``,
  ``EPSG_code``, projection parameters, ...).

The explicit CRS is authoritative for the components it describes, and
:func:`merge_crs` substitutes it into the implicit CRS.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Sequence, Union

import numpy as np
import pyproj
import xarray as xr
from pyproj.exceptions import CRSError

from xgeoref._logger import _setup_custom_logger
from xgeoref.axis import AxisKind, is_colinear, longitude_range
from xgeoref.listeners import StoreListeners
from xgeoref.transform import AffineTransform
from xgeoref.units import split_time_unit

if TYPE_CHECKING:
    from xgeoref.convention import Convention
    from xgeoref.grid import Axis

logger = _setup_custom_logger(__name__)

#: Grid mapping attributes containing a WKT definition, in preference order.
WKT_ATTRS = ("crs_wkt", "spatial_ref", "esri_pe_string")
#: Grid mapping attributes containing an EPSG code.
EPSG_ATTRS = ("EPSG_code", "epsg_code")
#: Grid mapping attribute containing GDAL affine transform coefficients.
GEO_TRANSFORM_ATTR = "GeoTransform"

DEFAULT_LONGITUDE_RANGE = (-180, 180)


@dataclass(frozen=True)
class TemporalCRS:
    """A time axis counting ``units`` since ``epoch`` in a ``calendar``."""

    name: str
    units: str
    epoch: str | None = None
    calendar: str = "standard"

    @property
    def axis_directions(self) -> tuple[str, ...]:
        return ("future",)

    def equals(self, other, ignore_axis_order: bool = False) -> bool:
        return self == other


@dataclass(frozen=True)
class VerticalCRS:
    """A height or depth axis."""

    name: str
    units: str | None
    direction: str = "up"

    @property
    def axis_directions(self) -> tuple[str, ...]:
        return (self.direction,)

    def equals(self, other, ignore_axis_order: bool = False) -> bool:
        return self == other


@dataclass(frozen=True)
class EngineeringCRS:
    """Axes without a known datum, for example projected coordinates without
    a grid mapping or generic "x", "y" axes."""

    name: str
    axis_names: tuple[str, ...]
    axis_directions: tuple[str, ...]
    units: tuple[str | None, ...] = ()

    def equals(self, other, ignore_axis_order: bool = False) -> bool:
        if not isinstance(other, EngineeringCRS):
            return False
        if not ignore_axis_order:
            return self == other

        return (
            self.name == other.name
            and sorted(zip(self.axis_names, self.axis_directions))
            == sorted(zip(other.axis_names, other.axis_directions))
        )


Component = Union[pyproj.CRS, TemporalCRS, VerticalCRS, EngineeringCRS]


def axis_directions(component: Component) -> tuple[str, ...]:
    """Returns the directions of the axes of a CRS component."""
    if isinstance(component, pyproj.CRS):
        return tuple(axis.direction for axis in component.axis_info)

    return tuple(component.axis_directions)


def components_equal(
    first: Component, second: Component, ignore_axis_order: bool = False
) -> bool:
    """Compares two CRS components, optionally ignoring the axis order."""
    if isinstance(first, pyproj.CRS):
        return isinstance(second, pyproj.CRS) and first.equals(
            second, ignore_axis_order=ignore_axis_order
        )

    return first.equals(second, ignore_axis_order=ignore_axis_order)


class CompoundCRS:
    """An ordered list of CRS components.

    Parameters
    ----------
    components : Sequence[Component]
        The components, in axis order. Horizontal components are
        ``pyproj.CRS`` objects.
    longitude_range : tuple[float, float], optional
        The range of longitude values, ``(-180, 180)`` or ``(0, 360)``.
    name : str | None, optional
        A name for display.
    """

    def __init__(
        self,
        components: Sequence[Component],
        longitude_range: tuple[float, float] = DEFAULT_LONGITUDE_RANGE,
        name: str | None = None,
    ):
        self.components = tuple(components)
        self.longitude_range = longitude_range
        self.name = name

    @property
    def axis_directions(self) -> tuple[str, ...]:
        return tuple(d for c in self.components for d in axis_directions(c))

    @property
    def dimension(self) -> int:
        return len(self.axis_directions)

    @property
    def horizontal(self) -> pyproj.CRS | None:
        """The first geographic or projected component, if any."""
        for component in self.components:
            if isinstance(component, pyproj.CRS):
                return component

        return None

    def equivalent(self, other: CompoundCRS) -> bool:
        """Compares components, ignoring axis order and longitude range."""
        return len(self.components) == len(other.components) and all(
            components_equal(a, b, ignore_axis_order=True)
            for a, b in zip(self.components, other.components)
        )

    def __eq__(self, other) -> bool:
        return (
            isinstance(other, CompoundCRS)
            and self.longitude_range == other.longitude_range
            and len(self.components) == len(other.components)
            and all(components_equal(a, b) for a, b in zip(self.components, other.components))
        )

    def __hash__(self) -> int:
        return hash((len(self.components), self.longitude_range))

    def __repr__(self) -> str:
        names = [getattr(c, "name", None) for c in self.components]
        return f"CompoundCRS({names}, longitude_range={self.longitude_range})"


# Implicit CRS
# ============
_GEOGRAPHIC = (AxisKind.LONGITUDE, AxisKind.LATITUDE)
_PROJECTED = (AxisKind.EASTING, AxisKind.NORTHING)
_VERTICAL = (AxisKind.HEIGHT, AxisKind.DEPTH)


def _category(kind: AxisKind | None) -> str:
    if kind in _GEOGRAPHIC:
        return "geographic"
    if kind in _PROJECTED:
        return "projected"
    if kind in _VERTICAL:
        return "vertical"
    if kind is AxisKind.TIME:
        return "temporal"

    return "engineering"


def build_crs(axes: Sequence[Axis], convention: Convention, name: str | None = None) -> CompoundCRS:
    """Assembles the implicit CRS of a grid from its axes.

    Axes are grouped by category: geographic (longitude, latitude), projected
    (easting, northing), vertical (height, depth), temporal (time) and
    engineering (everything else). Each geographic, projected or engineering
    group becomes one component; each vertical or temporal axis becomes its
    own component. Components are ordered by their first axis.

    Parameters
    ----------
    axes : Sequence[Axis]
        The grid axes, in CRS order.
    convention : Convention
        Provides the default geographic CRS.
    name : str | None, optional
        The name of the compound CRS.

    Returns
    -------
    CompoundCRS
        The implicit CRS, with the longitude range detected from longitude
        values.
    """
    groups: list[tuple[str, list[Axis]]] = []
    for axis in axes:
        category = _category(axis.kind)
        if category in ("geographic", "projected", "engineering"):
            for existing, members in groups:
                if existing == category:
                    members.append(axis)
                    break
            else:
                groups.append((category, [axis]))
        else:
            groups.append((category, [axis]))

    components: list[Component] = []
    lon_range = DEFAULT_LONGITUDE_RANGE
    for category, members in groups:
        if category == "geographic":
            kinds = [axis.kind for axis in members]
            if sorted(kinds, key=lambda k: k.value) == sorted(_GEOGRAPHIC, key=lambda k: k.value):
                longitude_first = kinds[0] is AxisKind.LONGITUDE
                components.append(convention.default_horizontal_crs(longitude_first))
                lon_axis = members[kinds.index(AxisKind.LONGITUDE)]
                lon_range = longitude_range(lon_axis.read())
                continue

            category = "engineering"

        if category == "temporal":
            axis = members[0]
            parts = split_time_unit(axis.units)
            components.append(
                TemporalCRS(
                    axis.name,
                    parts[0] if parts else (axis.units or ""),
                    parts[1] if parts else None,
                    axis.coordinates.attrs.get("calendar", "standard"),
                )
            )
        elif category == "vertical":
            axis = members[0]
            direction = axis.direction or axis.kind.direction
            components.append(VerticalCRS(axis.name, axis.units, direction))
        else:
            components.append(
                EngineeringCRS(
                    "Unknown projected CRS" if category == "projected" else "Unknown engineering CRS",
                    tuple(axis.name for axis in members),
                    tuple(_direction_of(axis) for axis in members),
                    tuple(axis.units for axis in members),
                )
            )

    return CompoundCRS(components, lon_range, name)


def _direction_of(axis: Axis) -> str:
    if axis.direction is not None:
        return axis.direction
    if axis.kind is not None:
        return axis.kind.direction

    return "unspecified"


# Explicit CRS
# ============
def grid_mapping_crs(
    mapping: xr.DataArray, listeners: StoreListeners | None = None
) -> pyproj.CRS | None:
    """Reads the CRS defined by the attributes of a grid mapping variable.

    The WKT attributes (``crs_wkt``, ``spatial_ref``, ``esri_pe_string``) are
    tried first, then ``EPSG_code``, then the CF grid mapping parameters.
    Malformed attributes are reported as warnings and skipped.

    Parameters
    ----------
    mapping : xr.DataArray
        The grid mapping variable (usually a scalar).
    listeners : StoreListeners | None, optional
        Where to report malformed attributes.

    Returns
    -------
    pyproj.CRS | None
        The CRS, or None if the variable does not define one.
    """
    attrs = mapping.attrs
    name = None if mapping.name is None else str(mapping.name)

    for attr in WKT_ATTRS:
        value = attrs.get(attr)
        if value is None:
            continue
        try:
            return pyproj.CRS.from_wkt(str(value))
        except CRSError as err:
            _invalid(listeners, name, attr, value, err)

    for attr in EPSG_ATTRS:
        value = attrs.get(attr)
        if value is None:
            continue
        try:
            text = str(value).strip()
            return pyproj.CRS.from_user_input(text if ":" in text else f"EPSG:{int(float(text))}")
        except (CRSError, ValueError) as err:
            _invalid(listeners, name, attr, value, err)

    if "grid_mapping_name" in attrs:
        try:
            return pyproj.CRS.from_cf(dict(attrs))
        except CRSError as err:
            _invalid(listeners, name, "grid_mapping_name", attrs["grid_mapping_name"], err)

    return None


def _invalid(listeners, name, attr, value, err):
    if listeners is not None:
        listeners.invalid_attribute(name, attr, value, err)
    else:
        logger.warning(f"Invalid '{attr}' attribute in '{name}': {err}")


def geo_transform(
    mapping: xr.DataArray, listeners: StoreListeners | None = None
) -> AffineTransform | None:
    """Reads the GDAL ``GeoTransform`` attribute of a grid mapping variable.

    The six coefficients relate pixel and line indices (P, L) to CRS
    coordinates with ``X = c0 + P*c1 + L*c2`` and ``Y = c3 + P*c4 + L*c5``.
    They are relative to the corner of the cells. Values can be separated by
    spaces or commas.

    Parameters
    ----------
    mapping : xr.DataArray
        The grid mapping variable.
    listeners : StoreListeners | None, optional
        Where to report a malformed attribute.

    Returns
    -------
    AffineTransform | None
        The conversion from (pixel, line) indices to (X, Y) coordinates, or
        None if the attribute is absent or malformed.
    """
    value = mapping.attrs.get(GEO_TRANSFORM_ATTR)
    if value is None:
        return None

    name = None if mapping.name is None else str(mapping.name)
    try:
        if isinstance(value, str):
            c = [float(v) for v in value.replace(",", " ").split()]
        else:
            c = [float(v) for v in np.ravel(value)]
        if len(c) != 6:
            raise ValueError(f"Expected 6 coefficients, got {len(c)}.")
    except (TypeError, ValueError) as err:
        _invalid(listeners, name, GEO_TRANSFORM_ATTR, value, err)
        return None

    return AffineTransform([[c[1], c[2], c[0]], [c[4], c[5], c[3]], [0.0, 0.0, 1.0]])


# Merge
# =====
def index_of_colinear(source: Sequence[str], target: Sequence[str]) -> int:
    """Returns the first index where ``target`` directions match ``source`` ones.

    Returns -1 if there is no sequence of colinear directions.
    """
    for start in range(len(source) - len(target) + 1):
        if all(is_colinear(source[start + k], target[k]) for k in range(len(target))):
            return start

    return -1


def swap_axes(crs: pyproj.CRS) -> pyproj.CRS | None:
    """Returns a copy of a two-dimensional CRS with its two axes swapped."""
    definition = crs.to_json_dict()
    system = definition.get("coordinate_system")
    if not system or len(system.get("axis", ())) != 2:
        return None

    system["axis"] = list(reversed(system["axis"]))
    definition.pop("id", None)
    definition.pop("ids", None)

    return pyproj.CRS.from_json_dict(definition)


def _flatten(crs: pyproj.CRS | CompoundCRS) -> list[Component]:
    if isinstance(crs, CompoundCRS):
        return list(crs.components)
    if crs.is_compound:
        return list(crs.sub_crs_list)

    return [crs]


def first_affected_coordinate(
    implicit: CompoundCRS, explicit: pyproj.CRS | CompoundCRS
) -> tuple[int, list[Component]]:
    """Returns the first implicit dimension described by the explicit CRS.

    The components of ``explicit`` are returned too, with the axes of a
    two-dimensional CRS swapped if only that order is colinear with the
    implicit axes. The index is 0 if no order matches.
    """
    replacement = _flatten(explicit)
    directions = [d for c in replacement for d in axis_directions(c)]
    source = implicit.axis_directions

    first = index_of_colinear(source, directions)
    if first < 0 and len(replacement) == 1 and isinstance(replacement[0], pyproj.CRS):
        swapped = swap_axes(replacement[0])
        if swapped is not None:
            first = index_of_colinear(source, axis_directions(swapped))
            if first >= 0:
                replacement = [swapped]

    return max(first, 0), replacement


def merge_crs(implicit: CompoundCRS, explicit: pyproj.CRS | CompoundCRS) -> CompoundCRS:
    """Substitutes the explicit CRS into the implicit CRS.

    The components of ``implicit`` whose axes are colinear with the axes of
    ``explicit`` are replaced. If no axes match in the explicit order, the
    axes of a two-dimensional explicit CRS are swapped and matched again;
    if they still do not match, the replacement starts at the first
    dimension. If the implicit longitudes are in the ``(0, 360)`` range and
    the result still has a geographic component, that range is kept.

    Parameters
    ----------
    implicit : CompoundCRS
        The CRS inferred from the coordinate axes.
    explicit : pyproj.CRS | CompoundCRS
        The CRS defined by a grid mapping.

    Returns
    -------
    CompoundCRS
        The merged CRS, or ``implicit`` itself if the merge does not change
        anything (ignoring axis order).

    Raises
    ------
    ValueError
        If the explicit CRS does not cover whole components of the implicit
        CRS.
    """
    first, replacement = first_affected_coordinate(implicit, explicit)
    directions = [d for c in replacement for d in axis_directions(c)]

    start = end = None
    offset = 0
    for index, component in enumerate(implicit.components):
        if offset == first:
            start = index
        offset += len(axis_directions(component))
        if start is not None and offset == first + len(directions):
            end = index + 1
            break

    if start is None or end is None:
        raise ValueError(
            f"The CRS '{getattr(explicit, 'name', explicit)}' can not replace "
            f"dimensions {first} to {first + len(directions) - 1} of {implicit!r}."
        )

    components = [*implicit.components[:start], *replacement, *implicit.components[end:]]
    has_geographic = any(
        isinstance(c, pyproj.CRS) and c.is_geographic for c in components
    )
    lon_range = implicit.longitude_range if has_geographic else DEFAULT_LONGITUDE_RANGE

    result = CompoundCRS(components, lon_range, implicit.name)
    if result.equivalent(implicit):
        return implicit

    return result

