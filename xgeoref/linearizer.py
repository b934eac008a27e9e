"""
Linearizer module for projecting localization grids of longitudes and
latitudes to a map projection in which the grid is closer to linear.

Satellite swaths and curvilinear model grids are often far from linear in
geographic coordinates but almost linear in a local Universal Transverse
Mercator (UTM) or Universal Polar Stereographic (UPS) projection. When such a
projection is applied, the geographic component of the compound CRS is
replaced by the projected CRS.
"""

from __future__ import annotations

import enum
import math
from typing import TYPE_CHECKING, Iterable, Sequence

import numpy as np
import pyproj

from xgeoref._logger import _setup_custom_logger
from xgeoref.axis import AxisKind, is_colinear
from xgeoref.localization import LocalizationGridBuilder, Projection

if TYPE_CHECKING:
    from xgeoref.cache import GridCacheValue
    from xgeoref.grid import Axis

logger = _setup_custom_logger(__name__)

#: Latitude beyond which the projection is computed at the pole-ward edge of
#: the grid instead of its center.
POLAR_THRESHOLD = 60.0
#: Width of a UTM zone in degrees of longitude.
UTM_ZONE_WIDTH = 6.0
#: Latitudes beyond which UPS is used instead of UTM.
UPS_NORTH_LIMIT = 84.0
UPS_SOUTH_LIMIT = -80.0

UPS_NORTH_EPSG = 5041
UPS_SOUTH_EPSG = 5042

#: The geographic CRS of localization grid coordinates, in (lat, lon) order.
DEFAULT_SOURCE_CRS = "EPSG:4326"


class LinearizerType(enum.Enum):
    """The kinds of projections that a linearizer can apply."""

    #: UTM, or UPS in polar regions, at the grid location.
    UNIVERSAL = "universal"


class CannotInjectComponentError(ValueError):
    """Raised when a projected CRS can not replace a component of a compound CRS."""


def utm_zone(latitude: float, longitude: float) -> int:
    """Returns the UTM zone number, including the Norway and Svalbard exceptions."""
    longitude = ((longitude + 180) % 360) - 180
    zone = int((longitude + 180) // UTM_ZONE_WIDTH) % 60 + 1

    if 56 <= latitude < 64 and 3 <= longitude < 12:
        zone = 32
    elif 72 <= latitude < 84 and 0 <= longitude < 42:
        if longitude < 9:
            zone = 31
        elif longitude < 21:
            zone = 33
        elif longitude < 33:
            zone = 35
        else:
            zone = 37

    return zone


def universal_crs(latitude: float, longitude: float) -> pyproj.CRS:
    """Returns the WGS 84 UTM or UPS projected CRS for the given location.

    Parameters
    ----------
    latitude : float
        The latitude in degrees.
    longitude : float
        The longitude in degrees, in any range.

    Returns
    -------
    pyproj.CRS
        A UTM zone CRS (EPSG:326xx or EPSG:327xx), or UPS North (EPSG:5041)
        above 84°N, or UPS South (EPSG:5042) below 80°S.
    """
    if latitude > UPS_NORTH_LIMIT:
        return pyproj.CRS.from_epsg(UPS_NORTH_EPSG)
    if latitude < UPS_SOUTH_LIMIT:
        return pyproj.CRS.from_epsg(UPS_SOUTH_EPSG)

    zone = utm_zone(latitude, longitude)

    return pyproj.CRS.from_epsg((32600 if latitude >= 0 else 32700) + zone)


class Linearizer:
    """A projection candidate for localization grids.

    An instance accumulates the state of one fit (the selected projected CRS,
    whether the caller's axes are in (longitude, latitude) order and the
    longitude span of the grid), so :meth:`xgeoref.convention.Convention.linearizers`
    creates new instances for each grid.

    Parameters
    ----------
    type : LinearizerType, optional
        The kind of projection, by default ``LinearizerType.UNIVERSAL``.
    source_crs : str | pyproj.CRS, optional
        The geographic CRS of the grid coordinates, by default WGS 84.
    """

    def __init__(
        self,
        type: LinearizerType = LinearizerType.UNIVERSAL,
        source_crs: str | pyproj.CRS = DEFAULT_SOURCE_CRS,
    ):
        self.type = type
        self.source_crs = pyproj.CRS.from_user_input(source_crs)
        self.target_crs: pyproj.CRS | None = None
        self.axis_swap = False
        self.longitude_span = math.nan

    def __repr__(self) -> str:
        target = None if self.target_crs is None else self.target_crs.name
        return f"Linearizer(type={self.type.value!r}, target={target!r})"

    def potential_cause(self) -> str | None:
        """Returns a probable reason for a fit failure, or None.

        UTM is unstable far from its central meridian, so grids spanning
        almost half of the globe in longitude are likely to fail.
        """
        if self.longitude_span >= 180 - UTM_ZONE_WIDTH:
            return (
                f"The localization grid spans {self.longitude_span:.1f}° of "
                "longitude, which is too wide for a Universal Transverse "
                "Mercator projection."
            )

        return None

    def create_projection(
        self, longitudes: np.ndarray, latitudes: np.ndarray, longitude_first: bool
    ) -> Projection:
        """Selects the projected CRS for a grid and returns the projection.

        Parameters
        ----------
        longitudes : np.ndarray
            The grid longitudes, with shape ``(height, width)``.
        latitudes : np.ndarray
            The grid latitudes, with the same shape.
        longitude_first : bool
            Whether the caller gives longitudes as the first ordinate.

        Returns
        -------
        Projection
            A function projecting the caller's ordinates. Its outputs are
            ordered like the caller's inputs: (easting, northing) if
            ``longitude_first``, (northing, easting) otherwise.
        """
        height, width = longitudes.shape
        rows = np.array([0, 0, height - 1, height - 1, height // 2])
        columns = np.array([0, width - 1, 0, width - 1, width // 2])
        lon_samples = longitudes[rows, columns]
        lat_samples = latitudes[rows, columns]

        self.longitude_span = float(np.nanmax(lon_samples) - np.nanmin(lon_samples))
        south = float(np.nanmin(lat_samples))
        north = float(np.nanmax(lat_samples))

        if south >= POLAR_THRESHOLD:
            latitude = north
        elif north <= -POLAR_THRESHOLD:
            latitude = south
        else:
            latitude = float(lat_samples[-1])

        self.target_crs = universal_crs(latitude, float(lon_samples[-1]))
        self.axis_swap = longitude_first

        # The source CRS is in (latitude, longitude) order.
        transformer = pyproj.Transformer.from_crs(self.source_crs, self.target_crs)
        east_first = _easting_index(self.target_crs) == 0

        def project(first: np.ndarray, second: np.ndarray):
            lon, lat = (first, second) if longitude_first else (second, first)
            a, b = transformer.transform(lat, lon, errcheck=False)
            easting, northing = (a, b) if east_first else (b, a)
            if longitude_first:
                return np.asarray(easting), np.asarray(northing)

            return np.asarray(northing), np.asarray(easting)

        return project

    @staticmethod
    def set_candidates_on_grid(
        axes: Sequence[Axis],
        linearizers: Iterable[Linearizer],
        builder: LocalizationGridBuilder,
    ):
        """Registers the projections of all linearizers on a grid builder.

        Nothing is registered unless the two axes are a longitude and a
        latitude. The builder control points must have been set, and
        wraparound longitudes resolved.
        """
        kinds = [axis.kind for axis in axes]
        if AxisKind.LONGITUDE not in kinds or AxisKind.LATITUDE not in kinds:
            logger.debug(
                f"Axes {[axis.name for axis in axes]} are not a longitude and a "
                "latitude, no linearizer applied."
            )
            return

        lon_dim = kinds.index(AxisKind.LONGITUDE)
        points = builder.control_points

        projections = {
            linearizer.type.value: linearizer.create_projection(
                points[lon_dim], points[1 - lon_dim], longitude_first=(lon_dim == 0)
            )
            for linearizer in linearizers
        }
        builder.add_linearizers(projections)

    @staticmethod
    def replace_in_compound_crs(
        components: Sequence,
        linearizations: Sequence[GridCacheValue],
        reorder_grid_to_crs: np.ndarray,
    ) -> list:
        """Replaces geographic components by the projected CRS of linearizations.

        Axes of the geographic component are matched to axes of the projected
        CRS by colinear directions, or by abbreviation when the projected axes
        are not east/north oriented (polar stereographic). When the orders
        differ, the rows of ``reorder_grid_to_crs`` for those dimensions are
        permuted in place.

        Parameters
        ----------
        components : Sequence
            The components of the compound CRS, in axis order.
        linearizations : Sequence[GridCacheValue]
            The fitted localization grids which applied a linearizer.
        reorder_grid_to_crs : np.ndarray
            The affine matrix mapping transform outputs to CRS dimensions.

        Returns
        -------
        list
            The components with geographic CRS replaced.

        Raises
        ------
        CannotInjectComponentError
            If no geographic component can be matched to a projected CRS.
        """
        components = list(components)
        offsets = np.cumsum([0] + [_dimension(c) for c in components])

        for value in linearizations:
            target = value.linearization_target
            for index, component in enumerate(components):
                if not isinstance(component, pyproj.CRS) or not component.is_geographic:
                    continue

                mapping = _match_axes(component, target)
                if mapping is None:
                    continue

                offset = offsets[index]
                rows = reorder_grid_to_crs[offset : offset + len(mapping)].copy()
                for source, destination in enumerate(mapping):
                    reorder_grid_to_crs[offset + destination] = rows[source]

                components[index] = target
                break
            else:
                raise CannotInjectComponentError(
                    f"Can not replace a component of the CRS by '{target.name}': "
                    "no geographic component with matching axes."
                )

        return components


def _dimension(component) -> int:
    if isinstance(component, pyproj.CRS):
        return len(component.axis_info)

    return len(component.axis_directions)


def _easting_index(crs: pyproj.CRS) -> int:
    for i, axis in enumerate(crs.axis_info):
        if axis.abbrev.upper() in ("E", "X"):
            return i

    return 0


def _match_axes(source: pyproj.CRS, target: pyproj.CRS) -> list[int] | None:
    """Returns, for each source axis, the index of the matching target axis."""
    source_dirs = [axis.direction for axis in source.axis_info]
    target_dirs = [axis.direction for axis in target.axis_info]
    if len(source_dirs) != len(target_dirs):
        return None

    mapping = []
    for direction in source_dirs:
        matches = [i for i, other in enumerate(target_dirs) if is_colinear(direction, other)]
        if len(matches) != 1:
            break
        mapping.append(matches[0])
    else:
        if sorted(mapping) == list(range(len(target_dirs))):
            return mapping

    # Polar projections have axes pointing toward the pole along meridians.
    # Fallback on easting and northing abbreviations.
    abbrevs = [axis.abbrev.upper() for axis in target.axis_info]
    mapping = []
    for direction in source_dirs:
        if is_colinear(direction, "east"):
            wanted = ("E", "X")
        elif is_colinear(direction, "north"):
            wanted = ("N", "Y")
        else:
            return None

        matches = [i for i, abbrev in enumerate(abbrevs) if abbrev in wanted]
        if len(matches) != 1:
            return None
        mapping.append(matches[0])

    if sorted(mapping) != list(range(len(target_dirs))):
        return None

    return mapping
