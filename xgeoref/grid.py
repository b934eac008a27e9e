"""
Grid module for building the geometry of a grid from its coordinate axes.

A :class:`Grid` is a set of dimensions together with the coordinate variables
(:class:`Axis`) defined over those dimensions. Its :meth:`Grid.grid_geometry`
builds the conversion from grid indices to CRS coordinates:

* regular one-dimensional axes contribute scale and offset coefficients to
  an affine matrix;
* irregular one-dimensional axes contribute a 1-D interpolation;
* pairs of two-dimensional axes (for example ``lat(y, x)`` and ``lon(y, x)``)
  contribute a fitted localization grid, possibly in a map projection where
  the grid is closer to linear.

Dimension orders
----------------
xarray lists dimensions from the slowest to the fastest varying (the
"netCDF" order). Grid geometries list them in the reverse ("natural") order,
where the first dimension is the column index.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal, Sequence

import cftime
import numpy as np
import xarray as xr

from xgeoref._logger import _setup_custom_logger
from xgeoref.axis import (
    AxisKind,
    abbreviation,
    absolute_direction,
    is_colinear,
    is_opposite,
    opposite,
)
from xgeoref.cache import GlobalGridCacheKey, GridCacheKey, GridCacheValue
from xgeoref.crs import CompoundCRS, build_crs
from xgeoref.dates import DEFAULT_CALENDAR, DEFAULT_TIME_UNITS
from xgeoref.linearizer import Linearizer
from xgeoref.listeners import StoreListeners
from xgeoref.localization import LocalizationGridBuilder, LocalizationGridError
from xgeoref.transform import (
    AffineTransform,
    Interpolation1D,
    MathTransform,
    PassThroughTransform,
    concatenate,
)
from xgeoref.units import (
    DEGREES,
    RADIANS,
    convert,
    direction_of,
    is_angular,
    parse_unit,
    wraparound_period,
)

if TYPE_CHECKING:
    from xgeoref.decoder import Decoder

logger = _setup_custom_logger(__name__)

Anchor = Literal["center", "corner"]

# Order in which scalar axes are placed among other axes.
_DIRECTION_ORDER = {
    None: 0,
    "north": 1,
    "east": 5,
    "south": 9,
    "west": 13,
    "up": 17,
    "down": 18,
    "future": 30,
    "past": 31,
}

_ROLE_ORDER = {"X": 0, "Y": 1, "Z": 2, "T": 3}


@dataclass(frozen=True)
class GridGeometry:
    """The georeferencing of a grid.

    Attributes
    ----------
    extent : tuple[int, ...]
        The number of cells along each grid dimension, in natural order.
    dimension_names : tuple[str, ...]
        The names of the grid dimensions, in natural order.
    anchor : Anchor
        Whether ``grid_to_crs`` maps integer indices to cell centers or
        cell corners.
    grid_to_crs : MathTransform | None
        The conversion from grid indices (natural order) to CRS coordinates.
    crs : CompoundCRS | None
        The coordinate reference system.
    """

    extent: tuple[int, ...]
    dimension_names: tuple[str, ...]
    anchor: Anchor = "center"
    grid_to_crs: MathTransform | None = None
    crs: CompoundCRS | None = None

    def coordinates(self, *indices: float) -> np.ndarray:
        """Returns the CRS coordinates of a cell, given its natural-order indices."""
        if self.grid_to_crs is None:
            raise ValueError("This grid geometry has no grid to CRS conversion.")

        return self.grid_to_crs.transform(np.asarray(indices, dtype=np.float64))[0]


class Axis:
    """A coordinate variable used as an axis of a grid.

    Parameters
    ----------
    coordinates : xr.DataArray
        The coordinate variable.
    kind : AxisKind | None
        The kind of axis, or None if unknown.
    grid_dimension_indices : Sequence[int]
        For each dimension of the variable, its index in the grid dimensions
        (netCDF order).
    decoder : Decoder | None, optional
        The decoder owning the grid, needed for caching localization grids.
    """

    def __init__(
        self,
        coordinates: xr.DataArray,
        kind: AxisKind | None,
        grid_dimension_indices: Sequence[int],
        decoder: Decoder | None = None,
    ):
        self.coordinates = coordinates
        self.name = str(coordinates.name)
        self.kind = kind
        self.decoder = decoder
        self.units: str | None = coordinates.attrs.get("units")

        self._data_indices = list(grid_dimension_indices)
        self._data, time_units = _read_numbers(coordinates)
        if time_units is not None:
            self.units = time_units

        self.grid_dimension_indices = list(grid_dimension_indices)
        self.grid_sizes = list(self._data.shape)
        self.direction = self._resolve_direction()

        if "_FillValue" in coordinates.attrs or "_FillValue" in coordinates.encoding:
            self._trim_fill_values()

    def __repr__(self) -> str:
        kind = None if self.kind is None else self.kind.value
        return f"Axis({self.name!r}, kind={kind!r}, dims={self.grid_dimension_indices})"

    @property
    def listeners(self) -> StoreListeners:
        if self.decoder is not None:
            return self.decoder.listeners

        return StoreListeners()

    @property
    def dimension(self) -> int:
        """The number of grid dimensions of this axis."""
        return len(self.grid_dimension_indices)

    def _resolve_direction(self) -> str | None:
        positive = self.coordinates.attrs.get("positive")
        direction = positive.strip().lower() if isinstance(positive, str) else None
        if direction not in ("up", "down"):
            direction = None

        is_signed = direction is not None
        check = None if self.kind is None else self.kind.direction
        consistent = True
        if direction is None:
            direction = check
        elif check is not None:
            consistent = is_colinear(direction, check)

        if consistent:
            check = direction_of(self.units)
            if direction is None:
                direction = check
            elif check is not None:
                consistent = is_colinear(direction, check)

        if not consistent:
            self.listeners.warning(
                f"The direction of the '{self.name}' axis is ambiguous: "
                f"'{direction}' or '{check}'.",
                variable=self.name,
            )
            if is_signed and check is not None:
                if is_opposite(direction):
                    check = opposite(check)
                direction = check

        return direction

    def _trim_fill_values(self):
        # Trailing rows may be all NaN when the grid has a fill value.
        if self._data.ndim == 0:
            return

        flat = self._data.ravel()
        valid = np.flatnonzero(~np.isnan(flat))
        n = int(valid[-1]) + 1 if valid.size else 0
        page = int(np.prod(self._data.shape[1:]))
        rows = -(-n // page) if page else 0
        if rows < self.grid_sizes[0]:
            logger.debug(f"Trimmed {self.grid_sizes[0] - rows} rows of NaN from '{self.name}'.")
            self._data = self._data[:rows]
            self.grid_sizes[0] = rows

    def read(self) -> np.ndarray:
        """Returns the coordinate values as a flat float64 vector."""
        return self._data.ravel()

    def values(self) -> np.ndarray:
        """Returns the coordinate values with dimensions in grid order."""
        return np.transpose(self._data, np.argsort(self._data_indices))

    def _oriented(self, indices: Sequence[int]) -> np.ndarray:
        return np.transpose(self._data, [self._data_indices.index(i) for i in indices])

    def _grid_shape(self) -> tuple[int, ...]:
        """The sizes of the axis dimensions, in grid order."""
        order = np.argsort(self.grid_dimension_indices)
        return tuple(self.grid_sizes[i] for i in order)

    # Wraparound
    # ==========
    def is_wraparound(self) -> bool:
        """Whether this axis may have a wraparound range, like longitudes."""
        if self.kind is None:
            return absolute_direction(self.direction) == "east" and is_angular(self.units)

        return self.kind is AxisKind.LONGITUDE

    def wraparound_range(self) -> float:
        """The period of a wraparound axis, or NaN if not a wraparound axis."""
        if not self.is_wraparound():
            return math.nan

        period = wraparound_period(self.units)
        if math.isnan(period):
            self.listeners.warning(
                f"The units of '{self.name}' ({self.units!r}) are not angular.",
                variable=self.name,
            )

        return period

    # Dimension order
    # ===============
    def main_dimension_first(self, previous: Sequence[Axis]):
        """Swaps the two grid dimensions if coordinates vary faster in the second one.

        Parameters
        ----------
        previous : Sequence[Axis]
            The axes already examined. A swap which would give this axis the
            same first dimension as one of them is not done, and a swap is
            forced if it avoids such a collision.
        """
        d0, d1 = self.grid_dimension_indices[0], self.grid_dimension_indices[1]
        swap = False
        for other in previous:
            if other.grid_dimension_indices:
                first = other.grid_dimension_indices[0]
                if first == d1:
                    return

                swap = first == d0
                if swap:
                    break

        if not swap:
            data = self._oriented([d0, d1])
            x = _sample_indices(self.grid_sizes[0])
            y = _sample_indices(self.grid_sizes[1])
            x_inc = y_inc = 0.0
            for i in x:
                for j in y:
                    origin = data[i, j]
                    x_inc += data[i + 1, j] - origin
                    y_inc += data[i, j + 1] - origin

            if not (abs(y_inc) > abs(x_inc)):
                return

        self.grid_sizes[0], self.grid_sizes[1] = self.grid_sizes[1], self.grid_sizes[0]
        self.grid_dimension_indices[0], self.grid_dimension_indices[1] = d1, d0

    def main_direction(self) -> int:
        """0 if coordinates vary mostly along the first grid dimension, else 1."""
        if self.dimension < 2:
            return 0

        return 0 if self.grid_dimension_indices[0] <= self.grid_dimension_indices[1] else 1

    # Transform
    # =========
    def try_set_transform(
        self,
        matrix: np.ndarray,
        last_src_dim: int,
        tgt_dim: int,
        non_linears: list[MathTransform | None],
    ) -> bool:
        """Sets the coefficients of this axis in the grid to CRS matrix.

        Parameters
        ----------
        matrix : np.ndarray
            The affine matrix, modified in place.
        last_src_dim : int
            The number of grid dimensions minus one.
        tgt_dim : int
            The row of this axis in the matrix.
        non_linears : list[MathTransform | None]
            Where to append a transform if the axis is not linear. ``None`` is
            appended for two-dimensional axes, to be paired later in a
            localization grid.

        Returns
        -------
        bool
            True if the coefficients were set, False if something was
            appended to ``non_linears``.
        """
        if self.dimension == 0:
            data = self.read()
            if data.size:
                matrix[tgt_dim, -1] = data[0]

            return True

        if self.dimension == 1:
            src_dim = last_src_dim - self.grid_dimension_indices[0]
            return self._set_or_interpolate(matrix, src_dim, tgt_dim, self.read(), non_linears)

        if self.dimension == 2:
            values = self.values()
            low, high = sorted(self.grid_dimension_indices)
            if np.array_equal(values, np.broadcast_to(values[:1], values.shape), equal_nan=True):
                vector, grid_dim = values[0], high
            elif np.array_equal(
                values, np.broadcast_to(values[:, :1], values.shape), equal_nan=True
            ):
                vector, grid_dim = values[:, 0], low
            else:
                vector = None

            if vector is not None:
                src_dim = last_src_dim - grid_dim
                return self._set_or_interpolate(matrix, src_dim, tgt_dim, vector, non_linears)

        non_linears.append(None)

        return False

    def _set_or_interpolate(self, matrix, src_dim, tgt_dim, data, non_linears) -> bool:
        if self._set_linear(matrix, src_dim, tgt_dim, data):
            return True

        non_linears.append(Interpolation1D(data) if data.size >= 2 else None)

        return False

    def _set_linear(self, matrix: np.ndarray, src_dim: int, tgt_dim: int, data: np.ndarray) -> bool:
        n = data.size - 1
        if n < 0:
            return False

        first = float(data[0])
        if n >= 1:
            increment = (float(data[-1]) - first) / n
            expected = first + increment * np.arange(n + 1)
            dtype = self.coordinates.dtype
            eps = np.finfo(dtype if dtype.kind == "f" else np.float64).eps
            tolerance = 4 * eps * max(float(np.max(np.abs(data))), abs(increment))
            if not np.all(np.abs(data - expected) <= tolerance):
                return False
        else:
            increment = math.nan

        matrix[tgt_dim, src_dim] = increment
        matrix[tgt_dim, -1] = first

        return True

    def is_cell_corner(self) -> bool:
        """Whether the coordinates seem to map cell corners instead of centers.

        Longitudes starting at -180° (or 0° if they go beyond 180°) and
        latitudes starting at -90° can not be cell centers.
        """
        if self.kind is AxisKind.LONGITUDE:
            minimum, wraparound = -180.0, True
        elif self.kind is AxisKind.LATITUDE:
            minimum, wraparound = -90.0, False
        else:
            return False

        data = self.read()
        if data.size == 0:
            return False

        unit = DEGREES if self.units is None else parse_unit(self.units)
        if unit is None or unit not in (DEGREES, RADIANS):
            self.listeners.warning(
                f"The units of '{self.name}' ({self.units!r}) are not angular.",
                variable=self.name,
            )
            return False

        first = convert(float(data[0]), unit, DEGREES)
        last = convert(float(data[-1]), unit, DEGREES)
        if wraparound and last > 180:
            minimum = 0.0

        return first == minimum

    # Localization grid
    # =================
    def create_localization_grid(self, other: Axis) -> GridCacheValue | None:
        """Fits a localization grid using this axis and another one.

        The fitted grid is cached in the decoder and in the global grid cache.

        Parameters
        ----------
        other : Axis
            The other two-dimensional axis over the same grid dimensions.

        Returns
        -------
        GridCacheValue | None
            The fitted grid, or None if the two axes are not two-dimensional
            axes over the same grid dimensions with the same size.

        Raises
        ------
        LocalizationGridError
            If the grid can not be fitted.
        """
        if self.dimension != 2 or other.dimension != 2:
            return None
        if sorted(self.grid_dimension_indices) != sorted(other.grid_dimension_indices):
            return None

        if self.decoder is None:
            raise ValueError(f"The '{self.name}' axis is not attached to a decoder.")

        ri = self.main_direction()
        ro = other.main_direction()
        height, width = self._grid_shape()
        if other._grid_shape() != (height, width):
            self.listeners.warning(
                f"The '{self.name}' and '{other.name}' localization grids have "
                f"different sizes: {self._grid_shape()} and {other._grid_shape()}.",
                variable=self.name,
            )
            return None

        decoder = self.decoder
        local_key = GridCacheKey(width, height, self, other)
        value = local_key.cached(decoder)
        if value is not None:
            return value

        start = time.perf_counter()
        x_values = self.values()
        y_values = other.values()
        linearizers = decoder.convention.linearizers(decoder)
        global_key = GlobalGridCacheKey(local_key, x_values, y_values, linearizers)

        def compute() -> GridCacheValue:
            builder = LocalizationGridBuilder(width, height)
            builder.set_control_points(x_values, y_values)

            period = self.wraparound_range()
            if not math.isnan(period):
                builder.resolve_wraparound_axis(0, ri, period)
            period = other.wraparound_range()
            if not math.isnan(period):
                builder.resolve_wraparound_axis(1, ro, period)

            if linearizers:
                Linearizer.set_candidates_on_grid([self, other], linearizers, builder)

            return GridCacheValue(linearizers, builder)

        try:
            value = decoder.grid_cache.get_or_compute(global_key, compute)
        except LocalizationGridError as err:
            for linearizer in linearizers:
                cause = linearizer.potential_cause()
                if cause is not None:
                    err.potential_cause = cause
                    break
            raise

        logger.debug(
            f"Localization grid of '{self.name}' and '{other.name}' ({width}×{height}) "
            f"obtained in {time.perf_counter() - start:.3f} s."
        )

        return local_key.cache(decoder, value)


def _sample_indices(length: int) -> list[int]:
    if length <= 1:
        return []
    if length <= 4:
        return list(range(0, length - 1))

    return [0, length // 2, length - 2]


def _read_numbers(coordinates: xr.DataArray) -> tuple[np.ndarray, str | None]:
    """Reads coordinate values as float64, converting decoded dates to days."""
    data = np.asarray(coordinates.values)

    if data.dtype.kind == "M":
        seconds = data.astype("datetime64[s]").astype(np.float64)
        return seconds / 86400.0, DEFAULT_TIME_UNITS

    if data.dtype.kind == "O" and data.size and isinstance(data.flat[0], cftime.datetime):
        calendar = data.flat[0].calendar or DEFAULT_CALENDAR
        days = cftime.date2num(data, DEFAULT_TIME_UNITS, calendar=calendar)
        return np.asarray(days, dtype=np.float64), DEFAULT_TIME_UNITS

    return data.astype(np.float64), None


class Grid:
    """A set of dimensions with the axes defined over them.

    Parameters
    ----------
    decoder : Decoder
        The decoder of the dataset.
    dimensions : Sequence[str]
        The grid dimensions, in netCDF order.
    axis_names : Sequence[str]
        The names of the axis variables.
    """

    def __init__(self, decoder: Decoder, dimensions: Sequence[str], axis_names: Sequence[str]):
        self.decoder = decoder
        self.dimensions = tuple(dimensions)
        self.axis_names = tuple(axis_names)

        self.anchor: Anchor = "center"
        self._axes: list[Axis] | None = None
        self._crs: CompoundCRS | None = None
        self._crs_determined = False
        self._geometry: GridGeometry | None = None
        self._geometry_determined = False
        self._derived: dict[tuple[str, ...], Grid] = {}

    def __repr__(self) -> str:
        return f"Grid(dims={self.dimensions}, axes={self.axis_names})"

    @property
    def name(self) -> str:
        return " ".join(self.axis_names)

    @property
    def source_dimensions(self) -> int:
        return len(self.dimensions)

    def for_dimensions(self, dimensions: Sequence[str]) -> Grid | None:
        """Returns this grid with its dimensions in the given order.

        Parameters
        ----------
        dimensions : Sequence[str]
            The desired dimensions, in order. May contain dimensions which
            are not in this grid; they are ignored.

        Returns
        -------
        Grid | None
            This grid if the order is the same, a grid with the same axes
            and reordered dimensions if it differs, or None if some
            dimensions of this grid are missing.
        """
        ordered = tuple(d for d in dimensions if d in self.dimensions)
        if len(set(ordered)) != len(self.dimensions):
            return None
        if ordered == self.dimensions:
            return self

        grid = self._derived.get(ordered)
        if grid is None:
            grid = self._derived[ordered] = Grid(self.decoder, ordered, self.axis_names)

        return grid

    def contains_all_named_axes(self, names: Sequence[str] | None) -> bool:
        """Whether this grid has all the given axes (True if ``names`` is None)."""
        if names is None:
            return True

        return all(name in self.axis_names for name in names)

    # Axes
    # ====
    def axes(self) -> list[Axis]:
        """Returns the axes of this grid, in CRS order.

        One-dimensional axes are examined first. Two-dimensional axes then
        put their main dimension first (see :meth:`Axis.main_dimension_first`),
        wraparound axes last. Scalar axes are placed by direction.
        """
        if self._axes is not None:
            return self._axes

        axes = self._create_axes()

        workspace = [axis for axis in axes if axis.dimension <= 1]
        pending = [axis for axis in axes if axis.dimension > 1]
        deferred = [axis for axis in pending if axis.is_wraparound()]
        for axis in [a for a in pending if not a.is_wraparound()] + deferred:
            axis.main_dimension_first(workspace)
            workspace.append(axis)

        for axis in [a for a in axes if a.dimension == 0]:
            axes.remove(axis)
            order = _DIRECTION_ORDER.get(axis.direction, 0)
            position = 0
            for j, other in enumerate(axes):
                if order > _DIRECTION_ORDER.get(other.direction, 0):
                    position = j + 1
            axes.insert(position, axis)

        self._axes = axes

        return axes

    def _create_axes(self) -> list[Axis]:
        dataset = self.decoder.dataset
        last = len(self.dimensions) - 1
        axes = []
        for name in self.axis_names:
            variable = dataset[name]
            if any(dim not in self.dimensions for dim in variable.dims):
                logger.debug(f"'{name}' is not defined over the dimensions of {self!r}.")
                continue

            indices = [self.dimensions.index(str(dim)) for dim in variable.dims]
            axes.append(Axis(variable, abbreviation(variable), indices, self.decoder))

        def order(axis: Axis):
            natural = last - max(axis.grid_dimension_indices) if axis.dimension else len(self.dimensions)
            role = 4 if axis.kind is None else _ROLE_ORDER[axis.kind.role]
            return (natural, role)

        return sorted(axes, key=order)

    # CRS
    # ===
    def coordinate_reference_system(
        self,
        linearizations: Sequence[GridCacheValue] | None = None,
        reorder_grid_to_crs: np.ndarray | None = None,
    ) -> CompoundCRS | None:
        """Returns the CRS inferred from the axes of this grid.

        The result is cached, unless linearizations are given.

        Parameters
        ----------
        linearizations : Sequence[GridCacheValue] | None, optional
            The localization grids fitted in a projected CRS.
        reorder_grid_to_crs : np.ndarray | None, optional
            The affine matrix whose rows are permuted if the projected CRS
            axis order differs from the geographic one.
        """
        use_cache = not linearizations
        if use_cache and self._crs_determined:
            return self._crs

        if use_cache:
            self._crs_determined = True
        try:
            crs = build_crs(self.axes(), self.decoder.convention, name=self.name)
            if linearizations:
                components = Linearizer.replace_in_compound_crs(
                    crs.components, linearizations, reorder_grid_to_crs
                )
                crs = CompoundCRS(components, name=crs.name)
        except NotImplementedError:
            raise
        except (ValueError, RuntimeError) as err:
            self._can_not_create("coordinate reference system", err)
            return None

        if use_cache:
            self._crs = crs

        return crs

    # Geometry
    # ========
    def grid_geometry(self) -> GridGeometry | None:
        """Returns the geometry of this grid, or None if it can not be built.

        The geometry is computed once. Failures are reported as warnings.
        """
        if self._geometry_determined:
            return self._geometry

        self._geometry_determined = True
        try:
            self._geometry = self._create_geometry()
        except NotImplementedError:
            raise
        except (ValueError, RuntimeError) as err:
            self._can_not_create("grid geometry", err)

        return self._geometry

    def _create_geometry(self) -> GridGeometry | None:
        axes = self.axes()
        n_src = len(self.dimensions)
        last_src = n_src - 1
        n_tgt = len(axes)

        affine = np.zeros((n_tgt + 1, n_src + 1))
        affine[n_tgt, n_src] = 1
        deferred: list[int] = []
        non_linears: list[MathTransform | None] = []
        for tgt_dim, axis in enumerate(axes):
            if not axis.try_set_transform(affine, last_src, tgt_dim, non_linears):
                deferred.append(tgt_dim)

        # Non-linear rows select the grid dimension not yet used by another row,
        # in the preference order of the axis.
        grid_dims = [-1] * len(non_linears)
        for i, tgt_dim in enumerate(deferred):
            for index in axes[tgt_dim].grid_dimension_indices:
                src_dim = last_src - index
                if np.any(affine[:, src_dim] != 0):
                    continue
                grid_dims[i] = src_dim
                affine[tgt_dim, src_dim] = 1
                break

        linearizations: list[GridCacheValue] = []
        i = 0
        while i < len(non_linears):
            if non_linears[i] is None:
                for j in range(i + 1, len(non_linears)):
                    if non_linears[j] is not None:
                        continue

                    pair = [axes[deferred[i]], axes[deferred[j]]]
                    src_dim, other_dim = grid_dims[i], grid_dims[j]
                    if src_dim - other_dim == 1:
                        pair.reverse()
                    elif src_dim - other_dim != -1:
                        continue

                    value = pair[0].create_localization_grid(pair[1])
                    if value is None:
                        continue

                    non_linears[i] = value.grid_to_crs
                    del non_linears[j], deferred[j], grid_dims[j]
                    if other_dim < src_dim:
                        grid_dims[i] = other_dim
                    if value.linearization_target is not None:
                        linearizations.append(value)
                    break
            i += 1

        # An orphan CRS dimension means that the variable is not a grid,
        # for example a trajectory.
        if any(dim < 0 for dim in grid_dims):
            return None

        crs = self.coordinate_reference_system(linearizations, affine)

        steps: list[MathTransform] = []
        for src_dim, tr in zip(grid_dims, non_linears):
            if tr is not None:
                steps.append(
                    PassThroughTransform(src_dim, tr, n_src - (src_dim + tr.source_dimensions))
                )
        steps.append(AffineTransform(affine))
        grid_to_crs = concatenate(*steps)

        self.anchor = "corner" if any(axis.is_cell_corner() for axis in axes) else "center"

        return GridGeometry(
            extent=self._extent(axes),
            dimension_names=tuple(reversed(self.dimensions)),
            anchor=self.anchor,
            grid_to_crs=grid_to_crs,
            crs=crs,
        )

    def _extent(self, axes: Sequence[Axis]) -> tuple[int, ...]:
        sizes = [int(self.decoder.dataset.sizes[dim]) for dim in self.dimensions]
        for axis in axes:
            for index, size in zip(axis.grid_dimension_indices, axis.grid_sizes):
                sizes[index] = min(sizes[index], size)

        return tuple(reversed(sizes))

    def _can_not_create(self, what: str, err: Exception):
        listeners = self.decoder.listeners
        listeners.warning(
            f"Can not create the {what} of grid '{self.name}': {err}", exception=err
        )

        if isinstance(err, LocalizationGridError) and err.potential_cause is not None:
            listeners.info(err.potential_cause, exception=err)
