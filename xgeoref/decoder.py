"""
Decoder module, the entry point for inferring the grid geometry and the CRS
of the variables of a dataset.

Examples
--------
>>> import xgeoref
>>> ds = xgeoref.open_dataset("swath.nc")
>>> geometry = ds.georef.grid_geometry("sst")
>>> geometry.crs
"""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Hashable
from typing import Any, Sequence

import cf_xarray  # noqa: F401
import numpy as np
import pyproj
import xarray as xr

from xgeoref._logger import _setup_custom_logger
from xgeoref.adjustment import DuplicatedIdentifierError, GridAdjustment
from xgeoref.axis import AxisKind, abbreviation
from xgeoref.cache import SHARED_GRID_CACHE, GridCache, GridCacheKey, GridCacheValue
from xgeoref.convention import Convention, find_convention
from xgeoref.crs import (
    GEO_TRANSFORM_ATTR,
    CompoundCRS,
    first_affected_coordinate,
    geo_transform,
    grid_mapping_crs,
    merge_crs,
)
from xgeoref.dates import normalize_dates
from xgeoref.grid import Grid, GridGeometry
from xgeoref.listeners import StoreListeners
from xgeoref.transform import AffineTransform

logger = _setup_custom_logger(__name__)


def open_dataset(path: str | os.PathLike[Any], **kwargs: Any) -> xr.Dataset:
    """Wraps ``xarray.open_dataset()`` without decoding times.

    Times are kept as numbers so that non-standard date encodings (for
    example "day as %Y%m%d.%f") can be recognized by the decoder.

    Parameters
    ----------
    path : str | os.PathLike
        The path to a netCDF file or an OpenDAP URL.
    **kwargs : Any
        Additional arguments passed on to ``xarray.open_dataset``.

    Returns
    -------
    xr.Dataset
        The dataset, with times not decoded.
    """
    kwargs.setdefault("decode_times", False)

    return xr.open_dataset(path, **kwargs)


class Decoder:
    """Infers grid geometries and CRS for the variables of a dataset.

    A decoder works on a copy of the dataset in which packed dates have been
    converted to the "<unit> since <epoch>" encoding. It is not thread-safe.

    Parameters
    ----------
    dataset : xr.Dataset
        The dataset, preferably opened with ``decode_times=False``.
    convention : Convention | None, optional
        The conventions to apply. By default, the first registered convention
        applicable to the dataset.
    listeners : StoreListeners | None, optional
        Where to report warnings. By default, warnings are logged.
    grid_cache : GridCache | None, optional
        The cache of localization grids shared between decoders. By default,
        the process-wide ``SHARED_GRID_CACHE``.
    """

    def __init__(
        self,
        dataset: xr.Dataset,
        convention: Convention | None = None,
        listeners: StoreListeners | None = None,
        grid_cache: GridCache | None = None,
    ):
        self.dataset = dataset.copy()
        self.convention = convention if convention is not None else find_convention(dataset)
        self.listeners = (
            listeners if listeners is not None else StoreListeners(dataset.encoding.get("source"))
        )
        self.grid_cache = grid_cache if grid_cache is not None else SHARED_GRID_CACHE
        self.local_grid_cache: dict[GridCacheKey, GridCacheValue] = {}

        self._axis_names: list[str] | None = None
        self._grid_candidates: list[Grid] | None = None
        self._geometries: dict[str, GridGeometry | None] = {}

        self._normalize_dates()

    def __repr__(self) -> str:
        return f"Decoder(source={self.filename!r}, convention={type(self.convention).__name__})"

    @property
    def filename(self) -> str | None:
        return self.listeners.source

    # Dates
    # =====
    def _normalize_dates(self):
        patterns = self.convention.date_patterns()
        for name in list(self.dataset.variables):
            variable = self.dataset[name]
            if variable.ndim not in (1, 2):
                continue

            dim = variable.dims[0]
            axis = None
            if dim != name and dim in self.dataset.variables:
                axis = self.dataset[dim]

            is_time_axis = abbreviation(variable, use_unit=False) is AxisKind.TIME
            result = normalize_dates(variable, is_time_axis, axis, patterns, self.listeners)
            if result is None:
                continue

            logger.debug(
                f"Converted the '{result.encoding['original_units']}' dates of "
                f"'{name}' to '{result.attrs['units']}'."
            )
            if name in self.dataset.coords:
                self.dataset = self.dataset.assign_coords({name: result})
            else:
                self.dataset[name] = result

    # Variables
    # =========
    def _bounds_names(self) -> set[str]:
        """Returns the names of the variables holding cell boundaries."""
        return {str(name) for names in self.dataset.cf.bounds.values() for name in names}

    def _listed_coordinates(self, name: Hashable) -> set[str] | None:
        """Returns the names in the "coordinates" attribute of a variable.

        xarray moves this attribute to ``encoding`` when decoding coordinates,
        and ``cf_xarray`` looks in both places. Returns None if the variable
        lists no coordinates.
        """
        associated = self.dataset.cf.get_associated_variable_names(
            name, skip_bounds=True, error=False
        )
        listed = {str(n) for n in associated.get("coordinates", ()) if n}

        return listed or None

    def _coordinate_names(self) -> set[str]:
        """Returns the names of the variables used as coordinates.

        Those are the variables listed in a "coordinates" attribute, and the
        coordinates that CF attributes identify as an axis (X, Y, Z, T) or as
        a latitude, longitude, vertical or time coordinate.
        """
        cf = self.dataset.cf
        names = {
            str(name)
            for mapping in (cf.axes, cf.coordinates)
            for keys in mapping.values()
            for name in keys
        }
        for name in self.dataset.variables:
            names.update(self._listed_coordinates(name) or ())

        return names

    def axis_names(self) -> list[str]:
        """Returns the names of the variables having the "axis" role."""
        if self._axis_names is not None:
            return self._axis_names

        referenced = self._coordinate_names()
        bounds = self._bounds_names()
        self._axis_names = [
            str(name)
            for name in self.dataset.variables
            if name not in bounds
            and self.convention.role_of(self.dataset[name], referenced) == "axis"
        ]

        return self._axis_names

    def grid_candidates(self) -> list[Grid]:
        """Returns the grids that data variables may use.

        Grids are built from the axes of each data variable, then from each
        group of multi-dimensional axis variables sharing the same dimensions
        (for localization grids which are not at the resolution of the data).
        """
        if self._grid_candidates is not None:
            return self._grid_candidates

        axis_names = self.axis_names()
        bounds = self._bounds_names()
        candidates: dict[tuple, Grid] = {}

        for name, variable in self.dataset.data_vars.items():
            if name in axis_names or name in bounds:
                continue

            listed = self._listed_coordinates(name)
            scalars = listed if listed is not None else set(self.dataset.coords)
            related = []
            for axis_name in axis_names:
                axis = self.dataset[axis_name]
                if axis.ndim == 0:
                    if axis_name in scalars:
                        related.append(axis_name)
                elif set(axis.dims) <= set(variable.dims) and (
                    axis_name in variable.dims or listed is None or axis_name in listed
                ):
                    related.append(axis_name)

            dims = tuple(
                str(dim)
                for dim in variable.dims
                if any(dim in self.dataset[a].dims for a in related)
            )
            if dims:
                key = (dims, tuple(related))
                if key not in candidates:
                    candidates[key] = Grid(self, dims, related)

        groups: dict[tuple[str, ...], list[str]] = {}
        for axis_name in axis_names:
            axis = self.dataset[axis_name]
            if axis.ndim >= 2:
                groups.setdefault(tuple(str(d) for d in axis.dims), []).append(axis_name)

        for dims, names in groups.items():
            key = (dims, tuple(names))
            if key not in candidates:
                candidates[key] = Grid(self, dims, names)

        self._grid_candidates = list(candidates.values())

        return self._grid_candidates

    # Grid
    # ====
    def find_grid(self, name: str, adjustment: GridAdjustment) -> Grid | None:
        """Finds the grid of a variable.

        Variable dimensions are matched to the dimensions of axis variables,
        directly by name or indirectly by dimension labels (see
        :class:`GridAdjustment`) when the localization grid is not at the
        resolution of the data.

        Parameters
        ----------
        name : str
            The variable name.
        adjustment : GridAdjustment
            Receives the relationship between grid and variable dimensions.

        Returns
        -------
        Grid | None
            The grid, or None if no grid has all the variable dimensions.

        Raises
        ------
        DuplicatedIdentifierError
            If a dimension label is ambiguous.
        """
        variable = self.dataset[name]
        axes = [self.dataset[axis_name] for axis_name in self.axis_names()]
        domain = {str(dim) for axis in axes for dim in axis.dims}

        dimensions: list[str | None] = []
        for dim in variable.dims:
            dim = str(dim)
            if dim in domain:
                domain.discard(dim)
                dimensions.append(dim)
            else:
                dimensions.append(None)

        if None in dimensions:
            mapped = False
            for i, dim in enumerate(variable.dims):
                if dimensions[i] is not None:
                    continue

                label = self.convention.name_of_dimension(variable, i)
                if label is None:
                    return None

                if not mapped:
                    mapped = True
                    adjustment.map_label_to_grid_dimensions(variable, axes, domain, self.convention)

                grid_dim = adjustment.label_to_dimension.pop(label, None)
                if grid_dim is None:
                    self.listeners.warning(
                        f"Can not relate dimension '{dim}' of '{name}' to a grid "
                        f"dimension: no axis dimension is labelled '{label}'.",
                        variable=name,
                    )
                    return None

                dimensions[i] = grid_dim
                if grid_dim in adjustment.grid_to_variable:
                    raise RuntimeError(
                        f"Grid dimension '{grid_dim}' is already associated to a "
                        f"dimension of '{name}'."
                    )
                adjustment.grid_to_variable[grid_dim] = str(dim)

        fallback: Grid | None = None
        fallback_matches = False
        axis_names = self.convention.names_of_axis_variables(variable)
        for candidate in self.grid_candidates():
            grid = candidate.for_dimensions(dimensions)  # type: ignore[arg-type]
            if grid is None:
                continue

            matches = grid.contains_all_named_axes(axis_names)
            if matches and grid.source_dimensions == len(dimensions):
                return grid

            if matches or not fallback_matches:
                if (
                    matches != fallback_matches
                    or fallback is None
                    or grid.source_dimensions > fallback.source_dimensions
                ):
                    fallback_matches = matches
                    fallback = grid

        return fallback

    def grid_geometry(self, name: str) -> GridGeometry | None:
        """Returns the grid geometry of a variable, or None if it has none.

        The geometry combines the axes of the variable grid with the CRS of
        its grid mapping, if any. Problems are reported to the listeners and
        the result is computed only once.

        Parameters
        ----------
        name : str
            The variable name.

        Returns
        -------
        GridGeometry | None
            The grid geometry.

        Raises
        ------
        KeyError
            If the dataset has no such variable.
        """
        if name in self._geometries:
            return self._geometries[name]

        if name not in self.dataset.variables:
            raise KeyError(f"The variable '{name}' does not exist in the dataset.")

        self._geometries[name] = None
        try:
            geometry = self._create_grid_geometry(name)
        except (DuplicatedIdentifierError, RuntimeError) as err:
            self.listeners.warning(
                f"Can not create the grid geometry of '{name}': {err}",
                exception=err,
                variable=name,
            )
            geometry = None

        self._geometries[name] = geometry

        return geometry

    def _create_grid_geometry(self, name: str) -> GridGeometry | None:
        variable = self.dataset[name]
        mapping, mapping_transform = self._grid_mapping(variable)
        adjustment = GridAdjustment()
        grid = self.find_grid(name, adjustment)

        if grid is None:
            if mapping is None and mapping_transform is None:
                return None

            return self._mapping_geometry(variable, mapping, mapping_transform)

        # Dimensions of the variable which are not in the grid are bands.
        dimensions = [str(dim) for dim in variable.dims]
        for i, expected in enumerate(grid.dimensions):
            expected = adjustment.grid_to_variable.get(expected, expected)
            while dimensions[i] != expected:
                logger.debug(f"Dimension '{dimensions[i]}' of '{name}' is a band dimension.")
                del dimensions[i]
                if len(dimensions) < len(grid.dimensions):
                    raise RuntimeError(f"Can not align the dimensions of '{name}' to {grid!r}.")

        geometry = grid.grid_geometry()
        if geometry is None:
            return None

        if geometry.extent:
            n = len(geometry.extent)
            sizes = tuple(
                int(self.dataset.sizes[dimensions[n - 1 - i]]) for i in range(n)
            )
            if sizes != geometry.extent:
                data_to_grid = adjustment.data_to_grid_indices(geometry.dimension_names)
                if data_to_grid is None or len(data_to_grid) < n:
                    self.listeners.warning(
                        f"The size of '{name}' differs from the size of its "
                        "localization grid, but no resampling interval is declared.",
                        variable=name,
                    )
                    return None

                geometry = dataclasses.replace(
                    GridAdjustment.scale(geometry, sizes, data_to_grid),
                    dimension_names=tuple(dimensions[n - 1 - i] for i in range(n)),
                )

        if mapping is not None or mapping_transform is not None:
            geometry = self._merge_mapping(name, geometry, mapping, mapping_transform)

        return geometry

    def _grid_mapping(
        self, variable: xr.DataArray
    ) -> tuple[pyproj.CRS | None, AffineTransform | None]:
        """Returns the CRS and the GDAL "GeoTransform" of the variable grid mapping."""
        for mapping_name in self.convention.name_of_mapping_node(variable):
            if mapping_name not in self.dataset.variables:
                self.listeners.invalid_attribute(
                    str(variable.name),
                    "grid_mapping",
                    mapping_name,
                    KeyError(f"No variable named '{mapping_name}'."),
                )
                continue

            mapping = self.dataset[mapping_name]
            crs = grid_mapping_crs(mapping, self.listeners)
            transform = geo_transform(mapping, self.listeners)
            if crs is not None or transform is not None:
                return crs, transform

        return None, None

    def _mapping_geometry(
        self,
        variable: xr.DataArray,
        mapping: pyproj.CRS | None,
        transform: AffineTransform | None,
    ) -> GridGeometry:
        # The extent is the one of the variable since no axis describes it.
        dims = tuple(str(dim) for dim in reversed(variable.dims))
        extent = tuple(int(self.dataset.sizes[dim]) for dim in dims)
        if transform is not None and len(dims) != transform.source_dimensions:
            logger.debug(
                f"The GeoTransform of '{variable.name}' is not used: the variable "
                f"has {len(dims)} dimensions."
            )
            transform = None

        return GridGeometry(
            extent=extent,
            dimension_names=dims,
            anchor="center" if transform is None else "corner",
            grid_to_crs=transform,
            crs=None if mapping is None else CompoundCRS([mapping]),
        )

    def _merge_mapping(
        self,
        name: str,
        geometry: GridGeometry,
        mapping: pyproj.CRS | None,
        transform: AffineTransform | None = None,
    ) -> GridGeometry:
        first = 0
        if mapping is not None and geometry.crs is None:
            geometry = dataclasses.replace(geometry, crs=CompoundCRS([mapping]))
        elif mapping is not None:
            try:
                first, _ = first_affected_coordinate(geometry.crs, mapping)
                crs = merge_crs(geometry.crs, mapping)
            except ValueError as err:
                self.listeners.warning(
                    f"The grid mapping of '{name}' is ignored: {err}",
                    exception=err,
                    variable=name,
                )
                return geometry

            if crs is not geometry.crs:
                geometry = dataclasses.replace(geometry, crs=crs)

        if transform is not None:
            geometry = self._substitute_transform(name, geometry, transform, first)

        return geometry

    def _substitute_transform(
        self, name: str, geometry: GridGeometry, transform: AffineTransform, first: int
    ) -> GridGeometry:
        """Replaces the horizontal part of the grid to CRS conversion.

        ``transform`` maps the two first grid dimensions to the CRS dimensions
        starting at ``first``. The other dimensions are unchanged.
        """
        matrix = transform.matrix
        if geometry.anchor == "center":
            # GDAL coefficients are relative to cell corners.
            matrix = matrix @ np.array([[1.0, 0.0, 0.5], [0.0, 1.0, 0.5], [0.0, 0.0, 1.0]])

        implicit = geometry.grid_to_crs
        if implicit is None and len(geometry.extent) == 2:
            return dataclasses.replace(geometry, grid_to_crs=AffineTransform(matrix))

        if (
            not isinstance(implicit, AffineTransform)
            or implicit.source_dimensions < 2
            or implicit.target_dimensions < first + 2
        ):
            self.listeners.warning(
                f"The GeoTransform of the grid mapping of '{name}' is ignored: it "
                "can only replace the horizontal part of an affine grid to CRS "
                "conversion.",
                variable=name,
                attribute=GEO_TRANSFORM_ATTR,
            )
            return geometry

        merged = implicit.matrix.copy()
        merged[first : first + 2, :] = 0
        merged[first : first + 2, :2] = matrix[:2, :2]
        merged[first : first + 2, -1] = matrix[:2, 2]

        return dataclasses.replace(geometry, grid_to_crs=AffineTransform(merged))

    def crs(self, name: str) -> CompoundCRS | None:
        """Returns the CRS of a variable, or None if it has none."""
        geometry = self.grid_geometry(name)

        return None if geometry is None else geometry.crs

    def grid_geometries(self, names: Sequence[str] | None = None) -> dict[str, GridGeometry]:
        """Returns the grid geometries of the given (default all data) variables.

        Variables without grid geometry are omitted.
        """
        if names is None:
            names = [str(name) for name in self.dataset.data_vars]

        geometries = {}
        for name in names:
            geometry = self.grid_geometry(name)
            if geometry is not None:
                geometries[name] = geometry

        return geometries


@xr.register_dataset_accessor("georef")
class GeoreferencingAccessor:
    """
    An accessor class that provides georeferencing attributes and methods on
    xarray Datasets through the ``.georef`` attribute.

    Examples
    --------

    Import GeoreferencingAccessor class:

    >>> import xgeoref  # or from xgeoref import decoder

    Use GeoreferencingAccessor class:

    >>> ds = xr.open_dataset("/path/to/file", decode_times=False)
    >>>
    >>> ds.georef.<attribute>
    >>> ds.georef.<method>
    >>> ds.georef.<property>

    Parameters
    ----------
    dataset : xr.Dataset
        A Dataset object.
    """

    def __init__(self, dataset: xr.Dataset):
        self._dataset: xr.Dataset = dataset
        self._decoder: Decoder | None = None

    @property
    def decoder(self) -> Decoder:
        """The decoder of this dataset, created on first use."""
        if self._decoder is None:
            self._decoder = Decoder(self._dataset)

        return self._decoder

    def grid_geometry(self, name: str) -> GridGeometry | None:
        """Returns the grid geometry of a variable (see :meth:`Decoder.grid_geometry`)."""
        return self.decoder.grid_geometry(name)

    def crs(self, name: str) -> CompoundCRS | None:
        """Returns the CRS of a variable (see :meth:`Decoder.crs`)."""
        return self.decoder.crs(name)

    def normalize_dates(self) -> xr.Dataset:
        """Returns a copy of the dataset with packed dates converted.

        Variables whose units are a non-standard date encoding (for example
        "day as %Y%m%d.%f") are converted to the "<unit> since <epoch>"
        encoding.
        """
        return self.decoder.dataset.copy()
