"""
Adjustment module for relating the dimensions of a data variable to the
dimensions of a localization grid having a different size.

Some satellite products provide latitudes and longitudes only every n-th
cell. For example the data variable may be ``SST(data_y, data_x)`` with
2000×1500 cells while the localization grid is ``Latitude(grid_y, grid_x)``
with 200×150 cells. The relationship between ``data_y`` and ``grid_y`` is
declared by labels in attributes::

    SST:dim0 = "Line"
    SST:dim1 = "Pixel"
    Latitude:dim0 = "Line"
    Latitude:dim1 = "Pixel"
    Latitude:resampling_interval = 10
"""

from __future__ import annotations

import dataclasses
import math
from typing import TYPE_CHECKING, Sequence

import xarray as xr

from xgeoref.transform import AffineTransform, concatenate

if TYPE_CHECKING:
    from xgeoref.convention import Convention
    from xgeoref.grid import GridGeometry


class DuplicatedIdentifierError(ValueError):
    """Raised when a dimension label is associated to two grid dimensions."""


class GridAdjustment:
    """The mapping from grid dimensions to the dimensions of one data variable.

    An instance is created for each grid geometry resolution and is not
    shared between variables.

    Attributes
    ----------
    grid_to_variable : dict[str, str]
        Grid dimension names mapped to the variable dimension names which
        correspond to them but have a different name.
    label_to_dimension : dict[str, str]
        Dimension labels mapped to grid dimension names.
    """

    def __init__(self):
        self.grid_to_variable: dict[str, str] = {}
        self.label_to_dimension: dict[str, str] = {}
        self._label_owners: dict[str, str] = {}
        self._grid_to_data: dict[str, float] = {}

    def map_label_to_grid_dimensions(
        self,
        variable: xr.DataArray,
        axes: Sequence[xr.DataArray],
        domain: set[str],
        convention: Convention,
    ):
        """Collects the labels of the dimensions of axis variables.

        Parameters
        ----------
        variable : xr.DataArray
            The data variable for which the grid is searched.
        axes : Sequence[xr.DataArray]
            All axis variables of the dataset.
        domain : set[str]
            The grid dimensions not yet associated to a variable dimension.
            Only those dimensions are labelled.
        convention : Convention
            Provides the labels and resampling intervals.

        Raises
        ------
        DuplicatedIdentifierError
            If the same label is used for two different dimensions and the
            axis variables named by the convention do not resolve which one
            to keep.
        """
        preferred = set(convention.names_of_axis_variables(variable) or ())

        for axis in axes:
            owner = str(axis.name)
            factor = convention.grid_to_data_indices(axis)

            for index, dim in enumerate(axis.dims):
                dim = str(dim)
                if dim not in domain:
                    continue

                label = convention.name_of_dimension(axis, index)
                if label is None:
                    continue

                previous = self.label_to_dimension.get(label)
                if previous is not None and previous != dim:
                    previous_preferred = self._label_owners[label] in preferred
                    if previous_preferred == (owner in preferred):
                        raise DuplicatedIdentifierError(
                            f"The '{label}' dimension label of '{variable.name}' is "
                            f"associated to both the '{previous}' and '{dim}' "
                            "dimensions."
                        )
                    if previous_preferred:
                        continue

                if previous != dim:
                    self.label_to_dimension[label] = dim
                    self._label_owners[label] = owner
                    self._grid_to_data[dim] = factor

    def data_to_grid_indices(self, grid_dimensions: Sequence[str]) -> list[float] | None:
        """Returns the factors converting data indices to grid indices.

        Parameters
        ----------
        grid_dimensions : Sequence[str]
            The grid dimensions, in the order of the returned factors.

        Returns
        -------
        list[float] | None
            The factors (1 for dimensions mapped directly), or None if no
            resampling interval is known or one of them is not a finite
            positive number.
        """
        if not self._grid_to_data:
            return None

        factors = []
        for dim in grid_dimensions:
            if dim not in self.grid_to_variable:
                factors.append(1.0)
                continue

            factor = self._grid_to_data.get(dim, math.nan)
            if not (math.isfinite(factor) and factor > 0):
                return None

            factors.append(1 / factor)

        return factors

    @staticmethod
    def scale(
        geometry: GridGeometry, sizes: Sequence[int], data_to_grid: Sequence[float]
    ) -> GridGeometry:
        """Returns a grid geometry for the data cells instead of the grid cells.

        Parameters
        ----------
        geometry : GridGeometry
            The geometry of the localization grid.
        sizes : Sequence[int]
            The data variable sizes, in the order of the geometry extent.
        data_to_grid : Sequence[float]
            The factors from :meth:`data_to_grid_indices`, in the same order.
        """
        grid_to_crs = geometry.grid_to_crs
        if grid_to_crs is not None:
            grid_to_crs = concatenate(AffineTransform.scale(data_to_grid), grid_to_crs)

        return dataclasses.replace(geometry, extent=tuple(sizes), grid_to_crs=grid_to_crs)
