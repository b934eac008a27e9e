"""
Convention module with the hooks that producers of non-CF datasets can
override: names of dimension labels, resampling intervals, linearizers,
grid mapping variables and date encodings.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Literal

import pyproj
import xarray as xr

from xgeoref.axis import AxisKind, abbreviation
from xgeoref.dates import DATE_PATTERNS, DatePattern
from xgeoref.linearizer import Linearizer, LinearizerType

if TYPE_CHECKING:
    from xgeoref.decoder import Decoder

VariableRole = Literal["axis", "coverage", "feature_property", "other"]

#: Prefix of the attributes giving the label of each variable dimension.
DIMENSION_LABEL_PREFIX = "dim"
#: Attribute giving the subsampling of a localization grid.
RESAMPLING_INTERVAL_ATTR = "resampling_interval"
#: Attribute naming the grid mapping variable(s).
GRID_MAPPING_ATTR = "grid_mapping"

# Horizontal CRS used when coordinates do not declare a datum.
DEFAULT_CRS_LONGITUDE_FIRST = "OGC:CRS84"
DEFAULT_CRS_LATITUDE_FIRST = "EPSG:4326"


class Convention:
    """The default conventions, based on CF.

    Subclasses override the methods below to support datasets which use
    other conventions, and are registered with :func:`register_convention`.
    """

    def is_applicable_to(self, dataset: xr.Dataset) -> bool:
        """Whether this convention applies to the given dataset."""
        return True

    def name_of_dimension(self, variable: xr.DataArray, index: int) -> str | None:
        """Returns the label of a variable dimension, from the "dim<i>" attribute.

        Labels relate the dimensions of a data variable to the (differently
        named and sized) dimensions of a localization grid.
        """
        label = variable.attrs.get(f"{DIMENSION_LABEL_PREFIX}{index}")
        if isinstance(label, str) and label.strip():
            return label.strip()

        return None

    def grid_to_data_indices(self, axis: xr.DataArray) -> float:
        """Returns the factor converting grid indices to data indices.

        The default reads the "resampling_interval" attribute, a localization
        grid with a resampling interval of 10 having a control point every 10
        data cells. Returns 1 if the attribute is absent and NaN if it is not
        a number.
        """
        value = axis.attrs.get(RESAMPLING_INTERVAL_ATTR)
        if value is None:
            return 1.0

        try:
            return float(value)
        except (TypeError, ValueError):
            return math.nan

    def names_of_axis_variables(self, variable: xr.DataArray) -> list[str] | None:
        """Returns the names of the axis variables of a data variable, if known.

        The default returns None, letting the decoder infer axes from the
        dimensions and the "coordinates" attribute.
        """
        return None

    def linearizers(self, decoder: Decoder) -> list[Linearizer]:
        """Returns new linearizers to try on localization grids.

        The default returns an empty list: localization grids are fitted in
        geographic coordinates.
        """
        return []

    def name_of_mapping_node(self, variable: xr.DataArray) -> list[str]:
        """Returns the names of the grid mapping variables of a data variable."""
        value = variable.attrs.get(GRID_MAPPING_ATTR)
        if not isinstance(value, str):
            return []

        # CF extended form: "crs_a: lat lon crs_b: x y".
        if ":" in value:
            return [token[:-1] for token in value.split() if token.endswith(":")]

        return value.split()

    def date_patterns(self) -> tuple[DatePattern, ...]:
        """Returns the non-standard date encodings to recognize."""
        return DATE_PATTERNS

    def default_horizontal_crs(self, longitude_first: bool) -> pyproj.CRS:
        """Returns the geographic CRS of coordinates without grid mapping."""
        if longitude_first:
            return pyproj.CRS.from_user_input(DEFAULT_CRS_LONGITUDE_FIRST)

        return pyproj.CRS.from_user_input(DEFAULT_CRS_LATITUDE_FIRST)

    def role_of(self, variable: xr.DataArray, axis_names: set[str]) -> VariableRole:
        """Returns the role of a variable in the dataset.

        Parameters
        ----------
        variable : xr.DataArray
            The variable.
        axis_names : set[str]
            The names of the variables referenced as coordinates by other
            variables.

        Returns
        -------
        VariableRole
            "axis" for coordinate variables, "coverage" for variables with at
            least two dimensions of length 2 or more, "feature_property" for
            other one-dimensional variables and "other" for the rest.
        """
        name = str(variable.name)
        if name in axis_names:
            return "axis"
        if variable.ndim == 1 and variable.dims[0] == name:
            return "axis"
        if variable.ndim >= 2 and abbreviation(variable, use_unit=False) in (
            AxisKind.LONGITUDE,
            AxisKind.LATITUDE,
        ):
            return "axis"

        if sum(1 for length in variable.shape if length >= 2) >= 2:
            return "coverage"
        if variable.ndim == 1:
            return "feature_property"

        return "other"


class UniversalConvention(Convention):
    """Conventions for swaths whose localization grids should be projected.

    Localization grids are fitted in a UTM or UPS projection.
    """

    def linearizers(self, decoder: Decoder) -> list[Linearizer]:
        return [Linearizer(LinearizerType.UNIVERSAL)]


_REGISTRY: list[Convention] = []

DEFAULT_CONVENTION = Convention()


def register_convention(convention: Convention) -> Convention:
    """Registers a convention, tried before the previously registered ones."""
    _REGISTRY.insert(0, convention)

    return convention


def unregister_convention(convention: Convention):
    """Removes a registered convention.

    Raises
    ------
    KeyError
        If the convention is not registered.
    """
    try:
        _REGISTRY.remove(convention)
    except ValueError as err:
        raise KeyError(f"{convention!r} is not a registered convention.") from err


def find_convention(dataset: xr.Dataset) -> Convention:
    """Returns the first registered convention applicable to the dataset."""
    for convention in _REGISTRY:
        if convention.is_applicable_to(dataset):
            return convention

    return DEFAULT_CONVENTION
