import math

import numpy as np
import pytest
import xarray as xr

from xgeoref.convention import (
    DEFAULT_CONVENTION,
    Convention,
    UniversalConvention,
    find_convention,
    register_convention,
    unregister_convention,
)
from xgeoref.linearizer import LinearizerType


class _SwathConvention(UniversalConvention):
    def is_applicable_to(self, dataset):
        return dataset.attrs.get("product") == "swath"


class TestConvention:
    @pytest.fixture(autouse=True)
    def setup(self):
        self.convention = Convention()

    def test_name_of_dimension(self):
        var = xr.DataArray(np.zeros((2, 2)), dims=("a", "b"), attrs={"dim1": " Pixel "})

        assert self.convention.name_of_dimension(var, 1) == "Pixel"
        assert self.convention.name_of_dimension(var, 0) is None

    @pytest.mark.parametrize("value,expected", [(None, 1.0), (10, 10.0), ("4", 4.0)])
    def test_grid_to_data_indices(self, value, expected):
        attrs = {} if value is None else {"resampling_interval": value}
        axis = xr.DataArray(np.zeros(2), dims="a", attrs=attrs)

        assert self.convention.grid_to_data_indices(axis) == expected

    def test_grid_to_data_indices_is_nan_if_not_a_number(self):
        axis = xr.DataArray(np.zeros(2), dims="a", attrs={"resampling_interval": "ten"})

        assert math.isnan(self.convention.grid_to_data_indices(axis))

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("crs", ["crs"]),
            ("crs_a: lat lon crs_b: x y", ["crs_a", "crs_b"]),
            (None, []),
        ],
    )
    def test_name_of_mapping_node(self, value, expected):
        attrs = {} if value is None else {"grid_mapping": value}
        var = xr.DataArray(np.zeros(2), dims="a", attrs=attrs)

        assert self.convention.name_of_mapping_node(var) == expected

    def test_default_horizontal_crs(self):
        lon_first = self.convention.default_horizontal_crs(longitude_first=True)
        lat_first = self.convention.default_horizontal_crs(longitude_first=False)

        assert [axis.direction for axis in lon_first.axis_info] == ["east", "north"]
        assert lat_first.to_epsg() == 4326

    def test_role_of(self):
        lat = xr.DataArray(np.zeros(3), dims="lat", name="lat")
        lat2d = xr.DataArray(
            np.zeros((3, 3)), dims=("y", "x"), name="nav_lat", attrs={"standard_name": "latitude"}
        )
        sst = xr.DataArray(np.zeros((3, 3)), dims=("y", "x"), name="sst")
        flag = xr.DataArray(np.zeros(3), dims="obs", name="flag")
        scalar = xr.DataArray(0.0, name="crs")

        assert self.convention.role_of(lat, set()) == "axis"
        assert self.convention.role_of(lat2d, set()) == "axis"
        assert self.convention.role_of(sst, set()) == "coverage"
        assert self.convention.role_of(sst, {"sst"}) == "axis"
        assert self.convention.role_of(flag, set()) == "feature_property"
        assert self.convention.role_of(scalar, set()) == "other"

    def test_no_linearizers_by_default(self):
        assert self.convention.linearizers(None) == []

    def test_universal_convention_creates_new_linearizers(self):
        convention = UniversalConvention()

        first = convention.linearizers(None)
        second = convention.linearizers(None)

        assert [linearizer.type for linearizer in first] == [LinearizerType.UNIVERSAL]
        assert first[0] is not second[0]


class TestConventionRegistry:
    def test_registered_convention_is_found_when_applicable(self):
        convention = register_convention(_SwathConvention())
        try:
            assert find_convention(xr.Dataset(attrs={"product": "swath"})) is convention
            assert find_convention(xr.Dataset()) is DEFAULT_CONVENTION
        finally:
            unregister_convention(convention)

    def test_unregister_unknown_convention_raises_error(self):
        with pytest.raises(KeyError, match="not a registered convention"):
            unregister_convention(Convention())
