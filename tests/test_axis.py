import numpy as np
import pytest
import xarray as xr

from xgeoref.axis import (
    AxisKind,
    abbreviation,
    absolute_direction,
    is_colinear,
    is_opposite,
    longitude_range,
    opposite,
)


def _variable(name="v", dims="i", **attrs):
    return xr.DataArray(np.arange(3.0), dims=dims, name=name, attrs=attrs)


class TestAbbreviation:
    def test_coordinate_axis_type_has_priority(self):
        var = _variable(
            "foo", _CoordinateAxisType="Lat", standard_name="longitude"
        )

        assert abbreviation(var) is AxisKind.LATITUDE

    def test_standard_name(self):
        var = _variable("foo", standard_name="depth")

        assert abbreviation(var) is AxisKind.DEPTH

    def test_definitive_kind_wins_over_generic_cf_axis(self):
        var = _variable("foo", axis="X", standard_name="longitude")

        assert abbreviation(var) is AxisKind.LONGITUDE

    def test_generic_cf_axis_is_returned_if_nothing_else(self):
        var = _variable("foo", axis="Y")

        assert abbreviation(var) is AxisKind.Y

    def test_first_word_of_long_name(self):
        var = _variable("foo", long_name="Latitude (degrees)")

        assert abbreviation(var) is AxisKind.LATITUDE

    def test_only_first_description_attribute_is_used(self):
        var = _variable("foo", long_name="Some value", description="longitude")

        assert abbreviation(var) is None

    def test_angular_units(self):
        assert abbreviation(_variable("foo", units="degrees_east")) is AxisKind.LONGITUDE
        assert abbreviation(_variable("foo", units="degrees_N")) is AxisKind.LATITUDE

    def test_units_are_ignored_if_requested(self):
        var = _variable("foo", units="degrees_east")

        assert abbreviation(var, use_unit=False) is None

    def test_variable_name(self):
        assert abbreviation(_variable("lon")) is AxisKind.LONGITUDE
        assert abbreviation(_variable("TIME")) is AxisKind.TIME

    def test_temporal_and_pressure_units(self):
        assert abbreviation(_variable("foo", units="days since 2000-01-01")) is AxisKind.TIME
        assert abbreviation(_variable("foo", units="hPa")) is AxisKind.Z

    def test_returns_none_if_unknown(self):
        assert abbreviation(_variable("temperature", units="K")) is None


class TestAxisKind:
    @pytest.mark.parametrize(
        "kind,role,direction",
        [
            (AxisKind.LONGITUDE, "X", "east"),
            (AxisKind.NORTHING, "Y", "north"),
            (AxisKind.DEPTH, "Z", "down"),
            (AxisKind.TIME, "T", "future"),
        ],
    )
    def test_role_and_direction(self, kind, role, direction):
        assert kind.role == role
        assert kind.direction == direction

    def test_is_ambiguous(self):
        assert AxisKind.X.is_ambiguous
        assert not AxisKind.LATITUDE.is_ambiguous


class TestDirections:
    def test_absolute_direction(self):
        assert absolute_direction("West") == "east"
        assert absolute_direction("up") == "up"
        assert absolute_direction(None) is None

    def test_is_opposite(self):
        assert is_opposite("down")
        assert not is_opposite("north")
        assert not is_opposite(None)

    def test_is_colinear(self):
        assert is_colinear("south", "north")
        assert not is_colinear("east", "north")
        assert not is_colinear(None, "north")

    def test_opposite(self):
        assert opposite("future") == "past"


class TestLongitudeRange:
    def test_values_beyond_180_use_positive_range(self):
        assert longitude_range(np.array([0.0, 90.0, 270.0])) == (0, 360)

    def test_negative_values_use_centered_range(self):
        assert longitude_range(np.array([-170.0, 0.0, 170.0])) == (-180, 180)

    def test_nan_values_are_ignored(self):
        assert longitude_range(np.array([np.nan, 10.0, 350.0])) == (0, 360)
