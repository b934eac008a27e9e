from types import SimpleNamespace

import numpy as np
import pyproj
import pytest
import xarray as xr

from xgeoref.axis import AxisKind
from xgeoref.convention import Convention
from xgeoref.crs import (
    CompoundCRS,
    EngineeringCRS,
    TemporalCRS,
    VerticalCRS,
    axis_directions,
    build_crs,
    first_affected_coordinate,
    geo_transform,
    grid_mapping_crs,
    index_of_colinear,
    merge_crs,
    swap_axes,
)
from xgeoref.listeners import StoreListeners

CRS84 = pyproj.CRS.from_user_input("OGC:CRS84")
WGS84 = pyproj.CRS.from_epsg(4326)


def _axis(name, kind, values=(0.0, 1.0), units=None, direction=None, **attrs):
    if direction is None and kind is not None:
        direction = kind.direction

    return SimpleNamespace(
        name=name,
        kind=kind,
        units=units,
        direction=direction,
        coordinates=xr.DataArray(np.asarray(values), dims=name, attrs=attrs),
        read=lambda: np.asarray(values, dtype=np.float64),
    )


class TestBuildCRS:
    @pytest.fixture(autouse=True)
    def setup(self):
        self.convention = Convention()

    def test_geographic_and_temporal_components(self):
        axes = [
            _axis("lon", AxisKind.LONGITUDE, values=(0.0, 180.0, 350.0)),
            _axis("lat", AxisKind.LATITUDE),
            _axis("time", AxisKind.TIME, units="hours since 2000-01-01", calendar="noleap"),
        ]

        crs = build_crs(axes, self.convention, name="lon lat time")

        assert crs.components[0] == CRS84
        assert crs.components[1] == TemporalCRS("time", "hours", "2000-01-01", "noleap")
        assert crs.longitude_range == (0, 360)
        assert crs.axis_directions == ("east", "north", "future")
        assert crs.name == "lon lat time"

    def test_latitude_first_order(self):
        axes = [_axis("lat", AxisKind.LATITUDE), _axis("lon", AxisKind.LONGITUDE)]

        crs = build_crs(axes, self.convention)

        assert crs.components[0].to_epsg() == 4326
        assert crs.longitude_range == (-180, 180)

    def test_lonely_latitude_is_engineering(self):
        crs = build_crs([_axis("lat", AxisKind.LATITUDE)], self.convention)

        assert crs.components == (
            EngineeringCRS("Unknown engineering CRS", ("lat",), ("north",), (None,)),
        )

    def test_vertical_and_projected_components(self):
        axes = [
            _axis("x", AxisKind.EASTING, units="m"),
            _axis("y", AxisKind.NORTHING, units="m"),
            _axis("depth", AxisKind.DEPTH, units="m"),
        ]

        crs = build_crs(axes, self.convention)

        assert crs.components == (
            EngineeringCRS("Unknown projected CRS", ("x", "y"), ("east", "north"), ("m", "m")),
            VerticalCRS("depth", "m", "down"),
        )

    def test_unknown_axes_have_unspecified_direction(self):
        crs = build_crs([_axis("band", None)], self.convention)

        assert crs.axis_directions == ("unspecified",)


class TestGridMappingCRS:
    @pytest.fixture(autouse=True)
    def setup(self):
        self.listeners = StoreListeners("sample.nc")
        self.received = []
        self.listeners.add_listener(self.received.append)

    def _mapping(self, **attrs):
        return xr.DataArray(np.int32(0), name="crs", attrs=attrs)

    def test_wkt(self):
        crs = grid_mapping_crs(self._mapping(crs_wkt=WGS84.to_wkt()))

        assert crs.equals(WGS84)

    def test_epsg_code(self):
        assert grid_mapping_crs(self._mapping(EPSG_code="EPSG:3857")).to_epsg() == 3857
        assert grid_mapping_crs(self._mapping(epsg_code=32631)).to_epsg() == 32631

    def test_cf_parameters(self):
        crs = grid_mapping_crs(
            self._mapping(
                grid_mapping_name="lambert_conformal_conic",
                standard_parallel=25.0,
                longitude_of_central_meridian=265.0,
                latitude_of_projection_origin=25.0,
            )
        )

        assert crs.is_projected

    def test_invalid_wkt_is_reported_and_next_attribute_used(self):
        crs = grid_mapping_crs(
            self._mapping(crs_wkt="not a wkt", EPSG_code="4326"), self.listeners
        )

        assert crs.to_epsg() == 4326
        assert len(self.received) == 1
        assert self.received[0].attribute == "crs_wkt"
        assert self.received[0].variable == "crs"

    def test_returns_none_without_definition(self):
        assert grid_mapping_crs(self._mapping(long_name="nothing")) is None


class TestGeoTransform:
    @pytest.fixture(autouse=True)
    def setup(self):
        self.listeners = StoreListeners("sample.nc")
        self.received = []
        self.listeners.add_listener(self.received.append)

    def _mapping(self, value):
        return xr.DataArray(np.int32(0), name="crs", attrs={"GeoTransform": value})

    def test_coefficients_follow_gdal_order(self):
        transform = geo_transform(self._mapping("10 0.5 0.1 50 0.2 -0.5"))

        np.testing.assert_allclose(
            transform.matrix, [[0.5, 0.1, 10.0], [0.2, -0.5, 50.0], [0.0, 0.0, 1.0]]
        )
        np.testing.assert_allclose(transform.transform(np.array([1.0, 2.0]))[0], [10.7, 49.2])

    def test_comma_separated_and_numeric_values(self):
        expected = [[30.0, 0.0, -180.0], [0.0, -30.0, 90.0], [0.0, 0.0, 1.0]]

        text = geo_transform(self._mapping("-180, 30, 0, 90, 0, -30"))
        numbers = geo_transform(self._mapping(np.array([-180.0, 30, 0, 90, 0, -30])))

        np.testing.assert_allclose(text.matrix, expected)
        np.testing.assert_allclose(numbers.matrix, expected)

    def test_returns_none_without_attribute(self):
        mapping = xr.DataArray(np.int32(0), name="crs", attrs={"EPSG_code": "4326"})

        assert geo_transform(mapping, self.listeners) is None
        assert self.received == []

    @pytest.mark.parametrize("value", ["10 0.5 0 50 0", "10 0.5 0 fifty 0 -0.5"])
    def test_malformed_attribute_is_reported(self, value):
        assert geo_transform(self._mapping(value), self.listeners) is None
        assert self.received[0].attribute == "GeoTransform"
        assert self.received[0].value == value


class TestCompoundCRS:
    def test_equality_includes_longitude_range(self):
        first = CompoundCRS([CRS84], (0, 360))

        assert first == CompoundCRS([CRS84], (0, 360))
        assert first != CompoundCRS([CRS84])
        assert first.equivalent(CompoundCRS([CRS84]))

    def test_horizontal_and_dimension(self):
        crs = CompoundCRS([VerticalCRS("z", "m"), WGS84])

        assert crs.horizontal is WGS84
        assert crs.dimension == 3


class TestMergeCRS:
    def test_index_of_colinear(self):
        assert index_of_colinear(("east", "north", "up"), ("south", "down")) == 1
        assert index_of_colinear(("east", "north"), ("up",)) == -1

    def test_swap_axes(self):
        swapped = swap_axes(pyproj.CRS.from_epsg(3857))

        assert axis_directions(swapped) == ("north", "east")
        assert swap_axes(pyproj.CRS.from_epsg(4979)) is None

    def test_first_affected_coordinate(self):
        implicit = CompoundCRS(
            [
                TemporalCRS("time", "days", "2000-01-01"),
                EngineeringCRS("Unknown projected CRS", ("y", "x"), ("north", "east")),
            ]
        )
        mercator = pyproj.CRS.from_epsg(3857)

        first, (replacement,) = first_affected_coordinate(implicit, mercator)

        assert first == 1
        assert axis_directions(replacement) == ("north", "east")
        assert first_affected_coordinate(implicit, pyproj.CRS.from_epsg(5703))[0] == 0

    def test_projected_mapping_replaces_engineering_component(self):
        implicit = CompoundCRS(
            [
                EngineeringCRS("Unknown projected CRS", ("x", "y"), ("east", "north")),
                TemporalCRS("time", "days", "2000-01-01"),
            ]
        )
        mercator = pyproj.CRS.from_epsg(3857)

        merged = merge_crs(implicit, mercator)

        assert merged.components[0] == mercator
        assert merged.components[1] == implicit.components[1]

    def test_same_crs_returns_implicit(self):
        implicit = CompoundCRS([WGS84], (0, 360))

        assert merge_crs(implicit, pyproj.CRS.from_epsg(4326)) is implicit

    def test_axes_are_swapped_to_match(self):
        implicit = CompoundCRS(
            [EngineeringCRS("Unknown projected CRS", ("y", "x"), ("north", "east"))]
        )

        merged = merge_crs(implicit, pyproj.CRS.from_epsg(3857))

        assert axis_directions(merged.components[0]) == ("north", "east")

    def test_geographic_longitude_range_is_kept(self):
        implicit = CompoundCRS([CRS84, VerticalCRS("z", "m")], (0, 360))
        explicit = pyproj.CRS.from_epsg(4269)

        merged = merge_crs(implicit, explicit)

        assert merged is not implicit
        assert merged.components[0].equals(explicit, ignore_axis_order=True)
        assert merged.longitude_range == (0, 360)

    def test_projected_result_uses_default_range(self):
        implicit = CompoundCRS([CRS84], (0, 360))

        merged = merge_crs(implicit, pyproj.CRS.from_epsg(3857))

        assert merged.longitude_range == (-180, 180)

    def test_misaligned_components_raise_error(self):
        implicit = CompoundCRS([CRS84])

        with pytest.raises(ValueError, match="can not replace"):
            merge_crs(implicit, pyproj.CRS.from_epsg(5703))
