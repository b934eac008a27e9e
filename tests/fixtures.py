"""This module stores reusable test fixtures."""
from typing import Literal

import numpy as np
import xarray as xr

# If the fixture is an xarray object, make sure to use .copy() to create a
# shallow copy of the object. Otherwise, you might run into unintentional
# side-effects caused by reference assignment.
# https://xarray.pydata.org/en/stable/generated/xarray.DataArray.copy.html

# NOTE:
# - Times are not decoded, as with ``xgeoref.open_dataset``.
# - Coordinates with bounds includes "bounds" attr and vice versa

# RECTILINEAR
# ===========
time = xr.DataArray(
    data=np.array([0.0, 31.0, 60.0]),
    dims=["time"],
    attrs={
        "axis": "T",
        "long_name": "time",
        "standard_name": "time",
        "units": "days since 2000-01-01",
        "calendar": "standard",
    },
)
lat = xr.DataArray(
    data=np.array([-45.0, -15.0, 15.0, 45.0]),
    dims=["lat"],
    attrs={
        "units": "degrees_north",
        "axis": "Y",
        "long_name": "latitude",
        "standard_name": "latitude",
        "bounds": "lat_bnds",
    },
)
lon = xr.DataArray(
    data=np.array([45.0, 135.0, 225.0, 315.0]),
    dims=["lon"],
    attrs={
        "units": "degrees_east",
        "axis": "X",
        "long_name": "longitude",
        "standard_name": "longitude",
        "bounds": "lon_bnds",
    },
)
lat_bnds = xr.DataArray(
    data=np.array([[-60.0, -30.0], [-30.0, 0.0], [0.0, 30.0], [30.0, 60.0]]),
    dims=["lat", "bnds"],
)
lon_bnds = xr.DataArray(
    data=np.array([[0.0, 90.0], [90.0, 180.0], [180.0, 270.0], [270.0, 360.0]]),
    dims=["lon", "bnds"],
)
ts = xr.DataArray(
    data=np.ones((3, 4, 4)),
    dims=["time", "lat", "lon"],
    attrs={"units": "K", "long_name": "surface_temperature"},
)


def generate_dataset(has_bounds: bool = True) -> xr.Dataset:
    """Generates a ``ts(time, lat, lon)`` dataset on a regular grid.

    The time axis is irregular (monthly values) while latitudes and
    longitudes are regular.
    """
    ds = xr.Dataset(
        data_vars={"ts": ts.copy()},
        coords={"lat": lat.copy(), "lon": lon.copy(), "time": time.copy()},
    )

    if has_bounds:
        ds["lat_bnds"] = lat_bnds.copy()
        ds["lon_bnds"] = lon_bnds.copy()
    else:
        del ds.lat.attrs["bounds"]
        del ds.lon.attrs["bounds"]

    return ds


# CURVILINEAR
# ===========
def generate_curvilinear_dataset(
    height: int = 3,
    width: int = 4,
    crossing: Literal["none", "antimeridian"] = "none",
    name_prefix: str = "",
) -> xr.Dataset:
    """Generates a ``sst(y, x)`` dataset with ``lat(y, x)`` and ``lon(y, x)``.

    Longitudes increase mostly along ``x`` and latitudes decrease along ``y``.
    With ``crossing="antimeridian"``, longitudes go from 170° to beyond 180°
    and are wrapped to the [-180, 180) range.
    """
    rows, columns = np.mgrid[0:height, 0:width]
    if crossing == "antimeridian":
        lon_values = 170.0 + 5.0 * columns + 0.1 * rows
        lon_values = ((lon_values + 180) % 360) - 180
    else:
        lon_values = 100.0 + 2.0 * columns + 0.1 * rows
    lat_values = 40.0 - 1.5 * rows + 0.05 * columns

    ds = xr.Dataset(
        data_vars={
            "sst": xr.DataArray(
                np.zeros((height, width)),
                dims=["y", "x"],
                attrs={"units": "K", "coordinates": f"{name_prefix}lat {name_prefix}lon"},
            )
        },
        coords={
            f"{name_prefix}lat": xr.DataArray(
                lat_values,
                dims=["y", "x"],
                attrs={"standard_name": "latitude", "units": "degrees_north"},
            ),
            f"{name_prefix}lon": xr.DataArray(
                lon_values,
                dims=["y", "x"],
                attrs={"standard_name": "longitude", "units": "degrees_east"},
            ),
        },
    )

    return ds


def generate_decimated_swath(interval: int | None = 2) -> xr.Dataset:
    """Generates a swath whose localization grid has one point every ``interval`` cells.

    The data variable ``sst(line, pixel)`` has 6×8 cells while the
    localization grid ``lat(grid_y, grid_x)`` has 3×4 cells. Dimensions are
    related by the "dim0" and "dim1" labels.
    """
    ds = generate_curvilinear_dataset(height=3, width=4)
    ds = ds.rename({"y": "grid_y", "x": "grid_x"})
    ds = ds.drop_vars("sst")

    labels = {"dim0": "Line", "dim1": "Pixel"}
    for name in ("lat", "lon"):
        ds[name].attrs.update(labels)
        if interval is not None:
            ds[name].attrs["resampling_interval"] = interval

    ds["sst"] = xr.DataArray(
        np.zeros((6, 8)), dims=["line", "pixel"], attrs={"units": "K", **labels}
    )

    return ds


# DATES
# =====
def generate_packed_dates_dataset() -> xr.Dataset:
    """Generates a dataset whose time axis uses the "day as %Y%m%d.%f" encoding."""
    return xr.Dataset(
        data_vars={
            "chl": xr.DataArray(
                np.ones((3, 2)), dims=["time", "lat"], attrs={"units": "mg m-3"}
            )
        },
        coords={
            "time": xr.DataArray(
                np.array([20181017.0, 20181018.0, 20181019.0]),
                dims=["time"],
                attrs={"units": "day as %Y%m%d.%f", "standard_name": "time"},
            ),
            "lat": xr.DataArray(
                np.array([10.0, 20.0]), dims=["lat"], attrs={"units": "degrees_north"}
            ),
        },
    )


# GRID MAPPING
# ============
def generate_projected_dataset(mapping_attrs: dict | None = None) -> xr.Dataset:
    """Generates a ``tas(y, x)`` dataset in Web Mercator with a grid mapping."""
    if mapping_attrs is None:
        mapping_attrs = {"EPSG_code": "EPSG:3857"}

    return xr.Dataset(
        data_vars={
            "tas": xr.DataArray(
                np.zeros((2, 3)),
                dims=["y", "x"],
                attrs={"units": "K", "grid_mapping": "crs"},
            ),
            "crs": xr.DataArray(np.int32(0), attrs=mapping_attrs),
        },
        coords={
            "x": xr.DataArray(
                np.array([0.0, 1000.0, 2000.0]),
                dims=["x"],
                attrs={"standard_name": "projection_x_coordinate", "units": "m"},
            ),
            "y": xr.DataArray(
                np.array([5000.0, 4000.0]),
                dims=["y"],
                attrs={"standard_name": "projection_y_coordinate", "units": "m"},
            ),
        },
    )
