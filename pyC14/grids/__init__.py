"""Ocean grids, circulation loading and reductions for pyC14."""

import warnings
from dataclasses import dataclass

import numpy as np
import numpy.typing as npt
import xarray as xr
import geopandas as gpd
from scipy import io, sparse

from pyC14.utils import YEAR, coordinate_check, depth_check, inpolygon

EARTH_RADIUS = 6.371e6  # m

# Coarse (lon_min, lon_max, lat_min, lat_max) boxes on a 0-360 longitude
# axis. Assigned in this order, so shared edges belong to the first basin.
BASIN_BOXES = {
    "ATL": [(290.0, 360.0, -60.0, 70.0), (0.0, 20.0, -60.0, 70.0)],
    "PAC": [(120.0, 290.0, -60.0, 65.0)],
    "IND": [(20.0, 120.0, -60.0, 30.0)],
}


@dataclass
class OceanGrid:
    """
    Regular latitude/longitude/depth grid with a wet-cell mask.

    State vectors only hold wet cells, stacked by flattening the 3D
    (lat, lon, depth) arrays in ``order`` ("C" or "F") and dropping land.
    """

    lat: npt.NDArray
    lon: npt.NDArray
    depth: npt.NDArray
    depth_thickness: npt.NDArray
    wet3D: npt.NDArray
    area2D: npt.NDArray
    order: str = "C"

    def __post_init__(self):
        self.lat = np.asarray(self.lat, dtype=float).ravel()
        self.lon = np.asarray(self.lon, dtype=float).ravel()
        self.depth = np.asarray(self.depth, dtype=float).ravel()
        self.depth_thickness = np.asarray(
            self.depth_thickness, dtype=float
        ).ravel()
        self.wet3D = np.asarray(self.wet3D).astype(bool)
        self.area2D = np.asarray(self.area2D, dtype=float)
        if self.wet3D.shape != self.shape:
            raise ValueError(
                f"wet3D has shape {self.wet3D.shape} but lat, lon and depth imply {self.shape}."
            )
        if self.area2D.shape != self.shape[:2]:
            raise ValueError(
                f"area2D has shape {self.area2D.shape} but lat and lon imply {self.shape[:2]}."
            )
        if len(self.depth_thickness) != len(self.depth):
            raise ValueError(
                "depth and depth_thickness must have the same length."
            )
        if self.order not in ("C", "F"):
            raise ValueError("order must be 'C' or 'F'.")
        self._iwet = np.flatnonzero(self.wet3D.ravel(order=self.order))

    @property
    def shape(self):
        return (len(self.lat), len(self.lon), len(self.depth))

    @property
    def nwet(self):
        return len(self._iwet)

    @property
    def iwet(self):
        return self._iwet

    @property
    def volume3D(self):
        return self.area2D[:, :, None] * self.depth_thickness[None, None, :]

    @property
    def depth_top(self):
        return np.cumsum(self.depth_thickness) - self.depth_thickness

    def to_vector(self, x3D):
        """Pick the wet cells of a 3D field."""
        x3D = np.asarray(x3D)
        if x3D.shape != self.shape:
            raise ValueError(
                f"Expected a field of shape {self.shape}, got {x3D.shape}."
            )
        return x3D.ravel(order=self.order)[self._iwet]

    def to_3d(self, x):
        """Rebuild a 3D field from a wet-cell vector, with NaN on land."""
        x = np.asarray(x)
        if x.shape != (self.nwet,):
            raise ValueError(
                f"Expected a vector of {self.nwet} wet cells, got shape {x.shape}."
            )
        x3D = np.full(np.prod(self.shape), np.nan)
        x3D[self._iwet] = x
        return x3D.reshape(self.shape, order=self.order)

    def depthvec(self):
        return self.to_vector(np.broadcast_to(self.depth, self.shape))

    def latvec(self):
        return self.to_vector(
            np.broadcast_to(self.lat[:, None, None], self.shape)
        )

    def lonvec(self):
        return self.to_vector(
            np.broadcast_to(self.lon[None, :, None], self.shape)
        )

    def volumevec(self):
        return self.to_vector(self.volume3D)

    def to_dataarray(self, x, name=None, attrs=None):
        return xr.DataArray(
            self.to_3d(x),
            dims=["lat", "lon", "depth"],
            coords=dict(lat=self.lat, lon=self.lon, depth=self.depth),
            name=name,
            attrs=attrs or {},
        )


def cell_areas(lat, lon):
    """Areas (m^2) of the cells of a regular lat/lon grid of centres."""
    lat = np.asarray(lat, dtype=float)
    lon = np.asarray(lon, dtype=float)
    if len(lat) < 2:
        raise ValueError("At least two latitudes are needed to find cell edges.")
    mid = (lat[1:] + lat[:-1]) / 2
    lat_edges = np.concatenate(
        [[2 * lat[0] - mid[0]], mid, [2 * lat[-1] - mid[-1]]]
    )
    lat_edges = np.clip(lat_edges, -90, 90)
    dlon = 360.0 / len(lon)
    band = np.abs(np.diff(np.sin(np.deg2rad(lat_edges))))
    return (
        EARTH_RADIUS**2 * np.deg2rad(dlon) * band[:, None] * np.ones(len(lon))
    )


def load_circulation(filename: str):
    """
    Load an OCIM-style circulation from a MATLAB file.

    Parameters
    ----------
    filename : str
        Path to a .mat file holding an ``output`` struct with ``M3d`` (ocean
        mask, lat x lon x depth), ``grid`` (``yt``, ``xt``, ``zt``, ``dzt``,
        ``DXT3d``, ``DYT3d``) and ``TR`` (transport operator in yr^-1,
        dc/dt = TR c, wet cells stacked in Fortran order).

    Returns
    -------
    grid : OceanGrid
    T : scipy.sparse.csc_matrix
        Transport operator in s^-1 following dx/dt + T x = sources.
    """
    mat = io.loadmat(filename, simplify_cells=True)
    output = mat.get("output", mat)
    for key in ("M3d", "grid", "TR"):
        if key not in output:
            raise ValueError(f"{filename} has no '{key}' entry.")
    M3d = np.asarray(output["M3d"])
    g = output["grid"]
    area2D = (np.asarray(g["DXT3d"]) * np.asarray(g["DYT3d"]))[:, :, 0]
    grid = OceanGrid(
        lat=g["yt"],
        lon=g["xt"],
        depth=g["zt"],
        depth_thickness=g["dzt"],
        wet3D=M3d == 1,
        area2D=area2D,
        order="F",
    )
    T = -sparse.csc_matrix(output["TR"]) / YEAR
    if T.shape != (grid.nwet, grid.nwet):
        raise ValueError(
            f"Transport matrix has shape {T.shape} but the mask has {grid.nwet} ocean cells."
        )
    return grid, T


def toy_circulation(
    nlat: int = 6,
    nlon: int = 8,
    depth_thickness=(50.0, 450.0, 1500.0, 3000.0),
    overturning: float = 2e7,
    horizontal_mixing: float = 2e6,
    vertical_mixing: float = 2e5,
    land_lon: int | None = 0,
):
    """
    Small mass-conserving circulation for demonstrations and tests.

    Each wet longitude carries an overturning loop around its lat/depth
    section (northward at the surface, sinking in the north, southward at
    depth, upwelling in the south) of ``overturning`` m^3 s^-1, and every
    pair of adjacent wet cells exchanges water by mixing. The longitude
    ``land_lon`` is all land.

    Returns
    -------
    grid : OceanGrid
    T : scipy.sparse.csc_matrix
        Transport operator in s^-1 whose rows sum to zero.
    """
    if nlat < 2 or nlon < 2 or len(depth_thickness) < 2:
        raise ValueError("The toy circulation needs at least 2 cells per axis.")
    dz = np.asarray(depth_thickness, dtype=float)
    lat = np.linspace(-75, 75, nlat)
    lon = (np.arange(nlon) + 0.5) * 360.0 / nlon
    depth = np.cumsum(dz) - dz / 2
    wet3D = np.ones((nlat, nlon, len(dz)), dtype=bool)
    if land_lon is not None:
        wet3D[:, land_lon, :] = False
    grid = OceanGrid(
        lat=lat,
        lon=lon,
        depth=depth,
        depth_thickness=dz,
        wet3D=wet3D,
        area2D=cell_areas(lat, lon),
    )

    ny, nx, nz = grid.shape
    index = np.full(np.prod(grid.shape), -1)
    index[grid.iwet] = np.arange(grid.nwet)
    index = index.reshape(grid.shape, order=grid.order)
    vol = grid.volumevec()
    rows, cols, vals = [], [], []

    def advect(src, dst, flux):
        rows.extend([src, dst])
        cols.extend([src, src])
        vals.extend([flux / vol[src], -flux / vol[dst]])

    def mix(a, b, flux):
        rows.extend([a, a, b, b])
        cols.extend([a, b, b, a])
        vals.extend([flux / vol[a], -flux / vol[a], flux / vol[b], -flux / vol[b]])

    loop = (
        [(i, 0) for i in range(ny)]
        + [(ny - 1, k) for k in range(1, nz)]
        + [(i, nz - 1) for i in range(ny - 2, -1, -1)]
        + [(0, k) for k in range(nz - 2, 0, -1)]
    )
    for j in range(nx):
        if not wet3D[:, j, :].all():
            continue
        for (i0, k0), (i1, k1) in zip(loop, loop[1:] + loop[:1]):
            advect(index[i0, j, k0], index[i1, j, k1], overturning)

    for i in range(ny):
        for j in range(nx):
            for k in range(nz):
                a = index[i, j, k]
                if a < 0:
                    continue
                neighbours = [
                    ((i + 1, j, k), horizontal_mixing, i + 1 < ny),
                    ((i, (j + 1) % nx, k), horizontal_mixing, nx > 2 or j == 0),
                    ((i, j, k + 1), vertical_mixing, k + 1 < nz),
                ]
                for (ib, jb, kb), flux, exists in neighbours:
                    if exists and index[ib, jb, kb] >= 0:
                        mix(a, index[ib, jb, kb], flux)

    T = sparse.coo_matrix(
        (vals, (rows, cols)), shape=(grid.nwet, grid.nwet)
    ).tocsc()
    return grid, T


def _nearest_level(grid, depth):
    depth = depth_check(depth, max_depth=grid.depth.max())
    return int(np.argmin(np.abs(grid.depth - depth)))


def _nearest_lon(grid, lon):
    distance = np.abs((grid.lon - lon + 180) % 360 - 180)
    return int(np.argmin(distance))


def _mask3D(grid, mask):
    if mask is None:
        return grid.wet3D
    mask = np.asarray(mask)
    if mask.shape == (grid.nwet,):
        return grid.to_3d(mask.astype(float)) == 1
    if mask.shape == grid.shape:
        return mask.astype(bool) & grid.wet3D
    raise ValueError(
        f"mask must be a wet-cell vector of length {grid.nwet} or a {grid.shape} array."
    )


def _weighted_mean(x3D, w3D, axis):
    w = np.where(np.isnan(x3D), 0.0, w3D)
    num = np.nansum(x3D * w, axis=axis)
    den = w.sum(axis=axis)
    with np.errstate(invalid="ignore", divide="ignore"):
        return np.where(den > 0, num / den, np.nan)


def _masked_field(x, grid, mask):
    x3D = grid.to_3d(x)
    x3D[~_mask3D(grid, mask)] = np.nan
    return x3D


def horizontal_slice(x, grid: OceanGrid, depth: float):
    """Map of ``x`` at the grid level nearest to ``depth`` (m)."""
    k = _nearest_level(grid, depth)
    return xr.DataArray(
        grid.to_3d(x)[:, :, k],
        dims=["lat", "lon"],
        coords=dict(lat=grid.lat, lon=grid.lon),
        attrs=dict(depth=grid.depth[k]),
    )


def meridional_slice(x, grid: OceanGrid, lon: float):
    """Latitude/depth section of ``x`` at the grid longitude nearest ``lon``."""
    lon, _ = coordinate_check(lon, 0)
    j = _nearest_lon(grid, lon)
    return xr.DataArray(
        grid.to_3d(x)[:, j, :],
        dims=["lat", "depth"],
        coords=dict(lat=grid.lat, depth=grid.depth),
        attrs=dict(lon=grid.lon[j]),
    )


def zonal_average(x, grid: OceanGrid, mask=None):
    """Volume-weighted average over longitude."""
    x3D = _masked_field(x, grid, mask)
    return xr.DataArray(
        _weighted_mean(x3D, grid.volume3D, axis=1),
        dims=["lat", "depth"],
        coords=dict(lat=grid.lat, depth=grid.depth),
    )


def horizontal_average(x, grid: OceanGrid, mask=None):
    """Volume-weighted average over each depth level."""
    x3D = _masked_field(x, grid, mask)
    return xr.DataArray(
        _weighted_mean(x3D, grid.volume3D, axis=(0, 1)),
        dims=["depth"],
        coords=dict(depth=grid.depth),
    )


def vertical_mean(x, grid: OceanGrid, mask=None):
    """Volume-weighted average over each water column."""
    x3D = _masked_field(x, grid, mask)
    return xr.DataArray(
        _weighted_mean(x3D, grid.volume3D, axis=2),
        dims=["lat", "lon"],
        coords=dict(lat=grid.lat, lon=grid.lon),
    )


def depth_profile(x, grid: OceanGrid, lonlat):
    """Profile of ``x`` in the grid column nearest to (lon, lat)."""
    lon, lat = coordinate_check(*lonlat)
    i = int(np.argmin(np.abs(grid.lat - lat)))
    j = _nearest_lon(grid, lon)
    profile = grid.to_3d(x)[i, j, :]
    if np.isnan(profile).all():
        warnings.warn(
            f"The column nearest to ({lon:.1f}, {lat:.1f}) is land; the profile is all NaN."
        )
    return xr.DataArray(
        profile,
        dims=["depth"],
        coords=dict(depth=grid.depth),
        attrs=dict(lon=grid.lon[j], lat=grid.lat[i]),
    )


def _box_vertices(lon_min, lon_max, lat_min, lat_max):
    return (
        [lon_min, lon_max, lon_max, lon_min],
        [lat_min, lat_min, lat_max, lat_max],
    )


def basin_masks(grid: OceanGrid, polygons=None):
    """
    Wet-cell masks of the Atlantic, Pacific and Indian basins.

    Parameters
    ----------
    grid : OceanGrid
    polygons : str or dict, optional
        Either a vector file readable by geopandas with a ``name`` column
        (one row per basin), or a dict mapping basin names to lists of
        (lon_min, lon_max, lat_min, lat_max) boxes on a 0-360 axis.
        The default is coarse built-in boxes (BASIN_BOXES).

    Returns
    -------
    masks : dict
        Basin name to boolean wet-cell vector. Basins do not overlap.
    """
    lon2D, lat2D = np.meshgrid(grid.lon, grid.lat)
    xq, yq = lon2D.ravel(), lat2D.ravel()
    inside = {}
    if polygons is None or isinstance(polygons, dict):
        for name, boxes in (polygons or BASIN_BOXES).items():
            hit = np.zeros(len(xq), dtype=bool)
            for box in boxes:
                hit |= inpolygon(xq, yq, *_box_vertices(*box))
            inside[name] = hit
    else:
        shapes = gpd.read_file(polygons)
        if "name" not in shapes.columns:
            raise ValueError(f"{polygons} has no 'name' column.")
        points = gpd.GeoSeries(gpd.points_from_xy(xq, yq), crs=shapes.crs)
        points_180 = gpd.GeoSeries(
            gpd.points_from_xy(np.where(xq > 180, xq - 360, xq), yq),
            crs=shapes.crs,
        )
        for name, geom in zip(shapes["name"], shapes.geometry):
            hit = points.intersects(geom).to_numpy(copy=True)
            hit |= points_180.intersects(geom).to_numpy()
            inside[name] = inside.get(name, False) | hit

    masks = {}
    taken = np.zeros(len(xq), dtype=bool)
    for name, hit in inside.items():
        hit2D = (hit & ~taken).reshape(lon2D.shape)
        taken |= hit
        masks[name] = grid.to_vector(
            np.broadcast_to(hit2D[:, :, None], grid.shape)
        )
    return masks
