import numpy as np
import warnings
import yaml
from shapely.geometry.polygon import Polygon
import geopandas as gpd

YEAR = 365.25 * 24 * 60 * 60  # s
NANOMOLAR = 1e-6  # mol m-3


def seconds_to_years(t):
    return np.asarray(t) / YEAR


def params_check(params):
    """Check that all radiocarbon parameters are finite and positive."""
    for name, value in params._asdict().items():
        if not np.isfinite(value) or value <= 0:
            raise ValueError(
                f"Parameter {name} must be a finite positive number, got {value}."
            )
    return params


def depth_check(depth, max_depth=None):
    """This step checks for negative depths.  If found, it changes them to
    positive depths and issues a warning."""
    if depth < 0:
        warnings.warn(
            "A negative depth was detected and changed to a positive value."
        )
        depth = abs(depth)
    if max_depth is not None and depth > max_depth:
        warnings.warn(
            f"Depth {depth} m is below the deepest grid level; using the deepest level ({max_depth} m)."
        )
    return depth


def coordinate_check(lon, lat):
    """Book-keeping with coordinate inputs and adjusting negative
    longitudes."""
    if np.abs(lat) > 90:
        raise ValueError(
            "A latitude >90 degrees (N or S) has been detected.  Verify latitude is the 2nd element of the (lon, lat) coordinate."
        )
    lon = np.mod(lon, 360)
    return lon, lat


def prettylon(lon):
    """Format a longitude as e.g. 160°E or 20°W."""
    lon = int(round(np.mod(lon + 180, 360) - 180))
    if lon == 0:
        return "0°"
    return f"{lon}°E" if lon > 0 else f"{-lon}°W"


def prettylat(lat):
    """Format a latitude as e.g. 30°N, 12°S or Eq."""
    lat = int(round(lat))
    if lat == 0:
        return "Eq"
    return f"{lat}°N" if lat > 0 else f"{-lat}°S"


def inpolygon(xq, yq, xv, yv):
    """Test for points in polygon."""
    polygon_geom = Polygon(zip(xv, yv))
    polygon = gpd.GeoDataFrame(
        index=[0], crs="epsg:4326", geometry=[polygon_geom]
    )
    geo = gpd.points_from_xy(xq, yq)
    points = gpd.GeoDataFrame(geometry=geo, crs=polygon.crs)
    pointInPolys = points.intersects(polygon.union_all())
    return pointInPolys.to_numpy()


def read_yaml(filename):
    """Read a YAML mapping, returning an empty dict for an empty file."""
    with open(filename) as f:
        contents = yaml.safe_load(f)
    if contents is None:
        return {}
    if not isinstance(contents, dict):
        raise ValueError(
            f"{filename} must contain a YAML mapping of option names to values."
        )
    return contents
