import pytest
import numpy as np
from pyC14.utils import (
    coordinate_check,
    depth_check,
    inpolygon,
    prettylat,
    prettylon,
    read_yaml,
)


def test_prettylon():
    assert prettylon(160) == "160°E"
    assert prettylon(340) == "20°W"
    assert prettylon(-20) == "20°W"
    assert prettylon(360) == "0°"


def test_prettylat():
    assert prettylat(0) == "Eq"
    assert prettylat(30.2) == "30°N"
    assert prettylat(-12) == "12°S"


def test_coordinate_check():
    """Are negative longitudes moved onto the 0-360 axis?"""
    lon, lat = coordinate_check(-170, 10)
    assert np.abs(lon - 190) < 1e-12
    assert lat == 10
    with pytest.raises(ValueError):
        coordinate_check(10, -91)


def test_depth_check():
    with pytest.warns(UserWarning):
        assert depth_check(-100) == 100
    with pytest.warns(UserWarning):
        depth_check(6000, max_depth=5000)
    assert depth_check(100, max_depth=5000) == 100


def test_inpolygon():
    """Is the inside of a box told apart from the outside?"""
    inside = inpolygon([5, 15, 5], [5, 5, -5], [0, 10, 10, 0], [0, 0, 10, 10])
    assert list(inside) == [True, False, False]


def test_read_yaml(tmp_path):
    filename = tmp_path / "empty.yaml"
    filename.write_text("")
    assert read_yaml(filename) == {}
    filename.write_text("- 1\n- 2\n")
    with pytest.raises(ValueError):
        read_yaml(filename)
    filename.write_text("clim: [0, 100]\n")
    assert read_yaml(filename) == {"clim": [0, 100]}
