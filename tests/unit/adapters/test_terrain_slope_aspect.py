import numpy as np
import pytest
from lcplatform.adapters.geotiff_imagery_provider import qa_bitmask
from lcplatform.adapters.geotiff_terrain_provider import slope_aspect
from tests.factories import make_profile


def test_plane_rising_east_faces_west():
    prof = make_profile(5, 4, px=30.0)
    elev = np.tile(np.arange(5) * 3.0, (4, 1))       # +3 m por píxel hacia el este
    slope, aspect = slope_aspect(elev, prof)
    assert slope == pytest.approx(np.degrees(np.arctan(0.1)), rel=1e-5)
    assert aspect == pytest.approx(270.0)


def test_plane_rising_north_faces_south():
    prof = make_profile(4, 5, px=30.0)
    elev = np.tile((4 - np.arange(5))[:, None] * 3.0, (1, 4))
    _, aspect = slope_aspect(elev, prof)
    assert aspect == pytest.approx(180.0)


def test_flat_dem_has_zero_slope():
    slope, _ = slope_aspect(np.full((3, 3), 1500.0), make_profile(3, 3))
    assert np.allclose(slope, 0.0)


def test_dem_too_small():
    with pytest.raises(ValueError):
        slope_aspect(np.ones((1, 4)), make_profile(4, 1))


def test_qa_bitmask_always_includes_fill():
    qa = np.array([0, 1, 1 << 3, 1 << 5, (1 << 2) | (1 << 6)], dtype=np.uint16)
    m = qa_bitmask(qa, (2, 3, 4))
    assert m.tolist() == [False, True, True, False, True]
