import numpy as np
import pytest
from lcplatform.adapters.numpy_sampler import NumpyStratifiedSampler
from lcplatform.contracts.core import ClassCounts
from lcplatform.contracts.geo import GeoRaster
from tests.factories import make_profile, make_stack


def _labels(w=6, h=4):
    codes = np.tile(np.array([1, 1, 2, 2, 5, 5], dtype=np.int16), (h, 1))[:, :w]
    mask = np.zeros_like(codes, dtype=bool)
    mask[0, 0] = True                          # sin etiqueta
    return GeoRaster(np.ma.MaskedArray(codes, mask=mask), make_profile(w, h, dtype="int16", nodata=0))


def test_counts_capped_by_available_pixels():
    stack = make_stack(w=6, h=4)
    counts = ClassCounts(values=(5, 100, 0, 3, 2, 1))
    s = NumpyStratifiedSampler().stratified_sample(stack, _labels(), counts, seed=1)
    hist = s.class_histogram()
    assert hist[1] == 5
    assert hist[2] == 8          # solo hay 8 píxeles de pasto
    assert hist[3] == 0 and hist[4] == 0 and hist[6] == 0
    assert hist[5] == 2
    assert s.features.shape == (15, 82)


def test_points_are_distinct_and_features_match_stack():
    stack = make_stack(w=6, h=4, seed=3)
    s = NumpyStratifiedSampler().stratified_sample(stack, _labels(), ClassCounts(values=(7, 8, 0, 0, 8, 0)), seed=2)
    assert len({tuple(p) for p in s.xy.tolist()}) == len(s)
    # centro de píxel -> (fila, col)
    gt = stack.profile.transform
    for feats, (x, y) in zip(s.features, s.xy):
        col = int((x - gt[0]) / gt[1])
        row = int((y - gt[3]) / gt[5])
        np.testing.assert_array_equal(feats, stack.raster.data[:, row, col])


def test_masked_and_incomplete_pixels_never_sampled():
    vals = np.ones((4, 6), dtype=np.float32)
    vals[:, 2] = np.nan
    stack = make_stack(w=6, h=4, overrides={"TWI": vals})
    s = NumpyStratifiedSampler().stratified_sample(stack, _labels(), ClassCounts(values=(100,) * 6), seed=0)
    assert s.class_histogram()[1] == 7       # 8 menos el píxel sin etiqueta
    assert s.class_histogram()[2] == 4       # columna 2 incompleta
    assert np.isfinite(s.features).all()


def test_same_seed_same_sample():
    stack = make_stack(w=6, h=4)
    counts = ClassCounts(values=(3, 3, 0, 0, 3, 0))
    a = NumpyStratifiedSampler().stratified_sample(stack, _labels(), counts, seed=9)
    b = NumpyStratifiedSampler().stratified_sample(stack, _labels(), counts, seed=9)
    np.testing.assert_array_equal(a.xy, b.xy)


def test_grid_mismatch():
    with pytest.raises(ValueError):
        NumpyStratifiedSampler().stratified_sample(make_stack(w=5, h=4), _labels(), ClassCounts(), seed=0)
