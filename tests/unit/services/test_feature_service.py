import numpy as np
import pytest
from lcplatform.contracts.features import FEATURE_NAMES, PERCENTILE_NAMES, SPECTRAL_BANDS
from lcplatform.contracts.products import ImageryCollection
from skimage.feature import graycomatrix, graycoprops
from lcplatform.services import feature_service
from lcplatform.services.feature_service import FeatureService, normalized_difference, pair_entropy, safe_ratio
from tests.factories import make_collection, make_profile, make_terrain


def test_safe_ratio_zero_denominator_is_nan():
    out = safe_ratio(np.array([1.0, 0.0, 2.0]), np.array([2.0, 0.0, 0.0]))
    assert out[0] == pytest.approx(0.5)
    assert np.isnan(out[1:]).all()
    assert not np.isinf(out).any()


def test_normalized_difference():
    assert normalized_difference(np.array([0.3]), np.array([0.1]))[0] == pytest.approx(0.5)


def test_build_produces_82_named_complete_bands():
    stack = FeatureService(glcm_radius=1).build(make_collection(w=6, h=5), make_terrain(w=6, h=5))
    assert stack.raster.data.shape == (82, 5, 6)
    assert stack.names == FEATURE_NAMES
    assert stack.complete_mask().all()


def test_percentiles_are_band_major():
    t, h, w = 5, 2, 2
    scenes = np.zeros((t, len(SPECTRAL_BANDS), h, w), dtype=np.float32)
    for i in range(t):
        scenes[i] = 0.1 * (i + 1)
    scenes[:, 1] += 1.0   # Green desplazado
    coll = ImageryCollection(scenes=scenes, profile=make_profile(w, h, count=6))
    p = FeatureService().percentiles(coll)
    assert p.shape == (30, h, w)
    assert p[PERCENTILE_NAMES.index("Blue_p50")] == pytest.approx(0.3)
    assert p[PERCENTILE_NAMES.index("Green_p50")] == pytest.approx(1.3)
    assert p[PERCENTILE_NAMES.index("Blue_p10")][0, 0] < p[PERCENTILE_NAMES.index("Blue_p90")][0, 0]


def test_ndsi_matches_mndwi():
    idx = FeatureService().indices(make_collection())
    np.testing.assert_array_equal(idx["NDSI"], idx["MNDWI"])


def test_cloud_masked_scene_is_skipped_not_propagated():
    coll = make_collection(w=4, h=4, t=3)
    scenes = np.array(coll.scenes)
    scenes[0, :, 1, 1] = np.nan
    coll2 = ImageryCollection(scenes=scenes, profile=coll.profile)
    stats = FeatureService().index_stats(coll2)
    assert np.isfinite(stats[:, 1, 1]).all()


def test_pixel_without_valid_scene_is_incomplete():
    coll = make_collection(w=5, h=5, t=3)
    scenes = np.array(coll.scenes)
    scenes[:, :, 2, 3] = np.nan
    coll2 = ImageryCollection(scenes=scenes, profile=coll.profile)
    stack = FeatureService(glcm_radius=1).build(coll2, make_terrain(w=5, h=5))
    complete = stack.complete_mask()
    assert not complete[2, 3]
    assert complete.sum() == 24
    assert np.isnan(stack.band("NIR_contrast")[2, 3])
    assert np.isfinite(stack.band("elevation")[2, 3])


def test_texture_shape_and_constant_window():
    svc = FeatureService(glcm_radius=1)
    tex = svc.texture(np.full((4, 4), 0.3, dtype=np.float32))
    assert tex.shape == (6, 4, 4)
    assert tex[1] == pytest.approx(0.0)      # contraste
    assert tex[5] == pytest.approx(1.0)      # homogeneidad


def test_texture_all_nan():
    tex = FeatureService().texture(np.full((3, 3), np.nan, dtype=np.float32))
    assert np.isnan(tex).all()


def _reference_texture(window, levels):
    """Features por dirección desde la GLCM de scikit-image, promediadas."""
    angles = [0.0, np.pi / 4, np.pi / 2, 3 * np.pi / 4]
    P = graycomatrix(window, [1], angles, levels=levels, symmetric=True, normed=True)
    i, j = np.indices((levels, levels))
    per_angle = []
    for a in range(len(angles)):
        p = P[:, :, 0, a]
        mu = (i * p).sum()
        nz = p[p > 0]
        per_angle.append((
            (((i - mu) ** 2) * p).sum(),
            (((i - j) ** 2) * p).sum(),
            (np.abs(i - j) * p).sum(),
            -(nz * np.log(nz)).sum(),
            graycoprops(P, "correlation")[0, a],
            (p / (1.0 + (i - j) ** 2)).sum(),
        ))
    return np.mean(per_angle, axis=0)


def test_texture_matches_graycomatrix_features():
    nir = np.random.default_rng(4).uniform(0.0, 1.0, (7, 7)).astype(np.float32)
    svc = FeatureService(glcm_radius=2, glcm_levels=8)
    tex = svc.texture(nir)
    expected = _reference_texture(svc.quantize(nir)[1:6, 1:6], 8)
    np.testing.assert_allclose(tex[:, 3, 3], expected, rtol=1e-5, atol=1e-6)


def test_texture_is_independent_of_block_size(monkeypatch):
    nir = np.random.default_rng(5).uniform(0.0, 0.6, (9, 6)).astype(np.float32)
    nir[4, 2] = np.nan
    svc = FeatureService(glcm_radius=1)
    whole = svc.texture(nir)
    monkeypatch.setattr(feature_service, "GLCM_BLOCK_CELLS", 1)
    np.testing.assert_array_equal(svc.texture(nir), whole)
    assert np.isnan(whole[:, 4, 2]).all()
    assert np.isfinite(np.delete(whole.reshape(6, -1), 4 * 6 + 2, axis=1)).all()


def test_pair_entropy():
    codes = np.array([[3, 3, 3, 3], [1, 2, 1, 2], [0, 1, 2, 3]])
    np.testing.assert_allclose(pair_entropy(codes), [0.0, np.log(2), np.log(4)])


def test_twi():
    svc = FeatureService()
    out = svc.twi(np.array([1.0, 0.0, np.nan]), np.array([0.0, 10.0, 5.0]))
    assert out[0] == pytest.approx(np.log(100.0), rel=1e-5)
    assert np.isnan(out[1:]).all()


def test_disk_kernel_radius_in_pixels():
    k = FeatureService(tpi_radius_m=150.0).disk_kernel(make_profile(px=30.0))
    assert k.shape == (11, 11)
    assert k[5, 5] == 1 and k[0, 0] == 0 and k[0, 5] == 1


def test_tpi_flat_and_peak():
    svc = FeatureService(tpi_radius_m=60.0)
    prof = make_profile(7, 7)
    flat = svc.tpi(np.full((7, 7), 1500.0), prof)
    assert np.allclose(flat, 0.0)

    peak = np.full((7, 7), 1500.0)
    peak[3, 3] = 1600.0
    peak[0, 0] = np.nan
    out = svc.tpi(peak, prof)
    assert out[3, 3] > 0
    assert out[3, 2] < 0
    assert np.isnan(out[0, 0])


def test_build_rejects_misaligned_terrain():
    with pytest.raises(ValueError):
        FeatureService().build(make_collection(w=4, h=4), make_terrain(w=5, h=4))
