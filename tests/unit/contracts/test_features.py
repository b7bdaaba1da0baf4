import pytest
from lcplatform.contracts.features import (
    FEATURE_NAMES, INDEX_STAT_NAMES, MEDIAN_SPECTRAL_NAMES, N_FEATURES, PERCENTILE_NAMES,
    TERRAIN_NAMES, TEXTURE_NAMES, check_names,
)

def test_feature_vector_has_82_unique_names_in_fixed_order():
    assert len(FEATURE_NAMES) == N_FEATURES == 82
    assert len(set(FEATURE_NAMES)) == 82
    assert FEATURE_NAMES[:5] == ("Blue_p10", "Blue_p25", "Blue_p50", "Blue_p75", "Blue_p90")
    assert FEATURE_NAMES[30:34] == ("NDVI_min", "NDVI_max", "NDVI_mean", "NDVI_stdDev")
    assert FEATURE_NAMES[70:76] == TEXTURE_NAMES
    assert FEATURE_NAMES[-6:] == TERRAIN_NAMES
    assert len(PERCENTILE_NAMES) == 30 and len(INDEX_STAT_NAMES) == 40

def test_median_bands_are_p50():
    assert MEDIAN_SPECTRAL_NAMES == ("Blue_p50", "Green_p50", "Red_p50", "NIR_p50", "SWIR1_p50", "SWIR2_p50")

def test_check_names():
    assert check_names(("HAND", "TPI")) == ("HAND", "TPI")
    with pytest.raises(KeyError):
        check_names(("NDVI_median",))
    with pytest.raises(ValueError):
        check_names(("HAND", "HAND"))
