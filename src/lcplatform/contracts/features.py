# src/lcplatform/contracts/features.py
"""
Esquema fijo del vector de features (82 bandas).

El orden es parte del contrato: entrenamiento, muestreo e inferencia
sobre la imagen completa usan exactamente esta tupla.
"""

from __future__ import annotations

from typing import Literal, Tuple

SpectralBand = Literal["Blue", "Green", "Red", "NIR", "SWIR1", "SWIR2"]

SPECTRAL_BANDS: Tuple[SpectralBand, ...] = ("Blue", "Green", "Red", "NIR", "SWIR1", "SWIR2")
PERCENTILES: Tuple[int, ...] = (10, 25, 50, 75, 90)

INDEX_NAMES: Tuple[str, ...] = (
    "NDVI", "NDBI", "NDWI", "MNDWI", "NDSI", "NBR", "BSI", "Brightness", "BCI", "BLFEI",
)
INDEX_STATS: Tuple[str, ...] = ("min", "max", "mean", "stdDev")

TEXTURE_NAMES: Tuple[str, ...] = (
    "NIR_var", "NIR_contrast", "NIR_diss", "NIR_ent", "NIR_corr", "NIR_idm",
)
TERRAIN_NAMES: Tuple[str, ...] = ("elevation", "aspect", "slope", "HAND", "TWI", "TPI")

PERCENTILE_NAMES: Tuple[str, ...] = tuple(
    f"{b}_p{q}" for b in SPECTRAL_BANDS for q in PERCENTILES
)
INDEX_STAT_NAMES: Tuple[str, ...] = tuple(
    f"{i}_{s}" for i in INDEX_NAMES for s in INDEX_STATS
)

FEATURE_NAMES: Tuple[str, ...] = (
    PERCENTILE_NAMES + INDEX_STAT_NAMES + TEXTURE_NAMES + TERRAIN_NAMES
)
N_FEATURES = 82

# Bandas "tradicionales" (medianas) para el clasificador de distancia mínima
MEDIAN_SPECTRAL_NAMES: Tuple[str, ...] = tuple(f"{b}_p50" for b in SPECTRAL_BANDS)

# Bandas que consume el motor de consenso (reglas físicas)
WATER_INDEX_BAND = "MNDWI_mean"
BARE_INDEX_BAND = "BSI_mean"
VEGETATION_INDEX_BAND = "NDVI_mean"
HAND_BAND = "HAND"

if len(FEATURE_NAMES) != N_FEATURES or len(set(FEATURE_NAMES)) != N_FEATURES:
    raise RuntimeError(f"Esquema de features inconsistente: {len(FEATURE_NAMES)} bandas")


def check_names(names: Tuple[str, ...]) -> Tuple[str, ...]:
    """Valida que `names` pertenezca al esquema y no tenga repetidos."""
    unknown = [n for n in names if n not in FEATURE_NAMES]
    if unknown:
        raise KeyError(f"Bandas fuera del esquema: {unknown}")
    if len(set(names)) != len(names):
        raise ValueError("Bandas repetidas en la selección")
    return tuple(names)


__all__ = [
    "SpectralBand", "SPECTRAL_BANDS", "PERCENTILES", "INDEX_NAMES", "INDEX_STATS",
    "TEXTURE_NAMES", "TERRAIN_NAMES", "PERCENTILE_NAMES", "INDEX_STAT_NAMES",
    "FEATURE_NAMES", "N_FEATURES", "MEDIAN_SPECTRAL_NAMES", "WATER_INDEX_BAND",
    "BARE_INDEX_BAND", "VEGETATION_INDEX_BAND", "HAND_BAND", "check_names",
]
