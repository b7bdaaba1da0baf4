from __future__ import annotations

import warnings
from dataclasses import dataclass
from datetime import date
from typing import Dict, Optional, Sequence, Tuple

import numpy as np
from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from .core import CLASS_CODES
from .features import FEATURE_NAMES, SPECTRAL_BANDS, SpectralBand, check_names
from .geo import GeoProfile, GeoRaster, validate_grid_compat


class ImageryCollection(BaseModel):
    """
    Serie temporal de reflectancias (T, 6, H, W) en float32.
    Los píxeles enmascarados por calidad (nubes, sombras) llegan como NaN.
    """
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    scenes: np.ndarray
    profile: GeoProfile
    dates: Tuple[date, ...] = ()
    band_names: Tuple[SpectralBand, ...] = SPECTRAL_BANDS

    @field_validator("scenes")
    @classmethod
    def _shape(cls, v: np.ndarray) -> np.ndarray:
        if v.ndim != 4:
            raise ValueError(f"scenes debe ser 4D (T,B,H,W); llegó {v.ndim}D")
        if v.shape[0] == 0:
            raise ValueError("La colección no tiene escenas")
        v = v.astype("float32", copy=False)
        v.setflags(write=False)
        return v

    @model_validator(mode="after")
    def _coherence(self) -> "ImageryCollection":
        t, b, h, w = self.scenes.shape
        if tuple(self.band_names) != SPECTRAL_BANDS or b != len(SPECTRAL_BANDS):
            raise ValueError(f"Se esperan bandas {SPECTRAL_BANDS}")
        if (h, w) != self.profile.shape:
            raise ValueError(f"Dimensiones {h}x{w} no coinciden con el perfil {self.profile.shape}")
        if self.dates and len(self.dates) != t:
            raise ValueError("dates debe tener una fecha por escena")
        return self

    @property
    def n_scenes(self) -> int:
        return int(self.scenes.shape[0])

    def band(self, name: SpectralBand) -> np.ndarray:
        """(T, H, W) de una banda."""
        return self.scenes[:, self.band_names.index(name)]

    def median_composite(self) -> np.ndarray:
        """Mediana temporal (6, H, W); NaN donde ninguna escena es válida."""
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", category=RuntimeWarning)
            return np.nanmedian(self.scenes, axis=0).astype("float32")


class TerrainSet(BaseModel):
    """Derivados de terreno/hidrología alineados a la grilla de la imagen."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    elevation: GeoRaster
    slope: GeoRaster           # grados
    aspect: GeoRaster          # grados
    upstream_area: GeoRaster   # acumulación de flujo (km2)
    hand: GeoRaster            # altura sobre el drenaje más cercano (m)

    @model_validator(mode="after")
    def _same_grid(self) -> "TerrainSet":
        ref = self.elevation.profile
        for r in (self.slope, self.aspect, self.upstream_area, self.hand):
            validate_grid_compat(ref, r.profile)
        return self

    @property
    def profile(self) -> GeoProfile:
        return self.elevation.profile


class LabelSources(BaseModel):
    """Dos productos globales de cobertura, cada uno en su propio esquema de códigos."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    primary: GeoRaster
    secondary: GeoRaster

    @model_validator(mode="after")
    def _same_grid(self) -> "LabelSources":
        validate_grid_compat(self.primary.profile, self.secondary.profile)
        return self


@dataclass(frozen=True)
class FeatureStack:
    """Stack (82, H, W) float32 con nombres fijos (FEATURE_NAMES)."""
    raster: GeoRaster
    names: Tuple[str, ...] = FEATURE_NAMES

    def __post_init__(self):
        if tuple(self.names) != FEATURE_NAMES:
            raise ValueError("El orden de bandas no coincide con el esquema de features")
        if self.raster.data.ndim != 3 or self.raster.data.shape[0] != len(FEATURE_NAMES):
            raise ValueError(f"Se esperan {len(FEATURE_NAMES)} bandas; shape={self.raster.data.shape}")

    @property
    def profile(self) -> GeoProfile:
        return self.raster.profile

    @property
    def shape(self) -> Tuple[int, int]:
        return self.raster.profile.shape

    def band(self, name: str) -> np.ndarray:
        return self.raster.data[self.names.index(name)]

    def select(self, names: Sequence[str]) -> np.ndarray:
        idx = [self.names.index(n) for n in check_names(tuple(names))]
        return self.raster.data[idx]

    def matrix(self, names: Optional[Sequence[str]] = None) -> np.ndarray:
        """(H*W, F) en orden fila-mayor."""
        data = self.raster.data if names is None else self.select(names)
        f = data.shape[0]
        return data.reshape(f, -1).T

    def complete_mask(self, names: Optional[Sequence[str]] = None) -> np.ndarray:
        """(H, W) True donde el vector de features no tiene valores faltantes."""
        data = self.raster.data if names is None else self.select(names)
        return np.isfinite(data).all(axis=0)


@dataclass(frozen=True)
class SampleSet:
    """Puntos etiquetados en forma matricial. Inmutable una vez creado."""
    features: np.ndarray            # (N, F) float32
    labels: np.ndarray              # (N,) int16, códigos 1..6
    xy: np.ndarray                  # (N, 2) coordenadas en el CRS del stack
    feature_names: Tuple[str, ...] = FEATURE_NAMES

    def __post_init__(self):
        n = self.labels.shape[0]
        if self.features.ndim != 2 or self.features.shape[0] != n:
            raise ValueError("features debe ser (N, F) con N == len(labels)")
        if self.features.shape[1] != len(self.feature_names):
            raise ValueError("features y feature_names no coinciden")
        if self.xy.shape != (n, 2):
            raise ValueError("xy debe ser (N, 2)")
        bad = ~np.isin(self.labels, CLASS_CODES)
        if bad.any():
            raise ValueError(f"Etiquetas fuera de la enumeración: {sorted(set(self.labels[bad].tolist()))}")
        for arr in (self.features, self.labels, self.xy):
            arr.setflags(write=False)

    def __len__(self) -> int:
        return int(self.labels.shape[0])

    def columns(self, names: Sequence[str]) -> np.ndarray:
        idx = [self.feature_names.index(n) for n in check_names(tuple(names))]
        return self.features[:, idx]

    def subset(self, mask: np.ndarray) -> "SampleSet":
        return SampleSet(
            features=self.features[mask].copy(),
            labels=self.labels[mask].copy(),
            xy=self.xy[mask].copy(),
            feature_names=self.feature_names,
        )

    def class_histogram(self) -> Dict[int, int]:
        return {c: int((self.labels == c).sum()) for c in CLASS_CODES}


@dataclass(frozen=True)
class Partition:
    train: SampleSet
    test: SampleSet
    random_values: np.ndarray       # valor uniforme asignado a cada punto original
    split_ratio: float


__all__ = [
    "ImageryCollection", "TerrainSet", "LabelSources", "FeatureStack",
    "SampleSet", "Partition",
]
