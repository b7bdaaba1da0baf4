# src/lcplatform/services/feature_service.py
from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from typing import Dict, Tuple

import numpy as np
from scipy import ndimage
from skimage.util import view_as_windows

from ..contracts.features import (
    FEATURE_NAMES, INDEX_NAMES, PERCENTILES, SPECTRAL_BANDS, TEXTURE_NAMES,
)
from ..contracts.geo import GeoProfile, GeoRaster, validate_grid_compat
from ..contracts.products import FeatureStack, ImageryCollection, TerrainSet

logger = logging.getLogger(__name__)

# (dfila, dcolumna) a distancia 1: 0°, 45°, 90°, 135°
GLCM_OFFSETS = ((0, 1), (1, 1), (1, 0), (1, -1))
# celdas de ventana por bloque de filas (acota la memoria)
GLCM_BLOCK_CELLS = 2_000_000


def _pairs(windows: np.ndarray, dr: int, dc: int) -> Tuple[np.ndarray, np.ndarray]:
    """(referencia, vecino) de cada ventana (..., k, k) aplanados a (..., n_pares)."""
    k = windows.shape[-1]
    r0, r1 = max(0, -dr), k - max(0, dr)
    c0, c1 = max(0, -dc), k - max(0, dc)
    a = windows[..., r0:r1, c0:c1]
    b = windows[..., r0 + dr:r1 + dr, c0 + dc:c1 + dc]
    n = a.shape[-2] * a.shape[-1]
    return a.reshape(a.shape[:-2] + (n,)), b.reshape(b.shape[:-2] + (n,))


def pair_entropy(codes: np.ndarray) -> np.ndarray:
    """Entropía (ln) de la distribución de códigos de cada fila de `codes` (N, M)."""
    n, m = codes.shape
    s = np.sort(codes, axis=1)
    start = np.ones(s.shape, dtype=bool)
    start[:, 1:] = s[:, 1:] != s[:, :-1]
    run = np.cumsum(start, axis=1) - 1 + (np.arange(n) * m)[:, None]
    counts = np.bincount(run.ravel(), minlength=n * m).astype("float64")
    nz = counts > 0
    clogc = np.zeros_like(counts)
    clogc[nz] = counts[nz] * np.log(counts[nz])
    return np.log(m) - clogc.reshape(n, m).sum(axis=1) / m


def safe_ratio(num: np.ndarray, den: np.ndarray) -> np.ndarray:
    """num/den en float32; denominador cero -> NaN (nunca inf)."""
    num = np.asarray(num, dtype="float32")
    den = np.asarray(den, dtype="float32")
    out = np.full(np.broadcast(num, den).shape, np.nan, dtype="float32")
    np.divide(num, den, out=out, where=(den != 0))
    return out


def normalized_difference(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return safe_ratio(a - b, a + b)


@dataclass
class FeatureService:
    """
    Construye el stack de 82 features por píxel (puro dominio, sin I/O):
      - percentiles temporales por banda (30)
      - estadísticos temporales de índices (40)
      - textura GLCM sobre el NIR compuesto (6)
      - terreno / hidrología (6)
    Todo NaN de entrada se propaga: el vector queda incompleto.
    """
    glcm_radius: int = 3
    glcm_levels: int = 32
    tpi_radius_m: float = 150.0

    # ------------------
    # Espectral
    # ------------------
    def percentiles(self, coll: ImageryCollection) -> np.ndarray:
        """(30, H, W) en orden banda-mayor: Blue_p10..Blue_p90, Green_p10, ..."""
        _, b, h, w = coll.scenes.shape
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", category=RuntimeWarning)
            q = np.nanpercentile(coll.scenes, PERCENTILES, axis=0)   # (5, B, H, W)
        return np.transpose(q, (1, 0, 2, 3)).reshape(b * len(PERCENTILES), h, w).astype("float32")

    def indices(self, coll: ImageryCollection) -> Dict[str, np.ndarray]:
        """Índices por escena, cada uno (T, H, W)."""
        blue, green, red, nir, swir1, swir2 = (coll.band(n) for n in SPECTRAL_BANDS)
        out = {
            "NDVI": normalized_difference(nir, red),
            "NDBI": normalized_difference(swir1, nir),
            "NDWI": normalized_difference(green, nir),
            "MNDWI": normalized_difference(green, swir1),
            # Misma fórmula que MNDWI (verde/SWIR1)
            "NDSI": normalized_difference(green, swir1),
            "NBR": normalized_difference(nir, swir2),
            "BSI": normalized_difference(swir1 + red, nir + blue),
            "Brightness": coll.scenes.mean(axis=1).astype("float32"),
            "BCI": normalized_difference(swir1, red),
            "BLFEI": safe_ratio(swir1 + green - red, swir1 + green + red),
        }
        return {k: out[k] for k in INDEX_NAMES}

    def index_stats(self, coll: ImageryCollection) -> np.ndarray:
        """(40, H, W): min, max, mean, stdDev temporales por índice."""
        layers = []
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", category=RuntimeWarning)
            for arr in self.indices(coll).values():
                layers.extend((
                    np.nanmin(arr, axis=0),
                    np.nanmax(arr, axis=0),
                    np.nanmean(arr, axis=0),
                    np.nanstd(arr, axis=0),
                ))
        return np.stack(layers, axis=0).astype("float32")

    # ------------------
    # Textura
    # ------------------
    def quantize(self, x: np.ndarray) -> np.ndarray:
        """Reflectancia [0,1] -> niveles 0..glcm_levels-1 (uint8)."""
        levels = self.glcm_levels
        v = np.clip(np.nan_to_num(x, nan=0.0), 0.0, 1.0)
        return np.minimum(np.floor(v * levels), levels - 1).astype(np.uint8)

    def glcm_block(self, windows: np.ndarray) -> np.ndarray:
        """
        Ventanas cuantizadas (R, W, k, k) -> (6, R, W) en el orden de TEXTURE_NAMES.

        Cada feature se calcula sobre la GLCM simétrica de una dirección y se
        promedia en las cuatro; las sumas sobre P se expresan como medias sobre
        los pares de píxeles, sin construir la matriz L x L.
        """
        L = self.glcm_levels
        win = windows.astype("float64")
        acc = np.zeros((len(TEXTURE_NAMES),) + win.shape[:2])
        for dr, dc in GLCM_OFFSETS:
            a, b = _pairs(win, dr, dc)
            d = a - b
            both = np.concatenate([a, b], axis=-1)
            mu = both.mean(axis=-1, keepdims=True)
            var = ((both - mu) ** 2).mean(axis=-1)
            cov = ((a - mu) * (b - mu)).mean(axis=-1)
            corr = np.ones_like(var)                  # ventana constante: correlación 1
            np.divide(cov, var, out=corr, where=var > 0)
            codes = np.concatenate([a * L + b, b * L + a], axis=-1).astype(np.int64)
            ent = pair_entropy(codes.reshape(-1, codes.shape[-1])).reshape(var.shape)
            acc += np.stack([
                var,
                (d ** 2).mean(axis=-1),
                np.abs(d).mean(axis=-1),
                ent,
                corr,
                (1.0 / (1.0 + d ** 2)).mean(axis=-1),
            ])
        return acc / len(GLCM_OFFSETS)

    def texture(self, nir: np.ndarray) -> np.ndarray:
        """(6, H, W) en el orden de TEXTURE_NAMES; NaN donde el NIR compuesto es NaN."""
        h, w = nir.shape
        out = np.full((len(TEXTURE_NAMES), h, w), np.nan, dtype="float32")
        valid = np.isfinite(nir)
        if not valid.any():
            return out
        # Vecinos faltantes se rellenan con la mediana para no sesgar la ventana
        filled = np.where(valid, nir, np.nanmedian(nir))
        r = self.glcm_radius
        k = 2 * r + 1
        windows = view_as_windows(np.pad(self.quantize(filled), r, mode="edge"), (k, k))
        step = max(1, GLCM_BLOCK_CELLS // (w * k * k))
        for r0 in range(0, h, step):
            out[:, r0:r0 + step] = self.glcm_block(windows[r0:r0 + step])
            logger.debug("GLCM filas %d-%d de %d", r0, min(r0 + step, h), h)
        out[:, ~valid] = np.nan
        return out

    # ------------------
    # Terreno
    # ------------------
    def twi(self, upstream_area: np.ndarray, slope_deg: np.ndarray) -> np.ndarray:
        """ln(upa / (tan(pendiente) + 0.01)); razones no positivas -> NaN."""
        ratio = safe_ratio(upstream_area, np.tan(np.radians(slope_deg)) + 0.01)
        out = np.full(ratio.shape, np.nan, dtype="float32")
        np.log(ratio, out=out, where=np.isfinite(ratio) & (ratio > 0))
        return out

    def disk_kernel(self, profile: GeoProfile) -> np.ndarray:
        px, py = profile.pixel_size_m()
        radius_px = max(1, int(round(self.tpi_radius_m / ((px + py) / 2.0))))
        yy, xx = np.mgrid[-radius_px:radius_px + 1, -radius_px:radius_px + 1]
        return (xx ** 2 + yy ** 2 <= radius_px ** 2).astype("float64")

    def tpi(self, elevation: np.ndarray, profile: GeoProfile) -> np.ndarray:
        """elevación - media focal (círculo de radio tpi_radius_m), ignorando NaN."""
        kernel = self.disk_kernel(profile)
        valid = np.isfinite(elevation)
        total = ndimage.convolve(np.where(valid, elevation, 0.0).astype("float64"), kernel, mode="nearest")
        count = ndimage.convolve(valid.astype("float64"), kernel, mode="nearest")
        focal = safe_ratio(total, count)
        out = (elevation - focal).astype("float32")
        out[~valid] = np.nan
        return out

    def terrain_layers(self, terrain: TerrainSet) -> np.ndarray:
        """(6, H, W): elevation, aspect, slope, HAND, TWI, TPI."""
        elev = terrain.elevation.valid_as_float()
        slope = terrain.slope.valid_as_float()
        layers = (
            elev,
            terrain.aspect.valid_as_float(),
            slope,
            terrain.hand.valid_as_float(),
            self.twi(terrain.upstream_area.valid_as_float(), slope),
            self.tpi(elev, terrain.profile),
        )
        return np.stack(layers, axis=0).astype("float32")

    # ------------------
    # Stack completo
    # ------------------
    def build(self, coll: ImageryCollection, terrain: TerrainSet) -> FeatureStack:
        validate_grid_compat(coll.profile, terrain.profile)
        h, w = coll.profile.shape
        logger.info("Construyendo stack de features: %d escenas, %dx%d px", coll.n_scenes, h, w)

        nir = coll.median_composite()[SPECTRAL_BANDS.index("NIR")]
        data = np.concatenate([
            self.percentiles(coll),
            self.index_stats(coll),
            self.texture(nir),
            self.terrain_layers(terrain),
        ], axis=0)

        prof = coll.profile.with_count(len(FEATURE_NAMES), dtype="float32", nodata=None)
        stack = FeatureStack(raster=GeoRaster(data=data, profile=prof))
        complete = int(stack.complete_mask().sum())
        logger.info("Stack listo: %d bandas, %d/%d píxeles completos", data.shape[0], complete, h * w)
        return stack
