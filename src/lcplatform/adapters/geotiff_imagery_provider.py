# src/lcplatform/adapters/geotiff_imagery_provider.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Sequence, Tuple

import numpy as np
from rasterio.enums import Resampling

from ..contracts.geo import Bounds, CRSRef, GeoProfile, grid_from_bounds
from ..contracts.products import ImageryCollection
from ..ports.catalog import SceneCatalogPort
from ..ports.imagery import ImageryProviderPort
from ..ports.raster_read import RasterReaderPort
from .rasterio_raster_reader import RasterioRasterReader

logger = logging.getLogger(__name__)

QA_FILL_BIT = 0


def qa_bitmask(qa: np.ndarray, bits: Sequence[int]) -> np.ndarray:
    """True donde cualquiera de `bits` está encendido en la banda QA (bit 0 = relleno, siempre)."""
    q = np.asarray(qa).astype(np.uint32)
    flags = 0
    for b in set(bits) | {QA_FILL_BIT}:
        flags |= 1 << int(b)
    return (q & np.uint32(flags)) != 0


@dataclass
class GeoTiffImageryProvider(ImageryProviderPort):
    """
    Escenas Landsat C2 L2 catalogadas como GeoTIFF multibanda
    (por defecto: 1..6 = Blue, Green, Red, NIR, SWIR1, SWIR2; 7 = QA_PIXEL).
    Cada escena se remuestrea (vecino más cercano) a la grilla del área,
    se enmascara por bits QA y se escala a reflectancia.
    """
    catalog: SceneCatalogPort
    pixel_size: float                                   # unidades del CRS del área
    reader: RasterReaderPort = field(default_factory=RasterioRasterReader)
    band_indexes: Tuple[int, ...] = (1, 2, 3, 4, 5, 6)
    qa_band: int = 7
    scale: float = 0.0000275
    offset: float = -0.2
    fill_value: int = 0                                 # relleno SR de Collection 2 si el archivo no declara nodata

    def grid(self, extent: Bounds, extent_crs: CRSRef) -> GeoProfile:
        return grid_from_bounds(extent, extent_crs, self.pixel_size)

    def _scene(self, uri: str, grid: GeoProfile, qa_mask_bits: Sequence[int]) -> np.ndarray:
        r = self.reader.read_to_grid(uri, grid, resampling=Resampling.nearest, nodata=self.fill_value)
        raw = np.ma.getdata(r.data)
        if raw.ndim != 3 or raw.shape[0] < max(max(self.band_indexes), self.qa_band):
            raise ValueError(f"{uri}: se esperan {max(self.band_indexes)} bandas SR + QA; hay {raw.shape[0]}")
        valid = r.valid_mask()
        sr_idx = [i - 1 for i in self.band_indexes]
        ok = valid[sr_idx].all(axis=0)
        ok &= ~qa_bitmask(raw[self.qa_band - 1], qa_mask_bits)

        refl = raw[sr_idx].astype("float32") * np.float32(self.scale) + np.float32(self.offset)
        refl[:, ~ok] = np.nan
        return refl

    def collection(
        self,
        extent: Bounds,
        extent_crs: CRSRef,
        start: date,
        end: date,
        *,
        qa_mask_bits: Sequence[int] = (2, 3, 4),
    ) -> ImageryCollection:
        items = list(self.catalog.iter_scenes(start, end))
        if not items:
            raise ValueError(f"No hay escenas entre {start} y {end}")
        grid = self.grid(extent, extent_crs)
        logger.info("Leyendo %d escenas a grilla %dx%d", len(items), grid.width, grid.height)
        scenes = np.stack([self._scene(str(it.path), grid, qa_mask_bits) for it in items], axis=0)
        return ImageryCollection(
            scenes=scenes,
            profile=grid.with_count(len(self.band_indexes), dtype="float32", nodata=None),
            dates=tuple(it.acq_date for it in items),
        )
