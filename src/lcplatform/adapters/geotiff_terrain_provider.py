# src/lcplatform/adapters/geotiff_terrain_provider.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple

import numpy as np
from rasterio.enums import Resampling

from ..contracts.geo import GeoProfile, GeoRaster
from ..contracts.products import TerrainSet
from ..ports.terrain import TerrainProviderPort
from ..ports.raster_read import RasterReaderPort
from .rasterio_raster_reader import RasterioRasterReader


def slope_aspect(elevation: np.ndarray, profile: GeoProfile) -> Tuple[np.ndarray, np.ndarray]:
    """
    Pendiente y orientación (grados) por diferencias finitas.
    Orientación: azimut de máxima bajada, horario desde el norte, en [0, 360).
    """
    px, py = profile.pixel_size_m()
    if elevation.shape[0] < 2 or elevation.shape[1] < 2:
        raise ValueError("El DEM necesita al menos 2x2 píxeles")
    dz_drow, dz_dx = np.gradient(elevation.astype("float64"), py, px)
    dz_dy = -dz_drow                       # filas crecen hacia el sur
    slope = np.degrees(np.arctan(np.hypot(dz_dx, dz_dy)))
    aspect = np.mod(np.degrees(np.arctan2(-dz_dx, -dz_dy)), 360.0)
    return slope.astype("float32"), aspect.astype("float32")


@dataclass
class GeoTiffTerrainProvider(TerrainProviderPort):
    """DEM, área aportante y HAND desde GeoTIFF; pendiente/orientación derivadas del DEM."""
    dem_uri: str
    upstream_area_uri: str
    hand_uri: str
    nodata: float = -32768.0                            # respaldo si el archivo no declara nodata
    reader: RasterReaderPort = field(default_factory=RasterioRasterReader)

    def _float(self, uri: str, grid: GeoProfile) -> GeoRaster:
        r = self.reader.read_to_grid(uri, grid, band_index=1, resampling=Resampling.bilinear,
                                     nodata=self.nodata)
        return GeoRaster(r.valid_as_float(), grid.with_count(1, dtype="float32", nodata=None))

    def terrain(self, grid: GeoProfile) -> TerrainSet:
        elev = self._float(self.dem_uri, grid)
        slope, aspect = slope_aspect(elev.data, grid)
        prof = elev.profile
        return TerrainSet(
            elevation=elev,
            slope=GeoRaster(slope, prof),
            aspect=GeoRaster(aspect, prof),
            upstream_area=self._float(self.upstream_area_uri, grid),
            hand=self._float(self.hand_uri, grid),
        )
