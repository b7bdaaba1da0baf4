# src/lcplatform/adapters/rasterio_raster_writer.py
from __future__ import annotations

import os
from typing import Optional

import numpy as np
import rasterio

from ..contracts.geo import GeoRaster
from ..ports.raster_write import RasterWriterPort
from .rasterio_raster_reader import crsref_to_rasterio, gt_to_affine


def _ensure_dir(path: str) -> None:
    d = os.path.dirname(path)
    if d and not os.path.exists(d):
        os.makedirs(d, exist_ok=True)


class RasterioRasterWriter(RasterWriterPort):
    """GeoTIFF vía rasterio. Píxeles enmascarados -> nodata del perfil."""

    def write(self, uri: str, raster: GeoRaster, *, compress: Optional[str] = None, tiled: bool = True) -> str:
        _ensure_dir(uri)
        p = raster.profile
        data = raster.data
        if np.ma.isMaskedArray(data):
            if p.nodata is None:
                raise ValueError("Raster enmascarado sin nodata en el perfil")
            data = data.filled(p.nodata)
        data = np.asarray(data)
        if data.ndim == 2:
            data = data[np.newaxis]

        profile = {
            "driver": "GTiff",
            "height": p.height,
            "width": p.width,
            "count": data.shape[0],
            "dtype": data.dtype,
            "transform": gt_to_affine(p.transform),
            "compress": (compress or "DEFLATE").upper(),
            "nodata": p.nodata,
        }
        # rasterio exige bloques múltiplos de 16 para GTiff teselado
        if tiled and p.width >= 256 and p.height >= 256:
            profile.update(tiled=True, blockxsize=256, blockysize=256)
        crs = crsref_to_rasterio(p.crs)
        if crs is not None:
            profile["crs"] = crs
        with rasterio.open(uri, "w", **profile) as dst:
            dst.write(data)
        return uri
