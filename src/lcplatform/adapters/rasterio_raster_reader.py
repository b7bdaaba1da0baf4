# src/lcplatform/adapters/rasterio_raster_reader.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np
import rasterio
from rasterio.crs import CRS
from rasterio.enums import Resampling
from rasterio.transform import Affine
from rasterio.warp import reproject

from ..contracts.geo import CRSRef, DTypeStr, GeoProfile, GeoRaster, GeoTransform
from ..ports.raster_read import RasterReaderPort

_DTYPE_MAP = {
    np.dtype("uint8"): "uint8",
    np.dtype("uint16"): "uint16",
    np.dtype("int16"): "int16",
    np.dtype("uint32"): "uint32",
    np.dtype("int32"): "int32",
    np.dtype("float32"): "float32",
    np.dtype("float64"): "float64",
}


def _np_to_dtype_str(dt: np.dtype) -> DTypeStr:
    try:
        return _DTYPE_MAP[np.dtype(dt)]  # type: ignore[return-value]
    except KeyError as e:
        raise ValueError(f"dtype {dt} no soportado") from e


def gt_to_affine(gt: GeoTransform) -> Affine:
    return Affine(gt[1], gt[2], gt[0], gt[4], gt[5], gt[3])


def crsref_to_rasterio(crs: CRSRef) -> Optional[CRS]:
    if crs.epsg is not None:
        return CRS.from_epsg(int(crs.epsg))
    if crs.wkt:
        return CRS.from_wkt(crs.wkt)
    return None


@dataclass(frozen=True)
class RasterioRasterReader(RasterReaderPort):
    """Lector GeoTIFF con rasterio; `read_to_grid()` remuestrea a la grilla de trabajo."""

    def read_to_grid(
        self,
        uri: str,
        grid: GeoProfile,
        *,
        band_index: int | None = None,
        resampling: Resampling | None = None,
        nodata: float | None = None,
    ) -> GeoRaster:
        """
        Lee y remuestrea a `grid` (CRS, tamaño, transform).

        El nodata del archivo manda; `nodata` es el respaldo cuando el archivo no
        declara ninguno. Sin ambos, los float usan NaN y los enteros no tienen nodata
        (fuera de cobertura queda 0, sin marcarse inválido).
        """
        with rasterio.open(uri) as ds:
            indexes = list(range(1, ds.count + 1)) if band_index is None else [int(band_index)]
            src = ds.read(indexes)
            dtype = src.dtype
            nd = ds.nodata if ds.nodata is not None else nodata
            if nd is None and dtype.kind == "f":
                nd = np.nan
            dst = np.full((len(indexes), grid.height, grid.width), 0 if nd is None else nd, dtype=dtype)
            for i in range(len(indexes)):
                reproject(
                    source=src[i],
                    destination=dst[i],
                    src_transform=ds.transform,
                    src_crs=ds.crs,
                    src_nodata=nd,
                    dst_transform=gt_to_affine(grid.transform),
                    dst_crs=crsref_to_rasterio(grid.crs),
                    dst_nodata=nd,
                    resampling=resampling or Resampling.nearest,
                )
        data = dst[0] if band_index is not None else dst
        prof_nd = None if nd is None or np.isnan(nd) else float(nd)
        prof = grid.with_count(len(indexes), dtype=_np_to_dtype_str(dtype), nodata=prof_nd)
        return GeoRaster(data, prof)
