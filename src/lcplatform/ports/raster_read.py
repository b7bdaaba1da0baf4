# src/lcplatform/ports/raster_read.py
from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable
from ..contracts.geo import GeoRaster, GeoProfile

URI = str

@runtime_checkable
class RasterReaderPort(Protocol):
    """
    Lector de raster genérico (GeoTIFF/COG, etc.) que entrega los datos ya en la grilla pedida.
    Reglas: con `band_index` devuelve 2D, si no (C, H, W). `nodata` solo se usa
    cuando el archivo no declara uno; si ninguno existe, ningún valor entero se marca inválido.
    """
    def read_to_grid(
        self,
        uri: URI,
        grid: GeoProfile,
        *,
        band_index: Optional[int] = None,
        resampling: Any = None,
        nodata: Optional[float] = None,
    ) -> GeoRaster: ...

__all__ = ["RasterReaderPort", "URI"]
