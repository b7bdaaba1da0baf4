# src/lcplatform/ports/raster_write.py
from __future__ import annotations

from typing import Protocol, runtime_checkable, Optional
from ..contracts.geo import GeoRaster

URI = str

@runtime_checkable
class RasterWriterPort(Protocol):
    """
    Escritor de rasters (GeoTIFF). Los arrays enmascarados se escriben
    con el nodata del perfil en los píxeles enmascarados.
    """
    def write(self, uri: URI, raster: GeoRaster, *, compress: Optional[str] = None, tiled: bool = True) -> URI: ...

__all__ = ["RasterWriterPort", "URI"]
