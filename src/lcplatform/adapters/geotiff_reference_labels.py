# src/lcplatform/adapters/geotiff_reference_labels.py
from __future__ import annotations

from dataclasses import dataclass, field

from rasterio.enums import Resampling

from ..contracts.geo import GeoProfile
from ..contracts.products import LabelSources
from ..ports.raster_read import RasterReaderPort
from ..ports.reference_labels import ReferenceLabelPort
from .rasterio_raster_reader import RasterioRasterReader


@dataclass
class GeoTiffReferenceLabels(ReferenceLabelPort):
    """
    Dos GeoTIFF categóricos (p.ej. WorldCover y moda de Dynamic World), remuestreo nearest.

    `nodata` solo aplica a archivos sin nodata declarado y debe quedar fuera de los
    códigos de ambos mapas: Dynamic World usa 0 para agua.
    """
    primary_uri: str
    secondary_uri: str
    nodata: int = 255
    reader: RasterReaderPort = field(default_factory=RasterioRasterReader)

    def _read(self, uri: str, grid: GeoProfile):
        return self.reader.read_to_grid(uri, grid, band_index=1, resampling=Resampling.nearest,
                                        nodata=self.nodata)

    def sources(self, grid: GeoProfile) -> LabelSources:
        return LabelSources(primary=self._read(self.primary_uri, grid),
                            secondary=self._read(self.secondary_uri, grid))
