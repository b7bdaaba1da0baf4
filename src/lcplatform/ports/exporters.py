# src/lcplatform/ports/exporters.py
from __future__ import annotations

from typing import Protocol, runtime_checkable, Mapping, Any
from ..contracts.core import ClassPalette
from ..contracts.geo import Bounds, CRSRef, GeoRaster
from ..contracts.products import SampleSet

URI = str

@runtime_checkable
class SampleExporterPort(Protocol):
    """Archivo de puntos de entrenamiento (clase + geometría)."""
    def export_samples(self, samples: SampleSet, crs: CRSRef, out_uri: URI) -> URI: ...


@runtime_checkable
class BoundaryExporterPort(Protocol):
    """Límite del área de estudio como archivo vectorial."""
    def export_boundary(self, name: str, bounds: Bounds, crs: CRSRef, out_uri: URI) -> URI: ...


@runtime_checkable
class QuicklookExporterPort(Protocol):
    def export_classmap(self, labels: GeoRaster, palette: ClassPalette, out_uri: URI) -> URI: ...


@runtime_checkable
class ReportExporterPort(Protocol):
    """
    Genera reportes tabulares en base a contexto.
    Adapter típico: CSV.
    """
    def render(self, template_id: str, context: Mapping[str, Any], out_uri: URI) -> URI: ...

__all__ = [
    "SampleExporterPort", "BoundaryExporterPort", "QuicklookExporterPort",
    "ReportExporterPort", "URI",
]
