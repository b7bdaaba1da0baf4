# src/lcplatform/ports/sampler.py
from __future__ import annotations

from typing import Protocol, runtime_checkable

from ..contracts.core import ClassCounts
from ..contracts.geo import GeoRaster
from ..contracts.products import FeatureStack, SampleSet

@runtime_checkable
class SamplerPort(Protocol):
    """
    Muestreo estratificado sobre el raster de etiquetas final.
    Reglas:
      - Independiente por clase, hasta `counts` puntos por clase (orden de la enumeración).
      - Descarta píxeles cuyo vector de features tenga valores faltantes.
      - Devuelve el vector completo (82), la etiqueta y la ubicación (centro de píxel).
    """
    def stratified_sample(
        self, stack: FeatureStack, labels: GeoRaster, counts: ClassCounts, *, seed: int
    ) -> SampleSet: ...

__all__ = ["SamplerPort"]
