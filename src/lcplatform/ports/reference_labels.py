# src/lcplatform/ports/reference_labels.py
from __future__ import annotations

from typing import Protocol, runtime_checkable

from ..contracts.geo import GeoProfile
from ..contracts.products import LabelSources

@runtime_checkable
class ReferenceLabelPort(Protocol):
    """
    Dos productos de cobertura independientes (códigos crudos de cada fuente),
    alineados a la grilla `grid`. La armonización 1..6 NO ocurre aquí.
    """
    def sources(self, grid: GeoProfile) -> LabelSources: ...

__all__ = ["ReferenceLabelPort"]
