# src/lcplatform/ports/imagery.py
from __future__ import annotations

from datetime import date
from typing import Protocol, Sequence, runtime_checkable

from ..contracts.geo import Bounds, CRSRef
from ..contracts.products import ImageryCollection

@runtime_checkable
class ImageryProviderPort(Protocol):
    """
    Proveedor de imágenes multitemporales.
    Reglas:
      - Devuelve reflectancias (6 bandas: Blue..SWIR2) en float32.
      - Los píxeles que no cumplen el predicado de calidad (bits QA) llegan como NaN.
      - Todas las escenas comparten la grilla del perfil devuelto.
    """
    def collection(
        self,
        extent: Bounds,
        extent_crs: CRSRef,
        start: date,
        end: date,
        *,
        qa_mask_bits: Sequence[int] = (2, 3, 4),
    ) -> ImageryCollection: ...

__all__ = ["ImageryProviderPort"]
