# src/lcplatform/ports/catalog.py
from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Iterable, Mapping, Optional, Protocol

from pydantic import BaseModel, ConfigDict


class SceneItem(BaseModel):
    """Una escena catalogada (GeoTIFF con 6 bandas SR + QA_PIXEL)."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    scene_id: str
    acq_date: date
    path: Path
    sensor: Optional[str] = None
    cloud_pct: Optional[float] = None
    extras: Mapping[str, object] = {}


class SceneCatalogPort(Protocol):
    """Puerto para listar escenas; detrás puede haber CSV, DB, API, etc."""

    def iter_scenes(
        self,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> Iterable[SceneItem]:
        """Itera escenas filtrables por fecha (inclusive)."""
        ...

__all__ = ["SceneItem", "SceneCatalogPort"]
