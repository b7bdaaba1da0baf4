# src/lcplatform/ports/terrain.py
from __future__ import annotations

from typing import Protocol, runtime_checkable

from ..contracts.geo import GeoProfile
from ..contracts.products import TerrainSet

@runtime_checkable
class TerrainProviderPort(Protocol):
    """Elevación, pendiente, orientación, área aportante y HAND sobre `grid`."""
    def terrain(self, grid: GeoProfile) -> TerrainSet: ...

__all__ = ["TerrainProviderPort"]
