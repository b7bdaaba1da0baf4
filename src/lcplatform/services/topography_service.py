# src/lcplatform/services/topography_service.py
from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from ..contracts.assessment import TopographyStats
from ..contracts.geo import GeoRaster


@dataclass
class TopographyService:
    def elevation_range(self, elevation: GeoRaster) -> TopographyStats:
        """Elevación mínima y máxima sobre los píxeles válidos (None si no hay)."""
        ok = elevation.valid_mask()
        if not ok.any():
            return TopographyStats(elevation_min=None, elevation_max=None)
        vals = np.ma.getdata(elevation.data)[ok]
        return TopographyStats(elevation_min=float(vals.min()), elevation_max=float(vals.max()))
