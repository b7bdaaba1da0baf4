# src/lcplatform/services/consensus_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Tuple

import numpy as np

from ..contracts.core import CLASS_CODES, LandCoverClass
from ..contracts.features import (
    BARE_INDEX_BAND, HAND_BAND, VEGETATION_INDEX_BAND, WATER_INDEX_BAND,
)
from ..contracts.geo import GeoProfile, GeoRaster, validate_grid_compat
from ..contracts.labels import ConsensusResult, ConsensusThresholds, LabelOrigin, RemapTable
from ..contracts.products import FeatureStack, LabelSources

logger = logging.getLogger(__name__)


@dataclass
class ConsensusService:
    """
    Motor de consenso de etiquetas (puro dominio):
      1) acuerdo entre las dos fuentes remapeadas a 1..6
      2) reglas físicas donde no hubo acuerdo: agua, luego suelo desnudo
      3) lo que siga sin asignar queda fuera (enmascarado)
    Prioridad fija Consenso > Agua > Desnudo; un píxel asignado no se revisa.
    """
    thresholds: ConsensusThresholds = field(default_factory=ConsensusThresholds)

    def remap(
        self, sources: LabelSources, primary: RemapTable, secondary: RemapTable
    ) -> Tuple[np.ma.MaskedArray, np.ma.MaskedArray]:
        a = primary.apply(sources.primary.data, nodata=sources.primary.profile.nodata)
        b = secondary.apply(sources.secondary.data, nodata=sources.secondary.profile.nodata)
        return a, b

    @staticmethod
    def agreement(a: np.ma.MaskedArray, b: np.ma.MaskedArray) -> np.ndarray:
        """True donde ambas fuentes tienen código válido y coinciden."""
        ok = ~np.ma.getmaskarray(a) & ~np.ma.getmaskarray(b)
        return ok & (np.ma.getdata(a) == np.ma.getdata(b))

    @staticmethod
    def flagged(a: np.ma.MaskedArray, b: np.ma.MaskedArray, cls: LandCoverClass) -> np.ndarray:
        """Al menos una fuente (remapeada y válida) reporta `cls`."""
        fa = ~np.ma.getmaskarray(a) & (np.ma.getdata(a) == int(cls))
        fb = ~np.ma.getmaskarray(b) & (np.ma.getdata(b) == int(cls))
        return fa | fb

    def combine(
        self,
        a: np.ma.MaskedArray,
        b: np.ma.MaskedArray,
        water_index: np.ndarray,
        hand: np.ndarray,
        bare_index: np.ndarray,
        vegetation_index: np.ndarray,
    ) -> Tuple[np.ma.MaskedArray, np.ndarray]:
        """Devuelve (etiquetas enmascaradas int16, origen uint8)."""
        if not (a.shape == b.shape == water_index.shape == hand.shape
                == bare_index.shape == vegetation_index.shape):
            raise ValueError("Fuentes e índices deben compartir la grilla")
        t = self.thresholds

        agree = self.agreement(a, b)
        # Comparaciones con NaN son False: una entrada faltante nunca dispara una regla
        with np.errstate(invalid="ignore"):
            water_phys = (water_index > t.water_index_min) & (hand < t.hand_max)
            bare_phys = (bare_index > t.bare_index_min) & (vegetation_index < t.vegetation_max)

        water = ~agree & water_phys & self.flagged(a, b, LandCoverClass.WATER)
        bare = ~agree & ~water & bare_phys & self.flagged(a, b, LandCoverClass.BARE)

        labels = np.zeros(a.shape, dtype=np.int16)
        labels[agree] = np.ma.getdata(a)[agree]
        labels[water] = int(LandCoverClass.WATER)
        labels[bare] = int(LandCoverClass.BARE)

        origin = np.full(a.shape, int(LabelOrigin.NONE), dtype=np.uint8)
        origin[agree] = int(LabelOrigin.CONSENSUS)
        origin[water] = int(LabelOrigin.WATER_RULE)
        origin[bare] = int(LabelOrigin.BARE_RULE)

        assigned = agree | water | bare
        return np.ma.MaskedArray(labels, mask=~assigned), origin

    def run(
        self,
        sources: LabelSources,
        primary: RemapTable,
        secondary: RemapTable,
        stack: FeatureStack,
    ) -> ConsensusResult:
        validate_grid_compat(sources.primary.profile, stack.profile)
        a, b = self.remap(sources, primary, secondary)
        labels, origin = self.combine(
            a, b,
            water_index=stack.band(WATER_INDEX_BAND),
            hand=stack.band(HAND_BAND),
            bare_index=stack.band(BARE_INDEX_BAND),
            vegetation_index=stack.band(VEGETATION_INDEX_BAND),
        )
        return self.to_result(labels, origin, sources.primary.profile)

    def to_result(self, labels: np.ma.MaskedArray, origin: np.ndarray, grid: GeoProfile) -> ConsensusResult:
        origin_counts = {o: int((origin == int(o)).sum()) for o in LabelOrigin}
        valid = ~np.ma.getmaskarray(labels)
        data = np.ma.getdata(labels)
        class_counts = {c: int((valid & (data == c)).sum()) for c in CLASS_CODES}

        logger.info(
            "Etiquetas: consenso=%d, regla agua=%d, regla desnudo=%d, descartados=%d",
            origin_counts[LabelOrigin.CONSENSUS], origin_counts[LabelOrigin.WATER_RULE],
            origin_counts[LabelOrigin.BARE_RULE], origin_counts[LabelOrigin.NONE],
        )
        return ConsensusResult(
            labels=GeoRaster(data=labels, profile=grid.with_count(1, dtype="int16", nodata=0)),
            origin=GeoRaster(data=origin, profile=grid.with_count(1, dtype="uint8", nodata=None)),
            origin_counts=origin_counts,
            class_counts=class_counts,
        )
