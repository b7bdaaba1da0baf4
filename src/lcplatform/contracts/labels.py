# src/lcplatform/contracts/labels.py
from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, Mapping

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .core import CLASS_CODES, LandCoverClass
from .geo import GeoRaster


class RemapTable(BaseModel):
    """
    Traducción código-de-la-fuente -> LandCoverClass.
    Códigos ausentes en la tabla quedan *sin asignar* (máscara), nunca 0.
    """
    model_config = ConfigDict(frozen=True)

    source: str
    mapping: Mapping[int, LandCoverClass]

    @field_validator("mapping", mode="before")
    @classmethod
    def _coerce(cls, v) -> Dict[int, LandCoverClass]:
        out: Dict[int, LandCoverClass] = {}
        for k, t in dict(v).items():
            if int(t) not in CLASS_CODES:
                raise ValueError(f"destino {t} fuera de la enumeración 1..6 (código fuente {k})")
            out[int(k)] = LandCoverClass(int(t))
        return out

    def apply(self, raw: np.ndarray, nodata: float | None = None) -> np.ma.MaskedArray:
        """Remapea un array de códigos; lo no mapeado (o nodata) queda enmascarado."""
        codes = np.ma.getdata(raw)
        out = np.zeros(codes.shape, dtype=np.int16)
        hit = np.zeros(codes.shape, dtype=bool)
        for src, dst in self.mapping.items():
            sel = codes == src
            out[sel] = int(dst)
            hit |= sel
        hit &= ~np.ma.getmaskarray(raw)
        if nodata is not None:
            hit &= codes != nodata
        return np.ma.MaskedArray(out, mask=~hit)


# Tablas de los dos productos globales (ESA WorldCover v100, Dynamic World v1)
ESA_WORLDCOVER = RemapTable(
    source="ESA/WorldCover",
    mapping={10: 1, 30: 2, 40: 3, 60: 4, 80: 5, 50: 6},
)
DYNAMIC_WORLD = RemapTable(
    source="GOOGLE/DYNAMICWORLD",
    mapping={1: 1, 2: 2, 4: 3, 7: 4, 0: 5, 6: 6},
)


class ConsensusThresholds(BaseModel):
    model_config = ConfigDict(frozen=True)
    water_index_min: float = Field(0.1, description="MNDWI medio > umbral")
    hand_max: float = Field(15.0, description="HAND < umbral (m)")
    bare_index_min: float = Field(0.1, description="BSI medio > umbral")
    vegetation_max: float = Field(0.25, description="NDVI medio < umbral")


class LabelOrigin(IntEnum):
    """Regla que asignó la etiqueta final de un píxel (prioridad = orden)."""
    NONE = 0
    CONSENSUS = 1
    WATER_RULE = 2
    BARE_RULE = 3


@dataclass(frozen=True)
class ConsensusResult:
    labels: GeoRaster        # masked int16: 1..6 o enmascarado
    origin: GeoRaster        # uint8 con valores de LabelOrigin
    origin_counts: Mapping[LabelOrigin, int]
    class_counts: Mapping[int, int]

    @property
    def n_labeled(self) -> int:
        return int(sum(v for k, v in self.origin_counts.items() if k != LabelOrigin.NONE))


__all__ = [
    "RemapTable", "ESA_WORLDCOVER", "DYNAMIC_WORLD", "ConsensusThresholds",
    "LabelOrigin", "ConsensusResult",
]
