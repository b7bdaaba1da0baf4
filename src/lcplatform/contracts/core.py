# src/lcplatform/contracts/core.py
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Mapping, Tuple

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, field_validator

# -------------------------
# Enumeración de clases (cerrada, 6 valores)
# -------------------------
class LandCoverClass(IntEnum):
    FOREST = 1
    GRASS = 2
    CROP = 3
    BARE = 4
    WATER = 5
    URBAN = 6

    @property
    def label(self) -> str:
        return self.name.capitalize()


CLASS_CODES: Tuple[int, ...] = tuple(int(c) for c in LandCoverClass)
N_CLASSES = len(CLASS_CODES)

# -------------------------
# Colores tipados
# -------------------------
class RGB8(BaseModel):
    model_config = ConfigDict(frozen=True)
    r: int = Field(200, ge=0, le=255)
    g: int = Field(200, ge=0, le=255)
    b: int = Field(200, ge=0, le=255)

    def as_tuple(self) -> tuple[int, int, int]: return (self.r, self.g, self.b)
    def to_hex(self) -> str: return f"#{self.r:02X}{self.g:02X}{self.b:02X}"

    @classmethod
    def from_hex(cls, value: str) -> "RGB8":
        v = value.strip().lstrip("#")
        if len(v) != 6:
            raise ValueError(f"color hex inválido: {value}")
        return cls(r=int(v[0:2], 16), g=int(v[2:4], 16), b=int(v[4:6], 16))


# -------------------------
# Tablas por clase (tamaño fijo = cardinalidad de la enumeración)
# -------------------------
class _PerClass(BaseModel):
    """Base para tuplas indexadas por LandCoverClass (orden 1..6)."""
    model_config = ConfigDict(frozen=True)

    @staticmethod
    def _check_len(v: tuple) -> tuple:
        if len(v) != N_CLASSES:
            raise ValueError(f"se esperan {N_CLASSES} valores (uno por clase), llegaron {len(v)}")
        return v


class ClassCounts(_PerClass):
    """Puntos objetivo por clase para el muestreo estratificado."""
    values: Tuple[NonNegativeInt, ...] = (800, 300, 800, 150, 100, 100)

    @field_validator("values")
    @classmethod
    def _len(cls, v: tuple) -> tuple:
        return cls._check_len(tuple(v))

    def for_class(self, cls_: LandCoverClass) -> int:
        return int(self.values[int(cls_) - 1])

    def as_mapping(self) -> Mapping[LandCoverClass, int]:
        return {c: self.for_class(c) for c in LandCoverClass}


class ClassPalette(_PerClass):
    colors: Tuple[RGB8, ...] = tuple(
        RGB8.from_hex(h) for h in ("006400", "ffbb22", "ffff4c", "f096ff", "0064c8", "fa0000")
    )

    @field_validator("colors")
    @classmethod
    def _len(cls, v: tuple) -> tuple:
        return cls._check_len(tuple(v))

    def for_class(self, cls_: LandCoverClass) -> RGB8:
        return self.colors[int(cls_) - 1]

    def as_mapping(self) -> Mapping[int, tuple[int, int, int]]:
        return {int(c): self.for_class(c).as_tuple() for c in LandCoverClass}


# -------------------------
# Ejecuciones / auditoría
# -------------------------
class Stage(str, Enum):
    FEATURES = "features"
    LABELS = "labels"
    SAMPLING = "sampling"
    PARTITION = "partition"
    MODELS = "models"
    SIGNIFICANCE = "significance"
    EXPORT = "export"


class RunError(BaseModel):
    model_config = ConfigDict(frozen=True)
    stage: Stage
    message: str
    detail: str | None = None
    model: str | None = None


class RunMeta(BaseModel):
    model_config = ConfigDict(frozen=True)
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    study_area: str
    notes: str | None = None
    ended_at: datetime | None = None

    def end_now(self) -> "RunMeta":
        return self.model_copy(update={"ended_at": datetime.now(timezone.utc)})

    @property
    def duration_s(self) -> float | None:
        if self.ended_at is None:
            return None
        return (self.ended_at - self.started_at).total_seconds()


__all__ = [
    "LandCoverClass", "CLASS_CODES", "N_CLASSES", "RGB8", "ClassCounts",
    "ClassPalette", "Stage", "RunError", "RunMeta",
]
