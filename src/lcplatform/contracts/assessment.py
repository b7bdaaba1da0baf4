# src/lcplatform/contracts/assessment.py
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .core import CLASS_CODES, RunError
from .features import check_names

# -------------------------
# Especificación de modelos
# -------------------------
class ModelFamily(str, Enum):
    RANDOM_FOREST = "random_forest"
    GRADIENT_BOOSTING = "gradient_boosting"
    SVM = "svm"
    CART = "cart"
    MINIMUM_DISTANCE = "minimum_distance"


class ModelSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    family: ModelFamily
    params: Mapping[str, Any] = Field(default_factory=dict)
    bands: Optional[Tuple[str, ...]] = None   # None = stack completo (82)

    @field_validator("name")
    @classmethod
    def _non_empty(cls, v: str) -> str:
        v2 = v.strip()
        if not v2:
            raise ValueError("name no puede ser vacío")
        return v2

    @field_validator("bands")
    @classmethod
    def _known_bands(cls, v: Optional[Tuple[str, ...]]) -> Optional[Tuple[str, ...]]:
        if v is None:
            return v
        if not v:
            raise ValueError("bands no puede ser una lista vacía (usa None para el stack completo)")
        try:
            return check_names(tuple(v))
        except KeyError as e:
            raise ValueError(str(e)) from e


# -------------------------
# Matriz de confusión y métricas
# -------------------------
class ConfusionMatrix(BaseModel):
    """Filas = clase real, columnas = clase predicha, orden = LandCoverClass."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    counts: np.ndarray
    order: Tuple[int, ...] = CLASS_CODES

    @field_validator("counts", mode="before")
    @classmethod
    def _square(cls, v) -> np.ndarray:
        v = np.asarray(v, dtype=np.int64)
        if v.ndim != 2 or v.shape[0] != v.shape[1]:
            raise ValueError(f"La matriz debe ser cuadrada; shape={v.shape}")
        if (v < 0).any():
            raise ValueError("Conteos negativos en la matriz")
        v.setflags(write=False)
        return v

    @model_validator(mode="after")
    def _order_len(self) -> "ConfusionMatrix":
        if len(self.order) != self.counts.shape[0]:
            raise ValueError("order no coincide con el tamaño de la matriz")
        return self

    @property
    def total(self) -> int:
        return int(self.counts.sum())

    def cell(self, actual: int, predicted: int) -> int:
        return int(self.counts[self.order.index(actual), self.order.index(predicted)])

    def as_rows(self) -> list[list[int]]:
        return self.counts.tolist()


class AccuracyReport(BaseModel):
    """Métricas derivadas; None = indefinido (denominador cero)."""
    model_config = ConfigDict(frozen=True)

    n_samples: int
    overall_accuracy: Optional[float]
    kappa: Optional[float]
    producers_accuracy: Mapping[int, Optional[float]]
    users_accuracy: Mapping[int, Optional[float]]

    def undefined_classes(self) -> Tuple[int, ...]:
        return tuple(
            c for c in self.producers_accuracy
            if self.producers_accuracy[c] is None or self.users_accuracy.get(c) is None
        )


class McNemarResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    reference: str
    alternative: str
    n10: int = Field(ge=0)   # referencia acierta / alternativa falla
    n01: int = Field(ge=0)   # referencia falla / alternativa acierta
    statistic: float
    p_value: float
    threshold: float = 3.84

    @property
    def discordant(self) -> int:
        return self.n10 + self.n01

    @property
    def significant(self) -> bool:
        return self.statistic > self.threshold


class ModelOutcome(BaseModel):
    """Resultado aislado de un modelo: métricas o error, nunca ambos."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    confusion: Optional[ConfusionMatrix] = None
    accuracy: Optional[AccuracyReport] = None
    test_predictions: Optional[np.ndarray] = None
    error: Optional[RunError] = None

    @model_validator(mode="after")
    def _xor(self) -> "ModelOutcome":
        ok = self.accuracy is not None
        if ok == (self.error is not None):
            raise ValueError(f"{self.name}: se espera accuracy o error (exclusivo)")
        return self

    @property
    def ok(self) -> bool:
        return self.error is None


class TopographyStats(BaseModel):
    model_config = ConfigDict(frozen=True)
    elevation_min: Optional[float]
    elevation_max: Optional[float]


__all__ = [
    "ModelFamily", "ModelSpec", "ConfusionMatrix", "AccuracyReport",
    "McNemarResult", "ModelOutcome", "TopographyStats",
]
