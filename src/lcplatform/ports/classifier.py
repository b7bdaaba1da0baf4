# src/lcplatform/ports/classifier.py
from __future__ import annotations

from typing import Protocol, runtime_checkable

import numpy as np

from ..contracts.assessment import ModelSpec

@runtime_checkable
class Estimator(Protocol):
    """Estado opaco entrenable: fit() una vez, luego solo predict()."""
    def fit(self, X: np.ndarray, y: np.ndarray) -> "Estimator": ...
    def predict(self, X: np.ndarray) -> np.ndarray: ...

@runtime_checkable
class ClassifierBackendPort(Protocol):
    """
    Fábrica de clasificadores por familia (árboles, boosting, SVM, CART, distancia).
    Cada llamada a build() devuelve una instancia nueva, sin estado compartido.
    """
    def build(self, spec: ModelSpec, *, seed: int) -> Estimator: ...
    def name(self) -> str: ...

__all__ = ["Estimator", "ClassifierBackendPort"]
