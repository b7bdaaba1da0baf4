# src/lcplatform/services/accuracy_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Sequence

import numpy as np

from ..contracts.assessment import AccuracyReport, ConfusionMatrix
from ..contracts.core import CLASS_CODES

logger = logging.getLogger(__name__)


def _ratio(num: float, den: float) -> Optional[float]:
    return None if den == 0 else float(num) / float(den)


@dataclass
class AccuracyService:
    """Matriz de confusión y métricas derivadas. Denominador cero -> None."""
    order: Sequence[int] = CLASS_CODES

    def confusion(self, actual: np.ndarray, predicted: np.ndarray) -> ConfusionMatrix:
        actual = np.asarray(actual).astype("int64").ravel()
        predicted = np.asarray(predicted).astype("int64").ravel()
        if actual.shape != predicted.shape:
            raise ValueError(f"actual y predicted difieren en tamaño: {actual.size} vs {predicted.size}")

        order = tuple(int(c) for c in self.order)
        lut = {c: i for i, c in enumerate(order)}
        unknown = set(np.unique(actual).tolist()) | set(np.unique(predicted).tolist())
        unknown -= set(order)
        if unknown:
            raise ValueError(f"Códigos fuera de la enumeración: {sorted(unknown)}")

        k = len(order)
        counts = np.zeros((k, k), dtype=np.int64)
        if actual.size:
            ia = np.array([lut[v] for v in actual.tolist()], dtype=np.int64)
            ip = np.array([lut[v] for v in predicted.tolist()], dtype=np.int64)
            np.add.at(counts, (ia, ip), 1)
        return ConfusionMatrix(counts=counts, order=order)

    def report(self, cm: ConfusionMatrix) -> AccuracyReport:
        m = cm.counts
        n = cm.total
        diag = np.diag(m)
        row_tot = m.sum(axis=1)     # totales reales
        col_tot = m.sum(axis=0)     # totales predichos

        oa = _ratio(diag.sum(), n)
        kappa: Optional[float] = None
        if n > 0:
            pe = float((row_tot * col_tot).sum()) / float(n * n)
            po = float(diag.sum()) / float(n)
            kappa = None if pe == 1.0 else (po - pe) / (1.0 - pe)

        pa: Dict[int, Optional[float]] = {}
        ua: Dict[int, Optional[float]] = {}
        for i, c in enumerate(cm.order):
            pa[c] = _ratio(diag[i], row_tot[i])
            ua[c] = _ratio(diag[i], col_tot[i])

        rep = AccuracyReport(
            n_samples=n, overall_accuracy=oa, kappa=kappa,
            producers_accuracy=pa, users_accuracy=ua,
        )
        undefined = rep.undefined_classes()
        if n == 0:
            logger.warning("Conjunto de prueba vacío: métricas indefinidas")
        elif undefined:
            logger.warning("Métricas por clase indefinidas para clases %s", list(undefined))
        return rep

    def assess(self, actual: np.ndarray, predicted: np.ndarray) -> tuple[ConfusionMatrix, AccuracyReport]:
        cm = self.confusion(actual, predicted)
        return cm, self.report(cm)
