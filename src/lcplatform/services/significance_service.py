# src/lcplatform/services/significance_service.py
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, List, Mapping, Tuple

import numpy as np
from scipy import stats

from ..contracts.assessment import McNemarResult, ModelOutcome
from ..contracts.core import RunError, Stage

logger = logging.getLogger(__name__)


def mcnemar_statistic(n10: int, n01: int) -> float:
    """(n10 - n01)^2 / (n10 + n01); 0 si no hay pares discordantes."""
    d = n10 + n01
    if d == 0:
        return 0.0
    return float((n10 - n01) ** 2) / float(d)


@dataclass
class SignificanceService:
    """Prueba de McNemar: modelo de referencia contra cada alternativa."""
    threshold: float = 3.84
    max_workers: int = 5

    @staticmethod
    def discordant_pairs(actual: np.ndarray, ref_pred: np.ndarray, alt_pred: np.ndarray) -> Tuple[int, int]:
        actual, ref_pred, alt_pred = np.asarray(actual), np.asarray(ref_pred), np.asarray(alt_pred)
        if not (actual.shape == ref_pred.shape == alt_pred.shape):
            raise ValueError(
                f"Tamaños distintos: real {actual.shape}, referencia {ref_pred.shape}, alternativa {alt_pred.shape}"
            )
        ref_ok = ref_pred == actual
        alt_ok = alt_pred == actual
        n10 = int((ref_ok & ~alt_ok).sum())
        n01 = int((~ref_ok & alt_ok).sum())
        return n10, n01

    def compare(
        self,
        reference: str,
        alternative: str,
        actual: np.ndarray,
        ref_pred: np.ndarray,
        alt_pred: np.ndarray,
    ) -> McNemarResult:
        n10, n01 = self.discordant_pairs(actual, ref_pred, alt_pred)
        stat = mcnemar_statistic(n10, n01)
        p = 1.0 if n10 + n01 == 0 else float(stats.chi2.sf(stat, df=1))
        res = McNemarResult(
            reference=reference, alternative=alternative,
            n10=n10, n01=n01, statistic=stat, p_value=p, threshold=self.threshold,
        )
        logger.info(
            "McNemar %s vs %s: n10=%d n01=%d chi2=%.3f (%s)",
            reference, alternative, n10, n01, stat,
            "significativo" if res.significant else "no significativo",
        )
        return res

    def compare_all(
        self,
        reference: str,
        outcomes: Mapping[str, ModelOutcome],
        actual: np.ndarray,
    ) -> Tuple[Dict[str, McNemarResult], List[RunError]]:
        """Una prueba independiente por alternativa; modelos o pruebas fallidas se omiten y se reportan."""
        ref = outcomes.get(reference)
        if ref is None or not ref.ok:
            err = RunError(stage=Stage.SIGNIFICANCE, model=reference,
                           message="modelo de referencia no disponible")
            logger.error("McNemar omitido: %s no disponible", reference)
            return {}, [err]

        skipped: List[RunError] = []
        runnable: List[str] = []
        for name, out in outcomes.items():
            if name == reference:
                continue
            if not out.ok:
                skipped.append(RunError(stage=Stage.SIGNIFICANCE, model=name,
                                        message="modelo alternativo falló; comparación omitida"))
                logger.warning("McNemar %s vs %s omitido: el modelo falló", reference, name)
                continue
            runnable.append(name)

        results: Dict[str, McNemarResult] = {}
        with ThreadPoolExecutor(max_workers=self.max_workers) as ex:
            futures = {
                name: ex.submit(self.compare, reference, name, actual,
                                ref.test_predictions, outcomes[name].test_predictions)
                for name in runnable
            }
            for name, fut in futures.items():
                try:
                    results[name] = fut.result()
                except Exception as e:
                    logger.error("McNemar %s vs %s falló: %s", reference, name, e)
                    skipped.append(RunError(stage=Stage.SIGNIFICANCE, model=name, message=str(e)))
        return results, skipped
