# src/lcplatform/services/report_service.py
"""
Reportes de texto y filas tabulares (para ReportExporterPort) a partir
de los resultados de evaluación. Sin I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from ..contracts.assessment import McNemarResult, ModelOutcome, TopographyStats
from ..contracts.core import LandCoverClass, RunError
from ..contracts.labels import LabelOrigin

UNDEFINED = "undefined"


def fmt(v: Optional[float], digits: int = 4) -> str:
    return UNDEFINED if v is None else f"{v:.{digits}f}"


@dataclass
class ReportService:
    digits: int = 4

    # ------------------
    # Filas para CSV
    # ------------------
    def accuracy_rows(self, outcomes: Mapping[str, ModelOutcome]) -> List[Dict[str, Any]]:
        rows: List[Dict[str, Any]] = []
        for name, out in outcomes.items():
            row: Dict[str, Any] = {"model": name, "status": "ok" if out.ok else "failed"}
            acc = out.accuracy
            row["n_test"] = acc.n_samples if acc else ""
            row["overall_accuracy"] = fmt(acc.overall_accuracy, self.digits) if acc else ""
            row["kappa"] = fmt(acc.kappa, self.digits) if acc else ""
            for c in LandCoverClass:
                row[f"PA_{c.label}"] = fmt(acc.producers_accuracy.get(int(c)), self.digits) if acc else ""
                row[f"UA_{c.label}"] = fmt(acc.users_accuracy.get(int(c)), self.digits) if acc else ""
            row["error"] = out.error.message if out.error else ""
            rows.append(row)
        return rows

    def significance_rows(self, results: Mapping[str, McNemarResult]) -> List[Dict[str, Any]]:
        return [
            {
                "reference": r.reference,
                "alternative": r.alternative,
                "n10": r.n10,
                "n01": r.n01,
                "chi2": f"{r.statistic:.{self.digits}f}",
                "p_value": f"{r.p_value:.{self.digits}f}",
                "significant": r.significant,
            }
            for r in results.values()
        ]

    # ------------------
    # Texto
    # ------------------
    def model_block(self, out: ModelOutcome) -> List[str]:
        lines = [f"--- {out.name} ---"]
        if not out.ok:
            lines.append(f"  FALLÓ: {out.error.message}")
            return lines
        acc, cm = out.accuracy, out.confusion
        lines.append(f"  Overall Accuracy: {fmt(acc.overall_accuracy, self.digits)}")
        lines.append(f"  Kappa: {fmt(acc.kappa, self.digits)}")
        lines.append("  Producer's Accuracy: " + ", ".join(
            f"{LandCoverClass(c).label}={fmt(v, self.digits)}" for c, v in acc.producers_accuracy.items()))
        lines.append("  User's Accuracy: " + ", ".join(
            f"{LandCoverClass(c).label}={fmt(v, self.digits)}" for c, v in acc.users_accuracy.items()))
        lines.append("  Confusion matrix (filas = real, columnas = predicha):")
        for c, row in zip(cm.order, cm.as_rows()):
            lines.append(f"    {LandCoverClass(c).label:>6} " + " ".join(f"{v:5d}" for v in row))
        return lines

    def mcnemar_line(self, r: McNemarResult) -> str:
        verdict = "significativa" if r.significant else "no significativa"
        return (f"{r.reference} vs {r.alternative}: chi2={r.statistic:.2f} "
                f"(n10={r.n10}, n01={r.n01}, p={r.p_value:.4f}) -> diferencia {verdict} "
                f"(umbral {r.threshold})")

    def render_text(
        self,
        study_area: str,
        outcomes: Mapping[str, ModelOutcome],
        significance: Mapping[str, McNemarResult],
        *,
        topography: Optional[TopographyStats] = None,
        class_histogram: Optional[Mapping[int, int]] = None,
        origin_counts: Optional[Mapping[LabelOrigin, int]] = None,
        n_train: Optional[int] = None,
        n_test: Optional[int] = None,
        errors: Sequence[RunError] = (),
    ) -> str:
        lines: List[str] = [f"=== Clasificación de cobertura: {study_area} ==="]
        if topography is not None:
            lines.append(f"Elevación: min={fmt(topography.elevation_min, 1)} m, "
                         f"max={fmt(topography.elevation_max, 1)} m")
        if origin_counts is not None:
            lines.append("Etiquetas: " + ", ".join(
                f"{o.name.lower()}={n}" for o, n in origin_counts.items()))
        if class_histogram is not None:
            lines.append("Puntos por clase: " + ", ".join(
                f"{LandCoverClass(c).label}={n}" for c, n in class_histogram.items()))
        if n_train is not None and n_test is not None:
            lines.append(f"Entrenamiento={n_train}, prueba={n_test}")
        lines.append("")
        for out in outcomes.values():
            lines.extend(self.model_block(out))
        if significance:
            lines.append("")
            lines.append("--- McNemar ---")
            lines.extend(self.mcnemar_line(r) for r in significance.values())
        lines.extend(self._error_lines(errors))
        return "\n".join(lines) + "\n"

    def _error_lines(self, errors: Iterable[RunError]) -> List[str]:
        errs = list(errors)
        if not errs:
            return []
        out = ["", "--- Errores ---"]
        for e in errs:
            who = f"[{e.model}] " if e.model else ""
            out.append(f"{e.stage.value}: {who}{e.message}")
        return out
