# src/lcplatform/services/evaluation_service.py
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence, Tuple

import numpy as np

from ..contracts.assessment import ModelOutcome, ModelSpec
from ..contracts.core import RunError, Stage
from ..contracts.features import FEATURE_NAMES
from ..contracts.geo import GeoRaster
from ..contracts.products import FeatureStack, Partition, SampleSet
from ..ports.classifier import ClassifierBackendPort, Estimator
from .accuracy_service import AccuracyService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrainedModel:
    """Estimador ajustado + bandas que consume. No se modifica tras el fit."""
    spec: ModelSpec
    estimator: Estimator
    feature_names: Tuple[str, ...]

    @property
    def name(self) -> str:
        return self.spec.name

    def predict(self, X: np.ndarray) -> np.ndarray:
        if X.shape[0] == 0:
            return np.zeros((0,), dtype=np.int16)
        return np.asarray(self.estimator.predict(X)).astype(np.int16)


@dataclass(frozen=True)
class ModelRun:
    outcome: ModelOutcome
    model: Optional[TrainedModel] = None
    classified: Optional[GeoRaster] = None


@dataclass
class EvaluationService:
    """
    Entrena, evalúa y (opcionalmente) clasifica la imagen completa, un modelo por tarea.
    - Cada modelo escribe solo su propio resultado (sin estado compartido).
    - La falla de un modelo se registra con su nombre y motivo; no aborta a los demás.
    """
    backend: Optional[ClassifierBackendPort] = None
    accuracy: AccuracyService = field(default_factory=AccuracyService)
    seed: int = 42
    max_workers: int = 5
    stage_timeout_s: Optional[float] = None
    block_rows: int = 256

    def _require_backend(self) -> ClassifierBackendPort:
        if self.backend is None:
            raise RuntimeError("ClassifierBackendPort no configurado")
        return self.backend

    # ------------------
    # Por modelo
    # ------------------
    def train(self, spec: ModelSpec, train: SampleSet) -> TrainedModel:
        names = spec.bands or FEATURE_NAMES
        est = self._require_backend().build(spec, seed=self.seed)
        est.fit(train.columns(names), train.labels)
        logger.info("Modelo %s entrenado con %d puntos y %d bandas", spec.name, len(train), len(names))
        return TrainedModel(spec=spec, estimator=est, feature_names=tuple(names))

    def evaluate(self, model: TrainedModel, test: SampleSet) -> ModelOutcome:
        pred = model.predict(test.columns(model.feature_names))
        cm, rep = self.accuracy.assess(test.labels, pred)
        pred.setflags(write=False)
        return ModelOutcome(name=model.name, confusion=cm, accuracy=rep, test_predictions=pred)

    def classify_image(self, model: TrainedModel, stack: FeatureStack) -> GeoRaster:
        """Una clase por píxel con vector completo; el resto queda enmascarado."""
        h, w = stack.shape
        bands = stack.select(model.feature_names)          # (F, H, W)
        complete = np.isfinite(bands).all(axis=0)
        out = np.zeros((h, w), dtype=np.uint8)
        for r0 in range(0, h, self.block_rows):
            r1 = min(h, r0 + self.block_rows)
            ok = complete[r0:r1]
            if not ok.any():
                continue
            X = bands[:, r0:r1][:, ok].T
            block = out[r0:r1]
            block[ok] = model.predict(X).astype(np.uint8)
        data = np.ma.MaskedArray(out, mask=~complete)
        return GeoRaster(data=data, profile=stack.profile.with_count(1, dtype="uint8", nodata=0))

    def run_one(self, spec: ModelSpec, partition: Partition, stack: Optional[FeatureStack] = None) -> ModelRun:
        try:
            model = self.train(spec, partition.train)
            outcome = self.evaluate(model, partition.test)
            classified = self.classify_image(model, stack) if stack is not None else None
        except Exception as e:
            logger.error("Modelo %s falló: %s", spec.name, e)
            err = RunError(stage=Stage.MODELS, model=spec.name, message=str(e) or type(e).__name__,
                           detail=type(e).__name__)
            return ModelRun(outcome=ModelOutcome(name=spec.name, error=err))
        acc = outcome.accuracy
        logger.info("Modelo %s: OA=%s kappa=%s", spec.name,
                    _fmt(acc.overall_accuracy if acc else None), _fmt(acc.kappa if acc else None))
        return ModelRun(outcome=outcome, model=model, classified=classified)

    # ------------------
    # Todos los modelos
    # ------------------
    def run_all(
        self,
        specs: Sequence[ModelSpec],
        partition: Partition,
        stack: Optional[FeatureStack] = None,
    ) -> Dict[str, ModelRun]:
        self._require_backend()
        names = [s.name for s in specs]
        if len(set(names)) != len(names):
            raise ValueError(f"Nombres de modelo repetidos: {names}")

        runs: Dict[str, ModelRun] = {}
        ex = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="model")
        try:
            futures = {ex.submit(self.run_one, s, partition, stack): s for s in specs}
            done, pending = wait(futures, timeout=self.stage_timeout_s)
            for fut in done:
                runs[futures[fut].name] = fut.result()
            for fut in pending:
                fut.cancel()
                name = futures[fut].name
                logger.error("Modelo %s falló: timeout (%.1fs)", name, self.stage_timeout_s or 0.0)
                err = RunError(stage=Stage.MODELS, model=name, message="timeout")
                runs[name] = ModelRun(outcome=ModelOutcome(name=name, error=err))
        finally:
            ex.shutdown(wait=False, cancel_futures=True)
        # Orden estable = orden de la configuración
        return {n: runs[n] for n in names}


def _fmt(v: Optional[float]) -> str:
    return "indefinido" if v is None else f"{v:.4f}"
