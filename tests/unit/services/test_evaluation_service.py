import time

import numpy as np
import pytest
from lcplatform.contracts.assessment import ModelFamily, ModelSpec
from lcplatform.contracts.core import Stage
from lcplatform.contracts.features import MEDIAN_SPECTRAL_NAMES
from lcplatform.services.evaluation_service import EvaluationService
from lcplatform.services.training_service import TrainingService
from tests.factories import make_samples, make_stack


class RoundingEstimator:
    """Predice el código más cercano a la media de las features (los factories codifican la clase así)."""
    def __init__(self, fail=False, delay=0.0):
        self.fail = fail
        self.delay = delay
        self.n_features = None

    def fit(self, X, y):
        if self.fail:
            raise RuntimeError("no converge")
        time.sleep(self.delay)
        self.n_features = X.shape[1]
        return self

    def predict(self, X):
        return np.clip(np.rint(X.mean(axis=1)), 1, 6).astype(int)


class FakeBackend:
    def __init__(self, failing=(), slow=(), delay=1.0):
        self.failing = set(failing)
        self.slow = set(slow)
        self.delay = delay
        self.built = {}

    def name(self):
        return "fake"

    def build(self, spec, *, seed):
        est = RoundingEstimator(fail=spec.name in self.failing,
                                delay=self.delay if spec.name in self.slow else 0.0)
        self.built[spec.name] = est
        return est


SPECS = [
    ModelSpec(name="RF", family=ModelFamily.RANDOM_FOREST),
    ModelSpec(name="GBM", family=ModelFamily.GRADIENT_BOOSTING),
    ModelSpec(name="SVM", family=ModelFamily.SVM),
    ModelSpec(name="CART", family=ModelFamily.CART),
    ModelSpec(name="MinDist", family=ModelFamily.MINIMUM_DISTANCE, bands=MEDIAN_SPECTRAL_NAMES),
]


def _partition(n=200):
    labels = np.tile(np.arange(1, 7), n // 6 + 1)[:n]
    return TrainingService().split(make_samples(labels))


def test_all_models_succeed_in_config_order():
    runs = EvaluationService(backend=FakeBackend()).run_all(SPECS, _partition())
    assert list(runs) == ["RF", "GBM", "SVM", "CART", "MinDist"]
    for run in runs.values():
        assert run.outcome.ok
        assert run.outcome.accuracy.overall_accuracy == 1.0
        assert run.outcome.confusion.total == len(run.outcome.test_predictions)


def test_failing_model_is_isolated():
    runs = EvaluationService(backend=FakeBackend(failing={"SVM"})).run_all(SPECS, _partition())
    assert not runs["SVM"].outcome.ok
    err = runs["SVM"].outcome.error
    assert err.stage == Stage.MODELS and err.model == "SVM"
    assert "no converge" in err.message
    assert all(runs[n].outcome.ok for n in ("RF", "GBM", "CART", "MinDist"))


def test_stage_timeout_marks_pending_models():
    svc = EvaluationService(backend=FakeBackend(slow={"GBM"}, delay=1.0), stage_timeout_s=0.2)
    runs = svc.run_all(SPECS, _partition())
    assert runs["GBM"].outcome.error.message == "timeout"
    assert runs["RF"].outcome.ok


def test_minimum_distance_uses_only_its_bands():
    backend = FakeBackend()
    EvaluationService(backend=backend).run_all(SPECS, _partition())
    assert backend.built["MinDist"].n_features == len(MEDIAN_SPECTRAL_NAMES)
    assert backend.built["RF"].n_features == 82


def test_duplicate_names_rejected():
    with pytest.raises(ValueError):
        EvaluationService(backend=FakeBackend()).run_all([SPECS[0], SPECS[0]], _partition())


def test_missing_backend():
    with pytest.raises(RuntimeError):
        EvaluationService().run_all(SPECS, _partition())


def test_test_predictions_are_read_only():
    run = EvaluationService(backend=FakeBackend()).run_one(SPECS[0], _partition())
    with pytest.raises(ValueError):
        run.outcome.test_predictions[0] = 3


def test_classify_image_masks_incomplete_pixels():
    stack = make_stack(w=5, h=4, overrides={"NDVI_mean": np.nan})
    svc = EvaluationService(backend=FakeBackend(), block_rows=3)
    run = svc.run_one(SPECS[0], _partition(), stack=stack)
    assert np.ma.getmaskarray(run.classified.data).all()

    # MinDist no usa NDVI_mean: clasifica todos los píxeles
    run_md = svc.run_one(SPECS[4], _partition(), stack=stack)
    cls = run_md.classified
    assert cls.profile.dtype == "uint8" and cls.profile.nodata == 0
    assert not np.ma.getmaskarray(cls.data).any()
    assert set(np.unique(np.ma.getdata(cls.data)).tolist()) <= {1, 2, 3, 4, 5, 6}


def test_classify_image_partial_nan():
    vals = np.full((4, 5), 0.5, dtype=np.float32)
    vals[1, 2] = np.nan
    stack = make_stack(w=5, h=4, overrides={"Blue_p50": vals})
    run = EvaluationService(backend=FakeBackend(), block_rows=2).run_one(SPECS[4], _partition(), stack=stack)
    mask = np.ma.getmaskarray(run.classified.data)
    assert mask.sum() == 1 and mask[1, 2]
