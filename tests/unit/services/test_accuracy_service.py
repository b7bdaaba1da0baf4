import numpy as np
import pytest
from lcplatform.services.accuracy_service import AccuracyService


def test_matrix_sums_to_test_size_and_rows_are_actual():
    actual = np.array([1, 1, 2, 5, 5, 5])
    pred = np.array([1, 2, 2, 5, 5, 1])
    cm = AccuracyService().confusion(actual, pred)
    assert cm.total == 6
    assert cm.counts.shape == (6, 6)
    assert cm.cell(1, 2) == 1
    assert cm.cell(5, 1) == 1
    assert cm.cell(5, 5) == 2


def test_perfect_prediction():
    y = np.array([1, 2, 3, 4, 5, 6, 1, 2])
    cm, rep = AccuracyService().assess(y, y)
    assert rep.overall_accuracy == 1.0
    assert rep.kappa == pytest.approx(1.0)
    assert all(v == 1.0 for v in rep.producers_accuracy.values())
    assert all(v == 1.0 for v in rep.users_accuracy.values())


def test_producers_and_users_accuracy():
    actual = np.array([1, 1, 1, 1, 2, 2])
    pred = np.array([1, 1, 1, 2, 2, 2])
    _, rep = AccuracyService().assess(actual, pred)
    assert rep.overall_accuracy == pytest.approx(5 / 6)
    assert rep.producers_accuracy[1] == pytest.approx(3 / 4)
    assert rep.users_accuracy[1] == pytest.approx(1.0)
    assert rep.producers_accuracy[2] == pytest.approx(1.0)
    assert rep.users_accuracy[2] == pytest.approx(2 / 3)
    # po = 5/6, pe = (4*3 + 2*3)/36 = 0.5
    assert rep.kappa == pytest.approx((5 / 6 - 0.5) / 0.5)


def test_absent_class_is_undefined_not_zero():
    actual = np.array([1, 2, 1, 2])
    pred = np.array([1, 2, 2, 2])
    _, rep = AccuracyService().assess(actual, pred)
    assert rep.producers_accuracy[5] is None
    assert rep.users_accuracy[5] is None
    assert rep.users_accuracy[1] == 1.0
    assert 5 in rep.undefined_classes()


def test_empty_test_set():
    _, rep = AccuracyService().assess(np.array([], int), np.array([], int))
    assert rep.n_samples == 0
    assert rep.overall_accuracy is None
    assert rep.kappa is None


def test_single_class_all_correct_kappa_undefined():
    y = np.full(5, 3)
    _, rep = AccuracyService().assess(y, y)
    assert rep.overall_accuracy == 1.0
    assert rep.kappa is None


def test_unknown_codes_and_size_mismatch():
    svc = AccuracyService()
    with pytest.raises(ValueError):
        svc.confusion(np.array([1, 7]), np.array([1, 1]))
    with pytest.raises(ValueError):
        svc.confusion(np.array([1, 2]), np.array([1]))
