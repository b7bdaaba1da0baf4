# src/lcplatform/adapters/sklearn_backend.py
from __future__ import annotations

from typing import Any, Dict

import numpy as np
from sklearn.base import BaseEstimator, ClassifierMixin
from sklearn.covariance import EmpiricalCovariance
from sklearn.ensemble import GradientBoostingClassifier, RandomForestClassifier
from sklearn.neighbors import NearestCentroid
from sklearn.pipeline import make_pipeline
from sklearn.preprocessing import StandardScaler
from sklearn.svm import SVC
from sklearn.tree import DecisionTreeClassifier

from ..contracts.assessment import ModelFamily, ModelSpec
from ..ports.classifier import ClassifierBackendPort, Estimator


class MahalanobisMinimumDistance(ClassifierMixin, BaseEstimator):
    """
    Distancia mínima con Mahalanobis: cada fila va a la clase cuya media está más
    cerca bajo la covarianza de esa misma clase.

    Una clase con n <= n_features muestras no tiene covarianza propia estimable y
    usa la covarianza intra-clase agrupada de todas las clases.
    """

    def fit(self, X, y):
        X = np.asarray(X, dtype="float64")
        y = np.asarray(y)
        if X.ndim != 2 or X.shape[0] != y.shape[0]:
            raise ValueError(f"X {X.shape} e y {y.shape} no son compatibles")
        self.classes_ = np.unique(y)
        self.n_features_in_ = X.shape[1]
        groups = [X[y == c] for c in self.classes_]
        self.means_ = np.stack([g.mean(axis=0) for g in groups])
        residuals = np.concatenate([g - m for g, m in zip(groups, self.means_)])
        pooled = EmpiricalCovariance(assume_centered=True).fit(residuals).precision_
        self.precisions_ = np.stack([
            EmpiricalCovariance().fit(g).precision_ if g.shape[0] > X.shape[1] else pooled
            for g in groups
        ])
        return self

    def mahalanobis(self, X) -> np.ndarray:
        """Distancias al cuadrado (N, n_clases)."""
        X = np.asarray(X, dtype="float64")
        if X.ndim != 2 or X.shape[1] != self.n_features_in_:
            raise ValueError(f"Se esperan {self.n_features_in_} columnas; hay {X.shape}")
        out = np.empty((X.shape[0], self.classes_.size))
        for k, (mu, prec) in enumerate(zip(self.means_, self.precisions_)):
            d = X - mu
            out[:, k] = np.einsum("ij,jk,ik->i", d, prec, d)
        return out

    def predict(self, X) -> np.ndarray:
        return self.classes_[self.mahalanobis(X).argmin(axis=1)]


class SklearnClassifierBackend(ClassifierBackendPort):
    """
    Fábrica scikit-learn por familia. `spec.params` se pasa tal cual al estimador,
    salvo llaves propias del backend:
      - SVM: `standardize` (default True) antepone un StandardScaler.
      - Distancia mínima: `metric` = "mahalanobis" (covarianza por clase)
        o "euclidean" (centroides directos).
    """

    def name(self) -> str:
        return "scikit-learn"

    def build(self, spec: ModelSpec, *, seed: int) -> Estimator:
        params: Dict[str, Any] = dict(spec.params)
        fam = spec.family

        if fam == ModelFamily.RANDOM_FOREST:
            return RandomForestClassifier(**{"random_state": seed, "n_jobs": 1, **params})
        if fam == ModelFamily.GRADIENT_BOOSTING:
            return GradientBoostingClassifier(**{"random_state": seed, **params})
        if fam == ModelFamily.CART:
            return DecisionTreeClassifier(**{"random_state": seed, **params})
        if fam == ModelFamily.SVM:
            standardize = bool(params.pop("standardize", True))
            svc = SVC(**{"random_state": seed, **params})
            return make_pipeline(StandardScaler(), svc) if standardize else svc
        if fam == ModelFamily.MINIMUM_DISTANCE:
            metric = str(params.pop("metric", "mahalanobis")).lower()
            if metric == "mahalanobis":
                return MahalanobisMinimumDistance(**params)
            if metric == "euclidean":
                return NearestCentroid(**params)
            raise ValueError(f"Métrica de distancia mínima no soportada: {metric}")
        raise ValueError(f"Familia de modelo no soportada: {fam}")
