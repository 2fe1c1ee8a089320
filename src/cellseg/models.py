"""cellseg.models

Notes (what this module does)
- Declares the three model families as ModelFamily objects sharing one interface:
  * build(params) -> unfitted scikit-learn estimator
  * fit(X, y, params) -> fitted estimator
  * default_search_space(X_train) -> SearchSpace
- Hyperparameter names/values are validated before any fitting (configuration errors).
- Estimator seeds and the kernel-width sample are drawn from an explicit seed (the
  resampling plan's seed during tuning).
- Families:
  * gbm: GradientBoostingClassifier (interaction depth, iterations, shrinkage, min node size)
  * svm: StandardScaler + RBF SVC with Platt-scaled probabilities (cost grid, kernel width
    estimated from the data)
  * rf:  RandomForestClassifier (number of variables tried at each split)
"""

from __future__ import annotations

from dataclasses import dataclass
from numbers import Integral, Real
from typing import Any, Callable, Dict, List, Mapping

import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator
from sklearn.calibration import CalibratedClassifierCV
from sklearn.ensemble import GradientBoostingClassifier, RandomForestClassifier
from sklearn.model_selection import StratifiedKFold
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler
from sklearn.svm import SVC

from .config import (
    GBM_PARAM_GRID,
    POSITIVE_CLASS,
    RANDOM_STATE,
    RF_N_ESTIMATORS,
    RF_TUNE_LENGTH,
    SVM_SIGMA_FRACTION,
    SVM_TUNE_LENGTH,
)
from .exceptions import ConfigurationError, DataError
from .search_space import SearchSpace


# -----------------------------
# Validation rules
# -----------------------------


def _positive_int(value: Any) -> bool:
    return isinstance(value, Integral) and not isinstance(value, bool) and value >= 1


def _positive_real(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and value > 0


def _unit_interval(value: Any) -> bool:
    return _positive_real(value) and value <= 1


def _max_features(value: Any) -> bool:
    # Integer count of features, a fraction of them, or one of sklearn's named rules
    if isinstance(value, str):
        return value in ("sqrt", "log2")
    if isinstance(value, Integral):
        return _positive_int(value)
    return _unit_interval(value)


@dataclass(frozen=True)
class ModelFamily:
    """A trainable model family: estimator factory + parameter rules + default grid."""

    name: str
    label: str
    factory: Callable[[int], BaseEstimator]
    param_rules: Mapping[str, Callable[[Any], bool]]
    grid_builder: Callable[[pd.DataFrame, int], Dict[str, List[Any]]]
    param_prefix: str = ""

    def validate(self, params: Mapping[str, Any]) -> None:
        """Raise ConfigurationError for unknown names or invalid values."""
        unknown = sorted(set(params) - set(self.param_rules))
        if unknown:
            raise ConfigurationError(
                f"{self.name}: unknown hyperparameter(s) {unknown}; "
                f"expected a subset of {sorted(self.param_rules)}"
            )
        for key, value in params.items():
            if not self.param_rules[key](value):
                raise ConfigurationError(f"{self.name}: invalid value {value!r} for '{key}'")

    def build(self, params: Mapping[str, Any], seed: int = RANDOM_STATE) -> BaseEstimator:
        self.validate(params)
        estimator = self.factory(seed)
        if params:
            estimator.set_params(**{f"{self.param_prefix}{k}": v for k, v in params.items()})
        return estimator

    def fit(self, X, y, params: Mapping[str, Any], seed: int = RANDOM_STATE) -> BaseEstimator:
        return self.build(params, seed).fit(X, y)

    def default_search_space(self, X: pd.DataFrame, seed: int = RANDOM_STATE) -> SearchSpace:
        space = SearchSpace(self.grid_builder(X, seed))
        for config in space.configurations():
            self.validate(config)
        return space


def positive_proba(model, X, positive_label: str = POSITIVE_CLASS) -> np.ndarray:
    """Probability of ``positive_label`` for every row of ``X``."""

    classes = [str(c) for c in model.classes_]
    if positive_label not in classes:
        raise DataError(f"model was not trained on class '{positive_label}' (classes: {classes})")
    return model.predict_proba(X)[:, classes.index(positive_label)]


# -----------------------------
# Data-dependent grid helpers
# -----------------------------


def estimate_rbf_sigma(X, frac: float = SVM_SIGMA_FRACTION, seed: int = RANDOM_STATE) -> float:
    """Kernel width estimate for exp(-sigma * ||x - x'||^2) on centred/scaled data.

    Draws random row pairs, and averages the inverses of the 10% and 90%
    quantiles of their squared distances.
    """

    values = StandardScaler().fit_transform(np.asarray(X, dtype=float))
    m = values.shape[0]
    n = max(int(np.floor(frac * m)), 2)
    rng = np.random.default_rng(seed)
    first = rng.integers(0, m, size=n)
    second = rng.integers(0, m, size=n)
    dist = np.sum((values[first] - values[second]) ** 2, axis=1)
    dist = dist[dist != 0]
    if dist.size == 0:
        raise DataError("cannot estimate the RBF kernel width: all sampled rows are identical")
    q90, q10 = np.quantile(dist, [0.9, 0.1])
    return float(np.mean([1.0 / q90, 1.0 / q10]))


def mtry_sequence(n_features: int, length: int = RF_TUNE_LENGTH) -> List[int]:
    """Candidate numbers of variables tried at each random forest split."""

    if n_features < 2:
        return [1]
    if length == 1:
        return [max(int(np.floor(np.sqrt(n_features))), 1)]
    if n_features < 500:
        seq = np.floor(np.linspace(2, n_features, num=min(length, n_features)))
    else:
        seq = np.floor(2 ** np.linspace(1, np.log2(n_features), num=length))
    return sorted({int(v) for v in seq})


def svm_cost_sequence(length: int = SVM_TUNE_LENGTH) -> List[float]:
    # 2^-2 .. 2^(length-3)
    return [float(2.0 ** (k - 3)) for k in range(1, length + 1)]


# -----------------------------
# Families
# -----------------------------


def _gbm_factory(seed: int) -> BaseEstimator:
    return GradientBoostingClassifier(random_state=seed)


def _svm_factory(seed: int) -> BaseEstimator:
    # Centering/scaling is part of the estimator, so it is re-fit inside every fold.
    # Class probabilities come from a sigmoid fit on internal cross-validated decision
    # values; the reported classifier is one SVC fit on all rows (ensemble=False).
    calibrated = CalibratedClassifierCV(
        SVC(kernel="rbf", random_state=seed),
        method="sigmoid",
        cv=StratifiedKFold(n_splits=5, shuffle=True, random_state=seed),
        ensemble=False,
    )
    return Pipeline(steps=[("scaler", StandardScaler()), ("model", calibrated)])


def _rf_factory(seed: int) -> BaseEstimator:
    return RandomForestClassifier(n_estimators=RF_N_ESTIMATORS, random_state=seed, n_jobs=1)


GBM = ModelFamily(
    name="gbm",
    label="Boosted Trees",
    factory=_gbm_factory,
    param_rules={
        "max_depth": _positive_int,
        "n_estimators": _positive_int,
        "learning_rate": _positive_real,
        "min_samples_leaf": _positive_int,
        "subsample": _unit_interval,
    },
    grid_builder=lambda X, seed: {k: list(v) for k, v in GBM_PARAM_GRID.items()},
)

SVM = ModelFamily(
    name="svm",
    label="Support Vector Machine",
    factory=_svm_factory,
    param_rules={"C": _positive_real, "gamma": _positive_real},
    grid_builder=lambda X, seed: {"C": svm_cost_sequence(), "gamma": [estimate_rbf_sigma(X, seed=seed)]},
    param_prefix="model__estimator__",
)

RF = ModelFamily(
    name="rf",
    label="Random Forest",
    factory=_rf_factory,
    param_rules={
        "max_features": _max_features,
        "n_estimators": _positive_int,
        "min_samples_leaf": _positive_int,
    },
    grid_builder=lambda X, seed: {"max_features": mtry_sequence(X.shape[1])},
)

# Order used when the workflow trains every family
FAMILIES: Dict[str, ModelFamily] = {f.name: f for f in (GBM, SVM, RF)}


def get_family(name: str) -> ModelFamily:
    key = name.lower()
    if key not in FAMILIES:
        raise ConfigurationError(f"Unknown model family: {name} (available: {sorted(FAMILIES)})")
    return FAMILIES[key]
