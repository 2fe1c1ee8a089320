"""cellseg.search_space

Notes (what this module does)
- SearchSpace: hyperparameter name -> candidate values; the Cartesian product
  (scikit-learn ParameterGrid order) is the list of configurations to try.
- ResamplingPlan: repeated stratified k-fold settings (folds, repeats, seed,
  selection metric, worker count). The same plan + seed yields the same fold
  assignment for every model family, which makes their resamples paired.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Sequence

import numpy as np
from sklearn.model_selection import ParameterGrid, RepeatedStratifiedKFold

from .config import CV_FOLDS, CV_METRIC, CV_REPEATS, N_JOBS, RANDOM_STATE
from .exceptions import ConfigurationError

# Metrics produced by the two-class summary for every resample
METRICS = ("roc_auc", "sensitivity", "specificity")


@dataclass(frozen=True)
class SearchSpace:
    """Enumerated grid of candidate hyperparameter values."""

    grid: Mapping[str, Sequence[Any]]

    def __post_init__(self) -> None:
        if not self.grid:
            raise ConfigurationError("search space has no hyperparameters")
        for name, values in self.grid.items():
            if isinstance(values, (str, bytes)) or not hasattr(values, "__len__"):
                raise ConfigurationError(f"candidates for '{name}' must be a sequence, got {values!r}")
            if len(values) == 0:
                raise ConfigurationError(f"no candidate values for '{name}'")

    def configurations(self) -> List[Dict[str, Any]]:
        return list(ParameterGrid({k: list(v) for k, v in self.grid.items()}))

    def __len__(self) -> int:
        return int(np.prod([len(v) for v in self.grid.values()]))


@dataclass(frozen=True)
class Resample:
    """One held-out fold of one cross-validation repeat."""

    resample_id: str
    repeat: int
    fold: int
    train_index: np.ndarray = field(repr=False)
    test_index: np.ndarray = field(repr=False)


@dataclass(frozen=True)
class ResamplingPlan:
    """Repeated k-fold cross-validation used to score every configuration."""

    folds: int = CV_FOLDS
    repeats: int = CV_REPEATS
    seed: int = RANDOM_STATE
    metric: str = CV_METRIC
    n_jobs: int = N_JOBS

    def __post_init__(self) -> None:
        if self.folds < 2:
            raise ConfigurationError(f"need at least 2 folds, got {self.folds}")
        if self.repeats < 1:
            raise ConfigurationError(f"need at least 1 repeat, got {self.repeats}")
        if self.metric not in METRICS:
            raise ConfigurationError(f"unknown metric '{self.metric}', expected one of {METRICS}")
        if self.n_jobs == 0:
            raise ConfigurationError("n_jobs must be non-zero")

    @property
    def n_resamples(self) -> int:
        return self.folds * self.repeats

    def resamples(self, y: Sequence) -> List[Resample]:
        """Fold assignment for labels ``y``; identical for identical (y, plan)."""
        labels = np.asarray(y).astype(str)
        splitter = RepeatedStratifiedKFold(
            n_splits=self.folds, n_repeats=self.repeats, random_state=self.seed
        )
        out = []
        # sklearn yields all folds of repeat 1 first, then repeat 2, ...
        for i, (train_idx, test_idx) in enumerate(splitter.split(np.zeros(len(labels)), labels)):
            repeat, fold = divmod(i, self.folds)
            out.append(
                Resample(
                    resample_id=f"Fold{fold + 1:02d}.Rep{repeat + 1}",
                    repeat=repeat + 1,
                    fold=fold + 1,
                    train_index=train_idx,
                    test_index=test_idx,
                )
            )
        return out

    def signature(self, y: Sequence) -> str:
        return fold_signature(self.resamples(y))


def fold_signature(resamples: Sequence[Resample]) -> str:
    """Hash of every held-out index set; equal signatures mean paired resamples."""
    digest = hashlib.sha1()
    for r in resamples:
        digest.update(r.resample_id.encode("utf-8"))
        digest.update(np.asarray(r.test_index, dtype=np.int64).tobytes())
    return digest.hexdigest()
