"""cellseg.tuning

Notes (what this module does)
- Implements the cross-validated grid search used for every model family:
  for each configuration
      for each resample (repeat x fold)
          fit on the other k-1 folds (pre-processing lives inside the estimator)
          predict the held-out fold and score it (ROC AUC, sensitivity, specificity)
      average the scores over the resamples that succeeded
  pick the configuration with the best mean metric (first one wins ties)
  re-fit that configuration on the full training set
- (configuration, resample) fits are independent and fanned out with joblib.
- A fit that raises is recorded as a failure (scores left missing, error text kept)
  and never stops the rest of the grid.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from sklearn.base import BaseEstimator, clone
from sklearn.metrics import recall_score, roc_auc_score

from .config import NEGATIVE_CLASS, POSITIVE_CLASS
from .exceptions import DataError, TuningError
from .logging_config import setup_logging
from .models import ModelFamily, positive_proba
from .search_space import METRICS, Resample, ResamplingPlan, SearchSpace, fold_signature

logger = setup_logging().getChild("tuning")


def two_class_summary(y_true, y_proba, y_pred, positive_label: str, negative_label: str) -> Dict[str, float]:
    """ROC AUC of the positive-class probability plus sensitivity/specificity of the class predictions."""

    y_true = np.asarray(y_true).astype(str)
    y_pred = np.asarray(y_pred).astype(str)
    return {
        "roc_auc": float(roc_auc_score(y_true == positive_label, y_proba)),
        "sensitivity": float(recall_score(y_true, y_pred, pos_label=positive_label, zero_division=0)),
        "specificity": float(recall_score(y_true, y_pred, pos_label=negative_label, zero_division=0)),
    }


def _fit_and_score(
    estimator: BaseEstimator,
    X_fit: pd.DataFrame,
    y_fit: pd.Series,
    X_held: pd.DataFrame,
    y_held: pd.Series,
    config_index: int,
    resample: Resample,
    positive_label: str,
    negative_label: str,
) -> Dict[str, Any]:
    row: Dict[str, Any] = {
        "config_index": config_index,
        "resample": resample.resample_id,
        "repeat": resample.repeat,
        "fold": resample.fold,
    }
    try:
        model = clone(estimator).fit(X_fit, y_fit)
        scores = two_class_summary(
            y_held,
            positive_proba(model, X_held, positive_label),
            model.predict(X_held),
            positive_label,
            negative_label,
        )
        row.update(scores)
        row["error"] = None
    except Exception as exc:  # recorded per fold; the grid carries on
        row.update({m: np.nan for m in METRICS})
        row["error"] = f"{type(exc).__name__}: {exc}"
    return row


@dataclass
class TuningResult:
    """Outcome of tuning one model family."""

    family: str
    label: str
    metric: str
    best_index: int
    best_params: Dict[str, Any]
    results: pd.DataFrame
    fold_scores: pd.DataFrame
    final_model: Any
    fold_signature: str
    resample_ids: List[str]

    @property
    def best_score(self) -> float:
        return float(self.results.loc[self.best_index, self.metric])

    @property
    def n_fits(self) -> int:
        return int(len(self.fold_scores))

    @property
    def n_failed(self) -> int:
        return int(self.fold_scores["error"].notna().sum())

    @property
    def resamples(self) -> pd.DataFrame:
        """Per-resample metrics of the selected configuration, indexed by resample id."""
        best = self.fold_scores[self.fold_scores["config_index"] == self.best_index]
        return best.set_index("resample")[list(METRICS)].reindex(self.resample_ids)


class ModelTuner:
    """
    Cross-validated grid search shared by all model families.

    The resampling plan carries the seed and the worker count, so two tuners
    built from the same plan score every family on the same folds. The same
    seed is handed to every estimator and to data-dependent default grids.
    """

    def __init__(
        self,
        plan: Optional[ResamplingPlan] = None,
        positive_label: str = POSITIVE_CLASS,
        negative_label: str = NEGATIVE_CLASS,
        verbose: int = 0,
    ):
        self.plan = plan or ResamplingPlan()
        self.positive_label = positive_label
        self.negative_label = negative_label
        self.verbose = verbose

    def _check_labels(self, y: pd.Series) -> None:
        observed = set(y.unique())
        expected = {self.positive_label, self.negative_label}
        if observed != expected:
            raise DataError(f"training labels must be exactly {sorted(expected)}, found {sorted(observed)}")

    def summarize(self, configs: List[Dict[str, Any]], fold_scores: pd.DataFrame) -> pd.DataFrame:
        """One row per configuration: parameters, metric means and sds, scored/failed counts."""

        scores = fold_scores.assign(failed=fold_scores["error"].notna())
        grouped = scores.groupby("config_index")
        means = grouped[list(METRICS)].mean()
        sds = grouped[list(METRICS)].std().add_suffix("_sd")
        counts = pd.DataFrame(
            {
                "n_resamples": grouped[self.plan.metric].count(),
                "n_failed": grouped["failed"].sum().astype(int),
            }
        )
        params = pd.DataFrame(configs)
        params.index.name = "config_index"
        return pd.concat([params, means, sds, counts], axis=1)

    def tune(
        self,
        family: ModelFamily,
        X: pd.DataFrame,
        y: pd.Series,
        search_space: Optional[SearchSpace] = None,
    ) -> TuningResult:
        """Tune ``family`` on the training data and return the re-fit best model.

        Args:
            family: Model family to tune.
            X: Training features.
            y: Training labels.
            search_space: Grid to search; the family's default grid when omitted.

        Returns:
            TuningResult with per-configuration results and per-fold scores.
        """
        X = pd.DataFrame(X).reset_index(drop=True)
        y = pd.Series(y).astype(str).reset_index(drop=True)
        if len(X) != len(y):
            raise DataError(f"features have {len(X)} rows but labels have {len(y)}")
        self._check_labels(y)

        space = search_space if search_space is not None else family.default_search_space(X, self.plan.seed)
        configs = space.configurations()
        # Invalid values are rejected here, before any fold is fit
        estimators = [family.build(config, self.plan.seed) for config in configs]
        resamples = self.plan.resamples(y)

        logger.info(
            "tuning started",
            extra={
                "family": family.name,
                "n_configurations": len(configs),
                "n_resamples": len(resamples),
                "n_fits": len(configs) * len(resamples),
                "n_jobs": self.plan.n_jobs,
            },
        )

        rows = Parallel(n_jobs=self.plan.n_jobs, verbose=self.verbose)(
            delayed(_fit_and_score)(
                estimator,
                X.iloc[r.train_index],
                y.iloc[r.train_index],
                X.iloc[r.test_index],
                y.iloc[r.test_index],
                ci,
                r,
                self.positive_label,
                self.negative_label,
            )
            for ci, estimator in enumerate(estimators)
            for r in resamples
        )
        fold_scores = pd.DataFrame(rows, columns=["config_index", "resample", "repeat", "fold", *METRICS, "error"])

        for failure in fold_scores[fold_scores["error"].notna()].itertuples():
            logger.warning(
                "fold fit failed",
                extra={
                    "family": family.name,
                    "config": configs[failure.config_index],
                    "resample": failure.resample,
                    "error": failure.error,
                },
            )

        results = self.summarize(configs, fold_scores)
        metric = self.plan.metric
        if results[metric].isna().all():
            raise TuningError(f"{family.name}: every configuration failed on every resample")

        # idxmax skips configurations with no scored resample and returns the first maximum
        best_index = int(results[metric].idxmax())
        best_params = configs[best_index]
        final_model = family.fit(X, y, best_params, self.plan.seed)

        logger.info(
            "tuning finished",
            extra={
                "family": family.name,
                "best_params": best_params,
                "best_score": float(results.loc[best_index, metric]),
                "metric": metric,
                "n_failed": int(fold_scores["error"].notna().sum()),
            },
        )

        return TuningResult(
            family=family.name,
            label=family.label,
            metric=metric,
            best_index=best_index,
            best_params=best_params,
            results=results,
            fold_scores=fold_scores,
            final_model=final_model,
            fold_signature=fold_signature(resamples),
            resample_ids=[r.resample_id for r in resamples],
        )
