"""cellseg.compare

Notes (what this module does)
- Collects the per-resample metrics of several tuned models that were scored on
  the same folds (paired resampling) into one table.
- Summarizes each model's distribution (quartiles, mean, sd, missing count).
- Estimates pairwise differences with paired t-tests (Bonferroni-adjusted p-values).
- Draws box plots, dot plots (mean with 95% confidence interval), and a scatter matrix.

Reference: Hothorn et al., "The design and analysis of benchmark experiments",
JCGS 14(3), 2005.
"""

from __future__ import annotations

from itertools import combinations
from typing import List, Mapping, Optional

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns
from scipy import stats

from .exceptions import ConfigurationError
from .logging_config import setup_logging
from .search_space import METRICS
from .tuning import TuningResult
from .utils import ensure_dir

logger = setup_logging().getChild("compare")


def _mean_interval(values: pd.Series, level: float = 0.95):
    """Mean and t-based confidence interval; the interval is NaN below two observations."""
    values = values.dropna()
    n = len(values)
    mean = float(values.mean()) if n else np.nan
    if n < 2:
        return mean, np.nan, np.nan
    half = stats.t.ppf(0.5 + level / 2, df=n - 1) * values.std(ddof=1) / np.sqrt(n)
    return mean, mean - half, mean + half


class ResampleComparison:
    """Paired comparison of tuned models on their cross-validation resamples."""

    def __init__(self, results: Mapping[str, TuningResult]):
        if len(results) < 2:
            raise ConfigurationError("need at least two tuned models to compare")

        signatures = {name: r.fold_signature for name, r in results.items()}
        if len(set(signatures.values())) > 1:
            raise ConfigurationError(
                f"models were not resampled on the same folds, so they are not paired: {signatures}"
            )

        ids = {name: tuple(r.resample_ids) for name, r in results.items()}
        if len(set(ids.values())) > 1:
            raise ConfigurationError("models report different resample ids")

        self.models: List[str] = list(results)
        self.metrics = METRICS
        self.values = pd.concat({name: r.resamples for name, r in results.items()}, axis=1)
        self.values.index.name = "resample"
        self.values.columns.names = ["model", "metric"]

        logger.info(
            "resamples collected",
            extra={"models": self.models, "n_resamples": int(len(self.values))},
        )

    def _check_metric(self, metric: str) -> None:
        if metric not in self.metrics:
            raise ConfigurationError(f"unknown metric '{metric}', expected one of {self.metrics}")

    def metric_values(self, metric: str) -> pd.DataFrame:
        """Resample x model table for one metric."""
        self._check_metric(metric)
        return self.values.xs(metric, axis=1, level="metric")

    def flat_values(self) -> pd.DataFrame:
        """Values with ``model~metric`` column names (for CSV output)."""
        flat = self.values.copy()
        flat.columns = [f"{model}~{metric}" for model, metric in flat.columns]
        return flat

    def summary(self, metric: Optional[str] = None) -> pd.DataFrame:
        """Distribution summary per (metric, model)."""

        metrics = [metric] if metric else list(self.metrics)
        rows = []
        for m in metrics:
            table = self.metric_values(m)
            for model in self.models:
                col = table[model]
                rows.append(
                    {
                        "metric": m,
                        "model": model,
                        "min": col.min(),
                        "q1": col.quantile(0.25),
                        "median": col.median(),
                        "mean": col.mean(),
                        "q3": col.quantile(0.75),
                        "max": col.max(),
                        "sd": col.std(),
                        "n_missing": int(col.isna().sum()),
                    }
                )
        return pd.DataFrame(rows).set_index(["metric", "model"])

    def differences(self, metric: str = "roc_auc", level: float = 0.95) -> pd.DataFrame:
        """Pairwise paired differences (first model minus second) with adjusted p-values."""

        table = self.metric_values(metric)
        pairs = list(combinations(self.models, 2))
        rows = []
        for a, b in pairs:
            paired = table[[a, b]].dropna()
            diff = paired[a] - paired[b]
            mean, lower, upper = _mean_interval(diff, level)
            if len(paired) >= 2 and diff.std(ddof=1) > 0:
                statistic, p_value = stats.ttest_rel(paired[a], paired[b])
            else:
                statistic, p_value = np.nan, np.nan
            rows.append(
                {
                    "metric": metric,
                    "model_a": a,
                    "model_b": b,
                    "n": int(len(paired)),
                    "mean_difference": mean,
                    "ci_lower": lower,
                    "ci_upper": upper,
                    "statistic": float(statistic),
                    "p_value": float(p_value),
                    "p_adjusted": float(min(1.0, p_value * len(pairs))) if not np.isnan(p_value) else np.nan,
                }
            )
        return pd.DataFrame(rows)

    def ranking(self, metric: str = "roc_auc") -> pd.Series:
        """Models ordered by median metric (best first)."""
        return self.metric_values(metric).median().sort_values(ascending=False)

    # -----------------------------
    # Plots
    # -----------------------------

    def _long(self, metric: str) -> pd.DataFrame:
        return self.metric_values(metric).melt(var_name="model", value_name=metric, ignore_index=False)

    def plot_box(self, metric: str, out_path) -> None:
        ensure_dir(out_path.parent)
        order = list(self.ranking(metric).index)
        fig, ax = plt.subplots(figsize=(8, 1.2 * len(self.models) + 2))
        sns.boxplot(data=self._long(metric), x=metric, y="model", order=order, ax=ax)
        ax.set_title(f"Resampled {metric}")
        fig.tight_layout()
        fig.savefig(out_path, dpi=200)
        plt.close(fig)

    def plot_dot(self, metric: str, out_path, level: float = 0.95) -> None:
        ensure_dir(out_path.parent)
        table = self.metric_values(metric)
        order = list(self.ranking(metric).index)[::-1]
        intervals = [_mean_interval(table[m], level) for m in order]
        means = np.array([i[0] for i in intervals])
        lower = np.array([i[1] for i in intervals])
        upper = np.array([i[2] for i in intervals])

        fig, ax = plt.subplots(figsize=(8, 1.0 * len(order) + 2))
        ax.errorbar(means, np.arange(len(order)), xerr=[means - lower, upper - means], fmt="o", capsize=4)
        ax.set_yticks(np.arange(len(order)))
        ax.set_yticklabels(order)
        ax.set_xlabel(f"{metric} (mean, {int(level * 100)}% confidence interval)")
        ax.grid(True, axis="x", alpha=0.3)
        fig.tight_layout()
        fig.savefig(out_path, dpi=200)
        plt.close(fig)

    def plot_scatter_matrix(self, metric: str, out_path) -> None:
        ensure_dir(out_path.parent)
        grid = sns.pairplot(self.metric_values(metric).dropna(), corner=False)
        grid.figure.suptitle(f"Paired resamples: {metric}", y=1.02)
        grid.savefig(out_path, dpi=200)
        plt.close(grid.figure)
