# Notes:
# - Paired comparison of resampled metrics across tuned models.

import numpy as np
import pytest

from cellseg.compare import ResampleComparison
from cellseg.exceptions import ConfigurationError
from cellseg.models import GBM, RF
from cellseg.search_space import ResamplingPlan, SearchSpace
from cellseg.tuning import ModelTuner

GBM_SPACE = SearchSpace({"max_depth": [1, 2], "n_estimators": [20], "learning_rate": [0.1], "min_samples_leaf": [5]})
RF_SPACE = SearchSpace({"max_features": [2, 4], "n_estimators": [30]})


@pytest.fixture(scope="module")
def tuned(train_test, small_plan):
    X_train, _, y_train, _ = train_test
    tuner = ModelTuner(small_plan)
    return {
        "gbm": tuner.tune(GBM, X_train, y_train, GBM_SPACE),
        "rf": tuner.tune(RF, X_train, y_train, RF_SPACE),
    }


def test_values_are_paired_by_resample(tuned, small_plan):
    comparison = ResampleComparison(tuned)

    assert comparison.values.shape == (small_plan.n_resamples, 2 * 3)
    assert list(comparison.values.index) == tuned["gbm"].resample_ids
    roc = comparison.metric_values("roc_auc")
    np.testing.assert_allclose(roc["gbm"].to_numpy(), tuned["gbm"].resamples["roc_auc"].to_numpy())
    assert "rf~roc_auc" in comparison.flat_values().columns


def test_summary_describes_each_model(tuned):
    summary = ResampleComparison(tuned).summary("roc_auc")

    assert list(summary.index.get_level_values("model")) == ["gbm", "rf"]
    for _, row in summary.iterrows():
        assert row["min"] <= row["q1"] <= row["median"] <= row["q3"] <= row["max"]
        assert row["n_missing"] == 0

    assert len(ResampleComparison(tuned).summary()) == 3 * 2


def test_differences_are_pairwise(tuned):
    comparison = ResampleComparison(tuned)
    diffs = comparison.differences("roc_auc")

    assert len(diffs) == 1
    row = diffs.iloc[0]
    expected = (comparison.metric_values("roc_auc")["gbm"] - comparison.metric_values("roc_auc")["rf"]).mean()
    assert row["mean_difference"] == pytest.approx(expected)
    assert row["ci_lower"] <= row["mean_difference"] <= row["ci_upper"]
    if not np.isnan(row["p_value"]):
        assert 0.0 <= row["p_adjusted"] <= 1.0


def test_unpaired_results_are_refused(train_test, tuned):
    X_train, _, y_train, _ = train_test
    other = ModelTuner(ResamplingPlan(folds=3, repeats=2, seed=99, n_jobs=1)).tune(RF, X_train, y_train, RF_SPACE)

    with pytest.raises(ConfigurationError):
        ResampleComparison({"gbm": tuned["gbm"], "rf_other_seed": other})


def test_single_model_is_refused(tuned):
    with pytest.raises(ConfigurationError):
        ResampleComparison({"gbm": tuned["gbm"]})


def test_unknown_metric_is_refused(tuned):
    with pytest.raises(ConfigurationError):
        ResampleComparison(tuned).metric_values("accuracy")


def test_comparison_plots_are_written(tuned, tmp_path):
    comparison = ResampleComparison(tuned)

    comparison.plot_box("roc_auc", tmp_path / "box.png")
    comparison.plot_dot("roc_auc", tmp_path / "dot.png")
    comparison.plot_scatter_matrix("roc_auc", tmp_path / "scatter.png")

    for name in ("box.png", "dot.png", "scatter.png"):
        assert (tmp_path / name).exists()
