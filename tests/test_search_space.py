# Notes:
# - Grid enumeration and resampling plan behaviour (fold counts, determinism, pairing).

import numpy as np
import pandas as pd
import pytest

from cellseg.exceptions import ConfigurationError
from cellseg.models import GBM
from cellseg.search_space import ResamplingPlan, SearchSpace


def test_search_space_enumerates_cartesian_product():
    space = SearchSpace({"a": [1, 2, 3], "b": ["x", "y"]})

    configs = space.configurations()
    assert len(space) == len(configs) == 6
    assert {"a": 2, "b": "y"} in configs
    assert len({tuple(sorted(c.items())) for c in configs}) == 6  # No duplicates


@pytest.mark.parametrize("grid", [{}, {"a": []}, {"a": 3}, {"a": "abc"}])
def test_search_space_rejects_bad_grids(grid):
    with pytest.raises(ConfigurationError):
        SearchSpace(grid)


def test_default_boosted_tree_grid_has_80_configurations(train_test):
    X_train = train_test[0]
    assert len(GBM.default_search_space(X_train)) == 4 * 10 * 2 * 1


def test_reference_scenario_fold_fit_count():
    """80 configurations over 5 x 10-fold CV means 4000 fold fits."""

    plan = ResamplingPlan()
    assert plan.folds == 10 and plan.repeats == 5
    assert plan.n_resamples * 80 == 4000


def test_resamples_cover_training_rows_each_repeat(small_plan):
    y = pd.Series(["PS"] * 40 + ["WS"] * 20)

    resamples = small_plan.resamples(y)
    assert len(resamples) == small_plan.folds * small_plan.repeats
    assert resamples[0].resample_id == "Fold01.Rep1"
    assert resamples[-1].resample_id == "Fold03.Rep2"

    for repeat in (1, 2):
        held = np.concatenate([r.test_index for r in resamples if r.repeat == repeat])
        assert sorted(held.tolist()) == list(range(len(y)))  # Every row held out exactly once
    for r in resamples:
        assert set(r.train_index).isdisjoint(r.test_index)
        assert set(y.iloc[r.test_index]) == {"PS", "WS"}  # Stratified


def test_resamples_are_deterministic_and_paired(small_plan):
    y = pd.Series(["PS", "WS", "PS"] * 20)

    first = small_plan.resamples(y)
    second = ResamplingPlan(folds=3, repeats=2, seed=7, n_jobs=1).resamples(y)
    for a, b in zip(first, second):
        np.testing.assert_array_equal(a.test_index, b.test_index)

    assert small_plan.signature(y) == ResamplingPlan(folds=3, repeats=2, seed=7).signature(y)
    assert small_plan.signature(y) != ResamplingPlan(folds=3, repeats=2, seed=8).signature(y)


@pytest.mark.parametrize(
    "kwargs",
    [{"folds": 1}, {"repeats": 0}, {"metric": "accuracy"}, {"n_jobs": 0}],
)
def test_plan_rejects_invalid_settings(kwargs):
    with pytest.raises(ConfigurationError):
        ResamplingPlan(**kwargs)
