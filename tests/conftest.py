"""
Pytest configuration.

Ensures src/ is on PYTHONPATH so that imports like
`from cellseg...` work in local and CI environments
without an editable install, and provides a small
synthetic stand-in for the cell segmentation data so
tests never need the network.
"""

import sys
from pathlib import Path

import matplotlib

matplotlib.use("Agg")  # Headless plotting in CI

import numpy as np
import pandas as pd
import pytest
from sklearn.datasets import make_classification

# Add src/ to PYTHONPATH
PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from cellseg.search_space import ResamplingPlan  # noqa: E402


@pytest.fixture(scope="session")
def cells_df() -> pd.DataFrame:
    """Raw-looking dataset: id columns, a PS/WS label (about 64% PS), numeric measurements."""

    X, y = make_classification(
        n_samples=240,
        n_features=8,
        n_informative=4,
        n_redundant=2,
        weights=[0.64],
        class_sep=1.5,
        random_state=0,
    )
    df = pd.DataFrame(X, columns=[f"feature_{i:02d}" for i in range(X.shape[1])])
    df.insert(0, "class", np.where(y == 0, "PS", "WS"))
    df.insert(0, "case", np.where(np.arange(len(df)) % 2 == 0, "Train", "Test"))
    df.insert(0, "cell", np.arange(207827637, 207827637 + len(df)))
    return df


@pytest.fixture(scope="session")
def small_plan() -> ResamplingPlan:
    """3-fold CV repeated twice, single worker."""

    return ResamplingPlan(folds=3, repeats=2, seed=7, n_jobs=1)


@pytest.fixture(scope="session")
def train_test(cells_df):
    """Cleaned, partitioned synthetic data: X_train, X_test, y_train, y_test."""

    from cellseg.preprocess import clean_dataset, create_data_partition, split_dataset

    df_clean = clean_dataset(cells_df)
    partition = create_data_partition(df_clean["class"], p=0.5, seed=11)
    return split_dataset(df_clean, partition)
