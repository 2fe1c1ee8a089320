"""cellseg.preprocess

Notes (what this module does)
- Cleans the raw dataset:
  * Drop identifier columns (cell id, the authors' own Train/Test case flag, row names)
  * Coerce features to numeric and validate the two-level label
- Creates a stratified, seed-reproducible train/test partition of row indices
  (for every class, ceil(p * n_class) rows go to training).
- Splits the cleaned data into feature matrices and label vectors.
- Saves the cleaned dataset and the partition indices to data/processed.

This module is designed to be imported by train.py, but it can also be run directly:
    python -m cellseg.preprocess
"""

from __future__ import annotations

# Import dataclass for the partition container
from dataclasses import dataclass  # Lightweight value objects

# Import Path for artifact locations
from pathlib import Path  # File system paths

# Import typing for explicit return types
from typing import Sequence, Tuple  # Improves readability and IDE support

# Import numpy for index arithmetic and seeded sampling
import numpy as np  # Numerical computing

# Import pandas for DataFrame operations
import pandas as pd  # Data manipulation

# Import project configuration constants
from .config import (
    CLASS_LEVELS,  # Expected label levels
    ID_COLUMNS,  # Columns that are not features
    PARTITION_PATH,  # Where to save the partition
    PROCESSED_DATA_PATH,  # Where to save cleaned data
    RANDOM_STATE,  # Reproducible seed
    TARGET_COL,  # Name of the target column
    TRAIN_FRACTION,  # Training fraction
)  # Central config

# Import the error taxonomy
from .exceptions import ConfigurationError, DataError  # Fatal input problems

# Import helpers for filesystem hygiene
from .utils import ensure_dir, save_json  # Directory creation + JSON output


@dataclass(frozen=True)
class Partition:
    """Positional row indices of the training and test subsets."""

    train_index: np.ndarray
    test_index: np.ndarray
    seed: int
    fraction: float

    @property
    def n_rows(self) -> int:
        return int(len(self.train_index) + len(self.test_index))

    def to_dict(self) -> dict:
        return {
            "seed": self.seed,
            "fraction": self.fraction,
            "train_index": self.train_index.tolist(),
            "test_index": self.test_index.tolist(),
        }


def validate_dataset(df: pd.DataFrame, levels: Sequence[str] = CLASS_LEVELS) -> None:
    """Raise DataError unless the frame has numeric features and a two-level label.

    Args:
        df: Cleaned dataset (features + TARGET_COL).
        levels: The label levels the workflow expects.
    """

    if TARGET_COL not in df.columns:  # Label must be present
        raise DataError(f"dataset has no '{TARGET_COL}' column")

    if df[TARGET_COL].isna().any():  # Every observation must be labeled
        raise DataError(f"'{TARGET_COL}' has {int(df[TARGET_COL].isna().sum())} missing labels")

    observed = set(df[TARGET_COL].astype(str).unique())  # Levels actually present
    if observed != set(levels):
        raise DataError(f"'{TARGET_COL}' must have exactly the levels {sorted(levels)}, found {sorted(observed)}")

    features = df.drop(columns=[TARGET_COL])  # Feature matrix
    if features.shape[1] == 0:
        raise DataError("dataset has no feature columns")

    non_numeric = [c for c in features.columns if not pd.api.types.is_numeric_dtype(features[c])]
    if non_numeric:  # All measurements are numeric in this workflow
        raise DataError(f"non-numeric feature columns: {non_numeric}")

    if features.isna().any().any():  # Models cannot consume missing values
        missing = features.columns[features.isna().any()].tolist()
        raise DataError(f"feature columns with missing values: {missing}")


def clean_dataset(df: pd.DataFrame) -> pd.DataFrame:
    """Clean raw dataset and return a cleaned DataFrame.

    Args:
        df: Raw dataset DataFrame.

    Returns:
        Cleaned dataset DataFrame (numeric features + categorical label).
    """

    # Make a copy to avoid mutating caller's DataFrame
    df_clean = df.drop(columns=[c for c in ID_COLUMNS if c in df.columns])  # Features + label only

    # Ensure all feature columns are numeric (non-numeric becomes NaN and is caught by validation)
    for col in df_clean.columns:  # Iterate over every column
        if col != TARGET_COL:
            df_clean[col] = pd.to_numeric(df_clean[col], errors="coerce")  # Safe conversion

    # Store the label as an ordered categorical with the positive class first
    if TARGET_COL in df_clean.columns:
        raw = df_clean[TARGET_COL]
        if raw.isna().any():  # Every observation must be labeled
            raise DataError(f"'{TARGET_COL}' has {int(raw.isna().sum())} missing labels")

        labels = raw.astype(str).str.strip()
        unknown = sorted(set(labels) - set(CLASS_LEVELS))
        if unknown:  # Checked before the categorical is built
            raise DataError(f"'{TARGET_COL}' has unknown levels {unknown}; expected {list(CLASS_LEVELS)}")

        df_clean[TARGET_COL] = pd.Categorical(labels, categories=list(CLASS_LEVELS))

    # Fail fast on schema problems
    validate_dataset(df_clean)  # Raises DataError

    # Return the cleaned DataFrame
    return df_clean.reset_index(drop=True)  # Positional indices == row labels


def create_data_partition(
    y: Sequence,
    p: float = TRAIN_FRACTION,
    seed: int = RANDOM_STATE,
) -> Partition:
    """Stratified random split of row positions into training and test subsets.

    For every label level, ``ceil(p * n_level)`` rows are drawn for training;
    the remaining rows form the test subset.

    Args:
        y: Categorical labels, one per row.
        p: Training fraction, strictly between 0 and 1.
        seed: Seed for the random number generator.

    Returns:
        Partition with sorted positional indices.
    """

    # Reject fractions that would leave one side empty
    if not 0.0 < p < 1.0:
        raise ConfigurationError(f"training fraction must be in (0, 1), got {p}")

    labels = pd.Series(y).reset_index(drop=True)  # Positional labels
    if pd.api.types.is_numeric_dtype(labels) and not isinstance(labels.dtype, pd.CategoricalDtype):
        raise DataError("labels must be categorical, got a numeric vector")
    if labels.isna().any():  # Missing labels would otherwise be stratified as a "nan" class
        raise DataError(f"{int(labels.isna().sum())} labels are missing")

    rng = np.random.default_rng(seed)  # Explicit, local random state
    train_parts = []  # Training positions per class

    for level in pd.unique(labels.astype(str)):  # Stable order of first appearance
        positions = np.flatnonzero(labels.astype(str).to_numpy() == level)  # Rows of this class
        n_train = int(np.ceil(p * len(positions)))  # Training share of this class
        train_parts.append(rng.choice(positions, size=n_train, replace=False))  # Sample without replacement

    train_index = np.sort(np.concatenate(train_parts))  # Sorted training rows
    test_index = np.setdiff1d(np.arange(len(labels)), train_index)  # Everything else

    # Each side must still contain both classes
    for name, index in (("training", train_index), ("test", test_index)):
        n_levels = labels.iloc[index].astype(str).nunique()
        if n_levels < 2:
            raise DataError(f"{name} subset has {n_levels} observed label level(s); need at least 2")

    return Partition(train_index=train_index, test_index=test_index, seed=seed, fraction=p)


def split_dataset(
    df_clean: pd.DataFrame,
    partition: Partition,
) -> Tuple[pd.DataFrame, pd.DataFrame, pd.Series, pd.Series]:
    """Split cleaned data into train/test features and labels.

    Args:
        df_clean: Cleaned dataset.
        partition: Row positions of each subset.

    Returns:
        X_train, X_test, y_train, y_test
    """

    if partition.n_rows != len(df_clean):
        raise DataError(f"partition covers {partition.n_rows} rows but the dataset has {len(df_clean)}")

    # Separate features (X) from target (y)
    X = df_clean.drop(columns=[TARGET_COL])  # Feature matrix
    y = df_clean[TARGET_COL].astype(str)  # String labels for scikit-learn

    # Select rows by position
    X_train = X.iloc[partition.train_index].reset_index(drop=True)  # Train features
    X_test = X.iloc[partition.test_index].reset_index(drop=True)  # Test features
    y_train = y.iloc[partition.train_index].reset_index(drop=True)  # Train labels
    y_test = y.iloc[partition.test_index].reset_index(drop=True)  # Test labels

    # Return the splits
    return X_train, X_test, y_train, y_test  # Training-ready outputs


def save_processed_artifacts(
    df_clean: pd.DataFrame,
    partition: Partition,
    data_path: Path = PROCESSED_DATA_PATH,
    partition_path: Path = PARTITION_PATH,
) -> None:
    """Save cleaned dataset and partition indices to disk."""

    # Ensure output directories exist
    ensure_dir(data_path.parent)  # Ensure data/processed exists

    # Save cleaned dataset as CSV for downstream reproducibility
    df_clean.to_csv(data_path, index=False)  # Persist cleaned data

    # Save the partition so the exact split can be reproduced or audited
    save_json(partition.to_dict(), partition_path)  # Persist indices


if __name__ == "__main__":
    # Import loader locally to avoid circular imports at module import time
    from .data_ingest import load_or_download  # Lazy import for CLI execution

    # Acquire raw dataset (download or load cached)
    df_raw = load_or_download()  # Data acquisition

    # Clean the dataset
    df_cleaned = clean_dataset(df_raw)  # Drop ids + validate

    # Partition and split
    part = create_data_partition(df_cleaned[TARGET_COL])  # Stratified 50/50 split
    Xtr, Xte, ytr, yte = split_dataset(df_cleaned, part)  # Prepare modeling inputs

    # Save processed artifacts for reproducibility
    save_processed_artifacts(df_cleaned, part)  # Save cleaned data and partition

    # Print confirmations for logs
    print("Preprocessing completed.")  # High-level confirmation
    print(f"Cleaned data saved to: {PROCESSED_DATA_PATH}")  # Path confirmation
    print(f"Partition saved to: {PARTITION_PATH}")  # Path confirmation
    print(f"Train shape: {Xtr.shape}, Test shape: {Xte.shape}")  # Split confirmation
