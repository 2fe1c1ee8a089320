"""cellseg.eda

Notes (what this script does)
- Exploratory views of the cell segmentation data before modeling.
- Generates and saves:
  * Class distribution (bar + pie)
  * Correlation heatmap of the optical measurements (clustered order)
  * Summary statistics of the training features
- Saves plots into artifacts/plots and tables into artifacts/metrics.

Run (from project root):
    python -m cellseg.eda
"""

# Import numpy for numeric utilities
import numpy as np  # Numerical computing

# Import pandas for DataFrame operations
import pandas as pd  # Data manipulation

# Import matplotlib for plotting
import matplotlib.pyplot as plt  # Plotting library

# Import seaborn for heatmaps and style
import seaborn as sns  # Statistical plots

# Import config for labels and paths
from .config import CLASS_LEVELS, CLASS_NAMES, METRICS_DIR, PLOTS_DIR, TARGET_COL  # Central constants

# Import helper to ensure plot directory exists
from .utils import ensure_dir  # Directory creation

# Import preprocessing functions so EDA operates on cleaned training data
from .preprocess import clean_dataset, create_data_partition, split_dataset  # Same split as training

# Import loader to acquire raw data
from .data_ingest import load_or_download  # Download/cache raw dataset


def plot_class_distribution(df: pd.DataFrame, out_dir=PLOTS_DIR) -> None:
    """Plot and save class distribution (bar + pie)."""

    # Ensure output directory exists
    ensure_dir(out_dir)  # Create artifacts/plots if required

    # Count class occurrences in a fixed order
    target_counts = df[TARGET_COL].astype(str).value_counts().reindex(list(CLASS_LEVELS), fill_value=0)
    labels = [CLASS_NAMES[c] for c in CLASS_LEVELS]  # Readable labels

    # Create a side-by-side subplot layout
    fig, axes = plt.subplots(1, 2, figsize=(12, 4))  # Two plots in one row

    # ----- Bar plot -----
    axes[0].bar(labels, target_counts.values, edgecolor="black")  # Bar chart
    axes[0].set_title("Class Distribution")  # Title
    axes[0].set_ylabel("Count")  # Y-axis label

    # Annotate bars with counts
    for i, v in enumerate(target_counts.values):  # Iterate bars
        axes[0].text(i, v + 3, str(int(v)), ha="center")  # Add text labels

    # ----- Pie chart -----
    axes[1].pie(
        target_counts.values,  # Values for slices
        labels=labels,  # Slice labels
        autopct="%1.1f%%",  # Percentage labels
        startangle=90,  # Rotate for readability
    )
    axes[1].set_title("Class Balance")  # Title

    # Improve layout
    fig.tight_layout()  # Avoid overlap

    # Save to disk
    fig.savefig(out_dir / "class_distribution.png", dpi=200)  # Persist artifact

    # Close figure
    plt.close(fig)  # Cleanup


def plot_correlation_heatmap(X: pd.DataFrame, out_dir=PLOTS_DIR) -> pd.DataFrame:
    """Plot and save the feature correlation heatmap, features ordered by hierarchical clustering."""

    # Ensure output directory exists
    ensure_dir(out_dir)

    # Compute correlation matrix
    corr = X.corr(numeric_only=True)

    # Clustered heatmap groups strongly correlated measurements together
    grid = sns.clustermap(
        corr.fillna(0.0),
        cmap="coolwarm",
        center=0,
        vmin=-1,
        vmax=1,
        figsize=(14, 14),
        xticklabels=True,
        yticklabels=True,
    )
    grid.figure.suptitle("Feature Correlation (clustered)", fontsize=16, fontweight="bold", y=1.01)

    # Save and close
    grid.savefig(out_dir / "correlation_heatmap.png", dpi=150)
    plt.close(grid.figure)

    # Return the matrix for reporting
    return corr


def highly_correlated_pairs(corr: pd.DataFrame, threshold: float = 0.9) -> pd.DataFrame:
    """Feature pairs whose absolute correlation exceeds ``threshold``."""

    upper = corr.where(np.triu(np.ones(corr.shape, dtype=bool), k=1))  # Each pair once
    pairs = upper.stack().dropna().rename("correlation").reset_index()
    pairs.columns = ["feature_a", "feature_b", "correlation"]
    pairs = pairs[pairs["correlation"].abs() > threshold]
    return pairs.reindex(pairs["correlation"].abs().sort_values(ascending=False).index).reset_index(drop=True)


def save_tabular_eda(X_train: pd.DataFrame, output_dir=METRICS_DIR) -> None:
    """
    Notes:
    Persist tabular EDA outputs (head, describe of the training features)
    so they are reproducible and available for reports and MLflow.
    """

    # Ensure directory exists
    ensure_dir(output_dir)

    # Save first rows
    X_train.head().to_csv(output_dir / "data_head.csv", index=False)

    # Save statistical summary of every training feature
    summary = X_train.describe().T.round(3)
    summary.to_csv(output_dir / "train_feature_summary.csv")
    summary.to_markdown(output_dir / "train_feature_summary.md")


if __name__ == "__main__":
    # Apply seaborn styling
    sns.set_style("darkgrid")  # Styling

    # Load raw dataset
    df_raw = load_or_download()  # Acquire data

    # Clean dataset (same cleaning as training)
    df_clean = clean_dataset(df_raw)  # Drop ids + validate

    # Use the same training subset as the modeling workflow
    partition = create_data_partition(df_clean[TARGET_COL])  # Seeded 50/50 split
    X_train, _, _, _ = split_dataset(df_clean, partition)  # Training features

    # Generate EDA plots
    plot_class_distribution(df_clean)  # Save class distribution
    corr_matrix = plot_correlation_heatmap(X_train)  # Save correlation heatmap

    # Save tabular EDA outputs
    save_tabular_eda(X_train)
    highly_correlated_pairs(corr_matrix).to_csv(METRICS_DIR / "high_correlation_pairs.csv", index=False)

    # Print output paths for convenience
    print("EDA plots saved to:", PLOTS_DIR)  # Confirmation
    print("Class counts:")
    print(df_clean[TARGET_COL].value_counts())
