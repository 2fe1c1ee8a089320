"""cellseg.evaluate

Notes (what this module does)
- Applies a fitted model to the held-out test subset:
  * class predictions and probability of the positive class (PS)
  * confusion matrix (rows = prediction, columns = reference), accuracy, kappa,
    sensitivity, specificity, predictive values, balanced accuracy
  * ROC curve from sweeping the threshold over the predicted probabilities, and its AUC
- Extracts variable importance from tree ensembles.
- Generates evaluation artifacts for reporting:
  * Confusion matrix plots
  * ROC curve plots
  * Probability-of-poor-segmentation histograms
  * Tuning profiles and importance bar charts
"""

# Import dataclass for the evaluation result container
from dataclasses import dataclass  # Value object

# Import typing for clear function signatures
from typing import Dict, Optional, Sequence  # Type hints for maintainability

# Import numpy for numeric operations
import numpy as np  # Array math

# Import pandas for tabular results
import pandas as pd  # DataFrames for summaries

# Import matplotlib for plotting (saved to files)
import matplotlib.pyplot as plt  # Plotting library

# Import seaborn for nicer heatmaps (confusion matrix)
import seaborn as sns  # Statistical plotting

# Import sklearn metrics functions
from sklearn.metrics import (  # Metric utilities
    accuracy_score,  # Accuracy
    cohen_kappa_score,  # Agreement beyond chance
    roc_auc_score,  # ROC-AUC
    roc_curve,  # ROC curve points
    confusion_matrix,  # Confusion matrix values
    classification_report,  # Text report (optional)
)  # Metrics used across models

# Import class levels for default labels
from .config import CLASS_NAMES, NEGATIVE_CLASS, POSITIVE_CLASS  # Label configuration

# Import the uniform probability accessor
from .models import positive_proba  # Probability of the positive class

# Import helper to ensure plot directory exists
from .utils import ensure_dir  # Directory creation


@dataclass
class EvaluationResult:
    """Test-set performance of one fitted model."""

    model: str
    confusion: pd.DataFrame
    accuracy: float
    kappa: float
    sensitivity: float
    specificity: float
    ppv: float
    npv: float
    balanced_accuracy: float
    auc: float
    roc: pd.DataFrame
    y_pred: np.ndarray
    y_proba: np.ndarray

    def metrics(self) -> Dict[str, float]:
        """Scalar metrics only (for tables, JSON, and MLflow)."""

        return {
            "accuracy": self.accuracy,
            "kappa": self.kappa,
            "sensitivity": self.sensitivity,
            "specificity": self.specificity,
            "ppv": self.ppv,
            "npv": self.npv,
            "balanced_accuracy": self.balanced_accuracy,
            "roc_auc": self.auc,
        }

    def to_dict(self) -> dict:
        return {
            "model": self.model,
            **self.metrics(),
            "confusion_matrix": {
                "labels": list(self.confusion.index),
                "counts": self.confusion.to_numpy().tolist(),
            },
        }


def _ratio(num: int, den: int) -> float:
    # Undefined ratios (no observations in the denominator) are missing, not zero
    return float(num / den) if den else np.nan


def compute_roc(y_true, y_proba, positive_label: str = POSITIVE_CLASS) -> pd.DataFrame:
    """ROC points for every distinct threshold, from most to least restrictive."""

    # Keep every threshold so the full sweep is available for plotting
    fpr, tpr, thresholds = roc_curve(
        np.asarray(y_true).astype(str) == positive_label,
        y_proba,
        drop_intermediate=False,
    )  # False positive rate, true positive rate
    return pd.DataFrame({"threshold": thresholds, "fpr": fpr, "tpr": tpr})


def evaluate_model(
    name: str,
    model,
    X_test,
    y_test,
    positive_label: str = POSITIVE_CLASS,
    negative_label: str = NEGATIVE_CLASS,
) -> EvaluationResult:
    """Evaluate a fitted model on the untouched test subset.

    Args:
        name: Label used in reports.
        model: Fitted estimator with predict/predict_proba.
        X_test: Test features.
        y_test: Test labels.
        positive_label: Event class for sensitivity and the ROC curve.
        negative_label: The other class.

    Returns:
        EvaluationResult with the confusion matrix, scalar metrics, and ROC points.
    """

    # Predict labels and positive-class probabilities on the test set
    y_true = np.asarray(y_test).astype(str)  # Reference labels
    y_pred = np.asarray(model.predict(X_test)).astype(str)  # Predicted classes
    y_proba = positive_proba(model, X_test, positive_label)  # Probability of the event

    # Confusion matrix laid out as prediction (rows) x reference (columns)
    levels = [positive_label, negative_label]  # Fixed order
    cm = confusion_matrix(y_true, y_pred, labels=levels).T  # sklearn puts truth on rows
    confusion = pd.DataFrame(
        cm,
        index=pd.Index(levels, name="prediction"),
        columns=pd.Index(levels, name="reference"),
    )

    tp, fp = int(cm[0, 0]), int(cm[0, 1])  # Predicted positive
    fn, tn = int(cm[1, 0]), int(cm[1, 1])  # Predicted negative

    sensitivity = _ratio(tp, tp + fn)  # True positive rate
    specificity = _ratio(tn, tn + fp)  # True negative rate

    # Compute the ROC curve and its area
    roc = compute_roc(y_true, y_proba, positive_label)  # Threshold sweep
    auc_value = float(roc_auc_score(y_true == positive_label, y_proba))  # Area under ROC curve

    # Package results in a single structure
    return EvaluationResult(
        model=name,
        confusion=confusion,
        accuracy=float(accuracy_score(y_true, y_pred)),
        kappa=float(cohen_kappa_score(y_true, y_pred)),
        sensitivity=sensitivity,
        specificity=specificity,
        ppv=_ratio(tp, tp + fp),
        npv=_ratio(tn, tn + fn),
        balanced_accuracy=(sensitivity + specificity) / 2,
        auc=auc_value,
        roc=roc,
        y_pred=y_pred,
        y_proba=y_proba,
    )


def feature_importance(model, feature_names: Sequence[str]) -> Optional[pd.Series]:
    """Relative importance (percent, descending) for tree ensembles; None otherwise."""

    # Pipelines keep the estimator in their last step
    estimator = model.steps[-1][1] if hasattr(model, "steps") else model  # Unwrap
    importances = getattr(estimator, "feature_importances_", None)  # Trees only
    if importances is None:
        return None  # e.g. kernel machines

    total = float(np.sum(importances))  # Normalize to percentages like relative influence
    values = np.asarray(importances) * (100.0 / total if total > 0 else 0.0)
    return pd.Series(values, index=list(feature_names), name="relative_importance").sort_values(
        ascending=False
    )


def plot_confusion_matrix(result: EvaluationResult, title: str, out_path) -> None:
    """Create and save a confusion matrix plot."""

    # Ensure the output directory exists
    ensure_dir(out_path.parent)  # Create artifacts/plots if needed

    # Create a new figure for this plot
    plt.figure(figsize=(6, 5))  # Consistent sizing for reports

    # Plot the matrix as a heatmap
    sns.heatmap(
        result.confusion,  # Data to plot
        annot=True,  # Show values in cells
        fmt="d",  # Integer formatting
        cmap="Blues",  # Simple readable palette
        cbar=False,  # Hide color bar for compactness
    )

    # Add plot labels and title
    plt.xlabel("Reference")  # X-axis label
    plt.ylabel("Prediction")  # Y-axis label
    plt.title(title)  # Plot title

    # Tighten layout so labels fit
    plt.tight_layout()  # Avoid clipping

    # Save plot to disk
    plt.savefig(out_path, dpi=200)  # Persist artifact

    # Close figure to free memory (important in repeated runs)
    plt.close()  # Prevent figure accumulation


def save_roc_plot(results: Sequence[EvaluationResult], out_path, title: str = "ROC Curves") -> None:
    """Create a combined ROC plot for multiple models and save it."""

    # Ensure output directory exists
    ensure_dir(out_path.parent)  # Ensure artifacts/plots exists

    # Create a new figure and axis
    fig, ax = plt.subplots(figsize=(8, 6))  # Standard report size

    # Plot each model's ROC curve
    for result in results:  # Iterate models
        ax.plot(result.roc["fpr"], result.roc["tpr"], label=f"{result.model} (AUC={result.auc:.4f})")

    # Plot a diagonal baseline for reference (random classifier)
    ax.plot([0, 1], [0, 1], linestyle="--", color="grey")  # Baseline

    # Add axis labels and title
    ax.set_xlabel("False Positive Rate (1 - Specificity)")  # X-axis label
    ax.set_ylabel("True Positive Rate (Sensitivity)")  # Y-axis label
    ax.set_title(title)  # Chart title

    # Add legend
    ax.legend(loc="lower right")  # Keep legend readable

    # Tight layout to avoid clipping
    fig.tight_layout()  # Improve spacing

    # Save figure to disk
    fig.savefig(out_path, dpi=200)  # Persist artifact

    # Close figure
    plt.close(fig)  # Cleanup


def plot_probability_histogram(
    result: EvaluationResult,
    y_test,
    out_path,
    positive_label: str = POSITIVE_CLASS,
) -> None:
    """Histogram of the positive-class probability, one panel per true class."""

    ensure_dir(out_path.parent)

    frame = pd.DataFrame(
        {"probability": result.y_proba, "class": np.asarray(y_test).astype(str)}
    )
    grid = sns.displot(frame, x="probability", col="class", bins=20, height=4, facet_kws={"sharey": False})
    grid.set_axis_labels(f"Probability of {CLASS_NAMES.get(positive_label, positive_label)}", "Count")
    grid.figure.suptitle(result.model, y=1.02)
    grid.savefig(out_path, dpi=200)
    plt.close(grid.figure)


def plot_tuning_profile(
    results: pd.DataFrame,
    x: str,
    metric: str,
    title: str,
    out_path,
    hue: Optional[str] = None,
    style: Optional[str] = None,
    log_x: bool = False,
) -> None:
    """Mean resampled metric against one hyperparameter (one line per value of ``hue``/``style``)."""

    ensure_dir(out_path.parent)

    data = results.copy()
    for col in (hue, style):
        if col:
            data[col] = data[col].astype(str)  # Discrete legend entries

    fig, ax = plt.subplots(figsize=(8, 5))
    sns.lineplot(
        data=data,
        x=x,
        y=metric,
        hue=hue,
        style=style,
        marker="o",
        ax=ax,
        palette="tab10" if hue else None,
    )
    if log_x:
        ax.set_xscale("log", base=2)  # Cost grids are powers of two
    ax.set_ylabel(f"{metric} (repeated cross-validation)")
    ax.set_title(title)
    ax.grid(True, alpha=0.3)
    fig.tight_layout()
    fig.savefig(out_path, dpi=200)
    plt.close(fig)


def plot_feature_importance(importance: pd.Series, title: str, out_path, top_n: int = 20) -> None:
    """Horizontal bar chart of the ``top_n`` most important features."""

    ensure_dir(out_path.parent)

    top = importance.head(top_n).iloc[::-1]  # Largest at the top
    fig, ax = plt.subplots(figsize=(8, 0.35 * len(top) + 1.5))
    ax.barh(top.index, top.values, edgecolor="black")
    ax.set_xlabel("Relative importance (%)")
    ax.set_title(title)
    fig.tight_layout()
    fig.savefig(out_path, dpi=200)
    plt.close(fig)


def print_classification_report(y_true, y_pred, title: str) -> None:
    """Print a classification report (useful for console logs)."""

    # Print section title
    print(f"\n{title}")  # Header
    print("-" * len(title))  # Underline

    # Print sklearn's formatted classification report
    print(classification_report(y_true, y_pred, digits=4, zero_division=0))  # Detailed per-class metrics
