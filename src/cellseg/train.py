"""cellseg.train

Notes (what this script does)
- End-to-end model selection on the cell segmentation data.
- Workflow:
  1) Load raw data (download if needed)
  2) Clean data (drop identifiers, validate the PS/WS label)
  3) Stratified 50/50 train/test partition (seeded)
  4) Fit a fixed-parameter boosted-tree baseline and report its variable importance
  5) Tune boosted trees, SVM, and random forest with 5 x repeated 10-fold CV (ROC AUC)
     on identical folds
  6) Evaluate every tuned model on the test set: confusion matrix, sensitivity,
     specificity, ROC curve, AUC
  7) Compare the tuned models on their paired resamples
  8) Save models, plots, and metrics artifacts to disk; track runs in MLflow

Run (from project root):
    python -m cellseg.train
"""

# Import Path for output locations
from pathlib import Path  # File system paths

# Import typing for optional arguments
from typing import Dict, Iterable, Mapping, Optional  # Type hints

# Import pandas for creating comparison tables
import pandas as pd  # DataFrame utilities

# Import joblib for serializing trained models
import joblib  # Serialization

# Import mlflow for experiment tracking
import mlflow  # MLflow tracking
import mlflow.sklearn  # Sklearn model logging
from mlflow.models.signature import infer_signature  # Signature inference for model logging

# Import project modules for data acquisition and preprocessing
from .data_ingest import load_or_download  # Download/cache dataset
from .preprocess import (  # Cleaning + partitioning
    clean_dataset,
    create_data_partition,
    save_processed_artifacts,
    split_dataset,
)

# Import the model families and the tuner
from .models import FAMILIES, GBM, ModelFamily  # Uniform trainable-model interface
from .search_space import ResamplingPlan, SearchSpace  # Grid + resampling configuration
from .tuning import ModelTuner, TuningResult  # Cross-validated grid search

# Import evaluation helpers for metrics and plots
from .evaluate import (  # Evaluation utilities
    EvaluationResult,  # Test-set metrics container
    evaluate_model,  # Metric computation
    feature_importance,  # Tree-ensemble importance
    plot_confusion_matrix,  # Confusion matrix plot
    plot_feature_importance,  # Importance bar chart
    plot_probability_histogram,  # Probability of PS by true class
    plot_tuning_profile,  # CV metric vs hyperparameters
    save_roc_plot,  # Combined ROC plot
    print_classification_report,  # Optional detailed report
)

# Import the paired comparison of resamples
from .compare import ResampleComparison  # Resample distributions

# Import configuration (paths, hyperparams)
from .config import (  # Central constants
    GBM_BASELINE_MODEL_PATH,  # Baseline model path
    GBM_BASELINE_PARAMS,  # Baseline hyperparameters
    MLFLOW_ARTIFACT_ROOT,  # MLflow artifact root
    MLFLOW_ENABLED,  # Tracking switch
    MLFLOW_EXPERIMENT_NAME,  # MLflow experiment name
    MLFLOW_TRACKING_URI,  # MLflow tracking URI
    METRICS_DIR,  # Metrics folder
    METRICS_JSON_PATH,  # Metrics JSON path
    MODEL_COMPARISON_PATH,  # Comparison CSV path
    MODEL_DIR,  # Models folder
    PLOTS_DIR,  # Plots folder
    RANDOM_STATE,  # Reproducibility seed
    RESAMPLE_DIFFERENCES_PATH,  # Pairwise differences CSV
    RESAMPLE_SUMMARY_PATH,  # Distribution summary CSV
    RESAMPLES_PATH,  # Paired resamples CSV
    TARGET_COL,  # Label column
    TRAIN_FRACTION,  # Training fraction
    tuned_model_path,  # Tuned model path per family
)  # Imports from config

# Import the JSON logger
from .logging_config import setup_logging  # Structured logging

# Import helpers for directory creation and JSON saving
from .utils import ensure_dir, save_json  # Utilities

logger = setup_logging().getChild("train")  # Module logger


def configure_mlflow(
    tracking_uri: str = MLFLOW_TRACKING_URI,
    artifact_location: Optional[str] = MLFLOW_ARTIFACT_ROOT,
) -> None:
    """Configure MLflow tracking URI and experiment."""

    # Set tracking URI
    mlflow.set_tracking_uri(tracking_uri)  # Local SQLite store by default

    # Create the experiment once with an explicit artifact root, then select it
    if mlflow.get_experiment_by_name(MLFLOW_EXPERIMENT_NAME) is None:
        mlflow.create_experiment(MLFLOW_EXPERIMENT_NAME, artifact_location=artifact_location)
    mlflow.set_experiment(MLFLOW_EXPERIMENT_NAME)  # Experiment grouping


def log_model_run(
    result: TuningResult,
    evaluation: EvaluationResult,
    plan: ResamplingPlan,
    input_example: pd.DataFrame,
    plots_dir: Path,
    metrics_dir: Path,
) -> None:
    """Log a single tuned model to MLflow (params, metrics, artifacts, model)."""

    best_row = result.results.loc[result.best_index]  # CV summary of the chosen configuration

    # Signature from a one-row example and its predicted probabilities
    signature = infer_signature(input_example, result.final_model.predict_proba(input_example))

    # Start a run in MLflow
    with mlflow.start_run(run_name=f"{result.family}_tuned"):  # One run per family for comparability
        # Tag the run with a human-friendly model label
        mlflow.set_tag("model_name", result.label)  # Tag for filtering in UI

        # Log basic run parameters (common)
        mlflow.log_param("model_family", result.family)  # Family key
        mlflow.log_param("random_state", plan.seed)  # Seed
        mlflow.log_param("cv_folds", plan.folds)  # CV folds
        mlflow.log_param("cv_repeats", plan.repeats)  # CV repeats
        mlflow.log_param("selection_metric", plan.metric)  # Metric used to pick the configuration
        mlflow.log_param("n_configurations", len(result.results))  # Grid size

        # Log the selected hyperparameters
        for k, v in result.best_params.items():  # Iterate params
            mlflow.log_param(f"best_{k}", v)  # Log param to MLflow

        # Log CV metrics of the selected configuration
        for metric in ("roc_auc", "sensitivity", "specificity"):
            mlflow.log_metric(f"cv_{metric}_mean", float(best_row[metric]))  # CV mean
            mlflow.log_metric(f"cv_{metric}_sd", float(best_row[f"{metric}_sd"]))  # CV sd
        mlflow.log_metric("cv_failed_fits", float(result.n_failed))  # Recorded failures

        # Log test metrics
        for k, v in evaluation.metrics().items():
            mlflow.log_metric(f"test_{k}", float(v))

        # Log artifacts folders (plots + metrics CSV/JSON)
        mlflow.log_artifacts(str(plots_dir), artifact_path="plots")  # Save plots
        mlflow.log_artifacts(str(metrics_dir), artifact_path="metrics")  # Save metrics files

        # Log model object -- Persist model in MLflow
        mlflow.sklearn.log_model(
            result.final_model,  # Model object
            name="model",  # New MLflow argument (replaces artifact_path)
            input_example=input_example,  # Helps infer signature automatically
            signature=signature,  # Explicit signature to avoid dtype warnings
            serialization_format="cloudpickle",  # Tree ensembles hold types the skops audit rejects
        )


def _profile_axes(result: TuningResult):
    """Pick x / hue / style columns for the tuning profile from the hyperparameters that vary."""

    params = list(result.best_params)
    varying = [p for p in params if result.results[p].nunique() > 1]
    if not varying:
        return None, None, None
    # Iteration counts read best on the x axis
    varying.sort(key=lambda p: 0 if p in ("n_estimators", "C", "max_features") else 1)
    x = varying[0]
    hue = varying[1] if len(varying) > 1 else None
    style = varying[2] if len(varying) > 2 else None
    return x, hue, style


def fit_baseline(
    X_train: pd.DataFrame,
    y_train: pd.Series,
    params: Mapping = GBM_BASELINE_PARAMS,
    seed: int = RANDOM_STATE,
    model_dir: Path = MODEL_DIR,
    plots_dir: Path = PLOTS_DIR,
    metrics_dir: Path = METRICS_DIR,
) -> Optional[pd.Series]:
    """Fit the fixed-parameter boosted-tree baseline and save its relative importance."""

    logger.info("fitting baseline", extra={"family": GBM.name, "params": dict(params)})

    # Fit with the given parameters; no tuning
    baseline = GBM.fit(X_train, y_train, params, seed)  # Untuned boosted trees

    # Persist the model
    ensure_dir(model_dir)  # Ensure models directory
    joblib.dump(baseline, model_dir / GBM_BASELINE_MODEL_PATH.name)  # Save baseline

    # Relative influence of every measurement
    importance = feature_importance(baseline, X_train.columns)  # Sorted percentages
    if importance is not None:
        ensure_dir(metrics_dir)
        importance.to_csv(metrics_dir / "importance_gbm_baseline.csv", header=True)
        plot_feature_importance(importance, "Relative Influence - Boosted Trees (baseline)", plots_dir / "importance_gbm_baseline.png")
    return importance


def run_workflow(
    df_raw: pd.DataFrame,
    families: Optional[Iterable[ModelFamily]] = None,
    plan: Optional[ResamplingPlan] = None,
    search_spaces: Optional[Dict[str, SearchSpace]] = None,
    train_fraction: float = TRAIN_FRACTION,
    seed: int = RANDOM_STATE,
    baseline_params: Optional[Mapping] = GBM_BASELINE_PARAMS,
    model_dir: Path = MODEL_DIR,
    plots_dir: Path = PLOTS_DIR,
    metrics_dir: Path = METRICS_DIR,
    track_mlflow: bool = MLFLOW_ENABLED,
    tracking_uri: str = MLFLOW_TRACKING_URI,
    artifact_location: Optional[str] = MLFLOW_ARTIFACT_ROOT,
) -> dict:
    """Run partition -> tune -> evaluate -> compare and write every artifact.

    Args:
        df_raw: Raw dataset (identifier columns are dropped).
        families: Model families to tune; all registered families by default.
        plan: Resampling plan shared by every family (seed + worker count).
        search_spaces: Optional grid per family name overriding the defaults.
        train_fraction: Training share of each class.
        seed: Seed of the train/test partition.
        baseline_params: Boosted-tree baseline parameters; None skips the baseline.
        model_dir: Where models are serialized.
        plots_dir: Where figures are written.
        metrics_dir: Where tables and JSON are written.
        track_mlflow: Log one MLflow run per tuned family.
        tracking_uri: MLflow tracking store.
        artifact_location: Artifact root used when the experiment is first created.

    Returns:
        Dict with the cleaned data, partition, tuning results, evaluations, and comparison.
    """

    # Ensure output directories exist (models, plots, metrics)
    ensure_dir(model_dir)  # Ensure models directory
    ensure_dir(plots_dir)  # Ensure plots directory
    ensure_dir(metrics_dir)  # Ensure metrics directory

    families = list(families) if families is not None else list(FAMILIES.values())  # Default: all three
    plan = plan or ResamplingPlan()  # Default: 5 x 10-fold CV, seed 1951
    search_spaces = search_spaces or {}  # Default grids per family

    # -----------------------------
    # Step 1: Data cleaning
    # -----------------------------

    df_clean = clean_dataset(df_raw)  # Drop ids + validate label

    # -----------------------------
    # Step 2: Partition + split
    # -----------------------------

    partition = create_data_partition(df_clean[TARGET_COL], p=train_fraction, seed=seed)  # Stratified split
    X_train, X_test, y_train, y_test = split_dataset(df_clean, partition)  # Prepared features
    logger.info(
        "data partitioned",
        extra={"n_train": int(len(X_train)), "n_test": int(len(X_test)), "n_features": int(X_train.shape[1])},
    )

    # Single-row input example for MLflow signature inference (float avoids integer schema issues)
    input_example = X_train.head(1).astype(float)

    # -----------------------------
    # Step 3: Boosted-tree baseline
    # -----------------------------

    baseline_importance = None
    if baseline_params is not None:
        baseline_importance = fit_baseline(
            X_train, y_train, baseline_params, plan.seed, model_dir, plots_dir, metrics_dir
        )

    # -----------------------------
    # Step 4: Tune every family on the same folds
    # -----------------------------

    tuner = ModelTuner(plan)  # Shared plan => paired resamples
    tuning: Dict[str, TuningResult] = {}
    evaluations: Dict[str, EvaluationResult] = {}

    for family in families:
        result = tuner.tune(family, X_train, y_train, search_spaces.get(family.name))  # Grid search
        tuning[family.name] = result

        # Per-configuration CV table
        result.results.to_csv(metrics_dir / f"tuning_{family.name}.csv")

        # Tuning profile
        x, hue, style = _profile_axes(result)
        if x is not None:
            plot_tuning_profile(
                result.results,
                x=x,
                metric=plan.metric,
                title=f"Tuning Profile - {family.label}",
                out_path=plots_dir / f"tuning_{family.name}.png",
                hue=hue,
                style=style,
                log_x=(x == "C"),
            )

        # -----------------------------
        # Step 5: Evaluate on the test set
        # -----------------------------

        evaluation = evaluate_model(family.label, result.final_model, X_test, y_test)  # Test metrics
        evaluations[family.name] = evaluation

        plot_confusion_matrix(
            evaluation,
            f"Confusion Matrix - {family.label}",
            plots_dir / f"cm_{family.name}.png",
        )
        plot_probability_histogram(evaluation, y_test, plots_dir / f"probability_{family.name}.png")

        importance = feature_importance(result.final_model, X_train.columns)  # Trees only
        if importance is not None:
            importance.to_csv(metrics_dir / f"importance_{family.name}.csv", header=True)
            plot_feature_importance(
                importance,
                f"Variable Importance - {family.label}",
                plots_dir / f"importance_{family.name}.png",
            )

        # Save the tuned model
        joblib.dump(result.final_model, model_dir / tuned_model_path(family.name).name)

    # Combined ROC curves
    save_roc_plot(list(evaluations.values()), plots_dir / "roc_curves.png")

    # -----------------------------
    # Step 6: Compare resamples
    # -----------------------------

    comparison = None
    if len(tuning) >= 2:
        comparison = ResampleComparison(tuning)  # Refuses non-paired results
        comparison.flat_values().to_csv(metrics_dir / RESAMPLES_PATH.name)
        comparison.summary().to_csv(metrics_dir / RESAMPLE_SUMMARY_PATH.name)
        comparison.differences(plan.metric).to_csv(metrics_dir / RESAMPLE_DIFFERENCES_PATH.name, index=False)
        comparison.plot_box(plan.metric, plots_dir / "resamples_box.png")
        comparison.plot_dot(plan.metric, plots_dir / "resamples_dot.png")
        comparison.plot_scatter_matrix(plan.metric, plots_dir / "resamples_scatter.png")

    # -----------------------------
    # Step 7: Save metrics artifacts
    # -----------------------------

    comparison_df = pd.DataFrame(
        [
            {
                "model": tuning[name].label,
                "family": name,
                f"cv_{plan.metric}_mean": tuning[name].best_score,
                f"cv_{plan.metric}_sd": float(tuning[name].results.loc[tuning[name].best_index, f"{plan.metric}_sd"]),
                "cv_failed_fits": tuning[name].n_failed,
                **{f"test_{k}": v for k, v in evaluations[name].metrics().items()},
            }
            for name in tuning
        ]
    )
    comparison_df.to_csv(metrics_dir / MODEL_COMPARISON_PATH.name, index=False)  # Persist as artifact

    metrics_payload = {
        "partition": {
            "seed": partition.seed,
            "fraction": partition.fraction,
            "n_train": int(len(partition.train_index)),
            "n_test": int(len(partition.test_index)),
        },
        "resampling": {
            "folds": plan.folds,
            "repeats": plan.repeats,
            "seed": plan.seed,
            "metric": plan.metric,
        },
        "baseline_top_features": (
            baseline_importance.head(10).to_dict() if baseline_importance is not None else None
        ),
        "models": {
            name: {
                "best_params": tuning[name].best_params,
                "best_cv_score": tuning[name].best_score,
                "n_configurations": int(len(tuning[name].results)),
                "n_fits": tuning[name].n_fits,
                "n_failed": tuning[name].n_failed,
                "test": evaluations[name].to_dict(),
            }
            for name in tuning
        },
    }
    save_json(metrics_payload, metrics_dir / METRICS_JSON_PATH.name)  # Persist metrics payload

    # -----------------------------
    # Step 8: MLflow experiment tracking
    # -----------------------------

    if track_mlflow:
        configure_mlflow(tracking_uri, artifact_location)  # Configure experiment tracking
        for name in tuning:
            log_model_run(tuning[name], evaluations[name], plan, input_example, plots_dir, metrics_dir)

    # Print quick console summary
    print("\nModel evaluation summary (Test ROC-AUC):")  # Header
    for name in tuning:
        print(f"  {name:<4}: {evaluations[name].auc:.4f}  best={tuning[name].best_params}")

    for name in tuning:
        print_classification_report(y_test, evaluations[name].y_pred, f"{tuning[name].label} - Classification Report")

    if comparison is not None:
        print(f"\nResampled {plan.metric} (paired):")
        print(comparison.summary(plan.metric).round(4).to_string())

    return {
        "data": df_clean,
        "partition": partition,
        "tuning": tuning,
        "evaluations": evaluations,
        "comparison": comparison,
        "comparison_table": comparison_df,
    }


def main() -> None:
    """Main training entry point."""

    # Load raw dataset (download if not present locally)
    df_raw = load_or_download()  # Data acquisition step

    # Run the full workflow with the default configuration
    outputs = run_workflow(df_raw)  # Partition, tune, evaluate, compare

    # Save cleaned data and partition for reproducibility
    save_processed_artifacts(outputs["data"], outputs["partition"])  # Persist artifacts

    # Print output locations for convenience
    print("\nArtifacts written:")  # Header
    print(f"  Models:  {MODEL_DIR}")  # Model dir
    print(f"  Plots:   {PLOTS_DIR}")  # Plot dir
    print(f"  Metrics: {METRICS_DIR}")  # Metrics dir


if __name__ == "__main__":
    main()  # Execute training when run as a script
