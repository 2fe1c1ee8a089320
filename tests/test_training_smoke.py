# Notes:
# - Smoke test: ensures the workflow executes end-to-end on small grids.
# - Validates that training produces expected artifacts.
# - Intended to catch broken imports, path issues, and runtime regressions.

import json  # Metrics payload checks

from cellseg.config import METRICS_JSON_PATH, MODEL_COMPARISON_PATH  # Expected outputs
from cellseg.models import FAMILIES  # All three families
from cellseg.search_space import SearchSpace
from cellseg.train import run_workflow  # Training entry point


def test_workflow_runs_and_writes_artifacts(cells_df, small_plan, tmp_path):
    """The workflow should tune every family and generate core artifacts."""

    outputs = run_workflow(
        cells_df,
        plan=small_plan,
        search_spaces={
            "gbm": SearchSpace(
                {"max_depth": [1, 2], "n_estimators": [20, 40], "learning_rate": [0.1], "min_samples_leaf": [5]}
            ),
            "rf": SearchSpace({"max_features": [2, 4], "n_estimators": [30]}),
        },
        seed=21,
        baseline_params={"n_estimators": 30, "max_depth": 2, "learning_rate": 0.1, "min_samples_leaf": 5},
        model_dir=tmp_path / "models",
        plots_dir=tmp_path / "plots",
        metrics_dir=tmp_path / "metrics",
        track_mlflow=False,
    )

    assert set(outputs["tuning"]) == set(FAMILIES)
    assert len(outputs["partition"].train_index) + len(outputs["partition"].test_index) == len(cells_df)
    for evaluation in outputs["evaluations"].values():
        assert evaluation.auc > 0.5  # Better than chance

    metrics_dir = tmp_path / "metrics"
    assert (metrics_dir / METRICS_JSON_PATH.name).exists()  # Metrics JSON must be created
    assert (metrics_dir / MODEL_COMPARISON_PATH.name).exists()  # Comparison CSV must be created
    assert (metrics_dir / "resamples.csv").exists()
    assert (metrics_dir / "tuning_svm.csv").exists()

    payload = json.loads((metrics_dir / METRICS_JSON_PATH.name).read_text(encoding="utf-8"))
    assert payload["models"]["gbm"]["n_configurations"] == 4
    assert payload["models"]["gbm"]["n_fits"] == 4 * small_plan.n_resamples
    assert payload["resampling"]["folds"] == small_plan.folds

    for name in ("roc_curves.png", "resamples_box.png", "cm_rf.png", "importance_gbm_baseline.png"):
        assert (tmp_path / "plots" / name).exists()
    for family in FAMILIES:
        assert (tmp_path / "models" / f"{family}_tuned_model.joblib").exists()


def test_workflow_logs_one_mlflow_run_per_family(cells_df, small_plan, tmp_path):
    """With tracking on, every tuned family becomes one MLflow run with its model logged."""

    import mlflow  # Tracking client, only needed here

    from cellseg.config import MLFLOW_EXPERIMENT_NAME  # Experiment the workflow logs to
    from cellseg.models import GBM, RF  # Tree families (the serialization-sensitive ones)

    tracking_uri = f"sqlite:///{(tmp_path / 'mlflow.db').as_posix()}"  # Throwaway local store

    run_workflow(
        cells_df,
        families=[GBM, RF],
        plan=small_plan,
        search_spaces={
            "gbm": SearchSpace({"max_depth": [1], "n_estimators": [20], "learning_rate": [0.1], "min_samples_leaf": [5]}),
            "rf": SearchSpace({"max_features": [2, 3], "n_estimators": [20]}),
        },
        seed=21,
        baseline_params=None,
        model_dir=tmp_path / "models",
        plots_dir=tmp_path / "plots",
        metrics_dir=tmp_path / "metrics",
        track_mlflow=True,
        tracking_uri=tracking_uri,
        artifact_location=(tmp_path / "mlartifacts").as_uri(),
    )

    mlflow.set_tracking_uri(tracking_uri)
    runs = mlflow.search_runs(experiment_names=[MLFLOW_EXPERIMENT_NAME])

    assert sorted(runs["tags.mlflow.runName"]) == ["gbm_tuned", "rf_tuned"]  # One run per family
    assert runs["metrics.test_roc_auc"].notna().all()  # Test metrics logged

    by_family = runs.set_index("params.model_family")
    assert by_family.loc["gbm", "params.best_max_depth"] == "1"  # Params are stored as strings
    assert by_family.loc["rf", "params.best_max_features"] in {"2", "3"}
    assert (tmp_path / "mlartifacts").exists()  # Plots, metrics, and models went to the given root
