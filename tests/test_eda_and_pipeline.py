# Notes:
# - EDA helpers write their outputs; pipeline flags select the right stages.

import importlib.util
from pathlib import Path

import numpy as np
import pandas as pd

from cellseg.eda import highly_correlated_pairs, plot_class_distribution, save_tabular_eda
from cellseg.preprocess import clean_dataset

PROJECT_ROOT = Path(__file__).resolve().parents[1]


def _load_pipeline_script():
    spec = importlib.util.spec_from_file_location("run_pipeline", PROJECT_ROOT / "scripts" / "run_pipeline.py")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_class_distribution_and_tables(cells_df, tmp_path):
    df_clean = clean_dataset(cells_df)

    plot_class_distribution(df_clean, out_dir=tmp_path)
    save_tabular_eda(df_clean.drop(columns=["class"]), output_dir=tmp_path)

    assert (tmp_path / "class_distribution.png").exists()
    assert (tmp_path / "train_feature_summary.csv").exists()


def test_highly_correlated_pairs():
    rng = np.random.default_rng(0)
    a = rng.normal(size=200)
    X = pd.DataFrame({"a": a, "b": a * 2 + 0.01 * rng.normal(size=200), "c": rng.normal(size=200)})

    pairs = highly_correlated_pairs(X.corr(), threshold=0.9)
    assert len(pairs) == 1
    assert set(pairs.loc[0, ["feature_a", "feature_b"]]) == {"a", "b"}


def test_pipeline_stage_selection():
    pipeline = _load_pipeline_script()

    assert pipeline.selected_stages(pipeline.parse_args([])) == ["ingest", "eda", "train"]
    assert pipeline.selected_stages(pipeline.parse_args(["--skip-eda"])) == ["ingest", "train"]
    assert pipeline.selected_stages(pipeline.parse_args(["--skip-eda", "--skip-train"])) == ["ingest"]
    assert pipeline.selected_stages(pipeline.parse_args(["--only", "train"])) == ["train"]
