"""cellseg.config

Notes (what this module does)
- Centralizes constants used across ingestion, partitioning, tuning, evaluation, and comparison.
- Keeps the dataset URL, column names, class levels, seeds, resampling plan, and grids in one place
  for reproducibility.
- A handful of values can be overridden from the environment (worker count, data location, MLflow).
"""

# Import os to read environment overrides
import os  # Environment access

# Import Path for OS-independent file path handling
from pathlib import Path  # Standard library utility for paths

# Define the project root as the directory that contains this file's grandparent (repo/src/cellseg)
PROJECT_ROOT = Path(__file__).resolve().parents[2]  # Resolve absolute path for reliability

# -----------------------------
# Dataset configuration
# -----------------------------

# Rdatasets mirror of the cell segmentation data (Hill et al., 2007), 2019 cells
DATASET_URL = os.getenv(
    "CELLSEG_DATA_URL",
    "https://vincentarelbundock.github.io/Rdatasets/csv/modeldata/cells.csv",
)  # Public dataset endpoint

# Columns that identify a cell or the authors' own split; never used as features
ID_COLUMNS = ["rownames", "cell", "case"]  # Dropped during cleaning

# Define the column that represents the label
TARGET_COL = "class"  # Output label column name

# The two segmentation outcomes; the first level is the event of interest
POSITIVE_CLASS = "PS"  # Poorly-segmented
NEGATIVE_CLASS = "WS"  # Well-segmented
CLASS_LEVELS = (POSITIVE_CLASS, NEGATIVE_CLASS)  # Ordered levels

# Human-readable names for reports and plots
CLASS_NAMES = {POSITIVE_CLASS: "Poorly-segmented", NEGATIVE_CLASS: "Well-segmented"}

# -----------------------------
# Train/test split configuration
# -----------------------------

# Fraction of each class placed in the training subset
TRAIN_FRACTION = 0.50  # Half of the cells are used for training

# Random seed used for the partition and the resampling plan
RANDOM_STATE = 1951  # Seed for reproducibility

# -----------------------------
# Resampling configuration
# -----------------------------

CV_FOLDS = 10  # Folds per repeat
CV_REPEATS = 5  # Repeats of k-fold cross-validation
CV_METRIC = "roc_auc"  # Metric used to pick the best configuration

# Size of the worker pool used to fit folds in parallel
N_JOBS = int(os.getenv("CELLSEG_N_JOBS", "4"))  # Four workers by default

# -----------------------------
# Model configuration
# -----------------------------

# Fixed-parameter boosted-tree baseline fit before any tuning
GBM_BASELINE_PARAMS = {
    "n_estimators": 2000,  # Boosting iterations
    "max_depth": 7,  # Interaction depth
    "learning_rate": 0.01,  # Shrinkage
    "min_samples_leaf": 10,  # Minimum observations per terminal node
}

# Boosted-tree search space: 4 depths x 10 tree counts x 2 rates x 1 leaf size = 80 configurations
GBM_PARAM_GRID = {
    "max_depth": [1, 2, 3, 4],  # Interaction depths
    "n_estimators": list(range(10, 101, 10)),  # 10 to 100 boosting iterations
    "learning_rate": [0.01, 0.1],  # Shrinkage values
    "min_samples_leaf": [20],  # Minimum observations per terminal node
}

# Number of cost values tried for the radial-basis SVM
SVM_TUNE_LENGTH = 9  # Costs 0.25 .. 64

# Fraction of rows sampled when estimating the RBF kernel width
SVM_SIGMA_FRACTION = 0.5  # Same default as kernlab's sigest

# Random forest settings
RF_N_ESTIMATORS = 500  # Number of trees
RF_TUNE_LENGTH = 3  # Number of mtry values tried

# -----------------------------
# Paths for artifacts and outputs
# -----------------------------

# Define where to store raw downloaded data
RAW_DATA_PATH = Path(
    os.getenv("CELLSEG_RAW_DATA_PATH", str(PROJECT_ROOT / "data" / "raw" / "cells.csv"))
)  # Stored as CSV for convenience

# Define where to store cleaned/processed data
PROCESSED_DATA_PATH = PROJECT_ROOT / "data" / "processed" / "cells_clean.csv"  # Cleaned dataset
PARTITION_PATH = PROJECT_ROOT / "data" / "processed" / "partition.json"  # Train/test row indices

# Define where to store models
MODEL_DIR = PROJECT_ROOT / "models"  # Folder containing serialized models
GBM_BASELINE_MODEL_PATH = MODEL_DIR / "gbm_baseline_model.joblib"  # Untuned boosted trees


def tuned_model_path(family: str) -> Path:
    """Where the tuned model of a family is serialized."""
    return MODEL_DIR / f"{family}_tuned_model.joblib"


# Define where to store plots
PLOTS_DIR = PROJECT_ROOT / "artifacts" / "plots"  # Folder for images

# Define where to store metrics and tables
METRICS_DIR = PROJECT_ROOT / "artifacts" / "metrics"  # Folder for metrics
MODEL_COMPARISON_PATH = METRICS_DIR / "model_comparison.csv"  # Test-set comparison table
METRICS_JSON_PATH = METRICS_DIR / "metrics.json"  # Full metrics dump as JSON
RESAMPLES_PATH = METRICS_DIR / "resamples.csv"  # Paired per-fold metrics
RESAMPLE_SUMMARY_PATH = METRICS_DIR / "resample_summary.csv"  # Distribution summaries
RESAMPLE_DIFFERENCES_PATH = METRICS_DIR / "resample_differences.csv"  # Pairwise differences

# -----------------------------
# Experiment tracking
# -----------------------------

MLFLOW_ENABLED = os.getenv("CELLSEG_MLFLOW", "1") != "0"  # Set CELLSEG_MLFLOW=0 to disable
MLFLOW_TRACKING_URI = os.getenv(
    "MLFLOW_TRACKING_URI", f"sqlite:///{(PROJECT_ROOT / 'mlflow.db').as_posix()}"
)  # Local SQLite store
MLFLOW_ARTIFACT_ROOT = (PROJECT_ROOT / "mlruns").as_uri()  # Where run artifacts are stored
MLFLOW_EXPERIMENT_NAME = "cell-segmentation-model-selection"  # Experiment grouping
