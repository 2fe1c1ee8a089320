"""scripts.run_pipeline

Notes (what this script does)
- Provides a single, top-level entrypoint to run the end-to-end workflow
  (Data Acquisition -> EDA -> Model Tuning/Evaluation/Comparison) from a clean environment.
- This script orchestrates the existing module CLIs (data_ingest, eda, train) as child processes
  so each stage behaves exactly as when it is run on its own.
- Outputs (datasets, plots, metrics, models) are written to the same project folders used elsewhere:
    data/raw, data/processed, artifacts/plots, artifacts/metrics, models

How to run (from project root)
    python scripts/run_pipeline.py

Optional flags
    python scripts/run_pipeline.py --skip-eda
    python scripts/run_pipeline.py --skip-train
    python scripts/run_pipeline.py --only ingest
"""

# Import argparse to parse CLI flags in a standard way
import argparse  # Command-line interface

# Import os to extend PYTHONPATH for the child processes
import os  # Environment handling

# Import subprocess to call the existing module entrypoints reliably
import subprocess  # Run child processes

# Import sys to forward the current interpreter and propagate exit codes
import sys  # Python interpreter + exit

# Import time to capture basic runtime durations for logs
import time  # Simple timing

# Import Path to reliably build OS-independent paths
from pathlib import Path  # File system paths

STAGES = ("ingest", "eda", "train")  # Execution order


def _run(cmd: list[str], cwd: Path) -> None:
    """Run a command, stream logs, and fail fast on errors."""

    # Print the command as a reproducibility aid for logs and debugging
    print(f"\n[RUN] {' '.join(cmd)}")  # Human-readable command

    # Make the src/ layout importable without requiring an editable install
    env = dict(os.environ)  # Inherit the caller's environment
    src_dir = str(cwd / "src")
    env["PYTHONPATH"] = os.pathsep.join(p for p in (src_dir, env.get("PYTHONPATH", "")) if p)

    # Run the command as a child process, inheriting stdout/stderr
    completed = subprocess.run(cmd, cwd=str(cwd), env=env)  # Execute

    # If the subprocess failed, stop the pipeline immediately
    if completed.returncode != 0:  # Non-zero means failure
        raise RuntimeError(f"Command failed with exit code {completed.returncode}: {cmd}")  # Fail fast


def parse_args(argv=None) -> argparse.Namespace:
    """Parse CLI arguments for pipeline control."""

    # Create an argument parser with a short description
    parser = argparse.ArgumentParser(description="Run the cell segmentation model-selection pipeline.")  # CLI

    # Allow running only one stage when debugging
    parser.add_argument(
        "--only",
        choices=list(STAGES),
        default=None,
        help="Run only a single stage (ingest | eda | train).",
    )  # Stage selector

    # Provide convenience switches to skip stages
    parser.add_argument("--skip-eda", action="store_true", help="Skip the EDA stage.")  # Skip EDA
    parser.add_argument("--skip-train", action="store_true", help="Skip the training stage.")  # Skip train

    # Return parsed arguments
    return parser.parse_args(argv)  # Namespace


def selected_stages(args: argparse.Namespace) -> list[str]:
    """Stages to execute, in order, for the parsed flags."""

    if args.only:  # A single stage wins over skip flags
        return [args.only]
    skipped = {"eda"} if args.skip_eda else set()
    if args.skip_train:
        skipped.add("train")
    return [s for s in STAGES if s not in skipped]


def main() -> None:
    """Main orchestration entrypoint."""

    # Capture script start time for a simple end-to-end duration
    t0 = time.time()  # Start timer

    # Resolve the project root as the parent folder of scripts/
    project_root = Path(__file__).resolve().parents[1]  # Project root

    # Parse CLI args
    args = parse_args()  # User options

    # Build commands using the current interpreter to guarantee venv correctness
    py = sys.executable  # Current python interpreter (should be .venv)

    # Define stage commands using -m flag to run modules as packages (enables relative imports)
    commands = {
        "ingest": [py, "-m", "cellseg.data_ingest"],  # Data acquisition
        "eda": [py, "-m", "cellseg.eda"],  # Exploratory analysis
        "train": [py, "-m", "cellseg.train"],  # Tuning + evaluation + comparison
    }

    # Run the requested stages in order
    for stage in selected_stages(args):
        _run(commands[stage], project_root)

    # Print end-to-end duration for a quick success summary
    dt = time.time() - t0  # Elapsed time
    print(f"\nPipeline completed successfully in {dt:.2f} seconds.")  # Success message

    # Print key output locations to help the user find artifacts quickly
    print("Outputs:")  # Header
    print("  data/raw/ and data/processed/")  # Data folders
    print("  artifacts/plots/ and artifacts/metrics/")  # Artifact folders
    print("  models/")  # Model folder


if __name__ == "__main__":
    # Execute the orchestrator when called as a script
    main()  # Run pipeline
