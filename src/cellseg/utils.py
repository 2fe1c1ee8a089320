"""cellseg.utils

Notes (what this module does)
- Provides small, reusable helpers used across scripts (directory creation, JSON saving).
- Converts numpy scalars/arrays so metric payloads can be written as plain JSON.
"""

# Import json to write metrics/artifacts in a structured format
import json  # Standard library JSON utilities

# Import Path for filesystem path handling
from pathlib import Path  # OS-independent path utility

# Import numpy to recognise numpy scalars and arrays in payloads
import numpy as np  # Numerical computing


def ensure_dir(path: Path) -> None:
    """Create a directory if it does not already exist.

    Args:
        path: Directory path to create.
    """

    # Create the directory (and parents) if missing; do nothing if it exists
    path.mkdir(parents=True, exist_ok=True)  # Robust directory creation


def to_builtin(obj):
    """Recursively convert numpy types into JSON-serializable Python builtins."""

    if isinstance(obj, dict):  # Mappings: convert keys and values
        return {str(k): to_builtin(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):  # Sequences become lists
        return [to_builtin(v) for v in obj]
    if isinstance(obj, np.ndarray):  # Arrays become (nested) lists
        return [to_builtin(v) for v in obj.tolist()]
    if isinstance(obj, np.bool_):
        return bool(obj)
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, np.floating):
        value = float(obj)
        return None if np.isnan(value) else value  # JSON has no NaN
    if isinstance(obj, float) and np.isnan(obj):
        return None
    return obj


def save_json(obj: dict, path: Path) -> None:
    """Save a Python dictionary as pretty-printed JSON.

    Args:
        obj: Dictionary to save (numpy values are converted).
        path: File path where JSON will be written.
    """

    # Ensure the parent directory exists before writing the file
    ensure_dir(path.parent)  # Prevents 'No such file or directory' errors

    # Open the output path for writing (UTF-8 ensures cross-platform readability)
    with path.open("w", encoding="utf-8") as f:  # Context manager safely closes the file
        json.dump(to_builtin(obj), f, indent=2, sort_keys=True)  # Pretty print for easy reporting
