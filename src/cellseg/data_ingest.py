"""cellseg.data_ingest

Notes (what this script does)
- Downloads the cell segmentation dataset (Hill et al., 2007; 2019 cells, two classes PS/WS).
- Saves the raw dataset to data/raw for reproducibility and offline runs.
- Provides a load function used by training scripts.

Run (from project root):
    python -m cellseg.data_ingest
"""

# Import StringIO to treat downloaded text as a file-like object for pandas
from io import StringIO  # Allows pd.read_csv on in-memory strings

# Import Path for the optional cache location argument
from pathlib import Path  # File system paths

# Import typing for optional arguments
from typing import Optional  # Python 3.9 compatible hints

# Import requests to download the dataset over HTTP
import requests  # HTTP client

# Import pandas for CSV parsing into a DataFrame
import pandas as pd  # Data manipulation library

# Import project configuration (URL, output paths)
from .config import DATASET_URL, RAW_DATA_PATH  # Centralized constants

# Import the JSON logger used across the package
from .logging_config import setup_logging  # Structured logging

# Import helper to ensure folders exist
from .utils import ensure_dir  # Directory creation helper

logger = setup_logging().getChild("data_ingest")  # Module logger


def _normalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Lower-case column names so R-style (``Class``) and snake_case (``class``) exports agree."""

    # Rdatasets writes the row names as an unnamed first column in some exports
    df = df.rename(columns={"Unnamed: 0": "rownames"})  # Give it a stable name
    df.columns = [str(c).strip().lower() for c in df.columns]  # Normalized names
    return df  # Same data, predictable schema


def download_dataset(url: str = DATASET_URL) -> pd.DataFrame:
    """Download the dataset and return it as a pandas DataFrame."""

    logger.info("downloading dataset", extra={"url": url})  # Record the source

    # Make an HTTP GET request to download the dataset (timeout avoids hanging indefinitely)
    response = requests.get(url, timeout=30)  # Fetch dataset text

    # Raise an exception for HTTP errors (e.g., 404/500) so failures are visible early
    response.raise_for_status()  # Fail fast on network/HTTP issues

    # Parse the CSV content (the file carries its own header row)
    df = pd.read_csv(StringIO(response.text))  # Create DataFrame

    # Return the parsed DataFrame to the caller
    return _normalize_columns(df)  # Raw columns, normalized names


def save_raw_dataset(df: pd.DataFrame, path: Path = RAW_DATA_PATH) -> None:
    """Save the raw dataset to disk for reproducibility."""

    # Ensure the parent folder (data/raw) exists before writing
    ensure_dir(path.parent)  # Create directory tree if needed

    # Save the DataFrame as CSV (index=False prevents adding an extra column)
    df.to_csv(path, index=False)  # Persist raw data for later runs


def load_or_download(path: Optional[Path] = None, url: str = DATASET_URL) -> pd.DataFrame:
    """Load raw dataset from disk if present; otherwise download and save it."""

    path = Path(path) if path is not None else RAW_DATA_PATH  # Default cache location

    # If the raw dataset already exists locally, load it from disk
    if path.exists():  # Check local cache
        logger.info("loading cached dataset", extra={"path": str(path)})
        return _normalize_columns(pd.read_csv(path))  # Return cached raw dataset

    # Otherwise, download it
    df = download_dataset(url)  # Fetch from the internet

    # Save the raw dataset to disk for reproducibility
    save_raw_dataset(df, path)  # Cache locally

    # Return the downloaded DataFrame
    return df  # DataFrame ready for cleaning


if __name__ == "__main__":
    # Download (or load) the dataset
    df_raw = load_or_download()  # Acquire dataset

    # Print basic confirmation details (useful for logs and debugging)
    print("Dataset ready.")  # High-level confirmation
    print(f"Path: {RAW_DATA_PATH}")  # Where it is stored
    print(f"Shape: {df_raw.shape}")  # Expected ~ (2019, 59)
    print(df_raw.head(2))  # Preview first rows
