# sales_forecaster_src/file_utils.py

import pandas as pd
from pathlib import Path
from typing import Dict, Optional
import logging

logger = logging.getLogger(__name__)

OUTPUT_FILES = {
    "stationarity": "stationarity.csv",
    "evaluation": "evaluation.csv",
    "forecast": "forecast.csv",
    "deployment": "deployment_summary.csv",
}


def ensure_dir(path: Path) -> None:
    """
    Create directory if it doesn't exist, including all parent directories.

    Parameters
    ----------
    path : Path
        Directory path to create
    """
    path.mkdir(parents=True, exist_ok=True)


def resolve_path(path_str: str, base_dir: Path) -> Path:
    """
    Resolve a path string relative to a base directory if not absolute.

    Examples
    --------
    >>> resolve_path("data/file.csv", Path("/project"))
    PosixPath('/project/data/file.csv')
    >>> resolve_path("/absolute/path.csv", Path("/project"))
    PosixPath('/absolute/path.csv')
    """
    path = Path(path_str)
    return path if path.is_absolute() else (base_dir / path)


def write_frame_csv(df: pd.DataFrame, csv_path: Path, index: bool = True) -> Path:
    """
    Write a DataFrame to CSV, creating parent directories as needed.

    Parameters
    ----------
    df : pd.DataFrame
        Table to write
    csv_path : Path
        Destination file, overwritten if it exists
    index : bool, default=True
        Whether to write the index column

    Returns
    -------
    Path
        The path written
    """
    ensure_dir(csv_path.parent)
    df.to_csv(csv_path, index=index, encoding="utf-8")
    logger.info("Wrote %s (%d rows)", csv_path, len(df))
    return csv_path


def write_pipeline_outputs(output_dir: Path,
                           stationarity: Optional[pd.DataFrame] = None,
                           evaluation: Optional[pd.DataFrame] = None,
                           forecast: Optional[pd.DataFrame] = None,
                           deployment: Optional[pd.DataFrame] = None) -> Dict[str, Path]:
    """
    Write the run's result tables under `output_dir`.

    Tables passed as None are skipped.

    Returns
    -------
    Dict[str, Path]
        Paths written, keyed by table name
    """
    tables = {
        "stationarity": (stationarity, False),
        "evaluation": (evaluation, True),
        "forecast": (forecast, True),
        "deployment": (deployment, False),
    }
    written: Dict[str, Path] = {}
    for key, (df, index) in tables.items():
        if df is None:
            continue
        written[key] = write_frame_csv(df, output_dir / OUTPUT_FILES[key], index=index)
    return written
