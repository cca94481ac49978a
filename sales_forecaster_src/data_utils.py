# sales_forecaster_src/data_utils.py

import logging
from pathlib import Path
from typing import Iterable, Optional, Union

import numpy as np
import pandas as pd

from .exceptions import DataLoadError

logger = logging.getLogger(__name__)


def make_monthly_series(values: Iterable[float],
                        start: Union[str, pd.Period] = "2017-01",
                        name: str = "amount") -> pd.Series:
    """
    Build a monthly series with a contiguous PeriodIndex.

    Parameters
    ----------
    values : Iterable[float]
        Observations in chronological order, one per month
    start : Union[str, pd.Period], default="2017-01"
        Period of the first observation
    name : str, default="amount"
        Series name

    Returns
    -------
    pd.Series
        Float series indexed by a monthly PeriodIndex
    """
    arr = np.asarray(list(values), dtype=float)
    index = pd.period_range(start=pd.Period(start, freq="M"), periods=len(arr), freq="M")
    return pd.Series(arr, index=index, name=name)


def validate_monthly_series(series: pd.Series) -> pd.Series:
    """
    Check that a series is a contiguous, gap-free monthly series of finite values.

    Returns the series with its index coerced to a monthly PeriodIndex.

    Raises
    ------
    DataLoadError
        On an empty series, non-finite values, duplicate months or gaps
    """
    if series.empty:
        raise DataLoadError("Series is empty")

    index = series.index
    if isinstance(index, pd.DatetimeIndex):
        index = index.to_period("M")
    elif not isinstance(index, pd.PeriodIndex):
        raise DataLoadError("Series index must be a DatetimeIndex or PeriodIndex")
    elif index.freqstr is None or not index.freqstr.upper().startswith("M"):
        index = index.asfreq("M")

    values = pd.to_numeric(series, errors="coerce").to_numpy(dtype=float)
    if not np.all(np.isfinite(values)):
        bad = [str(p) for p, v in zip(index, values) if not np.isfinite(v)]
        raise DataLoadError(f"Series contains missing or non-numeric values at {bad[:5]}")

    if index.has_duplicates:
        dupes = sorted({str(p) for p in index[index.duplicated()]})
        raise DataLoadError(f"Series contains duplicate months: {dupes[:5]}")

    expected = pd.period_range(start=index[0], periods=len(index), freq="M")
    if not index.equals(expected):
        raise DataLoadError(
            f"Series is not contiguous monthly data from {index[0]} "
            f"(expected {expected[-1]} as last period, found {index[-1]})"
        )

    if (values < 0).any():
        logger.warning("Series contains %d negative values; multiplicative models will be excluded",
                       int((values < 0).sum()))

    return pd.Series(values, index=expected, name=series.name)


def load_sales_series_csv(series_path: Path,
                          value_column: Optional[str] = None,
                          date_column: Optional[str] = None,
                          start: Union[str, pd.Period] = "2017-01") -> pd.Series:
    """
    Load a monthly transaction-amount series from a CSV file.

    The file holds one row per month in chronological order. Either a date
    column is named (parsed to monthly periods) or the rows are taken as
    consecutive months beginning at `start`.

    Parameters
    ----------
    series_path : Path
        CSV file to read
    value_column : Optional[str]
        Column holding the amounts; defaults to the only (or first) numeric column
    date_column : Optional[str]
        Column holding dates such as '2017-01' or '2017-01-31'
    start : Union[str, pd.Period], default="2017-01"
        First period when no date column is given

    Returns
    -------
    pd.Series
        Validated monthly series with a PeriodIndex

    Raises
    ------
    DataLoadError
        If the file is missing, the columns cannot be found, or the rows do not
        form a contiguous numeric monthly series
    """
    series_path = Path(series_path)
    if not series_path.is_file():
        raise DataLoadError(f"Series CSV not found: {series_path}")

    logger.info("Loading sales series from: %s", series_path)
    try:
        df = pd.read_csv(series_path)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise DataLoadError(f"Could not parse {series_path}: {e}") from e

    if df.empty:
        raise DataLoadError(f"No rows found in {series_path}")

    if value_column is None:
        candidates = [c for c in df.columns if c != date_column
                      and pd.to_numeric(df[c], errors="coerce").notna().all()]
        if not candidates:
            raise DataLoadError(f"No fully numeric column found in {series_path}")
        value_column = candidates[0]
        if len(candidates) > 1:
            logger.info("Several numeric columns found; using '%s'", value_column)
    elif value_column not in df.columns:
        raise DataLoadError(f"Column '{value_column}' not found in {series_path}")

    values = pd.to_numeric(df[value_column], errors="coerce")

    if date_column is not None:
        if date_column not in df.columns:
            raise DataLoadError(f"Date column '{date_column}' not found in {series_path}")
        dates = pd.to_datetime(df[date_column], errors="coerce")
        if dates.isna().any():
            raise DataLoadError(f"Unparseable dates in column '{date_column}'")
        index = pd.DatetimeIndex(dates).to_period("M")
    else:
        index = pd.period_range(start=pd.Period(start, freq="M"), periods=len(df), freq="M")

    series = pd.Series(values.to_numpy(), index=index, name=str(value_column))
    series = validate_monthly_series(series)
    logger.info("Loaded %d monthly observations (%s to %s)", len(series), series.index[0], series.index[-1])
    return series


def to_timestamp_index(series: pd.Series) -> pd.Series:
    """Return a copy indexed by month-start timestamps with an explicit 'MS' frequency."""
    out = series.copy()
    index = out.index
    if not isinstance(index, pd.PeriodIndex):
        index = pd.DatetimeIndex(index).to_period("M")
    out.index = pd.DatetimeIndex(index.to_timestamp(how="start"), freq="MS")
    return out


def future_periods(series: pd.Series, steps: int) -> pd.PeriodIndex:
    """Monthly periods following the last observation of `series`."""
    last = series.index[-1]
    if not isinstance(last, pd.Period):
        last = pd.Period(last, freq="M")
    return pd.period_range(start=last + 1, periods=steps, freq="M")
