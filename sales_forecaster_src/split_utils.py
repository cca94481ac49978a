# sales_forecaster_src/split_utils.py

import logging
from dataclasses import dataclass
from typing import Sequence, Tuple, Union

import pandas as pd

from .exceptions import RangeError

logger = logging.getLogger(__name__)

PeriodLike = Union[str, pd.Period, pd.Timestamp]


def _to_period(value: PeriodLike) -> pd.Period:
    try:
        return pd.Period(value, freq="M")
    except (ValueError, TypeError) as e:
        raise RangeError(f"Cannot interpret {value!r} as a month") from e


@dataclass(frozen=True)
class Window:
    """Inclusive monthly range [start, end] over a series."""

    start: pd.Period
    end: pd.Period

    def __post_init__(self):
        object.__setattr__(self, "start", _to_period(self.start))
        object.__setattr__(self, "end", _to_period(self.end))
        if self.start > self.end:
            raise RangeError(f"Window start {self.start} is after its end {self.end}")

    @classmethod
    def coerce(cls, value: Union["Window", Sequence[PeriodLike]]) -> "Window":
        """Accept a Window or a (start, end) pair."""
        if isinstance(value, Window):
            return value
        try:
            start, end = value
        except (TypeError, ValueError) as e:
            raise RangeError(f"Expected a (start, end) pair, got {value!r}") from e
        return cls(start, end)

    @property
    def periods(self) -> pd.PeriodIndex:
        return pd.period_range(start=self.start, end=self.end, freq="M")

    def __len__(self) -> int:
        return len(self.periods)

    def __str__(self) -> str:
        return f"{self.start}:{self.end}"


def split_series(series: pd.Series,
                 train: Union[Window, Sequence[PeriodLike]],
                 test: Union[Window, Sequence[PeriodLike]]) -> Tuple[pd.Series, pd.Series]:
    """
    Partition a monthly series into a training window and the held-out window after it.

    Parameters
    ----------
    series : pd.Series
        Monthly series with a PeriodIndex
    train, test : Window or (start, end)
        Inclusive month ranges. The test window must start the month after the
        training window ends.

    Returns
    -------
    Tuple[pd.Series, pd.Series]
        (train_series, test_series), copies of the requested slices

    Raises
    ------
    RangeError
        If a window is reversed, falls outside the series span, the windows
        overlap, or the test window does not immediately follow training
    """
    train_w = Window.coerce(train)
    test_w = Window.coerce(test)

    first, last = series.index[0], series.index[-1]
    for label, w in (("train", train_w), ("test", test_w)):
        if w.start < first or w.end > last:
            raise RangeError(f"{label} window {w} falls outside the series span {first}:{last}")

    if test_w.start <= train_w.end and train_w.start <= test_w.end:
        raise RangeError(f"train window {train_w} overlaps test window {test_w}")
    if test_w.start != train_w.end + 1:
        raise RangeError(f"test window {test_w} must start the month after train window {train_w} ends")

    y_train = series.loc[train_w.start:train_w.end].copy()
    y_test = series.loc[test_w.start:test_w.end].copy()
    logger.info("Split series: train %s (%d obs), test %s (%d obs)",
                train_w, len(y_train), test_w, len(y_test))
    return y_train, y_test


def windows_from_holdout(series: pd.Series, test_periods: int) -> Tuple[Window, Window]:
    """
    Windows holding out the last `test_periods` observations.

    Raises
    ------
    RangeError
        If fewer than one training observation would remain
    """
    n = len(series)
    if test_periods < 1 or test_periods >= n:
        raise RangeError(f"test_periods must be between 1 and {n - 1}, got {test_periods}")
    idx = series.index
    return Window(idx[0], idx[n - test_periods - 1]), Window(idx[n - test_periods], idx[-1])
