# sales_forecaster_src/metrics_utils.py

import math
import numpy as np
import pandas as pd
from scipy import stats
from typing import Dict, Optional, Tuple, Union, List
import logging

logger = logging.getLogger(__name__)

ArrayLike = Union[List[float], np.ndarray, pd.Series]

ACCURACY_COLUMNS = ["ME", "RMSE", "MAE", "MPE", "MAPE", "MASE", "ACF1", "TheilU"]


def to_1d_array(x: ArrayLike) -> np.ndarray:
    """
    Convert input to 1D numpy array, filtering out non-finite values.

    Parameters
    ----------
    x : ArrayLike
        Input data to convert

    Returns
    -------
    np.ndarray
        1D array containing only finite values
    """
    arr = np.asarray(x, dtype=float).ravel()
    return arr[np.isfinite(arr)]


def align_actual_predicted(actual: ArrayLike, predicted: ArrayLike) -> Tuple[np.ndarray, np.ndarray]:
    """
    Pair actual and predicted values period by period.

    Two Series are aligned on their common index; anything else is paired
    positionally and must have equal length. Pairs where either side is
    non-finite are dropped.

    Raises
    ------
    ValueError
        If positional inputs have different lengths
    """
    if isinstance(actual, pd.Series) and isinstance(predicted, pd.Series):
        common = actual.index.intersection(predicted.index)
        a = actual.loc[common].to_numpy(dtype=float)
        p = predicted.loc[common].to_numpy(dtype=float)
    else:
        a = np.asarray(actual, dtype=float).ravel()
        p = np.asarray(predicted, dtype=float).ravel()
        if len(a) != len(p):
            raise ValueError(f"actual has {len(a)} values but predicted has {len(p)}")
    mask = np.isfinite(a) & np.isfinite(p)
    return a[mask], p[mask]


def me(actual: ArrayLike, predicted: ArrayLike) -> float:
    """Mean error, actual minus predicted."""
    a, p = align_actual_predicted(actual, predicted)
    if a.size == 0:
        return float("nan")
    return float(np.mean(a - p))


def rmse(actual: ArrayLike, predicted: ArrayLike) -> float:
    """
    Calculate Root Mean Square Error.

    Parameters
    ----------
    actual : ArrayLike
        True values
    predicted : ArrayLike
        Predicted values

    Returns
    -------
    float
        Root mean square error, or NaN if no valid pairs
    """
    a, p = align_actual_predicted(actual, predicted)
    if a.size == 0:
        return float("nan")
    return float(np.sqrt(np.mean((a - p) ** 2)))


def mae(actual: ArrayLike, predicted: ArrayLike) -> float:
    """Mean absolute error, or NaN if no valid pairs."""
    a, p = align_actual_predicted(actual, predicted)
    if a.size == 0:
        return float("nan")
    return float(np.mean(np.abs(a - p)))


def mpe(actual: ArrayLike, predicted: ArrayLike) -> float:
    """Mean percentage error in percent; periods with a zero actual are skipped."""
    a, p = align_actual_predicted(actual, predicted)
    nz = a != 0
    if not np.any(nz):
        return float("nan")
    return float(np.mean((a[nz] - p[nz]) / a[nz]) * 100.0)


def mape(actual: ArrayLike, predicted: ArrayLike) -> float:
    """Mean absolute percentage error in percent; periods with a zero actual are skipped."""
    a, p = align_actual_predicted(actual, predicted)
    nz = a != 0
    if not np.any(nz):
        return float("nan")
    return float(np.mean(np.abs((a[nz] - p[nz]) / a[nz])) * 100.0)


def mase(actual: ArrayLike,
         predicted: ArrayLike,
         train: ArrayLike,
         m: int = 12) -> float:
    """
    Calculate Mean Absolute Scaled Error.

    MASE scales the MAE by the in-sample MAE of the seasonal naive forecast on
    the training data.

    Parameters
    ----------
    actual : ArrayLike
        True values
    predicted : ArrayLike
        Predicted values
    train : ArrayLike
        Training data for the scaling reference
    m : int, default=12
        Seasonal period of the naive reference (12 for monthly data)

    Returns
    -------
    float
        MASE value, or NaN if the training data is too short or constant

    Notes
    -----
    Values < 1 indicate the forecast beats the in-sample seasonal naive forecast.
    """
    num = mae(actual, predicted)
    tr = to_1d_array(train)
    if len(tr) <= m or not np.isfinite(num):
        return float("nan")
    denom = np.mean(np.abs(tr[m:] - tr[:-m]))
    if not np.isfinite(denom) or denom <= 0.0:
        return float("nan")
    return float(num / denom)


def acf1(actual: ArrayLike, predicted: ArrayLike) -> float:
    """Lag-1 autocorrelation of the errors."""
    a, p = align_actual_predicted(actual, predicted)
    e = a - p
    if e.size < 3:
        return float("nan")
    e = e - e.mean()
    denom = float(np.sum(e * e))
    if denom <= 0.0:
        return float("nan")
    return float(np.sum(e[1:] * e[:-1]) / denom)


def theil_u2(actual: ArrayLike, predicted: ArrayLike) -> float:
    """
    Theil's U2: relative-change forecast error against the no-change forecast.

    Values < 1 indicate the forecast is better than repeating the previous
    actual value.
    """
    a, p = align_actual_predicted(actual, predicted)
    if a.size < 2:
        return float("nan")
    prev = a[:-1]
    if np.any(prev == 0):
        return float("nan")
    fpe = (p[1:] - a[1:]) / prev
    ape = (a[1:] - prev) / prev
    denom = math.sqrt(float(np.sum(ape ** 2)))
    if denom == 0.0:
        return float("nan")
    return float(math.sqrt(float(np.sum(fpe ** 2))) / denom)


def accuracy(actual: ArrayLike,
             predicted: ArrayLike,
             train: Optional[ArrayLike] = None,
             m: int = 12,
             out_of_sample: bool = True) -> Dict[str, float]:
    """
    Compute the standard set of forecast accuracy measures.

    Parameters
    ----------
    actual : ArrayLike
        True values
    predicted : ArrayLike
        Forecasts or fitted values, aligned period by period with `actual`
    train : ArrayLike, optional
        Training data for MASE scaling; for in-sample accuracy pass the
        training series itself
    m : int, default=12
        Seasonal period for MASE
    out_of_sample : bool, default=True
        Include Theil's U (only meaningful for held-out forecasts)

    Returns
    -------
    Dict[str, float]
        ME, RMSE, MAE, MPE, MAPE, MASE, ACF1 and, out of sample, TheilU
    """
    res = {
        "ME": me(actual, predicted),
        "RMSE": rmse(actual, predicted),
        "MAE": mae(actual, predicted),
        "MPE": mpe(actual, predicted),
        "MAPE": mape(actual, predicted),
        "MASE": mase(actual, predicted, train, m=m) if train is not None else float("nan"),
        "ACF1": acf1(actual, predicted),
    }
    if out_of_sample:
        res["TheilU"] = theil_u2(actual, predicted)
    return res


def dm_newey_west_var(d: np.ndarray, h: int) -> float:
    """
    Calculate Newey-West variance estimator for the Diebold-Mariano test.

    Parameters
    ----------
    d : np.ndarray
        Array of loss differentials
    h : int
        Forecast horizon

    Returns
    -------
    float
        Variance estimate of the mean differential, or NaN if computation fails
    """
    n = len(d)
    if n < 3:
        return float("nan")

    dbar = float(np.mean(d))
    e = d - dbar
    L = max(0, int(h) - 1)

    # Auto-covariances
    gamma0 = float(np.mean(e * e))
    s_hat = gamma0
    for k in range(1, L + 1):
        cov = float(np.mean(e[k:] * e[:-k]))
        w = 1.0 - (k / (L + 1.0))
        s_hat += 2.0 * w * cov

    var_dbar = s_hat / n
    return float(var_dbar) if var_dbar > 0.0 else float("nan")


def diebold_mariano(actual: ArrayLike,
                    predicted1: ArrayLike,
                    predicted2: ArrayLike,
                    h: int = 1, power: int = 2) -> Tuple[float, float]:
    """
    Perform the Diebold-Mariano test for equal predictive accuracy.

    Parameters
    ----------
    actual : ArrayLike
        True values
    predicted1, predicted2 : ArrayLike
        Forecasts from the two competing candidates
    h : int, default=1
        Forecast horizon for the variance adjustment
    power : int, default=2
        Power for the loss function (1=absolute, 2=squared)

    Returns
    -------
    Tuple[float, float]
        (test_statistic, p_value), both NaN if the test cannot be performed

    Notes
    -----
    A negative statistic means candidate 1 has the lower loss.
    """
    a1, p1 = align_actual_predicted(actual, predicted1)
    a2, p2 = align_actual_predicted(actual, predicted2)
    n = min(len(a1), len(a2))
    if n < 3:
        return float("nan"), float("nan")

    e1 = a1[:n] - p1[:n]
    e2 = a2[:n] - p2[:n]
    if power == 1:
        d = np.abs(e1) - np.abs(e2)
    else:
        d = e1 ** 2 - e2 ** 2

    dbar = float(np.mean(d))
    var_dbar = dm_newey_west_var(d, h=h)
    if not np.isfinite(var_dbar) or var_dbar <= 0.0:
        return float("nan"), float("nan")

    dm_t = dbar / math.sqrt(var_dbar)
    p = 2.0 * float(stats.norm.sf(abs(dm_t)))
    return float(dm_t), float(min(max(p, 0.0), 1.0))
