# sales_forecaster_src/transform_utils.py

import logging
from typing import Tuple, Union

import numpy as np
import pandas as pd
from scipy import optimize, special, stats

from .exceptions import DomainError, InsufficientDataError

logger = logging.getLogger(__name__)

ArrayLike = Union[pd.Series, np.ndarray, list]

BOXCOX_BOUNDS: Tuple[float, float] = (-1.0, 2.0)


def _require_positive(x: np.ndarray, what: str) -> None:
    if x.size == 0:
        raise InsufficientDataError(f"{what} needs at least one observation", required=1, available=0)
    if not np.all(np.isfinite(x)) or np.any(x <= 0):
        raise DomainError(f"{what} is defined only for strictly positive values")


def boxcox_transform(x: ArrayLike, lam: float) -> ArrayLike:
    """
    Apply the Box-Cox transform (x^lam - 1) / lam, or ln(x) when lam == 0.

    Parameters
    ----------
    x : ArrayLike
        Strictly positive values. A Series keeps its index and name.
    lam : float
        Transform parameter

    Returns
    -------
    ArrayLike
        Transformed values, same container type as a Series input, ndarray otherwise

    Raises
    ------
    DomainError
        If any value is zero, negative or non-finite
    """
    arr = np.asarray(x, dtype=float)
    _require_positive(arr, "Box-Cox transform")
    out = special.boxcox(arr, lam)
    if isinstance(x, pd.Series):
        return pd.Series(out, index=x.index, name=x.name)
    return out


def inv_boxcox_transform(y: ArrayLike, lam: float) -> ArrayLike:
    """
    Invert the Box-Cox transform: (lam * y + 1)^(1 / lam), or exp(y) when lam == 0.

    Values whose back-transform is undefined (lam * y + 1 <= 0) come back as NaN.
    """
    arr = np.asarray(y, dtype=float)
    out = special.inv_boxcox(arr, lam)
    if isinstance(y, pd.Series):
        return pd.Series(out, index=y.index, name=y.name)
    return out


def _guerrero_cv(lam: float, x: np.ndarray, period: int) -> float:
    """Coefficient of variation of sd / mean^(1 - lam) across consecutive subseries."""
    n_sub = len(x) // period
    tail = x[len(x) - n_sub * period:]
    mat = tail.reshape(n_sub, period)
    means = mat.mean(axis=1)
    sds = mat.std(axis=1, ddof=1)
    ratio = sds / means ** (1.0 - lam)
    return float(np.std(ratio, ddof=1) / np.mean(ratio))


def boxcox_lambda(series: ArrayLike,
                  lower: float = BOXCOX_BOUNDS[0],
                  upper: float = BOXCOX_BOUNDS[1],
                  method: str = "loglik",
                  period: int = 12) -> float:
    """
    Choose a variance-stabilising Box-Cox parameter within [lower, upper].

    Parameters
    ----------
    series : ArrayLike
        Strictly positive observations
    lower, upper : float
        Search bounds, conventionally [-1, 2]
    method : str, default="loglik"
        'loglik' maximises the Box-Cox profile log-likelihood;
        'guerrero' minimises the coefficient of variation of subseries
        sd / mean^(1 - lambda) (Guerrero, 1993)
    period : int, default=12
        Subseries length for the Guerrero method

    Returns
    -------
    float
        Selected lambda

    Raises
    ------
    DomainError
        If any value is not strictly positive
    InsufficientDataError
        If the Guerrero method has fewer than two complete subseries
    """
    x = np.asarray(series, dtype=float)
    _require_positive(x, "Box-Cox lambda estimation")
    if lower >= upper:
        raise ValueError(f"lower bound {lower} must be below upper bound {upper}")

    if method == "loglik":
        objective = lambda lam: -float(stats.boxcox_llf(lam, x))
    elif method == "guerrero":
        period = max(2, int(period))
        if len(x) < 2 * period:
            raise InsufficientDataError(
                f"Guerrero method needs two subseries of length {period}",
                required=2 * period, available=len(x),
            )
        objective = lambda lam: _guerrero_cv(lam, x, period)
    else:
        raise ValueError(f"Unknown Box-Cox lambda method '{method}'. Use 'loglik' or 'guerrero'.")

    res = optimize.minimize_scalar(objective, bounds=(lower, upper), method="bounded")
    lam = float(res.x)
    logger.debug("Box-Cox lambda (%s) = %.4f", method, lam)
    return lam


def difference(series: pd.Series, lag: int = 1) -> pd.Series:
    """
    Lagged difference value[t] - value[t - lag], dropping the first `lag` observations.

    Raises
    ------
    InsufficientDataError
        If the series has no more than `lag` observations
    """
    if lag < 1:
        raise ValueError("lag must be a positive integer")
    s = pd.Series(series)
    if len(s) <= lag:
        raise InsufficientDataError(
            f"Differencing at lag {lag} needs more than {lag} observations",
            required=lag + 1, available=len(s),
        )
    return s.diff(lag).iloc[lag:]


def seasonal_difference(series: pd.Series, period: int = 12) -> pd.Series:
    """
    Seasonal difference value[t] - value[t - period].

    Requires at least two full seasons so that a full season of differences remains.

    Raises
    ------
    InsufficientDataError
        If fewer than 2 * period observations are available
    """
    s = pd.Series(series)
    if len(s) < 2 * period:
        raise InsufficientDataError(
            f"Seasonal differencing needs two full seasons ({2 * period} observations)",
            required=2 * period, available=len(s),
        )
    return difference(s, lag=period)


def apply_differencing(series: pd.Series, d: int = 0, D: int = 0, period: int = 12) -> pd.Series:
    """Apply D seasonal differences followed by d first differences."""
    out = pd.Series(series)
    for _ in range(D):
        out = seasonal_difference(out, period)
    for _ in range(d):
        out = difference(out, 1)
    return out


def get_transform_description(d: int, D: int, period: int = 12) -> str:
    """
    Get a human-readable name for a differencing combination.

    Examples
    --------
    >>> get_transform_description(1, 1)
    'first + seasonal(12) difference'
    """
    if d == 0 and D == 0:
        return "level"
    parts = []
    if d:
        parts.append("first" if d == 1 else f"first x{d}")
    if D:
        parts.append(f"seasonal({period})")
    return " + ".join(parts) + " difference"
