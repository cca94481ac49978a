# sales_forecaster_src/diagnostics_utils.py

"""
Stationarity and seasonality diagnostics.

Everything in this module is advisory: it reports statistics and p-values but
never changes which model the pipeline deploys. Where a yes/no answer is
needed, the caller passes a decision callback (see `decide_stationarity`).
"""

import logging
import warnings
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple, Union

import numpy as np
import pandas as pd
from scipy import signal
from statsmodels.stats.diagnostic import acorr_ljungbox
from statsmodels.tsa.seasonal import STL
from statsmodels.tsa.stattools import adfuller, kpss

from .exceptions import DomainError, InsufficientDataError
from .transform_utils import boxcox_lambda, difference, get_transform_description, seasonal_difference

logger = logging.getLogger(__name__)

MIN_TEST_OBS = 12
SEASONAL_STRENGTH_THRESHOLD = 0.64


def adf_test(series: Union[pd.Series, np.ndarray]) -> Tuple[float, float]:
    """
    Run the Augmented Dickey-Fuller (ADF) test for unit roots.

    Parameters
    ----------
    series : Union[pd.Series, np.ndarray]
        Input series. NaNs are dropped prior to testing.

    Returns
    -------
    Tuple[float, float]
        (test_statistic, p_value); both NaN when fewer than 12 observations remain

    Notes
    -----
    - ADF null hypothesis: the series has a unit root (non-stationary)
    - Lower p-values (< 0.05) suggest rejection of null (series is stationary)
    """
    s = pd.Series(series).dropna()
    if len(s) < MIN_TEST_OBS:
        return float("nan"), float("nan")
    res = adfuller(s.to_numpy(dtype=float), autolag="AIC")
    return float(res[0]), float(res[1])


def kpss_test(series: Union[pd.Series, np.ndarray], regression: str = "c") -> Tuple[float, float]:
    """
    Run the KPSS test for level (or trend) stationarity.

    Parameters
    ----------
    series : Union[pd.Series, np.ndarray]
        Input series. NaNs are dropped prior to testing.
    regression : str, default="c"
        'c' tests level stationarity, 'ct' trend stationarity

    Returns
    -------
    Tuple[float, float]
        (test_statistic, p_value); both NaN when fewer than 12 observations remain

    Notes
    -----
    - KPSS null hypothesis: the series is stationary
    - p-values come from an interpolation table and are clipped to [0.01, 0.10]
    """
    s = pd.Series(series).dropna()
    if len(s) < MIN_TEST_OBS:
        return float("nan"), float("nan")
    with warnings.catch_warnings():
        # p-values outside the lookup table are reported at the boundary
        warnings.simplefilter("ignore")
        stat, pval, _, _ = kpss(s.to_numpy(dtype=float), regression=regression, nlags="auto")
    return float(stat), float(pval)


@dataclass(frozen=True)
class StationarityResult:
    """Both stationarity tests applied to one transform of the series."""

    transform: str
    n: int
    kpss_stat: float
    kpss_pvalue: float
    adf_stat: float
    adf_pvalue: float
    alpha: float = 0.05

    @property
    def kpss_says_stationary(self) -> bool:
        """KPSS fails to reject its null of stationarity."""
        return bool(np.isfinite(self.kpss_pvalue) and self.kpss_pvalue >= self.alpha)

    @property
    def adf_says_stationary(self) -> bool:
        """ADF rejects its null of a unit root."""
        return bool(np.isfinite(self.adf_pvalue) and self.adf_pvalue < self.alpha)

    @property
    def tests_agree(self) -> bool:
        return self.kpss_says_stationary == self.adf_says_stationary

    def as_dict(self) -> Dict[str, object]:
        return {
            "transform": self.transform,
            "n": self.n,
            "kpss_stat": self.kpss_stat,
            "kpss_p": self.kpss_pvalue,
            "adf_stat": self.adf_stat,
            "adf_p": self.adf_pvalue,
            "kpss_says_stationary": self.kpss_says_stationary,
            "adf_says_stationary": self.adf_says_stationary,
        }


def check_stationarity(series: pd.Series, transform: str = "level", alpha: float = 0.05) -> StationarityResult:
    """Run KPSS and ADF on `series` and wrap the p-values without resolving disagreement."""
    s = pd.Series(series).dropna()
    kpss_stat, kpss_p = kpss_test(s)
    adf_stat, adf_p = adf_test(s)
    return StationarityResult(transform, len(s), kpss_stat, kpss_p, adf_stat, adf_p, alpha)


def stationarity_report(series: pd.Series, period: int = 12, alpha: float = 0.05) -> List[StationarityResult]:
    """
    Test the level, first difference, seasonal difference and both combined.

    Transforms the series is too short for are skipped with a log message.

    Returns
    -------
    List[StationarityResult]
        One result per transform, in the order listed above
    """
    results = [check_stationarity(series, get_transform_description(0, 0), alpha)]
    candidates = [
        (1, 0, lambda s: difference(s, 1)),
        (0, 1, lambda s: seasonal_difference(s, period)),
        (1, 1, lambda s: difference(seasonal_difference(s, period), 1)),
    ]
    for d, D, fn in candidates:
        label = get_transform_description(d, D, period)
        try:
            transformed = fn(series)
        except InsufficientDataError as e:
            logger.info("Skipping stationarity test on %s: %s", label, e)
            continue
        results.append(check_stationarity(transformed, label, alpha))

    for r in results:
        logger.info("Stationarity [%s]: KPSS p=%.3f (%s), ADF p=%.3f (%s)",
                    r.transform,
                    r.kpss_pvalue, "stationary" if r.kpss_says_stationary else "non-stationary",
                    r.adf_pvalue, "stationary" if r.adf_says_stationary else "unit root")
    return results


def stationarity_frame(results: List[StationarityResult]) -> pd.DataFrame:
    """Tabulate stationarity results for printing or CSV export."""
    return pd.DataFrame([r.as_dict() for r in results])


StationarityDecision = Callable[[StationarityResult], bool]


def kpss_decides(result: StationarityResult) -> bool:
    return result.kpss_says_stationary


def adf_decides(result: StationarityResult) -> bool:
    return result.adf_says_stationary


def both_tests_agree(result: StationarityResult) -> bool:
    """Stationary only when KPSS does not reject and ADF does."""
    return result.kpss_says_stationary and result.adf_says_stationary


def decide_stationarity(results: List[StationarityResult],
                        decision: StationarityDecision) -> Dict[str, bool]:
    """
    Apply a caller-supplied decision rule to each tested transform.

    No rule is applied by default; the caller chooses how to resolve
    disagreement between KPSS and ADF.
    """
    return {r.transform: bool(decision(r)) for r in results}


@dataclass(frozen=True)
class PeriodogramPeak:
    """Strongest periodogram bin and the cycle length it implies."""

    frequency: float
    period: float
    power: float


def dominant_period(series: Union[pd.Series, np.ndarray], detrend: str = "constant") -> PeriodogramPeak:
    """
    Estimate the dominant cycle length from the periodogram.

    Parameters
    ----------
    series : Union[pd.Series, np.ndarray]
        Observations at unit sampling frequency (one per month)
    detrend : str, default="constant"
        Passed to scipy.signal.periodogram ('constant' demeans, 'linear'
        removes a fitted line first)

    Returns
    -------
    PeriodogramPeak
        Frequency (cycles per observation) with maximal power among non-zero
        bins, and its reciprocal as the estimated period

    Raises
    ------
    InsufficientDataError
        If fewer than 4 observations are available
    """
    x = pd.Series(series).dropna().to_numpy(dtype=float)
    if len(x) < 4:
        raise InsufficientDataError("Periodogram needs at least 4 observations", required=4, available=len(x))
    freqs, power = signal.periodogram(x, fs=1.0, detrend=detrend, scaling="spectrum")
    mask = freqs > 0
    freqs, power = freqs[mask], power[mask]
    i = int(np.argmax(power))
    peak = PeriodogramPeak(frequency=float(freqs[i]), period=float(1.0 / freqs[i]), power=float(power[i]))
    logger.info("Periodogram peak at frequency %.4f (period %.2f)", peak.frequency, peak.period)
    return peak


def seasonal_strength(series: pd.Series, period: int = 12) -> float:
    """
    Strength of seasonality F_s = max(0, 1 - Var(remainder) / Var(seasonal + remainder)).

    Uses an STL decomposition. Values near 1 indicate strong seasonality.

    Raises
    ------
    InsufficientDataError
        If fewer than two full seasons are available
    """
    x = pd.Series(series).dropna().to_numpy(dtype=float)
    if len(x) < 2 * period:
        raise InsufficientDataError(
            f"Seasonal strength needs two full seasons ({2 * period} observations)",
            required=2 * period, available=len(x),
        )
    res = STL(x, period=period, robust=True).fit()
    detrended = res.seasonal + res.resid
    var_detrended = float(np.var(detrended))
    if var_detrended <= 0.0:
        return 0.0
    return float(max(0.0, min(1.0, 1.0 - np.var(res.resid) / var_detrended)))


def _is_constant(x: np.ndarray) -> bool:
    return bool(np.allclose(x, x[0]))


def ndiffs(series: pd.Series, alpha: float = 0.05, max_d: int = 2) -> int:
    """
    Number of first differences needed for KPSS to stop rejecting stationarity.

    A difference KPSS asked for is kept even when the differenced series is
    then too short to test again; the search simply stops there.

    Returns
    -------
    int
        0 .. max_d
    """
    x = pd.Series(series).dropna().to_numpy(dtype=float)
    if len(x) < MIN_TEST_OBS or _is_constant(x):
        return 0
    d = 0
    _, p = kpss_test(x)
    while np.isfinite(p) and p < alpha and d < max_d:
        d += 1
        x = np.diff(x)
        if _is_constant(x):
            return d
        _, p = kpss_test(x)
    return d


def nsdiffs(series: pd.Series, period: int = 12, max_D: int = 1,
            threshold: float = SEASONAL_STRENGTH_THRESHOLD) -> int:
    """
    Number of seasonal differences suggested by the seasonal-strength measure.

    A seasonal difference is taken while F_s exceeds `threshold`.
    """
    x = pd.Series(series).dropna()
    D = 0
    while D < max_D and len(x) >= 2 * period:
        if _is_constant(x.to_numpy(dtype=float)):
            break
        if seasonal_strength(x, period) <= threshold:
            break
        D += 1
        x = seasonal_difference(x, period)
    return D


def residual_diagnostics(residuals: Union[pd.Series, np.ndarray],
                         period: int = 12,
                         model_df: int = 0) -> pd.DataFrame:
    """
    Ljung-Box portmanteau test on model residuals.

    Parameters
    ----------
    residuals : Union[pd.Series, np.ndarray]
        In-sample residuals; NaNs are dropped
    period : int, default=12
        Seasonal period; the test uses lag min(2 * period, n / 5)
    model_df : int, default=0
        Degrees of freedom consumed by the model

    Returns
    -------
    pd.DataFrame
        Columns ['lb_stat', 'lb_pvalue'] indexed by lag, empty when the
        residual series is too short
    """
    resid = pd.Series(residuals).dropna()
    max_lag = int(min(2 * period, len(resid) // 5))
    if max_lag <= model_df or max_lag < 1:
        logger.warning("Residual diagnostics skipped: %d residuals is too few.", len(resid))
        return pd.DataFrame(columns=["lb_stat", "lb_pvalue"])
    return acorr_ljungbox(resid, lags=[max_lag], model_df=model_df, return_df=True)


@dataclass
class DiagnosticsReport:
    """Advisory diagnostics for one series."""

    n: int
    boxcox_lambda: Optional[float]
    stationarity: List[StationarityResult] = field(default_factory=list)
    periodogram: Optional[PeriodogramPeak] = None
    seasonal_strength: Optional[float] = None
    suggested_d: Optional[int] = None
    suggested_D: Optional[int] = None
    notes: List[str] = field(default_factory=list)

    def stationarity_frame(self) -> pd.DataFrame:
        return stationarity_frame(self.stationarity)


def run_diagnostics(series: pd.Series,
                    period: int = 12,
                    alpha: float = 0.05,
                    boxcox_bounds: Tuple[float, float] = (-1.0, 2.0),
                    boxcox_method: str = "loglik") -> DiagnosticsReport:
    """
    Collect every advisory diagnostic for a series.

    Diagnostics that cannot be computed (non-positive data for Box-Cox, too few
    observations for seasonal measures) are recorded in `notes` rather than
    raised, since none of them gate the pipeline.
    """
    report = DiagnosticsReport(n=len(series), boxcox_lambda=None)

    try:
        report.boxcox_lambda = boxcox_lambda(series, boxcox_bounds[0], boxcox_bounds[1],
                                             method=boxcox_method, period=period)
        logger.info("Box-Cox lambda (%s): %.4f", boxcox_method, report.boxcox_lambda)
    except (DomainError, InsufficientDataError) as e:
        report.notes.append(f"Box-Cox lambda not estimated: {e}")

    report.stationarity = stationarity_report(series, period=period, alpha=alpha)

    try:
        report.periodogram = dominant_period(series)
    except InsufficientDataError as e:
        report.notes.append(f"Periodogram skipped: {e}")

    try:
        report.seasonal_strength = seasonal_strength(series, period)
        report.suggested_D = nsdiffs(series, period)
    except InsufficientDataError as e:
        report.notes.append(f"Seasonal strength skipped: {e}")

    seasonal_base = series
    if report.suggested_D:
        seasonal_base = seasonal_difference(series, period)
    report.suggested_d = ndiffs(seasonal_base, alpha=alpha)

    for note in report.notes:
        logger.warning(note)
    return report
