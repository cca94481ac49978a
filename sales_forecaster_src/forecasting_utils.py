# sales_forecaster_src/forecasting_utils.py

"""
Candidate forecasting models and their fitted state.

Each candidate is a frozen spec with a `name` and a `fit(train)` method that
returns a read-only `FittedModel`. Estimation itself is delegated to
statsmodels (ETS) and tbats (TBATS); the seasonal naive model needs no
estimation. ARIMA candidates live in arima_utils.
"""

import logging
import warnings
from dataclasses import dataclass, field
from itertools import product
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy import stats
from statsmodels.tsa.exponential_smoothing.ets import ETSModel

from .data_utils import future_periods, to_timestamp_index
from .exceptions import DomainError, InsufficientDataError, ModelFitError

logger = logging.getLogger(__name__)

# (mean, lower, upper) on the original scale for `steps` future periods
ForecastFn = Callable[[int, float], Tuple[np.ndarray, Optional[np.ndarray], Optional[np.ndarray]]]


@dataclass(frozen=True)
class Forecast:
    """Point forecasts over a horizon with optional prediction intervals."""

    mean: pd.Series
    lower: Optional[pd.Series] = None
    upper: Optional[pd.Series] = None
    level: Optional[float] = None

    @property
    def horizon(self) -> int:
        return len(self.mean)

    def to_frame(self) -> pd.DataFrame:
        df = pd.DataFrame({"forecast": self.mean})
        if self.lower is not None and self.upper is not None:
            df[f"lo_{self.level:g}"] = self.lower
            df[f"hi_{self.level:g}"] = self.upper
        return df


@dataclass(frozen=True)
class FittedModel:
    """
    A candidate estimated on a training series.

    Attributes
    ----------
    candidate : Any
        The spec that produced this fit (refit it on other data via candidate.fit)
    train : pd.Series
        Training series the model was estimated on
    fitted_values : pd.Series
        One-step in-sample predictions; NaN where undefined
    residuals : pd.Series
        train - fitted_values on the original scale
    information_criterion : float
        AICc where the library reports it, otherwise AIC; NaN when not applicable
    description : str
        Selected structure, e.g. 'ETS(M,A,M)' or 'ARIMA(0,1,1)(0,1,1)[12]'
    state : Any
        Opaque library result object
    """

    candidate: Any
    train: pd.Series
    fitted_values: pd.Series
    residuals: pd.Series
    information_criterion: float
    description: str
    state: Any = None
    params: Dict[str, Any] = field(default_factory=dict)
    forecaster: Optional[ForecastFn] = field(default=None, repr=False, compare=False)

    @property
    def name(self) -> str:
        return self.candidate.name

    def forecast(self, steps: int, level: float = 95.0) -> Forecast:
        """
        Forecast `steps` periods past the end of the training series.

        Parameters
        ----------
        steps : int
            Horizon, at least 1
        level : float, default=95.0
            Prediction interval coverage in percent

        Returns
        -------
        Forecast
            Indexed by the monthly periods following the training series
        """
        if steps < 1:
            raise ValueError(f"Forecast horizon must be at least 1, got {steps}")
        if self.forecaster is None:
            raise ModelFitError(f"{self.name} has no forecaster attached")
        mean, lower, upper = self.forecaster(int(steps), float(level))
        index = future_periods(self.train, steps)
        name = self.train.name
        to_series = lambda a: pd.Series(np.asarray(a, dtype=float), index=index, name=name)
        if lower is None or upper is None:
            return Forecast(mean=to_series(mean))
        return Forecast(mean=to_series(mean), lower=to_series(lower), upper=to_series(upper), level=level)


@dataclass(frozen=True)
class FitFailure:
    """A candidate whose fit raised; recorded instead of aborting the roster."""

    candidate: Any
    error_type: str
    message: str

    @property
    def name(self) -> str:
        return self.candidate.name


def _z_value(level: float) -> float:
    return float(stats.norm.ppf(0.5 + level / 200.0))


def _as_float_array(series: pd.Series) -> np.ndarray:
    return pd.Series(series).to_numpy(dtype=float)


# ---------------------------------------------------------------------------
# Seasonal naive
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SeasonalNaiveSpec:
    """Forecast equals the value observed one full season earlier."""

    period: int = 12

    @property
    def name(self) -> str:
        return "snaive"

    def fit(self, train: pd.Series) -> FittedModel:
        return fit_seasonal_naive(train, self)


def fit_seasonal_naive(train: pd.Series, spec: SeasonalNaiveSpec = SeasonalNaiveSpec()) -> FittedModel:
    """
    Fit the seasonal naive model.

    Raises
    ------
    InsufficientDataError
        If fewer than one full season of history is available
    """
    y = _as_float_array(train)
    n, m = len(y), spec.period
    if n < m:
        raise InsufficientDataError(
            f"Seasonal naive needs one full season ({m} observations), got {n}",
            required=m, available=n,
        )

    fitted = np.full(n, np.nan)
    fitted[m:] = y[:-m]
    resid = y - fitted
    sigma = float(np.sqrt(np.nanmean(resid ** 2))) if n > m else float("nan")
    last_season = y[-m:].copy()

    def _forecast(steps: int, level: float):
        k = np.arange(steps)
        mean = last_season[k % m]
        if not np.isfinite(sigma):
            return mean, None, None
        se = sigma * np.sqrt(k // m + 1)
        z = _z_value(level)
        return mean, mean - z * se, mean + z * se

    return FittedModel(
        candidate=spec,
        train=train,
        fitted_values=pd.Series(fitted, index=train.index, name=train.name),
        residuals=pd.Series(resid, index=train.index, name=train.name),
        information_criterion=float("nan"),
        description=f"Seasonal naive[{m}]",
        params={"period": m, "sigma": sigma},
        forecaster=_forecast,
    )


# ---------------------------------------------------------------------------
# Exponential smoothing state space (ETS)
# ---------------------------------------------------------------------------

ETS_ERRORS = ("add", "mul")
ETS_TRENDS = ("none", "add")
ETS_SEASONALS = ("none", "add", "mul")


@dataclass(frozen=True)
class EtsSpec:
    """
    ETS model chosen automatically by AICc.

    Each component is 'auto' (searched) or fixed: error in {'add', 'mul'},
    trend in {'none', 'add'}, seasonal in {'none', 'add', 'mul'}; damped is
    None (searched) or a bool.
    """

    error: str = "auto"
    trend: str = "auto"
    seasonal: str = "auto"
    damped: Optional[bool] = None
    period: int = 12

    @property
    def name(self) -> str:
        if (self.error, self.trend, self.seasonal, self.damped) == ("auto", "auto", "auto", None):
            return "ets"
        damped = "" if self.damped is None else ("_damped" if self.damped else "_undamped")
        return f"ets_{self.error}_{self.trend}{damped}_{self.seasonal}"

    @property
    def requests_multiplicative(self) -> bool:
        return self.error == "mul" or self.seasonal == "mul"

    def fit(self, train: pd.Series) -> FittedModel:
        return fit_ets(train, self)


def _options(value, choices: Sequence, label: str) -> Tuple:
    if value == "auto":
        return tuple(choices)
    if value not in choices:
        raise ValueError(f"Invalid ETS {label} '{value}'. Must be 'auto' or one of: {list(choices)}")
    return (value,)


def ets_candidate_specs(spec: EtsSpec, y: np.ndarray) -> List[Dict[str, Any]]:
    """
    Enumerate the ETS component combinations to try for a training array.

    Raises
    ------
    DomainError
        If a multiplicative component is fixed and y has a non-positive value
    InsufficientDataError
        If a seasonal component is fixed and fewer than two seasons exist
    """
    positive = bool(np.all(y > 0))
    if spec.requests_multiplicative and not positive:
        raise DomainError("Multiplicative ETS components need strictly positive data")

    enough_for_season = len(y) >= 2 * spec.period
    if spec.seasonal in ("add", "mul") and not enough_for_season:
        raise InsufficientDataError(
            f"Seasonal ETS needs two full seasons ({2 * spec.period} observations)",
            required=2 * spec.period, available=len(y),
        )

    errors = _options(spec.error, ETS_ERRORS, "error")
    trends = _options(spec.trend, ETS_TRENDS, "trend")
    seasonals = _options(spec.seasonal, ETS_SEASONALS, "seasonal")
    dampeds = (False, True) if spec.damped is None else (bool(spec.damped),)

    combos = []
    for error, trend, seasonal, damped in product(errors, trends, seasonals, dampeds):
        if trend == "none" and damped:
            continue
        if not positive and "mul" in (error, seasonal):
            continue
        if seasonal != "none" and not enough_for_season:
            continue
        # additive error with multiplicative season has unbounded forecast variance
        if spec.error == "auto" and spec.seasonal == "auto" and error == "add" and seasonal == "mul":
            continue
        combos.append({
            "error": error,
            "trend": None if trend == "none" else trend,
            "damped_trend": bool(damped),
            "seasonal": None if seasonal == "none" else seasonal,
        })
    return combos


def _ets_label(combo: Dict[str, Any]) -> str:
    letter = {None: "N", "add": "A", "mul": "M"}
    trend = letter[combo["trend"]] + ("d" if combo["damped_trend"] else "")
    return f"ETS({letter[combo['error']]},{trend},{letter[combo['seasonal']]})"


def _info_criterion(res) -> float:
    """Prefer AICc when available; fall back to AIC."""
    for attr in ("aicc", "aic"):
        value = getattr(res, attr, None)
        if value is not None and np.isfinite(value):
            return float(value)
    return float("inf")


def fit_ets(train: pd.Series, spec: EtsSpec = EtsSpec()) -> FittedModel:
    """
    Fit every admissible ETS combination and keep the one with the lowest AICc.

    Raises
    ------
    DomainError
        If a multiplicative component is requested on non-positive data
    ModelFitError
        If no combination could be estimated
    """
    y = _as_float_array(train)
    # statsmodels forecasts past the sample only on a frequency-aware index
    endog = to_timestamp_index(pd.Series(y, index=train.index, name=train.name))
    combos = ets_candidate_specs(spec, y)
    if not combos:
        raise ModelFitError(f"No admissible ETS configuration for {spec.name}")

    best_res, best_combo, best_score = None, None, np.inf
    for combo in combos:
        label = _ets_label(combo)
        try:
            with warnings.catch_warnings():
                warnings.simplefilter("ignore")
                model = ETSModel(
                    endog,
                    error=combo["error"],
                    trend=combo["trend"],
                    damped_trend=combo["damped_trend"],
                    seasonal=combo["seasonal"],
                    seasonal_periods=spec.period if combo["seasonal"] else None,
                    initialization_method="estimated",
                )
                res = model.fit(disp=False)
        except Exception as e:
            logger.debug("%s failed: %s", label, e)
            continue
        score = _info_criterion(res)
        if not np.isfinite(score) or not np.all(np.isfinite(res.fittedvalues)):
            logger.debug("%s skipped: non-finite fit", label)
            continue
        logger.debug("%s AICc=%.3f", label, score)
        if score < best_score:
            best_res, best_combo, best_score = res, combo, score

    if best_res is None:
        raise ModelFitError(f"None of {len(combos)} ETS configurations could be estimated")

    fitted = np.asarray(best_res.fittedvalues, dtype=float)
    n = len(y)
    description = _ets_label(best_combo)
    logger.info("%s selected %s (AICc=%.3f)", spec.name, description, best_score)

    def _forecast(steps: int, level: float):
        pred = best_res.get_prediction(start=n, end=n + steps - 1)
        frame = pred.summary_frame(alpha=1.0 - level / 100.0)
        return (frame["mean"].to_numpy(dtype=float),
                frame["pi_lower"].to_numpy(dtype=float),
                frame["pi_upper"].to_numpy(dtype=float))

    return FittedModel(
        candidate=spec,
        train=train,
        fitted_values=pd.Series(fitted, index=train.index, name=train.name),
        residuals=pd.Series(y - fitted, index=train.index, name=train.name),
        information_criterion=best_score,
        description=description,
        state=best_res,
        params=dict(best_combo),
        forecaster=_forecast,
    )


# ---------------------------------------------------------------------------
# TBATS
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TbatsSpec:
    """Trigonometric seasonality, Box-Cox, ARMA errors, trend and seasonal components."""

    seasonal_periods: Tuple[float, ...] = (12,)
    use_arma_errors: bool = True

    @property
    def name(self) -> str:
        return "tbats"

    def fit(self, train: pd.Series) -> FittedModel:
        return fit_tbats(train, self)


def _tbats_description(model) -> str:
    params = model.params
    comp = params.components
    lam = getattr(params, "box_cox_lambda", None) if getattr(comp, "use_box_cox", False) else None
    lam_txt = f"{lam:.3f}" if lam is not None else "1"
    p = getattr(comp, "p", 0)
    q = getattr(comp, "q", 0)
    phi = getattr(params, "phi", None) if getattr(comp, "use_damped_trend", False) else None
    damp_txt = f"{phi:.3f}" if phi is not None else "-"
    periods = list(getattr(comp, "seasonal_periods", []) or [])
    harmonics = list(getattr(comp, "seasonal_harmonics", []) or [])
    seasons = ", ".join(f"<{p_:g},{k}>" for p_, k in zip(periods, harmonics))
    return f"TBATS({lam_txt}, {{{p},{q}}}, {damp_txt}, {{{seasons}}})"


def fit_tbats(train: pd.Series, spec: TbatsSpec = TbatsSpec()) -> FittedModel:
    """
    Fit a TBATS model with the tbats library, which decides Box-Cox, trend,
    damping, ARMA errors and the number of harmonics on its own.

    Raises
    ------
    InsufficientDataError
        If fewer than two seasons of the longest period are available
    """
    from tbats import TBATS

    y = _as_float_array(train)
    longest = max(spec.seasonal_periods) if spec.seasonal_periods else 1
    if len(y) < 2 * longest:
        raise InsufficientDataError(
            f"TBATS needs two seasons of the longest period ({int(2 * longest)} observations)",
            required=int(2 * longest), available=len(y),
        )

    estimator = TBATS(
        seasonal_periods=list(spec.seasonal_periods),
        use_arma_errors=spec.use_arma_errors,
        n_jobs=1,
        show_warnings=False,
    )
    model = estimator.fit(y)
    fitted = np.asarray(model.y_hat, dtype=float)
    description = _tbats_description(model)
    aic = float(getattr(model, "aic", float("nan")))
    logger.info("%s selected %s (AIC=%.3f)", spec.name, description, aic)

    def _forecast(steps: int, level: float):
        mean, conf = model.forecast(steps=steps, confidence_level=level / 100.0)
        return (np.asarray(mean, dtype=float),
                np.asarray(conf["lower_bound"], dtype=float),
                np.asarray(conf["upper_bound"], dtype=float))

    return FittedModel(
        candidate=spec,
        train=train,
        fitted_values=pd.Series(fitted, index=train.index, name=train.name),
        residuals=pd.Series(y - fitted, index=train.index, name=train.name),
        information_criterion=aic,
        description=description,
        state=model,
        params={"seasonal_periods": list(spec.seasonal_periods)},
        forecaster=_forecast,
    )
