# sales_forecaster_src/arima_utils.py

import logging
import warnings
from dataclasses import dataclass
from itertools import product
from typing import Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
from tqdm.auto import tqdm
from statsmodels.tsa.statespace.sarimax import SARIMAX

from .diagnostics_utils import ndiffs, nsdiffs
from .exceptions import InsufficientDataError, ModelFitError
from .forecasting_utils import FittedModel
from .transform_utils import boxcox_lambda, boxcox_transform, inv_boxcox_transform, seasonal_difference

logger = logging.getLogger(__name__)

# (p, q, P, Q, constant)
OrderKey = Tuple[int, int, int, int, bool]


@dataclass(frozen=True)
class ArimaSpec:
    """
    One automatic ARIMA configuration.

    Attributes
    ----------
    boxcox : bool
        Estimate a Box-Cox lambda on the training data and model the transformed series
    seasonal : bool
        Allow seasonal differencing and seasonal AR/MA terms
    period : int
        Seasonal period
    stepwise : bool
        Hyndman-Khandakar neighbourhood search when True, exhaustive grid otherwise
    max_p, max_q, max_P, max_Q, max_d, max_D : int
        Upper bounds for the order search
    allow_drift : bool
        Allow a constant (drift when d + D == 1) in the differenced model
    lambda_method : str
        'loglik' or 'guerrero', see transform_utils.boxcox_lambda
    """

    boxcox: bool = False
    seasonal: bool = True
    period: int = 12
    stepwise: bool = True
    max_p: int = 3
    max_q: int = 3
    max_P: int = 1
    max_Q: int = 1
    max_d: int = 2
    max_D: int = 1
    allow_drift: bool = True
    lambda_method: str = "loglik"
    show_progress: bool = False

    @property
    def name(self) -> str:
        parts = ["arima"]
        if self.boxcox:
            parts.append("boxcox")
        parts.append("seasonal" if self.seasonal else "nonseasonal")
        return "_".join(parts)

    def fit(self, train: pd.Series) -> FittedModel:
        return fit_auto_arima(train, self)


def default_arima_specs(period: int = 12, **overrides) -> List[ArimaSpec]:
    """The four configurations: Box-Cox on/off crossed with seasonal on/off."""
    return [
        ArimaSpec(boxcox=boxcox, seasonal=seasonal, period=period, **overrides)
        for boxcox, seasonal in product((True, False), (True, False))
    ]


def arima_label(order: OrderKey, d: int, D: int, period: int) -> str:
    p, q, P, Q, constant = order
    label = f"ARIMA({p},{d},{q})"
    if P or D or Q:
        label += f"({P},{D},{Q})[{period}]"
    if constant:
        label += " with drift" if d + D == 1 else " with non-zero mean"
    return label


def _fit_sarimax(z: np.ndarray, order: OrderKey, d: int, D: int, period: int):
    """Fit one SARIMAX configuration, returning (result, AICc) or (None, inf)."""
    p, q, P, Q, constant = order
    seasonal_order = (P, D, Q, period) if (P or D or Q) else (0, 0, 0, 0)
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            res = SARIMAX(
                z,
                order=(p, d, q),
                seasonal_order=seasonal_order,
                trend="c" if constant else "n",
                simple_differencing=False,
            ).fit(disp=False)
    except Exception as e:
        logger.debug("SARIMAX %s failed: %s", order, e)
        return None, float("inf")

    aicc = getattr(res, "aicc", np.nan)
    if aicc is None or not np.isfinite(aicc):
        return None, float("inf")
    return res, float(aicc)


def _stepwise_start(spec: ArimaSpec, seasonal: bool, constant_ok: bool) -> List[OrderKey]:
    P1 = 1 if seasonal and spec.max_P >= 1 else 0
    Q1 = 1 if seasonal and spec.max_Q >= 1 else 0
    starts = [
        (min(2, spec.max_p), min(2, spec.max_q), P1, Q1, constant_ok),
        (0, 0, 0, 0, constant_ok),
        (min(1, spec.max_p), 0, P1, 0, constant_ok),
        (0, min(1, spec.max_q), 0, Q1, constant_ok),
    ]
    if constant_ok:
        starts.append((0, 0, 0, 0, False))
    return list(dict.fromkeys(starts))


def _neighbours(order: OrderKey, spec: ArimaSpec, seasonal: bool, constant_ok: bool) -> List[OrderKey]:
    p, q, P, Q, constant = order
    max_P = spec.max_P if seasonal else 0
    max_Q = spec.max_Q if seasonal else 0
    moves = [
        (1, 0, 0, 0), (-1, 0, 0, 0), (0, 1, 0, 0), (0, -1, 0, 0),
        (1, 1, 0, 0), (-1, -1, 0, 0),
        (0, 0, 1, 0), (0, 0, -1, 0), (0, 0, 0, 1), (0, 0, 0, -1),
        (0, 0, 1, 1), (0, 0, -1, -1),
    ]
    out = []
    for dp, dq, dP, dQ in moves:
        cand = (p + dp, q + dq, P + dP, Q + dQ, constant)
        if 0 <= cand[0] <= spec.max_p and 0 <= cand[1] <= spec.max_q \
                and 0 <= cand[2] <= max_P and 0 <= cand[3] <= max_Q:
            out.append(cand)
    if constant_ok:
        out.append((p, q, P, Q, not constant))
    return out


def optimize_arima_orders(z: np.ndarray,
                          spec: ArimaSpec,
                          d: int,
                          D: int) -> pd.DataFrame:
    """
    Search SARIMA orders for fixed differencing and rank by AICc.

    Parameters
    ----------
    z : np.ndarray
        Training series (already Box-Cox transformed when requested)
    spec : ArimaSpec
        Search bounds and strategy
    d, D : int
        Non-seasonal and seasonal differencing orders

    Returns
    -------
    pd.DataFrame
        Columns ['(p,q,P,Q,c)', 'AICc', 'result'] sorted ascending by AICc;
        configurations that failed to fit are omitted

    Notes
    -----
    - The constant is only offered when d + D <= 1 (mean or drift)
    - Stepwise search starts from four models and moves to the best
      neighbour until no neighbour lowers AICc
    """
    seasonal = spec.seasonal
    constant_ok = spec.allow_drift and (d + D) <= 1
    tried: Dict[OrderKey, Tuple[object, float]] = {}

    def _evaluate(keys: List[OrderKey], bar) -> None:
        for key in keys:
            if key in tried:
                continue
            tried[key] = _fit_sarimax(z, key, d, D, spec.period)
            bar.update(1)

    with tqdm(desc=f"Order search {spec.name}", unit="fit", leave=False, disable=not spec.show_progress) as bar:
        if spec.stepwise:
            _evaluate(_stepwise_start(spec, seasonal, constant_ok), bar)
            best = min(tried, key=lambda k: tried[k][1])
            while True:
                _evaluate(_neighbours(best, spec, seasonal, constant_ok), bar)
                new_best = min(tried, key=lambda k: tried[k][1])
                if tried[new_best][1] >= tried[best][1]:
                    break
                best = new_best
        else:
            grid = product(
                range(spec.max_p + 1), range(spec.max_q + 1),
                range((spec.max_P if seasonal else 0) + 1), range((spec.max_Q if seasonal else 0) + 1),
                (True, False) if constant_ok else (False,),
            )
            _evaluate(list(grid), bar)

    rows = [[key, score, res] for key, (res, score) in tried.items() if res is not None]
    result_df = pd.DataFrame(rows, columns=["(p,q,P,Q,c)", "AICc", "result"])
    result_df = result_df.sort_values(by="AICc", ascending=True).reset_index(drop=True)
    logger.debug("%s tried %d configurations, %d converged", spec.name, len(tried), len(result_df))
    return result_df


def fit_auto_arima(train: pd.Series, spec: ArimaSpec = ArimaSpec()) -> FittedModel:
    """
    Fit one automatic ARIMA configuration.

    Steps: optional Box-Cox transform, seasonal differencing order from the
    seasonal-strength test (seasonal specs only), first differencing order
    from repeated KPSS tests, then an AICc order search.

    Raises
    ------
    DomainError
        If Box-Cox is requested and the training data has non-positive values
    InsufficientDataError
        If fewer than 8 training observations are available
    ModelFitError
        If no order could be estimated
    """
    y = pd.Series(train).to_numpy(dtype=float)
    if len(y) < 8:
        raise InsufficientDataError("ARIMA needs at least 8 observations", required=8, available=len(y))

    lam: Optional[float] = None
    z = y
    if spec.boxcox:
        lam = boxcox_lambda(y, method=spec.lambda_method, period=spec.period)
        z = boxcox_transform(y, lam)

    D = 0
    if spec.seasonal and len(z) >= 2 * spec.period:
        D = nsdiffs(pd.Series(z), spec.period, max_D=spec.max_D)
    z_seasonal = seasonal_difference(pd.Series(z), spec.period).to_numpy() if D else z
    d = ndiffs(pd.Series(z_seasonal), max_d=spec.max_d)

    result_df = optimize_arima_orders(z, spec, d, D)
    if result_df.empty:
        raise ModelFitError(f"{spec.name}: no ARIMA order could be estimated (d={d}, D={D})")

    best_key = result_df.iloc[0]["(p,q,P,Q,c)"]
    best_res = result_df.iloc[0]["result"]
    aicc = float(result_df.iloc[0]["AICc"])
    description = arima_label(best_key, d, D, spec.period)
    if lam is not None:
        description += f" (Box-Cox lambda={lam:.3f})"
    logger.info("%s selected %s (AICc=%.3f)", spec.name, description, aicc)

    # Initial observations absorbed by the differencing states are not genuine predictions
    burn = max(int(getattr(best_res, "loglikelihood_burn", 0) or 0),
               int(getattr(best_res, "nobs_diffuse", 0) or 0),
               d + D * spec.period)
    fitted_z = np.asarray(best_res.fittedvalues, dtype=float).copy()
    fitted = inv_boxcox_transform(fitted_z, lam) if lam is not None else fitted_z
    fitted = np.asarray(fitted, dtype=float)
    fitted[:burn] = np.nan

    def _forecast(steps: int, level: float):
        fc = best_res.get_forecast(steps=steps)
        mean = np.asarray(fc.predicted_mean, dtype=float)
        ci = np.asarray(fc.conf_int(alpha=1.0 - level / 100.0), dtype=float)
        lower, upper = ci[:, 0], ci[:, 1]
        if lam is not None:
            mean = inv_boxcox_transform(mean, lam)
            lower = inv_boxcox_transform(lower, lam)
            upper = inv_boxcox_transform(upper, lam)
        return mean, lower, upper

    p, q, P, Q, constant = best_key
    return FittedModel(
        candidate=spec,
        train=train,
        fitted_values=pd.Series(fitted, index=train.index, name=train.name),
        residuals=pd.Series(y - fitted, index=train.index, name=train.name),
        information_criterion=aicc,
        description=description,
        state=best_res,
        params={"order": (p, d, q), "seasonal_order": (P, D, Q, spec.period),
                "constant": bool(constant), "boxcox_lambda": lam},
        forecaster=_forecast,
    )
