# sales_forecaster_src/roster_utils.py

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from .arima_utils import ArimaSpec, default_arima_specs
from .exceptions import ConfigurationError
from .forecasting_utils import EtsSpec, FitFailure, FittedModel, SeasonalNaiveSpec, TbatsSpec

logger = logging.getLogger(__name__)

ROSTER_KINDS = ("snaive", "ets", "arima", "tbats")


def default_roster(period: int = 12) -> List[Any]:
    """Seasonal naive, automatic ETS, the four ARIMA configurations and TBATS."""
    return build_roster(ROSTER_KINDS, period=period)


def build_roster(kinds: Sequence[str] = ROSTER_KINDS,
                 period: int = 12,
                 arima_options: Optional[Dict[str, Any]] = None,
                 tbats_periods: Optional[Sequence[float]] = None) -> List[Any]:
    """
    Build candidate specs for the requested model kinds, in the given order.

    Parameters
    ----------
    kinds : Sequence[str]
        Any of 'snaive', 'ets', 'arima', 'tbats'; 'arima' expands to four specs
    period : int, default=12
        Seasonal period shared by all candidates
    arima_options : Dict[str, Any], optional
        ArimaSpec field overrides (stepwise, max_p, ...)
    tbats_periods : Sequence[float], optional
        Seasonal period candidates for TBATS, defaults to (period,)

    Raises
    ------
    ConfigurationError
        If a kind is unknown or an ARIMA option is not an ArimaSpec field
    """
    arima_options = dict(arima_options or {})
    unknown = set(arima_options) - set(ArimaSpec.__dataclass_fields__)
    if unknown:
        raise ConfigurationError(f"Unknown ARIMA option(s): {sorted(unknown)}")

    roster: List[Any] = []
    for kind in kinds:
        kind = str(kind).strip().lower()
        if kind == "snaive":
            roster.append(SeasonalNaiveSpec(period=period))
        elif kind == "ets":
            roster.append(EtsSpec(period=period))
        elif kind == "arima":
            roster.extend(default_arima_specs(period=period, **arima_options))
        elif kind == "tbats":
            periods = tuple(tbats_periods) if tbats_periods else (period,)
            roster.append(TbatsSpec(seasonal_periods=periods))
        else:
            raise ConfigurationError(f"Unknown model kind '{kind}'. Must be one of: {list(ROSTER_KINDS)}")
    return roster


def fit_candidate(train: pd.Series, candidate: Any) -> FittedModel:
    """Fit a single candidate; exceptions propagate."""
    logger.info("Fitting %s on %d observations", candidate.name, len(train))
    return candidate.fit(train)


def fit_roster(train: pd.Series, candidates: Sequence[Any]) -> Tuple[List[FittedModel], List[FitFailure]]:
    """
    Fit every candidate on the training series.

    A candidate whose fit raises is logged and recorded as a FitFailure;
    the remaining candidates are still fitted.

    Returns
    -------
    Tuple[List[FittedModel], List[FitFailure]]
        Fitted models and failures, each in roster order
    """
    fitted: List[FittedModel] = []
    failures: List[FitFailure] = []
    for candidate in candidates:
        try:
            fitted.append(fit_candidate(train, candidate))
        except Exception as e:
            logger.warning("%s failed: %s: %s", candidate.name, type(e).__name__, e)
            failures.append(FitFailure(candidate=candidate, error_type=type(e).__name__, message=str(e)))
    logger.info("Fitted %d of %d candidates", len(fitted), len(candidates))
    return fitted, failures
