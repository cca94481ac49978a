# sales_forecaster_src/deploy_utils.py

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import numpy as np
import pandas as pd

from .exceptions import DomainError
from .forecasting_utils import FittedModel, Forecast

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeploymentForecast:
    """
    The selected candidate refit on the full series and its forward forecast.

    Attributes
    ----------
    model : str
        Candidate name
    description : str
        Structure selected on the full series
    forecast : Forecast
        Forward forecast over `horizon` periods
    total : float
        Sum of the point forecast over the horizon
    prior_totals : Dict[int, float]
        Actual annual totals by calendar year, supplied or derived
    forecast_totals : Dict[int, float]
        Calendar-year totals for the years the forecast reaches, actual months
        plus forecast months; only years completed by the horizon appear
    growth_rates : Dict[int, float]
        Year-over-year growth `current / prior - 1` keyed by the later year,
        covering consecutive prior years and each forecast calendar year
    """

    model: str
    description: str
    forecast: Forecast
    total: float
    prior_totals: Dict[int, float] = field(default_factory=dict)
    forecast_totals: Dict[int, float] = field(default_factory=dict)
    growth_rates: Dict[int, float] = field(default_factory=dict)
    fitted: Optional[FittedModel] = field(default=None, repr=False, compare=False)

    @property
    def horizon(self) -> int:
        return self.forecast.horizon

    @property
    def forecast_year(self) -> int:
        return int(self.forecast.mean.index[-1].year)

    @property
    def covers_calendar_year(self) -> bool:
        """True when the horizon is exactly January to December of one year."""
        return is_calendar_year(self.forecast.mean.index)

    def summary_frame(self) -> pd.DataFrame:
        """
        One row per year: actual or forecast total and its growth rate.

        When the horizon is not a single calendar year, a final 'horizon' row
        carries the horizon total, labelled with the year of its last month
        and without a growth rate.
        """
        rows = [{"year": year, "kind": "actual", "total": total, "growth_rate": self.growth_rates.get(year, np.nan)}
                for year, total in sorted(self.prior_totals.items())]
        rows.extend({"year": year, "kind": "forecast", "total": total, "growth_rate": self.growth_rates.get(year, np.nan)}
                    for year, total in sorted(self.forecast_totals.items()))
        if not self.covers_calendar_year:
            rows.append({"year": self.forecast_year, "kind": "horizon", "total": self.total, "growth_rate": np.nan})
        return pd.DataFrame(rows, columns=["year", "kind", "total", "growth_rate"])


def is_calendar_year(index: pd.PeriodIndex) -> bool:
    """Whether monthly periods run January to December of a single year."""
    return len(index) == 12 and index[0].month == 1 and index[-1].year == index[0].year


def growth_rate(current: float, prior: float) -> float:
    """
    Year-over-year growth `current / prior - 1`.

    Raises
    ------
    DomainError
        If the prior total is zero or either total is not finite
    """
    current, prior = float(current), float(prior)
    if not (np.isfinite(current) and np.isfinite(prior)):
        raise DomainError(f"Growth rate needs finite totals, got current={current}, prior={prior}")
    if prior == 0.0:
        raise DomainError("Growth rate is undefined for a zero prior total")
    return current / prior - 1.0


def annual_totals(series: pd.Series) -> Dict[int, float]:
    """Sum a monthly series by calendar year, keeping complete years only."""
    by_year = series.groupby(series.index.year)
    counts = by_year.count()
    sums = by_year.sum()
    return {int(year): float(sums[year]) for year in sums.index if counts[year] == 12}


def growth_table(totals: Mapping[int, float]) -> Dict[int, float]:
    """Growth for each pair of consecutive years present in `totals`."""
    years = sorted(totals)
    return {later: growth_rate(totals[later], totals[earlier])
            for earlier, later in zip(years, years[1:]) if later == earlier + 1}


def forecast_calendar_totals(series: pd.Series, forecast_mean: pd.Series) -> Dict[int, float]:
    """
    Calendar-year totals of actuals followed by forecasts, for the years the
    forecast reaches and completes.
    """
    actual = series.copy()
    if not isinstance(actual.index, pd.PeriodIndex):
        actual.index = pd.DatetimeIndex(actual.index).to_period("M")
    combined = pd.concat([actual, forecast_mean])
    years = {int(year) for year in forecast_mean.index.year}
    return {year: value for year, value in annual_totals(combined).items() if year in years}


def deploy(candidate: Any,
           series: pd.Series,
           horizon: int = 12,
           prior_totals: Optional[Mapping[int, float]] = None,
           level: float = 95.0) -> DeploymentForecast:
    """
    Refit the selected candidate on the entire series and forecast forward.

    Parameters
    ----------
    candidate : Any
        Candidate spec returned by evaluation_utils.select_candidate
    series : pd.Series
        Full monthly series (train and test combined)
    horizon : int, default=12
        Number of periods to forecast
    prior_totals : Mapping[int, float], optional
        Actual annual totals by year; derived from complete calendar years of
        `series` when omitted
    level : float, default=95.0
        Prediction interval level

    Returns
    -------
    DeploymentForecast

    Notes
    -----
    Growth is reported per calendar year. A year the forecast reaches is
    totalled from its actual months plus its forecast months, and only once
    the horizon completes it; it is compared with the year before it, or with
    the latest earlier total (logged) when that year is missing. The horizon
    total itself is a calendar-year total only when the forecast runs January
    to December.
    """
    logger.info("Refitting %s on the full series (%d observations)", candidate.name, len(series))
    fitted = candidate.fit(series)
    forecast = fitted.forecast(horizon, level=level)
    total = float(forecast.mean.sum())
    if not is_calendar_year(forecast.mean.index):
        logger.warning("Forecast %s..%s is not a calendar year; the horizon total is not an annual total",
                       forecast.mean.index[0], forecast.mean.index[-1])

    totals = {int(k): float(v) for k, v in (prior_totals or annual_totals(series)).items()}
    growth = growth_table(totals)
    forecast_totals = {year: value for year, value in forecast_calendar_totals(series, forecast.mean).items()
                       if year not in totals}

    known = dict(totals)
    for year in sorted(forecast_totals):
        earlier = [y for y in known if y < year]
        if not earlier:
            logger.warning("No annual total before %d; growth for %d not computed", year, year)
            continue
        base_year = year - 1 if year - 1 in known else max(earlier)
        if base_year != year - 1:
            logger.warning("No total for %d; growth for %d is measured against %d", year - 1, year, base_year)
        growth[year] = growth_rate(forecast_totals[year], known[base_year])
        logger.info("Forecast %d total %.1f vs %d total %.1f: growth %.4f",
                    year, forecast_totals[year], base_year, known[base_year], growth[year])
        known[year] = forecast_totals[year]
    if not totals:
        logger.warning("No prior annual totals available; growth rates not computed")

    return DeploymentForecast(
        model=fitted.name,
        description=fitted.description,
        forecast=forecast,
        total=total,
        prior_totals=totals,
        forecast_totals=forecast_totals,
        growth_rates=growth,
        fitted=fitted,
    )
