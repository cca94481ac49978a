import numpy as np
import pandas as pd

import pytest

from sales_forecaster_src.data_utils import make_monthly_series
from sales_forecaster_src.deploy_utils import annual_totals, deploy, growth_rate, growth_table
from sales_forecaster_src.exceptions import DomainError
from sales_forecaster_src.forecasting_utils import SeasonalNaiveSpec


def test_growth_rate_reference_value():
    assert growth_rate(296608.2, 264851) == pytest.approx(0.1199, abs=1e-4)


def test_growth_rate_zero_prior_raises():
    with pytest.raises(DomainError):
        growth_rate(100.0, 0.0)
    with pytest.raises(DomainError):
        growth_rate(np.nan, 10.0)


def test_annual_totals_keeps_complete_years_only():
    y = make_monthly_series(np.ones(30), start="2020-01")
    assert annual_totals(y) == {2020: 12.0, 2021: 12.0}


def test_growth_table_consecutive_years():
    rates = growth_table({2020: 100.0, 2021: 110.0, 2022: 99.0})
    assert rates[2021] == pytest.approx(0.10)
    assert rates[2022] == pytest.approx(-0.10)
    assert 2020 not in rates


def test_deploy_refits_on_full_series():
    pattern = np.arange(1.0, 13.0)
    y = make_monthly_series(np.concatenate([pattern, pattern * 1.1, pattern * 1.2]), start="2020-01")
    out = deploy(SeasonalNaiveSpec(), y, horizon=12)

    # Refit on everything, so the forecast repeats the final year
    assert np.allclose(out.forecast.mean.to_numpy(), pattern * 1.2)
    assert str(out.forecast.mean.index[0]) == "2023-01"
    assert out.total == pytest.approx(78.0 * 1.2)
    assert out.forecast_year == 2023
    assert out.horizon == 12
    assert out.model == "snaive"

    assert out.prior_totals == pytest.approx({2020: 78.0, 2021: 85.8, 2022: 93.6})
    assert out.growth_rates[2021] == pytest.approx(0.1)
    assert out.growth_rates[2023] == pytest.approx(0.0)


def test_deploy_with_caller_supplied_totals():
    y = make_monthly_series(np.full(36, 24717.35), start="2020-01")
    out = deploy(SeasonalNaiveSpec(), y, horizon=12, prior_totals={2022: 264851.0})
    assert out.total == pytest.approx(296608.2)
    assert out.growth_rates[2023] == pytest.approx(0.1199, abs=1e-4)

    frame = out.summary_frame()
    assert list(frame.columns) == ["year", "kind", "total", "growth_rate"]
    assert list(frame["kind"]) == ["actual", "forecast"]
    assert frame.loc[1, "year"] == 2023


def test_deploy_zero_prior_total_raises():
    y = make_monthly_series(np.ones(24), start="2021-01")
    with pytest.raises(DomainError):
        deploy(SeasonalNaiveSpec(), y, prior_totals={2022: 0.0})


def test_deploy_mid_year_series_reports_calendar_year_growth():
    pattern = np.arange(1.0, 13.0)
    y = make_monthly_series(np.concatenate([pattern, pattern * 1.1, pattern[:6] * 1.2]), start="2020-01")
    out = deploy(SeasonalNaiveSpec(), y, horizon=12)

    # 2022-07..2023-06: the horizon total is not an annual total
    assert not out.covers_calendar_year
    assert out.forecast_year == 2023
    assert out.prior_totals == pytest.approx({2020: 78.0, 2021: 85.8})

    # 2022 = actual Jan-Jun plus forecast Jul-Dec; 2023 is incomplete
    assert out.forecast_totals == pytest.approx({2022: 21.0 * 1.2 + 57.0 * 1.1})
    assert out.growth_rates[2022] == pytest.approx(87.9 / 85.8 - 1.0)
    assert 2023 not in out.growth_rates

    frame = out.summary_frame()
    assert list(frame["kind"]) == ["actual", "actual", "forecast", "horizon"]
    assert list(frame["year"]) == [2020, 2021, 2022, 2023]
    assert np.isnan(frame["growth_rate"].iloc[-1])


def test_deploy_measures_against_latest_earlier_year_when_previous_is_missing():
    y = make_monthly_series(np.full(24, 10.0), start="2021-01")
    out = deploy(SeasonalNaiveSpec(), y, prior_totals={2020: 100.0})
    assert out.forecast_totals == pytest.approx({2023: 120.0})
    assert out.growth_rates[2023] == pytest.approx(0.2)
