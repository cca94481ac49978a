import numpy as np

import pytest

from sales_forecaster_src.arima_utils import (
    ArimaSpec,
    arima_label,
    default_arima_specs,
    optimize_arima_orders,
)
from sales_forecaster_src.data_utils import make_monthly_series
from sales_forecaster_src.evaluation_utils import evaluate_roster
from sales_forecaster_src.exceptions import DomainError, InsufficientDataError
from sales_forecaster_src.split_utils import split_series


def _trend_plus_season(n=72, seed=0, noise=0.05):
    """Known linear trend plus a known 12-month pattern, with an optional trace of noise."""
    pattern = np.array([-8.0, -5.0, 1.0, 4.0, 6.0, 3.0, -1.0, -2.0, 0.0, 2.0, 9.0, -9.0])
    t = np.arange(n)
    rng = np.random.default_rng(seed)
    values = 500.0 + 2.0 * t + np.tile(pattern, n // 12 + 1)[:n] + rng.normal(0, noise, n)
    return make_monthly_series(values, start="2017-01")


def test_default_specs_cover_transform_by_seasonal_grid():
    specs = default_arima_specs()
    assert len(specs) == 4
    assert {(s.boxcox, s.seasonal) for s in specs} == {(True, True), (True, False), (False, True), (False, False)}
    assert sorted(s.name for s in specs) == [
        "arima_boxcox_nonseasonal", "arima_boxcox_seasonal", "arima_nonseasonal", "arima_seasonal",
    ]


def test_default_specs_accept_overrides():
    specs = default_arima_specs(stepwise=False, max_p=1)
    assert all(not s.stepwise and s.max_p == 1 for s in specs)


def test_arima_label():
    assert arima_label((0, 0, 0, 0, True), 0, 1, 12) == "ARIMA(0,0,0)(0,1,0)[12] with drift"
    assert arima_label((1, 1, 0, 0, False), 1, 0, 12) == "ARIMA(1,1,1)"
    assert arima_label((2, 0, 1, 1, True), 0, 0, 12) == "ARIMA(2,0,0)(1,0,1)[12] with non-zero mean"


def test_grid_search_ranks_by_aicc():
    rng = np.random.default_rng(1)
    z = np.cumsum(rng.normal(size=60))
    spec = ArimaSpec(seasonal=False, stepwise=False, max_p=1, max_q=1)
    table = optimize_arima_orders(z, spec, d=1, D=0)
    assert len(table) == 8  # p, q in {0, 1} with and without drift
    assert table["AICc"].is_monotonic_increasing


def test_seasonal_arima_recovers_trend_and_season():
    y = _trend_plus_season()
    train, test = split_series(y, ("2017-01", "2021-12"), ("2022-01", "2022-12"))
    report = evaluate_roster(train, test, [ArimaSpec(boxcox=False, seasonal=True)])

    assert not report.failures
    result = report.results[0]
    assert result.fitted.params["seasonal_order"][1] == 1
    assert result.test_rmse < 1.0
    assert result.fitted.description.startswith("ARIMA(")


def test_seasonal_arima_recovers_noiseless_trend_and_season():
    y = _trend_plus_season(noise=0.0)
    train, test = split_series(y, ("2017-01", "2021-12"), ("2022-01", "2022-12"))
    report = evaluate_roster(train, test, [ArimaSpec(boxcox=False, seasonal=True)])

    assert not report.failures
    result = report.results[0]
    assert result.fitted.params["seasonal_order"][1] == 1
    assert result.test_rmse < 1e-3


def test_nonseasonal_arima_has_no_seasonal_terms():
    y = _trend_plus_season(n=48)
    fitted = ArimaSpec(boxcox=False, seasonal=False).fit(y)
    P, D, Q, _ = fitted.params["seasonal_order"]
    assert (P, D, Q) == (0, 0, 0)
    assert "[12]" not in fitted.description
    assert fitted.forecast(12).horizon == 12


def test_boxcox_arima_back_transforms_forecasts():
    y = _trend_plus_season(n=48)
    fitted = ArimaSpec(boxcox=True, seasonal=True).fit(y)
    assert fitted.params["boxcox_lambda"] is not None
    assert "Box-Cox" in fitted.description
    fc = fitted.forecast(12)
    # Back on the original scale, not the transformed one
    assert fc.mean.mean() == pytest.approx(y.iloc[-12:].mean(), rel=0.2)
    assert (fc.lower.to_numpy() < fc.upper.to_numpy()).all()


def test_boxcox_arima_rejects_non_positive_data():
    y = _trend_plus_season(n=48)
    y.iloc[0] = -1.0
    with pytest.raises(DomainError):
        ArimaSpec(boxcox=True).fit(y)


def test_arima_needs_observations():
    with pytest.raises(InsufficientDataError):
        ArimaSpec().fit(make_monthly_series([1.0, 2.0, 3.0]))


def test_residuals_are_nan_during_differencing_burn_in():
    y = _trend_plus_season()
    fitted = ArimaSpec(boxcox=False, seasonal=True).fit(y)
    d = fitted.params["order"][1]
    D = fitted.params["seasonal_order"][1]
    burn = d + 12 * D
    assert fitted.residuals.iloc[:burn].isna().all()
    assert fitted.residuals.iloc[-24:].notna().all()
