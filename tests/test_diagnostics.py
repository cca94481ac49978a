import numpy as np
import pandas as pd

import pytest

from sales_forecaster_src import diagnostics_utils
from sales_forecaster_src.data_utils import make_monthly_series
from sales_forecaster_src.diagnostics_utils import (
    StationarityResult,
    adf_decides,
    adf_test,
    both_tests_agree,
    decide_stationarity,
    dominant_period,
    kpss_decides,
    kpss_test,
    ndiffs,
    nsdiffs,
    residual_diagnostics,
    run_diagnostics,
    seasonal_strength,
    stationarity_frame,
    stationarity_report,
)
from sales_forecaster_src.exceptions import InsufficientDataError


def _seasonal_trend(n=72, slope=1.5, amplitude=20.0, noise=0.0, seed=0):
    t = np.arange(n)
    rng = np.random.default_rng(seed)
    values = 200.0 + slope * t + amplitude * np.sin(2 * np.pi * t / 12) + rng.normal(0, noise, n)
    return make_monthly_series(values)


def test_tests_report_nan_for_short_series():
    short = np.arange(10.0)
    assert all(np.isnan(v) for v in adf_test(short))
    assert all(np.isnan(v) for v in kpss_test(short))


def test_stationarity_report_covers_all_transforms():
    results = stationarity_report(_seasonal_trend(noise=1.0), period=12)
    assert [r.transform for r in results] == [
        "level", "first difference", "seasonal(12) difference", "first + seasonal(12) difference",
    ]
    df = stationarity_frame(results)
    assert list(df.columns) == [
        "transform", "n", "kpss_stat", "kpss_p", "adf_stat", "adf_p",
        "kpss_says_stationary", "adf_says_stationary",
    ]
    assert df.loc[0, "n"] == 72
    assert df.loc[2, "n"] == 60


def test_stationarity_report_skips_seasonal_transforms_on_short_series():
    results = stationarity_report(_seasonal_trend(n=20, noise=1.0), period=12)
    assert [r.transform for r in results] == ["level", "first difference"]


def test_trending_level_is_non_stationary_by_kpss():
    results = stationarity_report(_seasonal_trend(noise=1.0), period=12)
    level = results[0]
    assert not level.kpss_says_stationary


def test_each_test_decides_in_its_own_terms():
    r = StationarityResult("level", 60, 0.9, 0.01, -1.0, 0.60)
    assert not r.kpss_says_stationary
    assert not r.adf_says_stationary
    assert r.tests_agree

    r = StationarityResult("first difference", 59, 0.1, 0.10, -1.0, 0.30)
    assert r.kpss_says_stationary
    assert not r.adf_says_stationary
    assert not r.tests_agree


def test_decision_is_supplied_by_caller():
    results = [
        StationarityResult("level", 60, 0.9, 0.01, -4.0, 0.001),
        StationarityResult("first difference", 59, 0.1, 0.10, -5.0, 0.001),
    ]
    assert decide_stationarity(results, kpss_decides) == {"level": False, "first difference": True}
    assert decide_stationarity(results, both_tests_agree) == {"level": False, "first difference": True}
    assert decide_stationarity(results, adf_decides) == {"level": True, "first difference": True}
    assert decide_stationarity(results, lambda r: r.adf_pvalue < 0.01) == {"level": True, "first difference": True}


def test_dominant_period_of_monthly_cycle():
    t = np.arange(72)
    peak = dominant_period(np.sin(2 * np.pi * t / 12))
    assert peak.period == pytest.approx(12.0)
    assert peak.frequency == pytest.approx(1.0 / 12.0)


def test_dominant_period_needs_observations():
    with pytest.raises(InsufficientDataError):
        dominant_period([1.0, 2.0, 3.0])


def test_seasonal_strength_and_nsdiffs():
    seasonal = _seasonal_trend(noise=0.5, seed=1)
    assert seasonal_strength(seasonal, 12) > 0.9
    assert nsdiffs(seasonal, 12) == 1

    rng = np.random.default_rng(3)
    noise = make_monthly_series(rng.normal(size=72))
    assert seasonal_strength(noise, 12) < 0.64
    assert nsdiffs(noise, 12) == 0

    with pytest.raises(InsufficientDataError):
        seasonal_strength(make_monthly_series(np.arange(20.0)), 12)


def test_ndiffs_random_walk_and_white_noise():
    rng = np.random.default_rng(11)
    walk = make_monthly_series(np.cumsum(rng.normal(0.5, 1.0, size=120)))
    noise = make_monthly_series(rng.normal(size=120))
    assert ndiffs(walk) >= 1
    assert ndiffs(noise) == 0
    assert ndiffs(make_monthly_series(np.full(30, 5.0))) == 0


def test_ndiffs_keeps_difference_when_result_is_too_short_to_test(monkeypatch: pytest.MonkeyPatch):
    # Level rejects stationarity; the differenced series is too short to test
    pvalues = iter([(1.0, 0.01), (float("nan"), float("nan"))])
    monkeypatch.setattr(diagnostics_utils, "kpss_test", lambda x: next(pvalues))

    assert ndiffs(make_monthly_series(np.arange(12.0) ** 2)) == 1


def test_residual_diagnostics_ljung_box():
    rng = np.random.default_rng(5)
    resid = pd.Series(rng.normal(size=60))
    table = residual_diagnostics(resid, period=12)
    assert list(table.columns) == ["lb_stat", "lb_pvalue"]
    assert table.index[0] == 12
    assert table["lb_pvalue"].iloc[0] > 0.01

    empty = residual_diagnostics(pd.Series([0.1, -0.2, 0.3]), period=12)
    assert empty.empty


def test_run_diagnostics_records_notes_instead_of_raising():
    values = _seasonal_trend(noise=1.0).to_numpy().copy()
    values[5] = 0.0
    report = run_diagnostics(make_monthly_series(values), period=12)

    assert report.boxcox_lambda is None
    assert any("Box-Cox" in note for note in report.notes)
    assert report.periodogram is not None
    assert report.suggested_D in (0, 1)
    assert len(report.stationarity_frame()) == 4


def test_run_diagnostics_on_positive_series():
    report = run_diagnostics(_seasonal_trend(noise=1.0), period=12)
    assert report.n == 72
    assert -1.0 <= report.boxcox_lambda <= 2.0
    assert report.suggested_D == 1
    assert report.notes == []
