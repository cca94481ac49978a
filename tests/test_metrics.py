import numpy as np
import pandas as pd

import pytest

from sales_forecaster_src.data_utils import make_monthly_series
from sales_forecaster_src.metrics_utils import (
    accuracy,
    acf1,
    align_actual_predicted,
    diebold_mariano,
    mae,
    mape,
    mase,
    me,
    mpe,
    rmse,
    theil_u2,
    to_1d_array,
)


@pytest.mark.parametrize("bias", [-3.5, 0.25, 7.0])
def test_constant_bias_rmse_equals_bias(bias):
    actual = make_monthly_series([10.0, 12.0, 9.0, 15.0, 11.0, 20.0], start="2022-01")
    predicted = actual + bias
    assert rmse(actual, predicted) == pytest.approx(abs(bias))
    assert mae(actual, predicted) == pytest.approx(abs(bias))
    # Errors are actual minus predicted
    assert me(actual, predicted) == pytest.approx(-bias)


def test_alignment_uses_common_periods():
    actual = make_monthly_series([1.0, 2.0, 3.0, 4.0], start="2022-01")
    predicted = make_monthly_series([2.0, 3.0, 4.0, 5.0], start="2022-02")
    a, p = align_actual_predicted(actual, predicted)
    assert np.allclose(a, [2.0, 3.0, 4.0])
    assert np.allclose(p, [2.0, 3.0, 4.0])
    assert rmse(actual, predicted) == 0.0


def test_positional_inputs_must_match_in_length():
    with pytest.raises(ValueError):
        rmse([1.0, 2.0], [1.0])


def test_non_finite_pairs_are_dropped():
    assert rmse([1.0, np.nan, 3.0], [2.0, 5.0, 3.0]) == pytest.approx(np.sqrt(0.5))
    assert np.isnan(rmse([np.nan], [1.0]))
    assert np.allclose(to_1d_array([1.0, np.inf, 2.0]), [1.0, 2.0])


def test_percentage_errors():
    actual = np.array([100.0, 200.0, 0.0])
    predicted = np.array([90.0, 220.0, 5.0])
    # The zero actual is skipped
    assert mape(actual, predicted) == pytest.approx(10.0)
    assert mpe(actual, predicted) == pytest.approx(0.0)


def test_mase_scales_by_seasonal_naive():
    train = np.arange(24, dtype=float)  # seasonal naive in-sample error is 12 everywhere
    assert mase([30.0, 31.0], [36.0, 25.0], train, m=12) == pytest.approx(0.5)
    assert np.isnan(mase([1.0], [1.0], np.arange(10.0), m=12))
    assert np.isnan(mase([1.0], [1.0], np.ones(30), m=12))


def test_acf1_of_alternating_errors():
    actual = np.zeros(10)
    predicted = np.array([1.0, -1.0] * 5)
    assert acf1(actual, predicted) < -0.8
    assert np.isnan(acf1([1.0, 2.0], [1.0, 2.0]))


def test_theil_u2():
    actual = np.array([100.0, 110.0, 120.0, 130.0])
    assert theil_u2(actual, actual) == 0.0
    # The no-change forecast scores exactly 1
    naive = np.array([np.nan, 100.0, 110.0, 120.0])
    assert theil_u2(pd.Series(actual), pd.Series(naive)) == pytest.approx(1.0)


def test_accuracy_keys():
    actual = make_monthly_series(np.linspace(10, 20, 12))
    out = accuracy(actual, actual + 1.0, train=np.arange(30.0))
    assert list(out) == ["ME", "RMSE", "MAE", "MPE", "MAPE", "MASE", "ACF1", "TheilU"]
    in_sample = accuracy(actual, actual + 1.0, train=actual, out_of_sample=False)
    assert "TheilU" not in in_sample
    assert in_sample["RMSE"] == pytest.approx(1.0)


def test_diebold_mariano():
    rng = np.random.default_rng(2)
    actual = rng.normal(size=40)
    good = actual + rng.normal(0, 0.1, 40)
    bad = actual + rng.normal(0, 2.0, 40)
    stat, p = diebold_mariano(actual, good, bad)
    assert stat < 0
    assert 0.0 <= p < 0.05

    stat, p = diebold_mariano(actual, good, good)
    assert np.isnan(stat) and np.isnan(p)

    stat, p = diebold_mariano([1.0, 2.0], [1.0, 2.0], [2.0, 3.0])
    assert np.isnan(stat)
