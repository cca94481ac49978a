import numpy as np
import pandas as pd

import pytest

from sales_forecaster_src.data_utils import make_monthly_series
from sales_forecaster_src.exceptions import DomainError, InsufficientDataError
from sales_forecaster_src.transform_utils import (
    apply_differencing,
    boxcox_lambda,
    boxcox_transform,
    difference,
    get_transform_description,
    inv_boxcox_transform,
    seasonal_difference,
)


@pytest.mark.parametrize("lam", [0.0, 0.5, 1.0, -0.3, 1.7])
def test_boxcox_inverse_recovers_input(lam):
    x = np.array([0.5, 1.0, 3.0, 42.0, 1234.5])
    y = boxcox_transform(x, lam)
    assert np.allclose(inv_boxcox_transform(y, lam), x, rtol=1e-9)


def test_boxcox_zero_lambda_is_log():
    x = np.array([1.0, np.e, 10.0])
    assert np.allclose(boxcox_transform(x, 0.0), np.log(x))


def test_boxcox_keeps_series_index():
    s = make_monthly_series([1.0, 2.0, 3.0])
    out = boxcox_transform(s, 0.5)
    assert isinstance(out, pd.Series)
    assert out.index.equals(s.index)


@pytest.mark.parametrize("bad", [[1.0, 0.0, 2.0], [1.0, -3.0], [1.0, np.nan]])
def test_boxcox_rejects_non_positive(bad):
    with pytest.raises(DomainError):
        boxcox_transform(np.array(bad), 0.5)
    with pytest.raises(DomainError):
        boxcox_lambda(np.array(bad))


def test_boxcox_lambda_within_bounds_and_near_zero_for_lognormal():
    rng = np.random.default_rng(7)
    x = np.exp(rng.normal(3.0, 0.5, size=500))
    lam = boxcox_lambda(x)
    assert -1.0 <= lam <= 2.0
    assert abs(lam) < 0.25


def test_boxcox_lambda_guerrero_needs_two_seasons():
    with pytest.raises(InsufficientDataError):
        boxcox_lambda(np.arange(1.0, 20.0), method="guerrero", period=12)
    lam = boxcox_lambda(np.arange(1.0, 49.0), method="guerrero", period=12)
    assert -1.0 <= lam <= 2.0


def test_boxcox_lambda_unknown_method():
    with pytest.raises(ValueError):
        boxcox_lambda(np.arange(1.0, 30.0), method="nope")


def test_difference_is_linear():
    rng = np.random.default_rng(0)
    x = make_monthly_series(rng.normal(size=40))
    y = make_monthly_series(rng.normal(size=40))
    a, b = 2.5, -0.75
    lhs = difference(a * x + b * y)
    rhs = a * difference(x) + b * difference(y)
    assert np.allclose(lhs.to_numpy(), rhs.to_numpy())

    lhs_s = seasonal_difference(a * x + b * y, 12)
    rhs_s = a * seasonal_difference(x, 12) + b * seasonal_difference(y, 12)
    assert np.allclose(lhs_s.to_numpy(), rhs_s.to_numpy())


def test_second_difference_of_linear_series_is_zero():
    s = make_monthly_series(3.0 + 2.0 * np.arange(30))
    dd = apply_differencing(s, d=2)
    assert len(dd) == 28
    assert np.allclose(dd.to_numpy(), 0.0)


def test_seasonal_difference_of_periodic_series_is_zero():
    pattern = np.array([5, 3, 8, 1, 9, 2, 7, 4, 6, 0, 11, 10], dtype=float)
    s = make_monthly_series(np.tile(pattern, 3))
    sd = seasonal_difference(s, 12)
    assert len(sd) == 24
    assert np.allclose(sd.to_numpy(), 0.0)
    assert str(sd.index[0]) == "2018-01"


def test_seasonal_difference_needs_two_seasons():
    with pytest.raises(InsufficientDataError) as excinfo:
        seasonal_difference(make_monthly_series(np.arange(23.0)), 12)
    assert excinfo.value.required == 24
    assert excinfo.value.available == 23


def test_transform_descriptions():
    assert get_transform_description(0, 0) == "level"
    assert get_transform_description(1, 0) == "first difference"
    assert get_transform_description(0, 1) == "seasonal(12) difference"
    assert get_transform_description(1, 1) == "first + seasonal(12) difference"
