from pathlib import Path

import numpy as np
import pandas as pd

import pytest

from sales_forecaster_src import config_utils
from sales_forecaster_src.data_utils import make_monthly_series
from sales_forecaster_src.exceptions import RangeError
from sales_forecaster_src.forecasting_utils import SeasonalNaiveSpec
from sales_forecaster_src.main import main, run_pipeline, setup_cli_parser
from sales_forecaster_src.parsing_utils import parse_float_list, parse_period_range, parse_roster, validate_log_level


def _monthly_sales(n=72, seed=0):
    t = np.arange(n)
    rng = np.random.default_rng(seed)
    values = 15000.0 + 120.0 * t + 1500.0 * np.sin(2 * np.pi * t / 12) + rng.normal(0, 150.0, n)
    return make_monthly_series(values, start="2017-01")


def _write_csv(path: Path, series: pd.Series) -> Path:
    pd.DataFrame({"month": [str(p) for p in series.index], "amount": series.to_numpy()}).to_csv(path, index=False)
    return path


def test_parse_period_range():
    assert parse_period_range("2017-01:2021-12") == ("2017-01", "2021-12")
    assert parse_period_range(["2022-01", "2022-12"]) == ("2022-01", "2022-12")
    assert parse_period_range(None) is None
    with pytest.raises(RangeError):
        parse_period_range("2017-01")
    with pytest.raises(RangeError):
        parse_period_range("2017-01:")


def test_parse_lists_and_log_level():
    assert parse_roster("ETS, arima") == ["ets", "arima"]
    assert parse_roster(None) == ["snaive", "ets", "arima", "tbats"]
    assert parse_float_list("12,6") == [12.0, 6.0]
    assert parse_float_list([12]) == [12.0]
    assert validate_log_level("debug") == "DEBUG"
    with pytest.raises(ValueError):
        validate_log_level("chatty")


def test_cli_parser_leaves_overrides_unset():
    args = setup_cli_parser().parse_args(["--series-csv", "x.csv"])
    assert args.train is None and args.horizon is None and args.selection is None
    assert args.output_dir == "results"


def test_run_pipeline_end_to_end():
    y = _monthly_sales()
    result = run_pipeline(y, train=("2017-01", "2021-12"), test=("2022-01", "2022-12"),
                          candidates=[SeasonalNaiveSpec()], horizon=12)

    assert str(result.train_window) == "2017-01:2021-12"
    assert result.selected == SeasonalNaiveSpec()
    assert result.deployment.horizon == 12
    assert str(result.deployment.forecast.mean.index[0]) == "2023-01"
    assert set(result.deployment.growth_rates) == {2018, 2019, 2020, 2021, 2022, 2023}
    assert len(result.diagnostics.stationarity) == 4


def test_run_pipeline_holds_out_last_months_without_windows():
    result = run_pipeline(_monthly_sales(n=48), candidates=[SeasonalNaiveSpec()], test_periods=6)
    assert str(result.test_window) == "2020-07:2020-12"


def test_cli_writes_result_tables(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(config_utils, "config_manager", None)
    csv = _write_csv(tmp_path / "online_sales.csv", _monthly_sales())
    out_dir = tmp_path / "results"

    status = main([
        "--series-csv", str(csv),
        "--date-column", "month",
        "--roster", "snaive,ets",
        "--horizon", "12",
        "--output-dir", str(out_dir),
        "--log-level", "WARNING",
    ])

    assert status == 0
    for name in ("stationarity.csv", "evaluation.csv", "forecast.csv", "deployment_summary.csv"):
        assert (out_dir / name).exists(), name

    evaluation = pd.read_csv(out_dir / "evaluation.csv")
    assert set(evaluation["model"]) == {"snaive", "ets"}
    assert (evaluation["status"] == "ok").all()

    forecast = pd.read_csv(out_dir / "forecast.csv")
    assert len(forecast) == 12
    summary = pd.read_csv(out_dir / "deployment_summary.csv")
    assert summary["kind"].iloc[-1] == "forecast"
    assert summary["year"].iloc[-1] == 2023


def test_cli_invalid_window_exits_non_zero(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(config_utils, "config_manager", None)
    csv = _write_csv(tmp_path / "online_sales.csv", _monthly_sales())
    status = main([
        "--series-csv", str(csv),
        "--date-column", "month",
        "--roster", "snaive",
        "--train", "2010-01:2021-12",
        "--output-dir", str(tmp_path / "results"),
    ])
    assert status == 1
    assert not (tmp_path / "results" / "evaluation.csv").exists()


def test_cli_missing_series_exits_non_zero(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(config_utils, "config_manager", None)
    assert main(["--series-csv", str(tmp_path / "absent.csv"), "--output-dir", str(tmp_path)]) == 1
