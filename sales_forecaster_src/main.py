# sales_forecaster_src/main.py

"""
Model comparison and forecast workflow for a monthly online-shopping transaction series.

Purpose
-------
- Load the monthly series (one value per month, e.g. 2017-01 to 2022-12)
- Report advisory stationarity diagnostics (Box-Cox lambda, KPSS/ADF on level
  and differenced series, dominant period, seasonal strength)
- Split into adjacent train/test windows
- Fit the roster: seasonal naive, ETS, four ARIMA configurations, TBATS
- Score every candidate on the held-out window and rank by a selection policy
- Refit the selected candidate on the full series, forecast 12 months ahead
  and report the forecast total and year-over-year growth

Configuration-Driven Workflow
-----------------------------
Windows, roster, search bounds and the selection policy are read from the
YAML configuration in config/. CLI arguments override configuration values.
"""

import argparse
import logging
import sys
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from .config_utils import initialize_config, get_config_value
from .data_utils import load_sales_series_csv
from .deploy_utils import DeploymentForecast, deploy
from .diagnostics_utils import DiagnosticsReport, residual_diagnostics, run_diagnostics
from .evaluation_utils import EvaluationReport, evaluate_roster, get_selection_policy, select_candidate
from .exceptions import ForecasterError
from .file_utils import resolve_path, write_pipeline_outputs
from .parsing_utils import parse_float_list, parse_period_range, parse_roster, validate_log_level
from .roster_utils import build_roster
from .split_utils import Window, split_series, windows_from_holdout

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineResult:
    """Everything one run produces."""

    diagnostics: DiagnosticsReport
    train_window: Window
    test_window: Window
    evaluation: EvaluationReport
    selected: Any
    deployment: DeploymentForecast


def run_pipeline(series: pd.Series,
                 train: Optional[Sequence[str]] = None,
                 test: Optional[Sequence[str]] = None,
                 candidates: Optional[List[Any]] = None,
                 selection_policy="lowest_test_rmse",
                 horizon: int = 12,
                 prior_totals: Optional[Dict[int, float]] = None,
                 period: int = 12,
                 test_periods: int = 12,
                 alpha: float = 0.05,
                 boxcox_bounds=(-1.0, 2.0),
                 boxcox_method: str = "loglik",
                 level: float = 95.0) -> PipelineResult:
    """
    Run diagnostics, split, evaluation, selection and deployment on one series.

    Parameters
    ----------
    series : pd.Series
        Validated monthly series
    train, test : (start, end), optional
        Window bounds; when either is None the last `test_periods` months are held out
    candidates : List[Any], optional
        Candidate specs, defaults to the full roster
    selection_policy : str or callable, default="lowest_test_rmse"
        Policy used to rank candidates and pick the one to deploy
    horizon : int, default=12
        Forward forecast length
    prior_totals : Dict[int, float], optional
        Actual annual totals for growth rates; derived from the series when None

    Returns
    -------
    PipelineResult

    Raises
    ------
    RangeError
        If the windows are invalid for the series
    ModelFitError
        If every candidate failed
    """
    diagnostics = run_diagnostics(series, period=period, alpha=alpha,
                                  boxcox_bounds=tuple(boxcox_bounds), boxcox_method=boxcox_method)

    if train is None or test is None:
        train_w, test_w = windows_from_holdout(series, test_periods)
    else:
        train_w, test_w = Window.coerce(train), Window.coerce(test)
    y_train, y_test = split_series(series, train_w, test_w)

    if candidates is None:
        candidates = build_roster(period=period)
    policy = get_selection_policy(selection_policy)

    report = evaluate_roster(y_train, y_test, candidates, policy=policy, level=level, m=period)
    logger.info("Model comparison:\n%s", report.table().to_string())
    selected = select_candidate(report, policy)

    deployment = deploy(selected, series, horizon=horizon, prior_totals=prior_totals, level=level)
    logger.info("Deployed %s: %d-month forecast total %.1f", deployment.description, horizon, deployment.total)
    lb = residual_diagnostics(deployment.fitted.residuals, period=period)
    if not lb.empty:
        logger.info("Ljung-Box on deployed residuals: lag %d, p=%.3f", int(lb.index[0]), float(lb["lb_pvalue"].iloc[0]))
    return PipelineResult(
        diagnostics=diagnostics,
        train_window=train_w,
        test_window=test_w,
        evaluation=report,
        selected=selected,
        deployment=deployment,
    )


def run_forecast_workflow(series_path: Path, output_dir: Path, args: Optional[argparse.Namespace] = None) -> PipelineResult:
    """
    Execute the full workflow for a series CSV and write the result tables.

    Parameters
    ----------
    series_path : Path
        Input CSV holding the monthly series
    output_dir : Path
        Directory for stationarity.csv, evaluation.csv, forecast.csv and
        deployment_summary.csv (created if missing)
    args : Optional[argparse.Namespace]
        CLI arguments; values left as None fall back to the configuration

    Workflow
    --------
    - Load and validate the series
    - Resolve windows, roster, policy and horizon (CLI > config > default)
    - Run the pipeline and export its tables
    """
    logger.info("Starting forecast workflow for: %s", series_path)

    period = int(get_config_value("data.seasonal_period", 12))
    series = load_sales_series_csv(
        series_path,
        value_column=get_config_value("data.value_column", None, args, "value_column"),
        date_column=get_config_value("data.date_column", None, args, "date_column"),
        start=get_config_value("data.start", "2017-01", args, "start"),
    )

    train = parse_period_range(get_config_value("split.train", None, args, "train"))
    test = parse_period_range(get_config_value("split.test", None, args, "test"))
    kinds = parse_roster(get_config_value("models.roster", None, args, "roster"))
    candidates = build_roster(
        kinds,
        period=period,
        arima_options=get_config_value("models.arima", {}),
        tbats_periods=parse_float_list(get_config_value("models.tbats.seasonal_periods", [period])),
    )
    prior_totals = get_config_value("deployment.prior_totals", {}) or None

    result = run_pipeline(
        series,
        train=train,
        test=test,
        candidates=candidates,
        selection_policy=get_config_value("evaluation.selection_policy", "lowest_test_rmse", args, "selection"),
        horizon=int(get_config_value("deployment.horizon", 12, args, "horizon")),
        prior_totals=prior_totals,
        period=period,
        test_periods=int(get_config_value("split.test_periods", 12)),
        alpha=float(get_config_value("diagnostics.alpha", 0.05)),
        boxcox_bounds=get_config_value("diagnostics.boxcox_bounds", [-1.0, 2.0]),
        boxcox_method=get_config_value("diagnostics.boxcox_method", "loglik"),
        level=float(get_config_value("evaluation.interval_level", 95)),
    )

    write_pipeline_outputs(
        output_dir,
        stationarity=result.diagnostics.stationarity_frame(),
        evaluation=result.evaluation.table(),
        forecast=result.deployment.forecast.to_frame(),
        deployment=result.deployment.summary_frame(),
    )
    for year, rate in sorted(result.deployment.growth_rates.items()):
        logger.info("Growth %d: %.4f", year, rate)
    logger.info("Forecast workflow completed successfully")
    return result


def setup_cli_parser() -> argparse.ArgumentParser:
    """
    Set up the command-line argument parser.

    Options left unset default to None so that configuration values apply.

    Returns
    -------
    argparse.ArgumentParser
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        description="Compare classical forecasting models on a monthly sales series and forecast the next year."
    )
    parser.add_argument(
        "--series-csv", type=str, required=True,
        help="CSV with the monthly series (one numeric column, optional date column)."
    )
    parser.add_argument(
        "--config", type=str, default=None,
        help="YAML configuration file. Defaults to config/default.yaml."
    )
    parser.add_argument(
        "--value-column", type=str, default=None,
        help="Name of the value column. Defaults to the first numeric column."
    )
    parser.add_argument(
        "--date-column", type=str, default=None,
        help="Name of the date column. Without one, rows are consecutive months from --start."
    )
    parser.add_argument(
        "--start", type=str, default=None,
        help="Month of the first row when there is no date column (e.g. '2017-01')."
    )
    parser.add_argument(
        "--train", type=str, default=None,
        help="Training window as START:END, e.g. '2017-01:2021-12'."
    )
    parser.add_argument(
        "--test", type=str, default=None,
        help="Test window as START:END, e.g. '2022-01:2022-12'. Must start the month after training ends."
    )
    parser.add_argument(
        "--roster", type=str, default=None,
        help="Comma-separated model kinds from snaive, ets, arima, tbats."
    )
    parser.add_argument(
        "--horizon", type=int, default=None,
        help="Forward forecast horizon in months."
    )
    parser.add_argument(
        "--selection", type=str, default=None,
        choices=["lowest_test_rmse", "lowest_train_rmse", "lowest_information_criterion"],
        help="Policy used to pick the deployed model."
    )
    parser.add_argument(
        "--output-dir", type=str, default="results",
        help="Directory to write result tables."
    )
    parser.add_argument(
        "--log-level", type=str, default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging verbosity level."
    )
    return parser


def setup_logging(log_level: str) -> None:
    """
    Configure logging with specified level and warning filters.

    Parameters
    ----------
    log_level : str
        Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    level = validate_log_level(log_level)
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
        datefmt="%H:%M:%S",
    )

    # Configure warnings based on log level
    if level == "DEBUG":
        warnings.resetwarnings()
        warnings.filterwarnings("default")
    else:
        from statsmodels.tools.sm_exceptions import ConvergenceWarning
        warnings.filterwarnings("ignore", category=ConvergenceWarning)
        warnings.filterwarnings("ignore", category=FutureWarning)
        warnings.filterwarnings("ignore", category=UserWarning, module="statsmodels")


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Main entry point for the online sales forecaster.

    Returns
    -------
    int
        Process exit status: 0 on success, 1 when the run fails on bad input,
        configuration or when no candidate could be fitted
    """
    parser = setup_cli_parser()
    args = parser.parse_args(argv)

    setup_logging(args.log_level)

    # Resolve paths
    base_dir = Path(__file__).resolve().parent.parent  # Go up from sales_forecaster_src to project root

    try:
        initialize_config(resolve_path(args.config, base_dir) if args.config else None)
        series_path = resolve_path(args.series_csv, base_dir)
        output_dir = resolve_path(args.output_dir, base_dir)
        run_forecast_workflow(series_path, output_dir, args)
    except ForecasterError as e:
        logger.error("Run failed: %s: %s", type(e).__name__, e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
