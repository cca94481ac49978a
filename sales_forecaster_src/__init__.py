# sales_forecaster_src/__init__.py

"""
Online Sales Forecaster - Model Comparison and Forecast Package

This package compares classical forecasting models on a monthly online
shopping transaction series, scores them on a held-out window and refits the
selected model on the full series to forecast the following year.

Key Components
--------------
- config_utils: Configuration management and CLI override support
- data_utils: Series loading and validation
- split_utils: Train/test window handling
- transform_utils: Box-Cox and differencing transforms
- diagnostics_utils: Stationarity tests, periodogram, seasonal strength
- forecasting_utils: Seasonal naive, ETS and TBATS candidates
- arima_utils: Automatic ARIMA configurations and order search
- roster_utils: Candidate roster construction and failure-isolated fitting
- metrics_utils: Forecast accuracy measures and the Diebold-Mariano test
- evaluation_utils: Out-of-sample evaluation and selection policies
- deploy_utils: Full-series refit, forward forecast and growth rates
- file_utils: Result table export and path utilities
- main: Main entry point and workflow orchestration

Usage
-----
The package can be used as a command-line tool or imported for programmatic use:

    # Command-line usage
    python -m sales_forecaster_src.main --series-csv data/online_sales.csv

    # Programmatic usage
    from sales_forecaster_src import load_sales_series_csv, run_pipeline
"""

__version__ = "1.0.0"
__author__ = "Online Sales Forecaster Development Team"

# Import key functions for easy access
from .config_utils import initialize_config, get_config_value
from .data_utils import load_sales_series_csv, make_monthly_series
from .split_utils import Window, split_series
from .roster_utils import build_roster, default_roster, fit_roster
from .evaluation_utils import evaluate_roster, select_candidate
from .deploy_utils import deploy, growth_rate
from .main import main, run_pipeline

__all__ = [
    # Core functionality
    "main",
    "run_pipeline",
    "initialize_config",
    "get_config_value",
    "load_sales_series_csv",
    "make_monthly_series",
    "Window",
    "split_series",
    "build_roster",
    "default_roster",
    "fit_roster",
    "evaluate_roster",
    "select_candidate",
    "deploy",
    "growth_rate",
    # Version info
    "__version__",
    "__author__"
]
