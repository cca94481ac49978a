# sales_forecaster_src/evaluation_utils.py

"""
Scoring of fitted candidates on a held-out window and model selection.

Selection is an explicit policy: a callable mapping an EvaluationResult to a
score where lower is better. The report is ranked by the active policy and
`select_candidate` returns the best candidate spec, not its fitted instance,
so the deployer can refit it on the full series.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from .exceptions import ConfigurationError, ModelFitError
from .forecasting_utils import FitFailure, FittedModel, Forecast
from .metrics_utils import accuracy, diebold_mariano
from .roster_utils import fit_roster

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EvaluationResult:
    """Accuracy of one fitted candidate on its training and test windows."""

    fitted: FittedModel
    forecast: Forecast
    train_accuracy: Dict[str, float]
    test_accuracy: Dict[str, float]

    @property
    def name(self) -> str:
        return self.fitted.name

    @property
    def candidate(self) -> Any:
        return self.fitted.candidate

    @property
    def train_rmse(self) -> float:
        return self.train_accuracy.get("RMSE", float("nan"))

    @property
    def test_rmse(self) -> float:
        return self.test_accuracy.get("RMSE", float("nan"))

    @property
    def information_criterion(self) -> float:
        return self.fitted.information_criterion


SelectionPolicy = Callable[[EvaluationResult], float]


def lowest_test_rmse(result: EvaluationResult) -> float:
    return result.test_rmse


def lowest_train_rmse(result: EvaluationResult) -> float:
    return result.train_rmse


def lowest_information_criterion(result: EvaluationResult) -> float:
    return result.information_criterion


SELECTION_POLICIES: Dict[str, SelectionPolicy] = {
    "lowest_test_rmse": lowest_test_rmse,
    "lowest_train_rmse": lowest_train_rmse,
    "lowest_information_criterion": lowest_information_criterion,
}


def get_selection_policy(policy) -> SelectionPolicy:
    """Resolve a policy name or pass a callable through."""
    if callable(policy):
        return policy
    try:
        return SELECTION_POLICIES[policy]
    except KeyError:
        raise ConfigurationError(
            f"Unknown selection policy '{policy}'. Must be one of: {list(SELECTION_POLICIES)}"
        ) from None


def _policy_key(policy: SelectionPolicy, result: EvaluationResult):
    score = policy(result)
    # Undefined scores (e.g. no information criterion for seasonal naive) rank after defined ones
    if score is None or not np.isfinite(score):
        return (1, 0.0)
    return (0, float(score))


@dataclass(frozen=True)
class EvaluationReport:
    """Results for every fitted candidate plus the candidates that failed."""

    results: List[EvaluationResult]
    failures: List[FitFailure] = field(default_factory=list)
    policy: SelectionPolicy = lowest_test_rmse

    def ranked(self, policy: Optional[SelectionPolicy] = None) -> List[EvaluationResult]:
        policy = get_selection_policy(policy or self.policy)
        return sorted(self.results, key=lambda r: _policy_key(policy, r))

    def get(self, name: str) -> EvaluationResult:
        for result in self.results:
            if result.name == name:
                return result
        raise KeyError(name)

    def table(self, policy: Optional[SelectionPolicy] = None) -> pd.DataFrame:
        """
        Ranked comparison table, one row per candidate.

        Columns: model, status, description, train_RMSE, test_RMSE,
        information_criterion, test_MAE, test_MAPE, test_MASE, error.
        Failed candidates follow the fitted ones with status 'failed'.
        """
        rows = []
        for result in self.ranked(policy):
            rows.append({
                "model": result.name,
                "status": "ok",
                "description": result.fitted.description,
                "train_RMSE": result.train_rmse,
                "test_RMSE": result.test_rmse,
                "information_criterion": result.information_criterion,
                "test_MAE": result.test_accuracy.get("MAE", float("nan")),
                "test_MAPE": result.test_accuracy.get("MAPE", float("nan")),
                "test_MASE": result.test_accuracy.get("MASE", float("nan")),
                "error": "",
            })
        for failure in self.failures:
            rows.append({
                "model": failure.name,
                "status": "failed",
                "description": "",
                "train_RMSE": float("nan"),
                "test_RMSE": float("nan"),
                "information_criterion": float("nan"),
                "test_MAE": float("nan"),
                "test_MAPE": float("nan"),
                "test_MASE": float("nan"),
                "error": f"{failure.error_type}: {failure.message}",
            })
        df = pd.DataFrame(rows, columns=[
            "model", "status", "description", "train_RMSE", "test_RMSE",
            "information_criterion", "test_MAE", "test_MAPE", "test_MASE", "error",
        ])
        df.index = pd.RangeIndex(1, len(df) + 1, name="rank")
        return df

    def accuracy_frame(self) -> pd.DataFrame:
        """Full training and test accuracy measures per candidate, long format."""
        frames = []
        for result in self.results:
            for split, acc in (("train", result.train_accuracy), ("test", result.test_accuracy)):
                frames.append(pd.DataFrame([acc]).assign(model=result.name, set=split))
        if not frames:
            return pd.DataFrame(columns=["model", "set"])
        df = pd.concat(frames, ignore_index=True)
        return df[["model", "set"] + [c for c in df.columns if c not in ("model", "set")]]


def select_candidate(report: EvaluationReport, policy: Optional[SelectionPolicy] = None) -> Any:
    """
    Apply a selection policy and return the winning candidate spec.

    Raises
    ------
    ModelFitError
        If no candidate was fitted successfully
    """
    ranked = report.ranked(policy)
    if not ranked:
        raise ModelFitError("No candidate was fitted successfully; nothing to select")
    best = ranked[0]
    logger.info("Selected %s (%s): train RMSE=%.4f, test RMSE=%.4f",
                best.name, best.fitted.description, best.train_rmse, best.test_rmse)
    return best.candidate


def evaluate_fitted(fitted: FittedModel, test: pd.Series, level: float = 95.0, m: int = 12) -> EvaluationResult:
    """Forecast a fitted candidate over the test window and score both windows."""
    forecast = fitted.forecast(len(test), level=level)
    train_acc = accuracy(fitted.train, fitted.fitted_values, train=fitted.train, m=m, out_of_sample=False)
    test_acc = accuracy(test, forecast.mean, train=fitted.train, m=m)
    logger.info("%s: train RMSE=%.4f, test RMSE=%.4f", fitted.name, train_acc["RMSE"], test_acc["RMSE"])
    return EvaluationResult(fitted=fitted, forecast=forecast, train_accuracy=train_acc, test_accuracy=test_acc)


def evaluate_roster(train: pd.Series,
                    test: pd.Series,
                    candidates: Sequence[Any],
                    policy=lowest_test_rmse,
                    level: float = 95.0,
                    m: int = 12) -> EvaluationReport:
    """
    Fit every candidate on `train`, forecast len(test) periods and score them.

    A candidate whose fit or forecast raises is recorded as a failure and the
    rest are still evaluated.

    Parameters
    ----------
    train, test : pd.Series
        Adjacent training and held-out windows
    candidates : Sequence[Any]
        Candidate specs (see roster_utils.build_roster)
    policy : str or callable, default=lowest_test_rmse
        Ranking used by the report
    level : float, default=95.0
        Prediction interval level for the test forecasts
    m : int, default=12
        Seasonal period for MASE

    Returns
    -------
    EvaluationReport
    """
    fitted_models, failures = fit_roster(train, candidates)
    results: List[EvaluationResult] = []
    for fitted in fitted_models:
        try:
            results.append(evaluate_fitted(fitted, test, level=level, m=m))
        except Exception as e:
            logger.warning("%s could not be evaluated: %s: %s", fitted.name, type(e).__name__, e)
            failures.append(FitFailure(candidate=fitted.candidate, error_type=type(e).__name__, message=str(e)))
    return EvaluationReport(results=results, failures=failures, policy=get_selection_policy(policy))


def compare_candidates(report: EvaluationReport,
                       test: pd.Series,
                       first: str,
                       second: str,
                       power: int = 2) -> Dict[str, float]:
    """
    Diebold-Mariano comparison of two candidates' test forecasts.

    Returns
    -------
    Dict[str, float]
        {'DM_t': statistic, 'DM_p': two-sided p-value}; a negative statistic
        means `first` has the lower loss
    """
    a = report.get(first).forecast.mean
    b = report.get(second).forecast.mean
    dm_t, dm_p = diebold_mariano(test, a, b, h=1, power=power)
    return {"DM_t": dm_t, "DM_p": dm_p}
