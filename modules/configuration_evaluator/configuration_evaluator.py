import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import pandas as pd
from sklearn.base import clone

from modules.proposal_strategy import Configuration
from utils.exceptions import EvaluationFailure, RefitFailure
from utils.model_loader import safe_dump_model
from utils import constants
from .cross_validation import CrossValidationHarness, empty_metrics, empty_weights
from .metrics_expression import MetricsExpression


@dataclass(frozen=True)
class EvaluationResult:
    """Outcome of evaluating one configuration. Immutable once created."""

    configuration: Configuration
    metric: float
    error: Optional[str] = None
    metrics: pd.DataFrame = field(default_factory=empty_metrics, repr=False, compare=False)
    weights: pd.DataFrame = field(default_factory=empty_weights, repr=False, compare=False)
    model_path: Optional[Path] = None

    @property
    def index(self) -> int:
        return self.configuration.index

    @property
    def params(self) -> Dict[str, float]:
        return self.configuration.params

    @property
    def failed(self) -> bool:
        return self.error is not None


class ConfigurationEvaluator:
    """
    Trains and scores one configuration of the wrapped estimator.

    A failing configuration never raises: its error message is recorded and
    its metric is set to ``nan_replacement`` (NaN when not configured), so a
    single bad configuration cannot abort the search.
    """

    def __init__(self, estimator: Any, X, y, settings, logger: logging.Logger,
                 harness: Optional[CrossValidationHarness] = None):
        self.estimator = estimator
        self.X = X
        self.y = y
        self.settings = settings
        self.logger = logger
        self.harness = harness or CrossValidationHarness(
            num_folds=settings.num_folds,
            n_jobs=settings.cv_num_threads,
            scoring=settings.scoring,
            stratified=settings.stratified,
            seed=settings.seed,
            logger=logger,
        )
        self.expression = MetricsExpression(settings.metrics_expression)
        self.temp_dir: Optional[Path] = settings.path_for_temp_models
        self._check_bindings()

    def _check_bindings(self) -> None:
        """
        Every searched parameter must exist on the wrapped estimator.

        Raises:
            ConfigurationError: a binding names a parameter the estimator lacks.
        """
        for pair in self.settings.param_domains:
            pair.binding.get(self.estimator)

    def build_estimator(self, params: Dict[str, float]) -> Any:
        """Fresh clone of the wrapped estimator with ``params`` applied."""
        estimator = clone(self.estimator)
        for pair in self.settings.param_domains:
            if pair.param_name in params:
                pair.apply(estimator, params[pair.param_name])
        return estimator

    def temp_model_path(self, index: int) -> Optional[Path]:
        if self.temp_dir is None:
            return None
        return self.temp_dir / constants.TEMP_MODEL_TEMPLATE.format(index=index)

    def evaluate(self, configuration: Configuration) -> EvaluationResult:
        metrics, weights = empty_metrics(), empty_weights()
        model_path = None
        try:
            estimator = self.build_estimator(configuration.params)
            cv = self.harness.evaluate(estimator, self.X, self.y)
            metrics, weights = cv.metrics, cv.weights
            if cv.failed:
                raise EvaluationFailure(cv.error)

            metric = self.expression.evaluate(cv.metrics)

            if self.temp_dir is not None:
                model, full_weights = self.harness.fit_full(estimator, self.X, self.y)
                model_path = safe_dump_model(model, self.temp_model_path(configuration.index))
                weights = pd.concat([weights, full_weights], ignore_index=True)
        except Exception as e:
            message = str(e) if isinstance(e, EvaluationFailure) else f"{type(e).__name__}: {e}"
            self.logger.warning(f"Configuration {configuration.index} {configuration.params} failed: {message}")
            return EvaluationResult(
                configuration=configuration,
                metric=self._replace_nan(math.nan),
                error=message,
                metrics=metrics,
                weights=weights,
                model_path=None,
            )

        return EvaluationResult(
            configuration=configuration,
            metric=self._replace_nan(metric),
            metrics=metrics,
            weights=weights,
            model_path=model_path,
        )

    def refit(self, params: Dict[str, float]) -> Tuple[Any, pd.DataFrame]:
        """
        Fit the winning parameters on the full dataset.

        Raises:
            RefitFailure: the winning configuration cannot be fitted.
        """
        try:
            return self.harness.fit_full(self.build_estimator(params), self.X, self.y)
        except Exception as e:
            raise RefitFailure(f"Refit of winning configuration {params} failed: {e}") from e

    def _replace_nan(self, value: float) -> float:
        if math.isnan(value) and self.settings.nan_replacement is not None:
            return float(self.settings.nan_replacement)
        return value
