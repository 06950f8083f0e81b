from __future__ import annotations

import enum
import math
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

from modules.param_domain import ParamDomainPair
from utils.exceptions import ConfigurationError
from utils import constants

PathLike = Union[str, Path]

RESERVED_COLUMNS = {constants.CONFIGURATION_INDEX, constants.RESULTING_METRIC, constants.ERROR}


class SearchMode(str, enum.Enum):
    """Proposal strategy selector."""

    RANDOM = "RANDOM"
    GAUSSIAN_PROCESS = "GAUSSIAN_PROCESS"

    @classmethod
    def parse(cls, value: Union[str, "SearchMode"]) -> "SearchMode":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).upper())
        except ValueError:
            raise ConfigurationError(
                f"Unknown search mode '{value}'. Available: {[m.value for m in cls]}"
            )


@dataclass(frozen=True)
class SearchSettings:
    """Frozen settings for one search run. Build through SearchSettingsBuilder."""

    param_domains: Tuple[ParamDomainPair, ...]
    search_mode: SearchMode = SearchMode.RANDOM
    max_iter: int = 30
    max_no_improve_iters: int = 10
    tol: float = 0.0
    top_k_for_tolerance: int = 3
    epsilon_greedy: float = 0.0
    num_threads: int = 1

    # Evaluation
    metrics_expression: str = constants.DEFAULT_METRICS_EXPRESSION
    nan_replacement: Optional[float] = None
    num_folds: int = 3
    cv_num_threads: int = 1
    scoring: Tuple[str, ...] = ("accuracy",)
    stratified: bool = True

    # Gaussian Process
    min_observations: int = 2
    gp_restarts: int = 10

    # Reproducibility / IO
    seed: Optional[int] = None
    path_for_temp_models: Optional[Path] = None
    priors_path: Optional[Path] = None
    output_dir: Optional[Path] = None
    save_excel_copy: bool = False

    @property
    def param_names(self) -> Tuple[str, ...]:
        return tuple(pair.param_name for pair in self.param_domains)

    def evolve(self, **changes) -> "SearchSettings":
        """Return a validated copy with some fields replaced."""
        updated = replace(self, **changes)
        _validate(updated)
        return updated


class SearchSettingsBuilder:
    """
    Fluent builder for SearchSettings.

    Examples
    --------
    >>> settings = (
    ...     SearchSettingsBuilder()
    ...     .param_domains(ParamDomainPair.of("C", 0.01, 10.0))
    ...     .search_mode("GAUSSIAN_PROCESS")
    ...     .max_iter(20)
    ...     .build()
    ... )
    """

    def __init__(self) -> None:
        self._pairs: list[ParamDomainPair] = []
        self._display_names: dict[str, str] = {}
        self._options: dict = {}

    # ------------------------------------------------------------------
    # Search space
    # ------------------------------------------------------------------
    def param_domains(self, *pairs: ParamDomainPair) -> "SearchSettingsBuilder":
        self._pairs.extend(pairs)
        return self

    def param_names(self, names: Dict[str, str]) -> "SearchSettingsBuilder":
        self._display_names.update(names)
        return self

    # ------------------------------------------------------------------
    # Strategy and termination
    # ------------------------------------------------------------------
    def search_mode(self, mode: Union[str, SearchMode]) -> "SearchSettingsBuilder":
        self._options['search_mode'] = SearchMode.parse(mode)
        return self

    def max_iter(self, value: int) -> "SearchSettingsBuilder":
        self._options['max_iter'] = value
        return self

    def max_no_improve_iters(self, value: int) -> "SearchSettingsBuilder":
        self._options['max_no_improve_iters'] = value
        return self

    def tol(self, value: float) -> "SearchSettingsBuilder":
        self._options['tol'] = value
        return self

    def top_k_for_tolerance(self, value: int) -> "SearchSettingsBuilder":
        self._options['top_k_for_tolerance'] = value
        return self

    def epsilon_greedy(self, value: float) -> "SearchSettingsBuilder":
        self._options['epsilon_greedy'] = value
        return self

    def num_threads(self, value: int) -> "SearchSettingsBuilder":
        self._options['num_threads'] = value
        return self

    def gaussian_process(self, min_observations: int = 2, restarts: int = 10) -> "SearchSettingsBuilder":
        self._options['min_observations'] = min_observations
        self._options['gp_restarts'] = restarts
        return self

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------
    def metrics_expression(self, expression: str) -> "SearchSettingsBuilder":
        self._options['metrics_expression'] = expression
        return self

    def nan_replacement(self, value: Optional[float]) -> "SearchSettingsBuilder":
        self._options['nan_replacement'] = value
        return self

    def num_folds(self, value: int) -> "SearchSettingsBuilder":
        self._options['num_folds'] = value
        return self

    def cv_num_threads(self, value: int) -> "SearchSettingsBuilder":
        self._options['cv_num_threads'] = value
        return self

    def scoring(self, *names: str) -> "SearchSettingsBuilder":
        self._options['scoring'] = tuple(names)
        return self

    def stratified(self, value: bool = True) -> "SearchSettingsBuilder":
        self._options['stratified'] = bool(value)
        return self

    # ------------------------------------------------------------------
    # Reproducibility / IO
    # ------------------------------------------------------------------
    def seed(self, value: Optional[int]) -> "SearchSettingsBuilder":
        self._options['seed'] = value
        return self

    def path_for_temp_models(self, path: Optional[PathLike]) -> "SearchSettingsBuilder":
        self._options['path_for_temp_models'] = Path(path) if path is not None else None
        return self

    def priors_path(self, path: Optional[PathLike]) -> "SearchSettingsBuilder":
        self._options['priors_path'] = Path(path) if path is not None else None
        return self

    def output_dir(self, path: Optional[PathLike], excel_copy: bool = False) -> "SearchSettingsBuilder":
        self._options['output_dir'] = Path(path) if path is not None else None
        self._options['save_excel_copy'] = bool(excel_copy)
        return self

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------
    def build(self) -> SearchSettings:
        """
        Produce validated, frozen settings.

        Raises:
            ConfigurationError: on empty domain set, duplicate parameters,
                unknown display-name targets, or out-of-range numeric options.
        """
        known = {pair.param_name for pair in self._pairs}
        unknown = set(self._display_names) - known
        if unknown:
            raise ConfigurationError(f"Display names given for unknown parameters: {sorted(unknown)}")

        pairs = tuple(
            pair.with_display_name(self._display_names[pair.param_name])
            if pair.param_name in self._display_names else pair
            for pair in self._pairs
        )
        settings = SearchSettings(param_domains=pairs, **self._options)
        _validate(settings)
        return settings


def _validate(settings: SearchSettings) -> None:
    if not settings.param_domains:
        raise ConfigurationError("At least one parameter domain must be configured.")

    param_names = [pair.param_name for pair in settings.param_domains]
    if len(set(param_names)) != len(param_names):
        raise ConfigurationError(f"Duplicate parameter domains: {param_names}")
    columns = [pair.column_name for pair in settings.param_domains]
    if len(set(columns)) != len(columns):
        raise ConfigurationError(f"Duplicate parameter display names: {columns}")
    clashing = RESERVED_COLUMNS.intersection(columns)
    if clashing:
        raise ConfigurationError(f"Parameter names clash with reserved columns: {sorted(clashing)}")

    if settings.max_iter < 1:
        raise ConfigurationError(f"max_iter must be >= 1, got {settings.max_iter}.")
    if settings.max_no_improve_iters < 1:
        raise ConfigurationError(f"max_no_improve_iters must be >= 1, got {settings.max_no_improve_iters}.")
    if settings.tol < 0:
        raise ConfigurationError(f"tol must be non-negative, got {settings.tol}.")
    if settings.top_k_for_tolerance < 1:
        raise ConfigurationError(f"top_k_for_tolerance must be >= 1, got {settings.top_k_for_tolerance}.")
    if not (0.0 <= settings.epsilon_greedy <= 1.0):
        raise ConfigurationError(f"epsilon_greedy must be in [0, 1], got {settings.epsilon_greedy}.")
    if settings.num_threads < 1:
        raise ConfigurationError(f"num_threads must be >= 1, got {settings.num_threads}.")
    if settings.num_folds < 2:
        raise ConfigurationError(f"num_folds must be >= 2, got {settings.num_folds}.")
    if settings.cv_num_threads == 0 or settings.cv_num_threads < -1:
        raise ConfigurationError(
            f"cv_num_threads must be -1 (all cores) or a positive integer, got {settings.cv_num_threads}"
        )
    if settings.min_observations < 1:
        raise ConfigurationError(f"min_observations must be >= 1, got {settings.min_observations}.")
    if settings.gp_restarts < 1:
        raise ConfigurationError(f"gp_restarts must be >= 1, got {settings.gp_restarts}.")
    if settings.nan_replacement is not None and not math.isfinite(settings.nan_replacement):
        raise ConfigurationError(f"nan_replacement must be finite, got {settings.nan_replacement}.")
    if not settings.scoring:
        raise ConfigurationError("At least one scoring metric must be configured.")
    if constants.THIS_TABLE not in settings.metrics_expression:
        raise ConfigurationError(
            f"metrics_expression must reference the metrics table as {constants.THIS_TABLE}."
        )
