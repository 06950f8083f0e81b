import enum
import logging
import math
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np

from modules.base import BaseEngine
from modules.configuration_evaluator import ConfigurationEvaluator, EvaluationResult
from modules.proposal_strategy import build_strategy
from modules.result_summary import ResultSummary
from utils.error_handling import handle_engine_errors
from utils.exceptions import PersistenceError
from utils.model_loader import safe_load_model
from utils import constants
from .search_result import SearchResult
from .stopping_criteria import SearchProgress, StoppingCriteria


class SearchState(str, enum.Enum):
    PROPOSING = "proposing"
    EVALUATING = "evaluating"
    UPDATING = "updating"
    CONTINUE = "continue"
    TERMINATED = "terminated"


class SearchLoop(BaseEngine):
    """
    Stochastic hyperparameter search over a wrapped scikit-learn estimator.

    Runs in rounds. Each round proposes a batch sized to ``num_threads``,
    evaluates it on a thread pool, and only then records the results, so the
    proposal strategy always sees a round-aligned history. Stopping criteria
    are checked at round boundaries only; in-flight evaluations always finish.

    Known limitation: evaluations have no timeout, a hung fit blocks its round.
    """

    def __init__(self, estimator: Any, settings, logger: logging.Logger):
        super().__init__(settings, logger)
        self.estimator = estimator
        self.state = SearchState.PROPOSING
        self.summary: Optional[ResultSummary] = None
        self._artifacts: Dict[int, Path] = {}

    def _get_engine_directory_name(self) -> str:
        return constants.SEARCH_RESULTS_DIR

    @handle_engine_errors("Stochastic search")
    def execute(self, X, y) -> SearchResult:
        """
        Run the search until a stopping criterion fires, then refit the winner.

        Returns:
            SearchResult with the refit model and the ranked summary tables.

        Raises:
            ConfigurationError: a searched parameter does not exist on the estimator.
            RefitFailure: the winning configuration cannot be fitted on the full data.
        """
        settings = self.settings
        rng = np.random.default_rng(settings.seed)

        self.summary = ResultSummary(settings.param_domains, self.logger)
        self._artifacts = {}
        evaluator = ConfigurationEvaluator(self.estimator, X, y, settings, self.logger)

        if settings.priors_path is not None:
            self.summary.seed_priors(self.summary.load_priors(settings.priors_path))

        strategy = build_strategy(settings, rng, logger=self.logger)
        criteria = StoppingCriteria(settings, self.logger)

        best = self.summary.best_metric()
        best = best if not math.isnan(best) else -math.inf

        self.logger.info(
            f"Starting {settings.search_mode.value} search over {list(settings.param_names)}: "
            f"max_iter={settings.max_iter}, threads={settings.num_threads}, priors={self.summary.n_priors}"
        )

        completed = 0
        since_improvement = 0
        round_num = 0
        stop_reason = ""
        start_time = time.time()

        with ThreadPoolExecutor(max_workers=settings.num_threads) as pool:
            self.state = SearchState.PROPOSING
            while self.state != SearchState.TERMINATED:
                round_num += 1

                self._transition(SearchState.PROPOSING)
                batch_size = min(settings.num_threads, settings.max_iter - completed)
                batch = strategy.propose(self.summary.history, batch_size)

                self._transition(SearchState.EVALUATING)
                results: List[EvaluationResult] = list(pool.map(evaluator.evaluate, batch))

                self._transition(SearchState.UPDATING)
                self.summary.record_batch(results)
                for result in sorted(results, key=lambda r: r.index):
                    completed += 1
                    if result.model_path is not None:
                        self._artifacts[result.index] = result.model_path
                    if not math.isnan(result.metric) and result.metric > best:
                        best = float(result.metric)
                        since_improvement = 0
                    else:
                        since_improvement += 1
                self._discard_losing_artifacts()

                n_failed = sum(r.failed for r in results)
                self.logger.info(
                    f"Round {round_num}: evaluated {len(results)} ({n_failed} failed), "
                    f"completed {completed}/{settings.max_iter}, best={best:.6g}"
                )

                stop, stop_reason = criteria.should_stop(SearchProgress(
                    round=round_num,
                    completed=completed,
                    since_improvement=since_improvement,
                    finite_metrics=self.summary.finite_metrics(),
                ))
                self._transition(SearchState.TERMINATED if stop else SearchState.CONTINUE)

        self.logger.info(
            f"Search terminated after {round_num} rounds ({time.time() - start_time:.1f}s): {stop_reason}"
        )
        return self._finalize(evaluator, stop_reason, round_num, completed)

    def _transition(self, state: SearchState) -> None:
        self.logger.debug(f"Search state: {self.state.value} -> {state.value}")
        self.state = state

    def _finalize(self, evaluator: ConfigurationEvaluator, stop_reason: str,
                  rounds: int, evaluated: int) -> SearchResult:
        winner = self.summary.best_result()
        model = None
        weights = None

        if winner.model_path is not None and winner.model_path.exists():
            try:
                model = safe_load_model(winner.model_path)
                weights = winner.weights
                self.logger.info(f"Winning model loaded from {winner.model_path}")
            except PersistenceError as e:
                self.logger.warning(f"{e}. Refitting the winning configuration instead.")

        if model is None:
            self.logger.info(f"Refitting winning configuration {winner.params} on the full dataset")
            model, weights = evaluator.refit(winner.params)

        self.summary.replace_weights(winner.index, weights)
        self._clear_artifacts(evaluator.temp_dir)

        if self.output_dir is not None:
            self.summary.persist(self.output_dir, excel_copy=self.settings.save_excel_copy)

        return SearchResult(
            model=model,
            best_params=dict(winner.params),
            best_metric=float(winner.metric),
            summary=self.summary.tables(),
            stop_reason=stop_reason,
            rounds=rounds,
            evaluated=evaluated,
        )

    def _discard_losing_artifacts(self) -> None:
        best = self.summary.best_result()
        keep = best.index if best is not None else None
        for index in [i for i in self._artifacts if i != keep]:
            self._artifacts.pop(index).unlink(missing_ok=True)

    def _clear_artifacts(self, temp_dir: Optional[Path]) -> None:
        for path in self._artifacts.values():
            path.unlink(missing_ok=True)
        self._artifacts = {}
        if temp_dir is not None and temp_dir.exists() and not any(temp_dir.iterdir()):
            temp_dir.rmdir()
