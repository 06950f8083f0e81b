import logging
from dataclasses import dataclass
from typing import Tuple

import numpy as np


@dataclass(frozen=True)
class SearchProgress:
    """Snapshot of the search taken at a round boundary."""
    round: int
    completed: int
    since_improvement: int
    finite_metrics: np.ndarray


class StoppingCriteria:
    """
    Evaluates whether the search loop should terminate.

    Checked after each round, first satisfied wins:
    - max_iter: Stop when the iteration budget is exhausted.
    - stagnation: Stop when the best metric has not strictly increased for
      max_no_improve_iters iterations.
    - tolerance: Stop when the top-K metrics lie within tol of each other.
    """

    def __init__(self, settings, logger: logging.Logger):
        self.logger = logger
        self.max_iter = settings.max_iter
        self.max_no_improve_iters = settings.max_no_improve_iters
        self.tol = settings.tol
        self.top_k = settings.top_k_for_tolerance

    def should_stop(self, progress: SearchProgress) -> Tuple[bool, str]:
        """
        Determines if the search should stop.

        Returns:
            (bool, reason_string)
        """
        # 1. Hard Limit: Iteration budget
        if progress.completed >= self.max_iter:
            return True, f"Maximum iterations reached ({self.max_iter})"

        # 2. Stagnation
        if progress.since_improvement >= self.max_no_improve_iters:
            return True, f"No improvement for {progress.since_improvement} iterations"

        # 3. Plateau
        return self._check_tolerance(progress.finite_metrics)

    def _check_tolerance(self, metrics: np.ndarray) -> Tuple[bool, str]:
        if len(metrics) < self.top_k:
            return False, ""

        top = np.sort(metrics)[::-1][: self.top_k]
        spread = float(top[0] - top[-1])
        if spread <= self.tol:
            return True, f"Converged within tolerance: top-{self.top_k} spread {spread:.6g} <= {self.tol}"

        return False, ""
