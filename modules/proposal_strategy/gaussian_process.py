from __future__ import annotations

import logging
import math
import warnings
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
from scipy.optimize import minimize
from scipy.stats import norm
from sklearn.exceptions import ConvergenceWarning
from sklearn.gaussian_process import GaussianProcessRegressor
from sklearn.gaussian_process.kernels import ConstantKernel, Matern, WhiteKernel

from modules.param_domain import ParamDomainPair
from .proposal_strategy import ProposalStrategy

# Minimum unit-cube distance between two proposals of the same batch
MIN_PROPOSAL_DISTANCE = 1e-3
MAX_SWEEP_POINTS = 2000


class GaussianProcessStrategy(ProposalStrategy):
    """
    Bayesian optimization over the unit-scaled search space.

    Every call to ``propose`` refits a Gaussian Process on the observed
    (parameters -> metric) pairs and returns the maxima of expected
    improvement over the best observed metric. The acquisition surface is
    searched with a random sweep followed by multi-start L-BFGS-B.

    Falls back to uniform sampling while fewer than ``min_observations``
    finite observations are available, or when the regressor fails to fit.
    """

    def __init__(
        self,
        pairs: Sequence[ParamDomainPair],
        rng: np.random.Generator,
        nan_replacement: Optional[float] = None,
        min_observations: int = 2,
        n_restarts: int = 10,
        xi: float = 0.0,
        priors: Sequence[Any] = (),
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(pairs, rng, logger)
        self.nan_replacement = nan_replacement
        self.min_observations = max(1, int(min_observations))
        self.n_restarts = max(1, int(n_restarts))
        self.xi = float(xi)
        self.priors = tuple(priors)
        self.surrogate: Optional[GaussianProcessRegressor] = None

    # ------------------------------------------------------------------
    # Proposal
    # ------------------------------------------------------------------
    def _suggest(self, history, count):
        X, y = self._training_set(history)
        if len(y) < self.min_observations:
            self.logger.debug(
                f"GP needs {self.min_observations} observations, has {len(y)}. Sampling at random."
            )
            return [self._random_params() for _ in range(count)]

        self.surrogate = self._fit_surrogate(X, y)
        if self.surrogate is None:
            return [self._random_params() for _ in range(count)]

        best = float(np.max(y))
        candidates = self._maximize_acquisition(best, X, y)

        chosen: List[np.ndarray] = []
        for point, _ in candidates:
            if all(np.linalg.norm(point - c) > MIN_PROPOSAL_DISTANCE for c in chosen):
                chosen.append(point)
            if len(chosen) == count:
                break

        n_random = count - len(chosen)
        if n_random:
            self.logger.debug(f"GP produced {len(chosen)} distinct maxima, filling {n_random} at random")
        proposals = [self._from_unit(point) for point in chosen]
        proposals.extend(self._random_params() for _ in range(n_random))
        return proposals

    def expected_improvement(self, points: np.ndarray, best: float) -> np.ndarray:
        """Expected improvement of unit-space ``points`` over ``best`` under the fitted surrogate."""
        if self.surrogate is None:
            raise RuntimeError("Surrogate model is not fitted.")
        points = np.atleast_2d(points)
        mu, sigma = self.surrogate.predict(points, return_std=True)
        improvement = mu - best - self.xi
        with np.errstate(divide='ignore', invalid='ignore'):
            z = np.where(sigma > 1e-12, improvement / sigma, 0.0)
            ei = improvement * norm.cdf(z) + sigma * norm.pdf(z)
        return np.where(sigma > 1e-12, ei, np.maximum(improvement, 0.0))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _training_set(self, history) -> Tuple[np.ndarray, np.ndarray]:
        rows, targets = [], []
        for result in list(self.priors) + list(history):
            metric = float(result.metric)
            if math.isnan(metric):
                if self.nan_replacement is None:
                    continue
                metric = float(self.nan_replacement)
            params = result.configuration.params
            if any(pair.param_name not in params for pair in self.pairs):
                continue
            rows.append(self._to_unit(params))
            targets.append(metric)

        d = len(self.pairs)
        if not rows:
            return np.empty((0, d)), np.empty(0)
        return np.vstack(rows), np.asarray(targets, dtype=float)

    def _fit_surrogate(self, X: np.ndarray, y: np.ndarray) -> Optional[GaussianProcessRegressor]:
        d = X.shape[1]
        kernel = (
            ConstantKernel(1.0, (1e-3, 1e3))
            * Matern(length_scale=np.full(d, 0.5), length_scale_bounds=(1e-2, 1e2), nu=2.5)
            + WhiteKernel(noise_level=1e-4, noise_level_bounds=(1e-10, 1e-1))
        )
        gp = GaussianProcessRegressor(
            kernel=kernel,
            alpha=1e-8,
            normalize_y=True,
            n_restarts_optimizer=2,
            random_state=int(self.rng.integers(0, 2**31 - 1)),
        )
        try:
            with warnings.catch_warnings():
                warnings.simplefilter("ignore", ConvergenceWarning)
                gp.fit(X, y)
        except (ValueError, np.linalg.LinAlgError) as e:
            self.logger.warning(f"Gaussian Process fit failed on {len(y)} observations: {e}. Sampling at random.")
            return None
        self.logger.debug(f"Gaussian Process fitted on {len(y)} observations: {gp.kernel_}")
        return gp

    def _maximize_acquisition(self, best: float, X: np.ndarray, y: np.ndarray) -> List[Tuple[np.ndarray, float]]:
        d = X.shape[1]
        n_sweep = min(MAX_SWEEP_POINTS, 256 * d)
        sweep = self.rng.uniform(size=(n_sweep, d))
        sweep_ei = self.expected_improvement(sweep, best)

        top_sweep = sweep[np.argsort(-sweep_ei)[: self.n_restarts]]
        top_observed = X[np.argsort(-y)[: min(3, len(y))]]
        starts = np.vstack([top_sweep, top_observed])

        def neg_ei(x: np.ndarray) -> float:
            return -float(self.expected_improvement(x.reshape(1, -1), best)[0])

        candidates: List[Tuple[np.ndarray, float]] = [
            (point, float(score)) for point, score in zip(top_sweep, sweep_ei[np.argsort(-sweep_ei)[: self.n_restarts]])
        ]
        for x0 in starts:
            res = minimize(neg_ei, x0, method="L-BFGS-B", bounds=[(0.0, 1.0)] * d)
            candidates.append((np.clip(res.x, 0.0, 1.0), -float(res.fun)))

        candidates.sort(key=lambda item: item[1], reverse=True)
        return candidates

    def _to_unit(self, params: Dict[str, float]) -> np.ndarray:
        return np.array([pair.domain.to_unit(pair.domain.clip(params[pair.param_name])) for pair in self.pairs])

    def _from_unit(self, point: np.ndarray) -> Dict[str, float]:
        return {pair.param_name: pair.domain.from_unit(v) for pair, v in zip(self.pairs, point)}
