from __future__ import annotations

import abc
import logging
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from modules.param_domain import ParamDomainPair
from modules.search_settings import SearchMode
from .configuration import Configuration


class ProposalStrategy(abc.ABC):
    """
    Produces the next candidate configurations given the search history.

    ``history`` is an ordered sequence of evaluation results exposing
    ``configuration`` and ``metric``. Subclasses only implement
    ``_suggest``; indexing is handled here so every variant numbers its
    proposals the same way.
    """

    def __init__(self, pairs: Sequence[ParamDomainPair], rng: np.random.Generator,
                 logger: Optional[logging.Logger] = None):
        self.pairs = tuple(pairs)
        self.rng = rng
        self.logger = logger or logging.getLogger(self.__class__.__name__)

    def propose(self, history: Sequence[Any], count: int) -> List[Configuration]:
        """
        Return ``count`` configurations indexed from ``len(history)`` onwards.
        """
        if count <= 0:
            return []
        start = len(history)
        suggestions = self._suggest(history, count)
        if len(suggestions) != count:
            raise RuntimeError(
                f"{self.__class__.__name__} produced {len(suggestions)} proposals, expected {count}"
            )
        return [
            Configuration(index=start + i, params=self._clip(params))
            for i, params in enumerate(suggestions)
        ]

    @abc.abstractmethod
    def _suggest(self, history: Sequence[Any], count: int) -> List[Dict[str, float]]:
        raise NotImplementedError

    def _clip(self, params: Dict[str, float]) -> Dict[str, float]:
        return {pair.param_name: pair.domain.clip(params[pair.param_name]) for pair in self.pairs}

    def _random_params(self) -> Dict[str, float]:
        return {pair.param_name: pair.domain.sample(self.rng) for pair in self.pairs}


class RandomStrategy(ProposalStrategy):
    """Independent uniform draws for every parameter."""

    def _suggest(self, history, count):
        return [self._random_params() for _ in range(count)]


class EpsilonGreedyStrategy(ProposalStrategy):
    """
    Explores uniformly with probability ``epsilon`` per proposed configuration,
    otherwise exploits through the wrapped strategy.
    """

    def __init__(self, inner: ProposalStrategy, epsilon: float, rng: np.random.Generator,
                 logger: Optional[logging.Logger] = None):
        super().__init__(inner.pairs, rng, logger)
        if not 0.0 <= epsilon <= 1.0:
            raise ValueError(f"epsilon must be in [0, 1], got {epsilon}")
        self.inner = inner
        self.epsilon = float(epsilon)
        self.explorer = RandomStrategy(inner.pairs, rng, logger)

    def _suggest(self, history, count):
        explore = self.rng.random(count) < self.epsilon
        n_explore = int(explore.sum())
        if n_explore:
            self.logger.debug(f"Epsilon-greedy: exploring {n_explore}/{count} proposals at random")

        exploit_params = iter(self.inner._suggest(history, count - n_explore) if n_explore < count else [])
        explore_params = iter(self.explorer._suggest(history, n_explore) if n_explore else [])
        return [next(explore_params) if flag else next(exploit_params) for flag in explore]


def build_strategy(settings, rng: np.random.Generator, priors: Sequence[Any] = (),
                   logger: Optional[logging.Logger] = None) -> ProposalStrategy:
    """
    Create the strategy selected by ``settings.search_mode``.

    GAUSSIAN_PROCESS is wrapped in epsilon-greedy exploration when
    ``settings.epsilon_greedy`` is positive.
    """
    from .gaussian_process import GaussianProcessStrategy

    if settings.search_mode == SearchMode.RANDOM:
        return RandomStrategy(settings.param_domains, rng, logger)

    strategy: ProposalStrategy = GaussianProcessStrategy(
        settings.param_domains,
        rng,
        nan_replacement=settings.nan_replacement,
        min_observations=settings.min_observations,
        n_restarts=settings.gp_restarts,
        priors=priors,
        logger=logger,
    )
    if settings.epsilon_greedy > 0:
        strategy = EpsilonGreedyStrategy(strategy, settings.epsilon_greedy, rng, logger)
    return strategy
