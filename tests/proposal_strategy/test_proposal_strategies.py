import math
from unittest.mock import patch

import numpy as np
import pytest

from modules.configuration_evaluator import EvaluationResult
from modules.param_domain import ParamDomainPair
from modules.proposal_strategy import (
    Configuration,
    EpsilonGreedyStrategy,
    GaussianProcessStrategy,
    RandomStrategy,
    build_strategy,
)


@pytest.fixture
def pairs():
    return (ParamDomainPair.of("x", 0.0, 1.0), ParamDomainPair.of("y", -2.0, 2.0))


def make_history(points, objective):
    return [
        EvaluationResult(configuration=Configuration(i, p), metric=objective(p))
        for i, p in enumerate(points)
    ]


def quadratic(p):
    return -((p["x"] - 0.3) ** 2) - 0.1 * (p["y"] - 0.5) ** 2


class RecordingStrategy(RandomStrategy):
    """Random proposals, remembering how many were requested per call."""

    def __init__(self, pairs, rng):
        super().__init__(pairs, rng)
        self.requests = []

    def _suggest(self, history, count):
        self.requests.append(count)
        return [{"x": 0.5, "y": 0.0} for _ in range(count)]


def test_configuration_rejects_negative_index():
    with pytest.raises(ValueError):
        Configuration(-1, {"x": 0.1})


def test_random_indices_continue_from_history(pairs):
    strategy = RandomStrategy(pairs, np.random.default_rng(0))
    history = make_history([{"x": 0.1, "y": 0.0}] * 3, quadratic)

    proposals = strategy.propose(history, 4)

    assert [c.index for c in proposals] == [3, 4, 5, 6]
    for config in proposals:
        assert 0.0 <= config.params["x"] <= 1.0
        assert -2.0 <= config.params["y"] <= 2.0


def test_random_is_reproducible(pairs):
    a = RandomStrategy(pairs, np.random.default_rng(11)).propose([], 5)
    b = RandomStrategy(pairs, np.random.default_rng(11)).propose([], 5)
    assert [c.params for c in a] == [c.params for c in b]


def test_zero_count_returns_nothing(pairs):
    assert RandomStrategy(pairs, np.random.default_rng(0)).propose([], 0) == []


def test_epsilon_one_always_explores(pairs):
    rng = np.random.default_rng(0)
    inner = RecordingStrategy(pairs, rng)
    strategy = EpsilonGreedyStrategy(inner, 1.0, rng)

    proposals = strategy.propose([], 6)

    assert len(proposals) == 6
    assert inner.requests == []


def test_epsilon_zero_always_exploits(pairs):
    rng = np.random.default_rng(0)
    inner = RecordingStrategy(pairs, rng)
    strategy = EpsilonGreedyStrategy(inner, 0.0, rng)

    proposals = strategy.propose([], 3)

    assert inner.requests == [3]
    assert all(c.params == {"x": 0.5, "y": 0.0} for c in proposals)


def test_epsilon_out_of_range(pairs):
    rng = np.random.default_rng(0)
    with pytest.raises(ValueError):
        EpsilonGreedyStrategy(RandomStrategy(pairs, rng), 1.2, rng)


def test_gp_falls_back_to_random_without_observations(pairs):
    strategy = GaussianProcessStrategy(pairs, np.random.default_rng(0), min_observations=3)
    history = make_history([{"x": 0.1, "y": 0.0}, {"x": 0.9, "y": 1.0}], quadratic)

    proposals = strategy.propose(history, 2)

    assert len(proposals) == 2
    assert strategy.surrogate is None


def test_gp_drops_nan_metrics_unless_replaced(pairs):
    history = make_history([{"x": 0.1, "y": 0.0}, {"x": 0.9, "y": 1.0}], lambda p: math.nan)

    dropping = GaussianProcessStrategy(pairs, np.random.default_rng(0))
    _, y = dropping._training_set(history)
    assert len(y) == 0

    replacing = GaussianProcessStrategy(pairs, np.random.default_rng(0), nan_replacement=-1.0)
    _, y = replacing._training_set(history)
    assert list(y) == [-1.0, -1.0]


def test_gp_proposes_distinct_in_bounds(pairs):
    rng = np.random.default_rng(3)
    points = [{"x": float(a), "y": float(b)} for a, b in zip(rng.uniform(0, 1, 8), rng.uniform(-2, 2, 8))]
    history = make_history(points, quadratic)
    strategy = GaussianProcessStrategy(pairs, np.random.default_rng(5), n_restarts=4)

    proposals = strategy.propose(history, 3)

    assert strategy.surrogate is not None
    assert [c.index for c in proposals] == [8, 9, 10]
    for config in proposals:
        assert 0.0 <= config.params["x"] <= 1.0
        assert -2.0 <= config.params["y"] <= 2.0
    unit = [strategy._to_unit(c.params) for c in proposals]
    for i in range(len(unit)):
        for j in range(i + 1, len(unit)):
            assert np.linalg.norm(unit[i] - unit[j]) > 0


def test_gp_priors_count_as_observations(pairs):
    priors = make_history([{"x": 0.2, "y": 0.0}, {"x": 0.4, "y": 1.0}, {"x": 0.8, "y": -1.0}], quadratic)
    strategy = GaussianProcessStrategy(pairs, np.random.default_rng(0), min_observations=3, priors=priors)

    strategy.propose([], 1)

    assert strategy.surrogate is not None


def test_expected_improvement_is_non_negative(pairs):
    rng = np.random.default_rng(1)
    points = [{"x": float(a), "y": float(b)} for a, b in zip(rng.uniform(0, 1, 6), rng.uniform(-2, 2, 6))]
    strategy = GaussianProcessStrategy(pairs, np.random.default_rng(2))
    strategy.propose(make_history(points, quadratic), 1)

    ei = strategy.expected_improvement(np.random.default_rng(4).uniform(size=(50, 2)), best=0.0)
    assert ei.shape == (50,)
    assert np.all(ei >= 0)


def test_expected_improvement_requires_fit(pairs):
    strategy = GaussianProcessStrategy(pairs, np.random.default_rng(0))
    with pytest.raises(RuntimeError):
        strategy.expected_improvement(np.zeros((1, 2)), best=0.0)


def test_gp_fit_failure_falls_back_to_random(pairs, caplog):
    history = make_history([{"x": 0.1, "y": 0.0}, {"x": 0.5, "y": 1.0}, {"x": 0.9, "y": -1.0}], quadratic)
    strategy = GaussianProcessStrategy(pairs, np.random.default_rng(0))

    with patch("modules.proposal_strategy.gaussian_process.GaussianProcessRegressor.fit",
               side_effect=np.linalg.LinAlgError("singular")):
        proposals = strategy.propose(history, 2)

    assert len(proposals) == 2
    assert strategy.surrogate is None
    assert "Gaussian Process fit failed" in caplog.text


def test_build_strategy_variants(settings_builder):
    rng = np.random.default_rng(0)
    assert isinstance(build_strategy(settings_builder.build(), rng), RandomStrategy)

    gp = build_strategy(settings_builder.search_mode("GAUSSIAN_PROCESS").build(), rng)
    assert isinstance(gp, GaussianProcessStrategy)

    wrapped = build_strategy(settings_builder.epsilon_greedy(0.25).build(), rng)
    assert isinstance(wrapped, EpsilonGreedyStrategy)
    assert isinstance(wrapped.inner, GaussianProcessStrategy)
    assert wrapped.epsilon == 0.25
