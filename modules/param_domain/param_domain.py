import abc
import math
from dataclasses import dataclass
from typing import Any, Optional

import numpy as np

from utils.exceptions import ConfigurationError


@dataclass(frozen=True)
class ParamDomain:
    """
    Closed continuous range [lower, upper] for one hyperparameter.

    Immutable once constructed; bounds are validated eagerly so that an
    invalid domain fails before any evaluation starts.
    """

    lower: float
    upper: float

    def __post_init__(self):
        for bound in (self.lower, self.upper):
            if not isinstance(bound, (int, float, np.integer, np.floating)) or isinstance(bound, bool):
                raise ConfigurationError(f"Domain bounds must be numeric, got {bound!r}")
            if not math.isfinite(float(bound)):
                raise ConfigurationError(f"Domain bounds must be finite, got {bound!r}")
        if not self.lower < self.upper:
            raise ConfigurationError(
                f"Domain lower bound must be < upper bound, got [{self.lower}, {self.upper}]"
            )
        object.__setattr__(self, 'lower', float(self.lower))
        object.__setattr__(self, 'upper', float(self.upper))

    @property
    def width(self) -> float:
        return self.upper - self.lower

    def sample(self, rng: np.random.Generator) -> float:
        """Draw uniformly from [lower, upper]."""
        return self.clip(float(rng.uniform(self.lower, self.upper)))

    def clip(self, value: float) -> float:
        """Clamp a proposal into the domain."""
        return float(min(max(float(value), self.lower), self.upper))

    def contains(self, value: float) -> bool:
        return self.lower <= value <= self.upper

    def to_unit(self, value: float) -> float:
        return (float(value) - self.lower) / self.width

    def from_unit(self, value: float) -> float:
        return self.clip(self.lower + float(value) * self.width)


class ParamBinding(abc.ABC):
    """
    Get/set access to one hyperparameter of an estimator instance.
    """

    @property
    @abc.abstractmethod
    def name(self) -> str:
        raise NotImplementedError

    @abc.abstractmethod
    def get(self, estimator: Any) -> Any:
        raise NotImplementedError

    @abc.abstractmethod
    def set(self, estimator: Any, value: float) -> Any:
        raise NotImplementedError


class EstimatorParam(ParamBinding):
    """
    Binding through the scikit-learn parameter API.

    Nested names such as ``clf__C`` address steps of a Pipeline.
    """

    def __init__(self, param_name: str):
        if not param_name:
            raise ConfigurationError("Parameter name must be a non-empty string.")
        self._name = param_name

    @property
    def name(self) -> str:
        return self._name

    def get(self, estimator: Any) -> Any:
        params = estimator.get_params(deep=True)
        if self._name not in params:
            raise ConfigurationError(
                f"Estimator {type(estimator).__name__} has no parameter '{self._name}'"
            )
        return params[self._name]

    def set(self, estimator: Any, value: float) -> Any:
        estimator.set_params(**{self._name: value})
        return estimator

    def __eq__(self, other):
        return isinstance(other, EstimatorParam) and other._name == self._name

    def __hash__(self):
        return hash(('EstimatorParam', self._name))

    def __repr__(self):
        return f"EstimatorParam({self._name!r})"


@dataclass(frozen=True)
class ParamDomainPair:
    """Binds a ParamDomain to the estimator hyperparameter it controls."""

    binding: ParamBinding
    domain: ParamDomain
    display_name: Optional[str] = None

    @property
    def param_name(self) -> str:
        return self.binding.name

    @property
    def column_name(self) -> str:
        return self.display_name or self.binding.name

    def with_display_name(self, display_name: str) -> "ParamDomainPair":
        return ParamDomainPair(self.binding, self.domain, display_name)

    def apply(self, estimator: Any, value: float) -> Any:
        return self.binding.set(estimator, self.domain.clip(value))

    @classmethod
    def of(cls, param_name: str, lower: float, upper: float,
           display_name: Optional[str] = None) -> "ParamDomainPair":
        return cls(EstimatorParam(param_name), ParamDomain(lower, upper), display_name)
