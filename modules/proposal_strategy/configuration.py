from dataclasses import dataclass, field
from typing import Dict


@dataclass(frozen=True)
class Configuration:
    """One point of the search space, indexed in proposal order."""

    index: int
    params: Dict[str, float] = field(default_factory=dict)

    def __post_init__(self):
        if self.index < 0:
            raise ValueError(f"Configuration index must be non-negative, got {self.index}")
        object.__setattr__(self, 'params', {k: float(v) for k, v in self.params.items()})
