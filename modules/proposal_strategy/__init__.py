"""
Proposal Strategy Module
========================

Responsibility:
- Generating candidate configurations from the search history.
- Uniform random exploration, epsilon-greedy mixing.
- Gaussian-Process guided proposals (expected improvement).
"""

from .configuration import Configuration
from .proposal_strategy import ProposalStrategy, RandomStrategy, EpsilonGreedyStrategy, build_strategy
from .gaussian_process import GaussianProcessStrategy

__all__ = [
    'Configuration',
    'ProposalStrategy',
    'RandomStrategy',
    'EpsilonGreedyStrategy',
    'GaussianProcessStrategy',
    'build_strategy',
]
