"""
Search Loop Module
==================

Responsibility:
- Round-based orchestration: propose, evaluate concurrently, update.
- Termination policy (iteration budget, stagnation, tolerance plateau).
- Prior-run ingestion before the first proposal.
- Refit of the winning configuration and assembly of the output artifact.
"""

from .stopping_criteria import SearchProgress, StoppingCriteria
from .search_result import SearchResult
from .search_loop import SearchLoop, SearchState

__all__ = ['SearchProgress', 'StoppingCriteria', 'SearchResult', 'SearchLoop', 'SearchState']
