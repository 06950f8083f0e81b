"""
Result Summary Module
=====================

Responsibility:
- Append-only search history bookkeeping.
- Ranked configurations table (index 0 = best configuration so far).
- Tagging of per-fold metrics and weights with configuration indices.
- Persistence of summary tables and loading of prior runs.
"""

from .result_summary import ResultSummary

__all__ = ['ResultSummary']
