"""
Search Analyzer Module
======================

Responsibility:
- Convergence trace (best metric so far per proposal).
- Optimal parameter ranges over the top configurations.
- Convergence and metric-vs-parameter plots.
"""

from .search_analyzer import SearchAnalyzer

__all__ = ['SearchAnalyzer']
