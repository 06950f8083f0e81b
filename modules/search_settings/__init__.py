"""
Search Settings Module
======================

Responsibility:
- Immutable, validated settings object for one search run.
- Fluent builder that accumulates options and fails fast on invalid input.
"""

from .search_settings import SearchMode, SearchSettings, SearchSettingsBuilder

__all__ = ['SearchMode', 'SearchSettings', 'SearchSettingsBuilder']
