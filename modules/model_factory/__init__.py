"""
Model Factory Module
====================

Responsibility:
- Registry of scikit-learn classifiers and regressors by name.
- Construction with constructor-parameter filtering.
"""

from .model_factory import ModelFactory

__all__ = ['ModelFactory']
