"""
Configuration Evaluator Module
==============================

Responsibility:
- Cross-validated training/evaluation of one configuration.
- Per-fold metric and weight tables.
- Scalar metric extraction through a SQL aggregation expression.
- Isolation of per-configuration failures (recorded, never raised).
- Optional persistence of per-configuration full-data models.
"""

from .cross_validation import CrossValidationHarness, CrossValidationResult, extract_weights
from .metrics_expression import MetricsExpression
from .configuration_evaluator import ConfigurationEvaluator, EvaluationResult

__all__ = [
    'CrossValidationHarness',
    'CrossValidationResult',
    'extract_weights',
    'MetricsExpression',
    'ConfigurationEvaluator',
    'EvaluationResult',
]
