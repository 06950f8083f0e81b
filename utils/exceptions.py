"""
Custom exception hierarchy for the Stochastic Hyperparameter Search system.
"""

class StochasticSearchException(Exception):
    """Base exception for all system errors."""
    pass

class ConfigurationError(StochasticSearchException):
    """Configuration or search settings validation failed."""
    pass

class EvaluationFailure(StochasticSearchException):
    """Training or evaluation of a single configuration failed."""
    pass

class AggregationFailure(EvaluationFailure):
    """Metric expression did not yield exactly one numeric value."""
    pass

class RefitFailure(StochasticSearchException):
    """Final refit of the winning configuration failed."""
    pass

class PersistenceError(StochasticSearchException):
    """Reading or writing search artifacts failed."""
    pass
