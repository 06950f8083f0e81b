from utils.exceptions import (
    AggregationFailure,
    ConfigurationError,
    EvaluationFailure,
    PersistenceError,
    RefitFailure,
    StochasticSearchException,
)


def test_exception_inheritance():
    err = ConfigurationError("Test error")
    assert isinstance(err, StochasticSearchException)
    assert isinstance(err, Exception)
    assert str(err) == "Test error"


def test_every_error_is_a_search_exception():
    for cls in (EvaluationFailure, AggregationFailure, RefitFailure, PersistenceError):
        assert issubclass(cls, StochasticSearchException)
    assert issubclass(AggregationFailure, EvaluationFailure)
