import logging

import pandas as pd
import pytest
from sklearn.datasets import make_classification

from modules.param_domain import ParamDomainPair
from modules.search_settings import SearchSettingsBuilder


@pytest.fixture
def test_logger():
    """Real logger so f-string messages are formatted and captured by caplog."""
    return logging.getLogger("tests")


@pytest.fixture
def classification_data():
    """Small, well-separated binary problem with named feature columns."""
    X, y = make_classification(
        n_samples=160, n_features=4, n_informative=3, n_redundant=0,
        class_sep=1.5, random_state=7
    )
    X = pd.DataFrame(X, columns=[f"f{i}" for i in range(X.shape[1])])
    return X, pd.Series(y, name="label")


@pytest.fixture
def elastic_net_pairs():
    """Regularization strength and L1 mixing of an elastic-net SGDClassifier."""
    return (
        ParamDomainPair.of("alpha", 0.0001, 2.0),
        ParamDomainPair.of("l1_ratio", 0.0, 0.5),
    )


@pytest.fixture
def settings_builder(elastic_net_pairs):
    """Builder preloaded with the elastic-net search space."""
    return (
        SearchSettingsBuilder()
        .param_domains(*elastic_net_pairs)
        .param_names({"alpha": "RegParam", "l1_ratio": "ElasticNet"})
        .seed(42)
    )
