import json

import numpy as np
import pandas as pd
import pytest
from sklearn.linear_model import LogisticRegression

from modules.search_loop import SearchResult
from utils.exceptions import PersistenceError
from utils import constants


@pytest.fixture
def result(classification_data):
    X, y = classification_data
    model = LogisticRegression(C=0.5).fit(X, y)
    configurations = pd.DataFrame({
        constants.CONFIGURATION_INDEX: [0, 1],
        constants.RESULTING_METRIC: [0.9, np.nan],
        constants.ERROR: [None, "boom"],
        "RegParam": [0.5, 1.5],
    })
    metrics = pd.DataFrame({
        constants.FOLD_NUM: [0, 0],
        constants.IS_TEST: [False, True],
        constants.METRIC: ["accuracy", "accuracy"],
        constants.VALUE: [0.95, 0.9],
        constants.CONFIGURATION_INDEX: [0, 0],
    })
    # deliberately out of name order
    names = list(reversed(X.columns))
    weights = pd.DataFrame({
        constants.FOLD_NUM: [constants.FULL_DATA_FOLD] * len(names) + [0],
        constants.WEIGHT_NAME: names + ["f0"],
        constants.WEIGHT: [float(model.coef_[0][list(X.columns).index(n)]) for n in names] + [99.0],
        constants.CONFIGURATION_INDEX: [0] * len(names) + [0],
    })
    return SearchResult(
        model=model,
        best_params={"C": 0.5},
        best_metric=0.9,
        summary={
            constants.CONFIGURATIONS_BLOCK: configurations,
            constants.METRICS_BLOCK: metrics,
            constants.WEIGHTS_BLOCK: weights,
        },
        stop_reason="Maximum iterations reached (2)",
        rounds=2,
        evaluated=2,
    )


def test_coefficients_ordered_by_name(result):
    np.testing.assert_allclose(result.coefficients(), result.model.coef_[0])


def test_save_and_load(result, tmp_path):
    path = result.save(tmp_path / "final")

    assert (path / constants.MODEL_FILE).exists()
    with open(path / constants.SEARCH_SUMMARY_FILE) as f:
        digest = json.load(f)
    assert digest["best_params"] == {"C": 0.5}
    assert digest["stop_reason"] == "Maximum iterations reached (2)"

    loaded = SearchResult.load(path)
    assert loaded.best_metric == 0.9
    assert loaded.rounds == 2
    assert list(loaded.configurations.columns) == list(result.configurations.columns)
    np.testing.assert_allclose(loaded.coefficients(), result.coefficients())
    np.testing.assert_allclose(loaded.model.coef_, result.model.coef_)


def test_nan_best_metric_round_trips(result, tmp_path):
    result.best_metric = float("nan")
    loaded = SearchResult.load(result.save(tmp_path / "final"))
    assert np.isnan(loaded.best_metric)


def test_load_missing_directory(tmp_path):
    with pytest.raises(PersistenceError):
        SearchResult.load(tmp_path / "missing")
