from pathlib import Path

import pytest

from modules.param_domain import ParamDomainPair
from modules.search_settings import SearchMode, SearchSettingsBuilder
from utils.exceptions import ConfigurationError
from utils import constants


def test_defaults(elastic_net_pairs):
    settings = SearchSettingsBuilder().param_domains(*elastic_net_pairs).build()
    assert settings.search_mode == SearchMode.RANDOM
    assert settings.max_iter == 30
    assert settings.max_no_improve_iters == 10
    assert settings.tol == 0.0
    assert settings.top_k_for_tolerance == 3
    assert settings.epsilon_greedy == 0.0
    assert settings.num_threads == 1
    assert settings.num_folds == 3
    assert settings.cv_num_threads == 1
    assert settings.nan_replacement is None
    assert settings.seed is None
    assert settings.scoring == ("accuracy",)
    assert settings.metrics_expression == constants.DEFAULT_METRICS_EXPRESSION


def test_fluent_chain_returns_builder(settings_builder):
    settings = (
        settings_builder
        .search_mode("gaussian_process")
        .max_iter(20)
        .max_no_improve_iters(6)
        .tol(0.0005)
        .top_k_for_tolerance(4)
        .epsilon_greedy(0.2)
        .num_threads(3)
        .path_for_temp_models("tmp_models")
        .scoring("accuracy", "roc_auc")
        .build()
    )
    assert settings.search_mode == SearchMode.GAUSSIAN_PROCESS
    assert settings.max_iter == 20
    assert settings.path_for_temp_models == Path("tmp_models")
    assert settings.param_names == ("alpha", "l1_ratio")
    assert [pair.column_name for pair in settings.param_domains] == ["RegParam", "ElasticNet"]


def test_settings_are_frozen(settings_builder):
    settings = settings_builder.build()
    with pytest.raises(AttributeError):
        settings.max_iter = 5


def test_evolve_revalidates(settings_builder):
    settings = settings_builder.build()
    assert settings.evolve(max_iter=5).max_iter == 5
    with pytest.raises(ConfigurationError):
        settings.evolve(max_iter=0)


def test_unknown_mode():
    with pytest.raises(ConfigurationError, match="Unknown search mode"):
        SearchMode.parse("GRID")


def test_empty_domains_rejected():
    with pytest.raises(ConfigurationError, match="At least one parameter domain"):
        SearchSettingsBuilder().build()


def test_display_name_for_unknown_param(elastic_net_pairs):
    builder = SearchSettingsBuilder().param_domains(*elastic_net_pairs).param_names({"gamma": "Gamma"})
    with pytest.raises(ConfigurationError, match="unknown parameters"):
        builder.build()


def test_duplicate_columns_rejected():
    builder = SearchSettingsBuilder().param_domains(
        ParamDomainPair.of("C", 0.1, 1.0, display_name="X"),
        ParamDomainPair.of("tol", 0.1, 1.0, display_name="X"),
    )
    with pytest.raises(ConfigurationError, match="Duplicate"):
        builder.build()


def test_reserved_column_rejected():
    builder = SearchSettingsBuilder().param_domains(
        ParamDomainPair.of("C", 0.1, 1.0, display_name=constants.RESULTING_METRIC)
    )
    with pytest.raises(ConfigurationError, match="reserved"):
        builder.build()


@pytest.mark.parametrize("option, value", [
    ("max_iter", 0),
    ("max_no_improve_iters", 0),
    ("tol", -0.1),
    ("top_k_for_tolerance", 0),
    ("epsilon_greedy", 1.5),
    ("num_threads", 0),
    ("num_folds", 1),
    ("cv_num_threads", 0),
    ("nan_replacement", float("nan")),
])
def test_invalid_numeric_options(settings_builder, option, value):
    getattr(settings_builder, option)(value)
    with pytest.raises(ConfigurationError):
        settings_builder.build()


def test_expression_must_reference_metrics_table(settings_builder):
    with pytest.raises(ConfigurationError, match="__THIS__"):
        settings_builder.metrics_expression("SELECT 1").build()
