from types import SimpleNamespace
from unittest.mock import Mock

import pytest

from modules.base.base_engine import BaseEngine


# Concrete implementation for testing purposes
class ConcreteTestEngine(BaseEngine):
    def __init__(self, settings, logger, engine_dir_name):
        self._engine_dir_name_value = engine_dir_name
        super().__init__(settings, logger)

    def _get_engine_directory_name(self) -> str:
        return self._engine_dir_name_value

    def execute(self, *args, **kwargs):
        pass


@pytest.fixture
def mock_logger():
    """Provides a mock logger instance."""
    return Mock()


def test_output_directory_created(mock_logger, tmp_path):
    engine = ConcreteTestEngine(SimpleNamespace(output_dir=tmp_path), mock_logger, "02_StochasticSearch")

    expected_dir = tmp_path / "02_StochasticSearch"
    assert engine.output_dir == expected_dir
    assert expected_dir.is_dir()
    mock_logger.info.assert_called_with(f"Output directory for ConcreteTestEngine: {expected_dir}")


def test_compute_only_without_output_dir(mock_logger):
    engine = ConcreteTestEngine(SimpleNamespace(output_dir=None), mock_logger, "02_StochasticSearch")

    assert engine.output_dir is None
    mock_logger.info.assert_not_called()
