import json
import logging
import shutil
from pathlib import Path

import pytest

from main import main, parse_arguments
from utils import constants

PROJECT_ROOT = Path(__file__).resolve().parents[2]


@pytest.fixture
def workspace(tmp_path, monkeypatch, classification_data):
    """Isolated working directory with schema, config and dataset."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level

    (tmp_path / "config").mkdir()
    shutil.copy(PROJECT_ROOT / "config" / "schema.json", tmp_path / "config" / "schema.json")

    X, y = classification_data
    X.assign(label=y, row_id=range(len(y))).to_csv(tmp_path / "data.csv", index=False)

    config = {
        "search": {"mode": "RANDOM", "max_iter": 4, "max_no_improve_iters": 10,
                   "top_k_for_tolerance": 4, "num_threads": 2},
        "domains": [
            {"param": "alpha", "lower": 0.0001, "upper": 2.0, "name": "RegParam"},
            {"param": "l1_ratio", "lower": 0.0, "upper": 0.5, "name": "ElasticNet"},
        ],
        "evaluation": {"num_folds": 3, "n_jobs": 1, "scoring": ["roc_auc"],
                       "metrics_expression": "SELECT AVG(value) FROM __THIS__ WHERE isTest"},
        "model": {"name": "SGDClassifier",
                  "params": {"loss": "log_loss", "penalty": "elasticnet", "max_iter": 2000}},
        "data": {"file_path": "data.csv", "target": "label", "drop_columns": ["row_id"]},
        "outputs": {"base_results_dir": str(tmp_path / "results")},
        "logging": {"level": "INFO", "log_to_console": False, "log_to_file": True},
        "execution": {"seed": 3},
    }
    (tmp_path / "config" / "config.json").write_text(json.dumps(config))
    monkeypatch.chdir(tmp_path)
    yield tmp_path

    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def test_parse_arguments_defaults():
    args = parse_arguments([])
    assert args.config == "config/config.json"
    assert args.mode is None
    assert not args.analyze


def test_full_run(workspace):
    assert main(["--analyze"]) == 0

    results = workspace / "results"
    assert (results / constants.CONFIG_DIR / constants.CONFIG_USED_FILE).exists()
    assert (results / constants.SEARCH_RESULTS_DIR / constants.CONFIGURATIONS_FILE).exists()
    assert (results / constants.FINAL_MODEL_DIR / constants.MODEL_FILE).exists()
    assert (results / constants.SEARCH_ANALYSIS_DIR / "convergence.png").exists()
    assert (workspace / "logs" / "search.log").exists()

    digest = json.loads((results / constants.FINAL_MODEL_DIR / constants.SEARCH_SUMMARY_FILE).read_text())
    assert digest["evaluated"] == 4
    assert set(digest["best_params"]) == {"alpha", "l1_ratio"}


def test_priors_and_mode_override(workspace):
    assert main([]) == 0
    priors = workspace / "results" / constants.SEARCH_RESULTS_DIR

    assert main(["--priors", str(priors), "--mode", "GAUSSIAN_PROCESS"]) == 0

    digest = json.loads((workspace / "results" / constants.FINAL_MODEL_DIR / constants.SEARCH_SUMMARY_FILE).read_text())
    assert digest["evaluated"] == 4


def test_dry_run_skips_search(workspace):
    assert main(["--dry-run"]) == 0
    assert not (workspace / "results" / constants.SEARCH_RESULTS_DIR / constants.CONFIGURATIONS_FILE).exists()


def test_missing_target_is_an_error(workspace):
    other = workspace / "other.csv"
    other.write_text("a,b\n1,2\n3,4\n")
    assert main(["--data", str(other)]) == 1


def test_missing_config_is_an_error(workspace):
    assert main(["--config", "nope.json"]) == 1


def test_unknown_search_parameter_fails_before_search(workspace):
    config_path = workspace / "config" / "config.json"
    config = json.loads(config_path.read_text())
    config["domains"][0]["param"] = "not_a_param"
    config_path.write_text(json.dumps(config))

    assert main([]) == 1
    assert not (workspace / "results" / constants.SEARCH_RESULTS_DIR / constants.CONFIGURATIONS_FILE).exists()
