import pandas as pd
import pytest
from sklearn.linear_model import LogisticRegression

from utils.exceptions import PersistenceError
from utils.file_io import read_dataframe, save_dataframe
from utils.model_loader import safe_dump_model, safe_load_model


def test_dump_and_load_model(tmp_path):
    path = safe_dump_model(LogisticRegression(C=0.3), tmp_path / "nested" / "model.joblib")
    assert safe_load_model(path).C == 0.3


def test_load_rejects_non_estimators(tmp_path):
    import joblib
    path = tmp_path / "not_a_model.joblib"
    joblib.dump({"a": 1}, path)
    with pytest.raises(PersistenceError, match="Invalid model type"):
        safe_load_model(path)


def test_load_missing_model(tmp_path):
    with pytest.raises(PersistenceError):
        safe_load_model(tmp_path / "missing.joblib")


def test_dataframe_parquet_with_excel_copy(tmp_path):
    df = pd.DataFrame({"a": [1, 2], "b": ["x", None]})
    path = save_dataframe(df, tmp_path / "out" / "table.parquet", excel_copy=True)

    assert path.with_suffix(".xlsx").exists()
    pd.testing.assert_frame_equal(read_dataframe(path), df)


def test_read_unsupported_extension(tmp_path):
    with pytest.raises(ValueError, match="Unsupported"):
        read_dataframe(tmp_path / "table.json")
