import joblib
from pathlib import Path
from sklearn.base import BaseEstimator
from utils.exceptions import PersistenceError

def safe_load_model(path: Path) -> BaseEstimator:
    """Safely load model with validation."""
    try:
        model = joblib.load(path)
        if not isinstance(model, BaseEstimator):
            raise ValueError("Invalid model type")
        return model
    except Exception as e:
        raise PersistenceError(f"Failed to load model: {e}")


def safe_dump_model(model: BaseEstimator, path: Path) -> Path:
    """Dump a fitted model, creating parent directories as needed."""
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        joblib.dump(model, path)
    except Exception as e:
        raise PersistenceError(f"Failed to save model to {path}: {e}")
    return path
