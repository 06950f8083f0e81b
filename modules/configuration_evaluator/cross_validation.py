import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from sklearn.base import clone, is_classifier
from sklearn.metrics import get_scorer
from sklearn.model_selection import KFold, StratifiedKFold
from sklearn.pipeline import Pipeline

from utils import constants

METRICS_COLUMNS = [constants.FOLD_NUM, constants.IS_TEST, constants.METRIC, constants.VALUE]
WEIGHTS_COLUMNS = [constants.FOLD_NUM, constants.WEIGHT_NAME, constants.WEIGHT]


def empty_metrics() -> pd.DataFrame:
    return pd.DataFrame({
        constants.FOLD_NUM: pd.Series(dtype='int64'),
        constants.IS_TEST: pd.Series(dtype='bool'),
        constants.METRIC: pd.Series(dtype='object'),
        constants.VALUE: pd.Series(dtype='float64'),
    })


def empty_weights() -> pd.DataFrame:
    return pd.DataFrame({
        constants.FOLD_NUM: pd.Series(dtype='int64'),
        constants.WEIGHT_NAME: pd.Series(dtype='object'),
        constants.WEIGHT: pd.Series(dtype='float64'),
    })


@dataclass(frozen=True)
class CrossValidationResult:
    """Per-fold outputs of one cross-validated evaluation."""
    metrics: pd.DataFrame
    weights: pd.DataFrame
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


def feature_names_of(X) -> List[str]:
    if hasattr(X, 'columns'):
        return [str(c) for c in X.columns]
    n_features = np.asarray(X).shape[1]
    return [f"x{i}" for i in range(n_features)]


def extract_weights(model, feature_names: Sequence[str], fold_num: int) -> pd.DataFrame:
    """
    Tabulate the fitted model's weights as (foldNum, name, weight) rows.

    Linear models report ``coef_``; a multi-row ``coef_`` is flattened as
    ``<class>_<feature>``. Tree ensembles report ``feature_importances_``.
    Anything else yields an empty table.
    """
    est = model[-1] if isinstance(model, Pipeline) else model

    coef = getattr(est, 'coef_', None)
    if coef is not None:
        coef = np.atleast_2d(np.asarray(coef, dtype=float))
        names = _align_names(est, feature_names, coef.shape[1])
        if coef.shape[0] == 1:
            labels, values = names, coef[0]
        else:
            classes = getattr(est, 'classes_', range(coef.shape[0]))
            labels = [f"{c}_{f}" for c in classes for f in names]
            values = coef.ravel()
    elif getattr(est, 'feature_importances_', None) is not None:
        values = np.asarray(est.feature_importances_, dtype=float)
        labels = _align_names(est, feature_names, values.shape[0])
    else:
        return empty_weights()

    return pd.DataFrame({
        constants.FOLD_NUM: np.full(len(values), fold_num, dtype='int64'),
        constants.WEIGHT_NAME: list(labels),
        constants.WEIGHT: np.asarray(values, dtype=float),
    })


def _align_names(est, feature_names: Sequence[str], n_features: int) -> List[str]:
    if len(feature_names) == n_features:
        return list(feature_names)
    fitted_names = getattr(est, 'feature_names_in_', None)
    if fitted_names is not None and len(fitted_names) == n_features:
        return [str(n) for n in fitted_names]
    return [f"x{i}" for i in range(n_features)]


def _take(data, idx):
    return data.iloc[idx] if hasattr(data, 'iloc') else np.asarray(data)[idx]


def _run_single_fold(estimator, X, y, train_idx, test_idx, fold_num: int,
                     scoring: Sequence[str], feature_names: Sequence[str]) -> Tuple[List[Dict[str, Any]], pd.DataFrame, Optional[str]]:
    """Helper for parallel fold execution. Failures are returned, not raised."""
    try:
        model = clone(estimator)
        model.fit(_take(X, train_idx), _take(y, train_idx))

        rows = []
        for is_test, idx in ((False, train_idx), (True, test_idx)):
            X_part, y_part = _take(X, idx), _take(y, idx)
            for name in scoring:
                scorer = get_scorer(name)
                rows.append({
                    constants.FOLD_NUM: fold_num,
                    constants.IS_TEST: is_test,
                    constants.METRIC: name,
                    constants.VALUE: float(scorer(model, X_part, y_part)),
                })
        return rows, extract_weights(model, feature_names, fold_num), None
    except Exception as e:
        return [], empty_weights(), f"Fold {fold_num} failed: {type(e).__name__}: {e}"


class CrossValidationHarness:
    """
    K-fold evaluation of an estimator.

    Folds run in parallel with joblib (``n_jobs`` is the inner, per
    configuration budget). The metrics table is long-format:
    one row per (fold, split, scorer).
    """

    def __init__(self, num_folds: int = 3, n_jobs: int = 1, scoring: Sequence[str] = ("accuracy",),
                 stratified: bool = True, seed: Optional[int] = None,
                 logger: Optional[logging.Logger] = None):
        self.num_folds = num_folds
        self.n_jobs = n_jobs
        self.scoring = tuple(scoring)
        self.stratified = stratified
        self.seed = seed
        self.logger = logger or logging.getLogger(self.__class__.__name__)

    def split(self, estimator, X, y) -> List[Tuple[np.ndarray, np.ndarray]]:
        """Determine CV strategy and materialize the folds."""
        if self.stratified and is_classifier(estimator):
            try:
                cv = StratifiedKFold(n_splits=self.num_folds, shuffle=True, random_state=self.seed)
                return list(cv.split(X, y))
            except ValueError as e:
                self.logger.debug(f"Stratified split unavailable ({e}); using KFold.")
        cv = KFold(n_splits=self.num_folds, shuffle=True, random_state=self.seed)
        return list(cv.split(X))

    def evaluate(self, estimator, X, y) -> CrossValidationResult:
        try:
            splits = self.split(estimator, X, y)
        except ValueError as e:
            return CrossValidationResult(empty_metrics(), empty_weights(), f"Split failed: {e}")

        feature_names = feature_names_of(X)
        fold_results = Parallel(n_jobs=self.n_jobs)(
            delayed(_run_single_fold)(estimator, X, y, train_idx, test_idx, i, self.scoring, feature_names)
            for i, (train_idx, test_idx) in enumerate(splits)
        )

        rows = [row for fold_rows, _, _ in fold_results for row in fold_rows]
        metrics = pd.DataFrame(rows, columns=METRICS_COLUMNS) if rows else empty_metrics()
        weight_frames = [w for _, w, _ in fold_results if not w.empty]
        weights = pd.concat(weight_frames, ignore_index=True) if weight_frames else empty_weights()
        errors = [err for _, _, err in fold_results if err]

        return CrossValidationResult(metrics, weights, "; ".join(errors) if errors else None)

    def fit_full(self, estimator, X, y):
        """Fit a clone on the full dataset. Raises on failure."""
        model = clone(estimator)
        model.fit(X, y)
        return model, extract_weights(model, feature_names_of(X), constants.FULL_DATA_FOLD)
