import logging
import math
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from modules.configuration_evaluator import EvaluationResult
from modules.configuration_evaluator.cross_validation import empty_metrics, empty_weights
from modules.param_domain import ParamDomainPair
from modules.proposal_strategy import Configuration
from utils.exceptions import ConfigurationError, PersistenceError
from utils.file_io import save_dataframe, read_dataframe
from utils import constants


def ranking_key(result: EvaluationResult):
    """Metric descending, NaN last, earlier proposal wins ties."""
    metric = float(result.metric)
    if math.isnan(metric):
        return (1, 0.0, result.index)
    return (0, -metric, result.index)


class ResultSummary:
    """
    Bookkeeping for one search run.

    Holds the search history and derives the ranked summary tables from it.
    ``configurationIndex`` in every table is the rank of the configuration,
    so row 0 of the configurations table is always the best so far.
    Performs no optimization logic.
    """

    def __init__(self, pairs: Sequence[ParamDomainPair], logger: Optional[logging.Logger] = None):
        self.pairs = tuple(pairs)
        self.logger = logger or logging.getLogger(self.__class__.__name__)
        self._history: List[EvaluationResult] = []
        self._final_weights: Dict[int, pd.DataFrame] = {}
        self.n_priors = 0

    # ------------------------------------------------------------------ #
    # History                                                            #
    # ------------------------------------------------------------------ #
    @property
    def history(self) -> List[EvaluationResult]:
        return list(self._history)

    def __len__(self) -> int:
        return len(self._history)

    def seed_priors(self, priors: Sequence[EvaluationResult]) -> None:
        """Prepend prior-run results. Only allowed before the first batch."""
        if self._history:
            raise RuntimeError("Priors must be seeded before any batch is recorded.")
        self.record_batch(priors)
        self.n_priors = len(priors)

    def record_batch(self, results: Sequence[EvaluationResult]) -> None:
        known = {r.index for r in self._history}
        for result in sorted(results, key=lambda r: r.index):
            if result.index in known:
                raise ValueError(f"Configuration index {result.index} recorded twice")
            known.add(result.index)
            self._history.append(result)

    def ranked(self) -> List[EvaluationResult]:
        return sorted(self._history, key=ranking_key)

    def rank_of(self) -> Dict[int, int]:
        """Mapping proposal index -> configurationIndex (rank)."""
        return {result.index: rank for rank, result in enumerate(self.ranked())}

    def best_result(self) -> Optional[EvaluationResult]:
        ranked = self.ranked()
        return ranked[0] if ranked else None

    def best_metric(self) -> float:
        best = self.best_result()
        return float(best.metric) if best is not None else math.nan

    def finite_metrics(self) -> np.ndarray:
        values = np.array([r.metric for r in self._history], dtype=float)
        return values[~np.isnan(values)]

    def replace_weights(self, index: int, weights: pd.DataFrame) -> None:
        """Replace the full-data (foldNum = -1) weights of one configuration."""
        self._final_weights[index] = weights[weights[constants.FOLD_NUM] == constants.FULL_DATA_FOLD]

    # ------------------------------------------------------------------ #
    # Tables                                                             #
    # ------------------------------------------------------------------ #
    def param_columns(self) -> List[str]:
        return sorted(pair.column_name for pair in self.pairs)

    def configurations_table(self) -> pd.DataFrame:
        columns = [constants.CONFIGURATION_INDEX, constants.RESULTING_METRIC, constants.ERROR] + self.param_columns()
        rows = []
        for rank, result in enumerate(self.ranked()):
            row = {
                constants.CONFIGURATION_INDEX: rank,
                constants.RESULTING_METRIC: float(result.metric),
                constants.ERROR: result.error,
            }
            for pair in self.pairs:
                row[pair.column_name] = float(result.params.get(pair.param_name, math.nan))
            rows.append(row)

        table = pd.DataFrame(rows, columns=columns)
        table[constants.CONFIGURATION_INDEX] = table[constants.CONFIGURATION_INDEX].astype('int64')
        table[constants.RESULTING_METRIC] = table[constants.RESULTING_METRIC].astype('float64')
        table[constants.ERROR] = table[constants.ERROR].astype('object')
        for col in self.param_columns():
            table[col] = table[col].astype('float64')
        return table

    def metrics_block(self) -> pd.DataFrame:
        return self._tagged_block([r.metrics for r in self.ranked()], empty_metrics())

    def weights_block(self) -> pd.DataFrame:
        frames = []
        for result in self.ranked():
            weights = result.weights
            if result.index in self._final_weights:
                weights = pd.concat(
                    [weights[weights[constants.FOLD_NUM] != constants.FULL_DATA_FOLD],
                     self._final_weights[result.index]],
                    ignore_index=True,
                )
            frames.append(weights)
        return self._tagged_block(frames, empty_weights())

    def _tagged_block(self, frames: List[pd.DataFrame], empty: pd.DataFrame) -> pd.DataFrame:
        tagged = []
        for rank, frame in enumerate(frames):
            if frame is None or frame.empty:
                continue
            block = frame.copy()
            block[constants.CONFIGURATION_INDEX] = rank
            tagged.append(block)
        if not tagged:
            block = empty.copy()
            block[constants.CONFIGURATION_INDEX] = pd.Series(dtype='int64')
            return block
        block = pd.concat(tagged, ignore_index=True)
        block[constants.CONFIGURATION_INDEX] = block[constants.CONFIGURATION_INDEX].astype('int64')
        return block

    def tables(self) -> Dict[str, pd.DataFrame]:
        return {
            constants.CONFIGURATIONS_BLOCK: self.configurations_table(),
            constants.METRICS_BLOCK: self.metrics_block(),
            constants.WEIGHTS_BLOCK: self.weights_block(),
        }

    # ------------------------------------------------------------------ #
    # Persistence                                                        #
    # ------------------------------------------------------------------ #
    def persist(self, path: Union[str, Path], excel_copy: bool = False) -> Path:
        """Write the three summary tables as Parquet under ``path``."""
        path = Path(path)
        try:
            for block, frame in self.tables().items():
                save_dataframe(frame, path / f"{block}.parquet", excel_copy=excel_copy, index=False)
        except Exception as e:
            raise PersistenceError(f"Failed to persist search summary to {path}: {e}") from e
        self.logger.info(f"Search summary saved to {path} ({len(self)} configurations)")
        return path

    def load_priors(self, path: Union[str, Path]) -> List[EvaluationResult]:
        """
        Read a previous run's configurations table as prior history.

        ``path`` may be a directory holding ``configurations.parquet`` or a
        configurations file (.parquet/.csv/.xlsx). Parameter columns are
        matched by display name first, then by parameter name; values are
        clipped to the current domains.
        """
        path = Path(path)
        if path.is_dir():
            path = path / constants.CONFIGURATIONS_FILE
        if not path.exists():
            raise ConfigurationError(f"Priors file not found: {path}")
        try:
            table = read_dataframe(path)
        except Exception as e:
            raise PersistenceError(f"Failed to read priors from {path}: {e}") from e

        if constants.RESULTING_METRIC not in table.columns:
            raise ConfigurationError(f"Priors table {path} has no '{constants.RESULTING_METRIC}' column")

        columns = {}
        for pair in self.pairs:
            for candidate in (pair.column_name, pair.param_name):
                if candidate in table.columns:
                    columns[pair.param_name] = candidate
                    break
            else:
                raise ConfigurationError(
                    f"Priors table {path} has no column for parameter '{pair.column_name}'"
                )

        if constants.CONFIGURATION_INDEX in table.columns:
            table = table.sort_values(constants.CONFIGURATION_INDEX, kind='mergesort')

        priors = []
        skipped = 0
        clipped = 0
        for _, row in table.iterrows():
            raw = {pair.param_name: row[columns[pair.param_name]] for pair in self.pairs}
            if any(pd.isna(v) for v in raw.values()):
                skipped += 1
                continue
            if not all(pair.domain.contains(float(raw[pair.param_name])) for pair in self.pairs):
                clipped += 1
            params = {
                pair.param_name: pair.domain.clip(float(raw[pair.param_name]))
                for pair in self.pairs
            }
            metric = row[constants.RESULTING_METRIC]
            error = row.get(constants.ERROR)
            priors.append(EvaluationResult(
                configuration=Configuration(index=len(priors), params=params),
                metric=float(metric) if pd.notna(metric) else math.nan,
                error=error if isinstance(error, str) else None,
            ))

        if skipped:
            self.logger.warning(f"Skipped {skipped} prior rows with missing parameter values")
        if clipped:
            self.logger.warning(f"Clipped {clipped} prior rows into the current parameter domains")
        self.logger.info(f"Loaded {len(priors)} prior configurations from {path}")
        return priors
