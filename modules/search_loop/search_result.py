import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Union

import numpy as np
import pandas as pd

from utils.exceptions import PersistenceError
from utils.file_io import save_dataframe, read_dataframe
from utils.model_loader import safe_dump_model, safe_load_model
from utils import constants

BLOCKS = (constants.CONFIGURATIONS_BLOCK, constants.METRICS_BLOCK, constants.WEIGHTS_BLOCK)


@dataclass
class SearchResult:
    """
    Output artifact of a search: the refit winning model plus the
    ``configurations``, ``metrics`` and ``weights`` summary tables.
    """

    model: Any
    best_params: Dict[str, float]
    best_metric: float
    summary: Dict[str, pd.DataFrame] = field(default_factory=dict, repr=False)
    stop_reason: str = ""
    rounds: int = 0
    evaluated: int = 0

    @property
    def configurations(self) -> pd.DataFrame:
        return self.summary[constants.CONFIGURATIONS_BLOCK]

    @property
    def metrics(self) -> pd.DataFrame:
        return self.summary[constants.METRICS_BLOCK]

    @property
    def weights(self) -> pd.DataFrame:
        return self.summary[constants.WEIGHTS_BLOCK]

    def coefficients(self) -> np.ndarray:
        """Full-data weights of the winning configuration, ordered by name."""
        weights = self.weights
        best = weights[
            (weights[constants.CONFIGURATION_INDEX] == 0)
            & (weights[constants.FOLD_NUM] == constants.FULL_DATA_FOLD)
        ]
        return best.sort_values(constants.WEIGHT_NAME, kind='mergesort')[constants.WEIGHT].to_numpy()

    def save(self, path: Union[str, Path], excel_copy: bool = False) -> Path:
        """Persist the model, the summary tables and a JSON digest under ``path``."""
        path = Path(path)
        safe_dump_model(self.model, path / constants.MODEL_FILE)
        try:
            for block in BLOCKS:
                save_dataframe(self.summary[block], path / f"{block}.parquet", excel_copy=excel_copy, index=False)
            digest = {
                'best_params': self.best_params,
                'best_metric': None if np.isnan(self.best_metric) else float(self.best_metric),
                'stop_reason': self.stop_reason,
                'rounds': int(self.rounds),
                'evaluated': int(self.evaluated),
            }
            with open(path / constants.SEARCH_SUMMARY_FILE, 'w') as f:
                json.dump(digest, f, indent=2)
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Failed to save search result to {path}: {e}") from e
        return path

    @classmethod
    def load(cls, path: Union[str, Path]) -> "SearchResult":
        path = Path(path)
        model = safe_load_model(path / constants.MODEL_FILE)
        try:
            summary = {block: read_dataframe(path / f"{block}.parquet") for block in BLOCKS}
            with open(path / constants.SEARCH_SUMMARY_FILE, 'r') as f:
                digest = json.load(f)
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Failed to load search result from {path}: {e}") from e

        best_metric = digest.get('best_metric')
        return cls(
            model=model,
            best_params={k: float(v) for k, v in digest.get('best_params', {}).items()},
            best_metric=float('nan') if best_metric is None else float(best_metric),
            summary=summary,
            stop_reason=digest.get('stop_reason', ""),
            rounds=digest.get('rounds', 0),
            evaluated=digest.get('evaluated', 0),
        )
