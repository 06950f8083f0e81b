import math
import sqlite3
from contextlib import closing

import pandas as pd

from utils.exceptions import AggregationFailure
from utils import constants


class MetricsExpression:
    """
    SQL aggregation over the per-fold metrics table.

    The table is exposed as ``__THIS__`` in an in-memory SQLite database,
    e.g. ``SELECT AVG(value) FROM __THIS__ WHERE metric = 'roc_auc' AND isTest``.
    The query must yield exactly one row with one numeric column; SQL NULL
    maps to NaN.
    """

    def __init__(self, expression: str = constants.DEFAULT_METRICS_EXPRESSION):
        self.expression = expression

    def evaluate(self, metrics: pd.DataFrame) -> float:
        with closing(sqlite3.connect(":memory:")) as con:
            metrics.to_sql(constants.THIS_TABLE, con, index=False)
            try:
                result = pd.read_sql_query(self.expression, con)
            except (sqlite3.Error, pd.errors.DatabaseError) as e:
                raise AggregationFailure(f"Metrics expression failed: {e}") from e

        if result.shape != (1, 1):
            raise AggregationFailure(
                f"Metrics expression must yield exactly one value, got "
                f"{result.shape[0]} row(s) x {result.shape[1]} column(s)"
            )

        value = result.iat[0, 0]
        if value is None:
            return math.nan
        try:
            return float(value)
        except (TypeError, ValueError):
            raise AggregationFailure(f"Metrics expression returned a non-numeric value: {value!r}")

    def __repr__(self):
        return f"MetricsExpression({self.expression!r})"
