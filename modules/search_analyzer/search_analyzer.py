import logging
import math
from contextlib import contextmanager
from pathlib import Path
from typing import Dict

import matplotlib
matplotlib.use("Agg")  # Non-interactive backend for headless runs
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from modules.base import BaseEngine
from modules.result_summary import ResultSummary
from utils.file_io import save_dataframe
from utils import constants

BEST_SO_FAR = "bestSoFar"
PROPOSAL = "proposal"
IS_PRIOR = "isPrior"


class SearchAnalyzer(BaseEngine):
    """
    Post-search analysis of a finished run.
    """

    def __init__(self, settings, logger: logging.Logger, top_percent: float = 10.0):
        super().__init__(settings, logger)
        if not 0 < top_percent <= 100:
            raise ValueError(f"top_percent must be in (0, 100], got {top_percent}")
        self.top_percent = top_percent
        self.excel_copy = getattr(settings, 'save_excel_copy', False)

    def _get_engine_directory_name(self) -> str:
        return constants.SEARCH_ANALYSIS_DIR

    @contextmanager
    def _plot_context(self):
        original_rcParams = plt.rcParams.copy()
        try:
            yield
        finally:
            plt.rcParams.update(original_rcParams)
            plt.close('all')

    def execute(self, summary: ResultSummary) -> Dict[str, pd.DataFrame]:
        """
        Analyze a search history.

        Returns:
            Dict with the ``convergence`` trace and ``optimal_ranges`` frames.
            Both are also written (with plots) when an output directory is set.
        """
        self.logger.info(f"Starting search analysis on {len(summary)} configurations...")

        trace = self.convergence_trace(summary)
        table = summary.configurations_table()
        ranges = self.optimal_ranges(table, summary)

        if self.output_dir is not None:
            save_dataframe(trace, self.output_dir / "convergence.parquet", excel_copy=self.excel_copy, index=False)
            save_dataframe(ranges, self.output_dir / "optimal_ranges.parquet", excel_copy=self.excel_copy, index=False)
            with self._plot_context():
                self._plot_convergence(trace, self.output_dir / "convergence.png")
                for column in summary.param_columns():
                    self._plot_metric_vs_param(table, column, self.output_dir / f"metric_vs_{_sanitize(column)}.png")
            self.logger.info(f"Search analysis complete. Artifacts in {self.output_dir}")

        return {'convergence': trace, 'optimal_ranges': ranges}

    def convergence_trace(self, summary: ResultSummary) -> pd.DataFrame:
        """Best metric so far, in proposal order. Priors come first."""
        best = -math.inf
        rows = []
        for position, result in enumerate(summary.history):
            metric = float(result.metric)
            if not math.isnan(metric) and metric > best:
                best = metric
            rows.append({
                PROPOSAL: result.index,
                constants.RESULTING_METRIC: metric,
                BEST_SO_FAR: best if math.isfinite(best) else math.nan,
                IS_PRIOR: position < summary.n_priors,
            })
        return pd.DataFrame(rows, columns=[PROPOSAL, constants.RESULTING_METRIC, BEST_SO_FAR, IS_PRIOR])

    def optimal_ranges(self, table: pd.DataFrame, summary: ResultSummary) -> pd.DataFrame:
        """Per parameter: range spanned by the top ``top_percent`` of finite-metric configurations."""
        finite = table[table[constants.RESULTING_METRIC].notna()]
        top_n = max(1, int(len(finite) * (self.top_percent / 100.0)))
        top = finite.head(top_n)

        domains = {pair.column_name: pair.domain for pair in summary.pairs}
        rows = []
        for column in summary.param_columns():
            domain = domains[column]
            rows.append({
                'Parameter': column,
                'Domain Lower': domain.lower,
                'Domain Upper': domain.upper,
                'Optimal Min': top[column].min() if not top.empty else np.nan,
                'Optimal Max': top[column].max() if not top.empty else np.nan,
                'Best Value': top.iloc[0][column] if not top.empty else np.nan,
                'Top Configs': len(top),
            })
        return pd.DataFrame(rows)

    def _plot_convergence(self, trace: pd.DataFrame, output_path: Path) -> None:
        if trace.empty:
            return
        plt.figure(figsize=(10, 6))
        searched = trace[~trace[IS_PRIOR]]
        priors = trace[trace[IS_PRIOR]]
        plt.scatter(searched[PROPOSAL], searched[constants.RESULTING_METRIC], s=25, alpha=0.6, label='Evaluated')
        if not priors.empty:
            plt.scatter(priors[PROPOSAL], priors[constants.RESULTING_METRIC], s=25, alpha=0.6, marker='x', c='gray', label='Prior')
        plt.step(trace[PROPOSAL], trace[BEST_SO_FAR], where='post', color='red', linewidth=2, label='Best so far')
        plt.xlabel("Proposal")
        plt.ylabel(constants.RESULTING_METRIC)
        plt.title("Search Convergence")
        plt.legend()
        plt.tight_layout(); plt.savefig(output_path, dpi=150, bbox_inches='tight'); plt.close()

    def _plot_metric_vs_param(self, table: pd.DataFrame, column: str, output_path: Path) -> None:
        finite = table[table[constants.RESULTING_METRIC].notna()]
        if finite.empty:
            return
        plt.figure(figsize=(10, 6))
        points = plt.scatter(finite[column], finite[constants.RESULTING_METRIC], c=finite[constants.RESULTING_METRIC], cmap='viridis', s=30)
        best = finite.iloc[0]
        plt.scatter([best[column]], [best[constants.RESULTING_METRIC]], marker='*', s=250, c='gold',
                    edgecolors='red', linewidths=1.5, zorder=10, label='Best')
        plt.colorbar(points, label=constants.RESULTING_METRIC)
        plt.xlabel(column)
        plt.ylabel(constants.RESULTING_METRIC)
        plt.title(f"{constants.RESULTING_METRIC} vs {column}")
        plt.legend()
        plt.tight_layout(); plt.savefig(output_path, dpi=150, bbox_inches='tight'); plt.close()


def _sanitize(name: str) -> str:
    return "".join(c if c.isalnum() else '_' for c in name)
