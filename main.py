#!/usr/bin/env python
"""
Stochastic Hyperparameter Search - Main Entry Point
Runs a configured search over a scikit-learn estimator and saves the winning model.
"""
import sys
import logging
import argparse
import traceback
import random
from pathlib import Path
from typing import Optional, Sequence, Tuple

import pandas as pd
import numpy as np

# Core Infrastructure
from modules.config_manager import ConfigurationManager
from modules.logging_config import LoggingConfigurator
from modules.model_factory import ModelFactory
from modules.search_analyzer import SearchAnalyzer
from modules.search_loop import SearchLoop
from modules.search_settings import SearchMode
from utils.exceptions import ConfigurationError, StochasticSearchException
from utils.file_io import read_dataframe
from utils import constants


def parse_arguments(argv: Optional[Sequence[str]] = None):
    """
    Parse command-line arguments for configurable search execution.

    Returns:
        argparse.Namespace: Parsed command-line arguments.
    """
    parser = argparse.ArgumentParser(
        description="Stochastic Hyperparameter Search - Random & Gaussian Process",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    parser.add_argument(
        "--config",
        type=str,
        default="config/config.json",
        help="Path to the configuration JSON file"
    )

    parser.add_argument(
        "--data",
        type=str,
        default=None,
        help="Dataset file (.csv/.parquet/.xlsx); overrides data.file_path"
    )

    parser.add_argument(
        "--priors",
        type=str,
        default=None,
        help="Configurations table (or its directory) of a previous run to warm-start from"
    )

    parser.add_argument(
        "--mode",
        type=str,
        choices=[m.value for m in SearchMode],
        default=None,
        help="Override search.mode"
    )

    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging"
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate configuration and data without running the search"
    )

    parser.add_argument(
        "--analyze",
        action="store_true",
        help="Write convergence and optimal-range analysis after the search"
    )

    return parser.parse_args(argv)


def setup_global_determinism(config: dict, logger: logging.Logger):
    """
    Seed the global random sources used by third-party code.
    The search itself draws from its own seeded generator.
    """
    seed = config.get('_internal_seeds', {}).get('model')
    if seed is None:
        logger.info("No seed configured; run is not reproducible.")
        return
    logger.info(f"Setting Global Deterministic Seed: {seed}")
    random.seed(seed)
    np.random.seed(seed)


def load_data(config: dict, data_override: Optional[str], logger: logging.Logger) -> Tuple[pd.DataFrame, pd.Series]:
    """
    Load the dataset and split it into features and target.

    Raises:
        ConfigurationError: No data file configured, or target column missing.
    """
    data_cfg = config.get('data', {})
    file_path = data_override or data_cfg.get('file_path')
    if not file_path:
        raise ConfigurationError("No dataset given. Set data.file_path or pass --data.")
    if not Path(file_path).exists():
        raise ConfigurationError(f"Dataset not found: {file_path}")

    df = read_dataframe(file_path)
    target = data_cfg.get('target')
    if target not in df.columns:
        raise ConfigurationError(f"Target column '{target}' not found in {file_path}")

    drop = [c for c in data_cfg.get('drop_columns', []) if c in df.columns]
    X = df.drop(columns=drop + [target])
    y = df[target]
    logger.info(f"Data loaded from {file_path}: {len(df)} rows, {X.shape[1]} features")
    return X, y


def build_estimator(config: dict, logger: logging.Logger):
    """Instantiate the configured scikit-learn estimator."""
    model_cfg = config.get('model', {})
    params = dict(model_cfg.get('params', {}))
    seed = config.get('_internal_seeds', {}).get('model')
    if seed is not None:
        params.setdefault('random_state', seed)
    try:
        estimator = ModelFactory.create(model_cfg['name'], params)
    except ValueError as e:
        raise ConfigurationError(str(e)) from e
    logger.info(f"Estimator: {estimator}")
    return estimator


def main(argv: Optional[Sequence[str]] = None):
    """
    Main search orchestration function.

    Returns:
        int: Exit code (0 success, 1 errors, 130 interrupted)
    """
    logger = None

    try:
        args = parse_arguments(argv)

        print("\n" + "=" * 80)
        print("    STOCHASTIC HYPERPARAMETER SEARCH")
        print("=" * 80 + "\n")

        # ---------------------------------------------------------------
        # PHASE 0: INITIALIZATION & VALIDATION
        # ---------------------------------------------------------------
        config_manager = ConfigurationManager(config_path=args.config)
        config = config_manager.load_and_validate()

        if args.verbose:
            config.setdefault('logging', {})['level'] = 'DEBUG'

        logging_configurator = LoggingConfigurator(config)
        logging_configurator.setup()
        logger = logging_configurator.get_logger('search')

        logger.info(f"Configuration loaded from: {args.config}")

        run_id = config_manager.generate_run_id()
        run_dir = Path(config.get('outputs', {}).get('base_results_dir', 'results')).absolute()
        run_dir.mkdir(parents=True, exist_ok=True)
        config_manager.save_artifacts(str(run_dir))

        settings = config_manager.build_settings(output_dir=str(run_dir))
        if args.mode:
            settings = settings.evolve(search_mode=SearchMode.parse(args.mode))
        if args.priors:
            settings = settings.evolve(priors_path=Path(args.priors))

        setup_global_determinism(config, logger)

        logger.info(f"Run ID: {run_id}")
        logger.info(f"Output Directory: {run_dir}")

        estimator = build_estimator(config, logger)
        X, y = load_data(config, args.data, logger)

        if args.dry_run:
            logger.info("Dry run mode: validation complete. Exiting without running the search.")
            print("\n[SUCCESS] Configuration validated successfully.")
            return 0

        # ---------------------------------------------------------------
        # PHASE 1: SEARCH
        # ---------------------------------------------------------------
        logger.info("=" * 60)
        logger.info(f"PHASE 1: {settings.search_mode.value} SEARCH")
        logger.info("=" * 60)

        search = SearchLoop(estimator, settings, logger)
        result = search.execute(X, y)

        final_dir = result.save(run_dir / constants.FINAL_MODEL_DIR, excel_copy=settings.save_excel_copy)
        logger.info(f"Best metric {result.best_metric:.6g} with {result.best_params}")
        logger.info(f"Winning model saved to {final_dir}")

        # ---------------------------------------------------------------
        # PHASE 2: ANALYSIS (optional)
        # ---------------------------------------------------------------
        if args.analyze:
            logger.info("=" * 60)
            logger.info("PHASE 2: SEARCH ANALYSIS")
            logger.info("=" * 60)
            SearchAnalyzer(settings, logger).execute(search.summary)

        logger.info("-" * 60)
        logger.info(f"SEARCH COMPLETED: {result.stop_reason}")
        logger.info(f"Output Directory: {run_dir}")
        logger.info("-" * 60)

        print(f"\n[SUCCESS] Search completed. Results saved to: {run_dir}")
        return 0

    except StochasticSearchException as e:
        msg = f"Search Error: {str(e)}"
        print(f"\n[ERROR] {msg}")
        if logger:
            logger.critical(msg, exc_info=True)
        else:
            traceback.print_exc()
        return 1

    except KeyboardInterrupt:
        print("\n[INTERRUPTED] Search interrupted by user.")
        if logger:
            logger.warning("Search interrupted by user (Ctrl+C)")
        return 130

    except Exception as e:
        msg = f"Unexpected Error: {str(e)}"
        print(f"\n[CRITICAL] {msg}")
        if logger:
            logger.critical(msg, exc_info=True)
        else:
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
