import json
import os
import hashlib
import sys
import logging
import jsonschema
import psutil  # Required for CPU awareness
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional

from modules.param_domain import ParamDomainPair
from modules.search_settings import SearchMode, SearchSettings, SearchSettingsBuilder
from utils.exceptions import ConfigurationError
from utils import constants


class ConfigurationManager:
    """
    Manages search configuration loading, validation, and access.
    Acts as the single source of truth for a CLI-driven search run and
    converts the validated JSON into frozen SearchSettings.
    """

    DEFAULT_MAX_ITER_LIMIT = 10000  # Guard against accidental runaway budgets

    def __init__(self, config_path: str = "config/config.json",
                 schema_path: str = "config/schema.json"):
        """
        Initialize the ConfigurationManager.

        Args:
            config_path (str): Path to the user configuration JSON.
            schema_path (str): Path to the JSON schema definition.
        """
        self.config_path = config_path
        self.schema_path = schema_path
        self.config: Dict[str, Any] = {}
        self.schema: Dict[str, Any] = {}
        self.run_id: Optional[str] = None
        self.logger = logging.getLogger("config_manager")

    def load_and_validate(self) -> Dict[str, Any]:
        """
        Main entry point. Loads config, validates schema/logic/resources,
        and propagates seeds.

        Returns:
            Dict[str, Any]: The fully validated configuration.

        Raises:
            ConfigurationError: If any validation step fails.
        """
        # 1. Load Files
        self.config = self._load_json(self.config_path)
        self.schema = self._load_json(self.schema_path)

        # 2. Structural Validation (Schema)
        self._validate_schema()

        # 3. Logical Validation (Domains & Bounds)
        self._validate_logic()

        # 4. Resource Validation (Thread oversubscription)
        self._validate_resources()

        # 5. Internal Seed Propagation (Reproducibility)
        self._propagate_seeds()

        return self.config

    def build_settings(self, output_dir: Optional[str] = None) -> SearchSettings:
        """
        Convert the validated configuration into SearchSettings.

        Args:
            output_dir: Run directory; defaults to outputs.base_results_dir.
        """
        if not self.config:
            raise ConfigurationError("Configuration not loaded. Call load_and_validate() first.")

        search = self.config.get('search', {})
        evaluation = self.config.get('evaluation', {})
        outputs = self.config.get('outputs', {})
        seeds = self.config.get('_internal_seeds', {})

        pairs = [
            ParamDomainPair.of(d['param'], d['lower'], d['upper'], display_name=d.get('name'))
            for d in self.config['domains']
        ]

        builder = (
            SearchSettingsBuilder()
            .param_domains(*pairs)
            .search_mode(search.get('mode', SearchMode.RANDOM.value))
            .max_iter(search.get('max_iter', 30))
            .max_no_improve_iters(search.get('max_no_improve_iters', 10))
            .tol(search.get('tol', 0.0))
            .top_k_for_tolerance(search.get('top_k_for_tolerance', 3))
            .epsilon_greedy(search.get('epsilon_greedy', 0.0))
            .num_threads(search.get('num_threads', 1))
            .gaussian_process(
                min_observations=search.get('min_observations', 2),
                restarts=search.get('gp_restarts', 10),
            )
            .num_folds(evaluation.get('num_folds', 3))
            .cv_num_threads(evaluation.get('n_jobs', 1))
            .scoring(*evaluation.get('scoring', ['accuracy']))
            .metrics_expression(evaluation.get('metrics_expression', constants.DEFAULT_METRICS_EXPRESSION))
            .nan_replacement(evaluation.get('nan_replacement'))
            .stratified(evaluation.get('stratified', True))
            .seed(seeds.get('search'))
        )

        base_dir = output_dir or outputs.get('base_results_dir')
        if base_dir:
            builder.output_dir(base_dir, excel_copy=outputs.get('save_excel_copy', False))
        if outputs.get('path_for_temp_models'):
            builder.path_for_temp_models(outputs['path_for_temp_models'])
        if search.get('priors_path'):
            builder.priors_path(search['priors_path'])

        return builder.build()

    def generate_run_id(self) -> str:
        """
        Generate or retrieve a unique run identifier based on timestamp.
        Used for directory naming and metadata.
        """
        if not self.run_id:
            timestamp = datetime.now()
            # Format: YYYYMMDD_HHMMSS
            self.run_id = timestamp.strftime("%Y%m%d_%H%M%S")
        return self.run_id

    def save_artifacts(self, output_dir: str) -> None:
        """
        Save configuration artifacts to the run directory for full reproducibility.

        Saves:
        1. config_used.json: The exact config object in memory.
        2. config_hash.txt: SHA256 hash for versioning.
        3. run_metadata.json: Environment details (Python version, CPU count, etc.).
        """
        config_dir = Path(output_dir) / constants.CONFIG_DIR
        config_dir.mkdir(parents=True, exist_ok=True)

        with open(config_dir / constants.CONFIG_USED_FILE, 'w') as f:
            json.dump(self.config, f, indent=2)

        config_str = json.dumps(self.config, sort_keys=True)
        config_hash = hashlib.sha256(config_str.encode()).hexdigest()

        with open(config_dir / constants.CONFIG_HASH_FILE, 'w') as f:
            f.write(config_hash)

        metadata = {
            'run_id': self.run_id,
            'start_time': datetime.now().isoformat(),
            'python_version': sys.version,
            'platform': sys.platform,
            'cpu_count': psutil.cpu_count(logical=True),
            'config_hash': config_hash,
            'working_directory': os.getcwd()
        }

        with open(config_dir / constants.RUN_METADATA_FILE, 'w') as f:
            json.dump(metadata, f, indent=2)

    def _load_json(self, path: str) -> Dict[str, Any]:
        """Safely load a JSON file."""
        if not os.path.exists(path):
            raise ConfigurationError(f"File not found: {path}")
        try:
            with open(path, 'r') as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in {path}: {str(e)}")

    def _validate_schema(self) -> None:
        """Validate config structure against JSON schema."""
        try:
            jsonschema.validate(instance=self.config, schema=self.schema)
        except jsonschema.ValidationError as e:
            raise ConfigurationError(f"Schema validation failed: {e.message}")

    def _validate_logic(self) -> None:
        """Logical validation the schema cannot express."""
        # --- Domains Section ---
        domains = self.config.get('domains', [])
        if not domains:
            raise ConfigurationError("At least one parameter domain must be specified.")

        seen = set()
        for domain in domains:
            name = domain.get('name') or domain.get('param')
            if name in seen:
                raise ConfigurationError(f"Duplicate parameter domain '{name}'.")
            seen.add(name)
            if domain['lower'] >= domain['upper']:
                raise ConfigurationError(
                    f"Domain '{name}': lower ({domain['lower']}) must be < upper ({domain['upper']})."
                )

        # --- Search Section ---
        search = self.config.get('search', {})
        max_iter = search.get('max_iter', 30)
        if max_iter > self.DEFAULT_MAX_ITER_LIMIT:
            raise ConfigurationError(
                f"search.max_iter ({max_iter}) exceeds safety limit ({self.DEFAULT_MAX_ITER_LIMIT})."
            )
        top_k = search.get('top_k_for_tolerance', 3)
        if top_k > max_iter:
            raise ConfigurationError(
                f"search.top_k_for_tolerance ({top_k}) must be <= search.max_iter ({max_iter})."
            )
        if search.get('priors_path') and not os.path.exists(search['priors_path']):
            raise ConfigurationError(f"search.priors_path not found: {search['priors_path']}")

        # --- Evaluation Section ---
        evaluation = self.config.get('evaluation', {})
        n_jobs = evaluation.get('n_jobs', 1)
        if n_jobs == 0 or n_jobs < -1:
            raise ConfigurationError(f"evaluation.n_jobs must be -1 (all cores) or a positive integer, got {n_jobs}")
        expression = evaluation.get('metrics_expression', constants.DEFAULT_METRICS_EXPRESSION)
        if constants.THIS_TABLE not in expression:
            raise ConfigurationError(
                f"evaluation.metrics_expression must select from {constants.THIS_TABLE}, got '{expression}'"
            )

        # --- Data Section ---
        data = self.config.get('data', {})
        if data and not data.get('target'):
            raise ConfigurationError("Data 'target' must be specified and non-empty.")

    def _validate_resources(self) -> None:
        """
        Warn when configurations-in-flight x folds-in-flight oversubscribes the CPU.
        """
        cpu_count = psutil.cpu_count(logical=True) or 1
        num_threads = self.config.get('search', {}).get('num_threads', 1)
        n_jobs = self.config.get('evaluation', {}).get('n_jobs', 1)
        inner = cpu_count if n_jobs == -1 else n_jobs

        if num_threads * inner > cpu_count:
            self.logger.warning(
                f"search.num_threads ({num_threads}) x evaluation.n_jobs ({n_jobs}) exceeds "
                f"available CPUs ({cpu_count}). Evaluations will compete for cores."
            )

    def _propagate_seeds(self) -> None:
        """
        Propagate master seed to internal components to ensure reproducibility.
        Uses non-overlapping offsets to avoid correlation between components.
        """
        master_seed = self.config.get('execution', {}).get('seed')
        if master_seed is None:
            self.config['_internal_seeds'] = {}
            self.logger.debug("No master seed configured; search is not reproducible.")
            return

        self.config['_internal_seeds'] = {
            'search': master_seed,
            'model': master_seed + 1000,
        }
        self.logger.debug(f"Seeds propagated from master ({master_seed}): {self.config['_internal_seeds']}")
