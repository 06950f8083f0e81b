# utils/constants.py

# --- Result Directories ---
# Sequentially numbered for proper sorting with clear, self-explanatory names

CONFIG_DIR = "01_RunConfiguration"              # Run config, metadata, seeds
SEARCH_RESULTS_DIR = "02_StochasticSearch"      # Configurations / metrics / weights tables
SEARCH_ANALYSIS_DIR = "03_SearchAnalysis"       # Convergence trace, optimal ranges, plots
FINAL_MODEL_DIR = "04_WinningModel"             # Refit model + summary tables
TEMP_MODELS_DIR = "tmp_models"                  # Per-configuration models (cleared at the end)

TOP_LEVEL_RESULT_DIRS = [
    CONFIG_DIR,
    SEARCH_RESULTS_DIR,
    SEARCH_ANALYSIS_DIR,
    FINAL_MODEL_DIR,
]

# --- File Names ---
CONFIG_USED_FILE = "config_used.json"
CONFIG_HASH_FILE = "config_hash.txt"
RUN_METADATA_FILE = "run_metadata.json"
CONFIGURATIONS_FILE = "configurations.parquet"
METRICS_FILE = "metrics.parquet"
WEIGHTS_FILE = "weights.parquet"
MODEL_FILE = "model.joblib"
SEARCH_SUMMARY_FILE = "search_summary.json"
TEMP_MODEL_TEMPLATE = "configuration_{index:04d}.joblib"

# --- Summary Block Names ---
CONFIGURATIONS_BLOCK = "configurations"
METRICS_BLOCK = "metrics"
WEIGHTS_BLOCK = "weights"

# --- Column Names ---
CONFIGURATION_INDEX = "configurationIndex"
RESULTING_METRIC = "resultingMetric"
ERROR = "error"
FOLD_NUM = "foldNum"
IS_TEST = "isTest"
METRIC = "metric"
VALUE = "value"
WEIGHT_NAME = "name"
WEIGHT = "weight"

# foldNum of the model fitted on the full dataset
FULL_DATA_FOLD = -1

# --- Metric Expression ---
THIS_TABLE = "__THIS__"
DEFAULT_METRICS_EXPRESSION = f"SELECT AVG({VALUE}) FROM {THIS_TABLE} WHERE {IS_TEST}"
