"""
Configuration settings for the BioCATXGBoost pest forecasting experiment.

Fixed hyperparameters for every model so the weighted and unweighted
boosting runs stay comparable.
"""
import os
from pathlib import Path

# Project paths
PROJECT_ROOT = Path(__file__).parent.parent
DATA_PATH = PROJECT_ROOT / "pest_dataset.csv"
OUTPUT_DIR = Path(os.environ.get("BIOCAT_OUTPUT_DIR", PROJECT_ROOT / "output"))
MODELS_DIR = OUTPUT_DIR / "models"
PLOTS_DIR = OUTPUT_DIR / "plots"
TABLES_DIR = OUTPUT_DIR / "tables"


def ensure_output_dirs() -> None:
    """Create output directories if they don't exist."""
    for path in (OUTPUT_DIR, MODELS_DIR, PLOTS_DIR, TABLES_DIR):
        path.mkdir(parents=True, exist_ok=True)


# Data settings
TARGET_COLUMN = "abundance"          # count / continuous pest catch
CLASS_TARGET_COLUMN = "pressure_class"
RISK_COLUMN = "risk_raw"             # pre-computed biological risk estimate
ID_COLUMN = "site_id"
GROUP_COLUMN = "region"              # optional, for per-group scatter plots
DATE_COLUMN = "date"
NON_FEATURE_COLUMNS = [TARGET_COLUMN, CLASS_TARGET_COLUMN, RISK_COLUMN,
                       ID_COLUMN, GROUP_COLUMN, DATE_COLUMN]

RANDOM_STATE = 42
TEST_SIZE = 0.3

# Pest pressure classes (tertiles of the abundance target)
CLASS_NAMES = ["low", "medium", "high"]
N_CLASSES = len(CLASS_NAMES)

# Risk index is clamped into this interval after min-max normalization
RISK_FLOOR = 0.01
RISK_CEIL = 1.0

# Base temperature for growing degree days (fall armyworm development threshold)
GDD_BASE_TEMP = 10.0

TASKS = ("classification", "regression")
CLASSIFICATION_METRICS = ["accuracy", "kappa"]
REGRESSION_METRICS = ["r2", "rmse"]
LOWER_IS_BETTER = {"rmse"}

# Model labels
BASELINE_SCENARIO = "Baseline"
PLAIN_BOOSTING_MODEL = "XGBoost"
BIOCAT_PREFIX = "BioCATXGBoost"
BASELINE_MODELS = ["RandomForest", "LightGBM", "DecisionTree", PLAIN_BOOSTING_MODEL]

# ============================================================================
# FIXED HYPERPARAMETERS
# ============================================================================

RANDOM_FOREST_PARAMS = {
    'n_estimators': 500,
    'max_depth': None,
    'min_samples_leaf': 1,
}

LIGHTGBM_PARAMS = {
    'n_estimators': 100,
    'learning_rate': 0.1,
    'num_leaves': 31,
    'max_depth': -1,
    'subsample': 0.8,
    'subsample_freq': 1,
    'colsample_bytree': 0.8,
}

DECISION_TREE_PARAMS = {
    'max_depth': 6,
    'min_samples_leaf': 5,
}

# Shared by plain XGBoost and every BioCATXGBoost strategy
XGBOOST_PARAMS = {
    'n_estimators': 100,
    'max_depth': 6,
    'learning_rate': 0.1,
    'subsample': 0.8,
    'colsample_bytree': 0.8,
}

# ============================================================================
# GAIN FUNCTION DEFAULTS
# ============================================================================

EXPONENTIAL_DEFAULTS = {'thresh': 0.5, 'scale': 5.0}
SIGMOID_DEFAULTS = {'midpoint': 0.5, 'slope': 10.0}
STEP_DEFAULTS = {'low': 0.4, 'high': 0.7, 'low_w': 0.5, 'high_w': 2.0, 'mid_w': 1.0}
TRIANGULAR_DEFAULTS = {'a': 0.2, 'b': 0.8, 'peak': 0.5, 'max_w': 2.0, 'min_w': 0.5}
TRAPEZOIDAL_DEFAULTS = {
    'start': 0.4, 'end': 0.9,
    'flat_start': 0.55, 'flat_end': 0.75,
    'max_w': 2.0, 'min_w': 0.5,
}
GAUSSIAN_DEFAULTS = {'mu': 0.5, 'sigma': 0.15}

STRATEGY_LABELS = ["EXP", "SIGMOID", "STEP", "TRIANGULAR", "TRAPEZOID", "GAUSSIAN"]
GAIN_CURVE_POINTS = 201

# ============================================================================
# ROBUSTNESS SIMULATION
# ============================================================================

N_SIMULATION_RUNS = 100
SIMULATION_SEED = 2024
SIM_N_OBS_RANGE = (200, 1000)       # inclusive
SIM_N_FEATURES_RANGE = (5, 20)      # inclusive
SIM_COEFFICIENTS = (1.5, -1.0, 0.5)  # on the first three features
SIM_RISK_COEFFICIENT = 3.0
SIM_NOISE_SD = 1.0
SIM_RANKING_METRIC = {"classification": "accuracy", "regression": "r2"}
N_JOBS = 1
