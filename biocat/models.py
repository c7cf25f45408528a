"""
Model definitions and training module for the pest forecasting comparison.

Fixed hyperparameters, fixed seeds - no hyperparameter search, so every
weighted run is directly comparable with the plain XGBoost baseline.

Models:
1. RandomForest - bagged trees (scikit-learn)
2. LightGBM - leaf-wise gradient boosting
3. DecisionTree - single CART tree (scikit-learn)
4. XGBoost - plain gradient-boosted trees
5. BioCATXGBoost_<STRATEGY> - XGBoost with risk-derived sample weights
"""
import numpy as np
import pandas as pd
from typing import Dict, Any, List, Optional
import joblib
import lightgbm as lgb
from sklearn.ensemble import RandomForestClassifier, RandomForestRegressor
from sklearn.tree import DecisionTreeClassifier, DecisionTreeRegressor
from xgboost import XGBClassifier, XGBRegressor

from biocat.config import (
    RANDOM_STATE, MODELS_DIR, TASKS, BIOCAT_PREFIX, PLAIN_BOOSTING_MODEL,
    RANDOM_FOREST_PARAMS, LIGHTGBM_PARAMS, DECISION_TREE_PARAMS, XGBOOST_PARAMS,
)


class InsufficientClassesError(ValueError):
    """Raised when a classification training split has fewer than 2 classes."""


def biocat_model_name(strategy_label: str) -> str:
    return f"{BIOCAT_PREFIX}_{strategy_label}"


def is_biocat_model(model_name: str) -> bool:
    return model_name.startswith(BIOCAT_PREFIX)


class ModelTrainer:
    """
    Handles model training with fixed hyperparameters for one task.
    """

    def __init__(self, task: str = "regression", random_state: int = RANDOM_STATE,
                 verbose: bool = True, n_jobs: int = -1):
        """
        Initialize the model trainer.

        Args:
            task: 'classification' or 'regression'.
            random_state: Seed shared by every model.
            verbose: Print training progress.
            n_jobs: Threads per model.
        """
        if task not in TASKS:
            raise ValueError(f"Unknown task '{task}'. Expected one of {TASKS}")
        self.task = task
        self.random_state = random_state
        self.verbose = verbose
        self.n_jobs = n_jobs
        self.models: Dict[str, Any] = {}
        self.classes_: Optional[np.ndarray] = None

    @property
    def is_classification(self) -> bool:
        return self.task == "classification"

    def _get_random_forest_model(self):
        """Create random forest with fixed params."""
        estimator = RandomForestClassifier if self.is_classification else RandomForestRegressor
        return estimator(random_state=self.random_state, n_jobs=self.n_jobs, **RANDOM_FOREST_PARAMS)

    def _get_lightgbm_model(self):
        """Create LightGBM model with fixed params."""
        estimator = lgb.LGBMClassifier if self.is_classification else lgb.LGBMRegressor
        return estimator(random_state=self.random_state, n_jobs=self.n_jobs, verbose=-1,
                         **LIGHTGBM_PARAMS)

    def _get_decision_tree_model(self):
        """Create single decision tree with fixed params."""
        estimator = DecisionTreeClassifier if self.is_classification else DecisionTreeRegressor
        return estimator(random_state=self.random_state, **DECISION_TREE_PARAMS)

    def _get_xgboost_model(self, params_override: Optional[Dict[str, Any]] = None):
        """Create XGBoost model with fixed params (optionally overridden)."""
        params = dict(XGBOOST_PARAMS)
        if params_override:
            params.update(params_override)

        estimator = XGBClassifier if self.is_classification else XGBRegressor
        return estimator(random_state=self.random_state, n_jobs=self.n_jobs, verbosity=0, **params)

    def _prepare_target(self, y_train) -> np.ndarray:
        """Encode class labels to 0..K-1 (classification) or cast to float (regression)."""
        y_train = np.asarray(y_train)

        if not self.is_classification:
            return y_train.astype(float)

        classes = np.unique(y_train)
        if classes.size < 2:
            raise InsufficientClassesError(
                f"Training labels contain {classes.size} distinct class(es); need at least 2"
            )
        if self.classes_ is None:
            self.classes_ = classes
        elif not np.array_equal(self.classes_, classes):
            raise ValueError(
                f"Training classes changed between fits: {self.classes_.tolist()} vs {classes.tolist()}"
            )
        return np.searchsorted(self.classes_, y_train)

    def _fit(self, name: str, model, X_train: pd.DataFrame, y_train,
             sample_weight: Optional[np.ndarray] = None):
        if self.verbose:
            print(f"🚀 Training {name}...", end=" ", flush=True)

        y_fit = self._prepare_target(y_train)
        if sample_weight is not None:
            sample_weight = np.asarray(sample_weight, dtype=float)
            if sample_weight.shape[0] != len(y_fit):
                raise ValueError(
                    f"{name}: got {sample_weight.shape[0]} sample weights for {len(y_fit)} training rows"
                )
            model.fit(X_train, y_fit, sample_weight=sample_weight)
        else:
            model.fit(X_train, y_fit)

        self.models[name] = model
        if self.verbose:
            print("Done!")
        return model

    def train_random_forest(self, X_train: pd.DataFrame, y_train) -> Any:
        return self._fit("RandomForest", self._get_random_forest_model(), X_train, y_train)

    def train_lightgbm(self, X_train: pd.DataFrame, y_train) -> Any:
        return self._fit("LightGBM", self._get_lightgbm_model(), X_train, y_train)

    def train_decision_tree(self, X_train: pd.DataFrame, y_train) -> Any:
        return self._fit("DecisionTree", self._get_decision_tree_model(), X_train, y_train)

    def train_xgboost(self, X_train: pd.DataFrame, y_train) -> Any:
        return self._fit(PLAIN_BOOSTING_MODEL, self._get_xgboost_model(), X_train, y_train)

    def train_baselines(self, X_train: pd.DataFrame, y_train) -> Dict[str, Any]:
        """Train every unweighted baseline model."""
        if self.verbose:
            print(f"\n🎯 Training baseline models ({self.task})...")

        self.train_random_forest(X_train, y_train)
        self.train_lightgbm(X_train, y_train)
        self.train_decision_tree(X_train, y_train)
        self.train_xgboost(X_train, y_train)

        return self.models

    def train_weighted_xgboost(
        self,
        strategy_label: str,
        X_train: pd.DataFrame,
        y_train,
        sample_weight: np.ndarray,
    ) -> Any:
        """Train XGBoost with the plain baseline's params plus risk-derived sample weights."""
        return self._fit(biocat_model_name(strategy_label), self._get_xgboost_model(),
                         X_train, y_train, sample_weight=sample_weight)

    def predict(self, model_name: str, X: pd.DataFrame) -> np.ndarray:
        """Make predictions using a specific model (class labels decoded back)."""
        if model_name not in self.models:
            raise ValueError(f"Model '{model_name}' not found. Available: {list(self.models.keys())}")

        pred = np.asarray(self.models[model_name].predict(X))
        if self.is_classification:
            return self.classes_[pred.astype(int).ravel()]
        return pred.astype(float).ravel()

    def save_models(self, prefix: str = "") -> None:
        """Save all trained models to disk."""
        MODELS_DIR.mkdir(parents=True, exist_ok=True)
        for model_name, model in self.models.items():
            filename = MODELS_DIR / f"{prefix}{model_name}_model.joblib"
            joblib.dump({'task': self.task, 'classes': self.classes_, 'model': model}, filename)
            print(f"✅ Saved {model_name} to {filename}")

    def load_models(self, model_names: List[str], prefix: str = "") -> Dict[str, Any]:
        """Load models from disk."""
        for model_name in model_names:
            filename = MODELS_DIR / f"{prefix}{model_name}_model.joblib"
            if filename.exists():
                bundle = joblib.load(filename)
                if bundle['task'] != self.task:
                    raise ValueError(f"{filename} holds a {bundle['task']} model, trainer is {self.task}")
                self.models[model_name] = bundle['model']
                if bundle['classes'] is not None:
                    self.classes_ = bundle['classes']
                print(f"✅ Loaded {model_name} from {filename}")

        return self.models

    def get_feature_importance(self, model_name: str, feature_names: list) -> pd.DataFrame:
        """Get feature importance from a specific model."""
        if model_name not in self.models:
            raise ValueError(f"Model '{model_name}' not found.")

        model = self.models[model_name]

        if not hasattr(model, 'feature_importances_'):
            raise ValueError(f"Model '{model_name}' doesn't support feature importance.")

        importance_df = pd.DataFrame({
            'feature': feature_names,
            'importance': model.feature_importances_
        })
        importance_df = importance_df.sort_values('importance', ascending=False)

        return importance_df
