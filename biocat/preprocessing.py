"""
Data preprocessing module: feature cleaning, derived environmental features,
risk index construction and pest-pressure class targets.
"""
import warnings
from typing import Tuple, List, Optional

import pandas as pd
import numpy as np
from sklearn.model_selection import train_test_split

from biocat.config import (
    RANDOM_STATE, TEST_SIZE, TARGET_COLUMN, RISK_COLUMN,
    RISK_FLOOR, RISK_CEIL, GDD_BASE_TEMP, N_CLASSES,
)
from biocat.data_loader import split_features_target, validate_columns


def compute_risk_index(
    raw: np.ndarray,
    lower: Optional[float] = None,
    upper: Optional[float] = None,
) -> np.ndarray:
    """
    Min-max normalize a raw risk estimate and clamp it into [RISK_FLOOR, RISK_CEIL].

    Args:
        raw: Raw risk values.
        lower: Normalization minimum (defaults to min of raw).
        upper: Normalization maximum (defaults to max of raw).

    Returns:
        Risk index array.
    """
    raw = np.asarray(raw, dtype=float)
    n_missing = int(np.isnan(raw).sum())
    if n_missing:
        warnings.warn(f"{n_missing} missing raw risk value(s) filled with 0 before normalization")
        raw = np.nan_to_num(raw, nan=0.0)
    lower = float(np.min(raw)) if lower is None else lower
    upper = float(np.max(raw)) if upper is None else upper

    if upper <= lower:
        warnings.warn(
            f"Raw risk is constant ({lower:.4f}); using risk index {RISK_CEIL} for every observation"
        )
        return np.full(raw.shape, RISK_CEIL)

    normalized = (raw - lower) / (upper - lower)
    return np.clip(normalized, RISK_FLOOR, RISK_CEIL)


def make_pressure_classes(values, n_classes: int = N_CLASSES) -> np.ndarray:
    """
    Bucket a continuous target into low / medium / high pressure classes.

    Uses quantile (tertile) cuts; when quantile breaks are not unique the
    values are binned into equal-width intervals instead, with a warning.

    Returns:
        Integer class codes 0..n_classes-1.
    """
    values = pd.Series(np.asarray(values, dtype=float))
    try:
        codes = pd.qcut(values, q=n_classes, labels=False)
    except ValueError:
        warnings.warn(
            f"Quantile breaks are not unique for {values.nunique()} distinct values; "
            f"falling back to {n_classes} equal-width bins"
        )
        codes = pd.cut(values, bins=n_classes, labels=False)
    return codes.to_numpy().astype(int)


class DataPreprocessor:
    """
    Turns a raw pest observation table into a model-ready feature matrix,
    target vector and risk index.

    - Missing feature values are replaced with zero
    - Derived climate / vegetation features are added when their inputs exist
    - Risk normalization bounds are learned in fit_transform and reused in transform
    """

    def __init__(self, target_column: str = TARGET_COLUMN, risk_column: str = RISK_COLUMN):
        self.target_column = target_column
        self.risk_column = risk_column
        self.feature_columns: List[str] = []
        self.derived_features: List[str] = []
        self.risk_bounds: Tuple[float, float] = (0.0, 1.0)
        self.is_fitted = False

    def fit_transform(self, df: pd.DataFrame) -> Tuple[pd.DataFrame, pd.Series, np.ndarray]:
        """
        Fit the preprocessor and transform the data.

        Args:
            df: Input DataFrame with features, target and raw risk.

        Returns:
            Tuple of (X_processed, y, risk_index).
        """
        print("\n🔧 Preprocessing data...")
        validate_columns(df, self.target_column, self.risk_column)
        self.is_fitted = False

        n_missing_target = int(df[self.target_column].isnull().sum())
        if n_missing_target > 0:
            df = df[df[self.target_column].notna()]
            print(f"  ✓ Dropped {n_missing_target} rows with missing target")

        X, y = split_features_target(df, self.target_column)
        X = self._handle_missing_values(X)
        X = self._create_derived_features(X)
        self.feature_columns = list(X.columns)

        raw_risk = df[self.risk_column].to_numpy(dtype=float)
        finite = raw_risk[np.isfinite(raw_risk)]
        if finite.size == 0:
            raise ValueError(f"Risk column '{self.risk_column}' has no finite values")
        self.risk_bounds = (float(finite.min()), float(finite.max()))
        risk = compute_risk_index(raw_risk, *self.risk_bounds)

        self.is_fitted = True
        print(f"✅ Done! Shape: {X.shape}, risk index range [{risk.min():.3f}, {risk.max():.3f}]")

        return X, y, risk

    def transform(self, df: pd.DataFrame) -> Tuple[pd.DataFrame, Optional[pd.Series], Optional[np.ndarray]]:
        """
        Transform new data using fitted preprocessor.

        Returns:
            Tuple of (X_processed, y or None, risk_index or None).
        """
        if not self.is_fitted:
            raise ValueError("Preprocessor must be fitted before transform. Call fit_transform first.")

        X = df.reindex(columns=[c for c in self.feature_columns if c not in self.derived_features])
        X = self._handle_missing_values(X, verbose=False)
        X = self._create_derived_features(X, verbose=False)
        X = X[self.feature_columns]

        y = df[self.target_column].copy() if self.target_column in df.columns else None
        risk = None
        if self.risk_column in df.columns:
            risk = compute_risk_index(df[self.risk_column].to_numpy(dtype=float), *self.risk_bounds)

        return X, y, risk

    def _handle_missing_values(self, X: pd.DataFrame, verbose: bool = True) -> pd.DataFrame:
        """Replace missing feature values with zero."""
        missing_count = int(X.isnull().sum().sum())
        X = X.fillna(0.0)
        if verbose:
            if missing_count > 0:
                print(f"  ✓ Replaced {missing_count} missing feature values with 0")
            else:
                print("  ✓ No missing values found")
        return X

    def _create_derived_features(self, X: pd.DataFrame, verbose: bool = True) -> pd.DataFrame:
        """
        Create environmental features relevant to pest development.

        Temperature spread and degree days drive larval development rate;
        rainfall is heavy-tailed so it is log-transformed.
        """
        X = X.copy()
        n_original = len(X.columns)

        if all(col in X.columns for col in ['tmax', 'tmin']):
            X['temp_range'] = X['tmax'] - X['tmin']
            X['gdd'] = np.clip((X['tmax'] + X['tmin']) / 2.0 - GDD_BASE_TEMP, a_min=0, a_max=None)

        if 'precip' in X.columns:
            X['log1p_precip'] = np.log1p(np.clip(X['precip'].values, a_min=0, a_max=None))

        if all(col in X.columns for col in ['ndvi', 'evi']):
            X['ndvi_evi_diff'] = X['ndvi'] - X['evi']

        created = list(X.columns[n_original:])
        if not self.is_fitted:
            self.derived_features = created
        if verbose:
            print(f"  ✓ Created {len(created)} derived features")

        return X


def create_train_test_split(
    X: pd.DataFrame,
    y: np.ndarray,
    risk: np.ndarray,
    stratify: bool = False,
    test_size: float = TEST_SIZE,
    random_state: int = RANDOM_STATE,
    verbose: bool = True,
) -> Tuple[pd.DataFrame, pd.DataFrame, np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """
    Split features, target and risk index together.

    Stratifies on y when requested and every class has at least 2 members.

    Returns:
        Tuple of (X_train, X_test, y_train, y_test, risk_train, risk_test).
    """
    y = np.asarray(y)
    risk = np.asarray(risk, dtype=float)

    strat = None
    if stratify:
        counts = pd.Series(y).value_counts()
        if len(counts) > 1 and counts.min() >= 2:
            strat = y
        elif verbose:
            print("   ⚠️  Too few members in some class for stratification, using a random split")

    X_train, X_test, y_train, y_test, risk_train, risk_test = train_test_split(
        X, y, risk,
        test_size=test_size,
        random_state=random_state,
        stratify=strat,
    )

    if verbose:
        label = "stratified" if strat is not None else "random"
        print(f"\n✅ Train-test split ({label}):")
        print(f"   Train: {len(y_train)} samples ({(1-test_size)*100:.0f}%)")
        print(f"   Test:  {len(y_test)} samples ({test_size*100:.0f}%)")

    return X_train, X_test, y_train, y_test, risk_train, risk_test
