"""
Data loading and initial inspection module.
"""
import pandas as pd
from typing import Tuple, Dict, Any, List

from biocat.config import (
    DATA_PATH, TARGET_COLUMN, RISK_COLUMN, ID_COLUMN, NON_FEATURE_COLUMNS,
)


def load_data(filepath: str = None) -> pd.DataFrame:
    """
    Load the pest observation dataset from CSV file.

    Args:
        filepath: Path to CSV file. If None, uses default from config.

    Returns:
        DataFrame with loaded data.
    """
    if filepath is None:
        filepath = DATA_PATH

    df = pd.read_csv(filepath)
    print(f"✅ Loaded data: {df.shape[0]} samples, {df.shape[1]} columns")
    return df


def validate_columns(df: pd.DataFrame, target_column: str = TARGET_COLUMN,
                     risk_column: str = RISK_COLUMN) -> None:
    """Raise if the required target or risk column is missing."""
    missing = [col for col in (target_column, risk_column) if col not in df.columns]
    if missing:
        raise ValueError(f"Missing required column(s): {missing}. Available: {list(df.columns)}")


def get_feature_columns(df: pd.DataFrame) -> List[str]:
    """
    Get numeric feature column names (excluding ID, target, risk and grouping columns).

    Args:
        df: Input DataFrame.

    Returns:
        List of feature column names.
    """
    return [
        col for col in df.columns
        if col not in NON_FEATURE_COLUMNS and pd.api.types.is_numeric_dtype(df[col])
    ]


def get_data_info(df: pd.DataFrame) -> Dict[str, Any]:
    """
    Get comprehensive information about the dataset.

    Args:
        df: Input DataFrame.

    Returns:
        Dictionary with dataset information.
    """
    feature_cols = get_feature_columns(df)
    info = {
        'n_samples': len(df),
        'n_features': len(feature_cols),
        'n_total_columns': len(df.columns),
        'missing_values': int(df[feature_cols].isnull().sum().sum()) if feature_cols else 0,
        'duplicate_rows': int(df.duplicated().sum()),
        'memory_mb': df.memory_usage(deep=True).sum() / 1024**2,
        'id_column_present': ID_COLUMN in df.columns,
        'target_column_present': TARGET_COLUMN in df.columns,
        'risk_column_present': RISK_COLUMN in df.columns,
    }

    if info['target_column_present']:
        target = df[TARGET_COLUMN]
        info['target_summary'] = target.describe().to_dict()
        info['target_zero_fraction'] = float((target == 0).mean())

    if info['risk_column_present']:
        info['risk_summary'] = df[RISK_COLUMN].describe().to_dict()

    return info


def print_data_report(df: pd.DataFrame) -> None:
    """
    Print a data quality report.

    Args:
        df: Input DataFrame.
    """
    info = get_data_info(df)

    print("\n" + "="*60)
    print("📊 DATASET OVERVIEW")
    print("="*60)
    print(f"  Total samples:     {info['n_samples']:,}")
    print(f"  Total columns:     {info['n_total_columns']}")
    print(f"  Feature columns:   {info['n_features']}")
    print(f"  Memory usage:      {info['memory_mb']:.2f} MB")

    print("\n" + "-"*60)
    print("📋 DATA QUALITY")
    print("-"*60)
    print(f"  Missing feature values: {info['missing_values']} (filled with 0)")
    print(f"  Duplicate rows:         {info['duplicate_rows']}")

    if info['target_column_present']:
        summary = info['target_summary']
        print("\n" + "-"*60)
        print(f"🎯 TARGET: {TARGET_COLUMN}")
        print("-"*60)
        print(f"  mean={summary['mean']:.3f}  sd={summary['std']:.3f}  "
              f"min={summary['min']:.3f}  max={summary['max']:.3f}")
        print(f"  zero catches: {info['target_zero_fraction']*100:.1f}%")

    if info['risk_column_present']:
        summary = info['risk_summary']
        print(f"\n🐛 RISK SOURCE: {RISK_COLUMN}")
        print(f"  min={summary['min']:.3f}  median={summary['50%']:.3f}  max={summary['max']:.3f}")

    print("\n" + "="*60)


def split_features_target(
    df: pd.DataFrame,
    target_column: str = TARGET_COLUMN,
) -> Tuple[pd.DataFrame, pd.Series]:
    """
    Split DataFrame into features (X) and target (y).

    Args:
        df: Input DataFrame.
        target_column: Target column name.

    Returns:
        Tuple of (X, y) where X is features DataFrame and y is target Series.
    """
    feature_cols = get_feature_columns(df)
    X = df[feature_cols].copy()
    y = df[target_column].copy()

    print(f"✅ Split data: X shape = {X.shape}, y shape = {y.shape}")
    return X, y
