"""
Risk-index weighting: anchors, strategy registry and per-sample weights.

Anchors are distribution statistics of the TRAINING risk index only; they
parametrize the gain functions for that split.
"""
from dataclasses import dataclass, asdict
from typing import Dict

import numpy as np
import pandas as pd

from biocat.config import (
    STRATEGY_LABELS, TRAPEZOIDAL_DEFAULTS, GAIN_CURVE_POINTS,
)
from biocat.gain_functions import (
    GainFunction, Exponential, Sigmoid, Step, Triangular, Trapezoidal, Gaussian,
    gain_curve,
)


class DegenerateRiskError(ValueError):
    """Raised when the training risk sample cannot support anchor statistics."""


@dataclass(frozen=True)
class Anchors:
    median: float
    half_iqr: float
    q40: float
    q60: float
    q80: float

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


def compute_anchors(risk_train) -> Anchors:
    """
    Compute distributional anchors from the training-set risk index.

    Quantiles use linear interpolation between order statistics.

    Args:
        risk_train: Training risk values (at least 2, with at least 2 distinct).

    Returns:
        Anchors record.
    """
    risk = np.asarray(risk_train, dtype=float).ravel()

    if risk.size < 2:
        raise DegenerateRiskError(f"Need at least 2 training risk values, got {risk.size}")
    if not np.all(np.isfinite(risk)):
        raise DegenerateRiskError("Training risk values contain NaN or infinite entries")
    if np.unique(risk).size < 2:
        raise DegenerateRiskError(
            f"Training risk index is constant ({risk[0]:.4f}); anchors are undefined"
        )

    q25, q40, q50, q60, q75, q80 = np.quantile(risk, [0.25, 0.40, 0.50, 0.60, 0.75, 0.80])

    return Anchors(
        median=float(q50),
        half_iqr=float((q75 - q25) / 2.0),
        q40=float(q40),
        q60=float(q60),
        q80=float(q80),
    )


def build_strategy_registry(anchors: Anchors) -> Dict[str, GainFunction]:
    """
    Build the six named weighting strategies for one training split.

    Parameters not derived from the anchors take the library defaults.
    The trapezoid is fixed and ignores the anchors.
    """
    return {
        'EXP': Exponential(thresh=anchors.q60),
        'SIGMOID': Sigmoid(midpoint=anchors.median),
        'STEP': Step(low=anchors.q40, high=anchors.q80),
        'TRIANGULAR': Triangular(a=anchors.q40, b=anchors.q80, peak=anchors.median),
        'TRAPEZOID': Trapezoidal(
            start=TRAPEZOIDAL_DEFAULTS['start'],
            end=TRAPEZOIDAL_DEFAULTS['end'],
            flat_start=TRAPEZOIDAL_DEFAULTS['flat_start'],
            flat_end=TRAPEZOIDAL_DEFAULTS['flat_end'],
        ),
        'GAUSSIAN': Gaussian(mu=anchors.median, sigma=anchors.half_iqr),
    }


def compute_sample_weights(gain: GainFunction, risk_train) -> np.ndarray:
    """
    Apply a gain element-wise to the training risk vector.

    No normalization: the boosting library receives the raw weights.
    """
    weights = np.asarray(gain.evaluate(np.asarray(risk_train, dtype=float).ravel()), dtype=float)

    if not np.all(np.isfinite(weights)):
        raise ValueError(f"{gain.describe()} produced non-finite sample weights")
    if np.any(weights < 0):
        raise ValueError(f"{gain.describe()} produced negative sample weights")

    return weights


def registry_curves(registry: Dict[str, GainFunction], grid: np.ndarray = None) -> pd.DataFrame:
    """
    Sample every strategy's gain curve on a common risk grid.

    Returns:
        Long DataFrame with 'strategy', 'kind', 'risk' and 'weight' columns.
    """
    if grid is None:
        grid = np.linspace(0.0, 1.0, GAIN_CURVE_POINTS)

    frames = []
    for label in STRATEGY_LABELS:
        if label not in registry:
            continue
        curve = gain_curve(registry[label], grid)
        curve.insert(0, 'kind', registry[label].kind)
        curve.insert(0, 'strategy', label)
        frames.append(curve)

    return pd.concat(frames, ignore_index=True)
