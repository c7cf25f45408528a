"""
Gain functions mapping a risk index in [0, 1] to a non-negative sample weight.

Each gain is a frozen value object: a ``kind`` tag plus its named parameters.
Parameters are validated at construction, so a badly parametrized curve fails
before any weights are produced.

Gains:
1. Exponential - exp(scale * (r - thresh))
2. Sigmoid     - logistic curve centred on midpoint
3. Step        - three constant levels split at low / high
4. Triangular  - linear tent peaking at peak inside [a, b]
5. Trapezoidal - linear ramps around a flat plateau
6. Gaussian    - bell curve centred on mu
"""
from dataclasses import dataclass, asdict
from typing import ClassVar, Dict, Sequence, Union

import numpy as np
import pandas as pd
from scipy.special import expit

from biocat.config import (
    EXPONENTIAL_DEFAULTS, SIGMOID_DEFAULTS, STEP_DEFAULTS,
    TRIANGULAR_DEFAULTS, TRAPEZOIDAL_DEFAULTS, GAUSSIAN_DEFAULTS,
    GAIN_CURVE_POINTS,
)

RiskInput = Union[float, Sequence[float], np.ndarray]


class GainParameterError(ValueError):
    """Raised when a gain function is constructed with invalid parameters."""


@dataclass(frozen=True)
class GainFunction:
    """Base class: subclasses define ``kind`` and ``_curve``."""

    kind: ClassVar[str] = "base"

    def __post_init__(self):
        for name, value in self.params().items():
            if not np.isfinite(value):
                raise GainParameterError(f"{self.kind}: parameter '{name}' must be finite, got {value}")
        self._validate()

    def _validate(self) -> None:
        pass

    def _curve(self, r: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def evaluate(self, r: RiskInput) -> Union[float, np.ndarray]:
        """
        Evaluate the gain at one risk value or element-wise over a sequence.

        Args:
            r: Scalar risk or array-like of risk values.

        Returns:
            A float for scalar input, otherwise an ndarray of the same shape.
        """
        arr = np.asarray(r, dtype=float)
        weights = self._curve(np.atleast_1d(arr))
        if arr.ndim == 0:
            return float(weights[0])
        return weights.reshape(arr.shape)

    __call__ = evaluate

    def params(self) -> Dict[str, float]:
        return {name: float(value) for name, value in asdict(self).items()}

    def describe(self) -> str:
        args = ", ".join(f"{k}={v:.3g}" for k, v in self.params().items())
        return f"{self.kind}({args})"


def _require_non_negative(gain: GainFunction, *names: str) -> None:
    for name in names:
        if getattr(gain, name) < 0:
            raise GainParameterError(f"{gain.kind}: '{name}' must be >= 0, got {getattr(gain, name)}")


@dataclass(frozen=True)
class Exponential(GainFunction):
    kind: ClassVar[str] = "exponential"
    thresh: float = EXPONENTIAL_DEFAULTS['thresh']
    scale: float = EXPONENTIAL_DEFAULTS['scale']

    def _curve(self, r):
        return np.exp(self.scale * (r - self.thresh))


@dataclass(frozen=True)
class Sigmoid(GainFunction):
    kind: ClassVar[str] = "sigmoid"
    midpoint: float = SIGMOID_DEFAULTS['midpoint']
    slope: float = SIGMOID_DEFAULTS['slope']

    def _curve(self, r):
        return expit(self.slope * (r - self.midpoint))


@dataclass(frozen=True)
class Step(GainFunction):
    """Piecewise constant; r == low and r == high fall in the mid band."""

    kind: ClassVar[str] = "step"
    low: float = STEP_DEFAULTS['low']
    high: float = STEP_DEFAULTS['high']
    low_w: float = STEP_DEFAULTS['low_w']
    high_w: float = STEP_DEFAULTS['high_w']
    mid_w: float = STEP_DEFAULTS['mid_w']

    def _validate(self):
        if self.low > self.high:
            raise GainParameterError(f"step: low ({self.low}) must be <= high ({self.high})")
        _require_non_negative(self, 'low_w', 'high_w', 'mid_w')

    def _curve(self, r):
        return np.where(r < self.low, self.low_w,
                        np.where(r > self.high, self.high_w, self.mid_w)).astype(float)


@dataclass(frozen=True)
class Triangular(GainFunction):
    kind: ClassVar[str] = "triangular"
    a: float = TRIANGULAR_DEFAULTS['a']
    b: float = TRIANGULAR_DEFAULTS['b']
    peak: float = TRIANGULAR_DEFAULTS['peak']
    max_w: float = TRIANGULAR_DEFAULTS['max_w']
    min_w: float = TRIANGULAR_DEFAULTS['min_w']

    def _validate(self):
        if not self.a < self.peak < self.b:
            raise GainParameterError(
                f"triangular: need a < peak < b, got a={self.a}, peak={self.peak}, b={self.b}"
            )
        _require_non_negative(self, 'max_w', 'min_w')

    def _curve(self, r):
        return np.interp(r, [self.a, self.peak, self.b], [self.min_w, self.max_w, self.min_w],
                         left=self.min_w, right=self.min_w)


@dataclass(frozen=True)
class Trapezoidal(GainFunction):
    kind: ClassVar[str] = "trapezoidal"
    start: float = TRAPEZOIDAL_DEFAULTS['start']
    end: float = TRAPEZOIDAL_DEFAULTS['end']
    flat_start: float = TRAPEZOIDAL_DEFAULTS['flat_start']
    flat_end: float = TRAPEZOIDAL_DEFAULTS['flat_end']
    max_w: float = TRAPEZOIDAL_DEFAULTS['max_w']
    min_w: float = TRAPEZOIDAL_DEFAULTS['min_w']

    def _validate(self):
        if not self.start < self.flat_start < self.flat_end < self.end:
            raise GainParameterError(
                "trapezoidal: need start < flat_start < flat_end < end, got "
                f"{self.start}, {self.flat_start}, {self.flat_end}, {self.end}"
            )
        _require_non_negative(self, 'max_w', 'min_w')

    def _curve(self, r):
        xp = [self.start, self.flat_start, self.flat_end, self.end]
        fp = [self.min_w, self.max_w, self.max_w, self.min_w]
        return np.interp(r, xp, fp, left=self.min_w, right=self.min_w)


@dataclass(frozen=True)
class Gaussian(GainFunction):
    kind: ClassVar[str] = "gaussian"
    mu: float = GAUSSIAN_DEFAULTS['mu']
    sigma: float = GAUSSIAN_DEFAULTS['sigma']

    def _validate(self):
        if self.sigma <= 0:
            raise GainParameterError(f"gaussian: sigma must be > 0, got {self.sigma}")

    def _curve(self, r):
        return np.exp(-((r - self.mu) ** 2) / (2.0 * self.sigma ** 2))


GAIN_KINDS = {cls.kind: cls for cls in (Exponential, Sigmoid, Step, Triangular, Trapezoidal, Gaussian)}


def make_gain(kind: str, **params) -> GainFunction:
    """Construct a gain function from its kind name and parameters."""
    if kind not in GAIN_KINDS:
        raise GainParameterError(f"Unknown gain kind '{kind}'. Available: {sorted(GAIN_KINDS)}")
    return GAIN_KINDS[kind](**params)


def gain_curve(gain: GainFunction, grid: np.ndarray = None) -> pd.DataFrame:
    """
    Sample a gain curve over a risk grid (for plotting / export).

    Args:
        gain: Gain function to sample.
        grid: Risk values; defaults to an even grid over [0, 1].

    Returns:
        DataFrame with 'risk' and 'weight' columns.
    """
    if grid is None:
        grid = np.linspace(0.0, 1.0, GAIN_CURVE_POINTS)
    grid = np.asarray(grid, dtype=float)
    return pd.DataFrame({'risk': grid, 'weight': gain.evaluate(grid)})
