import numpy as np
import pytest

from biocat.config import STRATEGY_LABELS
from biocat.gain_functions import Exponential, Sigmoid, Step, Triangular, Trapezoidal, Gaussian, GainParameterError
from biocat.weighting import (
    Anchors, DegenerateRiskError, compute_anchors, build_strategy_registry,
    compute_sample_weights, registry_curves,
)


@pytest.fixture
def risk_train():
    rng = np.random.default_rng(7)
    return rng.uniform(0.01, 1.0, 250)


def test_anchors_match_linear_quantiles():
    anchors = compute_anchors([0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 1.0])
    assert anchors.median == pytest.approx(0.55)
    assert anchors.q40 == pytest.approx(0.46)
    assert anchors.q60 == pytest.approx(0.64)
    assert anchors.q80 == pytest.approx(0.82)
    # Q1 = 0.325, Q3 = 0.775
    assert anchors.half_iqr == pytest.approx(0.225)


def test_anchor_ordering(risk_train):
    anchors = compute_anchors(risk_train)
    assert anchors.q40 <= anchors.median <= anchors.q60
    assert anchors.q40 <= anchors.q80
    assert anchors.half_iqr > 0


def test_even_count_median_interpolates():
    assert compute_anchors([0.2, 0.4]).median == pytest.approx(0.3)


@pytest.mark.parametrize("sample", [[0.5], [], [0.3, 0.3, 0.3]])
def test_degenerate_risk_sample_raises(sample):
    with pytest.raises(DegenerateRiskError):
        compute_anchors(sample)


def test_registry_has_six_strategies_bound_to_anchors(risk_train):
    anchors = compute_anchors(risk_train)
    registry = build_strategy_registry(anchors)

    assert list(registry) == STRATEGY_LABELS
    assert registry['EXP'] == Exponential(thresh=anchors.q60)
    assert registry['SIGMOID'] == Sigmoid(midpoint=anchors.median)
    assert registry['STEP'] == Step(low=anchors.q40, high=anchors.q80)
    assert registry['TRIANGULAR'] == Triangular(a=anchors.q40, b=anchors.q80, peak=anchors.median)
    assert registry['TRAPEZOID'] == Trapezoidal(start=0.4, end=0.9, flat_start=0.55, flat_end=0.75)
    assert registry['GAUSSIAN'] == Gaussian(mu=anchors.median, sigma=anchors.half_iqr)


def test_registry_rebuild_is_deterministic(risk_train):
    anchors = compute_anchors(risk_train)
    first = build_strategy_registry(anchors)
    second = build_strategy_registry(Anchors(**anchors.to_dict()))

    for label in STRATEGY_LABELS:
        np.testing.assert_array_equal(
            compute_sample_weights(first[label], risk_train),
            compute_sample_weights(second[label], risk_train),
        )


def test_registry_rejects_collapsed_anchors():
    anchors = Anchors(median=0.5, half_iqr=0.0, q40=0.5, q60=0.5, q80=0.6)
    with pytest.raises(GainParameterError):
        build_strategy_registry(anchors)


def test_sample_weights_preserve_order_and_length():
    gain = Step(low=0.4, high=0.7, low_w=0.5, high_w=2.0, mid_w=1.0)
    weights = compute_sample_weights(gain, [0.9, 0.1, 0.5, 0.4])
    np.testing.assert_array_equal(weights, [2.0, 0.5, 1.0, 1.0])


def test_sample_weights_are_not_normalized(risk_train):
    weights = compute_sample_weights(Exponential(thresh=0.5, scale=5.0), risk_train)
    assert weights.shape == risk_train.shape
    assert np.all(weights > 0)
    assert weights.sum() != pytest.approx(1.0)


def test_registry_curves_long_table(risk_train):
    registry = build_strategy_registry(compute_anchors(risk_train))
    curves = registry_curves(registry, grid=np.linspace(0, 1, 11))
    assert list(curves.columns) == ['strategy', 'kind', 'risk', 'weight']
    assert len(curves) == 6 * 11
    assert set(curves['strategy']) == set(STRATEGY_LABELS)
