import numpy as np
import pandas as pd
import pytest

from biocat.config import BASELINE_MODELS, STRATEGY_LABELS
from biocat.harness import evaluate_split, run_experiment
from biocat.models import ModelTrainer, InsufficientClassesError, biocat_model_name
from biocat.preprocessing import create_train_test_split, make_pressure_classes


@pytest.fixture
def synthetic_split():
    rng = np.random.default_rng(11)
    n = 160
    X = pd.DataFrame(rng.standard_normal((n, 5)), columns=[f"x{i}" for i in range(5)])
    risk = rng.uniform(0.01, 1.0, n)
    y = 1.5 * X['x0'] - X['x1'] + 3.0 * risk + rng.normal(0, 0.5, n)
    return X, y.to_numpy(), risk


def test_regression_harness_scores_every_model(synthetic_split):
    X, y, risk = synthetic_split
    X_train, X_test, y_train, y_test, risk_train, _ = create_train_test_split(
        X, y, risk, random_state=0, verbose=False
    )
    outcome = evaluate_split(X_train, X_test, y_train, y_test, risk_train,
                             task='regression', target='abundance', verbose=False, n_jobs=1)

    table = outcome.evaluator.get_comparison_table()
    expected = set(BASELINE_MODELS) | {biocat_model_name(label) for label in STRATEGY_LABELS}
    assert set(table['Model']) == expected
    assert len(table) == 10
    assert (table['target'] == 'abundance').all()
    assert table['r2'].between(0, 1).all()
    assert (table['rmse'] > 0).all()
    assert set(outcome.registry) == set(STRATEGY_LABELS)
    weighted = table[table['scenario'] != 'Baseline']
    assert set(weighted['scenario']) == set(STRATEGY_LABELS)


def test_classification_harness_decodes_labels(synthetic_split):
    X, y, risk = synthetic_split
    labels = np.array(['low', 'medium', 'high'])[make_pressure_classes(y)]
    X_train, X_test, y_train, y_test, risk_train, _ = create_train_test_split(
        X, labels, risk, stratify=True, random_state=0, verbose=False
    )
    outcome = evaluate_split(X_train, X_test, y_train, y_test, risk_train,
                             task='classification', verbose=False, n_jobs=1)

    table = outcome.evaluator.get_comparison_table()
    assert len(table) == 10
    assert table['accuracy'].between(0, 1).all()
    preds = outcome.trainer.predict('XGBoost', X_test)
    assert set(preds) <= {'low', 'medium', 'high'}


def test_single_class_training_split_is_rejected(synthetic_split):
    X, _, risk = synthetic_split
    y = np.zeros(len(X), dtype=int)
    with pytest.raises(InsufficientClassesError):
        evaluate_split(X[:100], X[100:], y[:100], y[100:], risk[:100],
                       task='classification', verbose=False, n_jobs=1)


def test_weighted_fit_rejects_misaligned_weights(synthetic_split):
    X, y, _ = synthetic_split
    trainer = ModelTrainer(task='regression', verbose=False, n_jobs=1)
    with pytest.raises(ValueError, match="sample weights"):
        trainer.train_weighted_xgboost('EXP', X, y, np.ones(len(y) - 1))


def test_unknown_task_rejected():
    with pytest.raises(ValueError):
        ModelTrainer(task='ranking')


def test_run_experiment_on_table():
    rng = np.random.default_rng(5)
    n = 150
    df = pd.DataFrame({
        'site_id': np.arange(n),
        'region': rng.choice(['east', 'west'], n),
        'tmax': rng.normal(30, 3, n),
        'tmin': rng.normal(18, 3, n),
        'ndvi': rng.uniform(0.2, 0.8, n),
        'risk_raw': rng.uniform(0.0, 5.0, n),
    })
    df['abundance'] = np.round(np.clip(2 * df['tmax'] - 40 + 3 * df['risk_raw']
                                       + rng.normal(0, 2, n), 0, None))

    evaluator, outcomes = run_experiment(df, verbose=False)

    assert set(outcomes) == {'classification', 'regression'}
    table = evaluator.get_comparison_table()
    assert set(table['target']) == {'abundance', 'pressure_class'}
    assert len(table) == 20


def test_saved_models_reload_with_classes(synthetic_split, tmp_path, monkeypatch):
    monkeypatch.setattr('biocat.models.MODELS_DIR', tmp_path)
    X, y, _ = synthetic_split
    labels = make_pressure_classes(y)
    trainer = ModelTrainer(task='classification', verbose=False, n_jobs=1)
    trainer.train_decision_tree(X, labels)
    trainer.save_models(prefix='classification_')

    reloaded = ModelTrainer(task='classification', verbose=False, n_jobs=1)
    reloaded.load_models(['DecisionTree'], prefix='classification_')
    np.testing.assert_array_equal(reloaded.predict('DecisionTree', X), trainer.predict('DecisionTree', X))

    importance = reloaded.get_feature_importance('DecisionTree', list(X.columns))
    assert set(importance['feature']) == set(X.columns)
    assert importance['importance'].is_monotonic_decreasing


def _pest_table(risk_raw, seed=5):
    rng = np.random.default_rng(seed)
    n = len(risk_raw)
    df = pd.DataFrame({
        'site_id': np.arange(n),
        'tmax': rng.normal(30, 3, n),
        'tmin': rng.normal(18, 3, n),
        'risk_raw': risk_raw,
    })
    df['abundance'] = np.round(np.clip(2 * df['tmax'] - 40 + rng.normal(0, 2, n), 0, None))
    return df


def test_constant_risk_column_skips_tasks_instead_of_crashing():
    df = _pest_table(np.full(120, 3.0))
    with pytest.warns(UserWarning, match="constant"):
        evaluator, outcomes = run_experiment(df, verbose=False)
    assert outcomes == {}
    assert evaluator.results == ()


def test_ordinal_risk_score_skips_tasks_instead_of_crashing():
    # Mostly 3 on a 1-5 scale: q40 and the median coincide, so the triangle collapses
    risk_raw = np.tile([1.0] + [3.0] * 8 + [5.0], 12)
    evaluator, outcomes = run_experiment(_pest_table(risk_raw), tasks=['regression'], verbose=False)
    assert outcomes == {}
    assert evaluator.results == ()
