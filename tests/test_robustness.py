import numpy as np
import pandas as pd
import pytest

from biocat.robustness import (
    RobustnessSimulator, derive_seed, generate_synthetic_dataset,
    rank_run, run_flags, summarize_rankings,
)


def _metric_table(scores, metric='r2'):
    return pd.DataFrame({'Model': list(scores), metric: list(scores.values())})


def _data_dependent_scores(dataset, task):
    X = dataset.X
    return _metric_table({
        'XGBoost': float(X['x0'].mean()),
        'BioCATXGBoost_EXP': float(X['x1'].mean()),
        'RandomForest': float(np.mean(dataset.risk)) - 0.5,
    })


def test_derive_seed_is_deterministic_and_distinct():
    assert derive_seed(2024, 1) == derive_seed(2024, 1)
    assert derive_seed(2024, 1) != derive_seed(2024, 2)
    assert derive_seed(2024, 1) != derive_seed(2025, 1)


def test_synthetic_dataset_is_reproducible_and_in_range():
    a = generate_synthetic_dataset(3, 'regression', base_seed=99)
    b = generate_synthetic_dataset(3, 'regression', base_seed=99)
    pd.testing.assert_frame_equal(a.X, b.X)
    np.testing.assert_array_equal(a.y, b.y)
    np.testing.assert_array_equal(a.risk, b.risk)
    assert a.split_seed == b.split_seed

    assert 200 <= a.n_obs <= 1000
    assert 5 <= a.n_features <= 20
    assert a.risk.min() >= 0.01 and a.risk.max() <= 1.0


def test_synthetic_classification_has_three_balanced_classes():
    data = generate_synthetic_dataset(1, 'classification', base_seed=7)
    counts = np.bincount(data.y)
    assert len(counts) == 3
    assert counts.max() - counts.min() <= 2


def test_rank_uses_min_ties_and_direction():
    ranked = rank_run(_metric_table({'A': 0.9, 'B': 0.9, 'C': 0.5}), 'r2')
    assert list(ranked['rank']) == [1, 1, 3]

    ranked = rank_run(_metric_table({'A': 2.0, 'B': 1.0}, 'rmse'), 'rmse')
    assert list(ranked['rank']) == [2, 1]


def test_run_flags():
    scores = {'RandomForest': 0.80, 'XGBoost': 0.70, 'BioCATXGBoost_EXP': 0.75, 'BioCATXGBoost_STEP': 0.60}
    flags = run_flags(rank_run(_metric_table(scores), 'r2'), 'r2')
    assert flags == {'is_best': False, 'is_top2': True, 'beats_plain_boosting': True}

    tied = {'XGBoost': 0.70, 'BioCATXGBoost_EXP': 0.70}
    flags = run_flags(rank_run(_metric_table(tied), 'r2'), 'r2')
    assert flags['is_best'] is True
    assert flags['beats_plain_boosting'] is False


def test_run_flags_lower_is_better():
    scores = {'XGBoost': 1.2, 'BioCATXGBoost_EXP': 1.1}
    flags = run_flags(rank_run(_metric_table(scores, 'rmse'), 'rmse'), 'rmse')
    assert flags['is_best'] and flags['beats_plain_boosting']


def test_summary_rates_bounded_and_ordered():
    flags = pd.DataFrame({
        'is_best': [True, False, False, True],
        'is_top2': [True, True, False, True],
        'beats_plain_boosting': [True, True, False, False],
    })
    summary = summarize_rankings(flags, n_runs_requested=5)
    assert summary['top1_rate'] == pytest.approx(0.5)
    assert summary['top2_rate'] == pytest.approx(0.75)
    assert summary['beats_baseline_rate'] == pytest.approx(0.5)
    assert summary['n_runs_completed'] == 4
    assert summary['n_runs_failed'] == 1
    for key in ('top1_rate', 'top2_rate', 'beats_baseline_rate'):
        assert 0.0 <= summary[key] <= 1.0
    assert summary['top2_rate'] >= summary['top1_rate']


def test_single_run_where_weighted_beats_plain_boosting():
    def evaluate_fn(dataset, task):
        return _metric_table({'RandomForest': 0.60, 'XGBoost': 0.70, 'BioCATXGBoost_GAUSSIAN': 0.72})

    report = RobustnessSimulator(task='regression', n_runs=1, evaluate_fn=evaluate_fn,
                                 verbose=False).run()
    assert report.summary['beats_baseline_rate'] == 1.0
    assert report.summary['top1_rate'] == 1.0
    assert report.summary['n_runs_completed'] == 1


def test_failed_runs_are_recorded_and_skipped():
    def evaluate_fn(dataset, task):
        if dataset.run == 2:
            raise ValueError("Training labels contain 1 distinct class(es)")
        return _metric_table({'XGBoost': 0.70, 'BioCATXGBoost_EXP': 0.65, 'LightGBM': 0.8})

    report = RobustnessSimulator(task='regression', n_runs=3, evaluate_fn=evaluate_fn,
                                 verbose=False).run()
    assert report.summary['n_runs_requested'] == 3
    assert report.summary['n_runs_completed'] == 2
    assert report.summary['n_runs_failed'] == 1
    assert [run for run, _ in report.failures] == [2]
    assert list(report.run_flags['run']) == [1, 3]
    assert report.summary['beats_baseline_rate'] == 0.0
    assert report.summary['top2_rate'] == 0.0


def test_all_runs_failing_gives_nan_rates():
    def evaluate_fn(dataset, task):
        raise RuntimeError("boom")

    report = RobustnessSimulator(task='regression', n_runs=2, evaluate_fn=evaluate_fn,
                                 verbose=False).run()
    assert report.summary['n_runs_completed'] == 0
    assert np.isnan(report.summary['top1_rate'])
    assert report.model_summary().empty


def test_model_summary_and_invalid_metric():
    def evaluate_fn(dataset, task):
        return _metric_table({'XGBoost': 0.70, 'BioCATXGBoost_EXP': 0.75})

    report = RobustnessSimulator(task='regression', n_runs=2, evaluate_fn=evaluate_fn,
                                 verbose=False).run()
    summary = report.model_summary()
    assert list(summary['Model']) == ['BioCATXGBoost_EXP', 'XGBoost']
    assert list(summary['wins']) == [2, 0]

    with pytest.raises(ValueError):
        RobustnessSimulator(task='classification', metric='r2')


def test_full_pipeline_single_run():
    report = RobustnessSimulator(task='regression', n_runs=1, base_seed=1, verbose=False).run()
    assert report.summary['n_runs_completed'] == 1
    assert len(report.run_metrics) == 10
    assert report.run_metrics['rank'].min() == 1


def test_results_do_not_depend_on_worker_count():
    reports = [
        RobustnessSimulator(task='regression', n_runs=6, base_seed=31, n_jobs=n_jobs,
                            evaluate_fn=_data_dependent_scores, verbose=False).run()
        for n_jobs in (1, 2)
    ]
    pd.testing.assert_frame_equal(reports[0].run_flags, reports[1].run_flags)
    pd.testing.assert_frame_equal(reports[0].run_metrics, reports[1].run_metrics)
    assert reports[0].summary == reports[1].summary
