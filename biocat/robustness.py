"""
Robustness simulation: repeat the baseline vs BioCATXGBoost comparison over
many synthetic datasets and report how often a weighted model wins.

Every run draws from its own generator seeded by (base_seed, run_index), so
results do not depend on run order or on how runs are spread over workers.
"""
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
from joblib import Parallel, delayed

from biocat.config import (
    N_SIMULATION_RUNS, SIMULATION_SEED, SIM_N_OBS_RANGE, SIM_N_FEATURES_RANGE,
    SIM_COEFFICIENTS, SIM_RISK_COEFFICIENT, SIM_NOISE_SD, SIM_RANKING_METRIC,
    RISK_FLOOR, RISK_CEIL, TEST_SIZE, TASKS, N_JOBS, LOWER_IS_BETTER,
    PLAIN_BOOSTING_MODEL, CLASSIFICATION_METRICS, REGRESSION_METRICS,
)
from biocat.harness import evaluate_split
from biocat.models import is_biocat_model
from biocat.preprocessing import make_pressure_classes, create_train_test_split


def derive_seed(base_seed: int, run_index: int) -> int:
    """Independent, order-free integer seed for one run."""
    return int(np.random.SeedSequence([base_seed, run_index]).generate_state(1)[0])


@dataclass
class SyntheticDataset:
    run: int
    X: pd.DataFrame
    y: np.ndarray
    risk: np.ndarray
    split_seed: int

    @property
    def n_obs(self) -> int:
        return self.X.shape[0]

    @property
    def n_features(self) -> int:
        return self.X.shape[1]


def generate_synthetic_dataset(
    run_index: int,
    task: str = "regression",
    base_seed: int = SIMULATION_SEED,
) -> SyntheticDataset:
    """
    Draw one synthetic dataset.

    y = b0*x0 + b1*x1 + b2*x2 + k*risk + noise; for classification y is cut
    into tertile classes.
    """
    if task not in TASKS:
        raise ValueError(f"Unknown task '{task}'. Expected one of {TASKS}")

    rng = np.random.default_rng(derive_seed(base_seed, run_index))

    n_obs = int(rng.integers(SIM_N_OBS_RANGE[0], SIM_N_OBS_RANGE[1], endpoint=True))
    n_features = int(rng.integers(SIM_N_FEATURES_RANGE[0], SIM_N_FEATURES_RANGE[1], endpoint=True))
    n_features = max(n_features, len(SIM_COEFFICIENTS))

    features = rng.standard_normal((n_obs, n_features))
    risk = rng.uniform(RISK_FLOOR, RISK_CEIL, n_obs)
    noise = rng.normal(0.0, SIM_NOISE_SD, n_obs)
    split_seed = int(rng.integers(0, 2**31 - 1))

    coefs = np.asarray(SIM_COEFFICIENTS, dtype=float)
    y = features[:, :len(coefs)] @ coefs + SIM_RISK_COEFFICIENT * risk + noise
    if task == "classification":
        y = make_pressure_classes(y)

    X = pd.DataFrame(features, columns=[f"x{i}" for i in range(n_features)])
    return SyntheticDataset(run=run_index, X=X, y=y, risk=risk, split_seed=split_seed)


def evaluate_with_harness(dataset: SyntheticDataset, task: str) -> pd.DataFrame:
    """Default per-run evaluation: split, then the full harness, quietly."""
    X_train, X_test, y_train, y_test, risk_train, _ = create_train_test_split(
        dataset.X, dataset.y, dataset.risk,
        stratify=(task == "classification"),
        test_size=TEST_SIZE,
        random_state=dataset.split_seed,
        verbose=False,
    )
    outcome = evaluate_split(X_train, X_test, y_train, y_test, risk_train,
                             task=task, verbose=False, n_jobs=1)
    return outcome.evaluator.get_comparison_table()


EvaluateFn = Callable[[SyntheticDataset, str], pd.DataFrame]


def rank_run(metrics: pd.DataFrame, metric: str) -> pd.DataFrame:
    """
    Rank every model within one run; ties share the lower rank ('min').

    Args:
        metrics: One row per model with 'Model' and the metric column.
        metric: Ranking metric.

    Returns:
        Copy of metrics with an integer-valued 'rank' column (1 = best).
    """
    ranked = metrics.copy()
    ranked['rank'] = ranked[metric].rank(method='min', ascending=metric in LOWER_IS_BETTER)
    return ranked


def run_flags(ranked: pd.DataFrame, metric: str) -> Dict[str, bool]:
    """Derive is_best / is_top2 / beats_plain_boosting for one ranked run."""
    biocat = ranked[ranked['Model'].map(is_biocat_model)]
    plain = ranked.loc[ranked['Model'] == PLAIN_BOOSTING_MODEL, metric]

    if biocat.empty:
        raise ValueError("Run has no BioCATXGBoost models to rank")
    if plain.empty:
        raise ValueError(f"Run has no '{PLAIN_BOOSTING_MODEL}' baseline to compare against")

    plain_score = float(plain.iloc[0])
    if metric in LOWER_IS_BETTER:
        beats = bool((biocat[metric] < plain_score).any())
    else:
        beats = bool((biocat[metric] > plain_score).any())

    return {
        'is_best': bool((biocat['rank'] == 1).any()),
        'is_top2': bool((biocat['rank'] <= 2).any()),
        'beats_plain_boosting': beats,
    }


def summarize_rankings(flags: pd.DataFrame, n_runs_requested: Optional[int] = None) -> Dict[str, float]:
    """
    Aggregate per-run flags into rates over the completed runs.

    Rates are NaN when no run completed.
    """
    n_completed = len(flags)
    n_requested = n_completed if n_runs_requested is None else n_runs_requested

    def _rate(column: str) -> float:
        if n_completed == 0:
            return float('nan')
        return float(flags[column].astype(bool).mean())

    return {
        'top1_rate': _rate('is_best'),
        'top2_rate': _rate('is_top2'),
        'beats_baseline_rate': _rate('beats_plain_boosting'),
        'n_runs_requested': n_requested,
        'n_runs_completed': n_completed,
        'n_runs_failed': n_requested - n_completed,
    }


@dataclass
class RobustnessReport:
    task: str
    metric: str
    run_metrics: pd.DataFrame
    run_flags: pd.DataFrame
    failures: List[Tuple[int, str]] = field(default_factory=list)
    summary: Dict[str, float] = field(default_factory=dict)

    def model_summary(self) -> pd.DataFrame:
        """Mean metric, mean rank and win count per model across completed runs."""
        if self.run_metrics.empty:
            return pd.DataFrame(columns=['Model', f'mean_{self.metric}', 'mean_rank', 'wins'])

        grouped = self.run_metrics.groupby('Model')
        table = pd.DataFrame({
            f'mean_{self.metric}': grouped[self.metric].mean(),
            'mean_rank': grouped['rank'].mean(),
            'wins': grouped['rank'].apply(lambda r: int((r == 1).sum())),
        }).reset_index()
        return table.sort_values('mean_rank').reset_index(drop=True)

    def print_summary(self) -> None:
        s = self.summary
        print("\n" + "="*60)
        print(f"🔁 ROBUSTNESS SUMMARY ({self.task}, ranked by {self.metric})")
        print("="*60)
        print(f"  Runs completed: {s['n_runs_completed']}/{s['n_runs_requested']}")
        if s['n_runs_failed']:
            print(f"  ⚠️  {s['n_runs_failed']} run(s) failed and were excluded")
        print(f"  BioCAT ranked #1:         {s['top1_rate']*100:.1f}%")
        print(f"  BioCAT in top 2:          {s['top2_rate']*100:.1f}%")
        print(f"  BioCAT beats {PLAIN_BOOSTING_MODEL}:     {s['beats_baseline_rate']*100:.1f}%")
        print("\n" + self.model_summary().to_string(index=False))


def _simulate_run(run_index: int, task: str, base_seed: int, metric: str,
                  evaluate_fn: EvaluateFn) -> Dict[str, object]:
    """One run; failures are returned, not raised, so the batch continues."""
    try:
        dataset = generate_synthetic_dataset(run_index, task, base_seed)
        metrics = evaluate_fn(dataset, task)
        ranked = rank_run(metrics, metric)
        flags = run_flags(ranked, metric)
    except Exception as e:
        return {'run': run_index, 'error': f"{type(e).__name__}: {e}"}

    ranked.insert(0, 'run', run_index)
    flags.update({'run': run_index, 'n_obs': dataset.n_obs, 'n_features': dataset.n_features})
    return {'run': run_index, 'ranked': ranked, 'flags': flags}


class RobustnessSimulator:
    """
    Repeats the comparison over N synthetic datasets and aggregates win rates.
    """

    def __init__(
        self,
        task: str = "regression",
        n_runs: int = N_SIMULATION_RUNS,
        base_seed: int = SIMULATION_SEED,
        metric: Optional[str] = None,
        n_jobs: int = N_JOBS,
        evaluate_fn: Optional[EvaluateFn] = None,
        verbose: bool = True,
    ):
        if task not in TASKS:
            raise ValueError(f"Unknown task '{task}'. Expected one of {TASKS}")
        if n_runs < 1:
            raise ValueError(f"n_runs must be >= 1, got {n_runs}")

        metric = metric or SIM_RANKING_METRIC[task]
        allowed = CLASSIFICATION_METRICS if task == "classification" else REGRESSION_METRICS
        if metric not in allowed:
            raise ValueError(f"Metric '{metric}' is not valid for {task}. Expected one of {allowed}")

        self.task = task
        self.n_runs = n_runs
        self.base_seed = base_seed
        self.metric = metric
        self.n_jobs = n_jobs
        self.evaluate_fn = evaluate_fn or evaluate_with_harness
        self.verbose = verbose

    def run(self) -> RobustnessReport:
        """Run every simulation and merge per-run buffers in run order."""
        if self.verbose:
            print(f"\n🔁 Robustness simulation: {self.n_runs} runs ({self.task}, "
                  f"metric={self.metric}, n_jobs={self.n_jobs})")

        outputs = Parallel(n_jobs=self.n_jobs)(
            delayed(_simulate_run)(i, self.task, self.base_seed, self.metric, self.evaluate_fn)
            for i in range(1, self.n_runs + 1)
        )
        outputs = sorted(outputs, key=lambda o: o['run'])

        ranked_frames, flag_rows, failures = [], [], []
        for out in outputs:
            if 'error' in out:
                failures.append((out['run'], out['error']))
                if self.verbose:
                    print(f"   ⚠️  Run {out['run']:03d} failed: {out['error']}")
                continue
            ranked_frames.append(out['ranked'])
            flag_rows.append(out['flags'])
            if self.verbose:
                f = out['flags']
                print(f"   Run {out['run']:03d}: n={f['n_obs']}, p={f['n_features']}, "
                      f"best={'BioCAT' if f['is_best'] else 'baseline'}, "
                      f"beats {PLAIN_BOOSTING_MODEL}={f['beats_plain_boosting']}")

        run_metrics = pd.concat(ranked_frames, ignore_index=True) if ranked_frames else pd.DataFrame()
        flags = pd.DataFrame(
            flag_rows,
            columns=['run', 'n_obs', 'n_features', 'is_best', 'is_top2', 'beats_plain_boosting'],
        )

        report = RobustnessReport(
            task=self.task,
            metric=self.metric,
            run_metrics=run_metrics,
            run_flags=flags,
            failures=failures,
            summary=summarize_rankings(flags, self.n_runs),
        )
        if self.verbose:
            report.print_summary()
        return report
