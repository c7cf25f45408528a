#!/usr/bin/env python3
"""
BioCATXGBoost pest forecasting experiment.

Usage:
    python -m biocat.main                          # Baselines vs BioCAT on the default CSV
    python -m biocat.main --task regression        # One task only
    python -m biocat.main --robustness             # Also run the 100-dataset simulation
    python -m biocat.main --robustness --skip-experiment --n-runs 20
    python -m biocat.main --no-plots               # Skip plots
    python -m biocat.main --data-path PATH         # Custom dataset path
"""
import argparse
import warnings

import matplotlib.pyplot as plt

from biocat.config import (
    DATA_PATH, PLOTS_DIR, TABLES_DIR, GROUP_COLUMN, TASKS,
    N_SIMULATION_RUNS, SIMULATION_SEED, N_JOBS, CLASSIFICATION_METRICS, REGRESSION_METRICS,
    ensure_output_dirs,
)
from biocat.data_loader import load_data, print_data_report
from biocat.evaluation import plot_gain_functions, plot_rank_distribution
from biocat.harness import run_experiment
from biocat.robustness import RobustnessSimulator
from biocat.weighting import registry_curves

warnings.filterwarnings('ignore', category=FutureWarning)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='BioCATXGBoost pest forecasting experiment')
    parser.add_argument('--data-path', '-d', type=str, default=None,
                        help='Path to dataset CSV')
    parser.add_argument('--task', choices=list(TASKS) + ['both'], default='both',
                        help='Which target(s) to model')
    parser.add_argument('--robustness', action='store_true',
                        help='Run the synthetic-data robustness simulation')
    parser.add_argument('--skip-experiment', action='store_true',
                        help='Skip the CSV experiment (use with --robustness)')
    parser.add_argument('--n-runs', type=int, default=N_SIMULATION_RUNS,
                        help='Number of robustness runs')
    parser.add_argument('--n-jobs', type=int, default=N_JOBS,
                        help='Parallel workers for robustness runs')
    parser.add_argument('--metric', type=str, default=None,
                        help='Ranking metric for robustness runs (default: accuracy / r2)')
    parser.add_argument('--seed', type=int, default=SIMULATION_SEED,
                        help='Base seed for robustness runs')
    parser.add_argument('--save-models', action='store_true',
                        help='Save fitted models with joblib')
    parser.add_argument('--no-plots', action='store_true',
                        help='Skip generating plots')
    args = parser.parse_args(argv)

    if args.metric is not None:
        tasks = list(TASKS) if args.task == 'both' else [args.task]
        for task in tasks:
            allowed = CLASSIFICATION_METRICS if task == "classification" else REGRESSION_METRICS
            if args.metric not in allowed:
                parser.error(f"--metric {args.metric} does not apply to {task} "
                             f"(expected one of {allowed}); pick a single --task")
    return args


def run_csv_experiment(args, tasks):
    df = load_data(args.data_path or DATA_PATH)
    print_data_report(df)

    evaluator, outcomes = run_experiment(df, tasks=tasks)
    if not outcomes:
        print("\n⚠️  No task could be evaluated on this dataset")
        return None

    evaluator.print_comparison_summary()

    results_path = TABLES_DIR / 'model_comparison.csv'
    evaluator.get_comparison_table().to_csv(results_path, index=False)
    print(f"\n✅ Saved result table to {results_path}")

    for task, outcome in outcomes.items():
        curves = registry_curves(outcome.registry)
        curves_path = TABLES_DIR / f'gain_curves_{task}.csv'
        curves.to_csv(curves_path, index=False)
        print(f"✅ Saved gain curves to {curves_path}")

        if args.save_models:
            outcome.trainer.save_models(prefix=f"{task}_")

    if not args.no_plots:
        print("\n📈 Generating plots...")
        first = next(iter(outcomes.values()))
        plot_gain_functions(registry_curves(first.registry), risk_train=first.risk_train)
        plt.close('all')

        for outcome in outcomes.values():
            evaluator.plot_metrics_comparison(outcome.target)
            plt.close('all')

        regression = outcomes.get('regression')
        if regression is not None and GROUP_COLUMN in df.columns:
            best = evaluator.get_best_model(regression.target)
            evaluator.plot_group_scatter(regression.target, best, df[GROUP_COLUMN])
            plt.close('all')

    return evaluator


def run_robustness(args, tasks):
    reports = {}
    for task in tasks:
        simulator = RobustnessSimulator(
            task=task,
            n_runs=args.n_runs,
            base_seed=args.seed,
            metric=args.metric,
            n_jobs=args.n_jobs,
        )
        report = simulator.run()
        reports[task] = report

        report.run_metrics.to_csv(TABLES_DIR / f'robustness_runs_{task}.csv', index=False)
        report.run_flags.to_csv(TABLES_DIR / f'robustness_flags_{task}.csv', index=False)
        report.model_summary().to_csv(TABLES_DIR / f'robustness_models_{task}.csv', index=False)
        print(f"\n✅ Saved robustness tables for {task} to {TABLES_DIR}")

        if not args.no_plots and not report.run_metrics.empty:
            plot_rank_distribution(report.run_metrics, task)
            plt.close('all')

    return reports


def main(argv=None):
    args = parse_args(argv)
    tasks = list(TASKS) if args.task == 'both' else [args.task]
    ensure_output_dirs()

    print("\n🐛 BIOCAT XGBOOST PEST FORECASTING")
    print("="*50)
    print("   ✓ Baselines: RandomForest, LightGBM, DecisionTree, XGBoost")
    print("   ✓ BioCAT: XGBoost weighted by 6 risk-index gain functions")

    evaluator = None
    if not args.skip_experiment:
        evaluator = run_csv_experiment(args, tasks)

    reports = {}
    if args.robustness:
        reports = run_robustness(args, tasks)

    print(f"\n📁 Tables: {TABLES_DIR}")
    if not args.no_plots:
        print(f"📁 Plots: {PLOTS_DIR}")
    print("\n✅ Done!")

    return evaluator, reports


if __name__ == "__main__":
    main()
