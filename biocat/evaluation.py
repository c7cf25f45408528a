"""
Model evaluation module: metrics, the append-only result table and plots.

Classification models are scored by accuracy and Cohen's kappa, regression
models by R^2 (squared Pearson correlation) and RMSE.
"""
import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from sklearn.metrics import accuracy_score, cohen_kappa_score, mean_squared_error

from biocat.config import (
    PLOTS_DIR, CLASSIFICATION_METRICS, REGRESSION_METRICS, BASELINE_SCENARIO,
)


def classification_metrics(y_true, y_pred) -> Dict[str, float]:
    """Accuracy (exact match rate) and Cohen's kappa."""
    return {
        'accuracy': float(accuracy_score(y_true, y_pred)),
        'kappa': float(cohen_kappa_score(y_true, y_pred)),
    }


def regression_metrics(y_true, y_pred) -> Dict[str, float]:
    """
    R^2 as the squared Pearson correlation between predictions and truth, plus RMSE.

    A constant prediction (or constant truth) has no linear association, so R^2 is 0.
    """
    y_true = np.asarray(y_true, dtype=float)
    y_pred = np.asarray(y_pred, dtype=float)

    if np.std(y_true) == 0 or np.std(y_pred) == 0:
        r2 = 0.0
    else:
        r2 = float(np.corrcoef(y_true, y_pred)[0, 1] ** 2)

    return {
        'r2': r2,
        'rmse': float(np.sqrt(mean_squared_error(y_true, y_pred))),
    }


def primary_metric(task: str) -> str:
    return CLASSIFICATION_METRICS[0] if task == "classification" else REGRESSION_METRICS[0]


@dataclass(frozen=True)
class EvaluationResult:
    target: str
    task: str
    scenario: str
    model_name: str
    metrics: Dict[str, float] = field(default_factory=dict)

    def to_row(self) -> Dict[str, object]:
        row = {
            'target': self.target,
            'task': self.task,
            'scenario': self.scenario,
            'Model': self.model_name,
        }
        row.update(self.metrics)
        return row


class ModelEvaluator:
    """
    Scores models and accumulates one EvaluationResult per model.

    Results are only ever appended; tables are built from them on demand.
    """

    def __init__(self):
        self._results: List[EvaluationResult] = []
        self.predictions: Dict[Tuple[str, str], pd.DataFrame] = {}

    @property
    def results(self) -> Tuple[EvaluationResult, ...]:
        return tuple(self._results)

    def append(self, result: EvaluationResult) -> None:
        self._results.append(result)

    def extend(self, other: "ModelEvaluator") -> None:
        """Merge another evaluator's results (e.g. one buffer per worker)."""
        self._results.extend(other.results)
        self.predictions.update(other.predictions)

    def evaluate_model(
        self,
        target: str,
        task: str,
        scenario: str,
        model_name: str,
        y_true,
        y_pred,
        index: Optional[pd.Index] = None,
    ) -> Dict[str, float]:
        """
        Compute the task's metrics for a model and record the result.

        Args:
            target: Target label (e.g. 'abundance').
            task: 'classification' or 'regression'.
            scenario: 'Baseline' or the weighting strategy label.
            model_name: Name of the model.
            y_true: True values.
            y_pred: Predicted values.
            index: Row index of the held-out rows (kept for per-group plots).

        Returns:
            Dictionary of metrics.
        """
        if task == "classification":
            metrics = classification_metrics(y_true, y_pred)
        else:
            metrics = regression_metrics(y_true, y_pred)

        self.append(EvaluationResult(target, task, scenario, model_name, metrics))
        self.predictions[(target, model_name)] = pd.DataFrame(
            {'y_true': np.asarray(y_true), 'y_pred': np.asarray(y_pred)},
            index=index,
        )

        return metrics

    def get_comparison_table(self) -> pd.DataFrame:
        """
        Get comparison table of all evaluated models.

        Sorted by target, scenario label, then descending accuracy / R^2.
        """
        if not self._results:
            raise ValueError("No models evaluated yet.")

        df = pd.DataFrame([result.to_row() for result in self._results])
        df['_primary'] = [
            row[primary_metric(row['task'])] for _, row in df.iterrows()
        ]
        df = df.sort_values(['target', 'scenario', '_primary'], ascending=[True, True, False],
                            kind='mergesort')
        return df.drop(columns='_primary').reset_index(drop=True)

    def print_comparison_summary(self) -> None:
        """Print a summary comparison of all models, per target."""
        df = self.get_comparison_table()

        print("\n" + "="*80)
        print("📊 MODEL COMPARISON SUMMARY")
        print("="*80)

        for target, group in df.groupby('target', sort=False):
            task = group['task'].iloc[0]
            metrics = CLASSIFICATION_METRICS if task == "classification" else REGRESSION_METRICS
            display_df = group[['scenario', 'Model'] + metrics].copy()
            for col in metrics:
                display_df[col] = display_df[col].apply(lambda x: f"{x:.4f}")

            print(f"\n🎯 {target} ({task})")
            print(display_df.to_string(index=False))

            best = self.get_best_model(target)
            key = primary_metric(task)
            best_score = group.loc[group['Model'] == best, key].iloc[0]
            print(f"\n🏆 Best Model: {best} ({key}: {best_score:.4f})")

    def get_best_model(self, target: str, metric: Optional[str] = None) -> str:
        """
        Get the name of the best performing model for a target.

        Args:
            target: Target label.
            metric: Metric to use (defaults to accuracy / R^2).

        Returns:
            Name of the best model.
        """
        df = self.get_comparison_table()
        df = df[df['target'] == target]
        if df.empty:
            raise ValueError(f"No results for target '{target}'")

        metric = metric or primary_metric(df['task'].iloc[0])
        if metric == 'rmse':
            return df.loc[df[metric].idxmin(), 'Model']
        return df.loc[df[metric].idxmax(), 'Model']

    def plot_metrics_comparison(
        self,
        target: str,
        figsize: tuple = (12, 6),
        save: bool = True
    ) -> plt.Figure:
        """
        Plot bar chart comparing the target's metrics across models.

        Baselines and BioCAT strategies are colored separately.
        """
        df = self.get_comparison_table()
        df = df[df['target'] == target]
        task = df['task'].iloc[0]
        metrics = CLASSIFICATION_METRICS if task == "classification" else REGRESSION_METRICS

        fig, axes = plt.subplots(1, len(metrics), figsize=figsize)

        for ax, metric in zip(axes, metrics):
            ordered = df.sort_values(metric, ascending=(metric == 'rmse'))
            colors = ['#95a5a6' if s == BASELINE_SCENARIO else '#2ecc71' for s in ordered['scenario']]
            bars = ax.barh(range(len(ordered)), ordered[metric].values, color=colors)

            ax.set_yticks(range(len(ordered)))
            ax.set_yticklabels(ordered['Model'].values, fontsize=9)
            ax.invert_yaxis()
            ax.set_xlabel(metric, fontsize=11)
            ax.set_title(metric.upper(), fontsize=12, fontweight='bold')
            ax.grid(True, alpha=0.3, axis='x')

            for bar, val in zip(bars, ordered[metric].values):
                ax.text(val, bar.get_y() + bar.get_height()/2, f' {val:.3f}', va='center', fontsize=8)

        plt.suptitle(f'Model Performance Comparison - {target}', fontsize=14, fontweight='bold')
        plt.tight_layout()

        if save:
            PLOTS_DIR.mkdir(parents=True, exist_ok=True)
            filename = PLOTS_DIR / f'metrics_comparison_{target}.png'
            plt.savefig(filename, dpi=150, bbox_inches='tight')
            print(f"✅ Saved metrics comparison to {filename}")

        return fig

    def plot_group_scatter(
        self,
        target: str,
        model_name: str,
        groups: pd.Series,
        figsize: tuple = (12, 8),
        save: bool = True
    ) -> plt.Figure:
        """
        Observed vs predicted scatter for one regression model, one panel per group.

        Args:
            target: Target label.
            model_name: Model to plot.
            groups: Group label per row, indexed like the original data.
            figsize: Figure size.
            save: If True, save the plot.
        """
        if (target, model_name) not in self.predictions:
            raise ValueError(f"No predictions stored for '{model_name}' on '{target}'.")

        pred = self.predictions[(target, model_name)].copy()
        pred['group'] = groups.reindex(pred.index).fillna('unknown').astype(str).values

        grid = sns.FacetGrid(pred, col='group', col_wrap=min(4, pred['group'].nunique()),
                             height=3, sharex=True, sharey=True)
        grid.map_dataframe(sns.scatterplot, x='y_true', y='y_pred', alpha=0.6, s=15)

        lo = float(min(pred['y_true'].min(), pred['y_pred'].min()))
        hi = float(max(pred['y_true'].max(), pred['y_pred'].max()))
        for ax in grid.axes.flat:
            ax.plot([lo, hi], [lo, hi], 'k--', lw=1)
        grid.set_axis_labels('Observed', 'Predicted')
        grid.figure.set_size_inches(*figsize)
        grid.figure.suptitle(f'{model_name} - observed vs predicted {target}', fontweight='bold')
        grid.figure.tight_layout()

        if save:
            PLOTS_DIR.mkdir(parents=True, exist_ok=True)
            filename = PLOTS_DIR / f'group_scatter_{target}_{model_name}.png'
            grid.figure.savefig(filename, dpi=150, bbox_inches='tight')
            print(f"✅ Saved group scatter to {filename}")

        return grid.figure


def plot_gain_functions(
    curves: pd.DataFrame,
    risk_train: Optional[np.ndarray] = None,
    figsize: tuple = (14, 8),
    save: bool = True
) -> plt.Figure:
    """
    Plot each weighting strategy's gain curve.

    Args:
        curves: Long table from weighting.registry_curves.
        risk_train: Optional training risk values, drawn as a rug.
        figsize: Figure size.
        save: If True, save the plot.
    """
    strategies = list(dict.fromkeys(curves['strategy']))
    n_cols = 3
    n_rows = int(np.ceil(len(strategies) / n_cols))

    fig, axes = plt.subplots(n_rows, n_cols, figsize=figsize, sharex=True)
    axes = np.atleast_1d(axes).flatten()
    colors = sns.color_palette('viridis', len(strategies))

    for ax, strategy, color in zip(axes, strategies, colors):
        curve = curves[curves['strategy'] == strategy]
        ax.plot(curve['risk'], curve['weight'], color=color, lw=2)
        if risk_train is not None:
            sns.rugplot(x=np.asarray(risk_train), ax=ax, color='k', alpha=0.2, height=0.05)
        ax.set_title(f"{strategy} ({curve['kind'].iloc[0]})", fontsize=11, fontweight='bold')
        ax.set_xlabel('Risk index')
        ax.set_ylabel('Sample weight')
        ax.grid(True, alpha=0.3)

    for ax in axes[len(strategies):]:
        ax.axis('off')

    plt.suptitle('BioCAT Gain Functions', fontsize=14, fontweight='bold')
    plt.tight_layout()

    if save:
        PLOTS_DIR.mkdir(parents=True, exist_ok=True)
        filename = PLOTS_DIR / 'gain_functions.png'
        plt.savefig(filename, dpi=150, bbox_inches='tight')
        print(f"✅ Saved gain functions to {filename}")

    return fig


def plot_rank_distribution(
    rankings: pd.DataFrame,
    task: str,
    figsize: tuple = (12, 6),
    save: bool = True
) -> plt.Figure:
    """
    Boxplot of each model's per-run rank from the robustness simulation.

    Args:
        rankings: Per-run table with 'Model' and 'rank' columns.
        task: Task label used in the title and file name.
        figsize: Figure size.
        save: If True, save the plot.
    """
    order = rankings.groupby('Model')['rank'].mean().sort_values().index.tolist()

    fig, ax = plt.subplots(figsize=figsize)
    sns.boxplot(data=rankings, x='rank', y='Model', order=order, ax=ax, color='#3498db')
    ax.set_xlabel('Rank within run (1 = best)', fontsize=12)
    ax.set_ylabel('')
    ax.set_title(f"Robustness: per-run model ranks ({task})", fontsize=14, fontweight='bold')
    ax.grid(True, alpha=0.3, axis='x')
    plt.tight_layout()

    if save:
        PLOTS_DIR.mkdir(parents=True, exist_ok=True)
        filename = PLOTS_DIR / f"robustness_ranks_{task}.png"
        plt.savefig(filename, dpi=150, bbox_inches='tight')
        print(f"✅ Saved rank distribution to {filename}")

    return fig
