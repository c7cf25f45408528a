"""
Evaluation harness: baselines vs BioCATXGBoost strategies on one train/test split.

Anchors and the strategy registry are built from the training risk index only,
before any model is fitted, so invalid gain parameters fail fast.
"""
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from biocat.config import (
    RANDOM_STATE, TEST_SIZE, TARGET_COLUMN, CLASS_TARGET_COLUMN, TASKS,
    BASELINE_SCENARIO, STRATEGY_LABELS,
)
from biocat.evaluation import ModelEvaluator
from biocat.gain_functions import GainFunction, GainParameterError
from biocat.models import ModelTrainer, InsufficientClassesError, biocat_model_name
from biocat.preprocessing import DataPreprocessor, create_train_test_split, make_pressure_classes
from biocat.weighting import (
    Anchors, DegenerateRiskError, compute_anchors, build_strategy_registry, compute_sample_weights,
)


@dataclass
class SplitOutcome:
    """Everything produced by one harness run."""
    target: str
    task: str
    evaluator: ModelEvaluator
    anchors: Anchors
    registry: Dict[str, GainFunction]
    trainer: ModelTrainer
    risk_train: np.ndarray


def evaluate_split(
    X_train: pd.DataFrame,
    X_test: pd.DataFrame,
    y_train,
    y_test,
    risk_train,
    task: str,
    target: Optional[str] = None,
    evaluator: Optional[ModelEvaluator] = None,
    strategies: Sequence[str] = STRATEGY_LABELS,
    random_state: int = RANDOM_STATE,
    verbose: bool = True,
    n_jobs: int = -1,
) -> SplitOutcome:
    """
    Fit and score every baseline plus one weighted XGBoost per strategy.

    Args:
        X_train, X_test: Feature matrices.
        y_train, y_test: Targets (class labels or continuous values).
        risk_train: Training risk index, aligned with X_train rows.
        task: 'classification' or 'regression'.
        target: Label for the result rows (defaults to the task name).
        evaluator: Result buffer to append to (a fresh one if None).
        strategies: Strategy labels to run.
        random_state: Seed for every model.
        verbose: Print progress.
        n_jobs: Threads per model.

    Returns:
        SplitOutcome with the evaluator holding one row per model.
    """
    if task not in TASKS:
        raise ValueError(f"Unknown task '{task}'. Expected one of {TASKS}")

    target = target or task
    evaluator = evaluator if evaluator is not None else ModelEvaluator()
    risk_train = np.asarray(risk_train, dtype=float)
    if risk_train.shape[0] != len(X_train):
        raise ValueError(f"Got {risk_train.shape[0]} risk values for {len(X_train)} training rows")

    anchors = compute_anchors(risk_train)
    registry = build_strategy_registry(anchors)
    if verbose:
        print("\n⚓ Anchors: " + ", ".join(f"{k}={v:.3f}" for k, v in anchors.to_dict().items()))

    trainer = ModelTrainer(task=task, random_state=random_state, verbose=verbose, n_jobs=n_jobs)
    test_index = X_test.index if isinstance(X_test, pd.DataFrame) else None

    trainer.train_baselines(X_train, y_train)
    for model_name in list(trainer.models):
        y_pred = trainer.predict(model_name, X_test)
        evaluator.evaluate_model(target, task, BASELINE_SCENARIO, model_name, y_test, y_pred,
                                 index=test_index)

    if verbose:
        print("\n🐛 Training BioCATXGBoost strategies...")
    for label in strategies:
        weights = compute_sample_weights(registry[label], risk_train)
        trainer.train_weighted_xgboost(label, X_train, y_train, weights)
        model_name = biocat_model_name(label)
        y_pred = trainer.predict(model_name, X_test)
        evaluator.evaluate_model(target, task, label, model_name, y_test, y_pred, index=test_index)

    return SplitOutcome(
        target=target,
        task=task,
        evaluator=evaluator,
        anchors=anchors,
        registry=registry,
        trainer=trainer,
        risk_train=risk_train,
    )


def run_experiment(
    df: pd.DataFrame,
    tasks: Sequence[str] = TASKS,
    test_size: float = TEST_SIZE,
    random_state: int = RANDOM_STATE,
    verbose: bool = True,
) -> Tuple[ModelEvaluator, Dict[str, SplitOutcome]]:
    """
    Run the comparison on a pest observation table for each requested task.

    Regression predicts the abundance target directly; classification predicts
    low / medium / high pressure classes built from it. A task is reported and
    skipped when its training split has fewer than 2 classes, or when its
    training risk index is too degenerate to anchor the gain functions.

    Returns:
        Tuple of (shared result buffer, mapping task -> SplitOutcome).
    """
    preprocessor = DataPreprocessor()
    X, y, risk = preprocessor.fit_transform(df)

    evaluator = ModelEvaluator()
    outcomes: Dict[str, SplitOutcome] = {}

    for task in tasks:
        if task == "classification":
            target_label, y_task, stratify = CLASS_TARGET_COLUMN, make_pressure_classes(y), True
        else:
            target_label, y_task, stratify = TARGET_COLUMN, y.to_numpy(dtype=float), False

        if verbose:
            print("\n" + "="*60)
            print(f"🎯 {task.upper()}: {target_label}")
            print("="*60)

        X_train, X_test, y_train, y_test, risk_train, _ = create_train_test_split(
            X, y_task, risk, stratify=stratify, test_size=test_size,
            random_state=random_state, verbose=verbose,
        )

        try:
            outcomes[task] = evaluate_split(
                X_train, X_test, y_train, y_test, risk_train,
                task=task, target=target_label, evaluator=evaluator,
                random_state=random_state, verbose=verbose,
            )
        except (InsufficientClassesError, DegenerateRiskError, GainParameterError) as e:
            print(f"\n   ⚠️  Skipping {task}: {e}")

    return evaluator, outcomes
