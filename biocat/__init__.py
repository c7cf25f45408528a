"""
BioCATXGBoost Pest Forecasting Experiment

Compares tree-based models for pest abundance / pest-pressure forecasting,
with XGBoost training samples weighted by a gain function of a biological
risk index.

Modules:
    - config: Configuration settings and hyperparameters
    - data_loader: Data loading and initial inspection
    - preprocessing: Feature engineering, risk index and target construction
    - gain_functions: Risk-to-weight gain curves
    - weighting: Anchors, strategy registry and sample weights
    - models: Model definitions and training
    - evaluation: Metrics, result table and visualization
    - harness: Single train/test comparison of baselines vs BioCAT strategies
    - robustness: Repeated comparison over synthetic datasets
    - main: Command-line entry point
"""

__version__ = "1.0.0"
__author__ = "BioCAT Pest Forecasting Project"
