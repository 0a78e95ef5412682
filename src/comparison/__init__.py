"""
Model comparison module.

- Classical fits: OLS and logistic regression point estimates
- Recovery: posterior intervals versus ground truth
- LOO: PSIS-LOO elpd per model and ranking across candidate models
"""

from comparison.classical import ClassicalFit, fit_ols, fit_logistic
from comparison.recovery import check_recovery, compare_to_classical
from comparison.loo import (
    LooResult,
    compute_loo,
    compare_models,
    elpd_difference,
    ensure_log_likelihood,
)

__all__ = [
    "ClassicalFit",
    "fit_ols",
    "fit_logistic",
    "check_recovery",
    "compare_to_classical",
    "LooResult",
    "compute_loo",
    "compare_models",
    "elpd_difference",
    "ensure_log_likelihood",
]
