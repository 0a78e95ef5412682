"""
Residual dependence structures.

**AR(1) (ar1.py):**
- Stationary first-order autoregressive residuals
- Correlation/covariance matrices
- Exact conditional likelihood (numpy and PyTensor)
- Residual path simulation
"""

from dependence.ar1 import (
    AR1Process,
    conditional_moments_tensor,
    create_ar1_from_stationary,
    series_starts_from_groups,
)

__all__ = [
    "AR1Process",
    "conditional_moments_tensor",
    "create_ar1_from_stationary",
    "series_starts_from_groups",
]
