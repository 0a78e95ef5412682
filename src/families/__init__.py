"""
Likelihood families: Gaussian, log-Gaussian, skew-Gaussian and Bernoulli/logit.

Each family carries its distributional parameters, link functions, SciPy
densities for simulation and the PyMC likelihood used by the model builder.
"""

from families.likelihoods import (
    Family,
    Gaussian,
    LogNormal,
    SkewNormal,
    Bernoulli,
    FAMILIES,
    get_family,
)

__all__ = [
    "Family",
    "Gaussian",
    "LogNormal",
    "SkewNormal",
    "Bernoulli",
    "FAMILIES",
    "get_family",
]
