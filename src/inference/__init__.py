"""
Bayesian inference module for regression models.

This module provides the PyMC-based inference pipeline:
1. ModelBuilder: Assemble a PyMC model from family, predictors and priors
2. NUTSSampler: NUTS sampling with a divergence guard
3. DiagnosticsComputer: Rhat, ESS, divergence rates
4. PosteriorPredictiveCheck: Model validation
5. Posterior summaries: draws table, credible intervals, exponentiated effects

**Usage:**
```python
from inference import ModelBuilder, LinearPredictor, NUTSSampler, credible_intervals

# 1. Define and build model
mb = ModelBuilder("lognormal", {"mu": LinearPredictor(["x"])})
model = mb.build(dataset.data)

# 2. Sample with NUTS
sampler = NUTSSampler()
summary = sampler.sample(model, draws=1000, tune=1000, chains=4)

# 3. Summaries
credible_intervals(summary.idata)
exponentiate(summary.idata, ["b_x"])
```
"""

from inference.model_builder import ModelBuilder, Prior, PriorSpec
from inference.predictors import LinearPredictor, NonlinearPredictor
from inference.sampler import (
    NUTSSampler,
    DiagnosticsComputer,
    PosteriorPredictiveCheck,
    InferenceSummary,
    SamplingError,
)
from inference.posterior import (
    posterior_draws,
    credible_intervals,
    exponentiate,
    probability_of_direction,
)

__all__ = [
    "ModelBuilder",
    "Prior",
    "PriorSpec",
    "LinearPredictor",
    "NonlinearPredictor",
    "NUTSSampler",
    "DiagnosticsComputer",
    "PosteriorPredictiveCheck",
    "InferenceSummary",
    "SamplingError",
    "posterior_draws",
    "credible_intervals",
    "exponentiate",
    "probability_of_direction",
]
