"""
Bayesian model builder: PyMC regression models from declarative specs.

A model is a likelihood family, a predictor for one or more of its
distributional parameters and priors for every free parameter:

    η_k = X_k β_k            or   η_k = f(x, θ)       # Predictor per parameter
    θ_k = g_k⁻¹(η_k)                                   # Inverse link
    β ~ prior                                          # Coefficients
    y_i ~ Family(θ_1i, …, θ_Ki)                        # Likelihood

Parameters without a predictor get a scalar prior on their natural scale
(e.g. sigma ~ HalfStudentT(3, 2.5)). Gaussian models can carry AR(1)
residuals, in which case the likelihood is

    y_t ~ Normal(μ_t + ρ (y_{t-1} - μ_{t-1}), σ)      # t > start of series
    y_s ~ Normal(μ_s, σ / sqrt(1 - ρ²))               # series start
"""

import logging
from typing import Dict, List, Optional
import numpy as np
import pandas as pd
import pymc as pm

from families import Family, get_family
from dependence import conditional_moments_tensor, series_starts_from_groups
from inference.predictors import LinearPredictor, NonlinearPredictor

logger = logging.getLogger(__name__)


class Prior:
    """A named PyMC distribution with fixed hyperparameters."""

    SUPPORTED = (
        "Normal",
        "HalfNormal",
        "StudentT",
        "HalfStudentT",
        "Cauchy",
        "HalfCauchy",
        "Exponential",
        "Uniform",
        "Gamma",
        "LogNormal",
        "Beta",
    )

    def __init__(self, distribution: str, **parameters: float) -> None:
        """
        Initialize prior.

        Parameters
        ----------
        distribution : str
            PyMC distribution name, e.g. "Normal".
        **parameters : float
            Hyperparameters passed to the distribution, e.g. mu=0, sigma=1.
        """
        if distribution not in self.SUPPORTED:
            raise ValueError(
                f"Unsupported prior distribution '{distribution}'. "
                f"Supported: {self.SUPPORTED}"
            )
        self.distribution = distribution
        self.parameters = parameters

    @classmethod
    def from_dict(cls, spec: Dict) -> "Prior":
        """Create a prior from {"distribution": ..., **hyperparameters}."""
        spec = dict(spec)
        if "distribution" not in spec:
            raise ValueError(f"Prior spec needs a 'distribution' key. Got {spec}")
        return cls(spec.pop("distribution"), **spec)

    def create(self, name: str):
        """Create the random variable inside an active model context."""
        return getattr(pm, self.distribution)(name, **self.parameters)

    def __eq__(self, other) -> bool:
        return (
            isinstance(other, Prior)
            and self.distribution == other.distribution
            and self.parameters == other.parameters
        )

    def __repr__(self) -> str:
        """String representation."""
        args = ", ".join(f"{k}={v}" for k, v in self.parameters.items())
        return f"{self.distribution}({args})"


class PriorSpec:
    """Default priors by role plus per-parameter overrides."""

    def __init__(
        self,
        intercept: Optional[Prior] = None,
        coefficient: Optional[Prior] = None,
        sigma: Optional[Prior] = None,
        alpha: Optional[Prior] = None,
        rho: Optional[Prior] = None,
        overrides: Optional[Dict[str, Prior]] = None,
    ) -> None:
        """
        Initialize prior specification.

        Parameters
        ----------
        intercept : Prior, optional
            Prior for intercepts. Default Normal(0, 10).
        coefficient : Prior, optional
            Prior for slopes. Default Normal(0, 5).
        sigma : Prior, optional
            Prior for a scalar scale parameter. Default HalfStudentT(3, 2.5).
        alpha : Prior, optional
            Prior for a scalar skewness parameter. Default Normal(0, 4).
        rho : Prior, optional
            Prior for the AR(1) coefficient. Default Uniform(-1, 1).
        overrides : Dict[str, Prior], optional
            Priors for specific parameters by name (e.g. "b_x", "sigma").
        """
        self.intercept = intercept or Prior("Normal", mu=0.0, sigma=10.0)
        self.coefficient = coefficient or Prior("Normal", mu=0.0, sigma=5.0)
        self.sigma = sigma or Prior("HalfStudentT", nu=3.0, sigma=2.5)
        self.alpha = alpha or Prior("Normal", mu=0.0, sigma=4.0)
        self.rho = rho or Prior("Uniform", lower=-1.0, upper=1.0)
        self.overrides = dict(overrides or {})

    @classmethod
    def from_dict(cls, spec: Dict) -> "PriorSpec":
        """Create a spec from nested dicts, e.g. parsed from a config file."""
        spec = dict(spec)
        overrides = {
            name: Prior.from_dict(prior)
            for name, prior in spec.pop("overrides", {}).items()
        }
        roles = {role: Prior.from_dict(prior) for role, prior in spec.items()}
        return cls(overrides=overrides, **roles)

    def for_parameter(self, name: str, role: str) -> Prior:
        """
        Prior for a named parameter.

        Parameters
        ----------
        name : str
            Parameter name in the model
        role : str
            One of "intercept", "coefficient", "sigma", "alpha", "rho";
            used when there is no override for `name`.
        """
        if name in self.overrides:
            return self.overrides[name]
        if role not in ("intercept", "coefficient", "sigma", "alpha", "rho"):
            raise ValueError(f"Unknown prior role '{role}'")
        return getattr(self, role)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"PriorSpec(intercept={self.intercept}, coefficient={self.coefficient}, "
            f"sigma={self.sigma}, alpha={self.alpha}, rho={self.rho}, "
            f"overrides={self.overrides})"
        )


class ModelBuilder:
    """
    Regression model builder.

    Attributes
    ----------
    family : Family
        Likelihood family
    predictors : Dict[str, LinearPredictor or NonlinearPredictor]
        Predictor per distributional parameter; "mu" is required
    prior_spec : PriorSpec
        Prior specification
    autocorrelation : str or None
        "ar1" for AR(1) residuals (gaussian only)
    outcome : str
        Outcome column name
    model : pm.Model or None
        PyMC model (None until built)
    """

    def __init__(
        self,
        family,
        predictors: Dict,
        prior_spec: Optional[PriorSpec] = None,
        autocorrelation: Optional[str] = None,
        time: Optional[str] = None,
        group: Optional[str] = None,
        outcome: str = "y",
    ) -> None:
        """
        Initialize model builder.

        Parameters
        ----------
        family : str or Family
            Likelihood family or its registry name
        predictors : Dict[str, predictor]
            Predictor per distributional parameter. Must include "mu".
        prior_spec : PriorSpec, optional
            Prior specification. If None, use defaults.
        autocorrelation : str, optional
            "ar1" for AR(1) residuals. Only valid with the gaussian family.
        time : str, optional
            Column giving the series order for AR(1) models.
        group : str, optional
            Column identifying independent series for AR(1) models.
        outcome : str
            Outcome column. Default "y".
        """
        self.family: Family = get_family(family) if isinstance(family, str) else family

        if "mu" not in predictors:
            raise ValueError("predictors must include a predictor for 'mu'")
        unknown = [p for p in predictors if p not in self.family.parameters]
        if unknown:
            raise ValueError(
                f"Family '{self.family.name}' has no parameters {unknown}. "
                f"Available: {self.family.parameters}"
            )
        for param, predictor in predictors.items():
            if not isinstance(predictor, (LinearPredictor, NonlinearPredictor)):
                raise ValueError(f"Predictor for '{param}' has unsupported type {type(predictor)}")

        if autocorrelation not in (None, "ar1"):
            raise ValueError(f"Unsupported autocorrelation '{autocorrelation}'. Use 'ar1' or None")
        if autocorrelation == "ar1":
            if self.family.name != "gaussian":
                raise ValueError("AR(1) residuals are only supported for the gaussian family")
            if "sigma" in predictors:
                raise ValueError("AR(1) models need a scalar sigma, not a predictor on sigma")

        self.predictors = dict(predictors)
        self.prior_spec = prior_spec or PriorSpec()
        self.autocorrelation = autocorrelation
        self.time = time
        self.group = group
        self.outcome = outcome
        self.model: Optional[pm.Model] = None
        self.data: Optional[pd.DataFrame] = None

    @property
    def is_linear(self) -> bool:
        """True when every predictor is linear."""
        return all(isinstance(p, LinearPredictor) for p in self.predictors.values())

    def _prepare_data(self, data: pd.DataFrame) -> pd.DataFrame:
        if self.outcome not in data.columns:
            raise ValueError(f"Outcome column '{self.outcome}' not found in data")
        if len(data) == 0:
            raise ValueError("data must contain at least one row")

        if self.autocorrelation == "ar1":
            order = [c for c in (self.group, self.time) if c is not None]
            missing = [c for c in order if c not in data.columns]
            if missing:
                raise ValueError(f"Columns not found in data: {missing}")
            if order:
                data = data.sort_values(order, kind="mergesort")

        y = data[self.outcome].to_numpy(dtype=np.float64)
        self.family.validate_outcome(y)
        return data.reset_index(drop=True)

    def _scalar_parameter(self, param: str):
        role = "sigma" if param == "sigma" else "alpha"
        return self.prior_spec.for_parameter(param, role).create(param)

    def build(self, data: pd.DataFrame) -> pm.Model:
        """
        Build the full PyMC model.

        Parameters
        ----------
        data : pd.DataFrame
            Covariates and outcome. AR(1) models are sorted by group and time.

        Returns
        -------
        model : pm.Model
            PyMC model ready for inference.
        """
        data = self._prepare_data(data)
        y = data[self.outcome].to_numpy()
        if self.family.name == "bernoulli":
            y = y.astype(np.int64)

        coords = {"obs_id": np.arange(len(data))}
        with pm.Model(coords=coords) as model:
            params = {}
            for param in self.family.parameters:
                if param in self.predictors:
                    eta = self.predictors[param].build(param, data, self.prior_spec)
                    params[param] = self.family.inverse_link_tensor(param, eta)
                else:
                    params[param] = self._scalar_parameter(param)

            if self.autocorrelation == "ar1":
                if self.group is not None:
                    starts = series_starts_from_groups(data[self.group].to_numpy())
                else:
                    starts = np.zeros(len(data), dtype=bool)
                    starts[0] = True
                rho = self.prior_spec.for_parameter("rho", "rho").create("rho")
                mu = params["mu"]
                cond_mean, cond_sd = conditional_moments_tensor(
                    y - mu, rho, params["sigma"], starts
                )
                pm.Normal(
                    self.outcome,
                    mu=mu + cond_mean,
                    sigma=cond_sd,
                    observed=y,
                    dims="obs_id",
                )
            else:
                self.family.likelihood(self.outcome, observed=y, dims="obs_id", **params)

        logger.info(
            "Built %s model with %d observations and parameters %s",
            self.family.name,
            len(data),
            [rv.name for rv in model.free_RVs],
        )
        self.model = model
        self.data = data
        return model

    def get_model(self) -> pm.Model:
        """
        Get the built model.

        Raises
        ------
        RuntimeError
            If model has not been built yet.
        """
        if self.model is None:
            raise RuntimeError("Model has not been built. Call .build() first.")
        return self.model

    @property
    def parameter_names(self) -> List[str]:
        """Free parameter names of the built model."""
        return [rv.name for rv in self.get_model().free_RVs]

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"ModelBuilder(family={self.family.name}, "
            f"predictors={self.predictors}, "
            f"autocorrelation={self.autocorrelation}, "
            f"prior_spec={self.prior_spec})"
        )
