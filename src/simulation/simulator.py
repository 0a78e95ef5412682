"""
Synthetic data simulator with known ground truth.

Each scenario draws a covariate, computes the distributional parameters
from analyst-chosen values and samples an outcome from the matching
likelihood family. The ground truth is stored under the same parameter
names the model builder gives the posterior, so recovery can be checked
directly:

    Intercept, b_x              # Location predictor
    sigma_Intercept, b_sigma_x  # Scale predictor (distributional models)
    sigma, alpha, rho           # Scalar parameters
    a, b                        # Nonlinear parameters
"""

import logging
from typing import Dict, Optional
import numpy as np
from numpy.typing import NDArray
import pandas as pd
from scipy.special import expit

from families import get_family
from dependence import AR1Process

logger = logging.getLogger(__name__)


class SimulatedDataset:
    """
    A simulated table together with the truth that generated it.

    Attributes
    ----------
    data : pd.DataFrame
        Covariates and outcome column "y", one row per observation
    truth : Dict[str, float]
        Ground-truth parameter values keyed by model parameter name
    family : str
        Name of the likelihood family used to draw the outcome
    scenario : str
        Name of the generating scenario
    """

    def __init__(
        self,
        data: pd.DataFrame,
        truth: Dict[str, float],
        family: str,
        scenario: str,
    ) -> None:
        if "y" not in data.columns:
            raise ValueError("Simulated data must contain an outcome column 'y'")
        if data.isna().any().any():
            raise ValueError("Simulated data must not contain missing values")

        self.data = data
        self.truth = {name: float(value) for name, value in truth.items()}
        self.family = family
        self.scenario = scenario

    @property
    def n_obs(self) -> int:
        """Number of rows."""
        return len(self.data)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"SimulatedDataset(scenario={self.scenario!r}, family={self.family!r}, "
            f"n_obs={self.n_obs}, truth={self.truth})"
        )


class DataSimulator:
    """
    Generator of toy regression datasets.

    Attributes
    ----------
    n_obs : int
        Number of observations per dataset
    random_seed : int or None
        Seed; the same seed always gives the same dataset
    """

    def __init__(self, n_obs: int, random_seed: Optional[int] = None) -> None:
        """
        Initialize simulator.

        Parameters
        ----------
        n_obs : int
            Number of observations to generate. Must be positive.
        random_seed : int, optional
            Random seed for reproducibility.
        """
        if n_obs <= 0:
            raise ValueError(f"n_obs must be positive. Got n_obs={n_obs}")

        self.n_obs = n_obs
        self.random_seed = random_seed

    def _rng(self) -> np.random.Generator:
        return np.random.default_rng(self.random_seed)

    def _covariate(
        self, rng: np.random.Generator, x_low: float, x_high: float
    ) -> NDArray[np.float64]:
        if not x_low < x_high:
            raise ValueError(f"x_low must be below x_high. Got [{x_low}, {x_high}]")
        return rng.uniform(x_low, x_high, size=self.n_obs)

    def _outcome_seed(self, rng: np.random.Generator) -> int:
        return int(rng.integers(0, 2**31 - 1))

    def _dataset(self, x, y, truth, family, scenario, **extra) -> SimulatedDataset:
        columns = dict(extra)
        columns["x"] = x
        columns["y"] = y
        dataset = SimulatedDataset(pd.DataFrame(columns), truth, family, scenario)
        logger.debug("Simulated %s", dataset)
        return dataset

    def gaussian_linear(
        self,
        intercept: float,
        slope: float,
        sigma: float,
        x_low: float = 0.0,
        x_high: float = 10.0,
    ) -> SimulatedDataset:
        """
        Simple linear regression with Gaussian noise.

        y = intercept + slope * x + ε,  ε ~ Normal(0, sigma)
        """
        rng = self._rng()
        x = self._covariate(rng, x_low, x_high)
        y = get_family("gaussian").sample(
            self.n_obs,
            random_seed=self._outcome_seed(rng),
            mu=intercept + slope * x,
            sigma=sigma,
        )
        truth = {"Intercept": intercept, "b_x": slope, "sigma": sigma}
        return self._dataset(x, y, truth, "gaussian", "gaussian_linear")

    def lognormal_linear(
        self,
        intercept: float,
        slope: float,
        sigma: float,
        x_low: float = 0.0,
        x_high: float = 10.0,
    ) -> SimulatedDataset:
        """
        Log-Gaussian regression: log y = intercept + slope * x + ε.

        The truth is on the log scale; exp(slope) is the multiplicative
        change in the median outcome per unit of x.
        """
        rng = self._rng()
        x = self._covariate(rng, x_low, x_high)
        y = get_family("lognormal").sample(
            self.n_obs,
            random_seed=self._outcome_seed(rng),
            mu=intercept + slope * x,
            sigma=sigma,
        )
        truth = {"Intercept": intercept, "b_x": slope, "sigma": sigma}
        return self._dataset(x, y, truth, "lognormal", "lognormal_linear")

    def skew_normal_distributional(
        self,
        intercept: float,
        slope: float,
        sigma_intercept: float,
        sigma_slope: float,
        alpha: float,
        x_low: float = 0.0,
        x_high: float = 10.0,
    ) -> SimulatedDataset:
        """
        Skew-normal regression with a predictor on the scale.

        mu = intercept + slope * x
        sigma = exp(sigma_intercept + sigma_slope * x)
        y ~ SkewNormal(mu, sigma, alpha)
        """
        rng = self._rng()
        x = self._covariate(rng, x_low, x_high)
        family = get_family("skew_normal")
        y = family.sample(
            self.n_obs,
            random_seed=self._outcome_seed(rng),
            mu=intercept + slope * x,
            sigma=family.inverse_link("sigma", sigma_intercept + sigma_slope * x),
            alpha=alpha,
        )
        truth = {
            "Intercept": intercept,
            "b_x": slope,
            "sigma_Intercept": sigma_intercept,
            "b_sigma_x": sigma_slope,
            "alpha": alpha,
        }
        return self._dataset(x, y, truth, "skew_normal", "skew_normal_distributional")

    def logistic(
        self,
        intercept: float,
        slope: float,
        x_low: float = -3.0,
        x_high: float = 3.0,
    ) -> SimulatedDataset:
        """Binary outcome: y ~ Bernoulli(logit^-1(intercept + slope * x))."""
        rng = self._rng()
        x = self._covariate(rng, x_low, x_high)
        y = get_family("bernoulli").sample(
            self.n_obs,
            random_seed=self._outcome_seed(rng),
            mu=expit(intercept + slope * x),
        )
        truth = {"Intercept": intercept, "b_x": slope}
        return self._dataset(x, y, truth, "bernoulli", "logistic")

    def nonlinear_growth(
        self,
        asymptote: float,
        rate: float,
        sigma: float,
        x_low: float = 0.0,
        x_high: float = 10.0,
    ) -> SimulatedDataset:
        """
        Saturating growth curve with Gaussian noise.

        y = a * (1 - exp(-b * x)) + ε,  ε ~ Normal(0, sigma)
        """
        if rate <= 0:
            raise ValueError(f"rate must be positive. Got {rate}")

        rng = self._rng()
        x = self._covariate(rng, x_low, x_high)
        y = get_family("gaussian").sample(
            self.n_obs,
            random_seed=self._outcome_seed(rng),
            mu=asymptote * (1.0 - np.exp(-rate * x)),
            sigma=sigma,
        )
        truth = {"a": asymptote, "b": rate, "sigma": sigma}
        return self._dataset(x, y, truth, "gaussian", "nonlinear_growth")

    def ar1_series(
        self,
        intercept: float,
        slope: float,
        rho: float,
        sigma: float,
        x_low: float = 0.0,
        x_high: float = 10.0,
    ) -> SimulatedDataset:
        """
        Linear trend in x with AR(1) residuals over an ordered time index.

        y_t = intercept + slope * x_t + e_t,  e_t = rho * e_{t-1} + u_t,
        u_t ~ Normal(0, sigma)
        """
        rng = self._rng()
        x = self._covariate(rng, x_low, x_high)
        residuals = AR1Process(rho, sigma).simulate_path(
            self.n_obs, random_seed=self._outcome_seed(rng)
        )
        y = intercept + slope * x + residuals
        truth = {"Intercept": intercept, "b_x": slope, "sigma": sigma, "rho": rho}
        return self._dataset(
            x, y, truth, "gaussian", "ar1_series", time=np.arange(self.n_obs)
        )

    def __repr__(self) -> str:
        """String representation."""
        return f"DataSimulator(n_obs={self.n_obs}, random_seed={self.random_seed})"
