"""
Likelihood families for regression models.

Each family declares its distributional parameters and the link function
that maps a linear predictor onto the parameter's natural scale:

    gaussian     y ~ Normal(μ, σ)             μ: identity, σ: log
    lognormal    log y ~ Normal(μ, σ)         μ: identity, σ: log
    skew_normal  y ~ SkewNormal(μ, σ, α)      μ: identity, σ: log, α: identity
    bernoulli    y ~ Bernoulli(p)             μ = p: logit

Families are used in two places:
- simulation, via the SciPy densities and samplers (numpy arrays)
- model building, via the PyMC likelihood and PyTensor inverse links
"""

from typing import Dict, Optional, Tuple
import numpy as np
from numpy.typing import NDArray
import pymc as pm
from scipy import stats
from scipy.special import expit


class Family:
    """
    Base class for likelihood families.

    Attributes
    ----------
    name : str
        Registry name of the family
    parameters : Tuple[str, ...]
        Distributional parameters; the first is always the location "mu"
    links : Dict[str, str]
        Link function per parameter ("identity", "log" or "logit")
    """

    name: str = ""
    parameters: Tuple[str, ...] = ()
    links: Dict[str, str] = {}

    def link(self, param: str) -> str:
        """Link function name for a distributional parameter."""
        if param not in self.parameters:
            raise ValueError(
                f"Family '{self.name}' has no parameter '{param}'. "
                f"Available: {self.parameters}"
            )
        return self.links[param]

    def inverse_link(self, param: str, eta: NDArray[np.float64]) -> NDArray[np.float64]:
        """
        Map a linear predictor to the natural parameter scale (numpy).

        Parameters
        ----------
        param : str
            Distributional parameter name
        eta : NDArray[np.float64]
            Linear predictor values

        Returns
        -------
        NDArray[np.float64]
            Parameter values on the natural scale
        """
        link = self.link(param)
        eta = np.asarray(eta, dtype=np.float64)
        if link == "log":
            return np.exp(eta)
        if link == "logit":
            return expit(eta)
        return eta

    def inverse_link_tensor(self, param: str, eta):
        """Map a linear predictor to the natural parameter scale (PyTensor)."""
        link = self.link(param)
        if link == "log":
            return pm.math.exp(eta)
        if link == "logit":
            return pm.math.invlogit(eta)
        return eta

    def validate_outcome(self, y: NDArray[np.float64]) -> None:
        """
        Check that outcome values are in the family's support.

        Raises
        ------
        ValueError
            If any value is non-finite or outside the support.
        """
        y = np.asarray(y, dtype=np.float64)
        if not np.all(np.isfinite(y)):
            raise ValueError(f"Outcome for family '{self.name}' must be finite")

    def _check_sigma(self, sigma) -> None:
        if np.any(np.asarray(sigma) <= 0):
            raise ValueError(f"sigma must be positive. Got {sigma}")

    def log_likelihood(self, y: NDArray[np.float64], **params) -> NDArray[np.float64]:
        """Pointwise log density of y under the given parameters."""
        raise NotImplementedError

    def sample(
        self,
        size: int,
        random_seed: Optional[int] = None,
        **params,
    ) -> NDArray[np.float64]:
        """Draw outcomes from the family."""
        raise NotImplementedError

    def expected_value(self, **params) -> NDArray[np.float64]:
        """Mean of the outcome on the response scale."""
        raise NotImplementedError

    def likelihood(self, name: str, observed, dims: Optional[str] = None, **params):
        """Create the observed PyMC variable inside an active model context."""
        raise NotImplementedError

    def __repr__(self) -> str:
        """String representation."""
        return f"{type(self).__name__}(parameters={self.parameters})"


class Gaussian(Family):
    """Normal likelihood with identity-linked mean and log-linked sigma."""

    name = "gaussian"
    parameters = ("mu", "sigma")
    links = {"mu": "identity", "sigma": "log"}

    def log_likelihood(self, y, mu, sigma):
        self._check_sigma(sigma)
        return stats.norm.logpdf(y, loc=mu, scale=sigma)

    def sample(self, size, random_seed=None, mu=0.0, sigma=1.0):
        self._check_sigma(sigma)
        rng = np.random.default_rng(random_seed)
        return rng.normal(mu, sigma, size=size)

    def expected_value(self, mu, sigma=None):
        return np.asarray(mu, dtype=np.float64)

    def likelihood(self, name, observed, dims=None, mu=None, sigma=None):
        return pm.Normal(name, mu=mu, sigma=sigma, observed=observed, dims=dims)


class LogNormal(Family):
    """
    Log-Gaussian likelihood.

    mu and sigma live on the log scale of the outcome, so regression
    coefficients act multiplicatively once exponentiated.
    """

    name = "lognormal"
    parameters = ("mu", "sigma")
    links = {"mu": "identity", "sigma": "log"}

    def validate_outcome(self, y):
        super().validate_outcome(y)
        if np.any(np.asarray(y) <= 0):
            raise ValueError("Outcome for family 'lognormal' must be strictly positive")

    def log_likelihood(self, y, mu, sigma):
        self._check_sigma(sigma)
        return stats.lognorm.logpdf(y, s=sigma, scale=np.exp(mu))

    def sample(self, size, random_seed=None, mu=0.0, sigma=1.0):
        self._check_sigma(sigma)
        rng = np.random.default_rng(random_seed)
        return rng.lognormal(mean=mu, sigma=sigma, size=size)

    def expected_value(self, mu, sigma):
        return np.exp(np.asarray(mu) + np.asarray(sigma) ** 2 / 2)

    def likelihood(self, name, observed, dims=None, mu=None, sigma=None):
        return pm.LogNormal(name, mu=mu, sigma=sigma, observed=observed, dims=dims)


class SkewNormal(Family):
    """
    Skew-normal likelihood.

    alpha controls skewness: alpha = 0 recovers the Gaussian, alpha > 0
    gives a right-skewed distribution. mu and sigma are location and scale,
    not mean and standard deviation.
    """

    name = "skew_normal"
    parameters = ("mu", "sigma", "alpha")
    links = {"mu": "identity", "sigma": "log", "alpha": "identity"}

    def log_likelihood(self, y, mu, sigma, alpha):
        self._check_sigma(sigma)
        return stats.skewnorm.logpdf(y, a=alpha, loc=mu, scale=sigma)

    def sample(self, size, random_seed=None, mu=0.0, sigma=1.0, alpha=0.0):
        self._check_sigma(sigma)
        rng = np.random.default_rng(random_seed)
        return stats.skewnorm.rvs(a=alpha, loc=mu, scale=sigma, size=size, random_state=rng)

    def expected_value(self, mu, sigma, alpha):
        delta = np.asarray(alpha) / np.sqrt(1 + np.asarray(alpha) ** 2)
        return np.asarray(mu) + np.asarray(sigma) * delta * np.sqrt(2 / np.pi)

    def likelihood(self, name, observed, dims=None, mu=None, sigma=None, alpha=None):
        return pm.SkewNormal(
            name, mu=mu, sigma=sigma, alpha=alpha, observed=observed, dims=dims
        )


class Bernoulli(Family):
    """Binary outcome with a logit-linked success probability."""

    name = "bernoulli"
    parameters = ("mu",)
    links = {"mu": "logit"}

    def validate_outcome(self, y):
        super().validate_outcome(y)
        if not np.all(np.isin(np.asarray(y), [0, 1])):
            raise ValueError("Outcome for family 'bernoulli' must contain only 0 and 1")

    def _check_probability(self, mu) -> None:
        mu = np.asarray(mu)
        if np.any((mu < 0) | (mu > 1)):
            raise ValueError("Success probability must be in [0, 1]")

    def log_likelihood(self, y, mu):
        self._check_probability(mu)
        return stats.bernoulli.logpmf(y, mu)

    def sample(self, size, random_seed=None, mu=0.5):
        self._check_probability(mu)
        rng = np.random.default_rng(random_seed)
        return (rng.random(size) < mu).astype(np.int64)

    def expected_value(self, mu):
        return np.asarray(mu, dtype=np.float64)

    def likelihood(self, name, observed, dims=None, mu=None):
        return pm.Bernoulli(name, p=mu, observed=observed, dims=dims)


FAMILIES: Dict[str, Family] = {
    family.name: family
    for family in (Gaussian(), LogNormal(), SkewNormal(), Bernoulli())
}


def get_family(name: str) -> Family:
    """
    Look up a likelihood family by name.

    Raises
    ------
    ValueError
        If the family is unknown.
    """
    try:
        return FAMILIES[name]
    except KeyError:
        raise ValueError(
            f"Unknown family '{name}'. Available: {sorted(FAMILIES)}"
        ) from None
