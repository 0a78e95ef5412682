"""
First-order autoregressive (AR(1)) residual correlation.

Residuals of an ordered series follow

    e_1 ~ Normal(0, σ / sqrt(1 - ρ²))             # Stationary start
    e_t | e_{t-1} ~ Normal(ρ e_{t-1}, σ)          # Innovation sd σ

so that Corr(e_t, e_{t+h}) = ρ^|h|. Writing the joint density as a product
of these conditionals gives an exact likelihood without forming the full
covariance matrix, which is what the model builder uses.
"""

from typing import Optional, Tuple
import numpy as np
from numpy.typing import NDArray
import pytensor.tensor as pt
from scipy import stats


class AR1Process:
    """
    Stationary AR(1) process for regression residuals.

    Attributes
    ----------
    rho : float
        Autocorrelation coefficient, |rho| < 1
    sigma : float
        Innovation standard deviation
    stationary_sd : float
        Marginal standard deviation of the process
    """

    def __init__(self, rho: float, sigma: float, validate: bool = True) -> None:
        """
        Initialize AR(1) process.

        Parameters
        ----------
        rho : float
            Autocorrelation coefficient. Must be in (-1, 1).
        sigma : float
            Innovation standard deviation. Must be positive.
        validate : bool, optional
            If True, validate the parameters. Default is True.

        Raises
        ------
        ValueError
            If rho is outside (-1, 1) or sigma is not positive.
        """
        self.rho = float(rho)
        self.sigma = float(sigma)

        if validate:
            self._validate_parameters()

        self.stationary_sd = self.sigma / np.sqrt(1.0 - self.rho ** 2)

    def _validate_parameters(self) -> None:
        if not (-1.0 < self.rho < 1.0):
            raise ValueError(
                f"rho must be in (-1, 1) for a stationary process. Got {self.rho}"
            )
        if self.sigma <= 0:
            raise ValueError(f"sigma must be positive. Got {self.sigma}")

    def autocorrelation(self, lag: int) -> float:
        """Correlation between residuals `lag` steps apart."""
        return float(self.rho ** abs(lag))

    def correlation_matrix(self, n: int) -> NDArray[np.float64]:
        """
        Correlation matrix of n consecutive residuals.

        Returns
        -------
        NDArray[np.float64]
            Matrix with entries rho^|i-j|, shape (n, n)
        """
        if n <= 0:
            raise ValueError(f"n must be positive. Got {n}")
        idx = np.arange(n)
        return self.rho ** np.abs(idx[:, None] - idx[None, :])

    def covariance_matrix(self, n: int) -> NDArray[np.float64]:
        """Covariance matrix of n consecutive residuals, shape (n, n)."""
        return self.stationary_sd ** 2 * self.correlation_matrix(n)

    def conditional_moments(
        self,
        residuals: NDArray[np.float64],
        starts: Optional[NDArray[np.bool_]] = None,
    ) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
        """
        Conditional mean and sd of each residual given its predecessor.

        Parameters
        ----------
        residuals : NDArray[np.float64]
            Ordered residuals, shape (T,)
        starts : NDArray[np.bool_], optional
            True where an independent series begins. If None, a single
            series starting at index 0.

        Returns
        -------
        cond_mean : NDArray[np.float64]
            Conditional means, shape (T,)
        cond_sd : NDArray[np.float64]
            Conditional standard deviations, shape (T,)
        """
        residuals = np.asarray(residuals, dtype=np.float64)
        starts = _series_starts(len(residuals), starts)

        previous = np.concatenate([[0.0], residuals[:-1]])
        cond_mean = np.where(starts, 0.0, self.rho * previous)
        cond_sd = np.where(starts, self.stationary_sd, self.sigma)
        return cond_mean, cond_sd

    def log_likelihood(
        self,
        residuals: NDArray[np.float64],
        starts: Optional[NDArray[np.bool_]] = None,
    ) -> NDArray[np.float64]:
        """
        Pointwise conditional log density of the residuals.

        The sum over a single series equals the multivariate normal log
        density with covariance `covariance_matrix(T)`.

        Returns
        -------
        NDArray[np.float64]
            Log densities, shape (T,)
        """
        cond_mean, cond_sd = self.conditional_moments(residuals, starts)
        return stats.norm.logpdf(residuals, loc=cond_mean, scale=cond_sd)

    def simulate_path(
        self,
        n_steps: int,
        initial: Optional[float] = None,
        random_seed: Optional[int] = None,
    ) -> NDArray[np.float64]:
        """
        Simulate a residual path.

        Parameters
        ----------
        n_steps : int
            Length of the path
        initial : float, optional
            Starting residual. If None, drawn from the stationary distribution.
        random_seed : int, optional
            Random seed for reproducibility.

        Returns
        -------
        NDArray[np.float64]
            Residual path, shape (n_steps,)
        """
        if n_steps <= 0:
            raise ValueError(f"n_steps must be positive. Got {n_steps}")

        rng = np.random.default_rng(random_seed)
        innovations = rng.normal(0.0, self.sigma, size=n_steps)

        path = np.zeros(n_steps)
        if initial is None:
            path[0] = rng.normal(0.0, self.stationary_sd)
        else:
            path[0] = initial

        for t in range(1, n_steps):
            path[t] = self.rho * path[t - 1] + innovations[t]

        return path

    def __repr__(self) -> str:
        """String representation."""
        return f"AR1Process(rho={self.rho}, sigma={self.sigma})"


def _series_starts(n: int, starts: Optional[NDArray[np.bool_]]) -> NDArray[np.bool_]:
    if starts is None:
        starts = np.zeros(n, dtype=bool)
        if n > 0:
            starts[0] = True
        return starts

    starts = np.asarray(starts, dtype=bool)
    if starts.shape != (n,):
        raise ValueError(f"starts must have shape ({n},). Got {starts.shape}")
    if n > 0 and not starts[0]:
        raise ValueError("The first observation must start a series")
    return starts


def series_starts_from_groups(groups: NDArray) -> NDArray[np.bool_]:
    """
    Mark the first row of each contiguous group.

    Rows must already be ordered by group and time.
    """
    groups = np.asarray(groups)
    starts = np.ones(len(groups), dtype=bool)
    starts[1:] = groups[1:] != groups[:-1]
    return starts


def conditional_moments_tensor(residuals, rho, sigma, starts: NDArray[np.bool_]):
    """
    PyTensor version of `AR1Process.conditional_moments`.

    Parameters
    ----------
    residuals : TensorVariable
        Ordered residuals y - mu, shape (T,)
    rho, sigma : TensorVariable
        Autocorrelation and innovation sd
    starts : NDArray[np.bool_]
        Series start mask, shape (T,)

    Returns
    -------
    cond_mean, cond_sd : TensorVariable
        Conditional means and standard deviations, shape (T,)
    """
    starts = pt.as_tensor_variable(np.asarray(starts, dtype=bool))
    previous = pt.concatenate([pt.zeros(1), residuals[:-1]])
    stationary_sd = sigma / pt.sqrt(1.0 - rho ** 2)

    cond_mean = pt.switch(starts, 0.0, rho * previous)
    cond_sd = pt.switch(starts, stationary_sd, sigma)
    return cond_mean, cond_sd


def create_ar1_from_stationary(rho: float, stationary_sd: float) -> AR1Process:
    """
    Create an AR(1) process with a given marginal standard deviation.

    Useful when the analyst thinks in terms of overall residual spread
    rather than innovation spread.

    Raises
    ------
    ValueError
        If rho is outside (-1, 1) or stationary_sd is not positive.
    """
    if not (-1.0 < rho < 1.0):
        raise ValueError(f"rho must be in (-1, 1). Got {rho}")
    if stationary_sd <= 0:
        raise ValueError(f"stationary_sd must be positive. Got {stationary_sd}")

    return AR1Process(rho, stationary_sd * np.sqrt(1.0 - rho ** 2))
