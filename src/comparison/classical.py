"""
Classical point-estimate fits for comparison with the posterior.

- Ordinary least squares (optionally on log y, matching the log-Gaussian
  model's location scale)
- Unpenalized logistic regression (scikit-learn) with Wald standard errors

Coefficients are named like the model builder names them (Intercept, b_x)
so the two fits can be joined directly.
"""

import logging
import warnings
from typing import Optional, Sequence
import numpy as np
from numpy.typing import NDArray
import pandas as pd
from scipy import optimize, stats
from scipy.special import expit
from sklearn.exceptions import ConvergenceWarning
from sklearn.linear_model import LogisticRegression

from inference.predictors import coefficient_names

logger = logging.getLogger(__name__)


class ClassicalFit:
    """
    Result of a maximum-likelihood regression fit.

    Attributes
    ----------
    method : str
        "ols" or "logistic"
    coefficients : pd.Series
        Point estimates indexed by coefficient name
    std_errors : pd.Series
        Standard errors
    conf_int : pd.DataFrame
        Columns lower, upper
    sigma : float or None
        Residual standard deviation (OLS only)
    log_likelihood : float
        Maximized log-likelihood
    n_obs : int
        Number of observations
    """

    def __init__(
        self,
        method: str,
        coefficients: pd.Series,
        std_errors: pd.Series,
        conf_int: pd.DataFrame,
        log_likelihood: float,
        n_obs: int,
        sigma: Optional[float] = None,
    ) -> None:
        self.method = method
        self.coefficients = coefficients
        self.std_errors = std_errors
        self.conf_int = conf_int
        self.log_likelihood = float(log_likelihood)
        self.n_obs = n_obs
        self.sigma = sigma

    @property
    def n_params(self) -> int:
        """Number of estimated parameters (including sigma for OLS)."""
        return len(self.coefficients) + (1 if self.sigma is not None else 0)

    @property
    def aic(self) -> float:
        """Akaike information criterion."""
        return 2 * self.n_params - 2 * self.log_likelihood

    def table(self) -> pd.DataFrame:
        """Estimates, standard errors and confidence limits as one table."""
        table = pd.DataFrame(
            {
                "estimate": self.coefficients,
                "std_error": self.std_errors,
                "lower": self.conf_int["lower"],
                "upper": self.conf_int["upper"],
            }
        )
        table.index.name = "parameter"
        return table

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"ClassicalFit(method={self.method!r}, n_obs={self.n_obs}, "
            f"coefficients={self.coefficients.round(4).to_dict()})"
        )


def _design(
    data: pd.DataFrame, covariates: Sequence[str], intercept: bool
) -> NDArray[np.float64]:
    missing = [col for col in covariates if col not in data.columns]
    if missing:
        raise ValueError(f"Covariates not found in data: {missing}")
    columns = [data[col].to_numpy(dtype=np.float64) for col in covariates]
    if intercept:
        columns.insert(0, np.ones(len(data)))
    if not columns:
        raise ValueError("Need an intercept or at least one covariate")
    return np.column_stack(columns)


def _outcome(data: pd.DataFrame, outcome: str) -> NDArray[np.float64]:
    if outcome not in data.columns:
        raise ValueError(f"Outcome column '{outcome}' not found in data")
    return data[outcome].to_numpy(dtype=np.float64)


def fit_ols(
    data: pd.DataFrame,
    covariates: Sequence[str],
    outcome: str = "y",
    intercept: bool = True,
    log_outcome: bool = False,
    conf_level: float = 0.95,
) -> ClassicalFit:
    """
    Ordinary least squares with t-based confidence intervals.

    Parameters
    ----------
    data : pd.DataFrame
        Covariates and outcome
    covariates : Sequence[str]
        Covariate columns
    outcome : str
        Outcome column. Default "y".
    intercept : bool
        Include an intercept. Default True.
    log_outcome : bool
        Regress log(y) instead of y. Default False.
    conf_level : float
        Confidence level. Default 0.95.

    Returns
    -------
    ClassicalFit
        Fit with residual sigma (unbiased, n - p denominator).
    """
    X = _design(data, covariates, intercept)
    y = _outcome(data, outcome)
    if log_outcome:
        if np.any(y <= 0):
            raise ValueError("log_outcome requires a strictly positive outcome")
        y = np.log(y)

    n, p = X.shape
    if n <= p:
        raise ValueError(f"Need more observations than coefficients. Got n={n}, p={p}")

    beta, _, rank, _ = np.linalg.lstsq(X, y, rcond=None)
    if rank < p:
        raise ValueError("Design matrix is rank deficient")

    residuals = y - X @ beta
    rss = float(residuals @ residuals)
    sigma2 = rss / (n - p)
    cov = sigma2 * np.linalg.inv(X.T @ X)
    se = np.sqrt(np.diag(cov))

    t_crit = stats.t.ppf((1 + conf_level) / 2, df=n - p)
    # Gaussian log-likelihood at the MLE of sigma (rss / n)
    log_lik = -0.5 * n * (np.log(2 * np.pi * rss / n) + 1)

    names = coefficient_names("mu", covariates, intercept)
    fit = ClassicalFit(
        method="ols",
        coefficients=pd.Series(beta, index=names),
        std_errors=pd.Series(se, index=names),
        conf_int=pd.DataFrame(
            {"lower": beta - t_crit * se, "upper": beta + t_crit * se}, index=names
        ),
        log_likelihood=log_lik,
        n_obs=n,
        sigma=float(np.sqrt(sigma2)),
    )
    logger.debug("OLS fit: %s", fit)
    return fit


def _is_separable(X: NDArray[np.float64], y: NDArray[np.float64]) -> bool:
    # Complete separation: some beta has sign(x_i beta) == sign(2 y_i - 1) for
    # every row, i.e. the LP  s_i x_i beta >= 1  is feasible.
    signs = 2 * y - 1
    result = optimize.linprog(
        c=np.zeros(X.shape[1]),
        A_ub=-(signs[:, None] * X),
        b_ub=-np.ones(len(y)),
        bounds=(None, None),
        method="highs",
    )
    return result.status == 0


def fit_logistic(
    data: pd.DataFrame,
    covariates: Sequence[str],
    outcome: str = "y",
    intercept: bool = True,
    conf_level: float = 0.95,
    max_iter: int = 1000,
    tol: float = 1e-8,
) -> ClassicalFit:
    """
    Unpenalized maximum-likelihood logistic regression with Wald intervals.

    The estimate comes from scikit-learn's `LogisticRegression` (lbfgs,
    ``C=inf``); standard errors come from the inverse Fisher information
    X' W X at the estimate.

    Parameters
    ----------
    data : pd.DataFrame
        Covariates and a 0/1 outcome
    covariates : Sequence[str]
        Covariate columns
    outcome : str
        Outcome column. Default "y".
    intercept : bool
        Include an intercept. Default True.
    conf_level : float
        Confidence level. Default 0.95.
    max_iter : int
        lbfgs iteration limit. Default 1000.
    tol : float
        lbfgs gradient tolerance. Default 1e-8.

    Raises
    ------
    ValueError
        If the outcome is not binary.
    RuntimeError
        If the data are separable (the estimates would be infinite) or
        the optimizer does not converge.
    """
    X = _design(data, covariates, intercept)
    y = _outcome(data, outcome)
    if not np.all(np.isin(y, [0, 1])):
        raise ValueError("Logistic regression needs an outcome of 0s and 1s")
    if _is_separable(X, y):
        raise RuntimeError("The outcome is completely separated by the covariates")

    n = X.shape[0]
    # The design already carries the intercept column
    model = LogisticRegression(
        C=np.inf, solver="lbfgs", fit_intercept=False, max_iter=max_iter, tol=tol
    )
    with warnings.catch_warnings():
        warnings.simplefilter("error", ConvergenceWarning)
        try:
            model.fit(X, y.astype(int))
        except ConvergenceWarning as err:
            raise RuntimeError(
                f"Logistic regression did not converge in {max_iter} iterations"
            ) from err
    beta = model.coef_[0]

    prob = expit(X @ beta)
    weights = prob * (1 - prob)
    if np.any(weights < 1e-12):
        raise RuntimeError("Fitted probabilities reached 0 or 1; the data may be separable")
    cov = np.linalg.inv(X.T @ (weights[:, None] * X))
    se = np.sqrt(np.diag(cov))
    z_crit = stats.norm.ppf((1 + conf_level) / 2)
    log_lik = float(np.sum(stats.bernoulli.logpmf(y, prob)))

    names = coefficient_names("mu", covariates, intercept)
    fit = ClassicalFit(
        method="logistic",
        coefficients=pd.Series(beta, index=names),
        std_errors=pd.Series(se, index=names),
        conf_int=pd.DataFrame(
            {"lower": beta - z_crit * se, "upper": beta + z_crit * se}, index=names
        ),
        log_likelihood=log_lik,
        n_obs=n,
    )
    logger.debug("Logistic fit: %s", fit)
    return fit
