"""
Predictors for distributional parameters.

A predictor turns covariate columns into a PyTensor expression on the link
scale of one distributional parameter (mu, sigma, alpha, ...).

Coefficient naming follows the usual regression convention:

    mu:     Intercept,         b_<col>
    other:  <param>_Intercept, b_<param>_<col>
"""

from typing import Callable, Dict, List, Sequence
import numpy as np
from numpy.typing import NDArray
import pandas as pd


def coefficient_names(param: str, covariates: Sequence[str], intercept: bool = True) -> List[str]:
    """Names of the regression coefficients for a distributional parameter."""
    prefix = "" if param == "mu" else f"{param}_"
    names = [f"{prefix}Intercept"] if intercept else []
    names.extend(f"b_{prefix}{col}" for col in covariates)
    return names


def _check_columns(data: pd.DataFrame, covariates: Sequence[str]) -> None:
    missing = [col for col in covariates if col not in data.columns]
    if missing:
        raise ValueError(f"Covariates not found in data: {missing}")
    if data[list(covariates)].isna().any().any():
        raise ValueError(f"Covariates contain missing values: {list(covariates)}")


class LinearPredictor:
    """
    Linear predictor eta = X beta with one scalar prior per coefficient.

    Attributes
    ----------
    covariates : List[str]
        Covariate column names
    intercept : bool
        Whether an intercept column is included
    """

    def __init__(self, covariates: Sequence[str] = (), intercept: bool = True) -> None:
        if not intercept and len(covariates) == 0:
            raise ValueError("A linear predictor needs an intercept or at least one covariate")
        if len(set(covariates)) != len(covariates):
            raise ValueError(f"Duplicate covariates: {list(covariates)}")

        self.covariates = list(covariates)
        self.intercept = intercept

    def design_matrix(self, data: pd.DataFrame) -> NDArray[np.float64]:
        """
        Build the design matrix.

        Returns
        -------
        NDArray[np.float64]
            Shape (n_obs, n_coefficients); the intercept column comes first.
        """
        _check_columns(data, self.covariates)
        columns = [data[col].to_numpy(dtype=np.float64) for col in self.covariates]
        if self.intercept:
            columns.insert(0, np.ones(len(data)))
        return np.column_stack(columns)

    def coefficient_names(self, param: str) -> List[str]:
        """Coefficient names for this predictor on `param`."""
        return coefficient_names(param, self.covariates, self.intercept)

    def build(self, param: str, data: pd.DataFrame, prior_spec):
        """
        Create coefficient priors and return the linear predictor tensor.

        Must be called inside an active PyMC model context.
        """
        X = self.design_matrix(data)
        names = self.coefficient_names(param)

        eta = 0.0
        for j, name in enumerate(names):
            is_intercept = self.intercept and j == 0
            role = "intercept" if is_intercept else "coefficient"
            beta = prior_spec.for_parameter(name, role).create(name)
            eta = eta + beta * X[:, j]
        return eta

    def __repr__(self) -> str:
        """String representation."""
        return f"LinearPredictor(covariates={self.covariates}, intercept={self.intercept})"


class NonlinearPredictor:
    """
    Nonlinear predictor with named parameters.

    `function(data, params)` receives a dict of covariate arrays and a dict
    of parameter tensors and returns eta; write it with `pm.math` so it
    works on PyTensor variables, e.g.::

        NonlinearPredictor(
            lambda d, p: p["a"] * (1 - pm.math.exp(-p["b"] * d["x"])),
            parameters={"a": Prior("Normal", mu=0, sigma=10),
                        "b": Prior("HalfNormal", sigma=1)},
            covariates=["x"],
        )
    """

    def __init__(
        self,
        function: Callable[[Dict[str, NDArray[np.float64]], Dict], object],
        parameters: Dict,
        covariates: Sequence[str],
    ) -> None:
        if not callable(function):
            raise ValueError("function must be callable")
        if not parameters:
            raise ValueError("A nonlinear predictor needs at least one parameter")

        self.function = function
        self.parameters = dict(parameters)
        self.covariates = list(covariates)

    @property
    def parameter_names(self) -> List[str]:
        """Names of the nonlinear parameters, as they appear in the model."""
        return list(self.parameters)

    def build(self, param: str, data: pd.DataFrame, prior_spec):
        """Create the parameter priors and evaluate the function."""
        _check_columns(data, self.covariates)
        columns = {col: data[col].to_numpy(dtype=np.float64) for col in self.covariates}

        tensors = {}
        for name in self.parameter_names:
            prior = prior_spec.overrides.get(name, self.parameters[name])
            tensors[name] = prior.create(name)
        return self.function(columns, tensors)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"NonlinearPredictor(parameters={list(self.parameters)}, "
            f"covariates={self.covariates})"
        )
