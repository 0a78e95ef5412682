"""
Model comparison by Pareto-smoothed importance sampling LOO (PSIS-LOO).

elpd_loo estimates out-of-sample predictive accuracy from a single fit.
Models are ranked by elpd_loo; a difference is considered meaningful when
it is several times its standard error. Pareto k > 0.7 marks observations
whose LOO estimate is unreliable.
"""

import logging
from typing import Dict, Optional, Tuple
import numpy as np
from numpy.typing import NDArray
import pandas as pd
import pymc as pm
import arviz as az

logger = logging.getLogger(__name__)

PARETO_K_THRESHOLD = 0.7


class LooResult:
    """
    PSIS-LOO estimate for one model.

    Attributes
    ----------
    elpd_loo : float
        Expected log pointwise predictive density
    se : float
        Standard error of elpd_loo
    p_loo : float
        Effective number of parameters
    pointwise : NDArray[np.float64]
        Per-observation elpd, shape (n_obs,)
    pareto_k : NDArray[np.float64]
        Per-observation Pareto shape estimates, shape (n_obs,)
    """

    def __init__(
        self,
        elpd_loo: float,
        se: float,
        p_loo: float,
        pointwise: NDArray[np.float64],
        pareto_k: NDArray[np.float64],
    ) -> None:
        self.elpd_loo = float(elpd_loo)
        self.se = float(se)
        self.p_loo = float(p_loo)
        self.pointwise = np.asarray(pointwise, dtype=np.float64)
        self.pareto_k = np.asarray(pareto_k, dtype=np.float64)

    @property
    def n_obs(self) -> int:
        """Number of observations."""
        return len(self.pointwise)

    @property
    def n_bad_k(self) -> int:
        """Observations with Pareto k above 0.7."""
        return int(np.sum(self.pareto_k > PARETO_K_THRESHOLD))

    @property
    def looic(self) -> float:
        """LOO information criterion on the deviance scale (-2 * elpd_loo)."""
        return -2.0 * self.elpd_loo

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"LooResult(elpd_loo={self.elpd_loo:.1f}, se={self.se:.1f}, "
            f"p_loo={self.p_loo:.1f}, n_bad_k={self.n_bad_k})"
        )


def ensure_log_likelihood(idata, model: pm.Model):
    """Add the pointwise log-likelihood group if sampling did not store it."""
    if "log_likelihood" not in idata.groups():
        logger.info("Computing pointwise log-likelihood")
        pm.compute_log_likelihood(idata, model=model, progressbar=False)
    return idata


def compute_loo(idata, var_name: Optional[str] = None) -> LooResult:
    """
    PSIS-LOO for a fitted model.

    Parameters
    ----------
    idata : arviz.InferenceData
        Inference data with a log_likelihood group
    var_name : str, optional
        Observed variable to use when the model has several.

    Raises
    ------
    ValueError
        If there is no log_likelihood group.
    """
    if "log_likelihood" not in idata.groups():
        raise ValueError(
            "InferenceData has no log_likelihood group; sample with "
            "log_likelihood=True or call ensure_log_likelihood first"
        )

    loo = az.loo(idata, var_name=var_name, pointwise=True)
    result = LooResult(
        elpd_loo=loo.elpd_loo,
        se=loo.se,
        p_loo=loo.p_loo,
        pointwise=np.asarray(loo.loo_i).reshape(-1),
        pareto_k=np.asarray(loo.pareto_k).reshape(-1),
    )
    if result.n_bad_k:
        logger.warning(
            "%d observations have Pareto k > %.1f; LOO may be unreliable",
            result.n_bad_k,
            PARETO_K_THRESHOLD,
        )
    return result


def elpd_difference(first: LooResult, second: LooResult) -> Tuple[float, float]:
    """
    Difference in elpd_loo (first - second) and its standard error.

    The standard error uses the pointwise differences, which accounts for
    both models being evaluated on the same observations.
    """
    if first.n_obs != second.n_obs:
        raise ValueError(
            f"Models were fit to different numbers of observations: "
            f"{first.n_obs} vs {second.n_obs}"
        )
    diff = first.pointwise - second.pointwise
    se = float(np.sqrt(first.n_obs * np.var(diff, ddof=1)))
    return float(diff.sum()), se


def compare_models(idatas: Dict[str, object], var_name: Optional[str] = None) -> pd.DataFrame:
    """
    Rank candidate models by elpd_loo.

    Parameters
    ----------
    idatas : Dict[str, arviz.InferenceData]
        Fitted models by name, each with a log_likelihood group
    var_name : str, optional
        Observed variable name shared by the models

    Returns
    -------
    pd.DataFrame
        ArviZ comparison table (rank, elpd_loo, p_loo, elpd_diff, weight,
        se, dse, warning), best model first.
    """
    if len(idatas) < 2:
        raise ValueError(f"Need at least two models to compare. Got {len(idatas)}")
    missing = [name for name, idata in idatas.items() if "log_likelihood" not in idata.groups()]
    if missing:
        raise ValueError(f"Models without a log_likelihood group: {missing}")

    table = az.compare(dict(idatas), ic="loo", var_name=var_name)
    logger.info("Best model by elpd_loo: %s", table.index[0])
    return table
