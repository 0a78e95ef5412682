"""
Posterior summaries from raw draws.

The posterior draws table has one row per MCMC draw (chain, draw) and one
column per scalar parameter element. Credible intervals are equal-tailed
quantile intervals, optionally after transforming the draws (e.g. exp of a
log-scale coefficient gives a multiplicative effect; exp of a logit
coefficient gives an odds ratio).
"""

from typing import Callable, List, Optional
import numpy as np
import pandas as pd


def _var_names(idata, var_names: Optional[List[str]]) -> List[str]:
    if "posterior" not in idata.groups():
        raise ValueError("InferenceData has no posterior group")
    available = list(idata.posterior.data_vars)
    if var_names is None:
        return available
    missing = [name for name in var_names if name not in available]
    if missing:
        raise ValueError(f"Variables not found in posterior: {missing}")
    return list(var_names)


def posterior_draws(idata, var_names: Optional[List[str]] = None) -> pd.DataFrame:
    """
    Posterior draws as a rectangular table.

    Vector-valued parameters are flattened into columns "name[i]".

    Returns
    -------
    pd.DataFrame
        Columns chain, draw and one column per parameter element.
    """
    names = _var_names(idata, var_names)
    posterior = idata.posterior
    n_chains = posterior.sizes["chain"]
    n_draws = posterior.sizes["draw"]

    columns = {
        "chain": np.repeat(np.arange(n_chains), n_draws),
        "draw": np.tile(np.arange(n_draws), n_chains),
    }
    for name in names:
        values = posterior[name].values.reshape(n_chains * n_draws, -1)
        if posterior[name].ndim == 2:
            columns[name] = values[:, 0]
        else:
            for i in range(values.shape[1]):
                columns[f"{name}[{i}]"] = values[:, i]

    return pd.DataFrame(columns)


def credible_intervals(
    idata,
    var_names: Optional[List[str]] = None,
    prob: float = 0.95,
    transform: Optional[Callable] = None,
) -> pd.DataFrame:
    """
    Posterior mean, sd, median and equal-tailed credible interval.

    Parameters
    ----------
    idata : arviz.InferenceData
        Inference data with a posterior group
    var_names : list, optional
        Parameters to summarize. If None, all posterior variables.
    prob : float
        Interval probability mass. Default 0.95.
    transform : Callable, optional
        Elementwise transform applied to draws before summarizing.

    Returns
    -------
    pd.DataFrame
        Columns mean, sd, median, lower, upper indexed by parameter.
    """
    if not (0 < prob < 1):
        raise ValueError(f"prob must be in (0, 1). Got {prob}")

    draws = posterior_draws(idata, var_names).drop(columns=["chain", "draw"])
    if transform is not None:
        draws = draws.apply(transform)

    tail = (1 - prob) / 2
    table = pd.DataFrame(
        {
            "mean": draws.mean(),
            "sd": draws.std(ddof=1),
            "median": draws.median(),
            "lower": draws.quantile(tail),
            "upper": draws.quantile(1 - tail),
        }
    )
    table.index.name = "parameter"
    return table


def exponentiate(
    idata,
    var_names: List[str],
    prob: float = 0.95,
) -> pd.DataFrame:
    """Credible intervals of exp(parameter), e.g. multiplicative effects or odds ratios."""
    return credible_intervals(idata, var_names=var_names, prob=prob, transform=np.exp)


def probability_of_direction(idata, var_name: str) -> float:
    """Posterior probability that a scalar parameter is positive."""
    draws = posterior_draws(idata, [var_name])[var_name]
    return float((draws > 0).mean())
