"""
Posterior versus ground truth and versus classical estimates.
"""

from typing import Dict
import pandas as pd

from comparison.classical import ClassicalFit


def check_recovery(intervals: pd.DataFrame, truth: Dict[str, float]) -> pd.DataFrame:
    """
    Compare posterior intervals with the values that generated the data.

    Parameters
    ----------
    intervals : pd.DataFrame
        Output of `credible_intervals` (mean, lower, upper per parameter)
    truth : Dict[str, float]
        Ground-truth values by parameter name

    Returns
    -------
    pd.DataFrame
        Columns truth, mean, lower, upper, error (mean - truth), covered

    Raises
    ------
    ValueError
        If a truth parameter has no posterior summary.
    """
    missing = [name for name in truth if name not in intervals.index]
    if missing:
        raise ValueError(f"Parameters missing from the posterior summary: {missing}")

    names = list(truth)
    table = intervals.loc[names, ["mean", "lower", "upper"]].copy()
    table.insert(0, "truth", pd.Series(truth))
    table["error"] = table["mean"] - table["truth"]
    table["covered"] = (table["truth"] >= table["lower"]) & (table["truth"] <= table["upper"])
    return table


def compare_to_classical(intervals: pd.DataFrame, fit: ClassicalFit) -> pd.DataFrame:
    """
    Side-by-side Bayesian posterior and classical estimates.

    Only coefficients present in both are compared.

    Returns
    -------
    pd.DataFrame
        Columns bayes_mean, bayes_lower, bayes_upper, classical_estimate,
        classical_lower, classical_upper, difference
    """
    shared = [name for name in fit.coefficients.index if name in intervals.index]
    if not shared:
        raise ValueError("No coefficients shared between the posterior and the classical fit")

    classical = fit.table().loc[shared]
    table = pd.DataFrame(
        {
            "bayes_mean": intervals.loc[shared, "mean"],
            "bayes_lower": intervals.loc[shared, "lower"],
            "bayes_upper": intervals.loc[shared, "upper"],
            "classical_estimate": classical["estimate"],
            "classical_lower": classical["lower"],
            "classical_upper": classical["upper"],
        }
    )
    table["difference"] = table["bayes_mean"] - table["classical_estimate"]
    return table
