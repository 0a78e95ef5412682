"""
NUTS sampler and convergence diagnostics.

Orchestrates PyMC sampling, computes convergence diagnostics (Rhat, ESS),
performs posterior predictive checks, and generates summary statistics.

Key diagnostics:
- Rhat (potential scale reduction): <1.01 indicates convergence
- ESS (effective sample size): >400 in total recommended
- Divergences: <2% of draws acceptable
- Posterior predictive p-value: should be away from 0 and 1 for a
  well-specified model
"""

import logging
import time
from typing import Dict, List, Optional
import numpy as np
from numpy.typing import NDArray
import pandas as pd
import pymc as pm
import arviz as az

logger = logging.getLogger(__name__)


class SamplingError(RuntimeError):
    """Sampling finished but the draws cannot be trusted."""


class InferenceSummary:
    """Summary statistics from MCMC inference."""

    def __init__(
        self,
        idata,  # arviz.InferenceData
        n_draws: int,
        n_tune: int,
        n_chains: int,
        sampling_time: float,
    ) -> None:
        """
        Initialize inference summary.

        Parameters
        ----------
        idata : arviz.InferenceData
            Posterior inference data from PyMC
        n_draws : int
            Number of post-warmup draws per chain
        n_tune : int
            Number of warmup steps per chain
        n_chains : int
            Number of chains
        sampling_time : float
            Total sampling time (seconds)
        """
        self.idata = idata
        self.n_draws = n_draws
        self.n_tune = n_tune
        self.n_chains = n_chains
        self.sampling_time = sampling_time
        self.total_samples = n_draws * n_chains

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"InferenceSummary(draws={self.n_draws}, tune={self.n_tune}, "
            f"chains={self.n_chains}, time={self.sampling_time:.1f}s)"
        )


class NUTSSampler:
    """
    NUTS sampler.

    Runs PyMC MCMC sampling with configurable parameters and rejects runs
    whose divergence rate is too high.
    """

    def __init__(
        self,
        target_accept: float = 0.85,
        max_treedepth: int = 10,
        max_divergence_rate: float = 0.05,
    ) -> None:
        """
        Initialize sampler.

        Parameters
        ----------
        target_accept : float
            NUTS acceptance rate target (0.5-0.99 exclusive). Default 0.85.
        max_treedepth : int
            Maximum tree depth for NUTS. Default 10 (2^10 = 1024 steps max).
        max_divergence_rate : float
            Divergence fraction above which sampling fails. Default 0.05.
        """
        if not (0.5 < target_accept < 0.99):
            raise ValueError(f"target_accept must be in (0.5, 0.99). Got {target_accept}")
        if max_treedepth < 5:
            raise ValueError(f"max_treedepth must be >= 5. Got {max_treedepth}")
        if not (0.0 <= max_divergence_rate <= 1.0):
            raise ValueError(
                f"max_divergence_rate must be in [0, 1]. Got {max_divergence_rate}"
            )

        self.target_accept = target_accept
        self.max_treedepth = max_treedepth
        self.max_divergence_rate = max_divergence_rate

    @classmethod
    def from_config(cls, config, max_divergence_rate: float = 0.05) -> "NUTSSampler":
        """Create a sampler from a `SamplerConfig`."""
        return cls(
            target_accept=config.target_accept,
            max_treedepth=config.max_treedepth,
            max_divergence_rate=max_divergence_rate,
        )

    def sample(
        self,
        model: pm.Model,
        draws: int = 1000,
        tune: int = 1000,
        chains: int = 4,
        cores: Optional[int] = None,
        random_seed: Optional[int] = None,
        progressbar: bool = True,
        log_likelihood: bool = True,
    ) -> InferenceSummary:
        """
        Run NUTS sampling on a PyMC model.

        Parameters
        ----------
        model : pm.Model
            PyMC model (from ModelBuilder.build())
        draws : int
            Number of post-warmup samples per chain. Default 1000.
        tune : int
            Number of warmup steps per chain. Default 1000.
        chains : int
            Number of chains. Default 4.
        cores : int, optional
            Number of chains run in parallel. Default: PyMC's choice.
        random_seed : int, optional
            Random seed for reproducibility.
        progressbar : bool
            Show progress bar. Default True.
        log_likelihood : bool
            Store pointwise log-likelihood for LOO. Default True.

        Returns
        -------
        summary : InferenceSummary
            Summary with posterior, sample stats, timing.

        Raises
        ------
        SamplingError
            If the divergence rate exceeds `max_divergence_rate`.
        """
        if draws <= 0 or tune < 0 or chains <= 0:
            raise ValueError(
                f"draws and chains must be positive and tune non-negative. "
                f"Got draws={draws}, tune={tune}, chains={chains}"
            )

        logger.info("Sampling %d chains: %d warmup + %d draws each", chains, tune, draws)
        start_time = time.time()

        with model:
            idata = pm.sample(
                draws=draws,
                tune=tune,
                chains=chains,
                cores=cores,
                random_seed=random_seed,
                progressbar=progressbar,
                nuts={
                    "target_accept": self.target_accept,
                    "max_treedepth": self.max_treedepth,
                },
                idata_kwargs={"log_likelihood": log_likelihood},
                discard_tuned_samples=True,
            )

        sampling_time = time.time() - start_time

        n_divergences = int(idata.sample_stats.diverging.sum().item())
        n_total = draws * chains
        div_rate = n_divergences / n_total

        if div_rate > self.max_divergence_rate:
            raise SamplingError(
                f"Divergence rate too high: {div_rate:.1%} ({n_divergences}/{n_total}). "
                f"Consider increasing target_accept or reparameterizing."
            )
        if n_divergences > 0:
            logger.warning("%d divergent transitions (%.2f%%)", n_divergences, 100 * div_rate)

        summary = InferenceSummary(
            idata=idata,
            n_draws=draws,
            n_tune=tune,
            n_chains=chains,
            sampling_time=sampling_time,
        )
        logger.info("Finished %s", summary)
        return summary

    @staticmethod
    def sample_prior_predictive(
        model: pm.Model,
        draws: int = 500,
        random_seed: Optional[int] = None,
    ):
        """
        Draw from the prior and prior predictive distribution.

        Returns
        -------
        arviz.InferenceData
            With "prior" and "prior_predictive" groups.
        """
        with model:
            return pm.sample_prior_predictive(draws=draws, random_seed=random_seed)

    @staticmethod
    def sample_posterior_predictive(
        model: pm.Model,
        summary: InferenceSummary,
        random_seed: Optional[int] = None,
        progressbar: bool = False,
    ) -> InferenceSummary:
        """Add a "posterior_predictive" group to the summary's InferenceData."""
        with model:
            pm.sample_posterior_predictive(
                summary.idata,
                random_seed=random_seed,
                progressbar=progressbar,
                extend_inferencedata=True,
            )
        return summary

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"NUTSSampler(target_accept={self.target_accept}, "
            f"max_treedepth={self.max_treedepth}, "
            f"max_divergence_rate={self.max_divergence_rate})"
        )


class DiagnosticsComputer:
    """
    Compute convergence diagnostics from posterior samples.

    Includes: Rhat, ESS, divergence rates.
    """

    @staticmethod
    def rhat(posterior_samples: NDArray[np.float64]) -> float:
        """
        Compute Rhat (potential scale reduction factor).

        Rhat measures whether multiple chains have converged to the same
        posterior distribution. Rhat < 1.01 indicates convergence. This is
        ArviZ's rank-normalized split-Rhat, the same statistic reported by
        `convergence_table`.

        Parameters
        ----------
        posterior_samples : NDArray[np.float64]
            Posterior samples from multiple chains, shape (chains, draws).

        Returns
        -------
        rhat : float
            Potential scale reduction factor.
        """
        posterior_samples = np.asarray(posterior_samples, dtype=np.float64)
        if posterior_samples.ndim != 2 or posterior_samples.shape[0] < 2:
            raise ValueError("Need at least 2 chains for Rhat")

        return float(az.rhat(posterior_samples))

    @staticmethod
    def ess(posterior_samples: NDArray[np.float64]) -> float:
        """
        Compute bulk effective sample size (ESS).

        Parameters
        ----------
        posterior_samples : NDArray[np.float64]
            Posterior samples, shape (draws,) for a single chain or
            (chains, draws).

        Returns
        -------
        ess : float
            Effective sample size, as in `convergence_table`.
        """
        posterior_samples = np.asarray(posterior_samples, dtype=np.float64)
        if posterior_samples.ndim not in (1, 2):
            raise ValueError(
                f"Expected samples of shape (draws,) or (chains, draws). Got {posterior_samples.shape}"
            )

        return float(az.ess(np.atleast_2d(posterior_samples)))

    @staticmethod
    def divergence_rate(idata) -> float:
        """
        Fraction of post-warmup draws that diverged.

        Parameters
        ----------
        idata : arviz.InferenceData
            Posterior inference data from PyMC

        Returns
        -------
        div_rate : float
            Fraction in [0, 1]. 0.0 when no sample stats are present.
        """
        if "sample_stats" not in idata.groups() or "diverging" not in idata.sample_stats:
            return 0.0
        n_divergences = idata.sample_stats.diverging.sum().item()
        n_total = idata.posterior.sizes["draw"] * idata.posterior.sizes["chain"]
        return float(n_divergences / n_total)

    @staticmethod
    def convergence_table(idata, var_names: Optional[List[str]] = None) -> pd.DataFrame:
        """
        ArviZ convergence diagnostics per parameter.

        Returns
        -------
        pd.DataFrame
            Columns r_hat, ess_bulk, ess_tail, mcse_mean indexed by parameter.
        """
        table = az.summary(idata, var_names=var_names, kind="diagnostics")
        return table[["r_hat", "ess_bulk", "ess_tail", "mcse_mean"]]

    @classmethod
    def check_convergence(
        cls,
        idata,
        var_names: Optional[List[str]] = None,
        rhat_threshold: float = 1.01,
        min_ess: float = 400,
        max_divergence_rate: float = 0.02,
    ) -> Dict:
        """
        Flag parameters that fail the usual convergence thresholds.

        Returns
        -------
        report : Dict
            - converged: True when nothing is flagged
            - high_rhat: parameters with r_hat above the threshold
            - low_ess: parameters with ess_bulk or ess_tail below min_ess
            - divergence_rate: fraction of divergent draws
        """
        table = cls.convergence_table(idata, var_names=var_names)
        high_rhat = table.index[table["r_hat"] > rhat_threshold].tolist()
        low_ess = table.index[
            (table["ess_bulk"] < min_ess) | (table["ess_tail"] < min_ess)
        ].tolist()
        div_rate = cls.divergence_rate(idata)

        converged = not high_rhat and not low_ess and div_rate <= max_divergence_rate
        if not converged:
            logger.warning(
                "Convergence issues: high r_hat %s, low ESS %s, divergence rate %.3f",
                high_rhat,
                low_ess,
                div_rate,
            )

        return {
            "converged": converged,
            "high_rhat": high_rhat,
            "low_ess": low_ess,
            "divergence_rate": div_rate,
        }


class PosteriorPredictiveCheck:
    """
    Posterior predictive checks for model validation.

    Compares observed data to draws from posterior predictive distribution
    to assess whether the model generates plausible data.
    """

    STATISTICS = {
        "mean": np.mean,
        "std": np.std,
        "min": np.min,
        "max": np.max,
    }

    @staticmethod
    def _flat_draws(idata, var_name: str) -> NDArray[np.float64]:
        if "posterior_predictive" not in idata.groups():
            raise ValueError("InferenceData has no posterior_predictive group")
        if var_name not in idata.posterior_predictive:
            raise ValueError(f"'{var_name}' not found in posterior_predictive")
        pp_samples = idata.posterior_predictive[var_name].values
        # (chain, draw, n_obs) -> (chain*draw, n_obs)
        return pp_samples.reshape(-1, *pp_samples.shape[2:])

    @classmethod
    def compute_ppcheck(
        cls,
        idata,
        observed_data: NDArray[np.float64],
        var_name: str = "y",
    ) -> Dict[str, float]:
        """
        Compute posterior predictive p-values.

        For each statistic T, p = P(T(y_rep) >= T(y_obs)).

        Parameters
        ----------
        idata : arviz.InferenceData
            Inference data with a posterior_predictive group
        observed_data : NDArray[np.float64]
            Observed outcome, shape (n_obs,)
        var_name : str
            Variable name in posterior_predictive

        Returns
        -------
        ppc_stats : Dict[str, float]
            mean_pvalue, std_pvalue, min_pvalue, max_pvalue
        """
        pp_flat = cls._flat_draws(idata, var_name)
        observed_data = np.asarray(observed_data, dtype=np.float64)
        if pp_flat.shape[1:] != observed_data.shape:
            raise ValueError(
                f"observed_data shape {observed_data.shape} does not match "
                f"posterior predictive shape {pp_flat.shape[1:]}"
            )

        axes = tuple(range(1, pp_flat.ndim))
        ppc_stats = {}
        for stat_name, stat in cls.STATISTICS.items():
            observed_stat = stat(observed_data)
            replicated = stat(pp_flat, axis=axes)
            ppc_stats[f"{stat_name}_pvalue"] = float(np.mean(replicated >= observed_stat))

        return ppc_stats

    @classmethod
    def predictive_intervals(
        cls,
        idata,
        observed_data: NDArray[np.float64],
        var_name: str = "y",
        prob: float = 0.95,
    ) -> pd.DataFrame:
        """
        Per-observation posterior predictive mean and equal-tailed interval.

        Returns
        -------
        pd.DataFrame
            Columns observed, predicted_mean, lower, upper, inside
        """
        if not (0 < prob < 1):
            raise ValueError(f"prob must be in (0, 1). Got {prob}")

        pp_flat = cls._flat_draws(idata, var_name)
        tail = (1 - prob) / 2
        lower, upper = np.quantile(pp_flat, [tail, 1 - tail], axis=0)
        observed = np.asarray(observed_data, dtype=np.float64)

        return pd.DataFrame(
            {
                "observed": observed,
                "predicted_mean": pp_flat.mean(axis=0),
                "lower": lower,
                "upper": upper,
                "inside": (observed >= lower) & (observed <= upper),
            }
        )

    @classmethod
    def coverage(
        cls,
        idata,
        observed_data: NDArray[np.float64],
        var_name: str = "y",
        prob: float = 0.95,
    ) -> float:
        """Fraction of observations inside their predictive interval."""
        intervals = cls.predictive_intervals(idata, observed_data, var_name, prob)
        return float(intervals["inside"].mean())

    @staticmethod
    def summary_stats(
        idata,
        var_names: Optional[list] = None,
        hdi_prob: float = 0.95,
    ) -> Dict:
        """
        Compute posterior summary statistics.

        Parameters
        ----------
        idata : arviz.InferenceData
            Posterior inference data
        var_names : list, optional
            Variables to summarize. If None, use all.
        hdi_prob : float
            Probability mass of the highest density interval. Default 0.95.

        Returns
        -------
        stats : Dict
            Per parameter: mean, std, hdi_low, hdi_high, rhat, ess_bulk
        """
        summary_df = az.summary(idata, var_names=var_names, hdi_prob=hdi_prob)

        low_col = f"hdi_{100 * (1 - hdi_prob) / 2:g}%"
        high_col = f"hdi_{100 * (1 + hdi_prob) / 2:g}%"

        stats = {}
        for var_name in summary_df.index:
            stats[var_name] = {
                "mean": float(summary_df.loc[var_name, "mean"]),
                "std": float(summary_df.loc[var_name, "sd"]),
                "hdi_low": float(summary_df.loc[var_name, low_col]),
                "hdi_high": float(summary_df.loc[var_name, high_col]),
                "rhat": float(summary_df.loc[var_name, "r_hat"]),
                "ess_bulk": float(summary_df.loc[var_name, "ess_bulk"]),
            }

        return stats
