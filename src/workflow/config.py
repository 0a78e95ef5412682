"""
Sampler and workflow configuration.

Iteration counts follow the usual convention where `iter` includes the
warmup, so each chain keeps `iter - warmup` draws.
"""

import tomllib
from pathlib import Path
from typing import Dict, Optional, Union


class SamplerConfig:
    """Chain count, iteration counts and NUTS settings."""

    def __init__(
        self,
        chains: int = 4,
        iter: int = 2000,
        warmup: int = 1000,
        cores: Optional[int] = None,
        target_accept: float = 0.85,
        max_treedepth: int = 10,
        random_seed: Optional[int] = None,
        progressbar: bool = True,
    ) -> None:
        """
        Initialize sampler configuration.

        Parameters
        ----------
        chains : int
            Number of chains. Default 4.
        iter : int
            Iterations per chain including warmup. Default 2000.
        warmup : int
            Warmup iterations per chain. Default 1000.
        cores : int, optional
            Chains run in parallel. Default: PyMC's choice.
        target_accept : float
            NUTS acceptance target. Default 0.85.
        max_treedepth : int
            NUTS maximum tree depth. Default 10.
        random_seed : int, optional
            Random seed for reproducibility.
        progressbar : bool
            Show progress bar. Default True.
        """
        if chains <= 0:
            raise ValueError(f"chains must be positive. Got {chains}")
        if warmup < 0:
            raise ValueError(f"warmup must be non-negative. Got {warmup}")
        if iter <= warmup:
            raise ValueError(f"iter must exceed warmup. Got iter={iter}, warmup={warmup}")
        if cores is not None and cores <= 0:
            raise ValueError(f"cores must be positive. Got {cores}")

        self.chains = chains
        self.iter = iter
        self.warmup = warmup
        self.cores = cores
        self.target_accept = target_accept
        self.max_treedepth = max_treedepth
        self.random_seed = random_seed
        self.progressbar = progressbar

    @property
    def draws(self) -> int:
        """Post-warmup draws per chain."""
        return self.iter - self.warmup

    def sample_kwargs(self) -> Dict:
        """Keyword arguments for `NUTSSampler.sample`."""
        return {
            "draws": self.draws,
            "tune": self.warmup,
            "chains": self.chains,
            "cores": self.cores,
            "random_seed": self.random_seed,
            "progressbar": self.progressbar,
        }

    @classmethod
    def from_dict(cls, values: Dict) -> "SamplerConfig":
        """Create a config from a plain dict; unknown keys are rejected."""
        return cls(**values)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"SamplerConfig(chains={self.chains}, iter={self.iter}, "
            f"warmup={self.warmup}, cores={self.cores}, "
            f"target_accept={self.target_accept})"
        )


class WorkflowConfig:
    """Settings for one simulate → fit → diagnose → compare run."""

    def __init__(
        self,
        sampler: Optional[SamplerConfig] = None,
        credible_prob: float = 0.95,
        rhat_threshold: float = 1.01,
        min_ess: float = 400,
        max_divergence_rate: float = 0.05,
        posterior_predictive: bool = True,
        log_level: str = "INFO",
    ) -> None:
        """
        Initialize workflow configuration.

        Parameters
        ----------
        sampler : SamplerConfig, optional
            Sampler settings. If None, use defaults.
        credible_prob : float
            Credible interval mass. Default 0.95.
        rhat_threshold : float
            Largest acceptable r_hat. Default 1.01.
        min_ess : float
            Smallest acceptable bulk/tail ESS. Default 400.
        max_divergence_rate : float
            Divergence fraction above which sampling fails. Default 0.05.
        posterior_predictive : bool
            Draw posterior predictive samples and run checks. Default True.
        log_level : str
            Logging level name, applied by `BayesianWorkflow` when logging
            has not been set up yet. Default "INFO".
        """
        if not (0 < credible_prob < 1):
            raise ValueError(f"credible_prob must be in (0, 1). Got {credible_prob}")
        if rhat_threshold < 1.0:
            raise ValueError(f"rhat_threshold must be >= 1. Got {rhat_threshold}")
        if min_ess < 0:
            raise ValueError(f"min_ess must be non-negative. Got {min_ess}")

        self.sampler = sampler or SamplerConfig()
        self.credible_prob = credible_prob
        self.rhat_threshold = rhat_threshold
        self.min_ess = min_ess
        self.max_divergence_rate = max_divergence_rate
        self.posterior_predictive = posterior_predictive
        self.log_level = log_level

    @classmethod
    def from_dict(cls, values: Dict) -> "WorkflowConfig":
        """Create a config from nested dicts ({"sampler": {...}, ...})."""
        values = dict(values)
        sampler = values.pop("sampler", None)
        if sampler is not None:
            values["sampler"] = SamplerConfig.from_dict(sampler)
        return cls(**values)

    @classmethod
    def from_toml(cls, path: Union[str, Path]) -> "WorkflowConfig":
        """
        Load a config from a TOML file.

        Example::

            credible_prob = 0.9

            [sampler]
            chains = 4
            iter = 2000
            warmup = 1000
        """
        with open(path, "rb") as f:
            return cls.from_dict(tomllib.load(f))

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"WorkflowConfig(sampler={self.sampler}, credible_prob={self.credible_prob}, "
            f"rhat_threshold={self.rhat_threshold}, min_ess={self.min_ess})"
        )
