"""
End-to-end Bayesian workflow for one model.

    simulate → specify → sample → diagnose → compare

The simulation step happens outside (see `simulation`); `BayesianWorkflow`
takes the dataset, builds and samples the model, runs the diagnostics and
summaries, checks recovery of the ground truth, fits the classical
counterpart where one exists and computes PSIS-LOO for later ranking.
"""

import logging
from typing import Dict, Optional, Union
import pandas as pd

from comparison import (
    check_recovery,
    compare_models,
    compare_to_classical,
    compute_loo,
    fit_logistic,
    fit_ols,
)
from inference import (
    DiagnosticsComputer,
    ModelBuilder,
    NUTSSampler,
    PosteriorPredictiveCheck,
    credible_intervals,
)
from simulation import SimulatedDataset
from workflow.config import WorkflowConfig
from workflow.logging_config import setup_logging

logger = logging.getLogger(__name__)


class WorkflowResult:
    """
    Everything produced by one workflow run.

    Attributes
    ----------
    name : str
        Workflow name
    model : pm.Model
        The fitted PyMC model
    summary : InferenceSummary
        Sampling output (InferenceData with posterior, log_likelihood and,
        if requested, posterior_predictive groups)
    convergence : Dict
        Output of `DiagnosticsComputer.check_convergence`
    intervals : pd.DataFrame
        Credible intervals of the free parameters
    ppc : Dict[str, float] or None
        Posterior predictive p-values
    recovery : pd.DataFrame or None
        Ground-truth recovery table (simulated data only)
    classical : pd.DataFrame or None
        Bayesian vs classical comparison (plain linear models only)
    loo : LooResult
        PSIS-LOO estimate
    """

    def __init__(
        self,
        name,
        model,
        summary,
        convergence,
        intervals,
        loo,
        ppc=None,
        recovery=None,
        classical=None,
    ) -> None:
        self.name = name
        self.model = model
        self.summary = summary
        self.convergence = convergence
        self.intervals = intervals
        self.loo = loo
        self.ppc = ppc
        self.recovery = recovery
        self.classical = classical

    @property
    def idata(self):
        """InferenceData of the run."""
        return self.summary.idata

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"WorkflowResult(name={self.name!r}, "
            f"converged={self.convergence['converged']}, loo={self.loo})"
        )


class BayesianWorkflow:
    """Runs the fit → diagnose → compare stages for one model specification."""

    CLASSICAL_FAMILIES = ("gaussian", "lognormal", "bernoulli")

    def __init__(
        self,
        name: str,
        builder: ModelBuilder,
        config: Optional[WorkflowConfig] = None,
    ) -> None:
        """
        Initialize workflow.

        Parameters
        ----------
        name : str
            Name used when comparing workflows
        builder : ModelBuilder
            Model specification
        config : WorkflowConfig, optional
            Workflow settings. If None, use defaults.
            `config.log_level` configures the package loggers unless
            `setup_logging` has already been called.
        """
        self.name = name
        self.builder = builder
        self.config = config or WorkflowConfig()
        if not logging.getLogger("workflow").handlers:
            setup_logging(self.config.log_level)
        self.sampler = NUTSSampler.from_config(
            self.config.sampler, max_divergence_rate=self.config.max_divergence_rate
        )

    def _has_classical_counterpart(self) -> bool:
        builder = self.builder
        return (
            builder.is_linear
            and set(builder.predictors) == {"mu"}
            and builder.autocorrelation is None
            and builder.family.name in self.CLASSICAL_FAMILIES
        )

    def _classical_fit(self, data: pd.DataFrame):
        predictor = self.builder.predictors["mu"]
        family = self.builder.family.name
        if family == "bernoulli":
            return fit_logistic(
                data,
                predictor.covariates,
                outcome=self.builder.outcome,
                intercept=predictor.intercept,
                conf_level=self.config.credible_prob,
            )
        return fit_ols(
            data,
            predictor.covariates,
            outcome=self.builder.outcome,
            intercept=predictor.intercept,
            log_outcome=family == "lognormal",
            conf_level=self.config.credible_prob,
        )

    def _recovery(self, intervals: pd.DataFrame, truth: Dict[str, float]) -> Optional[pd.DataFrame]:
        # Candidate models may leave out generating parameters (e.g. a plain
        # gaussian fit to skew-normal data); only shared ones are checked.
        shared = {name: value for name, value in truth.items() if name in intervals.index}
        unmodelled = [name for name in truth if name not in shared]
        if unmodelled:
            logger.info("[%s] Generating parameters not in the model: %s", self.name, unmodelled)
        if not shared:
            return None

        recovery = check_recovery(intervals, shared)
        n_missed = int((~recovery["covered"]).sum())
        if n_missed:
            logger.warning(
                "[%s] %d of %d true values outside the %.0f%% intervals",
                self.name,
                n_missed,
                len(recovery),
                100 * self.config.credible_prob,
            )
        return recovery

    def run(self, dataset: Union[SimulatedDataset, pd.DataFrame]) -> WorkflowResult:
        """
        Fit the model to a dataset and run all diagnostics and comparisons.

        Parameters
        ----------
        dataset : SimulatedDataset or pd.DataFrame
            Data to fit. Ground-truth recovery needs a SimulatedDataset.

        Returns
        -------
        WorkflowResult
        """
        if isinstance(dataset, SimulatedDataset):
            data, truth = dataset.data, dataset.truth
        else:
            data, truth = dataset, None

        config = self.config
        logger.info("[%s] Building model", self.name)
        model = self.builder.build(data)
        fitted_data = self.builder.data
        params = self.builder.parameter_names

        logger.info("[%s] Sampling", self.name)
        summary = self.sampler.sample(model, **config.sampler.sample_kwargs())
        idata = summary.idata

        convergence = DiagnosticsComputer.check_convergence(
            idata,
            var_names=params,
            rhat_threshold=config.rhat_threshold,
            min_ess=config.min_ess,
            max_divergence_rate=config.max_divergence_rate,
        )

        ppc = None
        if config.posterior_predictive:
            logger.info("[%s] Posterior predictive check", self.name)
            self.sampler.sample_posterior_predictive(
                model, summary, random_seed=config.sampler.random_seed
            )
            ppc = PosteriorPredictiveCheck.compute_ppcheck(
                idata,
                fitted_data[self.builder.outcome].to_numpy(),
                var_name=self.builder.outcome,
            )

        intervals = credible_intervals(idata, var_names=params, prob=config.credible_prob)

        recovery = self._recovery(intervals, truth) if truth else None

        classical = None
        if self._has_classical_counterpart():
            classical = compare_to_classical(intervals, self._classical_fit(fitted_data))

        loo = compute_loo(idata, var_name=self.builder.outcome)
        logger.info("[%s] %s", self.name, loo)

        return WorkflowResult(
            name=self.name,
            model=model,
            summary=summary,
            convergence=convergence,
            intervals=intervals,
            loo=loo,
            ppc=ppc,
            recovery=recovery,
            classical=classical,
        )

    def __repr__(self) -> str:
        """String representation."""
        return f"BayesianWorkflow(name={self.name!r}, builder={self.builder})"


def compare_workflows(results: Dict[str, WorkflowResult]) -> pd.DataFrame:
    """
    Rank finished workflows by elpd_loo.

    All workflows must have been fit to the same observations.
    """
    idatas = {name: result.idata for name, result in results.items()}
    return compare_models(idatas)
