"""
Tests for configuration, logging setup and the end-to-end workflow.
"""

import logging
import pytest
import numpy as np
import pandas as pd
import pymc as pm

from comparison import check_recovery
from inference import LinearPredictor, ModelBuilder, NonlinearPredictor, Prior
from simulation import DataSimulator
from workflow import (
    BayesianWorkflow,
    SamplerConfig,
    WorkflowConfig,
    compare_workflows,
    setup_logging,
)
from workflow.logging_config import PACKAGES


class TestSamplerConfig:
    """Tests for SamplerConfig."""

    def test_draws_exclude_warmup(self) -> None:
        """Test that draws = iter - warmup."""
        config = SamplerConfig(iter=1500, warmup=500)
        assert config.draws == 1000
        assert config.sample_kwargs()["draws"] == 1000
        assert config.sample_kwargs()["tune"] == 500

    def test_iter_must_exceed_warmup(self) -> None:
        """Test that iter <= warmup raises ValueError."""
        with pytest.raises(ValueError, match="iter must exceed warmup"):
            SamplerConfig(iter=1000, warmup=1000)

    @pytest.mark.parametrize(
        "kwargs, message",
        [
            ({"chains": 0}, "chains"),
            ({"warmup": -1}, "warmup"),
            ({"cores": 0}, "cores"),
        ],
    )
    def test_invalid_values(self, kwargs, message) -> None:
        """Test argument validation."""
        with pytest.raises(ValueError, match=message):
            SamplerConfig(**kwargs)

    def test_from_dict_rejects_unknown_keys(self) -> None:
        """Test that typos in config keys fail loudly."""
        with pytest.raises(TypeError):
            SamplerConfig.from_dict({"chain": 2})


class TestWorkflowConfig:
    """Tests for WorkflowConfig."""

    def test_defaults(self) -> None:
        """Test default settings."""
        config = WorkflowConfig()
        assert config.credible_prob == 0.95
        assert config.sampler.chains == 4
        assert config.posterior_predictive

    def test_invalid_prob(self) -> None:
        """Test that credible_prob outside (0, 1) raises ValueError."""
        with pytest.raises(ValueError, match="credible_prob"):
            WorkflowConfig(credible_prob=1.0)

    def test_from_dict_nested_sampler(self) -> None:
        """Test nested sampler settings."""
        config = WorkflowConfig.from_dict(
            {"credible_prob": 0.9, "sampler": {"chains": 2, "iter": 400, "warmup": 200}}
        )
        assert config.credible_prob == 0.9
        assert config.sampler.chains == 2
        assert config.sampler.draws == 200

    def test_from_toml(self, tmp_path) -> None:
        """Test loading from a TOML file."""
        path = tmp_path / "workflow.toml"
        path.write_text(
            'credible_prob = 0.8\nlog_level = "DEBUG"\n\n'
            "[sampler]\nchains = 3\niter = 600\nwarmup = 300\nrandom_seed = 7\n"
        )
        config = WorkflowConfig.from_toml(path)
        assert config.credible_prob == 0.8
        assert config.log_level == "DEBUG"
        assert config.sampler.chains == 3
        assert config.sampler.random_seed == 7


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_configures_package_loggers(self, tmp_path) -> None:
        """Test levels, handlers and the optional log file."""
        log_file = tmp_path / "run.log"
        setup_logging("debug", log_file=str(log_file))

        logger = logging.getLogger("inference")
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 2
        assert logging.getLogger("pymc").level == logging.WARNING

        logging.getLogger("workflow.pipeline").info("hello")
        for handler in logging.getLogger("workflow").handlers:
            handler.flush()
        assert "hello" in log_file.read_text()

        setup_logging(WorkflowConfig().log_level)
        assert len(logger.handlers) == 1
        assert logger.level == logging.INFO

    def test_unknown_level(self) -> None:
        """Test that an unknown level name raises ValueError."""
        with pytest.raises(ValueError, match="VERBOSE"):
            setup_logging("verbose")


class TestWorkflowLogging:
    """Tests for the log level carried by WorkflowConfig."""

    def test_config_level_applied(self) -> None:
        """Test that an unconfigured project picks up config.log_level."""
        BayesianWorkflow(
            "m",
            ModelBuilder("gaussian", {"mu": LinearPredictor(["x"])}),
            WorkflowConfig(log_level="DEBUG"),
        )
        for package in PACKAGES:
            logger = logging.getLogger(package)
            assert logger.level == logging.DEBUG
            assert len(logger.handlers) == 1

    def test_existing_setup_kept(self) -> None:
        """Test that an explicit setup_logging call is not overridden."""
        setup_logging("WARNING")
        BayesianWorkflow(
            "m",
            ModelBuilder("gaussian", {"mu": LinearPredictor(["x"])}),
            WorkflowConfig(log_level="DEBUG"),
        )
        assert logging.getLogger("inference").level == logging.WARNING


class TestRecoveryFilter:
    """Tests for ground-truth recovery inside a workflow run."""

    @pytest.fixture
    def intervals(self) -> pd.DataFrame:
        return pd.DataFrame(
            {
                "mean": [1.0, 0.5, 1.2],
                "sd": [0.1, 0.05, 0.1],
                "median": [1.0, 0.5, 1.2],
                "lower": [0.8, 0.4, 1.0],
                "upper": [1.2, 0.6, 1.4],
            },
            index=["Intercept", "b_x", "sigma"],
        )

    @pytest.fixture
    def workflow(self) -> BayesianWorkflow:
        return BayesianWorkflow("gauss", ModelBuilder("gaussian", {"mu": LinearPredictor(["x"])}))

    def test_unmodelled_truth_skipped(self, workflow, intervals, caplog) -> None:
        """Test that generating parameters the model lacks are logged, not raised."""
        truth = {
            "Intercept": 1.0,
            "b_x": 0.5,
            "sigma_Intercept": 0.0,
            "b_sigma_x": 0.1,
            "alpha": 4.0,
        }
        logging.getLogger("workflow").propagate = True
        with caplog.at_level(logging.INFO, logger="workflow.pipeline"):
            recovery = workflow._recovery(intervals, truth)

        assert recovery.index.tolist() == ["Intercept", "b_x"]
        assert recovery["covered"].all()
        assert "alpha" in caplog.text

    def test_no_shared_parameters(self, workflow, intervals) -> None:
        """Test that a truth with nothing in common gives no table."""
        assert workflow._recovery(intervals, {"a": 2.0, "b": 0.3}) is None

    def test_direct_check_stays_strict(self, intervals) -> None:
        """Test that check_recovery still rejects unknown parameters."""
        with pytest.raises(ValueError, match="alpha"):
            check_recovery(intervals, {"Intercept": 1.0, "alpha": 4.0})


class TestClassicalCounterpart:
    """Tests for when a classical fit is attempted."""

    def test_linear_gaussian(self) -> None:
        """Test that plain linear models have a counterpart."""
        workflow = BayesianWorkflow("m", ModelBuilder("gaussian", {"mu": LinearPredictor(["x"])}))
        assert workflow._has_classical_counterpart()

    def test_distributional_model(self) -> None:
        """Test that a predictor on sigma has no counterpart."""
        builder = ModelBuilder(
            "skew_normal", {"mu": LinearPredictor(["x"]), "sigma": LinearPredictor(["x"])}
        )
        assert not BayesianWorkflow("m", builder)._has_classical_counterpart()

    def test_ar1_model(self) -> None:
        """Test that autocorrelated models have no counterpart."""
        builder = ModelBuilder(
            "gaussian", {"mu": LinearPredictor(["x"])}, autocorrelation="ar1", time="time"
        )
        assert not BayesianWorkflow("m", builder)._has_classical_counterpart()

    def test_nonlinear_model(self) -> None:
        """Test that nonlinear models have no counterpart."""
        predictor = NonlinearPredictor(
            lambda d, p: p["a"] * d["x"],
            parameters={"a": Prior("Normal", mu=0.0, sigma=1.0)},
            covariates=["x"],
        )
        builder = ModelBuilder("gaussian", {"mu": predictor})
        assert not BayesianWorkflow("m", builder)._has_classical_counterpart()

    def test_sampler_follows_config(self) -> None:
        """Test that NUTS settings come from the config."""
        config = WorkflowConfig(
            sampler=SamplerConfig(target_accept=0.95), max_divergence_rate=0.01
        )
        workflow = BayesianWorkflow(
            "m", ModelBuilder("gaussian", {"mu": LinearPredictor(["x"])}), config
        )
        assert workflow.sampler.target_accept == 0.95
        assert workflow.sampler.max_divergence_rate == 0.01


@pytest.mark.slow
class TestEndToEnd:
    """Full simulate → fit → diagnose → compare runs."""

    @pytest.fixture
    def config(self) -> WorkflowConfig:
        return WorkflowConfig(
            sampler=SamplerConfig(
                chains=2, iter=1000, warmup=500, cores=1, random_seed=3, progressbar=False
            ),
            rhat_threshold=1.05,
            min_ess=100,
        )

    def test_linear_workflow(self, config) -> None:
        """Test recovery, classical agreement and model ranking."""
        dataset = DataSimulator(80, random_seed=31).gaussian_linear(1.0, 0.8, 0.5)

        linear = BayesianWorkflow(
            "linear", ModelBuilder("gaussian", {"mu": LinearPredictor(["x"])}), config
        ).run(dataset)

        assert linear.convergence["converged"]
        assert set(linear.recovery.index) == {"Intercept", "b_x", "sigma"}
        assert linear.recovery.loc["b_x", "covered"]
        assert np.all(np.abs(linear.classical["difference"]) < 0.05)
        assert set(linear.ppc) == {"mean_pvalue", "std_pvalue", "min_pvalue", "max_pvalue"}
        assert linear.loo.n_obs == 80

        flat = BayesianWorkflow(
            "intercept_only",
            ModelBuilder("gaussian", {"mu": LinearPredictor([])}),
            config,
        ).run(dataset.data)
        assert flat.recovery is None

        table = compare_workflows({"linear": linear, "intercept_only": flat})
        assert table.index[0] == "linear"

    def test_logistic_workflow(self, config) -> None:
        """Test that logistic fits compare against maximum-likelihood estimates."""
        dataset = DataSimulator(150, random_seed=32).logistic(0.0, 1.5)
        result = BayesianWorkflow(
            "logistic", ModelBuilder("bernoulli", {"mu": LinearPredictor(["x"])}), config
        ).run(dataset)
        assert result.classical.index.tolist() == ["Intercept", "b_x"]
        assert result.intervals.loc["b_x", "lower"] > 0

    def test_ar1_workflow(self, config) -> None:
        """Test that the residual autocorrelation is recovered."""
        dataset = DataSimulator(300, random_seed=33).ar1_series(1.0, 0.5, rho=0.6, sigma=0.5)
        builder = ModelBuilder(
            "gaussian", {"mu": LinearPredictor(["x"])}, autocorrelation="ar1", time="time"
        )
        result = BayesianWorkflow("ar1", builder, config).run(dataset)

        assert set(result.recovery.index) == {"Intercept", "b_x", "sigma", "rho"}
        assert result.recovery.loc["rho", "covered"]
        assert result.intervals.loc["rho", "lower"] > 0
        assert result.classical is None

    def test_skew_normal_against_gaussian(self, config) -> None:
        """Test distributional recovery and that the generating family ranks first."""
        dataset = DataSimulator(300, random_seed=34).skew_normal_distributional(
            1.0, 0.5, sigma_intercept=-0.5, sigma_slope=0.1, alpha=4.0
        )
        skew = BayesianWorkflow(
            "skew_normal",
            ModelBuilder(
                "skew_normal",
                {"mu": LinearPredictor(["x"]), "sigma": LinearPredictor(["x"])},
            ),
            config,
        ).run(dataset)
        gaussian = BayesianWorkflow(
            "gaussian", ModelBuilder("gaussian", {"mu": LinearPredictor(["x"])}), config
        ).run(dataset)

        assert skew.recovery.loc["b_sigma_x", "covered"]
        assert skew.intervals.loc["alpha", "lower"] > 0
        assert set(gaussian.recovery.index) == {"Intercept", "b_x"}

        table = compare_workflows({"gaussian": gaussian, "skew_normal": skew})
        assert table.index[0] == "skew_normal"

    def test_lognormal_workflow(self, config) -> None:
        """Test that lognormal fits agree with OLS on log y."""
        dataset = DataSimulator(120, random_seed=35).lognormal_linear(0.5, 0.2, 0.3)
        result = BayesianWorkflow(
            "lognormal", ModelBuilder("lognormal", {"mu": LinearPredictor(["x"])}), config
        ).run(dataset)

        assert result.recovery.loc["b_x", "covered"]
        assert np.all(np.abs(result.classical["difference"]) < 0.05)

    def test_nonlinear_workflow(self, config) -> None:
        """Test recovery of a saturating growth curve."""
        dataset = DataSimulator(150, random_seed=36).nonlinear_growth(5.0, 0.4, 0.3)
        predictor = NonlinearPredictor(
            lambda d, p: p["a"] * (1 - pm.math.exp(-p["b"] * d["x"])),
            parameters={
                "a": Prior("Normal", mu=0.0, sigma=10.0),
                "b": Prior("HalfNormal", sigma=1.0),
            },
            covariates=["x"],
        )
        result = BayesianWorkflow(
            "growth", ModelBuilder("gaussian", {"mu": predictor}), config
        ).run(dataset)

        assert set(result.recovery.index) == {"a", "b", "sigma"}
        assert result.recovery.loc["a", "covered"]
        assert result.recovery.loc["b", "covered"]
        assert result.classical is None
