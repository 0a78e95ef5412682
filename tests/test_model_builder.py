"""
Tests for priors, predictors and the model builder.

Tests cover:
- Prior and PriorSpec construction and lookup
- Linear predictor design matrices and coefficient names
- Model structure for every family, distributional, nonlinear and AR(1) models
- Input validation
"""

import pytest
import numpy as np
import pandas as pd
import pymc as pm
from numpy.testing import assert_allclose

from inference import LinearPredictor, ModelBuilder, NonlinearPredictor, Prior, PriorSpec
from simulation import DataSimulator


@pytest.fixture
def gaussian_data() -> pd.DataFrame:
    return DataSimulator(40, random_seed=1).gaussian_linear(1.0, 0.5, 1.0).data


def growth_predictor() -> NonlinearPredictor:
    return NonlinearPredictor(
        lambda d, p: p["a"] * (1 - pm.math.exp(-p["b"] * d["x"])),
        parameters={
            "a": Prior("Normal", mu=0.0, sigma=10.0),
            "b": Prior("HalfNormal", sigma=2.0),
        },
        covariates=["x"],
    )


class TestPrior:
    """Tests for Prior."""

    def test_unsupported_distribution(self) -> None:
        """Test that unknown distributions raise ValueError."""
        with pytest.raises(ValueError, match="Unsupported prior"):
            Prior("Dirichlet", a=1.0)

    def test_from_dict(self) -> None:
        """Test creation from a dict."""
        prior = Prior.from_dict({"distribution": "Normal", "mu": 0.0, "sigma": 2.0})
        assert prior == Prior("Normal", mu=0.0, sigma=2.0)

    def test_from_dict_requires_distribution(self) -> None:
        """Test that a dict without 'distribution' is rejected."""
        with pytest.raises(ValueError, match="distribution"):
            Prior.from_dict({"mu": 0.0})

    def test_repr(self) -> None:
        """Test string representation."""
        assert repr(Prior("HalfNormal", sigma=1.0)) == "HalfNormal(sigma=1.0)"

    def test_create_in_model(self) -> None:
        """Test that create registers a free variable."""
        with pm.Model() as model:
            Prior("Exponential", lam=1.0).create("tau")
        assert "tau" in [rv.name for rv in model.free_RVs]


class TestPriorSpec:
    """Tests for PriorSpec."""

    def test_defaults(self) -> None:
        """Test default priors by role."""
        spec = PriorSpec()
        assert spec.intercept == Prior("Normal", mu=0.0, sigma=10.0)
        assert spec.rho == Prior("Uniform", lower=-1.0, upper=1.0)

    def test_override_wins(self) -> None:
        """Test that a named override takes precedence over the role."""
        tight = Prior("Normal", mu=1.0, sigma=0.1)
        spec = PriorSpec(overrides={"b_x": tight})
        assert spec.for_parameter("b_x", "coefficient") == tight
        assert spec.for_parameter("b_z", "coefficient") == spec.coefficient

    def test_unknown_role(self) -> None:
        """Test that an unknown role raises ValueError."""
        with pytest.raises(ValueError, match="Unknown prior role"):
            PriorSpec().for_parameter("b_x", "slope")

    def test_from_dict(self) -> None:
        """Test nested dict construction."""
        spec = PriorSpec.from_dict(
            {
                "sigma": {"distribution": "Exponential", "lam": 1.0},
                "overrides": {"Intercept": {"distribution": "Normal", "mu": 5.0, "sigma": 1.0}},
            }
        )
        assert spec.sigma == Prior("Exponential", lam=1.0)
        assert spec.for_parameter("Intercept", "intercept") == Prior("Normal", mu=5.0, sigma=1.0)


class TestLinearPredictor:
    """Tests for LinearPredictor."""

    def test_design_matrix(self) -> None:
        """Test intercept column first, then covariates."""
        data = pd.DataFrame({"x": [1.0, 2.0], "z": [3.0, 4.0]})
        X = LinearPredictor(["x", "z"]).design_matrix(data)
        assert_allclose(X, [[1.0, 1.0, 3.0], [1.0, 2.0, 4.0]])

    def test_no_intercept(self) -> None:
        """Test design matrix without intercept."""
        data = pd.DataFrame({"x": [1.0, 2.0]})
        X = LinearPredictor(["x"], intercept=False).design_matrix(data)
        assert X.shape == (2, 1)

    def test_coefficient_names(self) -> None:
        """Test naming for mu and for other parameters."""
        predictor = LinearPredictor(["x"])
        assert predictor.coefficient_names("mu") == ["Intercept", "b_x"]
        assert predictor.coefficient_names("sigma") == ["sigma_Intercept", "b_sigma_x"]

    def test_missing_covariate(self) -> None:
        """Test that a missing column raises ValueError."""
        with pytest.raises(ValueError, match="not found"):
            LinearPredictor(["w"]).design_matrix(pd.DataFrame({"x": [1.0]}))

    def test_empty_predictor_rejected(self) -> None:
        """Test that no intercept and no covariates is rejected."""
        with pytest.raises(ValueError):
            LinearPredictor([], intercept=False)

    def test_duplicate_covariates_rejected(self) -> None:
        """Test that repeated covariates are rejected."""
        with pytest.raises(ValueError, match="Duplicate"):
            LinearPredictor(["x", "x"])


class TestNonlinearPredictor:
    """Tests for NonlinearPredictor."""

    def test_parameter_names(self) -> None:
        """Test that the names are the keys of the parameter priors."""
        assert growth_predictor().parameter_names == ["a", "b"]

    def test_requires_parameters(self) -> None:
        """Test that an empty parameter dict is rejected."""
        with pytest.raises(ValueError, match="at least one parameter"):
            NonlinearPredictor(lambda d, p: d["x"], parameters={}, covariates=["x"])

    def test_requires_callable(self) -> None:
        """Test that a non-callable function is rejected."""
        with pytest.raises(ValueError, match="callable"):
            NonlinearPredictor(
                "a * x", parameters={"a": Prior("Normal", mu=0, sigma=1)}, covariates=["x"]
            )


class TestModelBuilderValidation:
    """Tests for ModelBuilder argument checks."""

    def test_requires_mu(self) -> None:
        """Test that a predictor for mu is required."""
        with pytest.raises(ValueError, match="'mu'"):
            ModelBuilder("gaussian", {"sigma": LinearPredictor(["x"])})

    def test_unknown_parameter(self) -> None:
        """Test that predictors for parameters the family lacks are rejected."""
        with pytest.raises(ValueError, match="no parameters"):
            ModelBuilder(
                "gaussian", {"mu": LinearPredictor(["x"]), "alpha": LinearPredictor([])}
            )

    def test_ar1_requires_gaussian(self) -> None:
        """Test that AR(1) is only allowed for the gaussian family."""
        with pytest.raises(ValueError, match="gaussian"):
            ModelBuilder("lognormal", {"mu": LinearPredictor(["x"])}, autocorrelation="ar1")

    def test_unknown_autocorrelation(self) -> None:
        """Test that unsupported structures are rejected."""
        with pytest.raises(ValueError, match="Unsupported autocorrelation"):
            ModelBuilder("gaussian", {"mu": LinearPredictor(["x"])}, autocorrelation="ar2")

    def test_get_model_before_build(self) -> None:
        """Test that getting the model before building raises RuntimeError."""
        mb = ModelBuilder("gaussian", {"mu": LinearPredictor(["x"])})
        with pytest.raises(RuntimeError, match="not been built"):
            mb.get_model()

    def test_missing_outcome(self, gaussian_data) -> None:
        """Test that a missing outcome column raises ValueError."""
        mb = ModelBuilder("gaussian", {"mu": LinearPredictor(["x"])}, outcome="response")
        with pytest.raises(ValueError, match="Outcome column"):
            mb.build(gaussian_data)

    def test_invalid_outcome_for_family(self, gaussian_data) -> None:
        """Test that negative outcomes are rejected for lognormal."""
        data = gaussian_data.assign(y=-1.0)
        mb = ModelBuilder("lognormal", {"mu": LinearPredictor(["x"])})
        with pytest.raises(ValueError, match="strictly positive"):
            mb.build(data)

    def test_repr(self) -> None:
        """Test string representation."""
        mb = ModelBuilder("bernoulli", {"mu": LinearPredictor(["x"])})
        assert "ModelBuilder" in repr(mb)
        assert "bernoulli" in repr(mb)


class TestModelStructure:
    """Tests for built model structure."""

    def test_gaussian_linear(self, gaussian_data) -> None:
        """Test parameters and likelihood of a simple linear model."""
        mb = ModelBuilder("gaussian", {"mu": LinearPredictor(["x"])})
        model = mb.build(gaussian_data)

        assert mb.get_model() is model
        assert mb.parameter_names == ["Intercept", "b_x", "sigma"]
        assert model["y"] in model.observed_RVs
        assert mb.is_linear

    def test_logp_finite_at_initial_point(self, gaussian_data) -> None:
        """Test that the model log density is finite."""
        model = ModelBuilder("gaussian", {"mu": LinearPredictor(["x"])}).build(gaussian_data)
        logp = model.compile_logp()(model.initial_point())
        assert np.isfinite(logp)

    def test_lognormal(self) -> None:
        """Test log-Gaussian model structure."""
        data = DataSimulator(30, random_seed=2).lognormal_linear(0.5, 0.2, 0.3).data
        mb = ModelBuilder("lognormal", {"mu": LinearPredictor(["x"])})
        mb.build(data)
        assert mb.parameter_names == ["Intercept", "b_x", "sigma"]

    def test_bernoulli(self) -> None:
        """Test logistic model has no scale parameter."""
        data = DataSimulator(30, random_seed=3).logistic(0.0, 1.0).data
        mb = ModelBuilder("bernoulli", {"mu": LinearPredictor(["x"])})
        mb.build(data)
        assert mb.parameter_names == ["Intercept", "b_x"]

    def test_skew_normal_distributional(self) -> None:
        """Test predictors on both mu and sigma plus a scalar alpha."""
        data = DataSimulator(30, random_seed=4).skew_normal_distributional(
            0.0, 1.0, -1.0, 0.1, 3.0
        ).data
        mb = ModelBuilder(
            "skew_normal",
            {"mu": LinearPredictor(["x"]), "sigma": LinearPredictor(["x"])},
        )
        mb.build(data)
        assert mb.parameter_names == [
            "Intercept", "b_x", "sigma_Intercept", "b_sigma_x", "alpha",
        ]

    def test_nonlinear(self) -> None:
        """Test nonlinear predictor parameters."""
        data = DataSimulator(30, random_seed=5).nonlinear_growth(5.0, 1.0, 0.3).data
        mb = ModelBuilder("gaussian", {"mu": growth_predictor()})
        model = mb.build(data)
        assert mb.parameter_names == ["a", "b", "sigma"]
        assert not mb.is_linear
        assert np.isfinite(model.compile_logp()(model.initial_point()))

    def test_ar1_sorts_by_time(self) -> None:
        """Test that AR(1) models order rows by time and add rho."""
        data = DataSimulator(30, random_seed=6).ar1_series(1.0, 0.5, 0.5, 1.0).data
        shuffled = data.sample(frac=1.0, random_state=0)
        mb = ModelBuilder(
            "gaussian", {"mu": LinearPredictor(["x"])}, autocorrelation="ar1", time="time"
        )
        mb.build(shuffled)

        assert mb.data["time"].tolist() == list(range(30))
        assert mb.parameter_names == ["Intercept", "b_x", "sigma", "rho"]

    def test_ar1_with_groups(self) -> None:
        """Test that grouped AR(1) models build."""
        data = DataSimulator(20, random_seed=7).ar1_series(1.0, 0.5, 0.5, 1.0).data
        data["series"] = np.repeat(["a", "b"], 10)
        data["time"] = np.tile(np.arange(10), 2)
        mb = ModelBuilder(
            "gaussian",
            {"mu": LinearPredictor(["x"])},
            autocorrelation="ar1",
            time="time",
            group="series",
        )
        model = mb.build(data)
        assert np.isfinite(model.compile_logp()(model.initial_point()))

    def test_ar1_missing_time_column(self, gaussian_data) -> None:
        """Test that a missing time column raises ValueError."""
        mb = ModelBuilder(
            "gaussian", {"mu": LinearPredictor(["x"])}, autocorrelation="ar1", time="t"
        )
        with pytest.raises(ValueError, match="not found"):
            mb.build(gaussian_data)

    def test_prior_override_used(self, gaussian_data) -> None:
        """Test that an override prior drives the coefficient's prior draws."""
        spec = PriorSpec(overrides={"b_x": Prior("Normal", mu=3.0, sigma=0.1)})
        model = ModelBuilder(
            "gaussian", {"mu": LinearPredictor(["x"])}, prior_spec=spec
        ).build(gaussian_data)
        draws = pm.draw(model["b_x"], draws=2000, random_seed=1)
        assert abs(draws.mean() - 3.0) < 0.02
