"""
Tests for model specification and posterior summaries.

Summaries are exercised on InferenceData built with ``arviz.from_dict``;
only the tests marked ``slow`` actually sample.
"""

import numpy as np
import pytest

from flavordiet.models import (
    build_model,
    check_convergence,
    design_matrix,
    fit_model,
    flavor_levels,
    level_contrasts,
    level_probabilities,
    odds_ratios,
    sample_posterior_predictive,
    sample_prior_predictive,
    sampler_warnings,
    summarize_posterior,
)
from flavordiet.priors import get_prior

from conftest import make_posterior


class TestDesignMatrix:
    def test_treatment_coding(self, recipes):
        X, contrasts = design_matrix(recipes, "spicy")
        assert contrasts == ["sweet", "bitter"]
        assert X.shape == (len(recipes), 2)
        values = recipes["flavor_profile"].astype(str).to_numpy()
        np.testing.assert_array_equal(X[:, 0], values == "sweet")
        np.testing.assert_array_equal(X[values == "spicy"], 0)
        assert set(X.sum(axis=1)) <= {0.0, 1.0}

    def test_default_reference_is_most_common(self, recipes):
        _, contrasts = design_matrix(recipes)
        assert "spicy" not in contrasts

    def test_unknown_reference(self, recipes):
        with pytest.raises(ValueError, match="sour"):
            design_matrix(recipes, "sour")

    def test_flavor_levels(self, recipes):
        assert flavor_levels(recipes) == ["sweet", "spicy", "bitter"]


class TestBuildModel:
    def test_variables_and_coords(self, recipes):
        model = build_model(recipes, get_prior("weakly_informative"), "spicy")
        names = set(model.named_vars)
        assert {"intercept", "beta", "vegetarian", "p_level"} <= names
        assert list(model.coords["flavor"]) == ["sweet", "bitter"]
        assert list(model.coords["level"]) == ["spicy", "sweet", "bitter"]
        assert len(model.coords["obs"]) == len(recipes)

    def test_observed_outcome(self, recipes):
        model = build_model(recipes, get_prior("vague"), "spicy")
        observed = model.rvs_to_values[model["vegetarian"]]
        np.testing.assert_array_equal(observed.data, recipes["vegetarian"].to_numpy())

    def test_p_level_matches_logistic(self, recipes):
        model = build_model(recipes, get_prior("regularizing"), "spicy")
        p = model["p_level"].eval(
            {model["intercept"]: np.float64(1.0), model["beta"]: np.array([0.5, -1.0])}
        )
        expected = 1 / (1 + np.exp(-np.array([1.0, 1.5, 0.0])))
        np.testing.assert_allclose(p, expected)


class TestPosteriorSummaries:
    def test_level_probabilities(self, posterior):
        probs = level_probabilities(posterior, hdi_prob=0.9)
        assert list(probs.index) == ["spicy", "sweet", "bitter"]
        assert probs.loc["spicy", "median"] == pytest.approx(0.75, abs=0.02)
        assert (probs["hdi_low"] < probs["mean"]).all()
        assert (probs["mean"] < probs["hdi_high"]).all()

    def test_odds_ratios(self, posterior):
        ors = odds_ratios(posterior)
        assert list(ors.index) == ["sweet", "bitter"]
        # logit(0.9) - logit(0.75) = log(3)
        assert ors.loc["sweet", "log_or_mean"] == pytest.approx(np.log(3), abs=0.05)
        assert ors.loc["sweet", "or_median"] == pytest.approx(3, rel=0.05)
        assert ors.loc["sweet", "p_or_gt_1"] > 0.95

    def test_level_contrasts(self, posterior):
        contrasts = level_contrasts(posterior)
        assert len(contrasts) == 3
        row = contrasts[(contrasts["first"] == "spicy") & (contrasts["second"] == "bitter")].iloc[0]
        assert row["mean_difference"] < 0
        assert row["p_first_greater"] < 0.1

    def test_summarize_posterior(self, posterior):
        summary = summarize_posterior(posterior, hdi_prob=0.9)
        assert "intercept" in summary.index
        assert "p_level[bitter]" in summary.index
        assert {"mean", "sd", "hdi_5%", "hdi_95%", "r_hat"} <= set(summary.columns)


class TestCheckConvergence:
    def test_well_mixed_draws(self, posterior, capsys):
        report = check_convergence(posterior)
        assert report.ok
        assert report.n_divergences == 0
        assert report.max_rhat < 1.01
        assert report.min_ess_bulk > 400
        assert capsys.readouterr().err == ""

    def test_disagreeing_chains(self, capsys):
        idata = make_posterior(chains=2, draws=300)
        shifted = idata.posterior["intercept"].values
        shifted[1] += 3.0
        report = check_convergence(idata)
        assert not report.ok
        assert any("R-hat" in message for message in report.warnings)
        assert "Warning: max R-hat" in capsys.readouterr().err

    def test_small_sample(self):
        report = check_convergence(make_posterior(chains=2, draws=50))
        assert any("effective sample size" in message for message in report.warnings)

    def test_divergences_and_sampler_warnings(self):
        import arviz as az

        idata = make_posterior()
        diverging = np.zeros((4, 500), dtype=bool)
        diverging[0, :3] = True
        stats = az.from_dict(sample_stats={"diverging": diverging})
        stats.sample_stats.attrs["sampler_warnings"] = "UserWarning: something odd"
        idata.extend(stats)

        assert sampler_warnings(idata) == ["UserWarning: something odd"]
        report = check_convergence(idata)
        assert report.n_divergences == 3
        assert report.as_dict()["divergences"] == 3
        assert "UserWarning: something odd" in report.warnings

    def test_no_sample_stats(self, posterior):
        assert sampler_warnings(posterior) == []


@pytest.mark.slow
class TestSampling:
    """Compile and sample the model with tiny settings."""

    def test_fit_and_predictive(self, unseparated_recipes):
        model = build_model(unseparated_recipes, get_prior("weakly_informative"), "spicy")
        idata = fit_model(model, draws=200, tune=200, chains=2, random_seed=1)
        assert idata.posterior.sizes["draw"] == 200
        assert idata.posterior["p_level"].shape == (2, 200, 3)
        assert isinstance(sampler_warnings(idata), list)

        probs = level_probabilities(idata)
        assert probs.loc["spicy", "mean"] == pytest.approx(0.75, abs=0.1)

        prior = sample_prior_predictive(model, draws=50, random_seed=1)
        assert prior.prior_predictive["vegetarian"].shape[-1] == len(unseparated_recipes)

        ppc = sample_posterior_predictive(model, idata, random_seed=1)
        assert ppc.posterior_predictive["vegetarian"].shape == (2, 200, len(unseparated_recipes))
