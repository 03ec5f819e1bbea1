"""
Tests for the classical comparison.
"""

from unittest.mock import patch

import numpy as np
import pandas as pd
import pytest
from scipy import stats
from statsmodels.tools.sm_exceptions import PerfectSeparationError

from flavordiet.dataset import contingency_table
from flavordiet.frequentist import (
    MLEResult,
    chi_squared_test,
    compare_estimates,
    fit_mle_logistic,
    fit_penalized_logistic,
    permutation_chi_squared,
    summarize_classical,
)
from flavordiet.models import odds_ratios

from conftest import make_posterior


class TestChiSquared:
    def test_matches_scipy(self, recipes):
        table = contingency_table(recipes)
        result = chi_squared_test(table)
        chi2, p, dof, expected = stats.chi2_contingency(table.to_numpy(), correction=False)
        assert result.statistic == pytest.approx(chi2)
        assert result.p_value == pytest.approx(p)
        assert result.dof == dof == 2
        np.testing.assert_allclose(result.expected.to_numpy(), expected)
        assert 0 <= result.cramers_v <= 1
        assert result.g_statistic > 0

    def test_sparse_cells_warned(self, recipes):
        result = chi_squared_test(contingency_table(recipes))
        assert result.sparse_share == pytest.approx(2 / 6)
        assert any("expected count below 5" in message for message in result.warnings)

    def test_large_table_not_warned(self):
        table = pd.DataFrame([[40, 60], [55, 45]], index=["spicy", "sweet"])
        result = chi_squared_test(table)
        assert result.sparse_share == 0
        assert result.warnings == []

    def test_rejects_degenerate_tables(self):
        with pytest.raises(ValueError, match="2x2"):
            chi_squared_test(pd.DataFrame([[1, 2]], index=["spicy"]))
        with pytest.raises(ValueError, match="empty"):
            chi_squared_test(pd.DataFrame([[0, 2], [0, 3]], index=["spicy", "sweet"]))

    def test_as_frame(self, recipes):
        result = chi_squared_test(contingency_table(recipes))
        assert list(result.as_frame().index) == ["Pearson chi-squared", "Likelihood-ratio G"]
        result.permutation_p_value = 0.2
        assert "Permutation (Pearson)" in result.as_frame().index


class TestPermutation:
    def test_p_value_range(self, recipes):
        p = permutation_chi_squared(recipes, n_resamples=200, seed=0)
        assert 0 < p <= 1

    def test_reproducible(self, recipes):
        assert permutation_chi_squared(recipes, 100, seed=5) == permutation_chi_squared(recipes, 100, seed=5)

    def test_no_association(self):
        df = pd.DataFrame(
            {
                "flavor_profile": ["spicy", "sweet"] * 20,
                "vegetarian": [1, 1, 0, 0] * 10,
            }
        )
        assert permutation_chi_squared(df, n_resamples=300, seed=1) > 0.5


class TestMLE:
    def test_recovers_log_odds(self, unseparated_recipes):
        result = fit_mle_logistic(unseparated_recipes, "spicy")
        assert result.converged
        assert result.error is None
        assert list(result.params.index) == ["Intercept", "sweet", "bitter"]
        assert result.params.loc["Intercept", "coef"] == pytest.approx(np.log(3), abs=1e-4)
        assert result.params.loc["sweet", "coef"] == pytest.approx(np.log(3), abs=1e-4)
        assert result.params.loc["bitter", "coef"] == pytest.approx(0.0, abs=1e-4)
        assert result.unstable_levels == []

    def test_default_reference(self, unseparated_recipes):
        assert fit_mle_logistic(unseparated_recipes).reference_level == "spicy"

    def test_separation_reported(self, recipes):
        result = fit_mle_logistic(recipes, "spicy")
        assert result.separated_levels == ["bitter"]
        assert "bitter" in result.unstable_levels
        assert any("separation" in message for message in result.warnings)

    @pytest.mark.parametrize(
        "error",
        [
            PerfectSeparationError("Perfect separation detected"),
            np.linalg.LinAlgError("Singular matrix"),
        ],
    )
    @patch("flavordiet.frequentist.smf.logit")
    def test_failed_fit_returns_unconverged(self, mock_logit, error, recipes):
        mock_logit.return_value.fit.side_effect = error
        result = fit_mle_logistic(recipes, "spicy")

        assert mock_logit.called
        assert result.params.empty
        assert not result.converged
        assert type(error).__name__ in result.error
        assert result.unstable_levels == result.separated_levels == ["bitter"]

    def test_intercept_never_unstable(self):
        params = pd.DataFrame(
            {"coef": [-20.0, 40.0, 0.1], "se": [1.8e5, 2.8e5, 0.5]},
            index=["Intercept", "sweet", "bitter"],
        )
        result = MLEResult(reference_level="spicy", params=params, converged=True)
        assert result.unstable_levels == ["sweet"]


class TestPenalized:
    def test_finite_under_separation(self, recipes):
        coef = fit_penalized_logistic(recipes, "spicy")
        assert list(coef.index) == ["Intercept", "sweet", "bitter"]
        assert np.isfinite(coef).all()
        assert coef["bitter"] > 0

    def test_stronger_penalty_shrinks(self, recipes):
        loose = fit_penalized_logistic(recipes, "spicy", C=10.0)
        tight = fit_penalized_logistic(recipes, "spicy", C=0.01)
        assert abs(tight["sweet"]) < abs(loose["sweet"])

    def test_invalid_c(self, recipes):
        with pytest.raises(ValueError, match="C must be positive"):
            fit_penalized_logistic(recipes, C=0)


class TestComparison:
    def test_compare_estimates(self, unseparated_recipes):
        bayes = odds_ratios(make_posterior(p_level=(0.75, 0.9, 0.75)))
        mle = fit_mle_logistic(unseparated_recipes, "spicy")
        penalized = fit_penalized_logistic(unseparated_recipes, "spicy")
        table = compare_estimates(bayes, mle, penalized)

        assert list(table.index) == ["sweet", "bitter"]
        assert {"bayes_mean", "mle_coef", "mle_se", "penalized_coef", "separated"} <= set(table.columns)
        assert table.loc["sweet", "bayes_mean"] == pytest.approx(table.loc["sweet", "mle_coef"], abs=0.1)
        assert not table["separated"].any()

    def test_summarize_classical(self, unseparated_recipes):
        chi = chi_squared_test(contingency_table(unseparated_recipes))
        mle = fit_mle_logistic(unseparated_recipes, "spicy")
        summary = summarize_classical(chi, mle)
        assert summary["chi2"] == chi.statistic
        assert np.isnan(summary["permutation_p"])
        assert summary["mle_converged"] == 1.0
