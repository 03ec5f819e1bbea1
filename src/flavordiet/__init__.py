"""
flavordiet: does a dish's flavor profile tell us whether it is vegetarian?

This package provides tools to:
1. Load and clean the recipe table (missing codes, negligible categories)
2. Fit a Bayesian logistic regression of diet on flavor profile with PyMC
3. Run prior/posterior predictive checks and a prior sensitivity analysis
4. Compare with a chi-squared test and maximum-likelihood logistic regression
5. Render the results as a Markdown report with figures
"""

from .config import AnalysisConfig
from .dataset import (
    CleaningReport,
    clean_recipes,
    contingency_table,
    find_separated_levels,
    group_rates,
    load_recipes,
    recode_diet,
)
from .priors import PRIOR_SETS, PriorSpec, get_prior, list_priors
from .models import (
    build_model,
    check_convergence,
    fit_model,
    odds_ratios,
    summarize_posterior,
)
from .checks import posterior_predictive_check, prior_predictive_summary
from .sensitivity import SensitivityResult, run_sensitivity
from .frequentist import chi_squared_test, fit_mle_logistic, fit_penalized_logistic
from .report import AnalysisResult, render_report, run_pipeline, save_results

from .visualization import (
    plot_observed_rates,
    plot_posterior_probabilities,
    plot_ppc,
    plot_prior_predictive,
    plot_sensitivity,
    plot_trace,
)

__version__ = "0.1.0"

__all__ = [
    "AnalysisConfig",
    "CleaningReport",
    "clean_recipes",
    "contingency_table",
    "find_separated_levels",
    "group_rates",
    "load_recipes",
    "recode_diet",
    "PRIOR_SETS",
    "PriorSpec",
    "get_prior",
    "list_priors",
    "build_model",
    "check_convergence",
    "fit_model",
    "odds_ratios",
    "summarize_posterior",
    "posterior_predictive_check",
    "prior_predictive_summary",
    "SensitivityResult",
    "run_sensitivity",
    "chi_squared_test",
    "fit_mle_logistic",
    "fit_penalized_logistic",
    "AnalysisResult",
    "render_report",
    "run_pipeline",
    "save_results",
    "plot_observed_rates",
    "plot_posterior_probabilities",
    "plot_ppc",
    "plot_prior_predictive",
    "plot_sensitivity",
    "plot_trace",
]
