"""
Model specification, fitting and posterior summaries.
"""

from .logistic import (
    ConvergenceReport,
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

__all__ = [
    "ConvergenceReport",
    "build_model",
    "check_convergence",
    "design_matrix",
    "fit_model",
    "flavor_levels",
    "level_contrasts",
    "level_probabilities",
    "odds_ratios",
    "sample_posterior_predictive",
    "sample_prior_predictive",
    "sampler_warnings",
    "summarize_posterior",
]
