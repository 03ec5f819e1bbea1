"""
Prior sets for the flavor/diet logistic regression.
"""

from .base import (
    DEFAULT_PRIOR,
    PRIOR_SETS,
    PriorSpec,
    extreme_mass,
    format_distribution,
    get_prior,
    implied_probability_draws,
    list_priors,
)
from .distributions import make_distribution

__all__ = [
    "DEFAULT_PRIOR",
    "PRIOR_SETS",
    "PriorSpec",
    "extreme_mass",
    "format_distribution",
    "get_prior",
    "implied_probability_draws",
    "list_priors",
    "make_distribution",
]
