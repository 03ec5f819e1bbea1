"""
Named prior sets for the intercept and flavor coefficients.

All priors live on the log-odds scale. The sensitivity analysis refits the
model under each registered set.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np
from scipy import stats

FAMILIES = ("normal", "student_t", "cauchy")

# (family, params) where params are keyword arguments for the PyMC distribution
Distribution = Tuple[str, Dict[str, float]]


@dataclass(frozen=True)
class PriorSpec:
    """A choice of priors for the intercept and the treatment-coded slopes."""

    name: str
    description: str
    intercept: Distribution
    slope: Distribution
    tags: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        for family, params in (self.intercept, self.slope):
            _check_distribution(family, params)

    def label(self) -> str:
        return f"{self.name}: intercept {format_distribution(self.intercept)}, slopes {format_distribution(self.slope)}"


def _check_distribution(family: str, params: Dict[str, float]):
    if family not in FAMILIES:
        raise ValueError(f"Unknown prior family '{family}'. Expected one of {FAMILIES}")
    scale_key = "beta" if family == "cauchy" else "sigma"
    if params.get(scale_key, 0) <= 0:
        raise ValueError(f"{family} prior needs a positive '{scale_key}', got {params}")
    if family == "student_t" and params.get("nu", 0) <= 0:
        raise ValueError(f"student_t prior needs positive 'nu', got {params}")


def format_distribution(dist: Distribution) -> str:
    """Human readable form, e.g. ``Normal(0, 2.5)``."""
    family, params = dist
    if family == "normal":
        return f"Normal({params.get('mu', 0):g}, {params['sigma']:g})"
    if family == "student_t":
        return f"Student-t({params['nu']:g}, {params.get('mu', 0):g}, {params['sigma']:g})"
    return f"Cauchy({params.get('alpha', 0):g}, {params['beta']:g})"


DEFAULT_PRIOR = "weakly_informative"

PRIOR_SETS: Dict[str, PriorSpec] = {
    spec.name: spec
    for spec in [
        PriorSpec(
            name="weakly_informative",
            description="Normal(0, 2.5) on all coefficients; rules out implausibly large log-odds",
            intercept=("normal", {"mu": 0.0, "sigma": 2.5}),
            slope=("normal", {"mu": 0.0, "sigma": 2.5}),
            tags=("default",),
        ),
        PriorSpec(
            name="vague",
            description="Normal(0, 10); nearly flat on the log-odds scale",
            intercept=("normal", {"mu": 0.0, "sigma": 10.0}),
            slope=("normal", {"mu": 0.0, "sigma": 10.0}),
        ),
        PriorSpec(
            name="regularizing",
            description="Normal(0, 1); shrinks flavor effects toward zero",
            intercept=("normal", {"mu": 0.0, "sigma": 1.0}),
            slope=("normal", {"mu": 0.0, "sigma": 1.0}),
        ),
        PriorSpec(
            name="student_t",
            description="Student-t(3, 0, 2.5); heavier tails than the default",
            intercept=("student_t", {"nu": 3.0, "mu": 0.0, "sigma": 2.5}),
            slope=("student_t", {"nu": 3.0, "mu": 0.0, "sigma": 2.5}),
        ),
        PriorSpec(
            name="cauchy",
            description="Cauchy(0, 10) intercept, Cauchy(0, 2.5) slopes",
            intercept=("cauchy", {"alpha": 0.0, "beta": 10.0}),
            slope=("cauchy", {"alpha": 0.0, "beta": 2.5}),
        ),
    ]
}


def list_priors() -> List[str]:
    """Names of the registered prior sets, default first."""
    return list(PRIOR_SETS)


def get_prior(name: str) -> PriorSpec:
    """
    Look up a registered prior set.

    Raises:
        ValueError: If no prior set has this name.
    """
    try:
        return PRIOR_SETS[name]
    except KeyError:
        raise ValueError(
            f"Unknown prior set '{name}'. Available: {list_priors()}"
        ) from None


def _scipy_distribution(dist: Distribution):
    family, params = dist
    if family == "normal":
        return stats.norm(loc=params.get("mu", 0.0), scale=params["sigma"])
    if family == "student_t":
        return stats.t(df=params["nu"], loc=params.get("mu", 0.0), scale=params["sigma"])
    return stats.cauchy(loc=params.get("alpha", 0.0), scale=params["beta"])


def implied_probability_draws(
    spec: PriorSpec, n: int = 4000, seed: Optional[int] = None
) -> np.ndarray:
    """
    Probabilities implied by the intercept prior alone.

    A vague prior on the log-odds scale piles most of its mass near 0 and 1
    once pushed through the logistic function.
    """
    rng = np.random.default_rng(seed)
    logits = _scipy_distribution(spec.intercept).rvs(size=n, random_state=rng)
    return 1.0 / (1.0 + np.exp(-np.clip(logits, -500, 500)))


def extreme_mass(probabilities: np.ndarray, tail: float = 0.05) -> float:
    """Fraction of probabilities below ``tail`` or above ``1 - tail``."""
    probabilities = np.asarray(probabilities)
    return float(np.mean((probabilities < tail) | (probabilities > 1 - tail)))
