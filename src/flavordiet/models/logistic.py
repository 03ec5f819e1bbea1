"""
Bayesian logistic regression of vegetarian status on flavor profile.

The flavor profile enters through treatment (dummy) coding against a
reference level:

    logit P(vegetarian_i) = intercept + X_i @ beta

so ``intercept`` is the log-odds for the reference level and each ``beta``
is a log odds ratio against it. Sampling is delegated to PyMC (NUTS) and
summaries to ArviZ.
"""

import sys
from dataclasses import dataclass, field
from itertools import combinations
from typing import List, Optional, Tuple

import arviz as az
import numpy as np
import pandas as pd
import pymc as pm

from ..dataset import outcome_array, reference_level_default
from ..priors import PriorSpec, make_distribution
from ..utils.sampling import quiet_sampling


def flavor_levels(df: pd.DataFrame) -> List[str]:
    """Flavor levels in model order."""
    column = df["flavor_profile"]
    if isinstance(column.dtype, pd.CategoricalDtype):
        return [str(level) for level in column.cat.categories]
    return sorted(column.astype(str).unique())


def design_matrix(
    df: pd.DataFrame, reference_level: Optional[str] = None
) -> Tuple[np.ndarray, List[str]]:
    """
    Treatment-coded design for ``flavor_profile``.

    Args:
        df: Cleaned recipe table.
        reference_level: Baseline level dropped from the design. Defaults to
            the most common level.

    Returns:
        A ``(n_obs, n_levels - 1)`` indicator matrix and the names of its
        columns (the non-reference levels).
    """
    levels = flavor_levels(df)
    if reference_level is None:
        reference_level = reference_level_default(df)
    if reference_level not in levels:
        raise ValueError(
            f"Reference level '{reference_level}' not found in flavor levels {levels}"
        )

    contrasts = [level for level in levels if level != reference_level]
    values = df["flavor_profile"].astype(str).to_numpy()
    X = np.column_stack([(values == level).astype(float) for level in contrasts])
    return X, contrasts


def build_model(
    df: pd.DataFrame, prior: PriorSpec, reference_level: Optional[str] = None
) -> pm.Model:
    """
    Specify the logistic regression in PyMC.

    Besides ``intercept`` and ``beta`` the model records ``p_level``, the
    vegetarian probability for every flavor level, so that summaries and
    plots can work on the probability scale directly.
    """
    if reference_level is None:
        reference_level = reference_level_default(df)
    X, contrasts = design_matrix(df, reference_level)
    y = outcome_array(df)
    levels = [reference_level] + contrasts

    coords = {
        "flavor": contrasts,
        "level": levels,
        "obs": np.arange(len(df)),
    }
    with pm.Model(coords=coords) as model:
        intercept = make_distribution("intercept", *prior.intercept)
        beta = make_distribution("beta", *prior.slope, dims="flavor")

        logit_p = intercept + pm.math.dot(X, beta)
        pm.Bernoulli("vegetarian", logit_p=logit_p, observed=y, dims="obs")

        level_logits = pm.math.concatenate([pm.math.stack([intercept]), intercept + beta])
        pm.Deterministic("p_level", pm.math.sigmoid(level_logits), dims="level")

    return model


def fit_model(
    model: pm.Model,
    draws: int = 2000,
    tune: int = 1000,
    chains: int = 4,
    target_accept: float = 0.9,
    random_seed: Optional[int] = 42,
) -> az.InferenceData:
    """
    Sample the posterior with NUTS.

    Sampler warnings are kept, newline separated, in the
    ``sampler_warnings`` attribute of ``idata.sample_stats`` for
    ``check_convergence`` to report.
    """
    with quiet_sampling() as collected:
        with model:
            idata = pm.sample(
                draws=draws,
                tune=tune,
                chains=chains,
                target_accept=target_accept,
                random_seed=random_seed,
                progressbar=False,
                return_inferencedata=True,
            )
    idata.sample_stats.attrs["sampler_warnings"] = "\n".join(collected)
    return idata


def sample_prior_predictive(
    model: pm.Model, draws: int = 1000, random_seed: Optional[int] = 42
) -> az.InferenceData:
    """Simulate parameters and outcomes from the priors alone."""
    with quiet_sampling():
        with model:
            return pm.sample_prior_predictive(draws=draws, random_seed=random_seed)


def sample_posterior_predictive(
    model: pm.Model, idata: az.InferenceData, random_seed: Optional[int] = 42
) -> az.InferenceData:
    """Simulate replicated outcomes from the posterior draws in ``idata``."""
    with quiet_sampling():
        with model:
            return pm.sample_posterior_predictive(
                idata, random_seed=random_seed, progressbar=False
            )


@dataclass
class ConvergenceReport:
    """Sampler health, as read from the draws."""

    n_divergences: int = 0
    max_rhat: float = float("nan")
    min_ess_bulk: float = float("nan")
    min_ess_tail: float = float("nan")
    warnings: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.warnings

    def as_dict(self) -> dict:
        return {
            "divergences": self.n_divergences,
            "max_rhat": self.max_rhat,
            "min_ess_bulk": self.min_ess_bulk,
            "min_ess_tail": self.min_ess_tail,
            "ok": self.ok,
        }


def sampler_warnings(idata: az.InferenceData) -> List[str]:
    """Warnings recorded by ``fit_model`` while sampling."""
    if "sample_stats" not in idata.groups():
        return []
    joined = idata.sample_stats.attrs.get("sampler_warnings", "")
    return [line for line in joined.split("\n") if line]


def check_convergence(
    idata: az.InferenceData,
    rhat_threshold: float = 1.01,
    min_ess: float = 400,
    var_names: Tuple[str, ...] = ("intercept", "beta"),
) -> ConvergenceReport:
    """
    Read divergences, R-hat and effective sample sizes from a fitted trace.

    Problems are described in ``warnings`` rather than raised; the report
    narrates them.
    """
    report = ConvergenceReport()
    if "sample_stats" in idata.groups() and "diverging" in idata.sample_stats:
        report.n_divergences = int(idata.sample_stats["diverging"].sum())
    if report.n_divergences:
        report.warnings.append(
            f"{report.n_divergences} divergent transitions after tuning; "
            "consider a higher target_accept or a tighter prior"
        )

    summary = az.summary(idata, var_names=list(var_names), kind="diagnostics")
    n_chains = idata.posterior.sizes.get("chain", 1)
    if n_chains > 1 and "r_hat" in summary:
        report.max_rhat = float(summary["r_hat"].max())
        if report.max_rhat > rhat_threshold:
            report.warnings.append(
                f"max R-hat {report.max_rhat:.3f} exceeds {rhat_threshold}"
            )
    report.min_ess_bulk = float(summary["ess_bulk"].min())
    report.min_ess_tail = float(summary["ess_tail"].min())
    if report.min_ess_bulk < min_ess or report.min_ess_tail < min_ess:
        report.warnings.append(
            f"effective sample size below {min_ess:g} "
            f"(bulk {report.min_ess_bulk:.0f}, tail {report.min_ess_tail:.0f})"
        )

    for message in sampler_warnings(idata):
        if message not in report.warnings:
            report.warnings.append(message)

    for message in report.warnings:
        print(f"Warning: {message}", file=sys.stderr)
    return report


def summarize_posterior(
    idata: az.InferenceData,
    hdi_prob: float = 0.94,
    var_names: Tuple[str, ...] = ("intercept", "beta", "p_level"),
) -> pd.DataFrame:
    """ArviZ summary table (mean, sd, HDI, ESS, R-hat)."""
    return az.summary(idata, var_names=list(var_names), hdi_prob=hdi_prob, round_to=4)


def _flat(idata: az.InferenceData, name: str) -> np.ndarray:
    """Posterior draws with chain and draw flattened into the first axis."""
    values = idata.posterior[name].values
    return values.reshape((-1,) + values.shape[2:])


def _hdi(samples: np.ndarray, hdi_prob: float) -> Tuple[float, float]:
    low, high = az.hdi(np.asarray(samples), hdi_prob=hdi_prob)
    return float(low), float(high)


def odds_ratios(idata: az.InferenceData, hdi_prob: float = 0.94) -> pd.DataFrame:
    """
    Posterior odds ratios of each flavor level against the reference level.
    """
    beta = _flat(idata, "beta")
    contrasts = [str(c) for c in idata.posterior["beta"].coords["flavor"].values]
    rows = []
    for j, level in enumerate(contrasts):
        log_or = beta[:, j]
        ratio = np.exp(log_or)
        low, high = _hdi(ratio, hdi_prob)
        log_low, log_high = _hdi(log_or, hdi_prob)
        rows.append(
            {
                "level": level,
                "log_or_mean": float(log_or.mean()),
                "log_or_hdi_low": log_low,
                "log_or_hdi_high": log_high,
                "or_median": float(np.median(ratio)),
                "or_hdi_low": low,
                "or_hdi_high": high,
                "p_or_gt_1": float(np.mean(log_or > 0)),
            }
        )
    return pd.DataFrame(rows).set_index("level")


def level_probabilities(idata: az.InferenceData, hdi_prob: float = 0.94) -> pd.DataFrame:
    """Posterior vegetarian probability per flavor level."""
    p = _flat(idata, "p_level")
    levels = [str(level) for level in idata.posterior["p_level"].coords["level"].values]
    rows = []
    for j, level in enumerate(levels):
        low, high = _hdi(p[:, j], hdi_prob)
        rows.append(
            {
                "level": level,
                "mean": float(p[:, j].mean()),
                "median": float(np.median(p[:, j])),
                "hdi_low": low,
                "hdi_high": high,
            }
        )
    return pd.DataFrame(rows).set_index("level")


def level_contrasts(idata: az.InferenceData) -> pd.DataFrame:
    """
    Pairwise comparisons of flavor levels on the probability scale.

    ``p_first_greater`` is the posterior probability that a dish of the first
    level is more likely vegetarian than one of the second.
    """
    p = _flat(idata, "p_level")
    levels = [str(level) for level in idata.posterior["p_level"].coords["level"].values]
    rows = []
    for i, j in combinations(range(len(levels)), 2):
        diff = p[:, i] - p[:, j]
        rows.append(
            {
                "first": levels[i],
                "second": levels[j],
                "mean_difference": float(diff.mean()),
                "p_first_greater": float(np.mean(diff > 0)),
            }
        )
    return pd.DataFrame(rows)
