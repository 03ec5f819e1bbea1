"""
Sensitivity of the posterior to the choice of prior.

The model is refit under each registered prior set with identical sampler
settings; posterior means and HDIs are collected side by side.
"""

import sys
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Optional

import arviz as az
import pandas as pd

from .config import AnalysisConfig
from .models import (
    ConvergenceReport,
    build_model,
    check_convergence,
    fit_model,
    level_probabilities,
    odds_ratios,
)
from .priors import get_prior

SPREAD_THRESHOLD = 0.05


@dataclass
class SensitivityResult:
    """Posterior summaries under each prior set."""

    table: pd.DataFrame
    convergence: Dict[str, ConvergenceReport] = field(default_factory=dict)
    traces: Dict[str, az.InferenceData] = field(default_factory=dict)

    @property
    def priors(self):
        return list(dict.fromkeys(self.table["prior"]))

    def spread(self, threshold: float = SPREAD_THRESHOLD) -> pd.DataFrame:
        """
        Range of posterior means across priors, per parameter.

        ``sensitive`` marks probability-scale parameters whose mean moves by
        more than ``threshold`` between prior sets.
        """
        grouped = self.table.groupby("parameter", sort=False)["mean"]
        spread = pd.DataFrame(
            {
                "min_mean": grouped.min(),
                "max_mean": grouped.max(),
            }
        )
        spread["range"] = spread["max_mean"] - spread["min_mean"]
        on_probability_scale = spread.index.str.startswith("p[")
        spread["sensitive"] = on_probability_scale & (spread["range"] > threshold)
        return spread

    def wide(self, parameter_prefix: str = "p[") -> pd.DataFrame:
        """Posterior means with one column per prior set."""
        subset = self.table[self.table["parameter"].str.startswith(parameter_prefix)]
        return subset.pivot(index="parameter", columns="prior", values="mean")[self.priors]


def _rows_for(prior_name: str, idata: az.InferenceData, hdi_prob: float):
    probs = level_probabilities(idata, hdi_prob)
    for level, row in probs.iterrows():
        yield {
            "prior": prior_name,
            "parameter": f"p[{level}]",
            "mean": row["mean"],
            "hdi_low": row["hdi_low"],
            "hdi_high": row["hdi_high"],
        }
    ors = odds_ratios(idata, hdi_prob)
    for level, row in ors.iterrows():
        yield {
            "prior": prior_name,
            "parameter": f"log_or[{level}]",
            "mean": row["log_or_mean"],
            "hdi_low": row["log_or_hdi_low"],
            "hdi_high": row["log_or_hdi_high"],
        }


def run_sensitivity(
    df: pd.DataFrame,
    prior_names: Optional[Iterable[str]],
    config: AnalysisConfig,
    fit: Callable[..., az.InferenceData] = fit_model,
    keep_traces: bool = False,
    fitted: Optional[Dict[str, az.InferenceData]] = None,
) -> SensitivityResult:
    """
    Refit the model under several prior sets.

    Args:
        df: Cleaned recipe table.
        prior_names: Prior sets to use. None means ``config.sensitivity_priors``.
        config: Sampler settings, reference level and HDI probability.
        fit: Fitting function, ``fit_model`` unless replaced.
        keep_traces: Keep each InferenceData on the result.
        fitted: Posteriors already sampled with ``config``, keyed by prior
            set; these are summarized instead of refit.

    Returns:
        A ``SensitivityResult`` with one block of rows per prior set.
    """
    if prior_names is None:
        prior_names = config.sensitivity_priors
    prior_names = list(prior_names)
    if not prior_names:
        raise ValueError("No prior sets given for the sensitivity analysis")
    fitted = fitted or {}

    rows = []
    convergence = {}
    traces = {}
    for name in prior_names:
        spec = get_prior(name)
        if name in fitted:
            print(f"Sensitivity: reusing the posterior for prior '{name}'", file=sys.stderr)
            idata = fitted[name]
        else:
            print(f"Sensitivity: fitting with prior '{name}'", file=sys.stderr)
            model = build_model(df, spec, config.reference_level)
            idata = fit(
                model,
                draws=config.draws,
                tune=config.tune,
                chains=config.chains,
                target_accept=config.target_accept,
                random_seed=config.random_seed,
            )
        convergence[name] = check_convergence(idata)
        rows.extend(_rows_for(name, idata, config.hdi_prob))
        if keep_traces:
            traces[name] = idata

    return SensitivityResult(
        table=pd.DataFrame(rows), convergence=convergence, traces=traces
    )
