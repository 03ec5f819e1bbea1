"""
Figures for the flavor/diet report.

Every function returns the matplotlib Figure and saves it when ``save_path``
is given.
"""

from typing import Optional, Tuple

import arviz as az
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns

from .checks import OUTCOME
from .dataset import group_rates

LEVEL_PALETTE = {
    "sweet": "#e377c2",
    "spicy": "#d62728",
    "bitter": "#2ca02c",
    "sour": "#bcbd22",
}


def _finish(fig: plt.Figure, save_path: Optional[str]) -> plt.Figure:
    fig.tight_layout()
    if save_path:
        fig.savefig(save_path, dpi=300, bbox_inches="tight")
    return fig


def _palette(levels):
    fallback = sns.color_palette("tab10", len(levels))
    return [LEVEL_PALETTE.get(level, fallback[i]) for i, level in enumerate(levels)]


def plot_observed_rates(
    df: pd.DataFrame,
    figsize: Tuple[int, int] = (7, 4),
    save_path: Optional[str] = None,
) -> plt.Figure:
    """Bar chart of the observed vegetarian share per flavor level."""
    rates = group_rates(df)
    fig, ax = plt.subplots(figsize=figsize)
    levels = rates.index.tolist()
    bars = ax.bar(levels, rates["prop_vegetarian"], color=_palette(levels), alpha=0.8, edgecolor="black")
    for bar, (_, row) in zip(bars, rates.iterrows()):
        ax.annotate(
            f"{int(row['n_vegetarian'])}/{int(row['n'])}",
            (bar.get_x() + bar.get_width() / 2, bar.get_height()),
            ha="center",
            va="bottom",
            fontsize=9,
        )
    ax.set_ylim(0, 1.1)
    ax.set_xlabel("Flavor profile")
    ax.set_ylabel("Share vegetarian")
    ax.set_title("Observed vegetarian share by flavor profile", fontweight="bold")
    ax.grid(True, axis="y", alpha=0.3)
    return _finish(fig, save_path)


def plot_prior_predictive(
    idata_prior: az.InferenceData,
    df: pd.DataFrame,
    figsize: Tuple[int, int] = (7, 4),
    save_path: Optional[str] = None,
) -> plt.Figure:
    """Histogram of the overall vegetarian share simulated from the priors."""
    values = idata_prior.prior_predictive[OUTCOME].values
    shares = values.reshape(-1, values.shape[-1]).mean(axis=1)
    observed = df["vegetarian"].mean()

    fig, ax = plt.subplots(figsize=figsize)
    sns.histplot(shares, bins=30, stat="density", color="steelblue", alpha=0.6, ax=ax)
    ax.axvline(observed, color="black", linestyle="--", label=f"observed ({observed:.2f})")
    ax.set_xlim(0, 1)
    ax.set_xlabel("Simulated share vegetarian")
    ax.set_title("Prior predictive distribution", fontweight="bold")
    ax.legend()
    return _finish(fig, save_path)


def plot_posterior_probabilities(
    idata: az.InferenceData,
    figsize: Tuple[int, int] = (7, 4),
    save_path: Optional[str] = None,
) -> plt.Figure:
    """Posterior densities of the vegetarian probability for each level."""
    p = idata.posterior["p_level"]
    levels = [str(level) for level in p.coords["level"].values]
    draws = p.values.reshape(-1, len(levels))

    fig, ax = plt.subplots(figsize=figsize)
    for j, (level, color) in enumerate(zip(levels, _palette(levels))):
        sns.kdeplot(draws[:, j], ax=ax, color=color, fill=True, alpha=0.3, label=level, clip=(0, 1))
    ax.set_xlim(0, 1)
    ax.set_xlabel("P(vegetarian)")
    ax.set_title("Posterior vegetarian probability by flavor profile", fontweight="bold")
    ax.legend(title="Flavor")
    return _finish(fig, save_path)


def plot_ppc(
    ppc_table: pd.DataFrame,
    figsize: Tuple[int, int] = (7, 4),
    save_path: Optional[str] = None,
) -> plt.Figure:
    """Replicated intervals of each test statistic against the observed value."""
    fig, ax = plt.subplots(figsize=figsize)
    positions = np.arange(len(ppc_table))
    ax.hlines(positions, ppc_table["rep_low"], ppc_table["rep_high"], color="steelblue", lw=3, label="replicated interval")
    ax.plot(ppc_table["rep_mean"], positions, "o", color="steelblue", label="replicated mean")
    ax.plot(ppc_table["observed"], positions, "kx", markersize=9, label="observed")
    ax.set_yticks(positions)
    ax.set_yticklabels(ppc_table.index)
    ax.set_xlim(0, 1.05)
    ax.set_xlabel("Share vegetarian")
    ax.set_title("Posterior predictive check", fontweight="bold")
    ax.legend(loc="lower left", fontsize=8)
    ax.grid(True, axis="x", alpha=0.3)
    return _finish(fig, save_path)


def plot_sensitivity(
    table: pd.DataFrame,
    figsize: Tuple[int, int] = (8, 5),
    save_path: Optional[str] = None,
) -> plt.Figure:
    """
    Forest plot of per-level probabilities under each prior set.

    Args:
        table: ``SensitivityResult.table``.
    """
    subset = table[table["parameter"].str.startswith("p[")]
    parameters = list(dict.fromkeys(subset["parameter"]))
    priors = list(dict.fromkeys(subset["prior"]))
    colors = sns.color_palette("colorblind", len(priors))
    offset = np.linspace(-0.25, 0.25, len(priors)) if len(priors) > 1 else np.zeros(1)

    fig, ax = plt.subplots(figsize=figsize)
    for k, (prior, color) in enumerate(zip(priors, colors)):
        rows = subset[subset["prior"] == prior].set_index("parameter").reindex(parameters)
        y = np.arange(len(parameters)) + offset[k]
        ax.hlines(y, rows["hdi_low"], rows["hdi_high"], color=color, lw=2)
        ax.plot(rows["mean"], y, "o", color=color, label=prior)
    ax.set_yticks(np.arange(len(parameters)))
    ax.set_yticklabels(parameters)
    ax.set_xlim(0, 1.05)
    ax.set_xlabel("P(vegetarian)")
    ax.set_title("Sensitivity to prior choice", fontweight="bold")
    ax.legend(title="Prior", fontsize=8)
    ax.grid(True, axis="x", alpha=0.3)
    return _finish(fig, save_path)


def plot_trace(idata: az.InferenceData, save_path: Optional[str] = None) -> plt.Figure:
    """ArviZ trace plot of intercept and flavor coefficients."""
    axes = az.plot_trace(idata, var_names=["intercept", "beta"], compact=True)
    fig = np.asarray(axes).ravel()[0].get_figure()
    return _finish(fig, save_path)
