"""
Prior and posterior predictive checks.

Both checks compare simple test statistics of simulated outcome vectors with
the observed data: the overall vegetarian share and the vegetarian share
within each flavor level.
"""

from typing import Dict

import arviz as az
import numpy as np
import pandas as pd

OUTCOME = "vegetarian"


def _replicates(idata: az.InferenceData, group: str) -> np.ndarray:
    """Simulated outcomes as a ``(n_replicates, n_obs)`` array."""
    if group not in idata.groups():
        raise ValueError(
            f"InferenceData has no '{group}' group. "
            f"Run the matching sampling step first."
        )
    values = idata[group][OUTCOME].values
    return values.reshape(-1, values.shape[-1])


def _statistics(y: np.ndarray, levels: np.ndarray) -> Dict[str, np.ndarray]:
    """
    Vegetarian share overall and per level.

    ``y`` may be a single outcome vector or a stack of replicates (one per
    row); the statistics are computed along the last axis.
    """
    y = np.atleast_2d(y)
    stats = {"overall": y.mean(axis=-1)}
    for level in pd.unique(levels):
        mask = levels == level
        stats[f"share[{level}]"] = y[:, mask].mean(axis=-1)
    return stats


def _observed(df: pd.DataFrame):
    y = df["vegetarian"].to_numpy(dtype=int)
    levels = df["flavor_profile"].astype(str).to_numpy()
    return y, levels


def prior_predictive_summary(
    idata_prior: az.InferenceData, df: pd.DataFrame, tail: float = 0.05
) -> pd.DataFrame:
    """
    What the priors alone say about the vegetarian share.

    Columns: observed value, quantiles of the simulated statistic and the
    fraction of simulated datasets with a share below ``tail`` or above
    ``1 - tail``. A large extreme fraction means the prior, pushed through the
    logistic link, expects near-certain outcomes.
    """
    y, levels = _observed(df)
    simulated = _statistics(_replicates(idata_prior, "prior_predictive"), levels)
    observed = _statistics(y, levels)

    rows = []
    for name, values in simulated.items():
        q05, q50, q95 = np.quantile(values, [0.05, 0.5, 0.95])
        rows.append(
            {
                "statistic": name,
                "observed": float(observed[name][0]),
                "sim_q05": float(q05),
                "sim_median": float(q50),
                "sim_q95": float(q95),
                "extreme_fraction": float(np.mean((values < tail) | (values > 1 - tail))),
            }
        )
    return pd.DataFrame(rows).set_index("statistic")


def posterior_predictive_check(
    idata_ppc: az.InferenceData,
    df: pd.DataFrame,
    interval: float = 0.94,
    alpha: float = 0.05,
) -> pd.DataFrame:
    """
    Compare replicated statistics with the observed ones.

    ``p_value`` is the posterior predictive p-value P(T(y_rep) >= T(y)).
    Values near 0 or 1 (outside ``[alpha, 1 - alpha]``) are flagged.
    """
    y, levels = _observed(df)
    simulated = _statistics(_replicates(idata_ppc, "posterior_predictive"), levels)
    observed = _statistics(y, levels)

    lower = (1 - interval) / 2
    rows = []
    for name, values in simulated.items():
        obs = float(observed[name][0])
        low, high = np.quantile(values, [lower, 1 - lower])
        p_value = float(np.mean(values >= obs))
        rows.append(
            {
                "statistic": name,
                "observed": obs,
                "rep_mean": float(values.mean()),
                "rep_low": float(low),
                "rep_high": float(high),
                "p_value": p_value,
                "flag": bool(p_value < alpha or p_value > 1 - alpha),
            }
        )
    return pd.DataFrame(rows).set_index("statistic")
