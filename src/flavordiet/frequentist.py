"""
Classical counterparts to the Bayesian model.

- Pearson chi-squared and likelihood-ratio (G) tests of independence between
  flavor profile and diet, with a permutation p-value for sparse tables.
- Maximum-likelihood logistic regression (statsmodels), with detection of
  quasi-complete separation.
- L2-penalized logistic regression (scikit-learn), which keeps estimates
  finite when a level perfectly predicts the outcome.
"""

import re
import warnings
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np
import pandas as pd
import statsmodels.formula.api as smf
from scipy import stats
from scipy.stats.contingency import association
from sklearn.linear_model import LogisticRegression
from statsmodels.tools.sm_exceptions import PerfectSeparationError

from .dataset import find_separated_levels, reference_level_default
from .models import design_matrix

# Wald standard errors above this on the log-odds scale indicate a
# coefficient running off to infinity
SEPARATION_SE = 10.0
SPARSE_CELL_SHARE = 0.2


@dataclass
class ChiSquaredResult:
    statistic: float
    p_value: float
    dof: int
    g_statistic: float
    g_p_value: float
    cramers_v: float
    expected: pd.DataFrame
    sparse_share: float
    permutation_p_value: Optional[float] = None
    warnings: List[str] = field(default_factory=list)

    def as_frame(self) -> pd.DataFrame:
        rows = [
            {"test": "Pearson chi-squared", "statistic": self.statistic, "dof": self.dof, "p_value": self.p_value},
            {"test": "Likelihood-ratio G", "statistic": self.g_statistic, "dof": self.dof, "p_value": self.g_p_value},
        ]
        if self.permutation_p_value is not None:
            rows.append(
                {"test": "Permutation (Pearson)", "statistic": self.statistic, "dof": self.dof, "p_value": self.permutation_p_value}
            )
        return pd.DataFrame(rows).set_index("test")


def chi_squared_test(table: pd.DataFrame) -> ChiSquaredResult:
    """
    Test independence of flavor and diet on a contingency table.

    Args:
        table: Counts with flavor levels as rows and diet as columns
            (see ``dataset.contingency_table``).
    """
    observed = np.asarray(table, dtype=float)
    if observed.shape[0] < 2 or observed.shape[1] < 2:
        raise ValueError(f"Need at least a 2x2 table, got shape {observed.shape}")
    if (observed.sum(axis=0) == 0).any() or (observed.sum(axis=1) == 0).any():
        raise ValueError("Contingency table has an empty row or column")

    chi2, p, dof, expected = stats.chi2_contingency(observed, correction=False)
    g, g_p, _, _ = stats.chi2_contingency(
        observed, correction=False, lambda_="log-likelihood"
    )
    cramers_v = association(observed.astype(int), method="cramer", correction=False)

    sparse_share = float(np.mean(expected < 5))
    notes = []
    if sparse_share > SPARSE_CELL_SHARE:
        notes.append(
            f"{sparse_share:.0%} of cells have expected count below 5; "
            "the chi-squared approximation is unreliable"
        )

    return ChiSquaredResult(
        statistic=float(chi2),
        p_value=float(p),
        dof=int(dof),
        g_statistic=float(g),
        g_p_value=float(g_p),
        cramers_v=float(cramers_v),
        expected=pd.DataFrame(expected, index=table.index, columns=table.columns),
        sparse_share=sparse_share,
        warnings=notes,
    )


def _pearson_statistic(counts: np.ndarray) -> float:
    expected = counts.sum(axis=1, keepdims=True) * counts.sum(axis=0, keepdims=True) / counts.sum()
    return float(((counts - expected) ** 2 / expected).sum())


def permutation_chi_squared(
    df: pd.DataFrame, n_resamples: int = 5000, seed: Optional[int] = None
) -> float:
    """
    Monte Carlo p-value of the Pearson statistic under random relabeling.

    Row and column totals are fixed by permuting the outcome, so the
    reference distribution does not rely on large expected counts.
    """
    codes, _ = pd.factorize(df["flavor_profile"].astype(str))
    y = df["vegetarian"].to_numpy(dtype=int)
    n_levels = codes.max() + 1

    def statistic(outcome):
        counts = np.bincount(codes * 2 + outcome, minlength=n_levels * 2)
        return _pearson_statistic(counts.reshape(n_levels, 2).astype(float))

    observed = statistic(y)
    rng = np.random.default_rng(seed)
    exceed = sum(statistic(rng.permutation(y)) >= observed - 1e-12 for _ in range(n_resamples))
    return (exceed + 1) / (n_resamples + 1)


@dataclass
class MLEResult:
    """Maximum-likelihood logistic regression on the treatment-coded design."""

    reference_level: str
    params: pd.DataFrame
    converged: bool
    separated_levels: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    error: Optional[str] = None
    llf: float = float("nan")
    llr_p_value: float = float("nan")

    @property
    def unstable_levels(self) -> List[str]:
        """Levels whose estimate is unusable (separated or with exploding SE)."""
        if self.params.empty:
            return list(self.separated_levels)
        levels = self.params.drop(index="Intercept", errors="ignore")
        huge = levels.index[levels["se"] > SEPARATION_SE].tolist()
        return sorted(set(huge) | set(self.separated_levels))


_LEVEL_PATTERN = re.compile(r"\[T\.(.+)\]$")


def _level_name(term: str) -> str:
    match = _LEVEL_PATTERN.search(term)
    return match.group(1) if match else term


def fit_mle_logistic(
    df: pd.DataFrame, reference_level: Optional[str] = None, maxiter: int = 100
) -> MLEResult:
    """
    Fit ``vegetarian ~ C(flavor_profile)`` by maximum likelihood.

    Separation is expected for levels where every dish is vegetarian; it is
    reported on the result instead of aborting the fit. A singular Hessian
    yields an unconverged result carrying the error message.
    """
    if reference_level is None:
        reference_level = reference_level_default(df)
    data = pd.DataFrame(
        {
            "vegetarian": df["vegetarian"].to_numpy(dtype=int),
            "flavor": df["flavor_profile"].astype(str).to_numpy(),
        }
    )
    formula = f"vegetarian ~ C(flavor, Treatment(reference='{reference_level}'))"
    separated = find_separated_levels(df)
    notes = [
        f"level '{level}' has no variation in diet (quasi-complete separation)"
        for level in separated
    ]

    empty = pd.DataFrame(columns=["coef", "se", "ci_low", "ci_high", "p_value"])
    try:
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            fit = smf.logit(formula, data=data).fit(disp=0, maxiter=maxiter)
    except (PerfectSeparationError, np.linalg.LinAlgError) as e:
        return MLEResult(
            reference_level=reference_level,
            params=empty,
            converged=False,
            separated_levels=separated,
            warnings=notes,
            error=f"{type(e).__name__}: {e}",
        )

    for w in caught:
        message = f"{w.category.__name__}: {w.message}"
        if message not in notes:
            notes.append(message)

    with np.errstate(all="ignore"):
        ci = fit.conf_int()
        params = pd.DataFrame(
            {
                "coef": fit.params,
                "se": fit.bse,
                "ci_low": ci[0],
                "ci_high": ci[1],
                "p_value": fit.pvalues,
            }
        )
    params.index = [_level_name(term) for term in params.index]

    return MLEResult(
        reference_level=reference_level,
        params=params,
        converged=bool(fit.mle_retvals.get("converged", False)),
        separated_levels=separated,
        warnings=notes,
        llf=float(fit.llf),
        llr_p_value=float(fit.llr_pvalue),
    )


def fit_penalized_logistic(
    df: pd.DataFrame, reference_level: Optional[str] = None, C: float = 1.0
) -> pd.Series:
    """
    L2-penalized logistic regression on the same design.

    Returns the intercept and per-level log odds ratios. Smaller ``C`` means
    stronger shrinkage; a finite estimate exists even under separation.
    """
    if C <= 0:
        raise ValueError(f"C must be positive, got {C}")
    X, contrasts = design_matrix(df, reference_level)
    y = df["vegetarian"].to_numpy(dtype=int)
    model = LogisticRegression(C=C, max_iter=5000)
    model.fit(X, y)
    return pd.Series(
        [float(model.intercept_[0])] + model.coef_[0].tolist(),
        index=["Intercept"] + contrasts,
        name="penalized_coef",
    )


def compare_estimates(
    bayes_odds_ratios: pd.DataFrame,
    mle: MLEResult,
    penalized: Optional[pd.Series] = None,
) -> pd.DataFrame:
    """
    Log odds ratios per level: Bayesian posterior vs maximum likelihood.

    Args:
        bayes_odds_ratios: Output of ``models.odds_ratios``.
        mle: Output of ``fit_mle_logistic``.
        penalized: Optional output of ``fit_penalized_logistic``.
    """
    table = bayes_odds_ratios[["log_or_mean", "log_or_hdi_low", "log_or_hdi_high"]].rename(
        columns={
            "log_or_mean": "bayes_mean",
            "log_or_hdi_low": "bayes_hdi_low",
            "log_or_hdi_high": "bayes_hdi_high",
        }
    )
    if not mle.params.empty:
        mle_part = mle.params[["coef", "se", "ci_low", "ci_high"]].rename(
            columns={
                "coef": "mle_coef",
                "se": "mle_se",
                "ci_low": "mle_ci_low",
                "ci_high": "mle_ci_high",
            }
        )
        table = table.join(mle_part, how="left")
    if penalized is not None:
        table = table.join(penalized, how="left")
    table["separated"] = table.index.isin(mle.separated_levels)
    return table


def summarize_classical(chi: ChiSquaredResult, mle: MLEResult) -> Dict[str, float]:
    """Flatten the headline numbers for the CSV output."""
    return {
        "chi2": chi.statistic,
        "chi2_p": chi.p_value,
        "g": chi.g_statistic,
        "g_p": chi.g_p_value,
        "cramers_v": chi.cramers_v,
        "permutation_p": chi.permutation_p_value if chi.permutation_p_value is not None else float("nan"),
        "mle_converged": float(mle.converged),
        "mle_llr_p": mle.llr_p_value,
    }
