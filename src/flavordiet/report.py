"""
End-to-end analysis and the rendered report.

Each stage takes an ``AnalysisResult`` and returns it with more fields
filled in, so the workflow can be run piecewise or all at once with
``run_pipeline``.
"""

import os
import sys
from dataclasses import replace
from typing import Dict, Optional, Sequence, Union

import arviz as az
import matplotlib.pyplot as plt
import pandas as pd

from .checks import posterior_predictive_check, prior_predictive_summary
from .config import AnalysisConfig
from .data import get_default_dataset
from .dataset import (
    CleaningReport,
    clean_recipes,
    contingency_table,
    find_separated_levels,
    group_rates,
    load_recipes,
    reference_level_default,
)
from .frequentist import (
    ChiSquaredResult,
    MLEResult,
    chi_squared_test,
    compare_estimates,
    fit_mle_logistic,
    fit_penalized_logistic,
    permutation_chi_squared,
    summarize_classical,
)
from .models import (
    ConvergenceReport,
    build_model,
    check_convergence,
    fit_model,
    level_contrasts,
    level_probabilities,
    odds_ratios,
    sample_posterior_predictive,
    sample_prior_predictive,
    summarize_posterior,
)
from .priors import extreme_mass, get_prior, implied_probability_draws
from .sensitivity import SensitivityResult, run_sensitivity


# Data structure to pass between stages
class AnalysisResult:
    def __init__(self, config: AnalysisConfig, data: pd.DataFrame = None, cleaning: CleaningReport = None):
        self.config = config
        self.data = data
        self.cleaning = cleaning
        self.table: Optional[pd.DataFrame] = None
        self.rates: Optional[pd.DataFrame] = None
        self.separated_levels = []

        self.model = None
        self.idata: Optional[az.InferenceData] = None
        self.idata_prior: Optional[az.InferenceData] = None
        self.idata_ppc: Optional[az.InferenceData] = None
        self.convergence: Optional[ConvergenceReport] = None
        self.summary: Optional[pd.DataFrame] = None
        self.probabilities: Optional[pd.DataFrame] = None
        self.odds_ratios: Optional[pd.DataFrame] = None
        self.contrasts: Optional[pd.DataFrame] = None

        self.prior_check: Optional[pd.DataFrame] = None
        self.posterior_check: Optional[pd.DataFrame] = None
        self.sensitivity: Optional[SensitivityResult] = None

        self.chi_squared: Optional[ChiSquaredResult] = None
        self.mle: Optional[MLEResult] = None
        self.penalized: Optional[pd.Series] = None
        self.comparison: Optional[pd.DataFrame] = None

        self.figures: Dict[str, str] = {}


def load_data(config: AnalysisConfig) -> AnalysisResult:
    """Load and clean the dataset named by ``config``."""
    path = config.data_path if config.data_path is not None else get_default_dataset()
    print(f"Loading recipes from {path}", file=sys.stderr)
    raw = load_recipes(path)
    data, cleaning = clean_recipes(raw, drop_levels=config.drop_levels)
    print(
        f"Kept {cleaning.n_clean} of {cleaning.n_raw} dishes after cleaning",
        file=sys.stderr,
    )
    if config.reference_level is None:
        config = replace(config, reference_level=reference_level_default(data))
    levels = [str(level) for level in data["flavor_profile"].cat.categories]
    if config.reference_level not in levels:
        raise ValueError(
            f"Reference level '{config.reference_level}' not found in flavor levels {levels}"
        )
    return AnalysisResult(config, data, cleaning)


def describe_data(result: AnalysisResult) -> AnalysisResult:
    """Contingency table, per-level rates and separation check."""
    result.table = contingency_table(result.data)
    result.rates = group_rates(result.data)
    result.separated_levels = find_separated_levels(result.data)
    for level in result.separated_levels:
        print(
            f"Warning: flavor level '{level}' has no variation in diet; "
            "expect quasi-complete separation",
            file=sys.stderr,
        )
    return result


def run_bayesian_analysis(result: AnalysisResult) -> AnalysisResult:
    """Build the model, sample prior predictive and posterior, summarize."""
    config = result.config
    prior = get_prior(config.prior)
    result.model = build_model(result.data, prior, config.reference_level)

    print("Sampling prior predictive...", file=sys.stderr)
    result.idata_prior = sample_prior_predictive(
        result.model, draws=config.predictive_draws, random_seed=config.random_seed
    )

    print(
        f"Sampling posterior ({config.chains} chains x {config.draws} draws, prior '{prior.name}')...",
        file=sys.stderr,
    )
    result.idata = fit_model(
        result.model,
        draws=config.draws,
        tune=config.tune,
        chains=config.chains,
        target_accept=config.target_accept,
        random_seed=config.random_seed,
    )
    result.convergence = check_convergence(result.idata)
    result.summary = summarize_posterior(result.idata, config.hdi_prob)
    result.probabilities = level_probabilities(result.idata, config.hdi_prob)
    result.odds_ratios = odds_ratios(result.idata, config.hdi_prob)
    result.contrasts = level_contrasts(result.idata)
    return result


def run_predictive_checks(result: AnalysisResult) -> AnalysisResult:
    """Prior and posterior predictive checks against the observed data."""
    if result.idata is None or result.idata_prior is None:
        raise RuntimeError("Run run_bayesian_analysis() before the predictive checks.")
    result.prior_check = prior_predictive_summary(result.idata_prior, result.data)
    result.idata_ppc = sample_posterior_predictive(
        result.model, result.idata, random_seed=result.config.random_seed
    )
    result.posterior_check = posterior_predictive_check(
        result.idata_ppc, result.data, interval=result.config.hdi_prob
    )
    return result


def run_sensitivity_analysis(result: AnalysisResult) -> AnalysisResult:
    """Refit under every configured prior set, reusing the main fit for its own prior."""
    if result.data is None:
        raise RuntimeError("Load data before running the sensitivity analysis.")
    fitted = {result.config.prior: result.idata} if result.idata is not None else None
    result.sensitivity = run_sensitivity(result.data, None, result.config, fitted=fitted)
    return result


def run_frequentist_analysis(result: AnalysisResult) -> AnalysisResult:
    """Chi-squared tests, MLE and penalized logistic regression."""
    config = result.config
    if result.table is None:
        result = describe_data(result)
    result.chi_squared = chi_squared_test(result.table)
    if config.permutation_resamples:
        result.chi_squared.permutation_p_value = permutation_chi_squared(
            result.data, n_resamples=config.permutation_resamples, seed=config.random_seed
        )
    result.mle = fit_mle_logistic(result.data, config.reference_level)
    for message in result.mle.warnings:
        print(f"Warning: MLE: {message}", file=sys.stderr)
    result.penalized = fit_penalized_logistic(result.data, config.reference_level)
    if result.odds_ratios is not None:
        result.comparison = compare_estimates(result.odds_ratios, result.mle, result.penalized)
    return result


def make_figures(result: AnalysisResult, output_dir: str) -> AnalysisResult:
    """Render every available figure into ``output_dir``."""
    from . import visualization as viz

    os.makedirs(output_dir, exist_ok=True)

    def save(name, make):
        path = os.path.join(output_dir, f"{name}.png")
        fig = make(path)
        plt.close(fig)
        result.figures[name] = path

    save("observed_rates", lambda p: viz.plot_observed_rates(result.data, save_path=p))
    if result.idata_prior is not None:
        save("prior_predictive", lambda p: viz.plot_prior_predictive(result.idata_prior, result.data, save_path=p))
    if result.idata is not None:
        save("posterior_probabilities", lambda p: viz.plot_posterior_probabilities(result.idata, save_path=p))
        save("trace", lambda p: viz.plot_trace(result.idata, save_path=p))
    if result.posterior_check is not None:
        save("posterior_predictive", lambda p: viz.plot_ppc(result.posterior_check, save_path=p))
    if result.sensitivity is not None:
        save("sensitivity", lambda p: viz.plot_sensitivity(result.sensitivity.table, save_path=p))
    return result


def _md(df: pd.DataFrame, floatfmt: Union[str, Sequence[str]] = ".3f") -> str:
    return df.to_markdown(floatfmt=floatfmt)


def _image(result: AnalysisResult, name: str, caption: str) -> str:
    if name not in result.figures:
        return ""
    return f"![{caption}]({os.path.basename(result.figures[name])})\n"


def render_report(result: AnalysisResult) -> str:
    """
    Assemble the Markdown report from whatever stages have run.

    Sections for stages that were skipped are left out.
    """
    config = result.config
    lines = ["# Flavor profile and vegetarian dishes", ""]

    if result.cleaning is not None:
        c = result.cleaning
        dropped = [f"{n} '{level}' dishes were dropped" for level, n in c.n_dropped_levels.items() if n]
        sentence = (
            f"{c.n_raw} dishes were loaded. {c.n_missing_flavor} had no flavor profile and "
            f"{c.n_missing_diet} had no diet recorded"
        )
        if dropped:
            sentence += "; " + ", ".join(dropped)
        lines += [
            "## Data",
            "",
            sentence + f". The analysis uses {c.n_clean} dishes.",
            "",
        ]
    if result.table is not None:
        rates_fmt = ("",) + tuple(".3f" if column.startswith("prop") else ".0f" for column in result.rates.columns)
        lines += [_md(result.table, ".0f"), "", _md(result.rates, rates_fmt), ""]
        lines.append(_image(result, "observed_rates", "Observed vegetarian share"))
        if result.separated_levels:
            lines += [
                "Every dish in "
                + ", ".join(f"'{level}'" for level in result.separated_levels)
                + " has the same diet. This is quasi-complete separation: the "
                "maximum-likelihood estimate for these levels does not exist, while "
                "the Bayesian estimate is finite and governed by the prior.",
                "",
            ]

    if result.idata is not None:
        prior = get_prior(config.prior)
        lines += [
            "## Bayesian logistic regression",
            "",
            f"Model: logit P(vegetarian) = intercept + flavor effect, treatment coded "
            f"against '{config.reference_level}'. Prior: {prior.label()}.",
            f"Sampler: NUTS, {config.chains} chains x {config.draws} draws after {config.tune} tuning steps.",
            "",
        ]
        conv = result.convergence
        if conv is not None and conv.ok:
            lines += [
                f"No divergences; max R-hat {conv.max_rhat:.3f}, minimum bulk ESS {conv.min_ess_bulk:.0f}.",
                "",
            ]
        elif conv is not None:
            lines += ["Sampler diagnostics raised concerns:", ""]
            lines += [f"- {message}" for message in conv.warnings]
            lines.append("")
        lines += [_md(result.summary), ""]
        lines += ["### Vegetarian probability by flavor", "", _md(result.probabilities), ""]
        lines.append(_image(result, "posterior_probabilities", "Posterior probabilities"))
        lines += ["### Odds ratios against the reference level", "", _md(result.odds_ratios), ""]
        lines += ["### Pairwise comparisons", "", result.contrasts.to_markdown(index=False, floatfmt=".3f"), ""]
        lines.append(_image(result, "trace", "Trace plot"))

    if result.prior_check is not None:
        intercept_mass = extreme_mass(
            implied_probability_draws(get_prior(config.prior), seed=config.random_seed)
        )
        lines += [
            "## Prior predictive check",
            "",
            f"The intercept prior alone puts {intercept_mass:.0%} of its mass on "
            "probabilities below 5% or above 95%.",
            "",
            _md(result.prior_check),
            "",
            _image(result, "prior_predictive", "Prior predictive"),
        ]
    if result.posterior_check is not None:
        flagged = result.posterior_check.index[result.posterior_check["flag"]].tolist()
        verdict = (
            "All test statistics fall within the replicated range."
            if not flagged
            else "Statistics with extreme posterior predictive p-values: " + ", ".join(flagged) + "."
        )
        lines += [
            "## Posterior predictive check",
            "",
            verdict,
            "",
            _md(result.posterior_check),
            "",
            _image(result, "posterior_predictive", "Posterior predictive"),
        ]

    if result.sensitivity is not None:
        spread = result.sensitivity.spread()
        sensitive = spread.index[spread["sensitive"]].tolist()
        verdict = (
            "Posterior means on the probability scale move little across prior sets."
            if not sensitive
            else "Prior-sensitive parameters: " + ", ".join(sensitive) + "."
        )
        lines += [
            "## Sensitivity to the prior",
            "",
            verdict,
            "",
            _md(result.sensitivity.wide()),
            "",
            _md(spread),
            "",
            _image(result, "sensitivity", "Sensitivity"),
        ]

    if result.chi_squared is not None:
        chi = result.chi_squared
        lines += [
            "## Classical comparison",
            "",
            _md(chi.as_frame(), ".4g"),
            "",
            f"Cramér's V = {chi.cramers_v:.3f}.",
            "",
        ]
        lines += [f"- {message}" for message in chi.warnings]
        if chi.warnings:
            lines.append("")
    if result.mle is not None:
        mle = result.mle
        if mle.error:
            lines += [f"The maximum-likelihood fit failed: {mle.error}.", ""]
        else:
            status = "converged" if mle.converged else "did not converge"
            lines += [f"Maximum-likelihood logistic regression {status}.", "", _md(mle.params), ""]
        unstable = mle.unstable_levels
        if unstable:
            lines += [
                "Unusable maximum-likelihood estimates for: "
                + ", ".join(unstable)
                + ". Their standard errors explode because the estimate runs to infinity.",
                "",
            ]
    if result.comparison is not None:
        lines += ["### Bayesian vs classical log odds ratios", "", _md(result.comparison), ""]

    return "\n".join(line for line in lines if line is not None)


def save_results(result: AnalysisResult, output_dir: str) -> Dict[str, str]:
    """
    Write the report, tables and posterior trace.

    Returns:
        Dictionary of file paths, keyed by artifact name.
    """
    os.makedirs(output_dir, exist_ok=True)
    files = {}

    def write_csv(name, frame, index=True):
        if frame is None:
            return
        path = os.path.join(output_dir, f"{name}.csv")
        frame.to_csv(path, index=index)
        files[name] = path

    write_csv("contingency_table", result.table)
    write_csv("group_rates", result.rates)
    write_csv("posterior_summary", result.summary)
    write_csv("level_probabilities", result.probabilities)
    write_csv("odds_ratios", result.odds_ratios)
    write_csv("level_contrasts", result.contrasts, index=False)
    write_csv("prior_predictive_check", result.prior_check)
    write_csv("posterior_predictive_check", result.posterior_check)
    write_csv("estimate_comparison", result.comparison)
    if result.sensitivity is not None:
        write_csv("sensitivity", result.sensitivity.table, index=False)
    if result.mle is not None:
        write_csv("mle_coefficients", result.mle.params)
    if result.chi_squared is not None and result.mle is not None:
        classical = summarize_classical(result.chi_squared, result.mle)
        write_csv("classical_summary", pd.Series(classical, name="value").to_frame())

    if result.idata is not None:
        trace_path = os.path.join(output_dir, "posterior.nc")
        result.idata.to_netcdf(trace_path)
        files["posterior"] = trace_path

    report_path = os.path.join(output_dir, "report.md")
    with open(report_path, "w") as f:
        f.write(render_report(result))
    files["report"] = report_path
    files.update({f"figure_{name}": path for name, path in result.figures.items()})
    return files


def run_pipeline(config: Optional[AnalysisConfig] = None) -> AnalysisResult:
    """
    Run the complete analysis and write it to ``config.output_dir``.

    Parameters:
    -----------
    config : AnalysisConfig, optional
        Settings; defaults to ``AnalysisConfig.from_env()``.

    Returns:
    --------
    AnalysisResult
        Container with every stage's output.
    """
    config = config or AnalysisConfig.from_env()
    config.validate()

    stages = [describe_data, run_bayesian_analysis, run_predictive_checks]
    if config.run_sensitivity:
        stages.append(run_sensitivity_analysis)
    stages.append(run_frequentist_analysis)

    result = pipe(load_data(config), *stages)

    output_dir = str(config.output_dir)
    if config.make_plots:
        make_figures(result, output_dir)
    files = save_results(result, output_dir)
    print(f"Report written to {files['report']}", file=sys.stderr)
    return result


def pipe(data, *functions):
    """Apply ``functions`` in order, feeding each the previous result."""
    result = data
    for func in functions:
        result = func(result)
    return result
