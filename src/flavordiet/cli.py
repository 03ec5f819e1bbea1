"""
Command-line interface for the flavor/diet analysis.

Provides commands for the full report, a data description, the classical
tests alone and a listing of the available prior sets.
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional


def _add_data_arguments(parser: argparse.ArgumentParser):
    parser.add_argument(
        "--data",
        dest="data_path",
        type=Path,
        help="Path to the recipe CSV (default: $FLAVORDIET_DATA or data/indian_food.csv)",
    )
    parser.add_argument(
        "--reference-level",
        help="Flavor level used as the baseline (default: spicy)",
    )
    parser.add_argument(
        "--drop-level",
        dest="drop_levels",
        action="append",
        help="Flavor level to drop before modeling; repeatable (default: sour)",
    )


def _config_from_args(args: argparse.Namespace):
    from .config import AnalysisConfig

    overrides = {
        key: getattr(args, key)
        for key in (
            "data_path",
            "output_dir",
            "reference_level",
            "drop_levels",
            "prior",
            "draws",
            "tune",
            "chains",
            "target_accept",
            "random_seed",
            "hdi_prob",
            "permutation_resamples",
        )
        if hasattr(args, key)
    }
    if overrides.get("drop_levels") is not None:
        overrides["drop_levels"] = tuple(overrides["drop_levels"])
    if getattr(args, "no_plots", False):
        overrides["make_plots"] = False
    if getattr(args, "skip_sensitivity", False):
        overrides["run_sensitivity"] = False
    if getattr(args, "sensitivity_priors", None):
        overrides["sensitivity_priors"] = tuple(args.sensitivity_priors)
    return AnalysisConfig.from_env(**overrides)


def run_report(args: argparse.Namespace):
    """Run the full Bayesian and classical analysis and write the report."""
    from .report import run_pipeline
    from .utils.sampling import setup_plotting_backend

    setup_plotting_backend()
    config = _config_from_args(args)
    result = run_pipeline(config)

    print("\nVegetarian probability by flavor profile:")
    print(result.probabilities.to_string(float_format=lambda v: f"{v:.3f}"))
    if result.convergence is not None and not result.convergence.ok:
        print("\nSampler diagnostics raised concerns; see the report.")
    print(f"\n✓ Report written to {config.output_dir / 'report.md'}")


def run_describe(args: argparse.Namespace):
    """Print the cleaning summary and the flavor x diet table."""
    from .report import describe_data, load_data

    result = describe_data(load_data(_config_from_args(args)))

    print("Cleaning summary")
    print("=" * 30)
    print(result.cleaning.as_frame().to_string(index=False))
    print("\nFlavor x diet")
    print("=" * 30)
    print(result.table.to_string())
    print()
    print(result.rates.to_string(float_format=lambda v: f"{v:.3f}"))
    if result.separated_levels:
        print(f"\nLevels with no variation in diet: {', '.join(result.separated_levels)}")


def run_classical(args: argparse.Namespace):
    """Chi-squared tests and maximum-likelihood logistic regression only."""
    from .report import describe_data, load_data, run_frequentist_analysis

    result = run_frequentist_analysis(describe_data(load_data(_config_from_args(args))))
    chi = result.chi_squared

    print("Tests of independence")
    print("=" * 30)
    print(chi.as_frame().to_string(float_format=lambda v: f"{v:.4g}"))
    print(f"Cramér's V: {chi.cramers_v:.3f}")
    for message in chi.warnings:
        print(f"Warning: {message}")

    print("\nMaximum-likelihood logistic regression")
    print("=" * 30)
    if result.mle.error:
        print(f"Fit failed: {result.mle.error}")
    else:
        print(result.mle.params.to_string(float_format=lambda v: f"{v:.3f}"))
    if result.mle.unstable_levels:
        print(f"Unstable estimates: {', '.join(result.mle.unstable_levels)}")

    print("\nL2-penalized logistic regression")
    print("=" * 30)
    print(result.penalized.to_string(float_format=lambda v: f"{v:.3f}"))


def run_list_priors(args: argparse.Namespace):
    """Show the registered prior sets."""
    from .priors import PRIOR_SETS, DEFAULT_PRIOR

    for name, spec in PRIOR_SETS.items():
        marker = " (default)" if name == DEFAULT_PRIOR else ""
        print(f"{name}{marker}")
        print(f"  {spec.label()}")
        print(f"  {spec.description}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="flavordiet: Bayesian analysis of flavor profile vs vegetarian dishes",
        prog="flavordiet",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    report_parser = subparsers.add_parser(
        "report", help="Run the full analysis and write the report"
    )
    _add_data_arguments(report_parser)
    report_parser.add_argument(
        "--output-dir", type=Path, help="Directory for the report, tables and figures"
    )
    report_parser.add_argument("--prior", help="Prior set for the main fit")
    report_parser.add_argument(
        "--sensitivity-priors",
        nargs="+",
        help="Prior sets for the sensitivity analysis (default: all)",
    )
    report_parser.add_argument("--draws", type=int, help="Posterior draws per chain")
    report_parser.add_argument("--tune", type=int, help="Tuning steps per chain")
    report_parser.add_argument("--chains", type=int, help="Number of chains")
    report_parser.add_argument("--target-accept", type=float, help="NUTS target acceptance")
    report_parser.add_argument("--seed", dest="random_seed", type=int, help="Random seed")
    report_parser.add_argument("--hdi-prob", type=float, help="HDI probability mass")
    report_parser.add_argument(
        "--permutation-resamples", type=int, help="Resamples for the permutation test"
    )
    report_parser.add_argument("--no-plots", action="store_true", help="Skip figures")
    report_parser.add_argument(
        "--skip-sensitivity", action="store_true", help="Skip the prior sensitivity refits"
    )
    report_parser.set_defaults(handler=run_report)

    describe_parser = subparsers.add_parser(
        "describe", help="Show the cleaned data and the flavor x diet table"
    )
    _add_data_arguments(describe_parser)
    describe_parser.set_defaults(handler=run_describe)

    classical_parser = subparsers.add_parser(
        "classical", help="Chi-squared test and maximum-likelihood logistic regression"
    )
    _add_data_arguments(classical_parser)
    classical_parser.add_argument(
        "--permutation-resamples", type=int, help="Resamples for the permutation test"
    )
    classical_parser.add_argument("--seed", dest="random_seed", type=int, help="Random seed")
    classical_parser.set_defaults(handler=run_classical)

    priors_parser = subparsers.add_parser("priors", help="List the available prior sets")
    priors_parser.set_defaults(handler=run_list_priors)

    return parser


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not getattr(args, "handler", None):
        parser.print_help()
        return

    try:
        args.handler(args)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
