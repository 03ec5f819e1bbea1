"""
Analysis settings shared by the pipeline and the command line.
"""

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Optional, Tuple

from .dataset import DEFAULT_DROP_LEVELS
from .priors import DEFAULT_PRIOR, list_priors

ENV_DATA_PATH = "FLAVORDIET_DATA"
ENV_OUTPUT_DIR = "FLAVORDIET_OUTPUT_DIR"
ENV_SEED = "FLAVORDIET_SEED"


@dataclass
class AnalysisConfig:
    """Knobs for data cleaning, sampling and reporting."""

    data_path: Optional[Path] = None
    output_dir: Path = Path("results")
    reference_level: Optional[str] = "spicy"
    drop_levels: Tuple[str, ...] = DEFAULT_DROP_LEVELS

    # Sampler
    draws: int = 2000
    tune: int = 1000
    chains: int = 4
    target_accept: float = 0.9
    random_seed: int = 42

    # Summaries
    hdi_prob: float = 0.94
    prior: str = DEFAULT_PRIOR
    sensitivity_priors: Tuple[str, ...] = field(
        default_factory=lambda: tuple(list_priors())
    )
    run_sensitivity: bool = True
    predictive_draws: int = 1000
    permutation_resamples: int = 5000
    make_plots: bool = True

    @classmethod
    def from_env(cls, **overrides) -> "AnalysisConfig":
        """
        Build a config from environment variables, then explicit overrides.

        Overrides set to None are ignored, so argparse namespaces can be
        passed through without clobbering environment values.
        """
        values = {}
        if os.environ.get(ENV_DATA_PATH):
            values["data_path"] = Path(os.environ[ENV_DATA_PATH])
        if os.environ.get(ENV_OUTPUT_DIR):
            values["output_dir"] = Path(os.environ[ENV_OUTPUT_DIR])
        if os.environ.get(ENV_SEED):
            try:
                values["random_seed"] = int(os.environ[ENV_SEED])
            except ValueError as e:
                raise ValueError(
                    f"{ENV_SEED} must be an integer, got {os.environ[ENV_SEED]!r}"
                ) from e

        known = {f.name for f in fields(cls)}
        for key, value in overrides.items():
            if key not in known:
                raise ValueError(f"Unknown configuration option: {key}")
            if value is not None:
                values[key] = value

        for key in ("data_path", "output_dir"):
            if key in values and values[key] is not None:
                values[key] = Path(values[key])

        config = cls(**values)
        config.validate()
        return config

    def validate(self) -> "AnalysisConfig":
        for name in ("draws", "tune", "chains", "predictive_draws"):
            value = getattr(self, name)
            if name == "tune":
                if value < 0:
                    raise ValueError(f"tune must be non-negative, got {value}")
            elif value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")
        if not 0 < self.target_accept < 1:
            raise ValueError(
                f"target_accept must be in (0, 1), got {self.target_accept}"
            )
        if not 0 < self.hdi_prob < 1:
            raise ValueError(f"hdi_prob must be in (0, 1), got {self.hdi_prob}")
        if self.permutation_resamples < 0:
            raise ValueError("permutation_resamples must be non-negative")

        available = list_priors()
        for name in (self.prior, *self.sensitivity_priors):
            if name not in available:
                raise ValueError(
                    f"Unknown prior set '{name}'. Available: {available}"
                )
        return self

    def with_prior(self, prior: str) -> "AnalysisConfig":
        return replace(self, prior=prior)
