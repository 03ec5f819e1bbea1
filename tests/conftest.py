"""
Shared fixtures: a small recipe table shaped like the real dataset and
InferenceData objects built without sampling.
"""

import arviz as az
import numpy as np
import pandas as pd
import pytest

from flavordiet.dataset import clean_recipes
from flavordiet.utils import setup_plotting_backend

setup_plotting_backend()


def make_raw_recipes(counts=None) -> pd.DataFrame:
    """
    Build a raw recipe table from ``{flavor: (n_vegetarian, n_non_vegetarian)}``.

    Adds rows with missing codes the way the real file records them.
    """
    if counts is None:
        counts = {
            "spicy": (30, 10),
            "sweet": (18, 2),
            "bitter": (4, 0),
            "sour": (1, 0),
        }
    rows = []
    for flavor, (n_veg, n_non) in counts.items():
        rows += [{"flavor_profile": flavor, "diet": "vegetarian"}] * n_veg
        rows += [{"flavor_profile": flavor, "diet": "non vegetarian"}] * n_non
    rows += [{"flavor_profile": "-1", "diet": "vegetarian"}] * 3
    rows += [{"flavor_profile": "-1", "diet": "non vegetarian"}]
    df = pd.DataFrame(rows)
    df.insert(0, "name", [f"dish_{i}" for i in range(len(df))])
    df["course"] = "main course"
    df["region"] = "-1"
    return df


@pytest.fixture
def raw_recipes():
    return make_raw_recipes()


@pytest.fixture
def recipes(raw_recipes):
    data, _ = clean_recipes(raw_recipes)
    return data


@pytest.fixture
def unseparated_recipes():
    raw = make_raw_recipes(
        {"spicy": (30, 10), "sweet": (18, 2), "bitter": (3, 1)}
    )
    data, _ = clean_recipes(raw)
    return data


@pytest.fixture
def recipes_csv(tmp_path, raw_recipes):
    path = tmp_path / "indian_food.csv"
    raw_recipes.to_csv(path, index=False)
    return path


def make_posterior(
    p_level=(0.75, 0.9, 0.95),
    levels=("spicy", "sweet", "bitter"),
    chains=4,
    draws=500,
    noise=0.3,
    seed=0,
) -> az.InferenceData:
    """
    Posterior draws centered on the given per-level probabilities.

    The first level is the reference; ``beta`` holds the log odds ratios of
    the others against it.
    """
    rng = np.random.default_rng(seed)
    logits = np.log(np.asarray(p_level) / (1 - np.asarray(p_level)))
    level_logits = logits + noise * rng.standard_normal((chains, draws, len(levels)))
    intercept = level_logits[..., 0]
    beta = level_logits[..., 1:] - intercept[..., None]
    p = 1 / (1 + np.exp(-level_logits))
    return az.from_dict(
        posterior={"intercept": intercept, "beta": beta, "p_level": p},
        coords={"flavor": list(levels[1:]), "level": list(levels)},
        dims={"beta": ["flavor"], "p_level": ["level"]},
    )


@pytest.fixture
def posterior():
    return make_posterior()


def make_predictive(df: pd.DataFrame, group: str, probs: dict, n_rep=400, seed=1):
    """Replicated outcomes drawn with a fixed vegetarian probability per level."""
    rng = np.random.default_rng(seed)
    levels = df["flavor_profile"].astype(str).to_numpy()
    p = np.array([probs[level] for level in levels])
    y_rep = (rng.random((1, n_rep, len(df))) < p).astype(int)
    return az.from_dict(**{group: {"vegetarian": y_rep}})
