"""
Loading and cleaning of the recipe dataset.

The raw file uses ``-1`` as its missing-value code. Cleaning drops rows whose
flavor profile or diet is missing, removes the negligible ``sour`` category and
recodes diet into a binary ``vegetarian`` indicator (1 = vegetarian).
"""

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Tuple, Union

import numpy as np
import pandas as pd

MISSING_CODE = "-1"
FLAVOR_LEVELS = ("sweet", "spicy", "bitter", "sour")
DEFAULT_DROP_LEVELS = ("sour",)
REQUIRED_COLUMNS = ("name", "diet", "flavor_profile")

VEGETARIAN = "vegetarian"
NON_VEGETARIAN = "non vegetarian"
DIET_CODES = {
    VEGETARIAN: 1,
    NON_VEGETARIAN: 0,
    "non-vegetarian": 0,
}


@dataclass
class CleaningReport:
    """Row counts through each cleaning step."""

    n_raw: int = 0
    n_missing_flavor: int = 0
    n_missing_diet: int = 0
    n_dropped_levels: Dict[str, int] = field(default_factory=dict)
    n_clean: int = 0

    @property
    def n_removed(self) -> int:
        return self.n_raw - self.n_clean

    def as_frame(self) -> pd.DataFrame:
        rows = [
            {"step": "raw rows", "rows": self.n_raw},
            {"step": "missing flavor_profile", "rows": -self.n_missing_flavor},
            {"step": "missing diet", "rows": -self.n_missing_diet},
        ]
        for level, count in self.n_dropped_levels.items():
            rows.append({"step": f"dropped level '{level}'", "rows": -count})
        rows.append({"step": "clean rows", "rows": self.n_clean})
        return pd.DataFrame(rows)


def load_recipes(path: Union[str, Path]) -> pd.DataFrame:
    """
    Load the raw recipe table from a CSV file.

    Args:
        path: Path to the CSV file.

    Returns:
        The raw DataFrame, with the required columns present.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If any of the required columns is missing.
    """
    try:
        df = pd.read_csv(path)
    except FileNotFoundError:
        print(f"Error: The file was not found at {path}", file=sys.stderr)
        raise

    missing = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if missing:
        raise ValueError(
            f"Dataset is missing required columns: {missing}. "
            f"Found: {df.columns.tolist()}"
        )
    return df


def _normalize(series: pd.Series, missing_code: str) -> pd.Series:
    """Lowercase and strip strings, mapping the missing code and blanks to NaN."""
    values = series.astype("string").str.strip().str.lower()
    values = values.mask(values.isin([missing_code, f"{missing_code}.0", "", "nan"]))
    return values


def recode_diet(diet: pd.Series) -> pd.Series:
    """
    Map diet labels to the binary indicator (1 = vegetarian, 0 = non vegetarian).

    Raises:
        ValueError: If a label is neither vegetarian nor non vegetarian.
    """
    labels = diet.astype("string").str.strip().str.lower()
    unknown = sorted(set(labels.dropna()) - set(DIET_CODES))
    if unknown:
        raise ValueError(f"Unknown diet values: {unknown}")
    return labels.map(DIET_CODES).astype(int)


def clean_recipes(
    df: pd.DataFrame,
    drop_levels: Iterable[str] = DEFAULT_DROP_LEVELS,
    missing_code: str = MISSING_CODE,
) -> Tuple[pd.DataFrame, CleaningReport]:
    """
    Filter and recode the raw table for modeling.

    Args:
        df: Raw recipe table (see ``load_recipes``).
        drop_levels: Flavor levels removed before modeling.
        missing_code: Value marking a missing entry in the raw file.

    Returns:
        The cleaned DataFrame (with a ``vegetarian`` column and a categorical
        ``flavor_profile``) and a report of what was removed.
    """
    report = CleaningReport(n_raw=len(df))
    out = df.copy()

    out["flavor_profile"] = _normalize(out["flavor_profile"], missing_code)
    out["diet"] = _normalize(out["diet"], missing_code)

    missing_flavor = out["flavor_profile"].isna()
    report.n_missing_flavor = int(missing_flavor.sum())
    out = out[~missing_flavor]

    missing_diet = out["diet"].isna()
    report.n_missing_diet = int(missing_diet.sum())
    out = out[~missing_diet]

    drop_levels = [level.strip().lower() for level in drop_levels]
    for level in drop_levels:
        mask = out["flavor_profile"] == level
        report.n_dropped_levels[level] = int(mask.sum())
        out = out[~mask]

    if out.empty:
        raise ValueError("No rows left after cleaning the recipe data")

    out["vegetarian"] = recode_diet(out["diet"])

    present = set(out["flavor_profile"])
    known_order = [level for level in FLAVOR_LEVELS if level in present]
    extra = sorted(present - set(FLAVOR_LEVELS))
    levels = known_order + extra
    if len(levels) < 2:
        raise ValueError(
            f"Need at least two flavor levels to compare, found {levels}"
        )
    out["flavor_profile"] = pd.Categorical(
        out["flavor_profile"].astype(str), categories=levels
    )

    out = out.reset_index(drop=True)
    report.n_clean = len(out)
    return out, report


def contingency_table(df: pd.DataFrame) -> pd.DataFrame:
    """Flavor x diet counts, zero-filled, with diet columns in fixed order."""
    table = pd.crosstab(df["flavor_profile"], df["vegetarian"])
    table = table.reindex(columns=[0, 1], fill_value=0)
    table.columns = [NON_VEGETARIAN, VEGETARIAN]
    table.index = table.index.astype(str)
    table.index.name = "flavor_profile"
    return table


def group_rates(df: pd.DataFrame) -> pd.DataFrame:
    """Observed number of dishes and vegetarian share per flavor level."""
    grouped = df.groupby("flavor_profile", observed=True)["vegetarian"]
    rates = pd.DataFrame(
        {
            "n": grouped.size(),
            "n_vegetarian": grouped.sum(),
        }
    )
    rates["prop_vegetarian"] = rates["n_vegetarian"] / rates["n"]
    rates.index = rates.index.astype(str)
    return rates


def find_separated_levels(df: pd.DataFrame) -> List[str]:
    """
    Flavor levels whose outcome never varies.

    A level where every dish is vegetarian (or none is) drives the
    maximum-likelihood estimate of its coefficient to infinity.
    """
    rates = group_rates(df)
    constant = rates["prop_vegetarian"].isin([0.0, 1.0])
    return rates.index[constant].tolist()


def reference_level_default(df: pd.DataFrame) -> str:
    """Most common flavor level, the natural baseline for treatment coding."""
    counts = df["flavor_profile"].value_counts()
    return str(counts.idxmax())


def outcome_array(df: pd.DataFrame) -> np.ndarray:
    return df["vegetarian"].to_numpy(dtype=int)
