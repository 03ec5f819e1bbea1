"""
Location of the recipe dataset.

The dataset is not bundled; point ``FLAVORDIET_DATA`` at the CSV or place it
at ``data/indian_food.csv`` under the working directory.
"""

import os
from pathlib import Path

DEFAULT_DATA_FILE = Path("data") / "indian_food.csv"


def get_default_dataset() -> Path:
    """
    Resolve the dataset path.

    Returns:
        Path from ``FLAVORDIET_DATA`` if set, otherwise the default location.

    Raises:
        FileNotFoundError: If the resolved file does not exist.
    """
    from ..config import ENV_DATA_PATH

    env_path = os.environ.get(ENV_DATA_PATH)
    path = Path(env_path) if env_path else Path.cwd() / DEFAULT_DATA_FILE
    if path.exists():
        return path
    raise FileNotFoundError(
        f"Recipe dataset not found at {path}. "
        f"Set {ENV_DATA_PATH} or pass --data <csv_path>"
    )


def is_dataset_available() -> bool:
    """Check whether the default dataset can be found."""
    try:
        get_default_dataset()
    except FileNotFoundError:
        return False
    return True


__all__ = ["DEFAULT_DATA_FILE", "get_default_dataset", "is_dataset_available"]
