"""
Turn prior specifications into PyMC random variables.
"""

from typing import Dict, Optional

import pymc as pm


def make_distribution(
    name: str, family: str, params: Dict[str, float], dims: Optional[str] = None
):
    """
    Create a PyMC random variable in the current model context.

    Args:
        name: Variable name in the model.
        family: One of ``normal``, ``student_t`` or ``cauchy``.
        params: Keyword parameters of the family, as held by a ``PriorSpec``.
        dims: Optional coordinate name for vector-valued variables.

    Returns:
        The PyMC tensor variable.
    """
    if family == "normal":
        return pm.Normal(name, mu=params.get("mu", 0.0), sigma=params["sigma"], dims=dims)
    if family == "student_t":
        return pm.StudentT(
            name,
            nu=params["nu"],
            mu=params.get("mu", 0.0),
            sigma=params["sigma"],
            dims=dims,
        )
    if family == "cauchy":
        return pm.Cauchy(name, alpha=params.get("alpha", 0.0), beta=params["beta"], dims=dims)
    raise ValueError(f"Unknown prior family '{family}'")
