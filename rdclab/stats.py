"""Agreement between computed and experimental couplings.

Q^2 = sum_i (D_i - D_i^exp)^2 / sum_i (D_i^exp)^2

RDCs report only on the aligned fraction of molecules, so for a single
structure the correlation is usually the more meaningful of the two.
"""

from __future__ import annotations

import numpy as np


def _pair(calc, exp) -> tuple[np.ndarray, np.ndarray]:
    c = np.asarray(calc, dtype=float).ravel()
    e = np.asarray(exp, dtype=float).ravel()
    if c.shape != e.shape:
        raise ValueError("calculated and experimental couplings must have the same length")
    if c.size == 0:
        raise ValueError("at least one coupling is required")
    return c, e


def quality_factor_sq(calc, exp) -> float:
    c, e = _pair(calc, exp)
    den = float((e * e).sum())
    if den == 0.0:
        return float("nan")
    return float(((c - e) ** 2).sum()) / den


def correlation(calc, exp) -> float:
    """Pearson correlation; nan when either side has zero variance."""
    c, e = _pair(calc, exp)
    dc = c - c.mean()
    de = e - e.mean()
    den = float(np.sqrt((dc * dc).sum() * (de * de).sum()))
    if den == 0.0:
        return float("nan")
    return float((dc * de).sum()) / den
