"""Named numeric constants for rdclab.

Categories
----------
RDC_CONST
    Prefactor of the maximal dipolar coupling,
    ``Dmax = -RDC_CONST * scale * gyrom / d**3``.  It folds mu_0 * h / (8 pi^3)
    together with the unit conversion so that ``gyrom`` can be given as the
    product of gyromagnetic ratios in C.G.S. units (see GYROMAGNETIC_PRODUCTS),
    distances in nm and couplings in Hz.

GYROMAGNETIC_PRODUCTS
    Named presets accepted by the ``GYROM`` keyword.  Single-nucleus entries
    are the gyromagnetic ratio itself, pair entries the product of two.

ALIGNMENT_PARAMS
    Number of independent components of the traceless symmetric alignment
    tensor fitted in SVD mode.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Coupling prefactor
# ---------------------------------------------------------------------------
RDC_CONST: float = 0.3356806

# ---------------------------------------------------------------------------
# Gyromagnetic presets (C.G.S.)
# ---------------------------------------------------------------------------
GYROMAGNETIC_PRODUCTS: dict[str, float] = {
    "H": 26.7513,
    "C13": 6.7261,
    "N15": -2.7116,
    "NH": -72.5388,
    "CH": 179.9319,
    "CN": -18.2385,
    "CC": 45.2404,
}

# ---------------------------------------------------------------------------
# Alignment tensor (Sxx, Syy, Sxy, Sxz, Syz)
# ---------------------------------------------------------------------------
ALIGNMENT_PARAMS: int = 5
