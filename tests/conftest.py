from __future__ import annotations

import pytest

from rdclab.bonds import build_bond_registry


@pytest.fixture
def five_bonds():
    groups = [(2 * i + 1, 2 * i + 2) for i in range(5)]
    gyrom = [-72.5388, 179.9319, -18.2385, 45.2404, -72.5388]
    scale = [1.0, 0.5, 2.0, 1.0, 1.5]
    return build_bond_registry(groups, gyrom, scale)
