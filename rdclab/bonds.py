from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np


class RDCConfigError(ValueError):
    pass


@dataclass(frozen=True)
class Bond:
    atom_a: int
    atom_b: int
    gyrom: float
    scale: float = 1.0
    coupling: Optional[float] = None


def _resolve_per_bond(values: Sequence[float] | None, n: int, *, key: str, default: float) -> list[float]:
    """Broadcast one value, accept exactly n, fall back to default on none."""
    vals = [] if values is None else [float(x) for x in values]
    if not vals:
        return [float(default)] * n
    if len(vals) == 1:
        return vals * n
    if len(vals) != n:
        raise RDCConfigError(f"found wrong number of {key} values: got {len(vals)}, expected 1 or {n}")
    return vals


class BondRegistry:
    """Ordered, immutable set of bonds.

    Participating particles are laid out in request order: bond ``i`` owns
    rows ``2i`` (atom_a) and ``2i+1`` (atom_b) of every per-particle array.
    """

    def __init__(self, bonds: Sequence[Bond]):
        self._bonds = tuple(bonds)
        n = len(self._bonds)
        self._pairs = np.array([(b.atom_a, b.atom_b) for b in self._bonds], dtype=np.int64).reshape(n, 2)
        self._gyrom = np.array([b.gyrom for b in self._bonds], dtype=float)
        self._scale = np.array([b.scale for b in self._bonds], dtype=float)
        if n and all(b.coupling is not None for b in self._bonds):
            self._couplings = np.array([b.coupling for b in self._bonds], dtype=float)
        else:
            self._couplings = None
        for arr in (self._pairs, self._gyrom, self._scale, self._couplings):
            if arr is not None:
                arr.setflags(write=False)

    def __len__(self) -> int:
        return len(self._bonds)

    def __iter__(self):
        return iter(self._bonds)

    def __getitem__(self, i: int) -> Bond:
        return self._bonds[i]

    @property
    def n_particles(self) -> int:
        return 2 * len(self._bonds)

    @property
    def atom_pairs(self) -> np.ndarray:
        return self._pairs

    @property
    def atoms(self) -> np.ndarray:
        """Flat request-order identifiers a0, b0, a1, b1, ..."""
        return self._pairs.reshape(-1)

    @property
    def gyrom(self) -> np.ndarray:
        return self._gyrom

    @property
    def scale(self) -> np.ndarray:
        return self._scale

    @property
    def couplings(self) -> np.ndarray | None:
        return self._couplings

    def describe(self) -> list[str]:
        return [
            f"bond {i + 1}: atoms {b.atom_a} {b.atom_b} gyrom={b.gyrom:f} scale={b.scale:f}"
            for i, b in enumerate(self._bonds)
        ]

    def gather(self, ids: np.ndarray, positions: np.ndarray) -> np.ndarray:
        """Pick the (2n, 3) participating positions out of a frame keyed by ids."""
        ids = np.asarray(ids, dtype=np.int64)
        positions = np.asarray(positions, dtype=float)
        if positions.ndim != 2 or positions.shape != (ids.shape[0], 3):
            raise ValueError("positions must have shape (len(ids), 3)")
        order = np.argsort(ids, kind="stable")
        want = self.atoms
        loc = np.searchsorted(ids[order], want)
        loc = np.clip(loc, 0, max(0, ids.shape[0] - 1))
        found = ids.shape[0] > 0 and np.array_equal(ids[order][loc], want)
        if not found:
            missing = sorted(set(want.tolist()) - set(ids.tolist()))
            raise ValueError(f"frame is missing atom ids: {missing}")
        return positions[order[loc]]


def build_bond_registry(
    atom_groups: Sequence[Sequence[int]],
    gyrom: Sequence[float] | None,
    scale: Sequence[float] | None = None,
    couplings: Sequence[float] | None = None,
    *,
    svd: bool = False,
) -> BondRegistry:
    groups = list(atom_groups)
    if not groups:
        raise RDCConfigError("at least one ATOMS group is required")
    for i, g in enumerate(groups, start=1):
        if len(g) != 2:
            raise RDCConfigError(f"ATOMS{i} keyword has the wrong number of atoms")
        if int(g[0]) == int(g[1]):
            raise RDCConfigError(f"ATOMS{i} keyword names atom {int(g[0])} twice")
    n = len(groups)

    mu = _resolve_per_bond(gyrom, n, key="GYROM", default=0.0)
    sc = _resolve_per_bond(scale, n, key="SCALE", default=1.0)
    for i, s in enumerate(sc, start=1):
        if not s > 0.0:
            raise RDCConfigError(f"SCALE for bond {i} must be positive, got {s}")

    exp: list[Optional[float]] = [None] * n
    if svd:
        cp = [] if couplings is None else [float(x) for x in couplings]
        if len(cp) != n:
            raise RDCConfigError(f"found wrong number of COUPLING values: got {len(cp)}, expected {n}")
        exp = list(cp)
    elif couplings:
        raise RDCConfigError("COUPLING values are only used with SVD")

    return BondRegistry(
        [
            Bond(atom_a=int(g[0]), atom_b=int(g[1]), gyrom=mu[i], scale=sc[i], coupling=exp[i])
            for i, g in enumerate(groups)
        ]
    )
