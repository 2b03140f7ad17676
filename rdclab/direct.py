from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from .bonds import BondRegistry
from .comm import SerialGroup, WorkerGroup
from .constants import RDC_CONST
from .geom_pbc import BoxLike, pair_displacements
from .modes import EvaluatorMode


@dataclass(frozen=True)
class DirectResult:
    couplings: np.ndarray   # (n,)
    gradients: np.ndarray   # (2n, 3), request order
    virial: np.ndarray      # (n, 3, 3)

    def bond_gradients(self, i: int) -> tuple[np.ndarray, np.ndarray]:
        return self.gradients[2 * i], self.gradients[2 * i + 1]


@dataclass
class DirectContribution:
    """Worker-owned full-length buffers; only the owned bonds are non-zero."""
    couplings: np.ndarray
    gradients: np.ndarray
    virial: np.ndarray

    @classmethod
    def zeros(cls, n: int) -> "DirectContribution":
        return cls(
            couplings=np.zeros(n, dtype=float),
            gradients=np.zeros((2 * n, 3), dtype=float),
            virial=np.zeros((n, 3, 3), dtype=float),
        )

    def pack(self) -> np.ndarray:
        return np.concatenate([self.couplings.ravel(), self.gradients.ravel(), self.virial.ravel()])

    @classmethod
    def unpack(cls, buf: np.ndarray, n: int) -> "DirectContribution":
        buf = np.asarray(buf, dtype=float)
        if buf.shape != (n + 6 * n + 9 * n,):
            raise ValueError("packed contribution has the wrong length")
        return cls(
            couplings=buf[:n].copy(),
            gradients=buf[n:7 * n].reshape(2 * n, 3).copy(),
            virial=buf[7 * n:].reshape(n, 3, 3).copy(),
        )

    def to_result(self) -> DirectResult:
        return DirectResult(couplings=self.couplings, gradients=self.gradients, virial=self.virial)


def owned_bonds(n: int, rank: int, size: int) -> np.ndarray:
    """Interleaved stride: worker k owns bonds k, k+P, k+2P, ..."""
    size = int(size)
    rank = int(rank)
    if size < 1:
        raise ValueError("size must be >= 1")
    if not 0 <= rank < size:
        raise ValueError(f"rank must be in [0, {size})")
    return np.arange(rank, int(n), size, dtype=np.int64)


def rdc_kernel(
    dr: np.ndarray, gyrom: np.ndarray, scale: np.ndarray
) -> tuple[np.ndarray, np.ndarray]:
    """Couplings and dD/dr for displacement vectors dr (m, 3).

    D = 0.5 * M / d^3 * (3 z^2 / d^2 - 1),  M = -K * scale * gyrom.
    Coincident particles (d = 0) give non-finite output.
    """
    dr = np.asarray(dr, dtype=float)
    M = -RDC_CONST * np.asarray(scale, dtype=float) * np.asarray(gyrom, dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        x2 = dr[:, 0] * dr[:, 0]
        y2 = dr[:, 1] * dr[:, 1]
        z2 = dr[:, 2] * dr[:, 2]
        d2 = x2 + y2 + z2
        d = np.sqrt(d2)
        ind = 1.0 / d
        id3 = ind * ind * ind
        id7 = id3 * id3 * ind
        cos_theta = dr[:, 2] * ind
        D = 0.5 * M * id3 * (3.0 * cos_theta * cos_theta - 1.0)
        dD = np.empty_like(dr)
        pxy = M * id7 * (1.5 * x2 + 1.5 * y2 - 6.0 * z2)
        dD[:, 0] = pxy * dr[:, 0]
        dD[:, 1] = pxy * dr[:, 1]
        dD[:, 2] = M * id7 * (4.5 * x2 + 4.5 * y2 - 3.0 * z2) * dr[:, 2]
    return D, dD


class DirectEvaluator:
    """Analytic couplings with exact particle and box derivatives."""

    mode = EvaluatorMode.DIRECT

    def __init__(self, bonds: BondRegistry, group: WorkerGroup | None = None, *, serial: bool = False):
        self.bonds = bonds
        self.group = SerialGroup() if (group is None or serial) else group
        self.serial = bool(serial)

    def contribution(self, positions: np.ndarray, box: BoxLike, rank: int = 0, size: int = 1) -> DirectContribution:
        n = len(self.bonds)
        out = DirectContribution.zeros(n)
        idx = owned_bonds(n, rank, size)
        if idx.size == 0:
            return out
        dr = pair_displacements(positions, box)[idx]
        D, dD = rdc_kernel(dr, self.bonds.gyrom[idx], self.bonds.scale[idx])
        # dr = pos_b - pos_a, so the first particle sees -dD/dr
        g_a = -dD
        out.couplings[idx] = D
        out.gradients[2 * idx] = g_a
        out.gradients[2 * idx + 1] = -g_a
        out.virial[idx] = dr[:, :, None] * g_a[:, None, :]
        return out

    def evaluate(self, positions: np.ndarray, box: BoxLike = None) -> DirectResult:
        positions = np.asarray(positions, dtype=float)
        if positions.shape != (self.bonds.n_particles, 3):
            raise ValueError(f"positions must have shape ({self.bonds.n_particles}, 3)")
        n = len(self.bonds)
        local = self.contribution(positions, box, self.group.rank, self.group.size)
        if self.group.size == 1:
            return local.to_result()
        reduced = self.group.allreduce_sum(local.pack())
        return DirectContribution.unpack(reduced, n).to_result()


def merge_contributions(parts: Sequence[DirectContribution]) -> DirectResult:
    """Element-wise sum of per-worker contributions (in-process all-reduce)."""
    if not parts:
        raise ValueError("no contributions to merge")
    n = parts[0].couplings.shape[0]
    acc = DirectContribution.zeros(n)
    for p in parts:
        if p.couplings.shape[0] != n:
            raise ValueError("contributions disagree on bond count")
        acc.couplings += p.couplings
        acc.gradients += p.gradients
        acc.virial += p.virial
    return acc.to_result()
