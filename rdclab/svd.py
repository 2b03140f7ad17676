from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from .bonds import BondRegistry, RDCConfigError
from .constants import ALIGNMENT_PARAMS, RDC_CONST
from .geom_pbc import BoxLike, pair_displacements
from .linalg import LinalgBackend, resolve_linalg
from .modes import EvaluatorMode
from .stats import correlation, quality_factor_sq


@dataclass(frozen=True)
class AlignmentTensor:
    sxx: float
    syy: float
    sxy: float
    sxz: float
    syz: float

    @property
    def szz(self) -> float:
        return -self.sxx - self.syy

    @classmethod
    def from_vector(cls, s: np.ndarray) -> "AlignmentTensor":
        s = np.asarray(s, dtype=float)
        return cls(sxx=float(s[0]), syy=float(s[1]), sxy=float(s[2]), sxz=float(s[3]), syz=float(s[4]))

    def as_vector(self) -> np.ndarray:
        return np.array([self.sxx, self.syy, self.sxy, self.sxz, self.syz], dtype=float)

    def as_matrix(self) -> np.ndarray:
        return np.array(
            [
                [self.sxx, self.sxy, self.sxz],
                [self.sxy, self.syy, self.syz],
                [self.sxz, self.syz, self.szz],
            ],
            dtype=float,
        )


@dataclass(frozen=True)
class SVDResult:
    couplings: np.ndarray
    tensor: AlignmentTensor
    singular_values: np.ndarray
    rank: int
    q2: float
    correlation: float


def design_matrix(dr: np.ndarray) -> np.ndarray:
    """Rows [mx^2-mz^2, my^2-mz^2, 2 mx my, 2 mx mz, 2 my mz] of unit bond vectors."""
    dr = np.asarray(dr, dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        mu = dr / np.linalg.norm(dr, axis=1)[:, None]
    mx, my, mz = mu[:, 0], mu[:, 1], mu[:, 2]
    return np.stack(
        [mx * mx - mz * mz, my * my - mz * mz, 2.0 * mx * my, 2.0 * mx * mz, 2.0 * my * mz],
        axis=1,
    )


def dmax(dr: np.ndarray, gyrom: np.ndarray, scale: np.ndarray) -> np.ndarray:
    d = np.linalg.norm(np.asarray(dr, dtype=float), axis=1)
    with np.errstate(divide="ignore", invalid="ignore"):
        return -RDC_CONST * np.asarray(gyrom, dtype=float) * np.asarray(scale, dtype=float) / (d * d * d)


def _non_finite_result(n: int) -> SVDResult:
    """Coincident or zero-weighted bonds: every output is nan, LAPACK is not called."""
    return SVDResult(
        couplings=np.full(n, np.nan),
        tensor=AlignmentTensor.from_vector(np.full(ALIGNMENT_PARAMS, np.nan)),
        singular_values=np.full(min(n, ALIGNMENT_PARAMS), np.nan),
        rank=0,
        q2=float("nan"),
        correlation=float("nan"),
    )


def svd_solve(A: np.ndarray, b: np.ndarray, svd: Callable = np.linalg.svd) -> tuple[np.ndarray, np.ndarray, int]:
    """Least-squares x = V diag(1/s) U^T b; exactly-zero singular values are skipped."""
    U, s, Vt = svd(A, full_matrices=False)
    nonzero = s != 0.0
    inv_s = np.zeros_like(s)
    inv_s[nonzero] = 1.0 / s[nonzero]
    x = Vt.T @ (inv_s * (U.T @ b))
    return x, s, int(np.count_nonzero(nonzero))


class SVDFitter:
    """Back-calculates couplings from a best-fit alignment tensor.

    Always runs the whole problem on the calling worker and produces values
    only; there is no derivative path.
    """

    mode = EvaluatorMode.SVD

    def __init__(self, bonds: BondRegistry, linalg: Optional[LinalgBackend] = None):
        linalg = resolve_linalg() if linalg is None else linalg
        if not linalg.available:
            raise RDCConfigError(f"SVD requested but no linear-algebra back-end is available ({linalg.reason})")
        if bonds.couplings is None:
            raise RDCConfigError("SVD requires one COUPLING value per bond")
        self.bonds = bonds
        self._svd = linalg.svd

    def evaluate(self, positions: np.ndarray, box: BoxLike = None) -> SVDResult:
        positions = np.asarray(positions, dtype=float)
        if positions.shape != (self.bonds.n_particles, 3):
            raise ValueError(f"positions must have shape ({self.bonds.n_particles}, 3)")
        dr = pair_displacements(positions, box)
        A = design_matrix(dr)
        dm = dmax(dr, self.bonds.gyrom, self.bonds.scale)
        exp = self.bonds.couplings
        with np.errstate(divide="ignore", invalid="ignore"):
            b = exp / dm
        if not (np.isfinite(A).all() and np.isfinite(b).all()):
            return _non_finite_result(len(self.bonds))
        S, s, rank = svd_solve(A, b, self._svd)
        if S.shape[0] != ALIGNMENT_PARAMS:
            raise ValueError("alignment fit returned the wrong number of parameters")
        back = (A @ S) * dm
        return SVDResult(
            couplings=back,
            tensor=AlignmentTensor.from_vector(S),
            singular_values=s,
            rank=rank,
            q2=quality_factor_sq(back, exp),
            correlation=correlation(back, exp),
        )
