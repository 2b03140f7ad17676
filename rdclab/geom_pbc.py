from __future__ import annotations
from typing import Union
import numpy as np

BoxLike = Union[None, float, np.ndarray, tuple, list]

def box_lengths(box: BoxLike) -> np.ndarray | None:
    """Normalize a box into a (3,) array of edge lengths, or None (no PBC).

    A scalar means a cubic box.  Non-positive edges switch periodicity off
    along that axis.
    """
    if box is None:
        return None
    arr = np.asarray(box, dtype=float)
    if arr.ndim == 0:
        arr = np.full(3, float(arr))
    if arr.shape != (3,):
        raise ValueError("box must be a scalar or have shape (3,)")
    if not np.any(arr > 0.0):
        return None
    return arr

def minimum_image(dr: np.ndarray, box: BoxLike) -> np.ndarray:
    L = box_lengths(box)
    dr = np.asarray(dr, dtype=float)
    if L is None:
        return dr
    periodic = L > 0.0
    safe = np.where(periodic, L, 1.0)
    shift = np.where(periodic, safe * np.round(dr / safe), 0.0)
    return dr - shift

def pair_displacements(pos: np.ndarray, box: BoxLike) -> np.ndarray:
    """Minimum-image vectors b - a for positions laid out as a0, b0, a1, b1, ..."""
    pos = np.asarray(pos, dtype=float)
    if pos.ndim != 2 or pos.shape[1] != 3 or pos.shape[0] % 2:
        raise ValueError("positions must have shape (2n, 3)")
    return minimum_image(pos[1::2] - pos[0::2], box)
