from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np


@dataclass(frozen=True)
class LinalgBackend:
    name: str
    svd: Optional[Callable]
    available: bool
    reason: str = ""


def _detect_lapack() -> tuple[Callable | None, str]:
    try:
        from numpy.linalg import svd
    except ImportError as exc:
        return None, f"numpy.linalg import failed: {exc}"
    try:
        svd(np.eye(2), full_matrices=False, compute_uv=False)
    except np.linalg.LinAlgError as exc:
        return None, f"LAPACK svd unusable: {exc}"
    return svd, ""


def resolve_linalg() -> LinalgBackend:
    """Report whether the SVD back-end can run in this process.

    ``RDCLAB_DISABLE_SVD=1`` reports the capability as missing, which is how
    builds without a LAPACK-backed numpy are exercised.
    """
    disabled = os.environ.get("RDCLAB_DISABLE_SVD", "").strip().lower() in ("1", "true", "yes", "on")
    if disabled:
        return LinalgBackend(name="none", svd=None, available=False, reason="RDCLAB_DISABLE_SVD")
    svd, reason = _detect_lapack()
    if svd is None:
        return LinalgBackend(name="none", svd=None, available=False, reason=reason)
    return LinalgBackend(name="numpy.linalg", svd=svd, available=True, reason="")
