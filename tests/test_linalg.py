from __future__ import annotations

import numpy as np

from rdclab.linalg import resolve_linalg


def test_resolve_linalg_default_available(monkeypatch):
    monkeypatch.delenv("RDCLAB_DISABLE_SVD", raising=False)
    la = resolve_linalg()
    assert la.available
    assert la.name == "numpy.linalg"
    s = la.svd(np.diag([3.0, 1.0]), compute_uv=False)
    np.testing.assert_allclose(s, [3.0, 1.0])


def test_resolve_linalg_disabled_by_env(monkeypatch):
    monkeypatch.setenv("RDCLAB_DISABLE_SVD", "1")
    la = resolve_linalg()
    assert not la.available
    assert la.svd is None
    assert la.reason == "RDCLAB_DISABLE_SVD"
