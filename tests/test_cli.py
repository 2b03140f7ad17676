from __future__ import annotations

import csv
import sys
from pathlib import Path

import numpy as np
import pytest

from rdclab.comm import SerialGroup
from rdclab.config import load_config
from rdclab.evaluator import build_evaluator
from rdclab.io import iter_frames
from rdclab.main import main

ROOT = Path(__file__).resolve().parents[1]
EXAMPLES = ROOT / "examples"
TRAJ = str(EXAMPLES / "nh_frames.lammpstrj")


def _run(monkeypatch, *argv):
    monkeypatch.setattr(sys, "argv", ["rdclab", *argv])
    with pytest.raises(SystemExit) as exc:
        main()
    return exc.value.code


def _expected(config_path):
    cfg = load_config(config_path)
    ev = build_evaluator(cfg, SerialGroup())
    return [ev.evaluate(cfg.bonds.gather(f.ids, f.positions), f.box).couplings for f in iter_frames(TRAJ)]


def test_check_prints_bond_summary(monkeypatch, capsys):
    code = _run(monkeypatch, "check", str(EXAMPLES / "nh_direct.yaml"))
    assert code == 0
    out = capsys.readouterr().out
    assert "[rdc] bond 1: atoms 20 21 gyrom=-72.538800 scale=1.000000" in out
    assert "mode=direct" in out


def test_eval_direct_writes_csv(monkeypatch, tmp_path):
    cfg_path = str(EXAMPLES / "nh_direct.yaml")
    out = tmp_path / "nh.csv"
    code = _run(monkeypatch, "eval", cfg_path, TRAJ, "--out", str(out), "--serial")
    assert code == 0
    rows = list(csv.reader(out.open(encoding="utf-8")))
    assert rows[0] == ["step", "nh_0", "nh_1", "nh_2", "nh_3", "nh_4"]
    assert [r[0] for r in rows[1:]] == ["0", "100"]
    expected = _expected(cfg_path)
    for row, ref in zip(rows[1:], expected):
        np.testing.assert_allclose([float(x) for x in row[1:]], ref, rtol=1e-9)


def test_eval_wraps_bond_across_boundary(monkeypatch, tmp_path):
    cfg_path = str(EXAMPLES / "nh_direct.yaml")
    a = tmp_path / "pbc.csv"
    b = tmp_path / "nopbc.csv"
    assert _run(monkeypatch, "eval", cfg_path, TRAJ, "--out", str(a), "--serial") == 0
    assert _run(monkeypatch, "eval", cfg_path, TRAJ, "--out", str(b), "--serial", "--no-pbc") == 0
    ra = list(csv.reader(a.open(encoding="utf-8")))
    rb = list(csv.reader(b.open(encoding="utf-8")))
    # bond 0 straddles x = 3.0; the others sit inside the box
    assert ra[1][1] != rb[1][1]
    assert ra[1][2:] == rb[1][2:]


def test_eval_svd_writes_fit_stats(monkeypatch, tmp_path):
    out = tmp_path / "svd.csv"
    code = _run(monkeypatch, "eval", str(EXAMPLES / "nh_svd.yaml"), TRAJ, "--out", str(out), "--every", "2")
    assert code == 0
    rows = list(csv.reader(out.open(encoding="utf-8")))
    assert rows[0][-2:] == ["q2", "corr"]
    assert len(rows) == 2
    assert 0.0 <= float(rows[1][-2]) < 1.0


def test_eval_prints_values_without_out(monkeypatch, capsys):
    code = _run(monkeypatch, "eval", str(EXAMPLES / "nh_direct.yaml"), TRAJ, "--serial")
    assert code == 0
    out = capsys.readouterr().out
    assert "[eval step=0]" in out
    assert "[rdc] evaluated 2 frame(s)" in out


def test_config_error_exits_with_message(monkeypatch, tmp_path):
    bad = tmp_path / "bad.yaml"
    bad.write_text("GYROM: NH\nATOMS1: [1, 2]\nATOMS2: [3, 4, 5]\n", encoding="utf-8")
    code = _run(monkeypatch, "check", str(bad))
    assert isinstance(code, str)
    assert "ATOMS2 keyword has the wrong number of atoms" in code


def test_missing_atom_in_frame_exits(monkeypatch, tmp_path):
    cfg = tmp_path / "cfg.yaml"
    cfg.write_text("GYROM: NH\nATOMS1: [20, 999]\n", encoding="utf-8")
    code = _run(monkeypatch, "eval", str(cfg), TRAJ, "--serial")
    assert isinstance(code, str)
    assert "missing atom ids: [999]" in code


def test_evaluation_error_is_not_reported_as_read_error(monkeypatch):
    class _Broken:
        def evaluate(self, positions, box=None):
            raise ValueError("kernel failed")

    monkeypatch.setattr("rdclab.main.build_evaluator", lambda cfg, group=None: _Broken())
    monkeypatch.setattr(sys, "argv", ["rdclab", "eval", str(EXAMPLES / "nh_direct.yaml"), TRAJ, "--serial"])
    with pytest.raises(ValueError, match="kernel failed"):
        main()


def test_malformed_trajectory_exits_with_read_error(monkeypatch, tmp_path):
    traj = tmp_path / "bad.lammpstrj"
    traj.write_text("ITEM: TIMESTEP\n0\nITEM: ATOMS id x y z\n", encoding="utf-8")
    code = _run(monkeypatch, "eval", str(EXAMPLES / "nh_direct.yaml"), str(traj), "--serial")
    assert isinstance(code, str)
    assert code.startswith(f"[rdc] cannot read {traj}")
    assert "NUMBER OF ATOMS" in code
