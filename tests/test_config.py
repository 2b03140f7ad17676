from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from rdclab.config import RDCConfigError, load_config, parse_keywords


def _nh(**extra):
    d = {
        "ATOMS1": [20, 21],
        "ATOMS2": [37, 38],
        "ATOMS3": [56, 57],
        "GYROM": "NH",
    }
    d.update(extra)
    return d


def test_parse_keywords_preset_and_defaults():
    cfg = parse_keywords(_nh())
    assert cfg.label == "rdc"
    assert not cfg.svd and not cfg.serial
    assert len(cfg.bonds) == 3
    np.testing.assert_allclose(cfg.bonds.gyrom, [-72.5388] * 3)
    np.testing.assert_array_equal(cfg.bonds.scale, [1.0, 1.0, 1.0])
    assert cfg.component_names() == ["rdc_0", "rdc_1", "rdc_2"]


def test_keywords_are_case_insensitive_and_accept_comma_strings():
    cfg = parse_keywords({"atoms1": "20,21", "gyrom": -1.5, "label": "nh"})
    assert cfg.bonds.atom_pairs.tolist() == [[20, 21]]
    assert cfg.component_names() == ["nh_0"]


def test_atoms3_with_three_ids_rejected():
    with pytest.raises(RDCConfigError, match="ATOMS3"):
        parse_keywords(_nh(ATOMS3=[56, 57, 58]))


def test_numbered_gyrom_wrong_count_rejected():
    d = _nh()
    del d["GYROM"]
    d.update(GYROM1=1.0, GYROM2=2.0)
    with pytest.raises(RDCConfigError, match="wrong number of GYROM"):
        parse_keywords(d)


def test_numbered_gyrom_exact_count():
    d = _nh()
    del d["GYROM"]
    d.update(GYROM1="CH", GYROM2=2.0, GYROM3=-3.0)
    cfg = parse_keywords(d)
    np.testing.assert_allclose(cfg.bonds.gyrom, [179.9319, 2.0, -3.0])


def test_single_and_numbered_form_conflict():
    with pytest.raises(RDCConfigError, match="not both"):
        parse_keywords(_nh(GYROM1=1.0, GYROM2=1.0, GYROM3=1.0))


def test_scale_single_equals_numbered():
    a = parse_keywords(_nh(SCALE=0.7))
    b = parse_keywords(_nh(SCALE1=0.7, SCALE2=0.7, SCALE3=0.7))
    assert list(a.bonds) == list(b.bonds)


def test_svd_without_couplings_rejected():
    with pytest.raises(RDCConfigError, match="COUPLING"):
        parse_keywords(_nh(SVD=True))


def test_svd_forces_serial():
    cfg = parse_keywords(_nh(SVD=True, COUPLING1=1.0, COUPLING2=2.0, COUPLING3=3.0))
    assert cfg.svd and cfg.serial
    np.testing.assert_array_equal(cfg.bonds.couplings, [1.0, 2.0, 3.0])


def test_svd_without_linalg_rejected(monkeypatch):
    monkeypatch.setenv("RDCLAB_DISABLE_SVD", "1")
    with pytest.raises(RDCConfigError, match="linear-algebra"):
        parse_keywords(_nh(SVD=True, COUPLING=[1.0, 2.0, 3.0]))


def test_unknown_keyword_rejected():
    with pytest.raises(RDCConfigError, match="unsupported keywords"):
        parse_keywords(_nh(NOPBC=True))


def test_gap_in_numbered_atoms_rejected():
    d = _nh()
    del d["ATOMS2"]
    with pytest.raises(RDCConfigError, match="ATOMS2 is missing"):
        parse_keywords(d)


def test_unknown_preset_rejected():
    with pytest.raises(RDCConfigError, match="unknown gyromagnetic preset"):
        parse_keywords(_nh(GYROM="XY"))


def test_bool_keywords_validated():
    with pytest.raises(RDCConfigError, match="SERIAL must be a bool"):
        parse_keywords(_nh(SERIAL=3))


def test_load_config_examples():
    root = Path(__file__).resolve().parents[1]
    cfg = load_config(str(root / "examples" / "nh_svd.yaml"))
    assert cfg.label == "svd" and cfg.svd
    np.testing.assert_allclose(cfg.bonds.couplings, [8.17, -8.271, -10.489, -9.871, -9.152])
    cfg2 = load_config(str(root / "examples" / "nh_direct.yaml"))
    assert cfg2.label == "nh" and not cfg2.svd
    assert len(cfg2.bonds) == 5


def test_load_config_empty_file(tmp_path):
    p = tmp_path / "empty.yaml"
    p.write_text("", encoding="utf-8")
    with pytest.raises(RDCConfigError, match="empty configuration"):
        load_config(str(p))


def test_missing_gyrom_uses_zero_default():
    d = _nh()
    del d["GYROM"]
    cfg = parse_keywords(d)
    np.testing.assert_array_equal(cfg.bonds.gyrom, [0.0, 0.0, 0.0])
