from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import numpy as np
import yaml

from .bonds import BondRegistry, RDCConfigError, build_bond_registry
from .constants import GYROMAGNETIC_PRODUCTS
from .linalg import resolve_linalg

_PLAIN_KEYS = {"LABEL", "SERIAL", "SVD"}
_NUMBERED_KEYS = ("ATOMS", "GYROM", "SCALE", "COUPLING")
_NUMBERED_RE = re.compile(r"^(ATOMS|GYROM|SCALE|COUPLING)(\d+)$")


@dataclass(frozen=True)
class RDCConfig:
    label: str
    bonds: BondRegistry
    serial: bool = False
    svd: bool = False

    def component_names(self) -> list[str]:
        return [f"{self.label}_{i}" for i in range(len(self.bonds))]


def _err(msg: str) -> RDCConfigError:
    return RDCConfigError(msg)


def _expect_float(x: Any, key: str) -> float:
    if isinstance(x, bool) or not isinstance(x, (int, float, np.integer, np.floating)):
        raise _err(f"{key} must be a number")
    return float(x)


def _expect_int(x: Any, key: str) -> int:
    if isinstance(x, bool):
        raise _err(f"{key} must be an int")
    if isinstance(x, (int, np.integer)):
        return int(x)
    if isinstance(x, str):
        try:
            return int(x.strip())
        except ValueError as exc:
            raise _err(f"{key} must be an int") from exc
    raise _err(f"{key} must be an int")


def _expect_bool(x: Any, key: str) -> bool:
    if isinstance(x, bool):
        return x
    if isinstance(x, (int, np.integer)) and x in (0, 1):
        return bool(x)
    if isinstance(x, str) and x.strip().lower() in ("true", "false", "yes", "no", "on", "off"):
        return x.strip().lower() in ("true", "yes", "on")
    raise _err(f"{key} must be a bool")


def _as_list(x: Any) -> list:
    """Scalars become one-element lists; "20,21" strings are split on commas."""
    if isinstance(x, (list, tuple)):
        return list(x)
    if isinstance(x, str) and "," in x:
        return [p.strip() for p in x.split(",") if p.strip()]
    return [x]


def _gyrom_value(x: Any, key: str) -> float:
    if isinstance(x, str):
        name = x.strip().upper()
        if name in GYROMAGNETIC_PRODUCTS:
            return GYROMAGNETIC_PRODUCTS[name]
        try:
            return float(name)
        except ValueError as exc:
            raise _err(
                f"{key}: unknown gyromagnetic preset {x!r}; known: {sorted(GYROMAGNETIC_PRODUCTS)}"
            ) from exc
    return _expect_float(x, key)


def _number_value(x: Any, key: str) -> float:
    if isinstance(x, str):
        try:
            return float(x.strip())
        except ValueError as exc:
            raise _err(f"{key} must be a number") from exc
    return _expect_float(x, key)


def _split_keywords(d: Dict[str, Any]) -> tuple[Dict[str, Any], Dict[str, Dict[int, Any]]]:
    plain: Dict[str, Any] = {}
    numbered: Dict[str, Dict[int, Any]] = {k: {} for k in _NUMBERED_KEYS}
    unknown: List[str] = []
    for raw_key, value in d.items():
        key = str(raw_key).strip().upper()
        m = _NUMBERED_RE.match(key)
        if m:
            idx = int(m.group(2))
            if idx < 1:
                raise _err(f"{raw_key}: keyword indices start at 1")
            if idx in numbered[m.group(1)]:
                raise _err(f"duplicate keyword {key}")
            numbered[m.group(1)][idx] = value
        elif key in _PLAIN_KEYS or key in _NUMBERED_KEYS:
            if key in plain:
                raise _err(f"duplicate keyword {key}")
            plain[key] = value
        else:
            unknown.append(str(raw_key))
    if unknown:
        raise _err(f"unsupported keywords: {sorted(unknown)}")
    return plain, numbered


def _contiguous(values: Dict[int, Any], key: str) -> list:
    """Values of KEY1..KEYn; a gap leaves the later keywords unread."""
    if not values:
        return []
    top = max(values)
    for i in range(1, top + 1):
        if i not in values:
            raise _err(f"{key}{i} is missing but {key}{top} is given")
    return [values[i] for i in range(1, top + 1)]


def _per_bond(plain: Dict[str, Any], numbered: Dict[str, Dict[int, Any]], key: str, conv) -> Optional[list[float]]:
    seq = _contiguous(numbered[key], key)
    if key in plain and seq:
        raise _err(f"use either {key} or {key}1, {key}2, ... but not both")
    if seq:
        return [conv(v, f"{key}{i}") for i, v in enumerate(seq, start=1)]
    if key in plain:
        return [conv(v, key) for v in _as_list(plain[key])]
    return None


def parse_keywords(d: Dict[str, Any]) -> RDCConfig:
    if not isinstance(d, dict):
        raise _err("RDC configuration must be a mapping of keywords")
    plain, numbered = _split_keywords(d)

    if "ATOMS" in plain:
        raise _err("ATOMS must be numbered: ATOMS1, ATOMS2, ...")
    groups = []
    for i, g in enumerate(_contiguous(numbered["ATOMS"], "ATOMS"), start=1):
        groups.append([_expect_int(a, f"ATOMS{i}") for a in _as_list(g)])

    svd = _expect_bool(plain.get("SVD", False), "SVD")
    if svd:
        la = resolve_linalg()
        if not la.available:
            raise _err(f"SVD cannot be used without a linear-algebra back-end ({la.reason})")
    serial = _expect_bool(plain.get("SERIAL", False), "SERIAL")

    gyrom = _per_bond(plain, numbered, "GYROM", _gyrom_value)
    scale = _per_bond(plain, numbered, "SCALE", _number_value)
    couplings = _per_bond(plain, numbered, "COUPLING", _number_value)

    bonds = build_bond_registry(groups, gyrom, scale, couplings, svd=svd)

    label = str(plain.get("LABEL", "rdc")).strip()
    if not label:
        raise _err("LABEL must be a non-empty string")

    return RDCConfig(label=label, bonds=bonds, serial=bool(serial or svd), svd=svd)


def load_config(path: str) -> RDCConfig:
    with open(path, "r", encoding="utf-8") as f:
        d = yaml.safe_load(f)
    if d is None:
        raise _err(f"{path}: empty configuration")
    return parse_keywords(d)
