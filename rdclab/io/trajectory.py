from __future__ import annotations
import gzip
from dataclasses import dataclass
from typing import Iterator, TextIO
import numpy as np


class TrajectoryFormatError(ValueError):
    pass


@dataclass(frozen=True)
class Frame:
    step: int
    box: np.ndarray        # (3,) edge lengths, 0.0 on non-periodic axes
    pbc: tuple[bool, bool, bool]
    ids: np.ndarray        # (N,)
    positions: np.ndarray  # (N, 3)


_COORD_SETS = (("x", "y", "z"), ("xu", "yu", "zu"))


def _open_text(path: str) -> TextIO:
    if str(path).endswith(".gz"):
        return gzip.open(path, "rt", encoding="utf-8")
    return open(path, "r", encoding="utf-8")


def _expect_item(f: TextIO, item: str, lineno: int) -> tuple[str, int]:
    line = f.readline()
    lineno += 1
    if not line.startswith(f"ITEM: {item}"):
        raise TrajectoryFormatError(f"line {lineno}: expected 'ITEM: {item}', got {line.strip()!r}")
    return line, lineno


def _read_frame(f: TextIO, first: str, lineno: int) -> tuple[Frame, int]:
    if not first.startswith("ITEM: TIMESTEP"):
        raise TrajectoryFormatError(f"line {lineno}: expected 'ITEM: TIMESTEP', got {first.strip()!r}")
    try:
        step = int(f.readline().split()[0]); lineno += 1
    except (IndexError, ValueError) as exc:
        raise TrajectoryFormatError(f"line {lineno + 1}: malformed timestep") from exc
    _line, lineno = _expect_item(f, "NUMBER OF ATOMS", lineno)
    try:
        n = int(f.readline().split()[0]); lineno += 1
    except (IndexError, ValueError) as exc:
        raise TrajectoryFormatError(f"line {lineno + 1}: malformed atom count") from exc

    bline, lineno = _expect_item(f, "BOX BOUNDS", lineno)
    flags = bline.split()[3:6]
    if len(flags) != 3:
        flags = ["pp", "pp", "pp"]
    pbc = tuple(fl == "pp" for fl in flags)
    lengths = np.zeros(3, dtype=float)
    for k in range(3):
        parts = f.readline().split(); lineno += 1
        if len(parts) < 2:
            raise TrajectoryFormatError(f"line {lineno}: malformed box bounds")
        lengths[k] = float(parts[1]) - float(parts[0])
    box = np.where(np.asarray(pbc), lengths, 0.0)

    aline, lineno = _expect_item(f, "ATOMS", lineno)
    cols = aline.split()[2:]
    if "id" not in cols:
        raise TrajectoryFormatError(f"line {lineno}: ATOMS section has no id column")
    coord = next((c for c in _COORD_SETS if all(x in cols for x in c)), None)
    if coord is None:
        raise TrajectoryFormatError(f"line {lineno}: ATOMS section has no x y z (or xu yu zu) columns")
    ci = cols.index("id")
    cx = [cols.index(c) for c in coord]

    ids = np.empty(n, dtype=np.int64)
    r = np.empty((n, 3), dtype=float)
    for i in range(n):
        parts = f.readline().split(); lineno += 1
        if len(parts) < len(cols):
            raise TrajectoryFormatError(f"line {lineno}: expected {len(cols)} columns, got {len(parts)}")
        ids[i] = int(parts[ci])
        r[i] = [float(parts[j]) for j in cx]
    return Frame(step=step, box=box, pbc=pbc, ids=ids, positions=r), lineno


def iter_frames(path: str) -> Iterator[Frame]:
    """Frames of a LAMMPS dump (lammpstrj, optionally gzip-compressed)."""
    lineno = 0
    with _open_text(path) as f:
        while True:
            first = f.readline()
            lineno += 1
            if not first:
                return
            if not first.strip():
                continue
            frame, lineno = _read_frame(f, first, lineno)
            yield frame
