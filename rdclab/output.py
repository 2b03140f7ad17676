from __future__ import annotations

import csv
import os
import warnings
from dataclasses import dataclass
from typing import Optional, Union

import numpy as np

from .config import RDCConfig
from .direct import DirectResult
from .svd import SVDResult


@dataclass(frozen=True)
class Component:
    """One scalar observable handed to the host.

    ``derivatives`` and ``virial`` are only set for components registered
    with derivative support (Direct mode).
    """
    name: str
    value: float
    atoms: tuple[int, int]
    derivatives: Optional[np.ndarray] = None
    virial: Optional[np.ndarray] = None
    periodic: bool = False

    @property
    def has_derivatives(self) -> bool:
        return self.derivatives is not None


def make_components(cfg: RDCConfig, result: Union[DirectResult, SVDResult]) -> list[Component]:
    names = cfg.component_names()
    pairs = cfg.bonds.atom_pairs
    out: list[Component] = []
    for i, name in enumerate(names):
        atoms = (int(pairs[i, 0]), int(pairs[i, 1]))
        if isinstance(result, DirectResult):
            out.append(
                Component(
                    name=name,
                    value=float(result.couplings[i]),
                    atoms=atoms,
                    derivatives=result.gradients[2 * i:2 * i + 2],
                    virial=result.virial[i],
                )
            )
        else:
            out.append(Component(name=name, value=float(result.couplings[i]), atoms=atoms))
    return out


class ObservableWriter:
    """CSV sink, one row per evaluated frame."""

    def __init__(self, path: str, *, names: list[str], with_fit_stats: bool = False):
        self.path = path
        self.with_fit_stats = bool(with_fit_stats)
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        self._f = open(path, "w", newline="", encoding="utf-8")
        self._w = csv.writer(self._f)
        self._columns = ["step", *names]
        if self.with_fit_stats:
            self._columns += ["q2", "corr"]
        self._w.writerow(self._columns)
        self._f.flush()

    @property
    def columns(self) -> list[str]:
        return list(self._columns)

    def write(self, step: int, result: Union[DirectResult, SVDResult]):
        row = [int(step), *(f"{float(x):.10g}" for x in result.couplings)]
        if self.with_fit_stats:
            if not isinstance(result, SVDResult):
                raise ValueError("fit statistics are only available for SVD results")
            row += [f"{result.q2:.10g}", f"{result.correlation:.10g}"]
        self._w.writerow(row)
        self._f.flush()

    def close(self):
        try:
            self._f.close()
        except OSError as exc:
            warnings.warn(
                f"ObservableWriter.close() failed for {self.path!r}: {exc!r}",
                RuntimeWarning,
            )
