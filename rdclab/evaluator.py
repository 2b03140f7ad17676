from __future__ import annotations

from typing import Union

from .comm import WorkerGroup, resolve_group
from .config import RDCConfig
from .direct import DirectEvaluator
from .modes import EvaluatorMode
from .svd import SVDFitter


Evaluator = Union[DirectEvaluator, SVDFitter]


def evaluator_mode(ev: Evaluator) -> EvaluatorMode:
    mode = getattr(ev, "mode", None)
    if not isinstance(mode, EvaluatorMode):
        raise TypeError(f"{type(ev).__name__} is not an RDC evaluator")
    return mode


def build_evaluator(cfg: RDCConfig, group: WorkerGroup | None = None) -> Evaluator:
    """Pick the evaluator once; the choice is fixed for its lifetime.

    The SVD fitter never uses the group: the dense solve runs whole on
    every worker.
    """
    if cfg.svd:
        return SVDFitter(cfg.bonds)
    if group is None:
        group = resolve_group(serial=cfg.serial)
    return DirectEvaluator(cfg.bonds, group, serial=cfg.serial)
