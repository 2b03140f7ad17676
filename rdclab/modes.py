from __future__ import annotations

from enum import Enum


class EvaluatorMode(Enum):
    """Tag carried by every evaluator class as its ``mode`` attribute."""
    DIRECT = "direct"
    SVD = "svd"
