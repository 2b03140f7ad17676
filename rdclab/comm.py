from __future__ import annotations

import atexit
from typing import Protocol

import numpy as np

try:
    import mpi4py

    mpi4py.rc.initialize = False
    mpi4py.rc.finalize = False
    from mpi4py import MPI
except Exception:
    MPI = None


def _ensure_mpi_init() -> None:
    if not MPI.Is_initialized():
        MPI.Init()
        atexit.register(MPI.Finalize)


class WorkerGroup(Protocol):
    rank: int
    size: int

    def allreduce_sum(self, buf: np.ndarray) -> np.ndarray: ...


class SerialGroup:
    """Single worker; the reduction is the identity."""

    rank = 0
    size = 1

    def allreduce_sum(self, buf: np.ndarray) -> np.ndarray:
        return np.asarray(buf, dtype=float)


class MPIGroup:
    """Flat group of MPI ranks; element-wise SUM all-reduce over float64 buffers."""

    def __init__(self, comm=None):
        if MPI is None:
            raise RuntimeError("mpi4py required")
        _ensure_mpi_init()
        self.comm = MPI.COMM_WORLD if comm is None else comm
        self.rank = int(self.comm.Get_rank())
        self.size = int(self.comm.Get_size())

    def allreduce_sum(self, buf: np.ndarray) -> np.ndarray:
        send = np.ascontiguousarray(buf, dtype=np.float64)
        recv = np.empty_like(send)
        self.comm.Allreduce(send, recv, op=MPI.SUM)
        return recv


def mpi_world_size() -> int:
    if MPI is None:
        return 1
    _ensure_mpi_init()
    return int(MPI.COMM_WORLD.Get_size())


def resolve_group(serial: bool = False) -> WorkerGroup:
    """MPI group when launched on more than one rank, otherwise serial."""
    if serial or mpi_world_size() <= 1:
        return SerialGroup()
    return MPIGroup()
