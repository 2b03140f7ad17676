from __future__ import annotations

import argparse
import os
from pathlib import Path
import shutil
import subprocess
import sys


def _find_mpirun(user_arg: str | None) -> str | None:
    if user_arg:
        return user_arg
    env_val = os.environ.get("MPIRUN", "").strip()
    if env_val:
        return env_val
    return (
        shutil.which("mpiexec.hydra")
        or shutil.which("mpiexec")
        or shutil.which("mpirun")
    )


def main() -> int:
    p = argparse.ArgumentParser(description="MPI smoke test: parallel vs serial RDC evaluation")
    p.add_argument("--n", type=int, default=2, help="MPI ranks (default: 2)")
    p.add_argument("--config", default="examples/nh_direct.yaml")
    p.add_argument("--traj", default="examples/nh_frames.lammpstrj")
    p.add_argument("--out-dir", default="", help="Where to write the two CSV files")
    p.add_argument("--mpirun", default="", help="Path to mpirun/mpiexec")
    p.add_argument("--timeout", type=int, default=60)
    args = p.parse_args()

    mpirun = _find_mpirun(args.mpirun or None)
    if not mpirun:
        print("[mpi-smoke] mpirun/mpiexec not found", file=sys.stderr)
        return 2

    root = Path(__file__).resolve().parents[1]
    cfg = Path(args.config)
    traj = Path(args.traj)
    if not cfg.is_absolute():
        cfg = root / cfg
    if not traj.is_absolute():
        traj = root / traj
    for path in (cfg, traj):
        if not path.exists():
            print(f"[mpi-smoke] input not found: {path}", file=sys.stderr)
            return 2
    out_dir = Path(args.out_dir) if args.out_dir else root / "mpi_smoke_out"
    out_dir.mkdir(parents=True, exist_ok=True)
    par_csv = out_dir / "parallel.csv"
    ser_csv = out_dir / "serial.csv"

    env = os.environ.copy()
    env.setdefault("PYTHONUNBUFFERED", "1")
    base = [sys.executable, "-m", "rdclab.main", "eval", str(cfg), str(traj)]
    runs = [
        [mpirun, "-n", str(int(args.n)), *base, "--out", str(par_csv)],
        [*base, "--serial", "--out", str(ser_csv)],
    ]
    for cmd in runs:
        print("[mpi-smoke] " + " ".join(cmd), flush=True)
        try:
            res = subprocess.run(cmd, cwd=str(root), env=env, timeout=int(args.timeout))
        except subprocess.TimeoutExpired:
            print("[mpi-smoke] timed out", file=sys.stderr)
            return 3
        if res.returncode != 0:
            return int(res.returncode)

    if par_csv.read_text(encoding="utf-8") != ser_csv.read_text(encoding="utf-8"):
        print("[mpi-smoke] parallel and serial outputs differ", file=sys.stderr)
        return 4
    print("[mpi-smoke] ok", flush=True)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
