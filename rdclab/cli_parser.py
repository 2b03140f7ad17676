from __future__ import annotations

import argparse
from typing import Callable


def build_parser(
    *,
    cmd_check: Callable,
    cmd_eval: Callable,
) -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="rdclab")
    sub = p.add_subparsers(dest="cmd", required=True)

    pc = sub.add_parser("check", help="Validate an RDC config and print the bond summary")
    pc.add_argument("config", help="YAML RDC keywords")
    pc.set_defaults(func=cmd_check)

    pe = sub.add_parser("eval", help="Evaluate couplings for every frame of a LAMMPS dump")
    pe.add_argument("config", help="YAML RDC keywords")
    pe.add_argument("traj", help="LAMMPS dump (.lammpstrj, .gz accepted)")
    pe.add_argument("--out", default="", help="CSV output path (one row per evaluated frame)")
    pe.add_argument("--every", type=int, default=1, help="Evaluate every N-th frame")
    pe.add_argument("--no-pbc", action="store_true", help="Ignore the dump box (plain displacements)")
    pe.add_argument("--serial", action="store_true", help="Force single-worker evaluation")
    pe.set_defaults(func=cmd_eval)

    return p
