from __future__ import annotations

import dataclasses

import numpy as np

from .bonds import RDCConfigError
from .cli_parser import build_parser
from .comm import resolve_group
from .config import RDCConfig, load_config
from .evaluator import EvaluatorMode, build_evaluator, evaluator_mode
from .io import TrajectoryFormatError, iter_frames
from .output import ObservableWriter


def _load(path: str) -> RDCConfig:
    try:
        return load_config(path)
    except RDCConfigError as exc:
        raise SystemExit(f"[rdc] configuration error: {exc}") from exc


def _print_summary(cfg: RDCConfig) -> None:
    for line in cfg.bonds.describe():
        print(f"[rdc] {line}", flush=True)
    mode = "svd" if cfg.svd else "direct"
    print(f"[rdc] label={cfg.label} bonds={len(cfg.bonds)} mode={mode} serial={cfg.serial}", flush=True)


def _cmd_check(args) -> None:
    cfg = _load(args.config)
    _print_summary(cfg)
    raise SystemExit(0)


def _cmd_eval(args) -> None:
    cfg = _load(args.config)
    if args.serial:
        cfg = dataclasses.replace(cfg, serial=True)
    every = int(args.every)
    if every < 1:
        raise SystemExit("--every must be >= 1")

    group = resolve_group(serial=cfg.serial)
    ev = build_evaluator(cfg, group)
    is_root = group.rank == 0
    if is_root:
        _print_summary(cfg)
        if group.size > 1 and not cfg.serial:
            print(f"[rdc] workers={group.size}", flush=True)

    writer = None
    if is_root and args.out:
        writer = ObservableWriter(
            args.out,
            names=cfg.component_names(),
            with_fit_stats=(evaluator_mode(ev) is EvaluatorMode.SVD),
        )
    n_eval = 0
    try:
        for k, frame in enumerate(iter_frames(args.traj)):
            if k % every:
                continue
            try:
                pos = cfg.bonds.gather(frame.ids, frame.positions)
            except ValueError as exc:
                raise SystemExit(f"[rdc] cannot use frame {frame.step} of {args.traj}: {exc}") from exc
            box = None if args.no_pbc else frame.box
            result = ev.evaluate(pos, box)
            n_eval += 1
            if writer is not None:
                writer.write(frame.step, result)
            elif is_root:
                vals = " ".join(f"{x:.6g}" for x in np.asarray(result.couplings))
                print(f"[eval step={frame.step}] {vals}", flush=True)
    except (TrajectoryFormatError, OSError) as exc:
        raise SystemExit(f"[rdc] cannot read {args.traj}: {exc}") from exc
    finally:
        if writer is not None:
            writer.close()
    if is_root:
        print(f"[rdc] evaluated {n_eval} frame(s)", flush=True)
    raise SystemExit(0)


def main() -> None:
    p = build_parser(cmd_check=_cmd_check, cmd_eval=_cmd_eval)
    args = p.parse_args()
    func = getattr(args, "func", None)
    if func is None:
        raise SystemExit(f"unsupported cmd: {getattr(args, 'cmd', None)}")
    func(args)


if __name__ == "__main__":
    main()
