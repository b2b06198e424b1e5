from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Iterable, List, Optional

import yaml

from voxstack.core.config_io import load_pipeline_config
from voxstack.core.errors import VolumeError
from voxstack.core.models import LoadConfig, OperationConfig, PipelineConfig
from voxstack.core.pipeline import run_pipeline
from voxstack.core.volume import load_volume


class _OperationAction(argparse.Action):
    """
    Append an OperationConfig to ``namespace.operations``.

    All operation flags share one list so they run in command-line order.
    """

    def __call__(self, parser, namespace, values, option_string=None):  # type: ignore[override]
        ops: List[OperationConfig] = getattr(namespace, "operations", None) or []
        values = list(values) if isinstance(values, list) else [values]

        if self.dest == "blur":
            if not 2 <= len(values) <= 3:
                parser.error(f"{option_string} requires <type> <size> [<sigma>]")
            op = OperationConfig(name="blur", subtype=values[0])
            op.kernel_size = _number(parser, option_string, values[1])
            if len(values) == 3:
                op.sigma = _number(parser, option_string, values[2])
        elif self.dest == "slice":
            op = OperationConfig(
                name="slice",
                subtype=values[0],
                coordinate=int(_number(parser, option_string, values[1])),
            )
        elif self.dest == "projection":
            op = OperationConfig(name="projection", subtype=values[0])
        else:
            op = OperationConfig(name="save_slices", subtype=values[0])

        ops.append(op)
        namespace.operations = ops


def _number(parser: argparse.ArgumentParser, flag: Optional[str], text: str) -> float:
    try:
        return float(text)
    except ValueError:
        parser.error(f"{flag}: expected a number, got {text!r}")


def build_arg_parser() -> argparse.ArgumentParser:
    """
    CLI for processing a stack of slice images as one volume:
      - 3D Gaussian / median blur,
      - orthogonal slices (XY, XZ, YZ),
      - intensity projections (MIP, MinIP, AIP, AIPMedian).
    """
    parser = argparse.ArgumentParser(
        description="Process a stack of 2D slice images as a 3D volume (voxstack)."
    )

    parser.add_argument(
        "input",
        nargs="?",
        default=None,
        help=(
            "Slice directory, or <directory>/<prefix> to only use files "
            "starting with <prefix>."
        ),
    )
    parser.add_argument(
        "output",
        nargs="?",
        type=Path,
        default=None,
        help="Output image for slice/projection operations.",
    )

    parser.add_argument(
        "-f", "--first",
        type=int,
        default=None,
        help="First slice number to load, inclusive (default: 1, or the config's).",
    )
    parser.add_argument(
        "-l", "--last",
        type=int,
        default=None,
        help=(
            "Last slice number to load, inclusive; negative means all "
            "(default: -1, or the config's)."
        ),
    )
    parser.add_argument(
        "-x", "--ext",
        default=None,
        help="Slice file extension (default: png, or the config's).",
    )

    parser.add_argument(
        "-r", "--blur",
        nargs="+",
        action=_OperationAction,
        metavar="ARG",
        help="3D blur: <Gaussian|Median> <size> [<sigma>] (sigma default: 2.0).",
    )
    parser.add_argument(
        "-s", "--slice",
        nargs=2,
        action=_OperationAction,
        metavar=("PLANE", "COORD"),
        help="Orthogonal slice: <XY|XZ|YZ> <coordinate>.",
    )
    parser.add_argument(
        "-p", "--projection",
        action=_OperationAction,
        metavar="KIND",
        help="Projection along z: MIP, MinIP, AIP or AIPMedian.",
    )
    parser.add_argument(
        "--dump-slices",
        action=_OperationAction,
        metavar="PREFIX",
        help="Write every XY slice as <output>/<PREFIX>_slice_<z>.png.",
    )
    parser.add_argument(
        "--slab",
        nargs=2,
        type=int,
        default=None,
        metavar=("Z_START", "Z_END"),
        help="Restrict MIP/MinIP/AIP projections to slices Z_START..Z_END.",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help=(
            "Pipeline YAML configuration. Its operations run after those "
            "given on the command line; positional paths and -f/-l/-x "
            "override its own values."
        ),
    )

    return parser


def _build_config(args: argparse.Namespace, parser: argparse.ArgumentParser) -> PipelineConfig:
    """
    Merge --config (if any) with the command line; explicit flags win.
    """
    if args.config is not None:
        try:
            cfg = load_pipeline_config(args.config)
        except (OSError, ValueError, yaml.YAMLError) as e:
            print(f"Failed to read config {args.config}: {e}", file=sys.stderr)
            raise SystemExit(1)
    else:
        cfg = PipelineConfig(load=LoadConfig())

    if args.first is not None:
        cfg.load.first_slice = args.first
    if args.last is not None:
        cfg.load.last_slice = args.last
    if args.ext is not None:
        cfg.load.extension = args.ext

    if args.input is not None:
        cfg.input_path = Path(args.input)
    if args.output is not None:
        cfg.output_path = args.output
    if cfg.input_path is None:
        parser.error("missing input path")

    ops: List[OperationConfig] = list(getattr(args, "operations", None) or [])
    if args.slab is not None:
        for op in ops:
            if op.name == "projection":
                op.z_start, op.z_end = args.slab
    cfg.operations = ops + cfg.operations
    return cfg


def main(argv: Optional[Iterable[str]] = None) -> None:
    parser = build_arg_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    cfg = _build_config(args, parser)

    try:
        volume = load_volume(
            cfg.input_path,
            cfg.load.first_slice,
            cfg.load.last_slice,
            cfg.load.extension,
        )
    except VolumeError as e:
        print(f"Failed to load volume from {cfg.input_path}: {e}", file=sys.stderr)
        raise SystemExit(1)

    print(f"Loaded {volume.depth} slices from {cfg.input_path}")
    print(f"Volume dimension: {volume.width} x {volume.height} x {volume.depth}")

    try:
        written = run_pipeline(volume, cfg.operations, cfg.output_path)
    except VolumeError as e:
        print(f"Error: {e}", file=sys.stderr)
        raise SystemExit(1)

    if written:
        print("Written files:")
        for p in written:
            print(f"  {p}")
    else:
        print("No output files written.")


if __name__ == "__main__":
    main()
