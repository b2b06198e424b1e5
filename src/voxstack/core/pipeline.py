from __future__ import annotations

import warnings
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from . import images as imgio
from .errors import InvalidParameterError, OutOfRangeError
from .filters3d import apply_3d_blur
from .models import OPERATION_NAMES, OperationConfig, PipelineConfig
from .projections import apply_projection
from .slicing import save_slices, slice_volume
from .volume import Volume, load_volume

ProgressCallback = Callable[[str, int, int], None]


def _output_for(op: OperationConfig, default: Optional[Path]) -> Path:
    out = op.output if op.output is not None else default
    if out is None:
        raise InvalidParameterError(f"No output path given for '{op.name}' operation")
    return Path(out)


def run_operation(
    volume: Volume,
    op: OperationConfig,
    output_path: Optional[Path] = None,
    codec: Optional[imgio.ImageCodec] = None,
    progress_cb: Optional[ProgressCallback] = None,
) -> List[Path]:
    """
    Run a single operation and return the files it wrote.

    ``blur`` mutates the volume and writes nothing; ``progress_cb`` is passed
    to the filter. Errors are raised to the caller.
    """
    name = op.name.strip().lower()
    if name not in OPERATION_NAMES:
        raise InvalidParameterError(
            f"Unknown volume operation '{op.name}'. Choose from {', '.join(OPERATION_NAMES)}."
        )

    if name == "blur":
        apply_3d_blur(volume, op.subtype, op.kernel_size, op.sigma, progress_cb=progress_cb)
        return []

    if name == "slice":
        out = _output_for(op, output_path)
        buffer = slice_volume(volume, op.subtype, int(op.coordinate))
        return [imgio.write_slice(buffer, out, codec=codec)]

    if name == "projection":
        out = _output_for(op, output_path)
        buffer = apply_projection(volume, op.subtype, op.z_start, op.z_end)
        return [imgio.write_projection(buffer, out, codec=codec)]

    # save_slices
    folder = _output_for(op, output_path)
    return save_slices(volume, folder, op.subtype or "volume", codec=codec)


def run_pipeline(
    volume: Volume,
    operations: Iterable[OperationConfig],
    output_path: Optional[Path] = None,
    codec: Optional[imgio.ImageCodec] = None,
    progress_cb: Optional[ProgressCallback] = None,
) -> List[Path]:
    """
    Run ``operations`` in order on ``volume``.

    An operation with an unknown name/kind or an out-of-range coordinate is
    reported with ``warnings.warn`` and skipped; the remaining operations
    still run. I/O errors propagate.

    Returns
    -------
    List[Path]
        Every file written, in the order written.
    """
    ops = list(operations)
    written: List[Path] = []

    for idx, op in enumerate(ops, start=1):
        if progress_cb is not None:
            progress_cb(op.name, idx, len(ops))
        try:
            written.extend(
                run_operation(volume, op, output_path, codec=codec, progress_cb=progress_cb)
            )
        except (InvalidParameterError, OutOfRangeError) as e:
            warnings.warn(f"Skipping '{op.name}' operation: {e}")

    return written


def run_config(
    cfg: PipelineConfig,
    codec: Optional[imgio.ImageCodec] = None,
    progress_cb: Optional[ProgressCallback] = None,
) -> List[Path]:
    """
    Load the volume described by ``cfg`` and run its operations.

    Load failures propagate; nothing is run on a partially loaded volume.
    """
    if cfg.input_path is None:
        raise InvalidParameterError("PipelineConfig.input_path is not set")

    volume = load_volume(
        cfg.input_path,
        cfg.load.first_slice,
        cfg.load.last_slice,
        cfg.load.extension,
        progress_cb=progress_cb,
        codec=codec,
    )
    return run_pipeline(
        volume,
        cfg.operations,
        cfg.output_path,
        codec=codec,
        progress_cb=progress_cb,
    )
