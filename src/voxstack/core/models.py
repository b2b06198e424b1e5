from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

# ---------------------------------------------------------------------------
# Type aliases
# ---------------------------------------------------------------------------

Intensity = int  # voxel value, 0–255


# ---------------------------------------------------------------------------
# Loading configuration
# ---------------------------------------------------------------------------

@dataclass
class LoadConfig:
    """
    Which slice files make up a volume.

    A slice file is any regular file ending in ``extension`` whose name
    carries a trailing slice number, e.g. ``scan_0007.png``.
    """

    first_slice: int = 1
    """Smallest slice number accepted (inclusive)."""

    last_slice: int = -1
    """
    Largest slice number accepted (inclusive).
    A negative value means there is no upper bound.
    """

    extension: str = "png"
    """Slice file extension, with or without the leading dot."""


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------

OPERATION_NAMES = ("blur", "slice", "projection", "save_slices")


@dataclass
class OperationConfig:
    """
    One requested volume operation.

    Operations are run in order by core.pipeline.run_pipeline(). Only the
    fields relevant to ``name`` are read:

      - ``blur``:        subtype (Gaussian/Median), kernel_size, sigma
      - ``slice``:       subtype (XY/XZ/YZ), coordinate, output
      - ``projection``:  subtype (MIP/MinIP/AIP/AIPMedian), z_start, z_end, output
      - ``save_slices``: subtype (file prefix), output (folder)
    """

    name: str
    """Operation name, one of OPERATION_NAMES."""

    subtype: str = ""
    """Filter kind, plane, projection kind or file prefix depending on ``name``."""

    kernel_size: float = 3
    """Blur kernel size; even values are bumped to the next odd size."""

    sigma: float = 2.0
    """Gaussian standard deviation (ignored by the median filter)."""

    coordinate: int = 0
    """Fixed coordinate for a slice (z for XY, y for XZ, x for YZ)."""

    z_start: int = -1
    """
    First z of a projection slab. Together with z_end, a slab is used when
    ``z_start > 0`` or ``z_end >= 0``; otherwise the full depth is projected.
    """

    z_end: int = -1
    """Last z of a projection slab (inclusive); negative means the last slice."""

    output: Optional[Path] = None
    """
    Where to write the result. If None, the pipeline's default output path
    is used.
    """


# ---------------------------------------------------------------------------
# Pipeline configuration
# ---------------------------------------------------------------------------

@dataclass
class PipelineConfig:
    """
    Top-level configuration: which slices to load and what to do with them.

    This is what config_io loads from / saves to YAML, and what the CLI
    builds from its arguments.
    """

    name: str = "voxstack pipeline"
    """Human-readable name."""

    input_path: Optional[Path] = None
    """Slice directory, or ``<directory>/<prefix>``."""

    output_path: Optional[Path] = None
    """Default output file for operations without their own ``output``."""

    load: LoadConfig = field(default_factory=LoadConfig)
    """Slice selection options."""

    operations: List[OperationConfig] = field(default_factory=list)
    """Operations, run in list order."""

    config_path: Optional[Path] = None
    """
    Path of the YAML file this was loaded from.
    Purely informational; not used by algorithms.
    """
