"""
voxstack.core.projections

Intensity projections along the depth (z) axis.

Every projection reduces a (depth, height, width) volume to a
(height, width) ``uint8`` buffer:

- MIP:       maximum along z
- MinIP:     minimum along z
- AIP:       integer mean along z (sum, then floor division by the count)
- AIPMedian: median along z; for an even count, the floor of the mean of
             the two middle values

MIP, MinIP and AIP also have slab variants restricted to an inclusive
z-range.
"""

from __future__ import annotations

from enum import Enum
from typing import Tuple, Union

import numpy as np

from .errors import InvalidParameterError
from .volume import Volume


class ProjectionKind(str, Enum):
    MIP = "MIP"
    MINIP = "MinIP"
    AIP = "AIP"
    AIP_MEDIAN = "AIPMedian"

    @classmethod
    def parse(cls, value: Union[str, "ProjectionKind"]) -> "ProjectionKind":
        """
        Look up a projection kind by name (case-insensitive).

        Raises InvalidParameterError for unknown names.
        """
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        for kind in cls:
            if kind.value.lower() == key:
                return kind
        raise InvalidParameterError(
            f"Unknown projection type '{value}'. "
            f"Choose from {', '.join(k.value for k in cls)}."
        )


SLAB_KINDS = (ProjectionKind.MIP, ProjectionKind.MINIP, ProjectionKind.AIP)


def _check_not_empty(vol: Volume, what: str) -> None:
    if vol.is_empty():
        raise InvalidParameterError(f"Volume dimensions are zero; cannot do {what}")


def clamp_slab(vol: Volume, z_start: int, z_end: int) -> Tuple[int, int]:
    """
    Clamp both bounds into ``[0, depth - 1]`` and order them.
    """
    last = vol.depth - 1
    start = max(0, min(z_start, last))
    end = max(0, min(z_end, last))
    if start > end:
        start, end = end, start
    return start, end


# ---------------------------------------------------------------------------
# Reductions
# ---------------------------------------------------------------------------
def _max_along_z(vol: Volume, start: int, end: int) -> np.ndarray:
    return vol.as_array()[start:end + 1].max(axis=0)


def _min_along_z(vol: Volume, start: int, end: int) -> np.ndarray:
    return vol.as_array()[start:end + 1].min(axis=0)


def _mean_along_z(vol: Volume, start: int, end: int) -> np.ndarray:
    stack = vol.as_array()[start:end + 1]
    total = stack.sum(axis=0, dtype=np.uint64)
    return (total // np.uint64(end - start + 1)).astype(np.uint8)


def mip(vol: Volume) -> np.ndarray:
    """Maximum intensity projection over the whole depth."""
    _check_not_empty(vol, "MIP")
    return _max_along_z(vol, 0, vol.depth - 1)


def minip(vol: Volume) -> np.ndarray:
    """Minimum intensity projection over the whole depth."""
    _check_not_empty(vol, "MinIP")
    return _min_along_z(vol, 0, vol.depth - 1)


def aip(vol: Volume) -> np.ndarray:
    """Average intensity projection, ``floor(sum_z / depth)``."""
    _check_not_empty(vol, "AIP")
    return _mean_along_z(vol, 0, vol.depth - 1)


def aip_median(vol: Volume) -> np.ndarray:
    """
    Median intensity projection over the whole depth.

    Odd depth: the middle sorted value. Even depth: the floor of the mean
    of the two middle sorted values.
    """
    _check_not_empty(vol, "AIPMedian")
    d = vol.depth
    ordered = np.sort(vol.as_array(), axis=0)
    if d % 2 == 1:
        return ordered[d // 2].copy()
    lower = ordered[d // 2 - 1].astype(np.uint16)
    upper = ordered[d // 2].astype(np.uint16)
    return ((lower + upper) // 2).astype(np.uint8)


def mip_slab(vol: Volume, z_start: int, z_end: int) -> np.ndarray:
    """MIP over the inclusive slab ``[z_start, z_end]`` (clamped, swapped if reversed)."""
    _check_not_empty(vol, "MIPSlab")
    return _max_along_z(vol, *clamp_slab(vol, z_start, z_end))


def minip_slab(vol: Volume, z_start: int, z_end: int) -> np.ndarray:
    """MinIP over the inclusive slab ``[z_start, z_end]`` (clamped, swapped if reversed)."""
    _check_not_empty(vol, "MinIPSlab")
    return _min_along_z(vol, *clamp_slab(vol, z_start, z_end))


def aip_slab(vol: Volume, z_start: int, z_end: int) -> np.ndarray:
    """AIP over the inclusive slab ``[z_start, z_end]`` (clamped, swapped if reversed)."""
    _check_not_empty(vol, "AIPSlab")
    return _mean_along_z(vol, *clamp_slab(vol, z_start, z_end))


_FULL = {
    ProjectionKind.MIP: mip,
    ProjectionKind.MINIP: minip,
    ProjectionKind.AIP: aip,
    ProjectionKind.AIP_MEDIAN: aip_median,
}

_SLAB = {
    ProjectionKind.MIP: mip_slab,
    ProjectionKind.MINIP: minip_slab,
    ProjectionKind.AIP: aip_slab,
}


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------
def slab_requested(z_start: int, z_end: int) -> bool:
    """
    True when the bounds ask for a slab: ``z_start > 0`` or ``z_end >= 0``.

    An explicit full range ``(0, depth - 1)`` therefore takes the slab path;
    its output is identical to the full projection, so the two requests
    cannot be told apart from the result.
    """
    return z_start > 0 or z_end >= 0


def apply_projection(
    vol: Volume,
    kind: Union[str, ProjectionKind],
    z_start: int = -1,
    z_end: int = -1,
) -> np.ndarray:
    """
    Project ``vol`` along z and return a (height, width) ``uint8`` buffer.

    MIP, MinIP and AIP use their slab variant when :func:`slab_requested`
    holds, with ``z_start`` floored at 0 and a negative ``z_end`` meaning
    the last slice. AIPMedian always projects the full depth.

    Raises
    ------
    InvalidParameterError
        Unknown ``kind``, or an empty volume.
    """
    proj = ProjectionKind.parse(kind)

    if proj in SLAB_KINDS and slab_requested(z_start, z_end):
        zs = max(z_start, 0)
        ze = vol.depth - 1 if z_end < 0 else min(z_end, vol.depth - 1)
        return _SLAB[proj](vol, zs, ze)

    return _FULL[proj](vol)


project = apply_projection
