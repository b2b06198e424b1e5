"""
voxstack.core.slicing

Orthogonal cross-sections of a volume.

Output buffers are (rows, cols) ``uint8`` arrays:

- XY at fixed z: (height, width)
- XZ at fixed y: (depth, width)   -- z becomes the row
- YZ at fixed x: (depth, height)  -- y becomes the column, z the row
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

import numpy as np

from . import images as imgio
from .errors import InvalidParameterError, OutOfRangeError
from .volume import Volume


class Plane(str, Enum):
    XY = "XY"
    XZ = "XZ"
    YZ = "YZ"

    @classmethod
    def parse(cls, value: Union[str, "Plane"]) -> "Plane":
        if isinstance(value, cls):
            return value
        key = str(value).strip().upper()
        try:
            return cls(key)
        except ValueError:
            raise InvalidParameterError(
                f"Unknown plane type '{value}'. Expected XY, XZ, or YZ."
            ) from None


def _check_coordinate(name: str, value: int, size: int) -> None:
    if value < 0 or value >= size:
        raise OutOfRangeError(
            f"{name}-coordinate {value} out of range (0-{size - 1})"
        )


def slice_xy(vol: Volume, z: int) -> np.ndarray:
    _check_coordinate("Z", z, vol.depth)
    y = np.arange(vol.height)[:, None]
    x = np.arange(vol.width)[None, :]
    return vol.data[vol.index(x, y, z)]


def slice_xz(vol: Volume, y: int) -> np.ndarray:
    _check_coordinate("Y", y, vol.height)
    z = np.arange(vol.depth)[:, None]
    x = np.arange(vol.width)[None, :]
    return vol.data[vol.index(x, y, z)]


def slice_yz(vol: Volume, x: int) -> np.ndarray:
    _check_coordinate("X", x, vol.width)
    z = np.arange(vol.depth)[:, None]
    y = np.arange(vol.height)[None, :]
    return vol.data[vol.index(x, y, z)]


_SLICERS = {
    Plane.XY: slice_xy,
    Plane.XZ: slice_xz,
    Plane.YZ: slice_yz,
}


def slice_volume(vol: Volume, plane: Union[str, Plane], coordinate: int) -> np.ndarray:
    """
    Copy one orthogonal plane out of ``vol``.

    Parameters
    ----------
    plane:
        ``"XY"``, ``"XZ"`` or ``"YZ"`` (case-insensitive).
    coordinate:
        The fixed coordinate: z for XY, y for XZ, x for YZ.

    Raises
    ------
    InvalidParameterError
        Unknown plane name or an empty volume.
    OutOfRangeError
        ``coordinate`` outside the volume along the fixed axis.
    """
    if vol.is_empty():
        raise InvalidParameterError("Invalid volume dimensions for slicing")
    return _SLICERS[Plane.parse(plane)](vol, int(coordinate))


def save_slices(
    vol: Volume,
    folder: Union[str, Path],
    prefix: str = "volume",
    codec: Optional[imgio.ImageCodec] = None,
) -> List[Path]:
    """
    Write every XY slice as ``<folder>/<prefix>_slice_<z>.png``.

    The folder is created if needed. Returns the written paths in z order.
    """
    if vol.is_empty():
        raise InvalidParameterError("Volume data is empty; no slices to save")

    folder = Path(folder)
    folder.mkdir(parents=True, exist_ok=True)

    written: List[Path] = []
    for z in range(vol.depth):
        out = folder / f"{prefix}_slice_{z}.png"
        written.append(imgio.write_slice(slice_xy(vol, z), out, codec=codec))
    return written
