"""
voxstack.core.volume

The voxel store: a dense single-channel 8-bit volume built from a stack of
2D slice images.

Layout
------
Voxels live in one flat ``uint8`` buffer of length ``width * height * depth``
linearized as ``index(x, y, z) = x + width * (y + height * z)``. Every
component goes through :meth:`Volume.index` (or :meth:`Volume.as_array`,
which is the same layout seen as a ``(depth, height, width)`` view) instead
of re-deriving the formula.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional, Union

import numpy as np

from . import images as imgio
from .errors import (
    DimensionMismatchError,
    InvalidParameterError,
    OutOfRangeError,
    VolumeIOError,
)
from .models import LoadConfig

ProgressCallback = Callable[[str, int, int], None]


class Volume:
    """
    Dense 3D grayscale volume.

    Parameters
    ----------
    width, height, depth:
        Dimensions in voxels. A zero-sized volume is valid and empty.
    first_slice, last_slice, extension:
        Load-time filters used by :meth:`load` (inclusive slice-number
        range, ``last_slice < 0`` meaning unbounded, and the slice file
        extension).
    """

    def __init__(
        self,
        width: int = 0,
        height: int = 0,
        depth: int = 0,
        *,
        first_slice: int = 1,
        last_slice: int = -1,
        extension: str = "png",
    ) -> None:
        if width < 0 or height < 0 or depth < 0:
            raise InvalidParameterError(
                f"Volume dimensions must be non-negative, got {width}x{height}x{depth}"
            )
        self.width = int(width)
        self.height = int(height)
        self.depth = int(depth)
        self.data = np.zeros(self.width * self.height * self.depth, dtype=np.uint8)

        self.first_slice = first_slice
        self.last_slice = last_slice
        self.extension = extension

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------
    @classmethod
    def from_array(cls, array: np.ndarray) -> "Volume":
        """
        Build a volume from a ``(depth, height, width)`` array.

        Values must lie in ``0..255``; they are cast to ``uint8``, never wrapped.
        """
        arr = np.asarray(array)
        if arr.ndim != 3:
            raise InvalidParameterError(
                f"from_array expects a 3D (Z, Y, X) array, got shape {arr.shape}"
            )
        if arr.size and arr.dtype != np.uint8 and (arr.min() < 0 or arr.max() > 255):
            raise InvalidParameterError(
                f"from_array: values span {arr.min()}..{arr.max()}, "
                "outside the 8-bit range 0..255"
            )
        depth, height, width = arr.shape
        vol = cls(width, height, depth)
        vol.as_array()[...] = arr.astype(np.uint8, copy=False)
        return vol

    @classmethod
    def from_config(cls, cfg: LoadConfig) -> "Volume":
        return cls(
            first_slice=cfg.first_slice,
            last_slice=cfg.last_slice,
            extension=cfg.extension,
        )

    def copy(self) -> "Volume":
        vol = Volume(
            self.width,
            self.height,
            self.depth,
            first_slice=self.first_slice,
            last_slice=self.last_slice,
            extension=self.extension,
        )
        vol.data[:] = self.data
        return vol

    # ------------------------------------------------------------------
    # Layout
    # ------------------------------------------------------------------
    @property
    def shape(self) -> tuple[int, int, int]:
        """(depth, height, width), the numpy shape of :meth:`as_array`."""
        return self.depth, self.height, self.width

    @property
    def voxel_count(self) -> int:
        return self.width * self.height * self.depth

    def is_empty(self) -> bool:
        return self.voxel_count == 0

    def index(self, x, y, z):
        """
        Flat buffer index of voxel ``(x, y, z)``.

        Accepts Python ints or numpy integer arrays (broadcast together).
        No bounds check is done here; see :meth:`get_voxel`.
        """
        return x + self.width * (y + self.height * z)

    def as_array(self) -> np.ndarray:
        """
        View of the buffer as a ``(depth, height, width)`` array.

        Writes through the view modify the volume.
        """
        return self.data.reshape(self.depth, self.height, self.width)

    def contains(self, x: int, y: int, z: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height and 0 <= z < self.depth

    def _check_bounds(self, x: int, y: int, z: int, op: str) -> None:
        if not self.contains(x, y, z):
            raise OutOfRangeError(
                f"{op}: ({x}, {y}, {z}) out of range for volume "
                f"{self.width}x{self.height}x{self.depth}"
            )

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    def get_voxel(self, x: int, y: int, z: int) -> int:
        self._check_bounds(x, y, z, "get_voxel")
        return int(self.data[self.index(x, y, z)])

    def set_voxel(self, x: int, y: int, z: int, value: int) -> None:
        self._check_bounds(x, y, z, "set_voxel")
        if not 0 <= value <= 255:
            raise InvalidParameterError(f"set_voxel: value {value} is not an 8-bit intensity")
        self.data[self.index(x, y, z)] = value

    def replace_data(self, buffer: np.ndarray) -> None:
        """
        Swap in a new voxel buffer of the same size.

        Used by filters once their output is fully computed.
        """
        buf = np.asarray(buffer, dtype=np.uint8).reshape(-1)
        if buf.size != self.voxel_count:
            raise DimensionMismatchError(
                f"replacement buffer has {buf.size} voxels, volume needs {self.voxel_count}"
            )
        self.data = buf

    def reset(self) -> None:
        """Drop all voxels and return to the empty 0x0x0 state."""
        self.width = self.height = self.depth = 0
        self.data = np.zeros(0, dtype=np.uint8)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------
    def load(
        self,
        path: Union[str, Path],
        progress_cb: Optional[ProgressCallback] = None,
        codec: Optional[imgio.ImageCodec] = None,
    ) -> "Volume":
        """
        Populate the volume from a stack of slice images.

        ``path`` is either a directory, or ``<directory>/<prefix>`` in which
        case only files starting with ``prefix`` are considered. Files must
        end in ``self.extension`` and carry a trailing slice number in
        ``[first_slice, last_slice]``; they are stacked in ascending slice
        number order (the number itself does not pick the z position).

        On any failure, including errors raised by a custom codec, the volume
        is reset to empty and the error re-raised.

        Raises
        ------
        VolumeIOError
            Directory missing, no matching slice, or a slice failed to decode.
        DimensionMismatchError
            A slice's size differs from the first slice.
        """
        self.reset()
        try:
            self._load_slices(path, progress_cb, codec or imgio.DEFAULT_CODEC)
        except Exception:
            self.reset()
            raise
        return self

    def _load_slices(
        self,
        path: Union[str, Path],
        progress_cb: Optional[ProgressCallback],
        codec: imgio.ImageCodec,
    ) -> None:
        directory, prefix = imgio.split_directory_and_prefix(path)
        candidates = imgio.list_slice_candidates(directory, prefix, self.extension)
        files = imgio.select_slices(candidates, self.first_slice, self.last_slice)
        if not files:
            raise VolumeIOError(f"No slices found in {path}")

        depth = len(files)
        first_pixels, width, height = codec.decode(files[0][0])
        plane = width * height

        # self is only updated once the last slice is in
        staged = Volume(width, height, depth)

        for z, (slice_path, _) in enumerate(files):
            if progress_cb is not None:
                progress_cb("loading", z + 1, depth)

            if z == 0:
                pixels = first_pixels
            else:
                pixels, w, h = codec.decode(slice_path)
                if w != width or h != height:
                    raise DimensionMismatchError(
                        f"Slice dimension mismatch at {slice_path}: "
                        f"{w}x{h}, expected {width}x{height}"
                    )

            pixels = np.asarray(pixels, dtype=np.uint8).reshape(-1)
            if pixels.size != plane:
                raise VolumeIOError(
                    f"Decoded {pixels.size} pixels from {slice_path}, expected {plane}"
                )
            start = staged.index(0, 0, z)
            staged.data[start:start + plane] = pixels

        self.width, self.height, self.depth = width, height, depth
        self.data = staged.data


def load_volume(
    path: Union[str, Path],
    first_slice: int = 1,
    last_slice: int = -1,
    extension: str = "png",
    *,
    progress_cb: Optional[ProgressCallback] = None,
    codec: Optional[imgio.ImageCodec] = None,
) -> Volume:
    """
    Load a slice stack into a new :class:`Volume`.

    See :meth:`Volume.load` for the file selection rules.
    """
    vol = Volume(first_slice=first_slice, last_slice=last_slice, extension=extension)
    return vol.load(path, progress_cb=progress_cb, codec=codec)
