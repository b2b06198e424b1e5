"""
voxstack.core.images

Image-file utilities for the voxstack project.

Includes:
- slice file discovery (directory + prefix + extension, trailing index)
- the default Pillow codec used to decode slices and encode 2D outputs
- writers for slice / projection buffers
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional, Protocol, Tuple, Union

import numpy as np
from PIL import Image, UnidentifiedImageError

from .errors import VolumeIOError

PathLike = Union[str, Path]

# (path, parsed slice index)
SliceCandidate = Tuple[Path, int]


class ImageCodec(Protocol):
    """Anything that can decode slices and encode 2D outputs."""

    def decode(self, path: PathLike) -> Tuple[np.ndarray, int, int]:
        ...

    def encode(
        self,
        path: PathLike,
        pixels: np.ndarray,
        width: int,
        height: int,
        channel_count: int,
    ) -> bool:
        ...


# -------------------------------------------------------------------------
# Slice discovery
# -------------------------------------------------------------------------
def normalize_extension(extension: str) -> str:
    """
    Return the extension in ``.ext`` lower-case form.

    ``"png"``, ``".png"`` and ``"PNG"`` all map to ``".png"``.
    """
    ext = extension.strip().lower()
    if not ext.startswith("."):
        ext = "." + ext
    return ext


def split_directory_and_prefix(path: PathLike) -> Tuple[Path, str]:
    """
    Split a user path into (directory, filename prefix).

    If ``path`` is an existing directory the prefix is empty. Otherwise the
    path is split at its last ``/`` or ``\\``; with no separator the
    directory is the current one and the whole string is the prefix.
    """
    s = str(path)
    if os.path.isdir(s):
        return Path(s), ""

    pos = max(s.rfind("/"), s.rfind("\\"))
    if pos < 0:
        return Path("."), s

    dir_part = s[:pos]
    prefix = s[pos + 1:]
    if not dir_part:
        # leading separator: prefix lives in the filesystem root
        dir_part = "/" if s.startswith("/") else "."
    return Path(dir_part), prefix


def parse_slice_number(filename: str, extension: str = "png") -> Optional[int]:
    """
    Parse the slice index from a filename.

    The index is the run of decimal digits immediately preceding the
    extension, e.g. ``"vol_0042.png" -> 42``. Returns None if the filename
    does not end in ``extension`` or has no digits right before it.
    """
    ext = normalize_extension(extension)
    if len(filename) <= len(ext) or not filename.lower().endswith(ext):
        return None

    stem = filename[: len(filename) - len(ext)]
    start = len(stem)
    while start > 0 and stem[start - 1] in "0123456789":
        start -= 1

    digits = stem[start:]
    if not digits:
        return None
    return int(digits)


def list_slice_candidates(
    directory: PathLike,
    prefix: str = "",
    extension: str = "png",
) -> List[SliceCandidate]:
    """
    List (path, index) pairs for slice files in ``directory``.

    Only regular files whose name starts with ``prefix`` (if given), ends in
    ``extension`` and carries a trailing slice number are returned. The list
    is not sorted and not filtered by slice range.

    Raises
    ------
    VolumeIOError
        If the directory cannot be listed.
    """
    folder = Path(directory)
    if not folder.is_dir():
        raise VolumeIOError(f"Cannot open directory: {folder}")

    candidates: List[SliceCandidate] = []
    try:
        entries = list(folder.iterdir())
    except OSError as exc:
        raise VolumeIOError(f"Cannot open directory: {folder}") from exc

    for entry in entries:
        name = entry.name
        if prefix and not name.startswith(prefix):
            continue
        if not entry.is_file():
            continue
        index = parse_slice_number(name, extension)
        if index is None:
            continue
        candidates.append((entry, index))

    return candidates


def select_slices(
    candidates: List[SliceCandidate],
    first_slice: int = 1,
    last_slice: int = -1,
) -> List[SliceCandidate]:
    """
    Keep candidates with index in ``[first_slice, last_slice]`` and sort them.

    A negative ``last_slice`` means no upper bound. Ties on the index are
    broken by filename so the order is deterministic.
    """
    kept = [
        (p, idx)
        for p, idx in candidates
        if idx >= first_slice and (last_slice < 0 or idx <= last_slice)
    ]
    kept.sort(key=lambda item: (item[1], item[0].name))
    return kept


# -------------------------------------------------------------------------
# Pillow codec
# -------------------------------------------------------------------------
class PillowCodec:
    """
    Default image codec backed by Pillow.

    ``decode`` always returns a single-channel 8-bit image flattened in
    row-major order. ``encode`` accepts 1 (grayscale) or 3 (RGB) channels.
    """

    def decode(self, path: PathLike) -> Tuple[np.ndarray, int, int]:
        try:
            with Image.open(path) as im:
                gray = im.convert("L")
                width, height = gray.size
                pixels = np.asarray(gray, dtype=np.uint8).reshape(-1).copy()
        except (OSError, UnidentifiedImageError, ValueError) as exc:
            raise VolumeIOError(f"Failed to load slice: {path}") from exc
        return pixels, width, height

    def encode(
        self,
        path: PathLike,
        pixels: np.ndarray,
        width: int,
        height: int,
        channel_count: int,
    ) -> bool:
        arr = np.asarray(pixels, dtype=np.uint8)
        if arr.size != width * height * channel_count:
            return False

        if channel_count == 1:
            im = Image.fromarray(arr.reshape(height, width))
        elif channel_count == 3:
            im = Image.fromarray(arr.reshape(height, width, 3))
        else:
            return False

        try:
            im.save(str(path))
        except (OSError, ValueError):
            return False
        return True


DEFAULT_CODEC = PillowCodec()


def decode(path: PathLike) -> Tuple[np.ndarray, int, int]:
    return DEFAULT_CODEC.decode(path)


def encode(
    path: PathLike,
    pixels: np.ndarray,
    width: int,
    height: int,
    channel_count: int,
) -> bool:
    return DEFAULT_CODEC.encode(path, pixels, width, height, channel_count)


# -------------------------------------------------------------------------
# 2D output writers
# -------------------------------------------------------------------------
def replicate_to_rgb(buffer: np.ndarray) -> np.ndarray:
    """
    Replicate a single-channel (rows, cols) buffer into (rows, cols, 3).
    """
    gray = np.asarray(buffer, dtype=np.uint8)
    return np.repeat(gray[..., np.newaxis], 3, axis=-1)


def _write(
    path: PathLike,
    pixels: np.ndarray,
    width: int,
    height: int,
    channel_count: int,
    codec: Optional[ImageCodec],
) -> Path:
    out = Path(path)
    if not out.parent.exists():
        out.parent.mkdir(parents=True, exist_ok=True)

    codec = codec or DEFAULT_CODEC
    if not codec.encode(out, pixels, width, height, channel_count):
        raise VolumeIOError(f"Failed to write image: {out}")
    return out


def write_slice(
    buffer: np.ndarray,
    path: PathLike,
    codec: Optional[ImageCodec] = None,
) -> Path:
    """
    Write a slice buffer of shape (rows, cols) as a single-channel image.
    """
    height, width = buffer.shape
    return _write(path, buffer.reshape(-1), width, height, 1, codec)


def write_projection(
    buffer: np.ndarray,
    path: PathLike,
    codec: Optional[ImageCodec] = None,
) -> Path:
    """
    Write a projection buffer with its intensity replicated into R, G and B.

    The output has exactly three channels and no alpha.
    """
    height, width = buffer.shape
    rgb = replicate_to_rgb(buffer)
    return _write(path, rgb.reshape(-1), width, height, 3, codec)
