"""
voxstack.core.filters3d

In-place 3D denoising filters:

- gaussian_blur_3d: separable Gaussian (X pass, then Y, then Z)
- median_blur_3d:   cubic-window median using a sliding intensity histogram

Both filters use replicate-border clamping and compute into scratch
buffers; the volume's buffer is only replaced once the result is complete.
"""

from __future__ import annotations

from typing import Callable, Optional

import numpy as np

from .errors import InvalidParameterError
from .volume import Volume

ProgressCallback = Callable[[str, int, int], None]

N_BINS = 256


def odd_kernel_size(kernel_size: float) -> int:
    """
    Truncate ``kernel_size`` to int and bump even sizes to the next odd one.

    Raises InvalidParameterError if the result is smaller than 1.
    """
    size = int(kernel_size)
    if size % 2 == 0:
        size += 1
    if size < 1:
        raise InvalidParameterError(f"Kernel size must be >= 1, got {kernel_size}")
    return size


def gaussian_kernel_1d(kernel_size: int, sigma: float) -> np.ndarray:
    """
    Normalized 1D Gaussian weights.

    ``weight[i] = exp(-(i - radius)^2 / (2 sigma^2))`` for i in
    ``[0, kernel_size)``, divided by their sum. A single-tap kernel is
    ``[1.0]`` whatever sigma is.
    """
    if kernel_size == 1:
        return np.ones(1, dtype=np.float64)
    if sigma <= 0:
        raise InvalidParameterError(f"Gaussian sigma must be > 0, got {sigma}")

    radius = kernel_size // 2
    offsets = np.arange(kernel_size, dtype=np.float64) - radius
    kernel = np.exp(-(offsets * offsets) / (2.0 * sigma * sigma))
    # summed left to right
    total = 0.0
    for value in kernel:
        total += value
    return kernel / total


def _to_uint8(acc: np.ndarray) -> np.ndarray:
    # truncation, as an integer cast of the accumulated value
    return np.clip(acc, 0, 255).astype(np.uint8)


# ---------------------------------------------------------------------------
# Separable Gaussian
# ---------------------------------------------------------------------------
def gaussian_blur_3d(
    volume: Volume,
    kernel_size: float,
    sigma: float,
    progress_cb: Optional[ProgressCallback] = None,
) -> None:
    """
    Blur ``volume`` in place with an isotropic 3D Gaussian.

    Three 1D passes are run, each over the previous pass's output: along X,
    then Y, then Z. Taps falling outside the volume are clamped to the
    nearest edge voxel on that axis. Every pass divides by the sum of the
    weights it accumulated and truncates the result to 8 bits, so a uniform
    volume comes out unchanged.

    Parameters
    ----------
    volume:
        Volume to filter; its buffer is replaced by the result.
    kernel_size:
        Number of taps per axis. Even sizes are bumped to the next odd one.
    sigma:
        Standard deviation of the Gaussian, in voxels.
    progress_cb:
        Called as ``progress_cb("gaussian", pass_number, 3)`` after each pass.
    """
    size = odd_kernel_size(kernel_size)
    kernel = gaussian_kernel_1d(size, sigma)
    if volume.is_empty():
        return

    radius = size // 2
    w, h, d = volume.width, volume.height, volume.depth
    z = np.arange(d)[:, None, None]
    y = np.arange(h)[None, :, None]
    x = np.arange(w)[None, None, :]

    def run_pass(src: np.ndarray, axis: str, phase: int) -> np.ndarray:
        acc = np.zeros(volume.shape, dtype=np.float64)
        weight_sum = 0.0
        for i in range(size):
            offset = i - radius
            if axis == "x":
                idx = volume.index(np.clip(x + offset, 0, w - 1), y, z)
            elif axis == "y":
                idx = volume.index(x, np.clip(y + offset, 0, h - 1), z)
            else:
                idx = volume.index(x, y, np.clip(z + offset, 0, d - 1))
            acc += src[idx] * kernel[i]
            weight_sum += kernel[i]
        if progress_cb is not None:
            progress_cb("gaussian", phase, 3)
        return _to_uint8(acc / weight_sum).reshape(-1)

    pass_x = run_pass(volume.data, "x", 1)
    pass_y = run_pass(pass_x, "y", 2)
    volume.replace_data(run_pass(pass_y, "z", 3))


# ---------------------------------------------------------------------------
# Sliding-histogram median
# ---------------------------------------------------------------------------
def _histogram_median(hist: np.ndarray, threshold: int) -> np.ndarray:
    """
    Per-row median of a (rows, 256) histogram.

    Returns the first bin whose cumulative count exceeds ``threshold``.
    """
    cumulative = np.cumsum(hist, axis=1)
    return np.argmax(cumulative > threshold, axis=1).astype(np.uint8)


def median_blur_3d(
    volume: Volume,
    kernel_size: float,
    progress_cb: Optional[ProgressCallback] = None,
) -> None:
    """
    Median-filter ``volume`` in place over a cubic ``kernel_size`` window.

    For every (z, y) row a 256-bin histogram is seeded with the full window
    centred at x = 0, then slid along x: the column leaving the window is
    subtracted and the entering column added, so each step costs
    ``kernel_size**2`` updates instead of ``kernel_size**3``. The median is
    the ``(kernel_size**3 // 2 + 1)``-th smallest value in the window.

    All rows advance together, each with its own histogram. Out-of-range
    neighbours are clamped to the nearest edge on all three axes.

    ``progress_cb("median", x + 1, width)`` is called once per column step.
    """
    size = odd_kernel_size(kernel_size)
    if volume.is_empty():
        return

    radius = size // 2
    threshold = (size * size * size) // 2
    w, h, d = volume.width, volume.height, volume.depth
    src = volume.data
    out = np.zeros_like(src)

    z = np.arange(d)[:, None]
    y = np.arange(h)[None, :]
    rows = np.arange(d * h)

    # (ny, nz) cross-section of the window for every row
    offsets = [
        (np.clip(y + dy, 0, h - 1), np.clip(z + dz, 0, d - 1))
        for dz in range(-radius, radius + 1)
        for dy in range(-radius, radius + 1)
    ]

    def column(nx: int, ny: np.ndarray, nz: np.ndarray) -> np.ndarray:
        return src[volume.index(nx, ny, nz)].reshape(-1)

    # Seed one histogram per row with the window at x = 0
    hist = np.zeros((d * h, N_BINS), dtype=np.int32)
    for ny, nz in offsets:
        for dx in range(-radius, radius + 1):
            nx = min(max(dx, 0), w - 1)
            hist[rows, column(nx, ny, nz)] += 1

    out[volume.index(0, y, z)] = _histogram_median(hist, threshold).reshape(d, h)
    if progress_cb is not None:
        progress_cb("median", 1, w)

    for x in range(1, w):
        old_nx = max(0, x - radius - 1)
        new_nx = min(w - 1, x + radius)
        for ny, nz in offsets:
            hist[rows, column(old_nx, ny, nz)] -= 1
            hist[rows, column(new_nx, ny, nz)] += 1

        out[volume.index(x, y, z)] = _histogram_median(hist, threshold).reshape(d, h)
        if progress_cb is not None:
            progress_cb("median", x + 1, w)

    volume.replace_data(out)


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------
BLUR_KINDS = ("gaussian", "median")


def apply_3d_blur(
    volume: Volume,
    kind: str,
    kernel_size: float,
    sigma: float = 2.0,
    progress_cb: Optional[ProgressCallback] = None,
) -> None:
    """
    Apply a named 3D blur (``"Gaussian"`` or ``"Median"``, any case).

    ``progress_cb`` is handed to the chosen filter. Raises
    InvalidParameterError for any other kind.
    """
    key = kind.strip().lower()
    if key == "gaussian":
        gaussian_blur_3d(volume, kernel_size, sigma, progress_cb=progress_cb)
    elif key == "median":
        median_blur_3d(volume, kernel_size, progress_cb=progress_cb)
    else:
        raise InvalidParameterError(
            f"Unknown 3D blur type '{kind}'. Choose from 'Gaussian' or 'Median'."
        )
