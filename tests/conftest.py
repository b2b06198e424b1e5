"""Shared fixtures: small synthetic volumes and on-disk slice stacks."""

import numpy as np
import pytest
from PIL import Image

from voxstack.core.volume import Volume


def write_slice_png(path, pixels):
    """Write a 2D uint8 array as a grayscale PNG."""
    Image.fromarray(np.asarray(pixels, dtype=np.uint8)).save(path)


@pytest.fixture
def scenario_volume():
    """3 wide, 2 high, 2 deep: z=0 holds 10..15, z=1 holds 50..55 (row-major)."""
    z0 = np.array([[10, 11, 12], [13, 14, 15]], dtype=np.uint8)
    z1 = np.array([[50, 51, 52], [53, 54, 55]], dtype=np.uint8)
    return Volume.from_array(np.stack([z0, z1], axis=0))


@pytest.fixture
def random_volume():
    rng = np.random.default_rng(7)
    arr = rng.integers(0, 256, size=(5, 4, 6), dtype=np.uint8)  # (Z, Y, X)
    return Volume.from_array(arr)


@pytest.fixture
def slice_stack(tmp_path):
    """
    Factory writing ``{name: array}`` slices into a fresh directory.

    Returns the directory path.
    """

    def _make(slices, subdir="stack"):
        folder = tmp_path / subdir
        folder.mkdir(parents=True, exist_ok=True)
        for name, arr in slices.items():
            write_slice_png(folder / name, arr)
        return folder

    return _make
