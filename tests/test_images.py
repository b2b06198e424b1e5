"""Tests for slice discovery and the Pillow codec."""

from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from voxstack.core import images as imgio
from voxstack.core.errors import VolumeIOError


# ---- Filename parsing ----

@pytest.mark.parametrize(
    "filename, expected",
    [
        ("scan_0042.png", 42),
        ("7.png", 7),
        ("vol12.PNG", 12),
        ("a1b22.png", 22),
    ],
)
def test_parse_slice_number(filename, expected):
    assert imgio.parse_slice_number(filename, "png") == expected


@pytest.mark.parametrize(
    "filename",
    ["scan.png", "scan_12a.png", "scan_12.jpg", ".png", "scan_12.png.bak"],
)
def test_parse_slice_number_rejects(filename):
    assert imgio.parse_slice_number(filename, "png") is None


def test_parse_slice_number_extension_with_dot():
    assert imgio.parse_slice_number("slice_3.tif", ".tif") == 3


# ---- Path splitting ----

def test_split_existing_directory(tmp_path):
    directory, prefix = imgio.split_directory_and_prefix(tmp_path)
    assert directory == tmp_path
    assert prefix == ""


def test_split_directory_and_prefix(tmp_path):
    directory, prefix = imgio.split_directory_and_prefix(f"{tmp_path}/scan_")
    assert directory == tmp_path
    assert prefix == "scan_"


def test_split_without_separator():
    directory, prefix = imgio.split_directory_and_prefix("no_such_prefix_xyz")
    assert directory == Path(".")
    assert prefix == "no_such_prefix_xyz"


def test_split_backslash_separator():
    directory, prefix = imgio.split_directory_and_prefix("some\\dir\\vol")
    assert directory == Path("some\\dir")
    assert prefix == "vol"


# ---- Candidate listing ----

def test_list_slice_candidates_filters(slice_stack):
    img = np.zeros((2, 2), dtype=np.uint8)
    folder = slice_stack(
        {
            "scan_001.png": img,
            "scan_002.png": img,
            "other_003.png": img,
            "scan_x.png": img,
        }
    )
    (folder / "notes_004.txt").write_text("not a slice")
    (folder / "scan_005.png").mkdir()

    found = sorted(imgio.list_slice_candidates(folder, "scan_", "png"), key=lambda c: c[1])
    assert [(p.name, idx) for p, idx in found] == [("scan_001.png", 1), ("scan_002.png", 2)]

    all_found = imgio.list_slice_candidates(folder, "", "png")
    assert {idx for _, idx in all_found} == {1, 2, 3}


def test_list_slice_candidates_missing_dir(tmp_path):
    with pytest.raises(VolumeIOError, match="Cannot open directory"):
        imgio.list_slice_candidates(tmp_path / "missing")


def test_select_slices_range_and_order():
    cands = [(Path("b_5.png"), 5), (Path("a_2.png"), 2), (Path("c_9.png"), 9), (Path("a_5.png"), 5)]
    picked = imgio.select_slices(cands, first_slice=2, last_slice=5)
    assert [(p.name, i) for p, i in picked] == [("a_2.png", 2), ("a_5.png", 5), ("b_5.png", 5)]

    unbounded = imgio.select_slices(cands, first_slice=3, last_slice=-1)
    assert [i for _, i in unbounded] == [5, 5, 9]


# ---- Codec ----

def test_decode_forces_single_channel(tmp_path):
    rgb = np.zeros((3, 4, 3), dtype=np.uint8)
    rgb[..., 0] = 200
    path = tmp_path / "color_1.png"
    Image.fromarray(rgb).save(path)

    pixels, width, height = imgio.decode(path)
    assert (width, height) == (4, 3)
    assert pixels.dtype == np.uint8
    assert pixels.shape == (12,)


def test_decode_failure_raises(tmp_path):
    bad = tmp_path / "broken_1.png"
    bad.write_bytes(b"definitely not a png")
    with pytest.raises(VolumeIOError, match="Failed to load slice"):
        imgio.decode(bad)


def test_encode_rejects_size_mismatch(tmp_path):
    assert imgio.encode(tmp_path / "x.png", np.zeros(5, dtype=np.uint8), 2, 2, 1) is False


def test_write_projection_is_rgb(tmp_path):
    buf = np.array([[1, 2, 3], [4, 5, 6]], dtype=np.uint8)
    out = imgio.write_projection(buf, tmp_path / "proj.png")

    with Image.open(out) as im:
        assert im.mode == "RGB"
        assert im.size == (3, 2)
        arr = np.asarray(im)
    for c in range(3):
        np.testing.assert_array_equal(arr[..., c], buf)


def test_write_slice_is_grayscale(tmp_path):
    buf = np.arange(6, dtype=np.uint8).reshape(3, 2)
    out = imgio.write_slice(buf, tmp_path / "nested" / "slice.png")

    with Image.open(out) as im:
        assert im.mode == "L"
        assert im.size == (2, 3)
        np.testing.assert_array_equal(np.asarray(im), buf)


def test_write_failure_raises(tmp_path):
    class FailingCodec:
        def encode(self, path, pixels, width, height, channel_count):
            return False

    with pytest.raises(VolumeIOError, match="Failed to write image"):
        imgio.write_slice(np.zeros((2, 2), dtype=np.uint8), tmp_path / "s.png", codec=FailingCodec())
