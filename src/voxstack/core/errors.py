"""
voxstack.core.errors

Exception types raised by the volumetric core.

Every error derives from VolumeError and also from the closest builtin,
so callers may catch either ``VolumeError`` or e.g. ``ValueError``.
"""

from __future__ import annotations


class VolumeError(Exception):
    """Base class for all volumetric core errors."""


class VolumeIOError(VolumeError, OSError):
    """Missing directory/file, or an image decode/encode failure."""


class DimensionMismatchError(VolumeError, ValueError):
    """A slice's width/height differs from the first slice of the stack."""


class OutOfRangeError(VolumeError, IndexError):
    """A voxel, slice or accessor coordinate lies outside the volume."""


class InvalidParameterError(VolumeError, ValueError):
    """Unknown plane, projection or filter name, or an unusable parameter."""
