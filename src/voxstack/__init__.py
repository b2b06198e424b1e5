"""
voxstack top-level package.

This project processes a stack of 2D grayscale slice images as a single
3D volume: 3D Gaussian / median denoising, intensity projections and
orthogonal slices.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
