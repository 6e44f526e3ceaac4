"""
Image processing module - Masked filtering, gradient kernels and sampling.
"""

from lkflow.imgproc.convolution import convolve_masked
from lkflow.imgproc.filter import GradientDirection, sobel
from lkflow.imgproc.interpolate import bilinear

__all__ = [
    "convolve_masked",
    "GradientDirection",
    "sobel",
    "bilinear",
]
