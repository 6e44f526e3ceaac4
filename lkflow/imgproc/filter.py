"""
Gradient kernels.
"""

from enum import Enum

import cv2
import numpy as np


class GradientDirection(Enum):
    """Direction of a derivative kernel."""
    DIR_X = 0  # horizontal, along columns
    DIR_Y = 1  # vertical, along rows


def sobel(
    direction: GradientDirection,
    ksize: int = 3,
    normalize: bool = True,
) -> np.ndarray:
    """
    Create a Sobel derivative kernel.

    Applied with ``convolve_masked`` (or ``cv2.filter2D``) the kernel
    yields the derivative of increasing column (DIR_X) or row (DIR_Y)
    index. With ``normalize`` the 3x3 kernel is scaled by 1/8 so that a
    unit ramp produces a unit response.

    Args:
        direction: Derivative direction
        ksize: Kernel aperture (odd)
        normalize: Scale coefficients to unit gain

    Returns:
        (ksize, ksize) float32 kernel
    """
    dx, dy = (1, 0) if direction is GradientDirection.DIR_X else (0, 1)
    kx, ky = cv2.getDerivKernels(dx, dy, ksize, normalize=normalize, ktype=cv2.CV_32F)
    return np.outer(ky.ravel(), kx.ravel()).astype(np.float32)
