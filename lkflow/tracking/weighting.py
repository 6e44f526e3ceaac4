"""
Spatial weighting of search window pixels.

Uniform weighting is the default. Gaussian weighting is available but has
to be selected explicitly, since it changes the estimated flow.
"""

import math

import numpy as np

from lkflow.core.base import WeightFunction


def uniform_weight(
    rows: np.ndarray,
    cols: np.ndarray,
    center: tuple[float, float],
    sigma: float,
) -> float:
    """Weight every pixel by 1."""
    return 1.0


def gaussian_weight(
    rows: np.ndarray,
    cols: np.ndarray,
    center: tuple[float, float],
    sigma: float,
) -> np.ndarray:
    """
    Weight pixels by a Gaussian of their distance to the window center.

    w = 1 / (2 pi sigma) * exp(-d^2 / (2 sigma^2))
    """
    gauss_mul = 1.0 / (2.0 * math.pi * sigma)
    gauss_del = 2.0 * sigma ** 2
    dist2 = (center[0] - rows) ** 2 + (center[1] - cols) ** 2
    return gauss_mul * np.exp(-dist2 / gauss_del)


WEIGHT_FUNCTIONS: dict[str, WeightFunction] = {
    "uniform": uniform_weight,
    "gaussian": gaussian_weight,
}


def get_weight_function(name: str) -> WeightFunction:
    """Look up a weighting function by name."""
    if name not in WEIGHT_FUNCTIONS:
        raise ValueError(f"Unknown weighting: {name}. Available: {list(WEIGHT_FUNCTIONS)}")
    return WEIGHT_FUNCTIONS[name]
