"""
Sub-pixel sampling of 2D scalar fields.
"""

import numpy as np
from scipy.ndimage import map_coordinates


def bilinear(
    field: np.ndarray,
    rows: np.ndarray | float,
    cols: np.ndarray | float,
) -> np.ndarray | float:
    """
    Sample a field at fractional (row, col) positions with bilinear
    interpolation.

    Positions outside the field take the value of the nearest border pixel.

    Args:
        field: (H, W) scalar field
        rows: Row coordinate(s)
        cols: Column coordinate(s), broadcast against ``rows``

    Returns:
        Sampled value(s) as float64; a float when both coordinates are scalars
    """
    scalar = np.ndim(rows) == 0 and np.ndim(cols) == 0
    rows, cols = np.broadcast_arrays(
        np.asarray(rows, dtype=np.float64),
        np.asarray(cols, dtype=np.float64),
    )
    coords = np.stack([rows.ravel(), cols.ravel()])
    values = map_coordinates(
        field, coords, output=np.float64, order=1, mode="nearest", prefilter=False
    ).reshape(rows.shape)
    return float(values) if scalar else values
