"""
Search windows around tracked points.

A window is centered on its point and clipped to the image interior,
leaving a one pixel border so that 3x3 gradient kernels never read
outside the frame.
"""

import math
from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class WindowBounds:
    """Half-open pixel bounds of a clipped search window."""
    row_begin: int
    row_end: int
    col_begin: int
    col_end: int

    @property
    def height(self) -> int:
        return self.row_end - self.row_begin

    @property
    def width(self) -> int:
        return self.col_end - self.col_begin

    @property
    def is_degenerate(self) -> bool:
        """True if the window has no pixels left after clipping."""
        return self.height <= 0 or self.width <= 0

    @property
    def row_slice(self) -> slice:
        return slice(self.row_begin, self.row_end)

    @property
    def col_slice(self) -> slice:
        return slice(self.col_begin, self.col_end)


def clip_window(
    point: tuple[float, float],
    window: tuple[float, float],
    shape: tuple[int, int],
) -> WindowBounds:
    """
    Compute the clipped bounds of the window around a point.

    Bounds are truncated toward zero, then limited to rows ``[1, H-1)``
    and columns ``[1, W-1)``.

    Args:
        point: (row, col) window center
        window: (height, width) window size
        shape: (H, W) of the frame
    """
    row, col = float(point[0]), float(point[1])
    half_h, half_w = float(window[0]) / 2.0, float(window[1]) / 2.0
    last_row, last_col = shape[0] - 1, shape[1] - 1

    return WindowBounds(
        row_begin=max(int(row - half_h), 1),
        row_end=min(int(row + half_h), last_row),
        col_begin=max(int(col - half_w), 1),
        col_end=min(int(col + half_w), last_col),
    )


@dataclass(frozen=True)
class PointWindow:
    """A tracked point paired with its search window."""
    index: int
    point: tuple[float, float]
    window: tuple[float, float]
    bounds: WindowBounds

    @property
    def is_degenerate(self) -> bool:
        return self.bounds.is_degenerate

    @property
    def center(self) -> tuple[float, float]:
        """
        Weighting center of the window.

        Measured back from the clipped end, so it moves with the clipped
        edge when a window hits the image border.
        """
        return (
            math.floor(self.bounds.row_end - self.window[0] / 2.0),
            math.floor(self.bounds.col_end - self.window[1] / 2.0),
        )


def pair_points(
    points: np.ndarray,
    windows: np.ndarray,
    shape: tuple[int, int],
) -> list[PointWindow]:
    """
    Pair points with their windows and clip each window to the frame.

    Raises:
        ValueError: If the number of points and windows differ
    """
    points = np.asarray(points, dtype=np.float32).reshape(-1, 2)
    windows = np.asarray(windows, dtype=np.float32).reshape(-1, 2)
    if len(points) != len(windows):
        raise ValueError(
            f"Got {len(points)} points but {len(windows)} search windows"
        )

    pairs = []
    for index, (point, window) in enumerate(zip(points, windows)):
        point = (float(point[0]), float(point[1]))
        window = (float(window[0]), float(window[1]))
        pairs.append(PointWindow(
            index=index,
            point=point,
            window=window,
            bounds=clip_window(point, window, shape),
        ))
    return pairs


def build_inclusion_mask(pairs: list[PointWindow], shape: tuple[int, int]) -> np.ndarray:
    """Mark every pixel inside any non-degenerate window."""
    mask = np.zeros(shape, dtype=bool)
    for pair in pairs:
        if pair.is_degenerate:
            continue
        mask[pair.bounds.row_slice, pair.bounds.col_slice] = True
    return mask
