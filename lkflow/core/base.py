"""
Base classes and protocols for the lkflow package.

This module defines the abstractions the optical flow solvers build upon.
"""

from abc import ABC, abstractmethod
from typing import Protocol, runtime_checkable

import numpy as np


@runtime_checkable
class WeightFunction(Protocol):
    """
    Protocol for spatial weighting of window pixels.

    Receives the row and column coordinates of the window pixels (arrays
    that broadcast together), the window center and the smoothing width,
    and returns the per-pixel weights.
    """

    def __call__(
        self,
        rows: np.ndarray,
        cols: np.ndarray,
        center: tuple[float, float],
        sigma: float,
    ) -> np.ndarray | float:
        ...


class SparseOpticalFlow(ABC):
    """
    Abstract base class for sparse optical flow estimators.

    Sparse estimators compute a displacement only for a provided set of
    points, each paired with a search window.
    """

    @abstractmethod
    def evaluate(
        self,
        frame1: np.ndarray,
        frame2: np.ndarray,
        points: np.ndarray,
        windows: np.ndarray,
        flow: np.ndarray | None = None,
        use_previous: bool = False,
    ) -> np.ndarray:
        """
        Evaluate the flow of the given points between two frames.

        Args:
            frame1: First frame (single channel, 8-bit)
            frame2: Second frame (same size and depth as frame1)
            points: (N, 2) array of (row, col) point positions
            windows: (N, 2) array of (height, width) search windows
            flow: Optional (N, 2) buffer of (dRow, dCol) displacements
            use_previous: Continue iterating from the values in ``flow``

        Returns:
            The (N, 2) flow array
        """
        pass

    def __call__(self, frame1, frame2, points, windows, flow=None, use_previous=False):
        return self.evaluate(frame1, frame2, points, windows, flow, use_previous)
