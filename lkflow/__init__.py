"""
lkflow - Sparse Lucas-Kanade optical flow
=========================================

Estimates the displacement of a sparse set of points between two
grayscale frames with the iterative Lucas-Kanade method, and reports a
corner response per point as a trackability score.

Main modules:
- lkflow.tracking: Lucas-Kanade solver, search windows, point file I/O
- lkflow.imgproc: Masked filtering, gradient kernels, bilinear sampling
- lkflow.core: Configuration, frame checks, parallel helpers

Quick start:
    >>> from lkflow import LucasKanadeFlow
    >>> lk = LucasKanadeFlow(iteration_count=10)
    >>> flow = lk.evaluate(gray1, gray2, points, windows)
"""

__version__ = "0.1.0"

# Convenience imports
from lkflow.tracking import LucasKanadeFlow, calc_sparse_flow
from lkflow.core.config import FlowConfig, load_config, save_config

__all__ = [
    "__version__",
    "LucasKanadeFlow",
    "calc_sparse_flow",
    "FlowConfig",
    "load_config",
    "save_config",
]
