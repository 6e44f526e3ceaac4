"""
Tracking module - Sparse Lucas-Kanade optical flow.

This module provides:
- LucasKanadeFlow: Iterative windowed Lucas-Kanade solver
- Search window clipping and spatial weighting
- Point and flow file I/O utilities

Example:
    >>> from lkflow.tracking import LucasKanadeFlow
    >>> lk = LucasKanadeFlow(iteration_count=10)
    >>> flow = lk.evaluate(gray1, gray2, points, windows)
    >>> scores = lk.corner_response
"""

from lkflow.tracking.lucas_kanade import (
    LucasKanadeFlow,
    build_gradient_fields,
    calc_sparse_flow,
    corner_response,
    solve_point,
)
from lkflow.tracking.windows import (
    PointWindow,
    WindowBounds,
    build_inclusion_mask,
    clip_window,
    pair_points,
)
from lkflow.tracking.weighting import (
    gaussian_weight,
    get_weight_function,
    uniform_weight,
)
from lkflow.tracking.point_io import (
    parse_point_line,
    read_points,
    write_points,
    write_flow,
)

__all__ = [
    "LucasKanadeFlow",
    "build_gradient_fields",
    "calc_sparse_flow",
    "corner_response",
    "solve_point",
    "PointWindow",
    "WindowBounds",
    "build_inclusion_mask",
    "clip_window",
    "pair_points",
    "gaussian_weight",
    "get_weight_function",
    "uniform_weight",
    "parse_point_line",
    "read_points",
    "write_points",
    "write_flow",
]
