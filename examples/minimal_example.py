#!/usr/bin/env python3
"""
Minimal Example: lkflow API Usage
=================================

Shows the essential API calls without extra boilerplate.
This is the "quick reference" version.
"""

import cv2
import numpy as np

from lkflow import LucasKanadeFlow, FlowConfig


# =============================================================================
# STEP 1: FRAMES
# Two synthetic frames; the second is the first shifted by (0.6, -0.4) pixels.
# =============================================================================

rng = np.random.default_rng(0)
texture = cv2.GaussianBlur(rng.uniform(0, 255, size=(120, 160)).astype(np.float32), (0, 0), 3)
texture = cv2.normalize(texture, None, 0, 255, cv2.NORM_MINMAX)

shift = np.float32([[1, 0, -0.4], [0, 1, 0.6]])  # x (col), y (row)
frame1 = texture.astype(np.uint8)
frame2 = cv2.warpAffine(texture, shift, (160, 120), flags=cv2.INTER_LINEAR).astype(np.uint8)


# =============================================================================
# STEP 2: TRACKING
# Points are (row, col); windows are (height, width).
# =============================================================================

points = np.array([[30, 40], [60, 80], [90, 120], [2, 2]], dtype=np.float32)
windows = np.full((len(points), 2), 21, dtype=np.float32)

lk = LucasKanadeFlow.from_config(FlowConfig(iteration_count=10))
flow = lk.evaluate(frame1, frame2, points, windows)

# Refine further from the current estimate
lk.evaluate(frame1, frame2, points, windows, flow, use_previous=True)

for point, d, score in zip(points, flow, lk.corner_response):
    print(f"{point} -> dRow={d[0]:+.3f} dCol={d[1]:+.3f} response={score:.1f}")
