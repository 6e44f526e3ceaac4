"""
Frame utilities for lkflow.

Frames are plain numpy arrays. This module describes them, checks the
preconditions the solvers rely on and converts them to float intensity
fields.
"""

from dataclasses import dataclass
from enum import Enum

import cv2
import numpy as np

from lkflow.core.parallel import parallel_for


class BitDepth(Enum):
    """Supported pixel bit depths."""
    BD_8 = 8
    BD_16 = 16
    BD_32 = 32

    @classmethod
    def from_dtype(cls, dtype: np.dtype) -> "BitDepth":
        dtype = np.dtype(dtype)
        if dtype == np.uint8:
            return cls.BD_8
        if dtype == np.uint16:
            return cls.BD_16
        if dtype == np.float32:
            return cls.BD_32
        raise ValueError(f"Unsupported frame dtype: {dtype}")


@dataclass
class FrameProperties:
    """Properties of a single frame."""
    width: int
    height: int
    channels: int
    depth: BitDepth

    @classmethod
    def from_array(cls, frame: np.ndarray) -> "FrameProperties":
        """Create FrameProperties from a (H, W) or (H, W, C) array."""
        if frame.ndim not in (2, 3):
            raise ValueError(f"Frame must be 2D or 3D, got {frame.ndim} dimensions")
        channels = 1 if frame.ndim == 2 else frame.shape[2]
        return cls(
            width=frame.shape[1],
            height=frame.shape[0],
            channels=channels,
            depth=BitDepth.from_dtype(frame.dtype),
        )

    @property
    def size(self) -> tuple[int, int]:
        """(height, width) of the frame."""
        return (self.height, self.width)

    @property
    def empty(self) -> bool:
        return self.width == 0 or self.height == 0

    def to_dict(self) -> dict:
        return {
            "width": self.width,
            "height": self.height,
            "channels": self.channels,
            "depth": self.depth.value,
        }


def check_frame_pair(frame1: np.ndarray, frame2: np.ndarray) -> FrameProperties:
    """
    Check that two frames can be used together by a flow solver.

    Both frames must be non-empty, equally sized, single channel and 8-bit.

    Returns:
        Properties of the first frame

    Raises:
        ValueError: If any of the conditions is violated
    """
    props1 = FrameProperties.from_array(np.asarray(frame1))
    props2 = FrameProperties.from_array(np.asarray(frame2))

    if props1.empty or props2.empty:
        raise ValueError("Frames must not be empty")
    if props1.size != props2.size:
        raise ValueError(f"Frame sizes differ: {props1.size} vs {props2.size}")
    if props1.channels != 1 or props2.channels != 1:
        raise ValueError(
            f"Frames must be single channel, got {props1.channels} and {props2.channels}"
        )
    if props1.depth != props2.depth or props1.depth != BitDepth.BD_8:
        raise ValueError(
            f"Frames must both be 8-bit, got {props1.depth.value} and {props2.depth.value}"
        )
    return props1


def as_single_channel(frame: np.ndarray) -> np.ndarray:
    """Return a (H, W) view of a frame that has exactly one channel."""
    if frame.ndim == 3 and frame.shape[2] == 1:
        return frame[:, :, 0]
    return frame


def to_gray8(frame: np.ndarray) -> np.ndarray:
    """Convert a BGR or BGRA frame to a single channel 8-bit frame."""
    if frame.ndim == 3 and frame.shape[2] == 3:
        frame = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
    elif frame.ndim == 3 and frame.shape[2] == 4:
        frame = cv2.cvtColor(frame, cv2.COLOR_BGRA2GRAY)
    frame = as_single_channel(frame)
    if frame.dtype != np.uint8:
        frame = cv2.normalize(frame, None, 0, 255, cv2.NORM_MINMAX).astype(np.uint8)
    return frame


def to_intensity(frame: np.ndarray, workers: int | None = None) -> np.ndarray:
    """
    Copy a single channel frame into a float32 intensity field.

    The cast runs in parallel over rows; each row is written by exactly
    one work item.
    """
    frame = as_single_channel(frame)
    out = np.empty(frame.shape[:2], dtype=np.float32)

    def convert_row(row: int) -> None:
        out[row] = frame[row]

    parallel_for(frame.shape[0], convert_row, workers)
    return out
