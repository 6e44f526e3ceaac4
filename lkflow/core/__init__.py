"""
Core module - Base classes, configuration, frames and parallel helpers.
"""

from lkflow.core.base import SparseOpticalFlow, WeightFunction
from lkflow.core.config import FlowConfig, load_config, save_config, get_env_config
from lkflow.core.image import (
    BitDepth,
    FrameProperties,
    check_frame_pair,
    to_gray8,
    to_intensity,
)
from lkflow.core.parallel import parallel_for

__all__ = [
    "SparseOpticalFlow",
    "WeightFunction",
    "FlowConfig",
    "load_config",
    "save_config",
    "get_env_config",
    "BitDepth",
    "FrameProperties",
    "check_frame_pair",
    "to_gray8",
    "to_intensity",
    "parallel_for",
]
