"""
Point and flow file I/O utilities.

Point files hold one tracked point per line, optionally followed by its
search window:

    ROW COL
    ROW COL HEIGHT WIDTH

Blank lines and lines starting with '#' are ignored. Flow files written by
``write_flow`` hold ``ROW COL DROW DCOL RESPONSE`` per line.
"""

import re
from pathlib import Path
from typing import TextIO

import numpy as np


_NUMBER = r'(-?[\d.]+(?:[eE][-+]?\d+)?)'

# Pattern for a point with its window: ROW COL HEIGHT WIDTH
WINDOW_PATTERN = re.compile(rf'{_NUMBER}[\s,]+{_NUMBER}[\s,]+{_NUMBER}[\s,]+{_NUMBER}\s*$')

# Pattern for a bare point: ROW COL
POINT_PATTERN = re.compile(rf'{_NUMBER}[\s,]+{_NUMBER}\s*$')


def parse_point_line(
    line: str,
) -> tuple[float, float, float | None, float | None] | None:
    """
    Parse a single line of a point file.

    Args:
        line: Line of text to parse

    Returns:
        Tuple of (row, col, height, width) with height and width None when
        the line has no window, or None if the line doesn't match
    """
    line = line.strip()
    if not line or line.startswith('#'):
        return None

    match = WINDOW_PATTERN.match(line)
    if match:
        return tuple(float(match.group(i)) for i in range(1, 5))

    match = POINT_PATTERN.match(line)
    if match:
        return (float(match.group(1)), float(match.group(2)), None, None)

    return None


def read_points(
    path: str | Path,
    default_window: tuple[float, float] = (15.0, 15.0),
) -> tuple[np.ndarray, np.ndarray]:
    """
    Read points and their search windows from a text file.

    Args:
        path: Path to the point file
        default_window: (height, width) for lines without a window

    Returns:
        Tuple of (points, windows), both (N, 2) float32 arrays

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file holds no valid points
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Point file not found: {path}")

    points = []
    windows = []
    with open(path, 'r') as f:
        for line in f:
            parsed = parse_point_line(line)
            if parsed is None:
                continue
            row, col, height, width = parsed
            points.append((row, col))
            if height is None:
                windows.append(tuple(default_window))
            else:
                windows.append((height, width))

    if not points:
        raise ValueError(f"No valid points in {path}")

    return (
        np.asarray(points, dtype=np.float32),
        np.asarray(windows, dtype=np.float32),
    )


def write_points(
    path: str | Path,
    points: np.ndarray,
    windows: np.ndarray | None = None,
) -> None:
    """
    Write points (and optionally their windows) to a point file.

    Example:
        >>> write_points("points.txt", [[10, 12], [40, 33.5]], [[15, 15], [9, 9]])
    """
    path = Path(path)
    points = np.asarray(points, dtype=np.float32).reshape(-1, 2)
    with open(path, 'w') as f:
        if windows is None:
            for row, col in points:
                f.write(f"{row} {col}\n")
        else:
            windows = np.asarray(windows, dtype=np.float32).reshape(-1, 2)
            for (row, col), (height, width) in zip(points, windows):
                f.write(f"{row} {col} {height} {width}\n")


def write_flow(
    dest: str | Path | TextIO,
    points: np.ndarray,
    flow: np.ndarray,
    response: np.ndarray,
) -> None:
    """
    Write evaluated flow, one ``ROW COL DROW DCOL RESPONSE`` line per point.

    Args:
        dest: Output path or open text stream
        points: (N, 2) tracked positions
        flow: (N, 2) displacements
        response: (N,) corner responses
    """
    lines = [
        f"{p[0]:.3f} {p[1]:.3f} {d[0]:.6f} {d[1]:.6f} {r:.6g}\n"
        for p, d, r in zip(points, flow, response)
    ]

    if isinstance(dest, (str, Path)):
        with open(dest, 'w') as f:
            f.writelines(lines)
    else:
        dest.writelines(lines)
