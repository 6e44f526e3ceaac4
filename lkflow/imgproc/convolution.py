"""
2D filtering restricted to a boolean inclusion mask.

Only pixels where the mask is set are computed; every other output pixel
is zero. The kernel is applied the way ``cv2.filter2D`` applies it
(correlation, anchored at the kernel center) and pixels outside the
field are replicated from the nearest border.
"""

import numpy as np


def convolve_masked(
    field: np.ndarray,
    kernel: np.ndarray,
    mask: np.ndarray | None = None,
    out: np.ndarray | None = None,
) -> np.ndarray:
    """
    Filter a 2D field with a kernel, only where ``mask`` is set.

    Args:
        field: (H, W) input field
        kernel: (kh, kw) filter kernel
        mask: (H, W) boolean mask, None to filter everywhere
        out: Optional (H, W) float32 output buffer, overwritten

    Returns:
        The filtered field
    """
    field = np.asarray(field, dtype=np.float32)
    kernel = np.asarray(kernel, dtype=np.float32)
    height, width = field.shape

    if mask is None:
        mask = np.ones(field.shape, dtype=bool)
    elif mask.shape != field.shape:
        raise ValueError(f"Mask shape {mask.shape} does not match field shape {field.shape}")

    if out is None:
        out = np.zeros(field.shape, dtype=np.float32)
    else:
        out[...] = 0.0

    rows, cols = np.nonzero(mask)
    if rows.size == 0:
        return out

    anchor_r = kernel.shape[0] // 2
    anchor_c = kernel.shape[1] // 2
    acc = np.zeros(rows.size, dtype=np.float32)

    for kr in range(kernel.shape[0]):
        rr = np.clip(rows + kr - anchor_r, 0, height - 1)
        for kc in range(kernel.shape[1]):
            k = kernel[kr, kc]
            if k == 0:
                continue
            cc = np.clip(cols + kc - anchor_c, 0, width - 1)
            acc += k * field[rr, cc]

    out[rows, cols] = acc
    return out
