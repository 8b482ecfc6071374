from __future__ import annotations

import math
from typing import Iterable, Tuple

import numpy as np


def gaussian_smooth(img: np.ndarray, sigma: float) -> np.ndarray:
    r = int(math.ceil(3.0 * sigma))
    x = np.arange(-r, r + 1, dtype=np.float64)
    g = np.exp(-(x * x) / (2.0 * sigma * sigma))
    g /= g.sum()
    out = np.apply_along_axis(lambda v: np.convolve(v, g, mode="same"), 0, img)
    return np.apply_along_axis(lambda v: np.convolve(v, g, mode="same"), 1, out)


def render_blobs(
    shape: Tuple[int, int],
    blobs: Iterable[Tuple[int, int, int, float]],
    background: float = 0.0,
    sigma: float = 1.2,
    shift: Tuple[int, int] = (0, 0),
    integer: bool = False,
) -> np.ndarray:
    """Draw square blobs ``(cx, cy, side, value)`` and soften their edges.

    Only the deviation from ``background`` is blurred, so the image border
    stays flat and a shifted rendering is an exact translation.
    """
    dev = np.zeros(shape, dtype=np.float64)
    dx, dy = shift
    for cx, cy, side, value in blobs:
        half = side // 2
        x0, y0 = cx + dx - half, cy + dy - half
        dev[y0 : y0 + side, x0 : x0 + side] = value - background
    img = background + gaussian_smooth(dev, sigma)
    return np.rint(img) if integer else img


# (cx, cy, side, value) on a background of 100
TEXTURE_BLOBS = [
    (80, 84, 11, 230.0),
    (108, 78, 9, 20.0),
    (92, 110, 13, 180.0),
    (116, 112, 7, 0.0),
    (84, 124, 9, 255.0),
]

BLOB_CENTER = (32, 32)
