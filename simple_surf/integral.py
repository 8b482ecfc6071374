from __future__ import annotations

import numba
import numpy as np

# luminosity weights applied to (red, green, blue) bands
RGB_WEIGHTS = np.array([0.30, 0.59, 0.11], dtype=np.float64)


@numba.njit(cache=True)
def box_sum(table, row, col, height, width):
    """Sum of the ``height x width`` box whose top-left pixel is ``(row, col)``.

    ``table`` is the zero-padded prefix table of an ``IntegralImage``. The box
    is clamped to the image; an empty box sums to zero.
    """
    h = table.shape[0] - 1
    w = table.shape[1] - 1
    r0 = max(row, 0)
    c0 = max(col, 0)
    r1 = min(row + height, h)
    c1 = min(col + width, w)
    if r1 <= r0 or c1 <= c0:
        return 0.0
    return table[r1, c1] - table[r0, c1] - table[r1, c0] + table[r0, c0]


@numba.njit(cache=True)
def haar_x(table, row, col, size):
    half = size // 2
    return box_sum(table, row, col + half, size, half) - box_sum(
        table, row, col, size, half
    )


@numba.njit(cache=True)
def haar_y(table, row, col, size):
    half = size // 2
    return box_sum(table, row + half, col, half, size) - box_sum(
        table, row, col, half, size
    )


class IntegralImage:
    """Summed-area table over a 2-D intensity raster.

    ``table[i, j]`` holds the sum of ``image[:i, :j]``, so the first row and
    column are zero and any rectangle sum is four lookups. The table is
    read-only after construction and can be shared between readers.
    """

    def __init__(self, image) -> None:
        img = np.asarray(image, dtype=np.float64)
        if img.ndim != 2:
            raise ValueError(f"expected a 2-D intensity array, got shape {img.shape}")
        if img.size == 0:
            raise ValueError("cannot build an integral image from an empty raster")
        height, width = img.shape
        table = np.zeros((height + 1, width + 1), dtype=np.float64)
        table[1:, 1:] = np.cumsum(np.cumsum(img, axis=0), axis=1)
        table.flags.writeable = False
        self._table = table

    @property
    def table(self) -> np.ndarray:
        return self._table

    @property
    def height(self) -> int:
        return self._table.shape[0] - 1

    @property
    def width(self) -> int:
        return self._table.shape[1] - 1

    @property
    def shape(self) -> tuple[int, int]:
        return self.height, self.width

    def value(self, row: int, col: int) -> float:
        """Inclusive prefix sum of ``image[:row + 1, :col + 1]``."""
        if not (0 <= row < self.height and 0 <= col < self.width):
            raise IndexError(
                f"({row}, {col}) outside image of shape {(self.height, self.width)}"
            )
        return float(self._table[row + 1, col + 1])

    def sum(self, x0: int, y0: int, x1: int, y1: int) -> float:
        """Sum over the inclusive rectangle ``[x0, x1] x [y0, y1]``.

        Coordinates outside the image are clamped to it; an inverted or fully
        outside rectangle sums to ``0.0``.
        """
        if x1 < x0 or y1 < y0:
            return 0.0
        return float(box_sum(self._table, y0, x0, y1 - y0 + 1, x1 - x0 + 1))

    def rectangle_sum(self, row: int, col: int, width: int, height: int) -> float:
        return float(box_sum(self._table, row, col, height, width))

    def haar_x(self, row: int, col: int, size: int) -> float:
        return float(haar_x(self._table, row, col, size))

    def haar_y(self, row: int, col: int, size: int) -> float:
        return float(haar_y(self._table, row, col, size))


def convert_rgb_to_luminosity(red, green, blue, max_value: float = 255.0) -> np.ndarray:
    bands = [np.asarray(b, dtype=np.float64) for b in (red, green, blue)]
    if not (bands[0].shape == bands[1].shape == bands[2].shape):
        raise ValueError(
            f"band shapes differ: {[b.shape for b in bands]}"
        )
    if max_value <= 0:
        raise ValueError(f"max_value must be positive, got {max_value}")
    lum = (
        RGB_WEIGHTS[0] * bands[0]
        + RGB_WEIGHTS[1] * bands[1]
        + RGB_WEIGHTS[2] * bands[2]
    )
    return lum / max_value
