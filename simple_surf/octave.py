from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numba
import numpy as np
from numba.core.errors import NumbaPerformanceWarning

from .feature import DESC_SIZE, FeaturePoint
from .integral import IntegralImage, box_sum, haar_x, haar_y

warnings.filterwarnings("ignore", category=NumbaPerformanceWarning)

logger = logging.getLogger(__name__)

INTERVALS = 4
DXY_WEIGHT = 0.9
# descriptor window side in units of the point scale
HAAR_SCALE = 20
NQUAD = 4  # descriptor grid is NQUAD x NQUAD quadrants
NSUB = 5  # each quadrant is sampled on an NSUB x NSUB grid


@numba.njit(cache=True, parallel=True)
def hessian_response_kernel(table, filter_size, det_out, sign_out):
    h, w = det_out.shape
    lobe = filter_size // 3
    long_part = 2 * lobe - 1
    margin = filter_size // 2
    offset = (filter_size - 1) // 2
    inv_area = 1.0 / (filter_size * filter_size)
    w2 = DXY_WEIGHT * DXY_WEIGHT
    for r in numba.prange(margin, h - margin):
        for c in range(margin, w - margin):
            top = r - offset
            left = c - offset
            # whole window minus three times the middle lobe: weights 1, -2, 1
            dyy = box_sum(table, top, c - lobe + 1, filter_size, long_part) - 3.0 * box_sum(
                table, top + lobe, c - lobe + 1, lobe, long_part
            )
            dxx = box_sum(table, r - lobe + 1, left, long_part, filter_size) - 3.0 * box_sum(
                table, r - lobe + 1, left + lobe, long_part, lobe
            )
            dxy = (
                box_sum(table, r - lobe, c - lobe, lobe, lobe)
                + box_sum(table, r + 1, c + 1, lobe, lobe)
                - box_sum(table, r - lobe, c + 1, lobe, lobe)
                - box_sum(table, r + 1, c - lobe, lobe, lobe)
            )
            dxx *= inv_area
            dyy *= inv_area
            dxy *= inv_area
            det_out[r, c] = dxx * dyy - w2 * dxy * dxy
            sign_out[r, c] = 1 if dxx + dyy >= 0.0 else -1


@numba.njit(cache=True, parallel=True)
def extremum_kernel(bot, mid, top, threshold, margin, out):
    h, w = mid.shape
    for r in numba.prange(margin, h - margin):
        for c in range(margin, w - margin):
            v = mid[r, c]
            if v <= threshold:
                continue
            is_max = True
            for dy in (-1, 0, 1):
                for dx in (-1, 0, 1):
                    if v <= bot[r + dy, c + dx] or v <= top[r + dy, c + dx]:
                        is_max = False
                    elif (dy != 0 or dx != 0) and v <= mid[r + dy, c + dx]:
                        is_max = False
            out[r, c] = is_max


@numba.njit(cache=True, parallel=True)
def descriptor_kernel(table, xs, ys, scale, out):
    haar_size = 2 * scale
    side = HAAR_SCALE * scale
    quad = side // NQUAD
    step = quad // NSUB
    for k in numba.prange(xs.shape[0]):
        top = ys[k] - side // 2
        left = xs[k] - side // 2
        for qr in range(NQUAD):
            for qc in range(NQUAD):
                sdx = 0.0
                sdy = 0.0
                adx = 0.0
                ady = 0.0
                for sr in range(NSUB):
                    row = top + qr * quad + sr * step + step // 2 - haar_size // 2
                    for sc in range(NSUB):
                        col = left + qc * quad + sc * step + step // 2 - haar_size // 2
                        dx = haar_x(table, row, col, haar_size)
                        dy = haar_y(table, row, col, haar_size)
                        sdx += dx
                        sdy += dy
                        adx += abs(dx)
                        ady += abs(dy)
                base = 4 * (qr * NQUAD + qc)
                out[k, base] = sdx
                out[k, base + 1] = sdy
                out[k, base + 2] = adx
                out[k, base + 3] = ady
        norm = 0.0
        for i in range(out.shape[1]):
            norm += out[k, i] * out[k, i]
        if norm > 0.0:
            norm = np.sqrt(norm)
            for i in range(out.shape[1]):
                out[k, i] /= norm


@dataclass
class OctaveLayer:
    """One box-filter size of the scale pyramid.

    Filter sizes follow the usual SURF progression: 9, 15, 21, 27 for octave
    1, 15, 27, 39, 51 for octave 2 and so on (``3 * (2**octave * interval +
    1)``). Responses are only defined ``margin`` pixels away from the edges.
    """

    octave: int
    interval: int
    filter_size: int = field(init=False)
    lobe: int = field(init=False)
    margin: int = field(init=False)
    scale: int = field(init=False)
    det: Optional[np.ndarray] = field(default=None, repr=False)
    signs: Optional[np.ndarray] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        self.filter_size = 3 * ((1 << self.octave) * self.interval + 1)
        self.lobe = self.filter_size // 3
        self.margin = self.filter_size // 2
        self.scale = 1 << self.octave

    @property
    def radius(self) -> int:
        return HAAR_SCALE * self.scale // 2

    def fits(self, height: int, width: int) -> bool:
        return 2 * self.margin < min(height, width)

    def compute(self, img: IntegralImage) -> None:
        h, w = img.shape
        self.det = np.zeros((h, w), dtype=np.float64)
        self.signs = np.zeros((h, w), dtype=np.int8)
        if not self.fits(h, w):
            return
        hessian_response_kernel(img.table, self.filter_size, self.det, self.signs)


class OctaveMap:
    """Hessian response pyramid for octaves ``octave_start..octave_end``.

    The layers are rebuilt by every ``compute`` call; nothing is shared
    between maps.
    """

    def __init__(self, octave_start: int, octave_end: int, intervals: int = INTERVALS):
        if octave_start < 0:
            raise ValueError(f"octave_start must be >= 0, got {octave_start}")
        if octave_end < octave_start:
            raise ValueError(
                f"octave_end ({octave_end}) is smaller than octave_start ({octave_start})"
            )
        if intervals < 3:
            raise ValueError(f"need at least 3 intervals per octave, got {intervals}")
        self.octave_start = octave_start
        self.octave_end = octave_end
        self.intervals = intervals
        self.layers: Dict[int, List[OctaveLayer]] = {
            o: [OctaveLayer(o, i) for i in range(1, intervals + 1)]
            for o in range(octave_start, octave_end + 1)
        }
        self._source: Optional[IntegralImage] = None

    def compute(self, img: IntegralImage) -> None:
        for octave_layers in self.layers.values():
            for layer in octave_layers:
                layer.compute(img)
        self._source = img

    def find_extrema(self, img: IntegralImage, threshold: float) -> List[FeaturePoint]:
        """Detect feature points and fill in their descriptors.

        A pixel of an inner layer is kept when its response is above
        ``threshold`` and strictly above its 26 neighbours in space and
        scale. Points whose descriptor window leaves the image are dropped.
        Points come out by octave, then layer, then in row-major order.
        """
        if self._source is not img:
            self.compute(img)
        h, w = img.shape
        points: List[FeaturePoint] = []
        for octave, octave_layers in self.layers.items():
            for k in range(1, len(octave_layers) - 1):
                bot, mid, top = octave_layers[k - 1], octave_layers[k], octave_layers[k + 1]
                if not top.fits(h, w):
                    logger.debug(
                        "octave %d layer %d: filter %d does not fit %dx%d image",
                        octave, k, top.filter_size, w, h,
                    )
                    continue
                mask = np.zeros((h, w), dtype=np.bool_)
                extremum_kernel(bot.det, mid.det, top.det, float(threshold), top.margin + 1, mask)
                ys, xs = np.nonzero(mask)
                n_found = len(xs)

                radius, scale = mid.radius, mid.scale
                reach = radius + scale
                keep = (xs >= reach) & (xs + reach <= w) & (ys >= reach) & (ys + reach <= h)
                xs = xs[keep].astype(np.int64)
                ys = ys[keep].astype(np.int64)

                desc = np.zeros((len(xs), DESC_SIZE), dtype=np.float64)
                if len(xs):
                    descriptor_kernel(img.table, xs, ys, scale, desc)
                for i in range(len(xs)):
                    x, y = int(xs[i]), int(ys[i])
                    points.append(
                        FeaturePoint(x, y, scale, radius, int(mid.signs[y, x]), desc[i])
                    )
                logger.debug(
                    "octave %d layer %d (filter %d): %d extrema, %d with full descriptor window",
                    octave, k, mid.filter_size, n_found, len(xs),
                )
        return points
