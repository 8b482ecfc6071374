from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass
from typing import Optional, Union

import numba
import numpy as np

from .feature import DESC_SIZE, FeaturePoint, FeaturePointsCollection
from .integral import IntegralImage, convert_rgb_to_luminosity
from .matched import MatchedPointsCollection
from .octave import INTERVALS, OctaveMap

logger = logging.getLogger(__name__)


class SurfConfigError(ValueError):
    """Raised for inconsistent detector or matcher parameters."""


@dataclass
class SurfParams:
    octave_start: int = 1
    octave_end: int = 1
    intervals: int = INTERVALS
    detection_threshold: float = 0.001
    matching_threshold: float = 0.015
    descriptor_size: int = DESC_SIZE
    # best / second-best distance ratio; None disables the test
    ratio: Optional[float] = None
    # every point of the second collection is matched at most once
    unique: bool = False
    # divide accepted distances by the largest one before thresholding
    normalize_distances: bool = False

    def __post_init__(self) -> None:
        if self.octave_start < 0:
            raise SurfConfigError(f"octave_start must be >= 0, got {self.octave_start}")
        if self.octave_end < self.octave_start:
            raise SurfConfigError(
                f"octave_end ({self.octave_end}) is smaller than "
                f"octave_start ({self.octave_start})"
            )
        if self.intervals < 3:
            raise SurfConfigError(f"intervals must be >= 3, got {self.intervals}")
        _check_threshold("detection_threshold", self.detection_threshold)
        _check_threshold("matching_threshold", self.matching_threshold)
        if not 1 <= self.descriptor_size <= DESC_SIZE:
            raise SurfConfigError(
                f"descriptor_size must be in [1, {DESC_SIZE}], got {self.descriptor_size}"
            )
        if self.ratio is not None and not 0.0 < self.ratio <= 1.0:
            raise SurfConfigError(f"ratio must be in (0, 1], got {self.ratio}")


def _check_threshold(name: str, value: float) -> None:
    if not (value >= 0.0 and math.isfinite(value)):
        raise SurfConfigError(f"{name} must be a finite non-negative number, got {value}")


def get_euclidean_distance(
    point_1: FeaturePoint, point_2: FeaturePoint, size: int = DESC_SIZE
) -> float:
    """L2 distance between the first ``size`` descriptor values of two points."""
    if not 1 <= size <= DESC_SIZE:
        raise ValueError(f"size must be in [1, {DESC_SIZE}], got {size}")
    diff = point_1.descriptor[:size] - point_2.descriptor[:size]
    return float(np.sqrt(np.sum(diff * diff)))


@numba.njit(cache=True)
def _scan_candidates(desc_1, sign_1, desc_2, signs_2, size, taken):
    best = -1
    best_dist = np.inf
    second_dist = np.inf
    for j in range(desc_2.shape[0]):
        if taken[j] or signs_2[j] != sign_1:
            continue
        acc = 0.0
        for k in range(size):
            d = desc_1[k] - desc_2[j, k]
            acc += d * d
        dist = np.sqrt(acc)
        if dist < best_dist:
            second_dist = best_dist
            best_dist = dist
            best = j
        elif dist < second_dist:
            second_dist = dist
    return best, best_dist, second_dist


@numba.njit(cache=True)
def _passes_ratio(best_dist, second_dist, ratio):
    if ratio <= 0.0 or second_dist == np.inf:
        return True
    return best_dist < ratio * second_dist


@numba.njit(cache=True, parallel=True)
def nearest_neighbour_kernel(desc_1, signs_1, desc_2, signs_2, size, ratio, out_idx, out_dist):
    taken = np.zeros(desc_2.shape[0], dtype=np.bool_)
    for i in numba.prange(desc_1.shape[0]):
        best, best_dist, second_dist = _scan_candidates(
            desc_1[i], signs_1[i], desc_2, signs_2, size, taken
        )
        if best >= 0 and _passes_ratio(best_dist, second_dist, ratio):
            out_idx[i] = best
            out_dist[i] = best_dist


@numba.njit(cache=True)
def unique_nearest_neighbour_kernel(
    desc_1, signs_1, desc_2, signs_2, size, ratio, out_idx, out_dist
):
    # sequential: a point taken by an earlier query is no longer a candidate
    taken = np.zeros(desc_2.shape[0], dtype=np.bool_)
    for i in range(desc_1.shape[0]):
        best, best_dist, second_dist = _scan_candidates(
            desc_1[i], signs_1[i], desc_2, signs_2, size, taken
        )
        if best >= 0 and _passes_ratio(best_dist, second_dist, ratio):
            out_idx[i] = best
            out_dist[i] = best_dist
            taken[best] = True


class SimpleSURF:
    """SURF feature extraction and matching for a fixed octave range."""

    def __init__(self, octave_start: int = 1, octave_end: int = 1, **kwargs) -> None:
        self.params = SurfParams(octave_start=octave_start, octave_end=octave_end, **kwargs)

    @classmethod
    def from_params(cls, params: SurfParams) -> "SimpleSURF":
        return cls(**asdict(params))

    @property
    def octave_start(self) -> int:
        return self.params.octave_start

    @property
    def octave_end(self) -> int:
        return self.params.octave_end

    def extract_feature_points(
        self,
        image: Union[IntegralImage, np.ndarray],
        collection: Optional[FeaturePointsCollection] = None,
        threshold: Optional[float] = None,
    ) -> FeaturePointsCollection:
        """Detect feature points on ``image`` and append them to ``collection``.

        ``image`` is an ``IntegralImage`` or a 2-D intensity array. The
        detection threshold defaults to ``params.detection_threshold``.
        """
        if threshold is None:
            threshold = self.params.detection_threshold
        _check_threshold("threshold", threshold)
        if collection is None:
            collection = FeaturePointsCollection()
        img = image if isinstance(image, IntegralImage) else IntegralImage(image)

        octave_map = OctaveMap(
            self.params.octave_start, self.params.octave_end, self.params.intervals
        )
        points = octave_map.find_extrema(img, threshold)
        collection.extend(points)
        logger.info(
            "extracted %d feature points from %dx%d image (octaves %d..%d, threshold %g)",
            len(points), img.width, img.height,
            self.params.octave_start, self.params.octave_end, threshold,
        )
        return collection

    def get_euclidean_distance(
        self, point_1: FeaturePoint, point_2: FeaturePoint, size: int = DESC_SIZE
    ) -> float:
        return get_euclidean_distance(point_1, point_2, size)

    def match_feature_points(
        self,
        collection_1: FeaturePointsCollection,
        collection_2: FeaturePointsCollection,
        threshold: Optional[float] = None,
    ) -> MatchedPointsCollection:
        """Pair every point of ``collection_1`` with its nearest neighbour.

        Only points of equal sign are compared. The pair is kept when it
        passes the optional ratio test and its distance (optionally divided
        by the largest kept distance) is at most ``threshold``. Matching
        runs from ``collection_1`` to ``collection_2`` only, so a point of
        the second collection may be used by several pairs unless
        ``params.unique`` is set.
        """
        if threshold is None:
            threshold = self.params.matching_threshold
        _check_threshold("threshold", threshold)
        matched = MatchedPointsCollection(collection_1, collection_2)
        n_1, n_2 = len(collection_1), len(collection_2)
        if n_1 == 0 or n_2 == 0:
            logger.info("nothing to match (%d vs %d points)", n_1, n_2)
            return matched

        out_idx = np.full(n_1, -1, dtype=np.int64)
        out_dist = np.full(n_1, np.inf, dtype=np.float64)
        kernel = (
            unique_nearest_neighbour_kernel
            if self.params.unique
            else nearest_neighbour_kernel
        )
        kernel(
            collection_1.descriptors(),
            collection_1.signs(),
            collection_2.descriptors(),
            collection_2.signs(),
            self.params.descriptor_size,
            0.0 if self.params.ratio is None else float(self.params.ratio),
            out_idx,
            out_dist,
        )

        found = np.flatnonzero(out_idx >= 0)
        dists = out_dist[found]
        if self.params.normalize_distances and len(dists):
            largest = dists.max()
            if largest > 0.0:
                dists = dists / largest
        for i, dist in zip(found, dists):
            if dist <= threshold:
                matched.add_points(int(i), int(out_idx[i]))

        logger.info(
            "matched %d of %d points (%d nearest-neighbour candidates, threshold %g)",
            len(matched), n_1, len(found), threshold,
        )
        return matched


def _to_intensity(image) -> np.ndarray:
    arr = np.asarray(image)
    if arr.ndim == 2:
        return arr.astype(np.float64)
    if arr.ndim == 3 and arr.shape[0] == 3:
        return convert_rgb_to_luminosity(arr[0], arr[1], arr[2])
    if arr.ndim == 3 and arr.shape[-1] == 3:
        return convert_rgb_to_luminosity(arr[..., 0], arr[..., 1], arr[..., 2])
    raise ValueError(
        f"expected a 2-D intensity raster or a 3-band RGB raster, got shape {arr.shape}"
    )


def compute_matching_points(image_1, image_2, **options) -> np.ndarray:
    """Match two rasters and return the corresponding pixel centres.

    Each row of the result is ``(x1, y1, x2, y2)``. ``options`` are
    ``SurfParams`` fields; unspecified ones use the correlator defaults:
    octave 2 only, ratio test 0.8, one-to-one pairs and distances
    normalised before the 0.015 threshold.
    """
    settings = dict(
        octave_start=2,
        octave_end=2,
        ratio=0.8,
        unique=True,
        normalize_distances=True,
    )
    settings.update(options)
    surf = SimpleSURF.from_params(SurfParams(**settings))

    points_1 = surf.extract_feature_points(_to_intensity(image_1))
    points_2 = surf.extract_feature_points(_to_intensity(image_2))
    matched = surf.match_feature_points(points_1, points_2)

    out = np.empty((len(matched), 4), dtype=np.float64)
    for k, (p1, p2) in enumerate(matched.pairs()):
        out[k] = (p1.x + 0.5, p1.y + 0.5, p2.x + 0.5, p2.y + 0.5)
    return out
