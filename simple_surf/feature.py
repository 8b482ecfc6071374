from __future__ import annotations

import operator
from typing import Iterable, Iterator, List

import numpy as np

# descriptor length: 4x4 sub-regions x (sum dx, sum dy, sum |dx|, sum |dy|)
DESC_SIZE = 64


def _check_descriptor_index(index) -> int:
    i = operator.index(index)
    if not 0 <= i < DESC_SIZE:
        raise IndexError(f"descriptor index {i} outside [0, {DESC_SIZE})")
    return i


class FeaturePoint:
    """A distinctive pixel found by the SURF detector.

    ``x`` is the pixel column and ``y`` the line. ``scale`` is the octave
    scale the point was found at (1, 2, 4, 8, ...), ``radius`` the half side
    of the descriptor window and ``sign`` the blob polarity: -1 for a bright
    blob on a dark background, +1 for a dark blob on a bright one. Points of
    different sign are never matched.

    The descriptor is owned by the point: it is copied on the way in, on
    ``copy()`` and on ``assign()``, so two points never share it.
    """

    __slots__ = ("x", "y", "scale", "radius", "sign", "_descriptor")

    def __init__(
        self,
        x: int = -1,
        y: int = -1,
        scale: int = -1,
        radius: int = -1,
        sign: int = -1,
        descriptor=None,
    ) -> None:
        self.x = x
        self.y = y
        self.scale = scale
        self.radius = radius
        self.sign = sign
        if descriptor is None:
            self._descriptor = np.zeros(DESC_SIZE, dtype=np.float64)
        else:
            self.descriptor = descriptor

    @property
    def descriptor(self) -> np.ndarray:
        return self._descriptor

    @descriptor.setter
    def descriptor(self, values) -> None:
        desc = np.array(values, dtype=np.float64).reshape(-1)
        if desc.shape != (DESC_SIZE,):
            raise ValueError(
                f"descriptor must have {DESC_SIZE} elements, got {desc.size}"
            )
        self._descriptor = desc

    def __getitem__(self, index) -> float:
        return float(self._descriptor[_check_descriptor_index(index)])

    def __setitem__(self, index, value: float) -> None:
        self._descriptor[_check_descriptor_index(index)] = value

    def __len__(self) -> int:
        return DESC_SIZE

    def copy(self) -> "FeaturePoint":
        return FeaturePoint(
            self.x, self.y, self.scale, self.radius, self.sign, self._descriptor
        )

    __copy__ = copy

    def __deepcopy__(self, memo) -> "FeaturePoint":
        return self.copy()

    def assign(self, other: "FeaturePoint") -> None:
        """Overwrite this point with an independent copy of ``other``."""
        self.x = other.x
        self.y = other.y
        self.scale = other.scale
        self.radius = other.radius
        self.sign = other.sign
        self._descriptor = other._descriptor.copy()

    def __eq__(self, other) -> bool:
        if not isinstance(other, FeaturePoint):
            return NotImplemented
        return (
            self.x == other.x
            and self.y == other.y
            and self.scale == other.scale
            and self.radius == other.radius
            and self.sign == other.sign
            and np.array_equal(self._descriptor, other._descriptor)
        )

    __hash__ = None

    def __repr__(self) -> str:
        return (
            f"FeaturePoint(x={self.x}, y={self.y}, scale={self.scale}, "
            f"radius={self.radius}, sign={self.sign})"
        )


class FeaturePointsCollection:
    """Ordered store of the points detected on one image.

    ``generation`` is bumped on every ``clear()`` so that index handles taken
    before the clear can be told apart from live ones.
    """

    def __init__(self, points: Iterable[FeaturePoint] = ()) -> None:
        self._points: List[FeaturePoint] = []
        self.generation = 0
        self.extend(points)

    def append(self, point: FeaturePoint) -> None:
        if not isinstance(point, FeaturePoint):
            raise TypeError(f"expected FeaturePoint, got {type(point).__name__}")
        self._points.append(point)

    def extend(self, points: Iterable[FeaturePoint]) -> None:
        for point in points:
            self.append(point)

    def __getitem__(self, index: int) -> FeaturePoint:
        i = operator.index(index)
        if not 0 <= i < len(self._points):
            raise IndexError(
                f"point index {i} outside [0, {len(self._points)})"
            )
        return self._points[i]

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[FeaturePoint]:
        return iter(self._points)

    def clear(self) -> None:
        self._points.clear()
        self.generation += 1

    def copy(self) -> "FeaturePointsCollection":
        return FeaturePointsCollection(p.copy() for p in self._points)

    def descriptors(self) -> np.ndarray:
        if not self._points:
            return np.empty((0, DESC_SIZE), dtype=np.float64)
        return np.stack([p.descriptor for p in self._points])

    def signs(self) -> np.ndarray:
        return np.array([p.sign for p in self._points], dtype=np.int64)

    def coordinates(self) -> np.ndarray:
        if not self._points:
            return np.empty((0, 2), dtype=np.int64)
        return np.array([(p.x, p.y) for p in self._points], dtype=np.int64)
