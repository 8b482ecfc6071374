from __future__ import annotations

from typing import Iterator, List, Optional, Tuple

import numpy as np

from .feature import FeaturePoint, FeaturePointsCollection


class MatchedPointsCollection:
    """Pairs of corresponding points detected on two images.

    Pairs are kept as indices into ``first`` and ``second``; the points
    themselves stay owned by those collections and are never copied here.
    Both index sequences only ever grow together, so they always have the
    same length.
    """

    def __init__(
        self, first: FeaturePointsCollection, second: FeaturePointsCollection
    ) -> None:
        self.first = first
        self.second = second
        self._first_idx: List[int] = []
        self._second_idx: List[int] = []
        # source generations seen when each pair was added
        self._generations: List[Tuple[int, int]] = []

    def add_points(self, first_index: int, second_index: int) -> None:
        # raises IndexError for handles outside the sources
        self.first[first_index]
        self.second[second_index]
        self._first_idx.append(int(first_index))
        self._second_idx.append(int(second_index))
        self._generations.append((self.first.generation, self.second.generation))

    def _is_live(self, index: int) -> bool:
        gen_1, gen_2 = self._generations[index]
        return (
            gen_1 == self.first.generation
            and gen_2 == self.second.generation
            and self._first_idx[index] < len(self.first)
            and self._second_idx[index] < len(self.second)
        )

    def get_points(
        self,
        index: int,
        out_first: Optional[FeaturePoint],
        out_second: Optional[FeaturePoint],
    ) -> bool:
        """Copy the ``index``-th pair into ``out_first`` and ``out_second``.

        Does nothing and returns ``False`` if the index is out of range, an
        output is missing or a source collection was cleared after the pair
        was added.
        """
        if out_first is None or out_second is None:
            return False
        if not 0 <= index < len(self._first_idx):
            return False
        if not self._is_live(index):
            return False
        out_first.assign(self.first[self._first_idx[index]])
        out_second.assign(self.second[self._second_idx[index]])
        return True

    def get_size(self) -> int:
        return len(self._first_idx)

    def __len__(self) -> int:
        return len(self._first_idx)

    @property
    def first_indices(self) -> Tuple[int, ...]:
        return tuple(self._first_idx)

    @property
    def second_indices(self) -> Tuple[int, ...]:
        return tuple(self._second_idx)

    def index_pairs(self) -> np.ndarray:
        if not self._first_idx:
            return np.empty((0, 2), dtype=np.int64)
        return np.column_stack((self._first_idx, self._second_idx)).astype(np.int64)

    def pairs(self) -> Iterator[Tuple[FeaturePoint, FeaturePoint]]:
        for k in range(len(self._first_idx)):
            if self._is_live(k):
                yield self.first[self._first_idx[k]], self.second[self._second_idx[k]]

    def clear(self) -> None:
        self._first_idx.clear()
        self._second_idx.clear()
        self._generations.clear()
