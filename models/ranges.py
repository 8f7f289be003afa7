"""Histogram bucket bounds."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Range(Generic[T]):
    """A histogram bucket over an ordered unit (``timedelta``, ``datetime`` or ``float``).

    Buckets are left-closed and right-open, ``start <= v < end``. The last
    bucket of a histogram is closed on both sides so that the observed maximum
    always lands in it. Callers guarantee ``start <= end``.

    Equality covers ``start``, ``end`` and ``is_last``; ordering only looks at
    ``start`` so that sorting buckets follows the histogram axis.
    """

    start: T
    end: T
    is_last: bool = False

    def contains(self, value: Any) -> bool:
        if value is None or value < self.start:
            return False
        if self.is_last:
            return value <= self.end
        return value < self.end

    def __lt__(self, other: Range[T]) -> bool:
        if not isinstance(other, Range):
            return NotImplemented
        return self.start < other.start
