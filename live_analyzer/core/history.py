"""Bounded detection history with majority-vote stabilization."""

import math
from collections import Counter, deque
from dataclasses import dataclass
from typing import Deque, Iterator, List, Optional, Tuple

from .errors import ConfigurationError


@dataclass(frozen=True)
class HistoryEntry:
    label: str
    confidence: float
    timestamp: float


@dataclass(frozen=True)
class StableDetection:
    """Result of a majority vote over a history window."""

    label: str
    confidence: float  # mean confidence of the winning entries
    count: int


class DetectionHistory:
    """Ring buffer of recent per-frame detections for one channel.

    The capacity is fixed at construction; pushing past it evicts the oldest
    entry.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ConfigurationError(f"history capacity must be >= 1, got {capacity}")
        self.capacity = int(capacity)
        self._entries: Deque[HistoryEntry] = deque(maxlen=self.capacity)

    def push(self, label: str, confidence: float = 1.0, timestamp: float = 0.0) -> None:
        self._entries.append(HistoryEntry(label, float(confidence), float(timestamp)))

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[HistoryEntry]:
        return iter(self._entries)

    @property
    def labels(self) -> List[str]:
        return [e.label for e in self._entries]

    def majority(
        self,
        min_ratio: float,
        strict: bool = False,
        min_entries: int = 1,
    ) -> Optional[StableDetection]:
        """
        Majority vote over the window.

        The winning label must be the strict plurality (no tie for first
        place). Its count is compared against the *capacity*, not the
        current fill level, so a half-empty window cannot vote early.

        Args:
            min_ratio: Required share of the capacity
            strict: If True the count must exceed ``capacity * min_ratio``;
                otherwise it must reach ``ceil(capacity * min_ratio)``
            min_entries: Minimum number of entries before voting

        Returns:
            StableDetection, or None if no label clears the bar
        """
        if len(self._entries) < max(min_entries, 1):
            return None

        counts = Counter(e.label for e in self._entries)
        ranked: List[Tuple[str, int]] = counts.most_common(2)
        label, count = ranked[0]
        if len(ranked) > 1 and ranked[1][1] == count:
            return None

        threshold = round(self.capacity * min_ratio, 9)
        if strict:
            if count <= threshold:
                return None
        elif count < math.ceil(threshold):
            return None

        confidences = [e.confidence for e in self._entries if e.label == label]
        return StableDetection(
            label=label,
            confidence=sum(confidences) / len(confidences),
            count=count,
        )
