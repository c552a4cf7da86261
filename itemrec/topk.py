# itemrec/topk.py
"""
Bounded top-N selection over a stream of scored items.

The selector keeps a min-heap of at most `n` entries, so memory stays O(n)
however long the candidate stream is. Among equal scores the lower item
index wins, both when deciding what to keep (candidates arrive in ascending
index order and an equal score never evicts) and when ordering the output.
"""
from __future__ import annotations

import heapq
import math
from typing import List, NamedTuple, Tuple


class ScoredItem(NamedTuple):
    index: int
    score: float


class TopKSelector:
    def __init__(self, n: int):
        if n < 0:
            raise ValueError(f"n must be >= 0, got {n}")
        self.n = n
        # (score, -index): the heap head is the lowest score, highest index on ties
        self._heap: List[Tuple[float, int]] = []

    def __len__(self) -> int:
        return len(self._heap)

    def offer(self, item: ScoredItem) -> bool:
        """Offer one item; returns True if it is retained (for now)."""
        if self.n == 0:
            return False
        score = float(item.score)
        if math.isnan(score):
            raise ValueError(f"NaN score for item {item.index}")
        entry = (score, -int(item.index))
        if len(self._heap) < self.n:
            heapq.heappush(self._heap, entry)
            return True
        if entry[0] > self._heap[0][0]:
            heapq.heapreplace(self._heap, entry)
            return True
        return False

    def extract(self) -> List[ScoredItem]:
        """Retained items by descending score, ascending index on ties."""
        ordered = sorted(self._heap, key=lambda e: (-e[0], -e[1]))
        return [ScoredItem(index=-neg_idx, score=score) for score, neg_idx in ordered]
