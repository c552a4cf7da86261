# itemrec/scoring.py
from __future__ import annotations

import threading
import time
from itertools import islice
from typing import Iterable, List, Optional

import numpy as np

from itemrec.topk import ScoredItem, TopKSelector


class ScoringTimeout(TimeoutError):
    """A user's scoring ran past its deadline."""


class ScoringCancelled(RuntimeError):
    """The run was cancelled while a user was being scored."""


class ScoringEngine:
    """
    Scores one user's candidates by inner product and keeps the top N.

    `item_matrix` is the F x #items feature matrix; it is kept item-major so
    each chunk of candidates is one matrix-vector product. The engine holds no
    per-user state, so a single instance is shared by all worker threads.
    """

    def __init__(self, item_matrix: np.ndarray, num_recommendations: int, chunk_size: int = 4096):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.item_factors = np.ascontiguousarray(np.asarray(item_matrix, dtype=np.float64).T)  # I x F
        self.num_features = self.item_factors.shape[1]
        self.num_recommendations = num_recommendations
        self.chunk_size = chunk_size

    def score(
        self,
        user_vector: np.ndarray,
        candidates: Iterable[int],
        deadline: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[ScoredItem]:
        """
        Return up to N (iindex, score) pairs by descending score.
        `candidates` are 1-based item indices; `deadline` is a time.monotonic() value.
        """
        user_vector = np.asarray(user_vector, dtype=np.float64).ravel()
        if user_vector.shape[0] != self.num_features:
            raise ValueError(
                f"user vector dim {user_vector.shape[0]} != item feature dim {self.num_features}"
            )

        q = TopKSelector(self.num_recommendations)
        if self.num_recommendations == 0:
            return q.extract()

        it = iter(candidates)
        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise ScoringCancelled("scoring cancelled")
            if deadline is not None and time.monotonic() > deadline:
                raise ScoringTimeout("scoring deadline exceeded")

            chunk = np.fromiter(islice(it, self.chunk_size), dtype=np.int64)
            if chunk.size == 0:
                break
            scores = self.item_factors[chunk - 1] @ user_vector
            for iindex, score in zip(chunk.tolist(), scores.tolist()):
                q.offer(ScoredItem(iindex, score))

        return q.extract()
