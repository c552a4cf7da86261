import threading
import time

import numpy as np
import pytest

from itemrec.scoring import ScoringCancelled, ScoringEngine, ScoringTimeout
from itemrec.topk import ScoredItem

ITEMS = np.array([[3.0, 1.0, 5.0]])  # F=1, three items


def test_example_top_two():
    engine = ScoringEngine(ITEMS, num_recommendations=2)
    assert engine.score(np.array([2.0]), [1, 2, 3]) == [ScoredItem(3, 10.0), ScoredItem(1, 6.0)]


def test_seen_item_excluded_by_candidates():
    engine = ScoringEngine(ITEMS, num_recommendations=2)
    assert engine.score(np.array([2.0]), [1, 2]) == [ScoredItem(1, 6.0), ScoredItem(2, 2.0)]


def test_scores_match_dot_products_across_chunks():
    rng = np.random.default_rng(7)
    items = rng.normal(size=(8, 50))
    user = rng.normal(size=8)
    engine = ScoringEngine(items, num_recommendations=5, chunk_size=7)
    top = engine.score(user, range(1, 51))

    expected = sorted(((i + 1, float(user @ items[:, i])) for i in range(50)), key=lambda x: (-x[1], x[0]))[:5]
    assert [x.index for x in top] == [i for i, _ in expected]
    assert np.allclose([x.score for x in top], [s for _, s in expected])


def test_chunk_size_does_not_change_result():
    rng = np.random.default_rng(1)
    items = np.round(rng.normal(size=(3, 40)), 1)
    user = np.array([1.0, 0.0, 0.0])
    a = ScoringEngine(items, 10, chunk_size=1).score(user, range(1, 41))
    b = ScoringEngine(items, 10, chunk_size=4096).score(user, range(1, 41))
    assert a == b


def test_no_candidates_and_zero_n():
    engine = ScoringEngine(ITEMS, num_recommendations=3)
    assert engine.score(np.array([1.0]), []) == []
    assert ScoringEngine(ITEMS, 0).score(np.array([1.0]), [1, 2, 3]) == []


def test_dimension_mismatch_raises():
    engine = ScoringEngine(ITEMS, 2)
    with pytest.raises(ValueError):
        engine.score(np.array([1.0, 2.0]), [1])


def test_deadline_and_cancellation():
    engine = ScoringEngine(ITEMS, 2)
    with pytest.raises(ScoringTimeout):
        engine.score(np.array([1.0]), [1, 2, 3], deadline=time.monotonic() - 1)

    ev = threading.Event()
    ev.set()
    with pytest.raises(ScoringCancelled):
        engine.score(np.array([1.0]), [1, 2, 3], cancel_event=ev)
