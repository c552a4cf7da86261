from itemrec.filters import FilterPipeline, unseen_item_filter, valid_item_filter


def test_valid_item_filter():
    m = {1: "a", 3: "c"}
    assert valid_item_filter(True, 1, m)
    assert not valid_item_filter(True, 2, m)
    assert valid_item_filter(False, 2, m)


def test_unseen_item_filter():
    assert not unseen_item_filter(True, 3, {3})
    assert unseen_item_filter(True, 2, {3})
    assert unseen_item_filter(False, 3, {3})


def test_candidates_skip_unmapped_columns():
    fp = FilterPipeline(4, {1: "a", 2: "b", 4: "d"})
    assert list(fp.candidates()) == [1, 2, 4]
    assert fp.unmapped_items == 1
    assert len(fp) == 3


def test_mapping_beyond_matrix_is_not_a_candidate():
    fp = FilterPipeline(2, {1: "a", 2: "b", 5: "e"})
    assert list(fp.candidates()) == [1, 2]


def test_seen_items_removed_only_when_enabled():
    items = {1: "a", 2: "b", 3: "c"}
    assert list(FilterPipeline(3, items, unseen_only=True).candidates({3})) == [1, 2]
    assert list(FilterPipeline(3, items, unseen_only=False).candidates({3})) == [1, 2, 3]


def test_candidates_are_lazy_and_deterministic():
    fp = FilterPipeline(5, {i: str(i) for i in range(1, 6)}, unseen_only=True)
    gen = fp.candidates({2})
    assert next(gen) == 1
    assert list(gen) == [3, 4, 5]
    assert list(fp.candidates({2})) == list(fp.candidates({2}))


def test_custom_eligibility_predicate():
    items = {i: str(i) for i in range(1, 7)}
    fp = FilterPipeline(6, items, eligibility=lambda i: i % 2 == 0)
    assert list(fp.candidates()) == [2, 4, 6]
