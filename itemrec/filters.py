# itemrec/filters.py
from __future__ import annotations

import logging
from typing import Callable, Dict, Iterator, Mapping, Optional, Set

log = logging.getLogger(__name__)


def valid_item_filter(enable: bool, iindex: int, valid_map: Mapping[int, object]) -> bool:
    return (iindex in valid_map) if enable else True


def unseen_item_filter(enable: bool, iindex: int, seen: Set[int]) -> bool:
    return (iindex not in seen) if enable else True


class FilterPipeline:
    """
    Decides which item indices a user may be recommended.

    The eligible catalogue is computed once from the item matrix columns and
    the eligibility predicate (by default: the item has an index entry).
    `candidates()` then lazily drops the user's already-seen items when
    unseen filtering is on.
    """

    def __init__(
        self,
        num_item_columns: int,
        items_map: Dict[int, object],
        unseen_only: bool = False,
        eligibility: Optional[Callable[[int], bool]] = None,
    ):
        self.unseen_only = unseen_only
        self.eligibility = eligibility or (lambda iindex: valid_item_filter(True, iindex, items_map))
        self.valid_items = tuple(
            iindex for iindex in range(1, num_item_columns + 1) if self.eligibility(iindex)
        )
        self.unmapped_items = sum(
            1 for iindex in range(1, num_item_columns + 1) if iindex not in items_map
        )
        if self.unmapped_items:
            log.warning(f"{self.unmapped_items:,} item matrix columns have no item index entry; excluded")

    def __len__(self) -> int:
        return len(self.valid_items)

    def candidates(self, seen: Optional[Set[int]] = None) -> Iterator[int]:
        seen = seen or set()
        for iindex in self.valid_items:
            if unseen_item_filter(self.unseen_only, iindex, seen):
                yield iindex
