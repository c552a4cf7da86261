"""
Readers for the files a matrix-factorization run leaves behind.

Expected layout of the input directory:
    usersIndex.tsv    uindex<TAB>uid
    itemsIndex.tsv    iindex<TAB>iid<TAB>comma separated item types
    ratings.mm        training ratings, read only for unseen filtering
    ratings.mm_U.mm   F x #users factors
    ratings.mm_V.mm   F x #items factors

Every reader fails fast: a malformed line aborts the load with
MalformedInputLine naming the file and the line.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Set

import numpy as np
import scipy.io
import scipy.sparse as sp

from itemrec.errors import DimensionMismatch, MalformedInputLine

log = logging.getLogger(__name__)

USERS_INDEX = "usersIndex.tsv"
ITEMS_INDEX = "itemsIndex.tsv"
RATINGS = "ratings.mm"
USER_FEATURES = "ratings.mm_U.mm"
ITEM_FEATURES = "ratings.mm_V.mm"


@dataclass(frozen=True)
class ItemData:
    iid: str
    itypes: List[str]


@dataclass
class JobData:
    """Everything a run needs, loaded once and shared read-only."""
    users_map: Dict[int, str]
    items_map: Dict[int, ItemData]
    seen: Dict[int, Set[int]]
    user_matrix: np.ndarray   # F x #users
    item_matrix: np.ndarray   # F x #items

    @property
    def num_features(self) -> int:
        return int(self.user_matrix.shape[0])

    @property
    def num_user_columns(self) -> int:
        return int(self.user_matrix.shape[1])

    @property
    def num_item_columns(self) -> int:
        return int(self.item_matrix.shape[1])


def _lines(path: Path):
    with open(path, "rb") as f:
        for raw in f:
            try:
                line = raw.decode("utf-8")
            except UnicodeDecodeError as e:
                text = raw.rstrip(b"\r\n").decode("utf-8", errors="backslashreplace")
                raise MalformedInputLine(path, text, f"Not valid UTF-8: {e}") from e
            yield line.rstrip("\r\n")


def load_users_index(path) -> Dict[int, str]:
    """uindex -> uid"""
    path = Path(path)
    users: Dict[int, str] = {}
    for line in _lines(path):
        if not line.strip():
            continue
        try:
            data = line.split("\t")
            users[int(data[0])] = data[1]
        except (IndexError, ValueError) as e:
            raise MalformedInputLine(path, line, f"Cannot get user index and uid: {e}") from e
    return users


def load_items_index(path) -> Dict[int, ItemData]:
    """iindex -> ItemData(iid, itypes)"""
    path = Path(path)
    items: Dict[int, ItemData] = {}
    for line in _lines(path):
        if not line.strip():
            continue
        try:
            fields = line.split("\t")
            itypes = [t for t in fields[2].split(",") if t]
            items[int(fields[0])] = ItemData(iid=fields[1], itypes=itypes)
        except (IndexError, ValueError) as e:
            raise MalformedInputLine(path, line, f"Cannot get item info: {e}") from e
    return items


def load_seen_set(path) -> Dict[int, Set[int]]:
    """
    uindex -> set of iindex the user already rated.
    Comment (%) and empty lines are discarded, the first remaining line is the
    matrix size header, the rating value itself is ignored.
    """
    path = Path(path)
    seen: Dict[int, Set[int]] = {}
    header_skipped = False
    for line in _lines(path):
        if not line.strip() or line.startswith("%"):
            continue
        if not header_skipped:
            header_skipped = True
            continue
        try:
            fields = line.split()
            u, i = int(fields[0]), int(fields[1])
        except (IndexError, ValueError) as e:
            raise MalformedInputLine(path, line, f"Cannot get user and item index: {e}") from e
        seen.setdefault(u, set()).add(i)
    return seen


def read_dense_matrix(path) -> np.ndarray:
    """Read a Matrix Market file (array or coordinate) into a dense float64 array."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Missing matrix file: {path}")
    try:
        m = scipy.io.mmread(str(path))
    except OSError:
        raise
    except Exception as e:
        # parser errors differ between scipy's pure-python and fast_matrix_market readers
        raise MalformedInputLine(path, None, f"Invalid Matrix Market data: {e}") from e
    if sp.issparse(m):
        m = m.toarray()
    m = np.asarray(m, dtype=np.float64)
    if m.ndim != 2:
        raise MalformedInputLine(path, None, f"Expected a 2-d matrix, got shape {m.shape}")
    bad = np.argwhere(~np.isfinite(m))
    if bad.size:
        row, col = (int(x) + 1 for x in bad[0])
        raise MalformedInputLine(
            path, None, f"non-finite value {m[row - 1, col - 1]} at (row {row}, col {col}); {len(bad)} such entries"
        )
    return m


def load_job_data(input_dir, unseen_only: bool = False) -> JobData:
    """Read all inputs of a run; any error here aborts the job before scoring."""
    base = Path(input_dir)
    files = {
        "users_index": base / USERS_INDEX,
        "items_index": base / ITEMS_INDEX,
        "user_features": base / USER_FEATURES,
        "item_features": base / ITEM_FEATURES,
    }
    if unseen_only:
        files["ratings"] = base / RATINGS

    users_map = load_users_index(files["users_index"])
    items_map = load_items_index(files["items_index"])
    seen = load_seen_set(files["ratings"]) if unseen_only else {}

    user_matrix = read_dense_matrix(files["user_features"])
    item_matrix = read_dense_matrix(files["item_features"])
    if user_matrix.shape[0] != item_matrix.shape[0]:
        raise DimensionMismatch(user_matrix.shape[0], item_matrix.shape[0])

    log.info(
        f"Loaded {len(users_map):,} users, {len(items_map):,} items, "
        f"{sum(len(s) for s in seen.values()):,} seen pairs; "
        f"user matrix {user_matrix.shape}, item matrix {item_matrix.shape}"
    )

    return JobData(
        users_map=users_map,
        items_map=items_map,
        seen=seen,
        user_matrix=user_matrix,
        item_matrix=item_matrix,
    )
