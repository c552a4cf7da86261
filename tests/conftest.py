from pathlib import Path

import numpy as np
import pytest
import scipy.io


def write_inputs(
    root: Path,
    user_matrix,
    item_matrix,
    users=None,
    items=None,
    ratings=None,
):
    """Write a model constructor input directory (index files + Matrix Market files)."""
    root = Path(root)
    root.mkdir(parents=True, exist_ok=True)
    user_matrix = np.asarray(user_matrix, dtype=float)
    item_matrix = np.asarray(item_matrix, dtype=float)

    if users is None:
        users = {u: f"u{u}" for u in range(1, user_matrix.shape[1] + 1)}
    if items is None:
        items = {i: (f"i{i}", ["t1"]) for i in range(1, item_matrix.shape[1] + 1)}

    (root / "usersIndex.tsv").write_text("".join(f"{u}\t{uid}\n" for u, uid in users.items()))
    (root / "itemsIndex.tsv").write_text(
        "".join(f"{i}\t{iid}\t{','.join(types)}\n" for i, (iid, types) in items.items())
    )
    if ratings is not None:
        lines = ["%%MatrixMarket matrix coordinate real general", "% generated by tests"]
        lines.append(f"{user_matrix.shape[1]} {item_matrix.shape[1]} {len(ratings)}")
        lines += [f"{u} {i} {r}" for u, i, r in ratings]
        (root / "ratings.mm").write_text("\n".join(lines) + "\n")

    write_matrix(root / "ratings.mm_U.mm", user_matrix)
    write_matrix(root / "ratings.mm_V.mm", item_matrix)
    return root


def write_matrix(path: Path, matrix) -> Path:
    # file object: mmwrite would otherwise append .mtx to the name
    with open(path, "wb") as f:
        scipy.io.mmwrite(f, np.asarray(matrix, dtype=float))
    return path


@pytest.fixture
def toy_inputs(tmp_path):
    """F=1, one user [2.0], items 1:[3.0] 2:[1.0] 3:[5.0]; user 1 has rated item 3."""
    return write_inputs(
        tmp_path / "input",
        user_matrix=[[2.0]],
        item_matrix=[[3.0, 1.0, 5.0]],
        users={1: "alice"},
        items={1: ("apple", ["fruit"]), 2: ("bread", ["bakery", "grain"]), 3: ("cherry", ["fruit"])},
        ratings=[(1, 3, 4.0)],
    )
