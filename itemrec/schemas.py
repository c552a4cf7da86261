"""Schema of the per-user recommendation record written to the model store."""
from __future__ import annotations

from typing import Any, Dict, List

import fastavro
from pydantic import BaseModel

ITEMREC_SCORE_SCHEMA = {
    "type": "record",
    "name": "ItemRecScore",
    "fields": [
        {"name": "uid", "type": "string"},
        {"name": "iids", "type": {"type": "array", "items": "string"}},
        {"name": "scores", "type": {"type": "array", "items": "double"}},
        {"name": "itypes", "type": {"type": "array", "items": {"type": "array", "items": "string"}}},
        {"name": "appid", "type": "int"},
        {"name": "algoid", "type": "int"},
        {"name": "modelset", "type": "boolean"},
    ],
}

_PARSED_SCHEMA = fastavro.parse_schema(ITEMREC_SCORE_SCHEMA)


class ItemRecScore(BaseModel):
    """Top-N recommendations of one user, best first."""
    uid: str
    iids: List[str]
    scores: List[float]
    itypes: List[List[str]]
    appid: int
    algoid: int
    modelset: bool


def validate_record(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate a record dict against the Avro schema.

    Raises:
        ValueError: If the arrays disagree in length, scores are not sorted
            best-first, or the record does not match the schema.
    """
    n = len(data.get("iids", []))
    if len(data.get("scores", [])) != n or len(data.get("itypes", [])) != n:
        raise ValueError("iids, scores and itypes arrays must have the same length")
    scores = data.get("scores", [])
    if any(a < b for a, b in zip(scores, scores[1:])):
        raise ValueError("scores must be sorted in non-increasing order")
    try:
        fastavro.validation.validate(data, _PARSED_SCHEMA)
    except fastavro.validation.ValidationError as e:
        raise ValueError(f"Schema validation failed for ItemRecScore: {e}") from e
    return data
