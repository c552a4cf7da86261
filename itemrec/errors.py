"""Exceptions raised by the model constructor job."""
from __future__ import annotations

from typing import List, Optional


class ModelConstructorError(RuntimeError):
    """Base class for job failures."""


class ConfigError(ModelConstructorError, ValueError):
    """Raised when the job configuration is missing or invalid."""


class MalformedInputLine(ModelConstructorError):
    """Raised when a line of an input file cannot be parsed."""

    def __init__(self, path, line: Optional[str], reason: str = "") -> None:
        self.path = str(path)
        self.line = line
        self.reason = reason
        msg = f"Cannot parse {self.path}"
        if line is not None:
            msg += f" line: {line!r}"
        if reason:
            msg += f". {reason}"
        super().__init__(msg)


class DimensionMismatch(ModelConstructorError):
    """Raised when user and item matrices disagree on the number of features."""

    def __init__(self, user_features: int, item_features: int) -> None:
        self.user_features = user_features
        self.item_features = item_features
        super().__init__(
            f"User matrix has {user_features} features but item matrix has {item_features}"
        )


class SinkWriteFailure(ModelConstructorError):
    """Raised at the end of a run when some results could not be persisted."""

    def __init__(self, lost_uids: List[str], report=None) -> None:
        self.lost_uids = list(lost_uids)
        self.report = report
        preview = ", ".join(self.lost_uids[:5])
        more = "" if len(self.lost_uids) <= 5 else f" (+{len(self.lost_uids) - 5} more)"
        super().__init__(f"Failed to persist {len(self.lost_uids)} result(s): {preview}{more}")
