"""
Result sinks: where per-user recommendation records end up.

Two targets exist under the configured sink directory: `itemrec_scores` for
normal runs and `training_itemrec_scores` for offline evaluation runs.
"""
from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Dict, List

import pandas as pd

from itemrec.errors import SinkWriteFailure
from itemrec.schemas import ItemRecScore, validate_record

UTC = timezone.utc
log = logging.getLogger(__name__)


class ResultSink:
    """Accepts one ItemRecScore per user. Implementations must be thread-safe."""

    def write(self, record: ItemRecScore) -> None:
        raise NotImplementedError

    def flush(self) -> None:
        """Push buffered records to storage. Unbuffered sinks have nothing to do."""

    def discard_pending(self) -> List[str]:
        """Drop buffered records that could not be flushed and return their uids."""
        return []

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.close()
            return False
        try:
            self.close()
        except Exception:
            # the in-flight exception wins; the close failure is only logged
            log.exception(f"Closing {type(self).__name__} failed while handling {exc_type.__name__}")
        return False


class MemorySink(ResultSink):
    """Keeps records in memory; used by tests and dry runs."""

    def __init__(self):
        self._lock = Lock()
        self.records: List[ItemRecScore] = []

    def write(self, record: ItemRecScore) -> None:
        with self._lock:
            self.records.append(record)

    def by_uid(self) -> Dict[str, ItemRecScore]:
        with self._lock:
            return {r.uid: r for r in self.records}


class ParquetSink(ResultSink):
    """
    Validates records against the Avro schema, buffers them and writes
    Parquet part files once `batch_size` rows are pending and on close().
    """

    def __init__(self, storage_path: str | Path, batch_size: int = 1000):
        self.storage_path = Path(storage_path)
        self.storage_path.mkdir(parents=True, exist_ok=True)
        self.batch_size = batch_size
        self._lock = Lock()
        self._buffer: List[Dict[str, Any]] = []
        self._seq = 0
        self.files_written: List[Path] = []
        self.rows_written = 0

    def write(self, record: ItemRecScore) -> None:
        row = validate_record(record.model_dump())
        with self._lock:
            self._buffer.append(row)
            if len(self._buffer) >= self.batch_size:
                try:
                    self._flush_locked()
                except Exception:
                    # keep the rest of the batch, the caller retries this record
                    self._buffer.pop()
                    raise

    def flush(self) -> None:
        with self._lock:
            self._flush_locked()

    def discard_pending(self) -> List[str]:
        with self._lock:
            lost = [row["uid"] for row in self._buffer]
            self._buffer = []
        if lost:
            log.error(f"Discarded {len(lost)} unflushed records")
        return lost

    def _flush_locked(self) -> None:
        if not self._buffer:
            return
        df = pd.DataFrame(self._buffer)
        now = datetime.now(UTC)
        output_path = self.storage_path / f"part-{now.strftime('%Y%m%d_%H%M%S')}-{self._seq:05d}.parquet"
        df.to_parquet(output_path, index=False)
        self._seq += 1
        self.rows_written += len(self._buffer)
        self.files_written.append(output_path)
        log.info(f"Wrote {len(self._buffer)} records to {output_path}")
        self._buffer = []

    def close(self) -> None:
        with self._lock:
            pending = len(self._buffer)
            try:
                self._flush_locked()
            except Exception as e:
                lost = [row["uid"] for row in self._buffer]
                raise SinkWriteFailure(lost) from e
        if pending:
            log.debug(f"Flushed {pending} pending records on close")


def get_sink(config) -> ResultSink:
    """Pick the sink target for a job config (offline evaluation goes to training modeldata)."""
    path = Path(config.sink_dir) / config.sink_target
    return ParquetSink(path, batch_size=config.sink_batch_size)


def write_with_retry(
    sink: ResultSink,
    record: ItemRecScore,
    max_retries: int = 3,
    backoff_sec: float = 0.5,
    sleep: Callable[[float], None] = time.sleep,
    on_retry: Callable[[int, Exception], None] | None = None,
) -> bool:
    """
    Write one record, retrying up to `max_retries` times with exponential backoff.

    A ValueError means the record itself was rejected (schema validation);
    writing it again cannot succeed, so it is not retried.

    Returns:
        True if the record was accepted, False if it was rejected or every attempt failed.
    """
    attempts = max_retries + 1
    for attempt in range(attempts):
        try:
            sink.write(record)
            return True
        except ValueError as e:
            log.error(f"Result for uid={record.uid} rejected, not retrying: {e}")
            return False
        except Exception as e:
            log.warning(f"Failed to write result for uid={record.uid} (attempt {attempt + 1}/{attempts}): {e}")
            if attempt < attempts - 1:
                if on_retry is not None:
                    on_retry(attempt, e)
                sleep(backoff_sec * (2 ** attempt))
                continue
            log.error(f"Giving up on uid={record.uid} after {attempts} attempts")
    return False
