# itemrec/orchestrator.py
"""
Runs the scoring engine for every known user and hands results to a sink.

A run moves LOADED -> SCORING -> DONE. Input errors surface while building
the JobData, before any task exists. During SCORING each user is one task
on a bounded thread pool; a task failure is recorded in the RunReport and
does not touch its siblings. Only the coordinating thread writes to the sink.
"""
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from itemrec.config import JobConfig
from itemrec.data.loader import JobData, load_job_data
from itemrec.errors import SinkWriteFailure
from itemrec.filters import FilterPipeline
from itemrec.metrics import JobMetrics
from itemrec.schemas import ItemRecScore
from itemrec.scoring import ScoringCancelled, ScoringEngine, ScoringTimeout
from itemrec.sinks import ResultSink, get_sink, write_with_retry

log = logging.getLogger(__name__)


class JobState(str, Enum):
    LOADED = "loaded"
    SCORING = "scoring"
    DONE = "done"


@dataclass
class RunReport:
    users_total: int = 0
    users_written: int = 0
    unmapped_users: int = 0
    unmapped_items: int = 0
    failed_users: Dict[int, str] = field(default_factory=dict)  # uindex -> reason
    lost_writes: List[str] = field(default_factory=list)
    cancelled: bool = False
    duration_sec: float = 0.0

    @property
    def ok(self) -> bool:
        return not self.failed_users and not self.lost_writes and not self.cancelled

    def to_dict(self) -> Dict:
        return {
            "users_total": self.users_total,
            "users_written": self.users_written,
            "unmapped_users": self.unmapped_users,
            "unmapped_items": self.unmapped_items,
            "failed_users": len(self.failed_users),
            "lost_writes": len(self.lost_writes),
            "cancelled": self.cancelled,
            "duration_sec": round(self.duration_sec, 3),
        }


class Orchestrator:
    def __init__(
        self,
        data: JobData,
        config: JobConfig,
        sink: ResultSink,
        metrics: Optional[JobMetrics] = None,
        sleep=time.sleep,
    ):
        self.data = data
        self.config = config
        self.sink = sink
        self.metrics = metrics or JobMetrics()
        self._sleep = sleep
        self._cancel = threading.Event()

        self.filters = FilterPipeline(data.num_item_columns, data.items_map, unseen_only=config.unseen_only)
        self.engine = ScoringEngine(data.item_matrix, config.num_recommendations, chunk_size=config.chunk_size)
        self.state = JobState.LOADED

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def working_users(self) -> List[int]:
        """User indices with both a matrix column and an index entry."""
        return [u for u in range(1, self.data.num_user_columns + 1) if u in self.data.users_map]

    def cancel(self) -> None:
        self._cancel.set()

    def score_user(self, uindex: int) -> ItemRecScore:
        """Compute one user's record. Runs on a worker thread; touches no shared mutable state."""
        started = time.monotonic()
        deadline = started + self.config.task_timeout_sec if self.config.task_timeout_sec else None

        user_vector = self.data.user_matrix[:, uindex - 1]
        seen = self.data.seen.get(uindex, set())
        top = self.engine.score(
            user_vector,
            self.filters.candidates(seen),
            deadline=deadline,
            cancel_event=self._cancel,
        )
        self.metrics.scoring_latency.observe(time.monotonic() - started)

        items = [self.data.items_map[x.index] for x in top]
        return ItemRecScore(
            uid=self.data.users_map[uindex],
            iids=[it.iid for it in items],
            scores=[x.score for x in top],
            itypes=[list(it.itypes) for it in items],
            appid=self.config.context_id,
            algoid=self.config.algoid,
            modelset=self.config.model_set,
        )

    def _collect(self, future: Future, uindex: int, report: RunReport) -> None:
        uid = self.data.users_map[uindex]
        try:
            record = future.result()
        except ScoringTimeout:
            log.warning(f"Scoring timed out for uid={uid} (uindex={uindex})")
            report.failed_users[uindex] = "timeout"
            self.metrics.users_failed.labels(reason="timeout").inc()
            return
        except ScoringCancelled:
            report.failed_users[uindex] = "cancelled"
            self.metrics.users_failed.labels(reason="cancelled").inc()
            return
        except Exception as e:
            log.exception(f"Scoring failed for uid={uid} (uindex={uindex}): {e}")
            report.failed_users[uindex] = repr(e)
            self.metrics.users_failed.labels(reason="error").inc()
            return

        written = write_with_retry(
            self.sink,
            record,
            max_retries=self.config.sink_max_retries,
            backoff_sec=self.config.sink_backoff_sec,
            sleep=self._sleep,
            on_retry=lambda attempt, e: self.metrics.sink_retries.inc(),
        )
        if written:
            report.users_written += 1
        else:
            report.lost_writes.append(uid)
            self.metrics.sink_lost.inc()

    def _flush_sink(self, report: RunReport) -> None:
        """
        Flush what the sink still buffers, with the same retry policy as writes.
        Records that never reach storage move from users_written to lost_writes.
        """
        attempts = self.config.sink_max_retries + 1
        for attempt in range(attempts):
            try:
                self.sink.flush()
                return
            except Exception as e:
                log.warning(f"Failed to flush sink (attempt {attempt + 1}/{attempts}): {e}")
                if attempt < attempts - 1:
                    self.metrics.sink_retries.inc()
                    self._sleep(self.config.sink_backoff_sec * (2 ** attempt))

        lost = self.sink.discard_pending()
        report.lost_writes.extend(lost)
        report.users_written -= len(lost)
        self.metrics.sink_lost.inc(len(lost))

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def run(self) -> RunReport:
        """
        Score every working user and write the results.

        Raises:
            SinkWriteFailure: If any result was still rejected after retries or
                the final flush failed; the exception carries the RunReport.
        """
        if self.state is not JobState.LOADED:
            raise RuntimeError(f"Orchestrator already ran (state={self.state.value})")

        start = time.time()
        users = self.working_users()
        report = RunReport(
            users_total=len(users),
            unmapped_users=self.data.num_user_columns - len(users),
            unmapped_items=self.filters.unmapped_items,
        )
        if report.unmapped_users:
            log.warning(f"{report.unmapped_users:,} user matrix columns have no user index entry; excluded")
        self.metrics.unmapped.labels(kind="user").inc(report.unmapped_users)
        self.metrics.unmapped.labels(kind="item").inc(report.unmapped_items)

        workers = self.config.workers
        window = workers * 4
        log.info(
            f"Scoring {len(users):,} users against {len(self.filters):,} eligible items "
            f"(N={self.config.num_recommendations}, unseen_only={self.config.unseen_only}, "
            f"workers={workers}, context_id={self.config.context_id}, target={self.config.sink_target})"
        )
        self.state = JobState.SCORING

        pending: Dict[Future, int] = {}
        next_user = 0
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="itemrec")
        try:
            while next_user < len(users) or pending:
                while next_user < len(users) and len(pending) < window and not self._cancel.is_set():
                    uindex = users[next_user]
                    pending[executor.submit(self.score_user, uindex)] = uindex
                    next_user += 1
                if not pending:
                    break
                done, _ = wait(pending, return_when=FIRST_COMPLETED)
                for future in done:
                    self._collect(future, pending.pop(future), report)
            self._flush_sink(report)
        except KeyboardInterrupt:
            log.warning("Interrupted; cancelling remaining users")
            self.cancel()
            raise
        finally:
            executor.shutdown(wait=True, cancel_futures=True)
            report.cancelled = self._cancel.is_set()
            report.duration_sec = time.time() - start
            self.metrics.users_scored.inc(report.users_written)
            self.metrics.job_duration.set(report.duration_sec)
            self.state = JobState.DONE

        log.info(f"Run finished: {report.to_dict()}")
        if report.lost_writes:
            raise SinkWriteFailure(report.lost_writes, report=report)
        return report


def build_orchestrator(config: JobConfig, sink: ResultSink | None = None, metrics: JobMetrics | None = None) -> Orchestrator:
    """Load inputs (fails fast on malformed data) and wire the orchestrator."""
    config.validate()
    data = load_job_data(config.input_dir, unseen_only=config.unseen_only)
    return Orchestrator(data, config, sink if sink is not None else get_sink(config), metrics=metrics)


def run_job(config: JobConfig, sink: ResultSink | None = None) -> RunReport:
    """Load, score, write, close the sink and export metrics."""
    metrics = JobMetrics()
    orchestrator = build_orchestrator(config, sink=sink, metrics=metrics)
    try:
        with orchestrator.sink:
            return orchestrator.run()
    finally:
        if config.metrics_path:
            metrics.write(config.metrics_path)
