from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import duckdb

from telemetry.sql import (
    CREATE_EVENTS_TABLE_SQL,
    INSERT_EVENTS_SQL,
    SUMMARY_SQL_TEMPLATE,
)

logger = logging.getLogger(__name__)


def _safe_float(v) -> float | None:
    try:
        if v is None:
            return None
        return float(v)
    except (TypeError, ValueError):
        return None


@dataclass
class TelemetryStore:
    path: Path
    conn: duckdb.DuckDBPyConnection
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)
    _q: "queue.Queue[tuple]" = field(default_factory=queue.Queue, repr=False)
    _stop: threading.Event = field(default_factory=threading.Event, repr=False)
    _worker: threading.Thread | None = field(default=None, repr=False)

    def ensure_schema(self) -> None:
        with self._lock:
            self.conn.execute(CREATE_EVENTS_TABLE_SQL)

    def start(self) -> None:
        if self._worker is not None:
            return
        self._stop.clear()
        self._worker = threading.Thread(
            target=self._run, name="telemetry-writer", daemon=True
        )
        self._worker.start()

    def stop(self, *, timeout_s: float = 2.0) -> None:
        self._stop.set()
        w = self._worker
        if w is not None and w.is_alive():
            w.join(timeout=timeout_s)
        self._worker = None

    def record(
        self,
        *,
        stage: str,
        identifier: str | None,
        cache_hit: bool | None,
        feature_count: int | None,
        duration_ms: float,
        error: str | None = None,
    ) -> None:
        # Non-blocking: the writer thread batches inserts.
        self.start()
        try:
            self._q.put_nowait(
                (
                    int(time.time() * 1000),
                    str(stage),
                    identifier,
                    cache_hit,
                    feature_count,
                    float(duration_ms),
                    error,
                )
            )
        except queue.Full:
            pass

    def flush(self, *, timeout_s: float = 2.0) -> None:
        """
        Wait until queued events are written (used by tests).
        """
        if self._worker is None:
            return
        deadline = time.time() + timeout_s
        while time.time() < deadline:
            if self._q.unfinished_tasks == 0:
                break
            time.sleep(0.01)

    def query(self, sql: str, params: list[Any] | None = None) -> list[tuple]:
        with self._lock:
            if params:
                return self.conn.execute(sql, params).fetchall()
            return self.conn.execute(sql).fetchall()

    def summary(
        self, *, stage: str | None = None, since_ms: int | None = None
    ) -> list[dict[str, Any]]:
        where = []
        params: list[Any] = []
        if stage:
            where.append("stage = ?")
            params.append(stage)
        if since_ms is not None:
            where.append("ts_ms >= ?")
            params.append(int(since_ms))

        where_sql = f"WHERE {' AND '.join(where)}" if where else ""
        rows = self.query(SUMMARY_SQL_TEMPLATE.format(where_sql=where_sql), params)

        out: list[dict[str, Any]] = []
        for stage_v, n, failures, avg_ms, p95, hit_rate, features in rows:
            out.append(
                {
                    "stage": stage_v,
                    "n": int(n),
                    "failures": int(failures or 0),
                    "avgMs": _safe_float(avg_ms),
                    "p95Ms": _safe_float(p95),
                    "cacheHitRate": _safe_float(hit_rate),
                    "features": int(features) if features is not None else 0,
                }
            )
        return out

    def reset(self) -> None:
        # Stop the writer first so it can't write to a closed connection.
        self.stop(timeout_s=2.0)
        with self._lock:
            self.conn.close()
            self.path.unlink(missing_ok=True)

    def _run(self) -> None:
        self.ensure_schema()
        batch: list[tuple] = []
        last_flush = time.time()

        def flush_batch() -> None:
            nonlocal batch
            if batch:
                try:
                    with self._lock:
                        self.conn.executemany(INSERT_EVENTS_SQL, batch)
                except duckdb.Error as e:
                    # Drop the batch; telemetry must not take the writer down.
                    logger.warning(
                        "telemetry batch dropped",
                        extra={"extra": {"rows": len(batch), "error": str(e)}},
                    )
            # task_done only after the rows are visible, so flush() can wait on it.
            for _ in batch:
                self._q.task_done()
            batch = []

        while not self._stop.is_set():
            try:
                batch.append(self._q.get(timeout=0.05))
            except queue.Empty:
                pass

            now = time.time()
            if len(batch) >= 250 or (batch and (self._q.empty() or now - last_flush >= 0.5)):
                flush_batch()
                last_flush = now

        while True:
            try:
                batch.append(self._q.get_nowait())
            except queue.Empty:
                break
        flush_batch()
