from __future__ import annotations

import logging
import threading

import duckdb

from telemetry.config import telemetry_enabled, telemetry_path
from telemetry.store import TelemetryStore

logger = logging.getLogger(__name__)

_STORE: TelemetryStore | None = None
_STORE_LOCK = threading.RLock()


def get_store() -> TelemetryStore | None:
    """
    The process-wide telemetry store, or None when disabled or unavailable.

    An unwritable path or a broken database disables telemetry instead of failing
    the caller.
    """
    global _STORE
    if not telemetry_enabled():
        return None
    with _STORE_LOCK:
        path = telemetry_path()
        if _STORE is not None:
            # Reopen when the configured path changes (e.g. across tests).
            if _STORE.path.resolve() == path.resolve():
                return _STORE
            _STORE.stop(timeout_s=2.0)
            try:
                _STORE.conn.close()
            except duckdb.Error:
                pass
            _STORE = None

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            conn = duckdb.connect(str(path))
            store = TelemetryStore(path=path, conn=conn)
            store.ensure_schema()
        except (OSError, duckdb.Error) as e:
            logger.warning(
                "telemetry unavailable",
                extra={"extra": {"path": str(path), "error": str(e)}},
            )
            return None
        store.start()
        _STORE = store
        return _STORE


def record_event(
    *,
    stage: str,
    identifier: str | None,
    cache_hit: bool | None,
    feature_count: int | None,
    duration_ms: float,
    error: str | None = None,
) -> None:
    """Best-effort event write; never raises into the pipeline."""
    store = get_store()
    if store is None:
        return
    try:
        store.record(
            stage=stage,
            identifier=identifier,
            cache_hit=cache_hit,
            feature_count=feature_count,
            duration_ms=duration_ms,
            error=error,
        )
    except (OSError, duckdb.Error) as e:
        logger.warning("telemetry write failed", extra={"extra": {"error": str(e)}})


def reset_store() -> None:
    global _STORE
    with _STORE_LOCK:
        if _STORE is not None:
            _STORE.reset()
            _STORE = None
        else:
            telemetry_path().unlink(missing_ok=True)
