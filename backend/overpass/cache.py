from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field

from layers.identity import identify
from overpass.client import HttpxOverpassTransport, OverpassTransport, RawResponse
from pipeline.errors import FetchError
from telemetry.singleton import record_event

logger = logging.getLogger(__name__)


@dataclass
class OverpassCache:
    """
    Process-local cache of raw Overpass responses keyed by the exact query text.

    - No normalization, TTL or eviction: entries live as long as the process.
    - Only successful responses are stored, so a failed query is retried next time.
    - Concurrent fetches of the same text share one network call and its outcome.
    """

    transport: OverpassTransport = field(default_factory=HttpxOverpassTransport)

    hits: int = 0
    misses: int = 0
    network_calls: int = 0

    _responses: dict[str, RawResponse] = field(default_factory=dict, repr=False)
    # Only holds keys with a request on the wire; cleared as soon as it settles,
    # so nothing bound to one event loop outlives it.
    _inflight: dict[str, asyncio.Future] = field(default_factory=dict, repr=False)

    async def fetch(self, query_text: str) -> RawResponse:
        if query_text in self._responses:
            self._hit(query_text)
            return self._responses[query_text]

        pending = self._inflight.get(query_text)
        if pending is not None:
            raw = await asyncio.shield(pending)
            self._hit(query_text)
            return raw

        fut: asyncio.Future = asyncio.get_running_loop().create_future()
        # Retrieve the exception even when nobody else awaited this fetch.
        fut.add_done_callback(lambda f: f.cancelled() or f.exception())
        self._inflight[query_text] = fut
        try:
            raw = await self._fetch_from_source(query_text)
        except FetchError as e:
            fut.set_exception(e)
            raise
        except asyncio.CancelledError:
            fut.cancel()
            raise
        finally:
            self._inflight.pop(query_text, None)
        fut.set_result(raw)
        return raw

    async def _fetch_from_source(self, query_text: str) -> RawResponse:
        self.misses += 1
        self.network_calls += 1
        t0 = time.perf_counter()
        try:
            raw = await self.transport.post(query_text)
        except FetchError as e:
            _record(query_text, cache_hit=False, t0=t0, error=str(e))
            raise
        except Exception as e:
            _record(query_text, cache_hit=False, t0=t0, error=str(e))
            raise FetchError(query_text, e) from e
        self._responses[query_text] = raw
        _record(query_text, cache_hit=False, t0=t0)
        return raw

    def contains(self, query_text: str) -> bool:
        return query_text in self._responses

    def clear(self) -> None:
        self._responses.clear()

    def __len__(self) -> int:
        return len(self._responses)

    def _hit(self, query_text: str) -> None:
        self.hits += 1
        logger.debug("overpass cache hit", extra={"extra": {"id": identify(query_text)}})
        _record(query_text, cache_hit=True, t0=time.perf_counter())


def _record(query_text: str, *, cache_hit: bool, t0: float, error: str | None = None) -> None:
    record_event(
        stage="fetch",
        identifier=identify(query_text),
        cache_hit=cache_hit,
        feature_count=None,
        duration_ms=(time.perf_counter() - t0) * 1000.0,
        error=error,
    )
