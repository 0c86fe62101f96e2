from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Sequence

from catalog.types import CatalogQuery
from geo.aoi import Viewport
from geo.viewport_filter import FilteredResult, ViewportFilter
from layers.convert import convert
from layers.identity import identify
from overpass.cache import OverpassCache
from overpass.config import max_concurrency as default_max_concurrency
from pipeline.errors import ConversionError, FetchError
from store.results import ResultStore, StyledResult
from telemetry.singleton import record_event

logger = logging.getLogger(__name__)

FilteredListener = Callable[[list[FilteredResult]], None]


@dataclass
class IngestReport:
    inserted: list[str] = field(default_factory=list)
    # Identifiers already present in the store (first write wins).
    skipped: list[str] = field(default_factory=list)
    # query id -> error text
    failed: dict[str, str] = field(default_factory=dict)

    def to_payload(self) -> dict:
        return {
            "inserted": list(self.inserted),
            "skipped": list(self.skipped),
            "failed": dict(self.failed),
        }


class Orchestrator:
    """
    Two-stage pipeline over a query catalog.

    1. `ingest()`: Cache -> Convert -> Identify -> Store, once per query. Failures of
       one query (fetch or conversion) are logged and reported; the rest proceed.
    2. Projection: whenever the store or the viewport changes, every stored
       collection is re-filtered against the latest viewport and pushed to subscribers.
    """

    def __init__(
        self,
        queries: Sequence[CatalogQuery],
        *,
        cache: OverpassCache | None = None,
        store: ResultStore | None = None,
        viewport_filter: ViewportFilter | None = None,
        max_concurrency: int | None = None,
    ) -> None:
        self.queries = list(queries)
        ids = [q.id for q in self.queries]
        dupes = sorted({i for i in ids if ids.count(i) > 1})
        if dupes:
            # The ingest report is keyed by query id.
            raise ValueError(f"Duplicate query ids: {', '.join(dupes)}")
        self.cache = cache if cache is not None else OverpassCache()
        self.store = store if store is not None else ResultStore()
        self.viewport_filter = viewport_filter if viewport_filter is not None else ViewportFilter()
        self.max_concurrency = max(1, max_concurrency or default_max_concurrency())

        self._viewport: Viewport | None = None
        self._viewport_lock = threading.Lock()
        self._listeners: list[FilteredListener] = []
        self.store.subscribe(self._on_store_change)

    @property
    def viewport(self) -> Viewport | None:
        return self._viewport

    async def ingest(self) -> IngestReport:
        report = IngestReport()
        t0 = time.perf_counter()
        if self.max_concurrency <= 1:
            # Catalog order; each query completes before the next one starts.
            for q in self.queries:
                await self._ingest_one(q, report)
        else:
            sem = asyncio.Semaphore(self.max_concurrency)

            async def run(q: CatalogQuery) -> None:
                async with sem:
                    await self._ingest_one(q, report)

            await asyncio.gather(*(run(q) for q in self.queries))

        logger.info(
            "ingest finished",
            extra={
                "extra": {
                    "inserted": len(report.inserted),
                    "skipped": len(report.skipped),
                    "failed": len(report.failed),
                    "ms": round((time.perf_counter() - t0) * 1000.0, 1),
                }
            },
        )
        return report

    async def _ingest_one(self, q: CatalogQuery, report: IngestReport) -> None:
        identifier = identify(q.query)
        try:
            raw = await self.cache.fetch(q.query)
            t0 = time.perf_counter()
            try:
                collection = convert(raw)
            except ConversionError as e:
                _record("convert", identifier, None, t0, error=str(e))
                raise
            _record("convert", identifier, len(collection), t0)
        except (FetchError, ConversionError) as e:
            logger.warning(
                "query failed",
                extra={"extra": {"query": q.id, "id": identifier, "error": str(e)}},
            )
            report.failed[q.id] = str(e)
            return

        if self.store.upsert_if_absent(identifier, q.style.as_dict(), collection):
            report.inserted.append(identifier)
        else:
            report.skipped.append(identifier)

    def set_viewport(self, viewport: Viewport) -> list[FilteredResult]:
        with self._viewport_lock:
            self._viewport = viewport
        return self._publish()

    def filtered(self) -> list[FilteredResult]:
        """
        Current projection, recomputed from scratch. Empty until a viewport is known.
        """
        viewport = self._viewport
        if viewport is None:
            return []
        return self._filter(viewport, self.store.snapshot())

    def subscribe(self, listener: FilteredListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _on_store_change(self, _item: StyledResult) -> None:
        if self._viewport is not None:
            self._publish()

    def _publish(self) -> list[FilteredResult]:
        # A pass may run against a viewport that is already stale; the newer
        # viewport triggers its own full pass.
        out = self.filtered()
        for cb in list(self._listeners):
            cb(out)
        return out

    def _filter(
        self, viewport: Viewport, results: Sequence[StyledResult]
    ) -> list[FilteredResult]:
        t0 = time.perf_counter()
        out = self.viewport_filter.filter(viewport, results)
        _record("filter", None, sum(len(r.collection) for r in out), t0)
        return out


def _record(
    stage: str,
    identifier: str | None,
    feature_count: int | None,
    t0: float,
    *,
    error: str | None = None,
) -> None:
    record_event(
        stage=stage,
        identifier=identifier,
        cache_hit=None,
        feature_count=feature_count,
        duration_ms=(time.perf_counter() - t0) * 1000.0,
        error=error,
    )
