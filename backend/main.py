from __future__ import annotations

from functools import lru_cache
from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, model_validator

from catalog.registry import get_catalog, list_catalogs
from common.logging_setup import setup_logging
from geo.aoi import Viewport
from geo.viewport_filter import FilteredResult
from pipeline.legend import build_legend
from pipeline.orchestrator import Orchestrator
from telemetry.singleton import get_store

setup_logging()

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class ApiViewport(BaseModel):
    west: float
    south: float
    east: float
    north: float

    @model_validator(mode="after")
    def _check_bounds(self) -> "ApiViewport":
        # Raises ValueError, which pydantic turns into a 422.
        self.to_viewport()
        return self

    def to_viewport(self) -> Viewport:
        return Viewport(west=self.west, south=self.south, east=self.east, north=self.north)


@lru_cache(maxsize=8)
def get_orchestrator(catalog_id: str) -> Orchestrator:
    """
    One orchestrator (and so one cache and store) per catalog for the process lifetime.
    """
    entry = get_catalog(catalog_id)
    return Orchestrator(entry.config.queries)


def _resolve_catalog_id(catalog_id: str | None) -> str:
    return get_catalog(catalog_id).config.id


def _payload(filtered: list[FilteredResult]) -> dict[str, Any]:
    return {
        "results": [r.to_payload() for r in filtered],
        "legend": build_legend(filtered),
    }


@app.get("/health")
def health():
    return {"ok": True}


@app.get("/catalogs")
def catalogs():
    return [c.model_dump() for c in list_catalogs()]


@app.post("/ingest")
async def ingest(catalogId: str | None = None):
    cid = _resolve_catalog_id(catalogId)
    report = await get_orchestrator(cid).ingest()
    return {"catalogId": cid, **report.to_payload()}


@app.post("/viewport")
def set_viewport(body: ApiViewport, catalogId: str | None = None):
    cid = _resolve_catalog_id(catalogId)
    filtered = get_orchestrator(cid).set_viewport(body.to_viewport())
    return {"catalogId": cid, **_payload(filtered)}


@app.get("/results")
def results(catalogId: str | None = None):
    cid = _resolve_catalog_id(catalogId)
    orch = get_orchestrator(cid)
    vp = orch.viewport
    return {
        "catalogId": cid,
        "viewport": vp.as_tuple() if vp is not None else None,
        **_payload(orch.filtered()),
    }


@app.get("/telemetry/summary")
def telemetry_summary(stage: str | None = None, sinceMs: int | None = None):
    store = get_store()
    if store is None:
        raise HTTPException(status_code=404, detail="Telemetry is disabled")
    store.flush(timeout_s=2.0)
    return store.summary(stage=stage, since_ms=sinceMs)
