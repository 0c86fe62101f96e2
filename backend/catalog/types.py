from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class QueryStyle(BaseModel):
    """
    Presentation hints for one query's features.

    Opaque to the pipeline: unknown keys are kept and handed to the consumer as-is.
    """

    model_config = ConfigDict(extra="allow")

    color: str | None = None
    fillColor: str | None = None
    emoji: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class CatalogQuery(BaseModel):
    id: str
    title: str | None = None
    # Overpass QL, sent verbatim; identity is derived from this exact text.
    query: str = Field(min_length=1)
    style: QueryStyle = Field(default_factory=QueryStyle)


class CatalogCenter(BaseModel):
    lat: float
    lon: float


class CatalogDefaultView(BaseModel):
    center: CatalogCenter
    zoom: float = Field(ge=0.0, le=24.0)


class CatalogConfig(BaseModel):
    id: str
    title: str
    enabled: bool = True
    # Passed through for consumers that position a map camera.
    defaultView: CatalogDefaultView | None = None
    queries: list[CatalogQuery] = Field(default_factory=list)

    @field_validator("queries")
    @classmethod
    def _unique_query_ids(cls, queries: list[CatalogQuery]) -> list[CatalogQuery]:
        seen: set[str] = set()
        for q in queries:
            if q.id in seen:
                raise ValueError(f"Duplicate query id: {q.id}")
            seen.add(q.id)
        return queries
