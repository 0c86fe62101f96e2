from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Iterable

from geo.aoi import Viewport
from geo.index import ContainmentIndex, build_containment_index
from layers.types import FeatureCollection
from store.results import StyledResult


@dataclass(frozen=True)
class FilteredResult:
    """
    Projection of a `StyledResult` onto one viewport.

    Transient: recomputed on every store/viewport change and never cached.
    """

    identifier: str
    style: dict[str, Any]
    collection: FeatureCollection

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.identifier,
            "style": dict(self.style),
            "geojson": self.collection.to_geojson(),
        }


@dataclass
class ViewportFilter:
    """
    Narrows every stored collection to the features fully inside a viewport.

    Indexes are keyed by identifier; collections are immutable once stored, so an
    index built for one viewport stays valid for every later one.
    """

    _indexes: dict[str, ContainmentIndex] = field(default_factory=dict, repr=False)
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    def filter(
        self, viewport: Viewport, results: Iterable[StyledResult]
    ) -> list[FilteredResult]:
        out: list[FilteredResult] = []
        for r in results:
            index = self._index_for(r)
            # Empty collections are still emitted: "nothing here" differs from "not loaded".
            out.append(
                FilteredResult(
                    identifier=r.identifier,
                    style=dict(r.style),
                    collection=FeatureCollection(features=tuple(index.contained(viewport))),
                )
            )
        return out

    def _index_for(self, result: StyledResult) -> ContainmentIndex:
        with self._lock:
            index = self._indexes.get(result.identifier)
            if index is None or index.collection is not result.collection:
                index = build_containment_index(result.collection)
                self._indexes[result.identifier] = index
            return index


def filter_results(
    viewport: Viewport, results: Iterable[StyledResult]
) -> list[FilteredResult]:
    """One-shot filter without index reuse."""
    return ViewportFilter().filter(viewport, results)
