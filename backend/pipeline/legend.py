from __future__ import annotations

from typing import Any, Iterable

from geo.viewport_filter import FilteredResult


def build_legend(filtered: Iterable[FilteredResult]) -> list[dict[str, Any]]:
    """
    Companion list for the map: one entry per named feature currently in view.

    `index` is the 1-based position of the feature within its filtered collection,
    so it matches the number drawn next to the marker. Unnamed features keep their
    position but get no entry.
    """
    out: list[dict[str, Any]] = []
    for r in filtered:
        for i, f in enumerate(r.collection.features, start=1):
            name = f.name
            if not name:
                continue
            out.append(
                {
                    "id": r.identifier,
                    "featureId": f.id,
                    "index": i,
                    "name": name,
                    "emoji": r.style.get("emoji"),
                    "color": r.style.get("color"),
                    "fillColor": r.style.get("fillColor"),
                }
            )
    return out
