from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Callable

from layers.types import FeatureCollection


@dataclass(frozen=True)
class StyledResult:
    identifier: str
    # Presentation hints (color, fillColor, emoji, ...) passed through untouched.
    style: dict[str, Any]
    collection: FeatureCollection


StoreListener = Callable[[StyledResult], None]


@dataclass
class ResultStore:
    """
    Append-only store holding at most one `StyledResult` per identifier.

    The first insert for an identifier wins; later inserts are no-ops. Iteration goes
    through `snapshot()`, which copies, so readers never see a list mutate under them.
    """

    _items: list[StyledResult] = field(default_factory=list, repr=False)
    _by_id: dict[str, StyledResult] = field(default_factory=dict, repr=False)
    _listeners: list[StoreListener] = field(default_factory=list, repr=False)
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)
    _version: int = 0

    def upsert_if_absent(
        self, identifier: str, style: dict[str, Any], collection: FeatureCollection
    ) -> bool:
        with self._lock:
            if identifier in self._by_id:
                return False
            item = StyledResult(
                identifier=identifier, style=dict(style or {}), collection=collection
            )
            self._items.append(item)
            self._by_id[identifier] = item
            self._version += 1
            listeners = list(self._listeners)

        # Listeners run outside the lock so they may read the store.
        for cb in listeners:
            cb(item)
        return True

    def snapshot(self) -> tuple[StyledResult, ...]:
        with self._lock:
            return tuple(self._items)

    def get(self, identifier: str) -> StyledResult | None:
        with self._lock:
            return self._by_id.get(identifier)

    @property
    def version(self) -> int:
        return self._version

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __contains__(self, identifier: object) -> bool:
        with self._lock:
            return identifier in self._by_id
