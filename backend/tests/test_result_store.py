import threading

from layers.types import FeatureCollection, PointFeature
from store.results import ResultStore


def _fc(*names: str) -> FeatureCollection:
    return FeatureCollection(
        features=tuple(
            PointFeature(id=f"node/{i}", lon=0.0, lat=0.0, props={"name": n})
            for i, n in enumerate(names)
        )
    )


def test_first_write_wins():
    store = ResultStore()
    first = _fc("first")
    assert store.upsert_if_absent("h1", {"emoji": "🏥"}, first) is True
    assert store.upsert_if_absent("h1", {"emoji": "🏫"}, _fc("second")) is False

    assert len(store) == 1
    entry = store.get("h1")
    assert entry.collection is first
    assert entry.style == {"emoji": "🏥"}


def test_snapshot_preserves_insertion_order_and_is_a_copy():
    store = ResultStore()
    store.upsert_if_absent("b", {}, _fc())
    store.upsert_if_absent("a", {}, _fc())
    snap = store.snapshot()
    store.upsert_if_absent("c", {}, _fc())

    assert [r.identifier for r in snap] == ["b", "a"]
    assert [r.identifier for r in store.snapshot()] == ["b", "a", "c"]
    assert "c" in store
    assert store.version == 3


def test_listeners_fire_only_on_insert():
    store = ResultStore()
    seen: list[str] = []
    unsubscribe = store.subscribe(lambda item: seen.append(item.identifier))

    store.upsert_if_absent("x", {}, _fc())
    store.upsert_if_absent("x", {}, _fc())
    unsubscribe()
    store.upsert_if_absent("y", {}, _fc())

    assert seen == ["x"]


def test_concurrent_inserts_keep_one_entry_per_identifier():
    store = ResultStore()
    wins: list[bool] = []
    lock = threading.Lock()

    def worker(n: int) -> None:
        ok = store.upsert_if_absent("same", {"n": n}, _fc(str(n)))
        with lock:
            wins.append(ok)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(16)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(store) == 1
    assert wins.count(True) == 1
