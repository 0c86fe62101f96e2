import asyncio

import pytest

from overpass.cache import OverpassCache
from pipeline.errors import FetchError
from stubs import CountingTransport, node


def test_repeated_fetch_hits_network_once():
    raw = {"elements": [node(1, 0.5, 0.5, name="A")]}
    transport = CountingTransport({"q": raw})
    cache = OverpassCache(transport=transport)

    async def run():
        return [await cache.fetch("q") for _ in range(5)]

    results = asyncio.run(run())
    assert transport.calls == ["q"]
    assert all(r is results[0] for r in results)
    assert cache.network_calls == 1
    assert cache.misses == 1
    assert cache.hits == 4


def test_keys_are_exact_query_text():
    transport = CountingTransport()
    cache = OverpassCache(transport=transport)

    async def run():
        await cache.fetch("out geom;")
        await cache.fetch("out geom; ")
        await cache.fetch("out geom;")

    asyncio.run(run())
    assert transport.calls == ["out geom;", "out geom; "]
    assert len(cache) == 2


def test_failed_fetch_is_not_cached_and_is_retried():
    transport = CountingTransport(failing={"bad"})
    cache = OverpassCache(transport=transport)

    with pytest.raises(FetchError) as exc:
        asyncio.run(cache.fetch("bad"))
    assert exc.value.query_text == "bad"
    assert not cache.contains("bad")

    transport.failing.clear()
    assert asyncio.run(cache.fetch("bad")) == {"elements": []}
    assert transport.calls == ["bad", "bad"]
    assert cache.contains("bad")


def test_unexpected_transport_errors_are_wrapped():
    class Broken:
        async def post(self, query_text):
            raise ConnectionResetError("peer went away")

    cache = OverpassCache(transport=Broken())
    with pytest.raises(FetchError) as exc:
        asyncio.run(cache.fetch("q"))
    assert isinstance(exc.value.cause, ConnectionResetError)
    assert exc.value.query_text == "q"


def test_concurrent_fetches_of_same_text_share_one_call():
    transport = CountingTransport(delay_s=0.05)
    cache = OverpassCache(transport=transport)

    async def run():
        return await asyncio.gather(*(cache.fetch("q") for _ in range(4)))

    results = asyncio.run(run())
    assert transport.calls == ["q"]
    assert all(r is results[0] for r in results)


def test_contended_fetches_work_across_event_loops():
    transport = CountingTransport(failing={"q"}, delay_s=0.02)
    cache = OverpassCache(transport=transport)

    async def pair():
        return await asyncio.gather(cache.fetch("q"), cache.fetch("q"), return_exceptions=True)

    first = asyncio.run(pair())
    assert all(isinstance(r, FetchError) for r in first)
    assert transport.calls == ["q"]

    transport.failing.clear()
    second = asyncio.run(pair())
    assert second == [{"elements": []}, {"elements": []}]
    assert transport.calls == ["q", "q"]

    third = asyncio.run(pair())
    assert third == [{"elements": []}, {"elements": []}]
    assert cache.network_calls == 2
