import asyncio
import threading

import httpx

from gamelib.details import DetailCache, DetailFetcher, chunked, unique_ids

from conftest import make_config


def fetch(fake, ids, *, cache=None, **cfg):
    async def go():
        async with httpx.AsyncClient(transport=fake.transport()) as client:
            fetcher = DetailFetcher(client, config=make_config(**cfg), cache=cache)
            return await fetcher.fetch_details(ids), fetcher

    return asyncio.run(go())


def test_unique_ids_keeps_first_appearance():
    assert unique_ids([3, "1", 3, " 2 ", 1, ""]) == ["3", "1", "2"]


def test_chunked_respects_batch_size():
    assert chunked(["1", "2", "3", "4", "5"], 2) == [["1", "2"], ["3", "4"], ["5"]]
    assert chunked(["1"], 0) == [["1"]]


def test_ids_are_deduplicated_and_batched(steam):
    for appid in range(1, 6):
        steam.add_game(appid, f"G{appid}")

    result, fetcher = fetch(steam, [1, 2, 2, 3, 4, 5, 1], detail_batch_size=2)

    assert list(result) == ["1", "2", "3", "4", "5"]
    assert steam.detail_batches() == [["1", "2"], ["3", "4"], ["5"]]
    assert fetcher.metrics["batches"] == 3


def test_failed_batch_is_skipped_and_others_proceed(steam):
    for appid in (1, 2, 3):
        steam.add_game(appid)
    steam.failing_ids = {"2"}

    result, fetcher = fetch(steam, [1, 2, 3], detail_batch_size=1)

    assert sorted(result) == ["1", "3"]
    assert fetcher.metrics["failed_batches"] == 1


def test_failure_of_single_batch_loses_all_its_ids(steam):
    for appid in (1, 2, 3):
        steam.add_game(appid)
    steam.failing_ids = {"2"}

    result, _ = fetch(steam, [1, 2, 3], detail_batch_size=10)

    assert result == {}


def test_unsuccessful_entries_are_excluded(steam):
    steam.add_game(1)
    steam.details["2"] = {"success": False}

    result, fetcher = fetch(steam, [1, 2, 3])

    assert list(result) == ["1"]
    assert "2" not in fetcher.cache and "3" not in fetcher.cache


def test_cache_avoids_refetching(steam):
    steam.add_game(1)
    steam.add_game(2)
    cache = DetailCache()

    fetch(steam, [1], cache=cache)
    result, fetcher = fetch(steam, [1, 2], cache=cache)

    assert sorted(result) == ["1", "2"]
    assert steam.detail_batches() == [["1"], ["2"]]
    assert fetcher.metrics["cache_hits"] == 1


def test_fully_cached_request_issues_no_http(steam):
    cache = DetailCache()
    cache.put("9", {"type": "game", "name": "Cached"})

    result, _ = fetch(steam, ["9"], cache=cache)

    assert result == {"9": {"type": "game", "name": "Cached"}}
    assert steam.requests == []


def test_malformed_json_counts_as_failed_batch():
    def handler(request):
        return httpx.Response(200, text="<html>not json</html>")

    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            fetcher = DetailFetcher(client, config=make_config())
            return await fetcher.fetch_details(["1", "2"]), fetcher

    result, fetcher = asyncio.run(go())
    assert result == {}
    assert fetcher.metrics["failed_batches"] == 1


def test_null_payload_counts_as_failed_batch():
    def handler(request):
        return httpx.Response(200, json=None)

    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await DetailFetcher(client, config=make_config()).fetch_details(["1"])

    assert asyncio.run(go()) == {}


def test_transport_error_is_isolated_per_batch():
    def handler(request):
        if request.url.params["appids"] == "1":
            raise httpx.ConnectError("refused", request=request)
        return httpx.Response(200, json={"2": {"success": True, "data": {"type": "game"}}})

    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            fetcher = DetailFetcher(client, config=make_config(detail_batch_size=1))
            return await fetcher.fetch_details(["1", "2"])

    assert list(asyncio.run(go())) == ["2"]


def test_cache_evicts_least_recently_used():
    cache = DetailCache(max_entries=2)
    cache.put("1", {"n": 1})
    cache.put("2", {"n": 2})
    assert cache.get("1") == {"n": 1}
    cache.put("3", {"n": 3})

    assert "1" in cache and "3" in cache
    assert "2" not in cache
    assert len(cache) == 2


def test_cache_tolerates_concurrent_writers():
    cache = DetailCache(max_entries=500)

    def writer(offset):
        for i in range(1000):
            cache.put(str(offset + i), {"i": i})
            cache.get(str(offset + i // 2))

    threads = [threading.Thread(target=writer, args=(n * 1000,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(cache) == 500


def test_batches_are_sequential_with_delay_between_them(steam, monkeypatch):
    for appid in range(1, 7):
        steam.add_game(appid)
    events = []
    real_sleep = asyncio.sleep

    async def fake_sleep(delay, *args, **kwargs):
        events.append(("sleep", delay))
        await real_sleep(0)

    handle = steam.handle

    def recording(request):
        events.append(("request", request.url.params["appids"]))
        return handle(request)

    steam.handle = recording
    monkeypatch.setattr("gamelib.details.asyncio.sleep", fake_sleep)

    result, _ = fetch(steam, range(1, 7), detail_batch_size=2, detail_batch_delay=0.5)

    assert list(result) == ["1", "2", "3", "4", "5", "6"]
    assert events == [
        ("request", "1,2"),
        ("sleep", 0.5),
        ("request", "3,4"),
        ("sleep", 0.5),
        ("request", "5,6"),
    ]


def test_single_batch_never_sleeps(steam, monkeypatch):
    steam.add_game(1)
    sleeps = []

    async def fake_sleep(delay, *args, **kwargs):
        sleeps.append(delay)

    monkeypatch.setattr("gamelib.details.asyncio.sleep", fake_sleep)

    result, _ = fetch(steam, [1], detail_batch_delay=0.5)

    assert list(result) == ["1"]
    assert sleeps == []
