import asyncio
from typing import Any, Dict, Iterable, List, Optional

import httpx
import pytest

from gamelib.config import SearchConfig
from gamelib.search import SearchService


def make_config(**overrides) -> SearchConfig:
    values = dict(
        rps=1000.0,
        max_retries=0,
        detail_batch_delay=0.0,
        timeout=2.0,
        library_db="sqlite:///:memory:",
    )
    values.update(overrides)
    return SearchConfig(**values)


def app_data(appid, name="Game", *, type="game", price=None, **extra) -> Dict[str, Any]:
    data: Dict[str, Any] = {"type": type, "name": name, "steam_appid": int(appid)}
    if price is not None:
        data["price_overview"] = price
    data.update(extra)
    return data


class FakeSteam:
    """Minimal stand-in for the three store endpoints the search core talks to."""

    def __init__(self):
        self.search_items: Dict[str, List[Dict[str, Any]]] = {}
        self.details: Dict[str, Dict[str, Any]] = {}
        self.html: str = ""
        self.search_status = 200
        self.html_status = 200
        self.failing_ids: set[str] = set()
        self.fail_search_after: Optional[int] = None  # fail pages with start >= this
        self.ignore_paging = False
        self.requests: List[httpx.Request] = []
        self.search_key = "items"

    # -------- setup helpers --------

    def add_game(self, appid, name="Game", **kw) -> None:
        self.details[str(appid)] = {"success": True, "data": app_data(appid, name, **kw)}

    def add_search(self, term: str, appids: Iterable, *, key: str = "items") -> None:
        self.search_items[term] = [
            {"id" if key == "items" else "appid": int(a), "name": f"App {a}", "type": "app"}
            for a in appids
        ]
        self.search_key = key

    # -------- transport --------

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def calls(self, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    def detail_batches(self) -> List[List[str]]:
        return [r.url.params["appids"].split(",") for r in self.calls("/api/appdetails")]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/api/storesearch/":
            return self._search(request)
        if path == "/api/appdetails":
            return self._details(request)
        if path == "/search/results/":
            if self.html_status != 200:
                return httpx.Response(self.html_status, text="unavailable")
            return httpx.Response(200, text=self.html, headers={"Content-Type": "text/html"})
        return httpx.Response(404)

    def _search(self, request: httpx.Request) -> httpx.Response:
        if self.search_status != 200:
            return httpx.Response(self.search_status, json={"error": "boom"})
        start = int(request.url.params.get("start", "0"))
        count = int(request.url.params.get("count", "50"))
        if self.fail_search_after is not None and start >= self.fail_search_after:
            return httpx.Response(502, text="bad gateway")
        items = self.search_items.get(request.url.params.get("term", ""), [])
        page = items[:count] if self.ignore_paging else items[start:start + count]
        return httpx.Response(200, json={"total": len(items), self.search_key: page})

    def _details(self, request: httpx.Request) -> httpx.Response:
        ids = request.url.params["appids"].split(",")
        if self.failing_ids.intersection(ids):
            return httpx.Response(500, text="server error")
        payload = {}
        for appid in ids:
            payload[appid] = self.details.get(appid, {"success": False})
        return httpx.Response(200, json=payload)


def run_search(fake: FakeSteam, query, *, limit=None, **cfg):
    async def go():
        async with httpx.AsyncClient(transport=fake.transport()) as client:
            async with SearchService(config=make_config(**cfg), http=client) as svc:
                return await svc.search_games(query, limit=limit)

    return asyncio.run(go())


@pytest.fixture
def steam() -> FakeSteam:
    return FakeSteam()
