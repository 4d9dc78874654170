from __future__ import annotations
import abc, logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Iterable, List, Optional

import httpx

from gamelib.config import SearchConfig
from gamelib.details import DetailFetcher
from gamelib.http import fetch, DomainLimiter, make_client
from gamelib.models import GameRecord
from gamelib.normalize import normalize_app

@dataclass(slots=True)
class SearchHit:
   """Candidate from a search surface, before detail resolution."""
   appid: str
   name: Optional[str] = None
   image: Optional[str] = None

class SearchStrategy(abc.ABC):
   """
   Base class for the ways we can turn a query into canonical records.

   Usage:
      async with StoreSearchStrategy(config=cfg) as s:
         games = await s.search("portal")

   A strategy may share an injected client/limiter/fetcher with others, in
   which case it never closes them.
   """
   name: str = "unknown"

   def __init__(self, *, config: SearchConfig | None = None,
                http: httpx.AsyncClient | None = None,
                limiter: DomainLimiter | None = None,
                fetcher: DetailFetcher | None = None,
                logger: logging.Logger | None = None):
      self.config = config or SearchConfig()
      self._external_http = http
      self._http = http
      self._limiter = limiter or DomainLimiter(self.config.rps)
      self._fetcher = fetcher
      self.log = logger or logging.getLogger(f"gamelib.strategy.{self.name}")
      # lightweight counters
      self.metrics: Dict[str, int] = {"fetched": 0, "parsed": 0, "dropped": 0}

   # -------- lifecycle ------------------------------------------------------

   async def __aenter__(self) -> "SearchStrategy":
      if self._http is None:
         # create managed client
         self._client_cm = make_client(timeout=self.config.timeout, user_agent=self.config.user_agent)
         self._http = await self._client_cm.__aenter__()
      return self

   async def __aexit__(self, exc_type, exc, tb):
      if self._http is not None and self._external_http is None:
         # close managed client
         await self._client_cm.__aexit__(exc_type, exc, tb)
         self._http = None

   @property
   def fetcher(self) -> DetailFetcher:
      if self._fetcher is None:
         assert self._http is not None, "Strategy must be used inside 'async with' or injected with a client"
         self._fetcher = DetailFetcher(self._http, config=self.config, limiter=self._limiter)
      return self._fetcher

   # -------- HTTP helpers ---------------------------------------------------

   async def request(self, method: str, url: str, **kw) -> httpx.Response:
      """All network I/O goes through here (rate limit + retries)."""
      assert self._http is not None, "Strategy must be used inside 'async with' or injected with a client"
      kw.setdefault("max_retries", self.config.max_retries)
      r = await fetch(self._http, method, url, limiter=self._limiter, **kw)
      self.metrics["fetched"] += 1
      return r

   async def get_json(self, url: str, **kw) -> Any:
      r = await self.request("GET", url, **kw)
      return r.json()

   async def get_text(self, url: str, **kw) -> str:
      r = await self.request("GET", url, **kw)
      return r.text

   # -------- contract -------------------------------------------------------

   @abc.abstractmethod
   async def search(self, query: str, *, limit: int | None = None) -> List[GameRecord]:
      """
      Return canonical records for ``query`` in upstream order.

      Notes:
         - Never raise for upstream trouble; log it and return what you have.
         - Non-game entries are dropped, not reported.
      """
      ...

   # -------- utilities for strategies ---------------------------------------

   async def resolve(self, hits: Iterable[SearchHit]) -> List[GameRecord]:
      """Hydrate hits through the detail fetcher and normalize them, keeping hit order."""
      hits = list(hits)
      if not hits:
         return []
      details = await self.fetcher.fetch_details(h.appid for h in hits)
      out: List[GameRecord] = []
      for hit in hits:
         data = details.get(hit.appid)
         if data is None:
            self.drop(hit.appid, "unresolved")
            continue
         if hit.name or hit.image:
            # fill gaps from the search listing without touching the cached dict
            data = dict(data)
            if hit.name and not data.get("name"):
               data["name"] = hit.name
            if hit.image and not data.get("header_image"):
               data["header_image"] = hit.image
         rec = normalize_app(data, hit.appid)
         if rec is None:
            self.drop(hit.appid, f"type={data.get('type')!r}")
            continue
         self.metrics["parsed"] += 1
         out.append(rec)
      return out

   def drop(self, appid: str, reason: str) -> None:
      self.metrics["dropped"] += 1
      self.log.debug("%s: drop %s (%s)", self.name, appid, reason)

   async def paginate(
      self,
      *,
      start: int = 0,
      page_size: int = 50,
      fetch_page: Callable[[int, int], Awaitable[List[Any]]],
   ) -> AsyncIterator[List[Any]]:
      """
      Generic offset pagination:
         async for items in self.paginate(page_size=25, fetch_page=...):
            ...
      Stops after a short page. Callers break out when they have enough.
      """
      cursor = start
      while True:
         items = await fetch_page(cursor, page_size)
         yield items
         if len(items) < page_size:
            break
         cursor += page_size
