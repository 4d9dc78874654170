from __future__ import annotations
import logging
from contextlib import AsyncExitStack
from typing import Dict, Iterable, List, Optional

import httpx

from gamelib.config import SearchConfig
from gamelib.details import DetailCache, DetailFetcher
from gamelib.http import DomainLimiter, make_client
from gamelib.models import GameRecord, SearchResult
from gamelib.strategies.base import SearchStrategy
from gamelib.strategies.html import HtmlSearchStrategy
from gamelib.strategies.storesearch import StoreSearchStrategy

MIN_QUERY_LENGTH = 2

class InvalidQuery(ValueError):
   """The caller's query is missing or too short."""

def validate_query(query: Optional[str]) -> str:
   if query is None or len(query.strip()) < MIN_QUERY_LENGTH:
      raise InvalidQuery(f"Query parameter must be at least {MIN_QUERY_LENGTH} characters")
   return query.strip()

def dedupe(records: Iterable[GameRecord]) -> List[GameRecord]:
   seen: set[str] = set()
   return [r for r in records if not (r.external_id in seen or seen.add(r.external_id))]

class SearchService:
   """
   Public search entry point: structured search first, HTML scrape when that
   comes back empty.

   Usage:
      async with SearchService(config=cfg) as svc:
         result = await svc.search_games("portal")

   Upstream trouble never escapes; it shows up as fewer (or no) games.
   Only :class:`InvalidQuery` and genuine bugs propagate.
   """

   def __init__(self, *, config: SearchConfig | None = None,
                http: httpx.AsyncClient | None = None,
                cache: DetailCache | None = None,
                primary: SearchStrategy | None = None,
                fallback: SearchStrategy | None = None,
                logger: logging.Logger | None = None):
      self.config = config or SearchConfig()
      self.cache = cache if cache is not None else DetailCache(self.config.cache_max_entries)
      self.log = logger or logging.getLogger("gamelib.search")
      self._http = http
      self._primary = primary
      self._fallback = fallback
      self._fetcher: DetailFetcher | None = None
      self._stack: AsyncExitStack | None = None

   async def __aenter__(self) -> "SearchService":
      self._stack = AsyncExitStack()
      if self._http is None:
         self._http = await self._stack.enter_async_context(
            make_client(timeout=self.config.timeout, user_agent=self.config.user_agent)
         )
      limiter = DomainLimiter(self.config.rps)
      self._fetcher = DetailFetcher(self._http, config=self.config, limiter=limiter, cache=self.cache)
      shared = dict(config=self.config, http=self._http, limiter=limiter, fetcher=self._fetcher)
      if self._primary is None:
         self._primary = StoreSearchStrategy(**shared)
      if self._fallback is None and self.config.fallback_enabled:
         self._fallback = HtmlSearchStrategy(**shared)
      for strategy in (self._primary, self._fallback):
         if strategy is not None:
            await self._stack.enter_async_context(strategy)
      return self

   async def __aexit__(self, exc_type, exc, tb):
      if self._stack is not None:
         await self._stack.__aexit__(exc_type, exc, tb)
         self._stack = None

   @property
   def primary(self) -> SearchStrategy | None:
      return self._primary

   @property
   def fallback(self) -> SearchStrategy | None:
      return self._fallback

   def metrics(self) -> Dict[str, Dict[str, int]]:
      """Running counters per strategy plus the shared detail fetcher."""
      out: Dict[str, Dict[str, int]] = {}
      for strategy in (self._primary, self._fallback):
         if strategy is not None:
            out[strategy.name] = dict(strategy.metrics)
      if self._fetcher is not None:
         out["details"] = dict(self._fetcher.metrics)
      return out

   def _log_metrics(self) -> None:
      for name, counters in self.metrics().items():
         self.log.debug("[%s] %s", name, " ".join(f"{k}={v}" for k, v in counters.items()))

   async def search_games(self, query: Optional[str], *, limit: int | None = None) -> SearchResult:
      term = validate_query(query)
      assert self._primary is not None, "SearchService must be used inside 'async with'"
      limit = max(1, limit if limit is not None else self.config.max_results)

      games = await self._primary.search(term, limit=limit)
      if not games and self._fallback is not None:
         self.log.info("no results from %s for %r; trying %s",
                       self._primary.name, term, self._fallback.name)
         games = await self._fallback.search(term, limit=limit)

      games = dedupe(games)[:limit]
      self.log.info("search %r -> %d game(s)", term, len(games))
      self._log_metrics()
      return SearchResult(games=games, total=len(games), query=query)
