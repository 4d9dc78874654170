from __future__ import annotations
from typing import Any, List, Optional

from gamelib.http import UPSTREAM_ERRORS
from gamelib.models import GameRecord
from gamelib.strategies.base import SearchHit, SearchStrategy

class StoreSearchStrategy(SearchStrategy):
   """
   Primary path: Steam's JSON ``storesearch`` endpoint.

   Strategy:
     1) Page through ``storesearch`` collecting appids (plus name/image) until a
        short page, a page with nothing new, or ``max_results`` candidates.
     2) Hydrate the candidates once via the detail fetcher and normalize.

   Notes:
     - The endpoint is loosely specified: items arrive under ``items`` or
       ``apps`` with ids under ``id`` or ``appid``; both are accepted.
     - A failing page ends pagination; earlier pages are still resolved.
   """
   name = "storesearch"

   async def search(self, query: str, *, limit: int | None = None) -> List[GameRecord]:
      limit = max(1, limit or self.config.max_results)
      hits: List[SearchHit] = []
      seen: set[str] = set()

      async def fetch_page(offset: int, size: int) -> List[Any]:
         js = await self.get_json(self.config.search_url, params={
            "term": query,
            "l": self.config.language,
            "cc": self.config.country,
            "start": str(offset),
            "count": str(size),
         })
         return self._extract_items(js)

      try:
         async for items in self.paginate(page_size=max(1, self.config.page_size), fetch_page=fetch_page):
            fresh = 0
            for it in items:
               hit = self._to_hit(it)
               if hit is None or hit.appid in seen:
                  continue
               seen.add(hit.appid)
               hits.append(hit)
               fresh += 1
            if len(hits) >= limit:
               break
            if fresh == 0:
               # endpoint ignored the offset and replayed a page
               break
      except UPSTREAM_ERRORS as exc:
         self.log.warning("%s: page request failed for %r after %d candidates: %s",
                          self.name, query, len(hits), exc)

      if not hits:
         self.log.info("%s: no candidates for %r", self.name, query)
         return []
      return await self.resolve(hits[:limit])

   # ---------------- helpers ----------------

   def _extract_items(self, js: Any) -> List[Any]:
      if not isinstance(js, dict):
         raise ValueError(f"unexpected storesearch payload: {type(js).__name__}")
      items = js.get("items")
      if items is None:
         items = js.get("apps")
      return items if isinstance(items, list) else []

   def _to_hit(self, it: Any) -> Optional[SearchHit]:
      if not isinstance(it, dict):
         return None
      raw = it.get("id", it.get("appid"))
      if isinstance(raw, bool):
         return None
      if isinstance(raw, int):
         appid = str(raw)
      elif isinstance(raw, str) and raw.strip().isdigit():
         appid = raw.strip()
      else:
         return None
      name = it.get("name")
      image = it.get("tiny_image") or it.get("image")
      return SearchHit(
         appid=appid,
         name=name if isinstance(name, str) and name.strip() else None,
         image=image if isinstance(image, str) and image else None,
      )
