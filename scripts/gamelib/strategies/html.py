from __future__ import annotations
import re
from typing import List

from gamelib.http import BROWSER_UA, UPSTREAM_ERRORS
from gamelib.models import GameRecord
from gamelib.strategies.base import SearchHit, SearchStrategy

# Search rows carry the app id in this attribute; bundles use a comma list
# and are skipped on purpose.
_APPID_RE = re.compile(r'data-ds-appid="(\d+)"')

def extract_appids(html: str, limit: int) -> List[str]:
   seen = set()
   ids = [a for a in _APPID_RE.findall(html or "") if not (a in seen or seen.add(a))]
   return ids[:max(0, limit)]

class HtmlSearchStrategy(SearchStrategy):
   """
   Degraded-mode fallback: scrape the store's HTML search results page.

   Slower and more fragile than the JSON endpoint (depends on undocumented
   markup), so callers should not rely on its field completeness.
   """
   name = "htmlsearch"

   async def search(self, query: str, *, limit: int | None = None) -> List[GameRecord]:
      try:
         html = await self.get_text(
            self.config.html_search_url,
            params={
               "term": query,
               "category1": "998",   # games only
               "supportedlang": self.config.language,
               "ndl": "1",
            },
            headers={"User-Agent": BROWSER_UA, "Accept": "text/html"},
         )
      except UPSTREAM_ERRORS as exc:
         self.log.warning("%s: search page failed for %r: %s", self.name, query, exc)
         return []

      cap = self.config.fallback_max_candidates
      appids = extract_appids(html, min(cap, limit) if limit else cap)
      if not appids:
         self.log.info("%s: no app ids found for %r", self.name, query)
         return []
      self.log.debug("%s: %d candidate(s) for %r", self.name, len(appids), query)
      return await self.resolve(SearchHit(appid=a) for a in appids)
