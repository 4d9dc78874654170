from __future__ import annotations
import asyncio
import logging
import threading
from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Optional

import httpx

from gamelib.config import SearchConfig
from gamelib.http import UPSTREAM_ERRORS, DomainLimiter, fetch

RawDetail = Dict[str, Any]

class DetailCache:
   """
   Process-wide ``appid -> appdetails data`` lookup.

   Entries never change once stored, so concurrent writers for the same id
   simply overwrite each other. When ``max_entries`` is set the least recently
   used ids are evicted.
   """

   def __init__(self, max_entries: Optional[int] = None):
      self._max = max_entries if max_entries and max_entries > 0 else None
      self._data: "OrderedDict[str, RawDetail]" = OrderedDict()
      self._lock = threading.Lock()

   def get(self, appid: str) -> Optional[RawDetail]:
      with self._lock:
         data = self._data.get(appid)
         if data is not None:
            self._data.move_to_end(appid)
         return data

   def put(self, appid: str, data: RawDetail) -> None:
      with self._lock:
         self._data[appid] = data
         self._data.move_to_end(appid)
         if self._max is not None:
            while len(self._data) > self._max:
               self._data.popitem(last=False)

   def __contains__(self, appid: object) -> bool:
      with self._lock:
         return appid in self._data

   def __len__(self) -> int:
      with self._lock:
         return len(self._data)

def unique_ids(ids: Iterable[Any]) -> List[str]:
   seen: set[str] = set()
   out: List[str] = []
   for raw in ids:
      appid = str(raw).strip()
      if not appid or appid in seen:
         continue
      seen.add(appid)
      out.append(appid)
   return out

def chunked(items: List[str], size: int) -> List[List[str]]:
   size = max(1, size)
   return [items[i:i + size] for i in range(0, len(items), size)]

class DetailFetcher:
   """
   Resolve appids through ``appdetails`` in sequential, rate-limited batches.

   A batch that fails is logged and skipped; its ids are simply missing from
   the result. Only entries flagged ``success`` upstream are returned or cached.
   """

   def __init__(self, http: httpx.AsyncClient, *, config: SearchConfig | None = None,
                limiter: DomainLimiter | None = None,
                cache: DetailCache | None = None,
                logger: logging.Logger | None = None):
      self.config = config or SearchConfig()
      self._http = http
      self._limiter = limiter or DomainLimiter(self.config.rps)
      self.cache = cache if cache is not None else DetailCache(self.config.cache_max_entries)
      self.log = logger or logging.getLogger("gamelib.details")
      self.metrics: Dict[str, int] = {"batches": 0, "failed_batches": 0, "cache_hits": 0}

   async def fetch_details(self, ids: Iterable[Any]) -> Dict[str, RawDetail]:
      wanted = unique_ids(ids)
      out: Dict[str, RawDetail] = {}
      missing: List[str] = []
      for appid in wanted:
         hit = self.cache.get(appid)
         if hit is not None:
            out[appid] = hit
            self.metrics["cache_hits"] += 1
         else:
            missing.append(appid)

      for n, batch in enumerate(chunked(missing, self.config.detail_batch_size)):
         if n and self.config.detail_batch_delay > 0:
            await asyncio.sleep(self.config.detail_batch_delay)
         out.update(await self._fetch_batch(batch))

      # keep caller order
      return {appid: out[appid] for appid in wanted if appid in out}

   async def _fetch_batch(self, batch: List[str]) -> Dict[str, RawDetail]:
      self.metrics["batches"] += 1
      try:
         r = await fetch(
            self._http, "GET", self.config.details_url,
            params={"appids": ",".join(batch), "l": self.config.language, "cc": self.config.country},
            limiter=self._limiter,
            max_retries=self.config.max_retries,
         )
         js = r.json()
      except UPSTREAM_ERRORS as exc:
         self.metrics["failed_batches"] += 1
         self.log.warning("appdetails batch failed (%d ids: %s): %s",
                          len(batch), ",".join(batch[:5]), _describe(exc))
         return {}

      if not isinstance(js, dict):
         self.metrics["failed_batches"] += 1
         self.log.warning("appdetails batch returned %s instead of an object", type(js).__name__)
         return {}

      resolved: Dict[str, RawDetail] = {}
      requested = set(batch)
      for key, entry in js.items():
         appid = str(key)
         if appid not in requested or not isinstance(entry, dict):
            continue
         data = entry.get("data")
         if not entry.get("success") or not isinstance(data, dict):
            self.log.debug("appdetails %s: unsuccessful", appid)
            continue
         self.cache.put(appid, data)
         resolved[appid] = data
      return resolved

def _describe(exc: BaseException) -> str:
   if isinstance(exc, httpx.HTTPStatusError):
      return f"HTTP {exc.response.status_code}"
   return f"{type(exc).__name__}: {exc}" if str(exc) else type(exc).__name__
