from __future__ import annotations
import logging
import os
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Mapping, Optional

from gamelib.http import BROWSER_UA

log = logging.getLogger("gamelib.config")

API_STORE_SEARCH = "https://store.steampowered.com/api/storesearch/"
API_DETAILS      = "https://store.steampowered.com/api/appdetails"
HTML_SEARCH      = "https://store.steampowered.com/search/results/"

ENV_PREFIX = "GAMELIB_"
_NULLABLE = {"cache_max_entries"}

@dataclass(slots=True)
class SearchConfig:
   country: str = "US"
   language: str = "english"
   rps: float = 2.0                    # requests per second against the store
   timeout: float = 8.0                # seconds, per HTTP call
   max_retries: int = 1
   user_agent: str = BROWSER_UA

   max_results: int = 10               # upper bound on one search response
   page_size: int = 25                 # structured search page size

   detail_batch_size: int = 10         # ids per appdetails call
   detail_batch_delay: float = 1.0     # seconds between sequential batches
   cache_max_entries: Optional[int] = 4096   # None = unbounded

   fallback_enabled: bool = True
   fallback_max_candidates: int = 5

   search_url: str = API_STORE_SEARCH
   details_url: str = API_DETAILS
   html_search_url: str = HTML_SEARCH

   library_db: str = "sqlite:///library.db"

   @classmethod
   def from_env(cls, environ: Mapping[str, str] | None = None, **overrides: Any) -> "SearchConfig":
      """
      Build a config from ``GAMELIB_*`` variables, e.g. ``GAMELIB_DETAIL_BATCH_SIZE=20``.

      Values that fail to parse are ignored with a warning; explicit keyword
      overrides win over the environment.
      """
      env = os.environ if environ is None else environ
      cfg = cls()
      values: Dict[str, Any] = {}
      for f in fields(cls):
         raw = env.get(ENV_PREFIX + f.name.upper())
         if raw is None or raw == "":
            continue
         default = getattr(cfg, f.name)
         try:
            values[f.name] = _coerce(raw, default, nullable=f.name in _NULLABLE)
         except ValueError:
            log.warning("ignoring %s%s=%r (not a valid value)", ENV_PREFIX, f.name.upper(), raw)
      values.update({k: v for k, v in overrides.items() if v is not None})
      return replace(cfg, **values)

def _coerce(raw: str, default: Any, *, nullable: bool = False) -> Any:
   if nullable and raw.strip().lower() in {"none", "unbounded"}:
      return None
   if isinstance(default, bool):
      low = raw.strip().lower()
      if low in {"1", "true", "yes", "on"}:
         return True
      if low in {"0", "false", "no", "off"}:
         return False
      raise ValueError(raw)
   if isinstance(default, int) or default is None:
      return int(raw)
   if isinstance(default, float):
      return float(raw)
   return raw
