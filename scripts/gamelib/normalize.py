"""Map raw Steam ``appdetails`` payloads onto :class:`GameRecord`."""
from __future__ import annotations
import logging
import math
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from gamelib import currency
from gamelib.models import GameRecord, Platforms, PriceInfo

log = logging.getLogger("gamelib.normalize")

PLACEHOLDER_TITLE = "Unknown Title"
UNKNOWN_YEAR = "Unknown"

_MARK_RX = re.compile(r"[™®©]", re.U)
_YEAR_RX = re.compile(r"\b(1[89]\d{2}|2\d{3})\b")

# Steam renders release dates per locale and per era of the store.
_DATE_FORMATS = (
   "%d %b, %Y",
   "%b %d, %Y",
   "%d %B, %Y",
   "%B %d, %Y",
   "%d %b %Y",
   "%d %B %Y",
   "%Y-%m-%d",
   "%d.%m.%Y",
   "%b %Y",
   "%B %Y",
   "%Y",
)

def clean_title(name: str) -> str:
   t = _MARK_RX.sub("", name or "").strip()
   t = re.sub(r"\s{2,}", " ", t)
   return t

def parse_release_year(value: Any) -> str:
   """Best-effort four-digit year from a release date string (or ``release_date`` block)."""
   if isinstance(value, dict):
      value = value.get("date")
   if not isinstance(value, str):
      return UNKNOWN_YEAR
   text = value.strip()
   if not text:
      return UNKNOWN_YEAR
   for fmt in _DATE_FORMATS:
      try:
         return f"{datetime.strptime(text, fmt).year:04d}"
      except ValueError:
         continue
   # e.g. "Q3 2025", "Coming 2026"
   m = _YEAR_RX.search(text)
   return m.group(1) if m else UNKNOWN_YEAR

def _descriptions(items: Any) -> List[str]:
   out: List[str] = []
   for it in items or []:
      if isinstance(it, dict):
         desc = it.get("description")
      else:
         desc = it
      if isinstance(desc, str) and desc.strip():
         out.append(desc.strip())
   return out

def _strings(items: Any) -> List[str]:
   if isinstance(items, str):
      items = [items]
   return [s.strip() for s in items or [] if isinstance(s, str) and s.strip()]

def _minor_units(value: Any) -> Optional[float]:
   if isinstance(value, bool):
      return None
   try:
      amount = float(value)
   except (TypeError, ValueError, OverflowError):
      return None
   if not math.isfinite(amount) or amount < 0:
      return None
   return amount / 100.0

def _discount(value: Any) -> int:
   if isinstance(value, bool):
      return 0
   try:
      pct = float(value or 0)
   except (TypeError, ValueError, OverflowError):
      return 0
   if not math.isfinite(pct):
      return 0
   return max(0, min(100, int(pct)))

def build_price(block: Any) -> Optional[PriceInfo]:
   """PriceInfo for a ``price_overview`` block; None for free or unusable blocks."""
   if not isinstance(block, dict):
      return None
   final = _minor_units(block.get("final"))
   if final is None or final == 0:
      return None
   initial = _minor_units(block.get("initial"))
   if initial is None:
      initial = final
   code = block.get("currency")
   final_eur = currency.normalize(final, code)
   initial_eur = currency.normalize(initial, code)
   return PriceInfo(
      currency=currency.DISPLAY_CURRENCY,
      initial=initial_eur,
      final=final_eur,
      discount_percent=_discount(block.get("discount_percent")),
      formatted_final=currency.format_price(final_eur),
      formatted_initial=currency.format_price(initial_eur),
   )

def _critic_score(app: Dict[str, Any]) -> Optional[int]:
   meta = app.get("metacritic")
   if not isinstance(meta, dict):
      return None
   score = meta.get("score")
   if isinstance(score, bool) or not isinstance(score, (int, float)):
      return None
   if isinstance(score, float):
      if not math.isfinite(score):
         return None
      score = round(score)
   return score if 0 <= score <= 100 else None

def normalize_app(raw: Any, external_id: Any) -> Optional[GameRecord]:
   """
   Normalize one ``appdetails`` entry.

   ``raw`` may be the ``{"success": ..., "data": {...}}`` envelope or the bare
   ``data`` object. Returns None for unsuccessful entries and for anything whose
   upstream ``type`` is not ``game`` (DLC, music, demos, software, ...).
   """
   if not isinstance(raw, dict):
      return None
   app = raw
   if "success" in raw:
      if not raw.get("success"):
         return None
      app = raw.get("data")
      if not isinstance(app, dict):
         return None

   app_type = str(app.get("type") or "").strip().lower()
   if app_type != "game":
      log.debug("drop %s: type=%r", external_id, app.get("type"))
      return None

   title = clean_title(app.get("name") if isinstance(app.get("name"), str) else "")
   plat = app.get("platforms")
   platforms = Platforms(
      windows=bool(plat.get("windows")),
      mac=bool(plat.get("mac")),
      linux=bool(plat.get("linux")),
   ) if isinstance(plat, dict) else Platforms()
   price = build_price(app.get("price_overview"))
   image = app.get("header_image")
   description = app.get("short_description")

   return GameRecord(
      external_id=str(external_id),
      title=title or PLACEHOLDER_TITLE,
      image_url=image if isinstance(image, str) else "",
      genres=_descriptions(app.get("genres")),
      release_year=parse_release_year(app.get("release_date")),
      critic_score=_critic_score(app),
      developers=_strings(app.get("developers")),
      publishers=_strings(app.get("publishers")),
      price=price,
      categories=_descriptions(app.get("categories")),
      platforms=platforms,
      description=description.strip() if isinstance(description, str) else "",
      is_free=price is None,
   )
