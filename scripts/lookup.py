from __future__ import annotations
import argparse
import asyncio
import json
import logging

from gamelib.config import SearchConfig
from gamelib.search import InvalidQuery, SearchService

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

log = logging.getLogger("gamelib.lookup")

def render(console: Console, result) -> None:
   table = Table(title=f"{result.total} result(s) for {result.query!r}")
   table.add_column("ID", justify="right", style="cyan")
   table.add_column("Title")
   table.add_column("Year")
   table.add_column("Genres")
   table.add_column("Price", justify="right")
   for g in result.games:
      price = "Free" if g.is_free or g.price is None else g.price.formatted_final
      if g.price is not None and g.price.discount_percent:
         price = f"{price} (-{g.price.discount_percent}%)"
      table.add_row(g.external_id, g.title, g.release_year, ", ".join(g.genres[:3]), price)
   console.print(table)

async def main():
   ap = argparse.ArgumentParser(description="Search the Steam store and print normalized game records.")
   ap.add_argument("query", type=str, help="Search term (at least 2 characters)")
   ap.add_argument("--limit", type=int, default=None, help="Maximum number of games to return")
   ap.add_argument("--country", type=str, default=None, help="Store country code used for pricing (e.g., US)")
   ap.add_argument("--batch-size", type=int, default=None, help="App ids per appdetails request")
   ap.add_argument("--batch-delay", type=float, default=None, help="Seconds to wait between appdetails batches")
   ap.add_argument("--no-fallback", action="store_true", help="Do not scrape the HTML search page when the API finds nothing")
   ap.add_argument("--json", action="store_true", help="Print the JSON response instead of a table")
   ap.add_argument("--log-level", type=str, default="WARNING", help="Logging level (e.g., INFO, DEBUG)")
   args = ap.parse_args()

   logging.basicConfig(
      level=getattr(logging, args.log_level.upper(), logging.WARNING),
      format="%(message)s",
      datefmt="[%X]",
      handlers=[RichHandler(rich_tracebacks=True, markup=True)],
   )

   cfg = SearchConfig.from_env(
      country=args.country,
      detail_batch_size=args.batch_size,
      detail_batch_delay=args.batch_delay,
      fallback_enabled=False if args.no_fallback else None,
   )
   console = Console()
   async with SearchService(config=cfg) as svc:
      try:
         result = await svc.search_games(args.query, limit=args.limit)
      except InvalidQuery as exc:
         log.error("%s", exc)
         raise SystemExit(2)
   if args.json:
      console.print_json(json.dumps(result.model_dump(mode="json", by_alias=True)))
   else:
      render(console, result)

if __name__ == "__main__":
   asyncio.run(main())
