from __future__ import annotations
import argparse
import logging

import uvicorn
from rich.logging import RichHandler

from gamelib.config import SearchConfig
from gamelib.server import create_app

log = logging.getLogger("gamelib.serve")

def main():
   ap = argparse.ArgumentParser(description="Run the game library API (search + collection).")
   ap.add_argument("--host", type=str, default="127.0.0.1", help="Interface to bind")
   ap.add_argument("--port", type=int, default=8000, help="Port to listen on")
   ap.add_argument("--db", type=str, default=None, help="Path or SQLAlchemy URL for the library database")
   ap.add_argument("--log-level", type=str, default="INFO", help="Logging level (e.g., INFO, DEBUG)")
   args = ap.parse_args()

   logging.basicConfig(
      level=getattr(logging, args.log_level.upper(), logging.INFO),
      format="%(message)s",
      datefmt="[%X]",
      handlers=[RichHandler(rich_tracebacks=True, markup=True)],
   )

   cfg = SearchConfig.from_env(library_db=args.db)
   log.info("Library database: %s", cfg.library_db)
   uvicorn.run(create_app(cfg), host=args.host, port=args.port, log_config=None)

if __name__ == "__main__":
   main()
