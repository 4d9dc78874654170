"""FastAPI entry point for the game library: store search plus the personal collection."""

from __future__ import annotations

import contextlib
import logging
from typing import Any, Optional

import anyio
import httpx
from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from gamelib.config import SearchConfig
from gamelib.library import DuplicateGame, DuplicateList, GameNotFound, LibraryStore
from gamelib.models import CustomListIn, GameRecord, GameUpdate
from gamelib.search import InvalidQuery, SearchService

logger = logging.getLogger("gamelib.server")


def _error(status: int, message: str, details: Any = None) -> JSONResponse:
   body: dict[str, Any] = {"error": message}
   if details is not None:
      body["details"] = details
   return JSONResponse(body, status_code=status)


def create_app(
   config: SearchConfig | None = None,
   *,
   search: SearchService | None = None,
   store: LibraryStore | None = None,
   http: httpx.AsyncClient | None = None,
) -> FastAPI:
   """
   Build the API. ``search``/``store`` may be injected (tests, embedding); ``http``
   is handed to the search service the lifespan creates when none is injected.
   """

   cfg = config or SearchConfig.from_env()

   @contextlib.asynccontextmanager
   async def lifespan(app: FastAPI):
      logger.info("Starting game library API...")
      async with contextlib.AsyncExitStack() as stack:
         if app.state.search is None:
            app.state.search = await stack.enter_async_context(SearchService(config=cfg, http=http))
         if app.state.store is None:
            app.state.store = LibraryStore.from_url(cfg.library_db)
         yield
      logger.info("Shutting down game library API...")

   app = FastAPI(title="Game Library", lifespan=lifespan)
   app.state.search = search
   app.state.store = store

   @app.exception_handler(RequestValidationError)
   async def validation_error(request: Request, exc: RequestValidationError):
      return _error(400, "Invalid request", jsonable_errors(exc))

   # ------------------------------------------------------------------ search

   @app.get("/search")
   async def search_games(
      request: Request,
      q: Optional[str] = None,
      limit: Optional[int] = Query(default=None, ge=1, le=50),
   ):
      service: SearchService = request.app.state.search
      try:
         result = await service.search_games(q, limit=limit)
      except InvalidQuery as exc:
         return _error(400, str(exc))
      except Exception as exc:
         logger.error("Search failed for %r", q, exc_info=True)
         return _error(500, "Failed to fetch games from Steam API", str(exc))
      return result.model_dump(mode="json", by_alias=True)

   # ----------------------------------------------------------------- library

   @app.get("/games")
   async def list_games(request: Request):
      games = await anyio.to_thread.run_sync(request.app.state.store.list_games)
      return [g.model_dump(mode="json", by_alias=True) for g in games]

   @app.post("/games")
   async def add_game(request: Request, record: GameRecord):
      try:
         game = await anyio.to_thread.run_sync(request.app.state.store.add_game, record)
      except DuplicateGame:
         return _error(409, "Game already in library")
      logger.info("Imported %s (%s) into the library", record.title, record.external_id)
      return game.model_dump(mode="json", by_alias=True)

   @app.put("/games/{game_id}")
   async def update_game(request: Request, game_id: str, changes: GameUpdate):
      try:
         game = await anyio.to_thread.run_sync(request.app.state.store.update_game, game_id, changes)
      except GameNotFound:
         return _error(404, "Game not found")
      return game.model_dump(mode="json", by_alias=True)

   @app.delete("/games/{game_id}")
   async def delete_game(request: Request, game_id: str):
      try:
         await anyio.to_thread.run_sync(request.app.state.store.delete_game, game_id)
      except GameNotFound:
         return _error(404, "Game not found")
      return {"success": True}

   @app.get("/lists")
   async def list_lists(request: Request):
      lists = await anyio.to_thread.run_sync(request.app.state.store.list_lists)
      return [item.model_dump(mode="json", by_alias=True) for item in lists]

   @app.post("/lists")
   async def create_list(request: Request, data: CustomListIn):
      try:
         created = await anyio.to_thread.run_sync(request.app.state.store.create_list, data)
      except DuplicateList:
         return _error(409, "List already exists")
      return created.model_dump(mode="json", by_alias=True)

   @app.exception_handler(Exception)
   async def internal_fault(request: Request, exc: Exception):
      logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
      return _error(500, "Internal server error", str(exc))

   return app


def jsonable_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
   out = []
   for err in exc.errors():
      out.append({
         "loc": [str(part) for part in err.get("loc", ())],
         "msg": str(err.get("msg", "")),
      })
   return out
