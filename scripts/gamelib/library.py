# gamelib/library.py
from __future__ import annotations

import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, List

from sqlalchemy import (
   JSON,
   Boolean,
   Column,
   DateTime,
   Integer,
   String,
   Text,
   create_engine,
   select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from gamelib.models import CustomList, CustomListIn, GameRecord, GameUpdate, LibraryGame

Base = declarative_base()
_ENGINES: dict[str, Engine] = {}


class DuplicateGame(Exception):
   """The external id is already in the library."""


class DuplicateList(Exception):
   """A custom list with that name already exists."""


class GameNotFound(LookupError):
   pass


class LibraryGameRow(Base):
   __tablename__ = "library_games"

   id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
   external_id = Column(String(64), nullable=False, unique=True)
   title = Column(String(512), nullable=False)
   image_url = Column(Text, nullable=False, default="")
   genres = Column(JSON, nullable=False, default=list)
   release_year = Column(String(16), nullable=False, default="Unknown")
   critic_score = Column(Integer, nullable=True)
   developers = Column(JSON, nullable=False, default=list)
   publishers = Column(JSON, nullable=False, default=list)
   price = Column(JSON, nullable=True)
   categories = Column(JSON, nullable=False, default=list)
   platforms = Column(JSON, nullable=False, default=dict)
   description = Column(Text, nullable=False, default="")
   is_free = Column(Boolean, nullable=False, default=True)

   status = Column(String(16), nullable=False, default="Pending")
   user_rating = Column(Integer, nullable=False, default=0)
   list_name = Column(String(128), nullable=False, default="None")
   is_favorite = Column(Boolean, nullable=False, default=False)
   created_at = Column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)


class CustomListRow(Base):
   __tablename__ = "custom_lists"

   id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
   name = Column(String(128), nullable=False, unique=True)
   color = Column(String(32), nullable=False)
   created_at = Column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)


def _resolve_url(url: str) -> str:
   return url if "://" in url else f"sqlite:///{url}"


def _get_engine(url: str) -> Engine:
   eng = _ENGINES.get(url)
   if eng is None:
      engine_kwargs: Dict[str, Any] = {"future": True}
      parsed = make_url(url)
      if parsed.drivername.startswith("sqlite"):
         engine_kwargs["connect_args"] = {"timeout": 30, "check_same_thread": False}
      eng = create_engine(url, **engine_kwargs)
      Base.metadata.create_all(eng)
      _ENGINES[url] = eng
   return eng


def make_sessionmaker(url: str = "sqlite:///library.db") -> sessionmaker:
   """Session factory for the library database (tables are created on first use)."""

   engine = _get_engine(_resolve_url(url))
   return sessionmaker(bind=engine, expire_on_commit=False)


def _game_from_row(row: LibraryGameRow) -> LibraryGame:
   return LibraryGame(
      id=row.id,
      external_id=row.external_id,
      title=row.title,
      image_url=row.image_url or "",
      genres=row.genres or [],
      release_year=row.release_year or "Unknown",
      critic_score=row.critic_score,
      developers=row.developers or [],
      publishers=row.publishers or [],
      price=row.price,
      categories=row.categories or [],
      platforms=row.platforms or {},
      description=row.description or "",
      is_free=row.is_free,
      status=row.status,
      user_rating=row.user_rating,
      list_name=row.list_name,
      is_favorite=row.is_favorite,
      created_at=row.created_at,
   )


def _list_from_row(row: CustomListRow) -> CustomList:
   return CustomList(id=row.id, name=row.name, color=row.color, created_at=row.created_at)


class LibraryStore:
   """Keyed storage for imported games and the user's custom lists."""

   def __init__(self, session_factory: sessionmaker):
      self._session_factory = session_factory

   @classmethod
   def from_url(cls, url: str) -> "LibraryStore":
      return cls(make_sessionmaker(url))

   @contextmanager
   def session_scope(self) -> Iterator[Session]:
      session = self._session_factory()
      try:
         yield session
         session.commit()
      except Exception:
         session.rollback()
         raise
      finally:
         session.close()

   # -------- games ----------------------------------------------------------

   def list_games(self) -> List[LibraryGame]:
      with self.session_scope() as s:
         rows = s.execute(
            select(LibraryGameRow).order_by(LibraryGameRow.created_at.desc())
         ).scalars().all()
         return [_game_from_row(r) for r in rows]

   def add_game(self, record: GameRecord) -> LibraryGame:
      """Import *record* with default tracking state (Pending, unrated, no list)."""

      payload = record.model_dump(mode="json")
      try:
         with self.session_scope() as s:
            existing = s.execute(
               select(LibraryGameRow.id).where(LibraryGameRow.external_id == record.external_id)
            ).first()
            if existing:
               raise DuplicateGame(record.external_id)
            row = LibraryGameRow(**payload, created_at=datetime.utcnow())
            s.add(row)
            s.flush()
            return _game_from_row(row)
      except IntegrityError as exc:
         # lost a race with a concurrent import of the same title
         raise DuplicateGame(record.external_id) from exc

   def update_game(self, game_id: str, changes: GameUpdate) -> LibraryGame:
      values = {k: v for k, v in changes.model_dump(exclude_unset=True).items() if v is not None}
      with self.session_scope() as s:
         row = s.get(LibraryGameRow, game_id)
         if row is None:
            raise GameNotFound(game_id)
         for key, value in values.items():
            setattr(row, key, value)
         s.flush()
         return _game_from_row(row)

   def delete_game(self, game_id: str) -> None:
      with self.session_scope() as s:
         row = s.get(LibraryGameRow, game_id)
         if row is None:
            raise GameNotFound(game_id)
         s.delete(row)

   # -------- lists ----------------------------------------------------------

   def list_lists(self) -> List[CustomList]:
      with self.session_scope() as s:
         rows = s.execute(
            select(CustomListRow).order_by(CustomListRow.created_at.desc())
         ).scalars().all()
         return [_list_from_row(r) for r in rows]

   def create_list(self, data: CustomListIn) -> CustomList:
      try:
         with self.session_scope() as s:
            clash = s.execute(
               select(CustomListRow.id).where(CustomListRow.name == data.name)
            ).first()
            if clash:
               raise DuplicateList(data.name)
            row = CustomListRow(name=data.name, color=data.color, created_at=datetime.utcnow())
            s.add(row)
            s.flush()
            return _list_from_row(row)
      except IntegrityError as exc:
         raise DuplicateList(data.name) from exc
