from __future__ import annotations
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

GameStatus = Literal["Pending", "Playing", "Completed", "Wishlist"]

class _Model(BaseModel):
   # camelCase on the wire, snake_case in Python
   model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class Platforms(_Model):
   windows: bool = False
   mac: bool = False
   linux: bool = False

class PriceInfo(_Model):
   currency: str
   initial: float
   final: float
   discount_percent: int = Field(default=0, ge=0, le=100)
   formatted_final: str
   formatted_initial: str

class GameRecord(_Model):
   """Canonical game record produced by the search core."""
   external_id: str
   title: str
   image_url: str = ""
   genres: List[str] = Field(default_factory=list)
   release_year: str = "Unknown"
   critic_score: Optional[int] = None   # metacritic, 0-100
   developers: List[str] = Field(default_factory=list)
   publishers: List[str] = Field(default_factory=list)
   price: Optional[PriceInfo] = None
   categories: List[str] = Field(default_factory=list)
   platforms: Platforms = Field(default_factory=Platforms)
   description: str = ""
   is_free: bool = True

class SearchResult(_Model):
   games: List[GameRecord] = Field(default_factory=list)
   total: int = 0
   query: str = ""

# -------- library ----------------------------------------------------------

class LibraryGame(GameRecord):
   id: str
   status: GameStatus = "Pending"
   user_rating: int = Field(default=0, ge=0, le=5)
   list_name: str = Field(default="None", alias="list")
   is_favorite: bool = False
   created_at: datetime

class GameUpdate(_Model):
   status: Optional[GameStatus] = None
   user_rating: Optional[int] = Field(default=None, ge=0, le=5)
   list_name: Optional[str] = Field(default=None, alias="list")
   is_favorite: Optional[bool] = None

class CustomListIn(_Model):
   name: str = Field(min_length=1, max_length=128)
   color: str = "#6366f1"

class CustomList(CustomListIn):
   id: str
   created_at: datetime
