"""Storage interface for durable generated items."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Literal, Protocol

import msgspec

ItemKind = Literal["video", "scenario", "learning_item"]


class ItemRecord(msgspec.Struct):
  """Durable generated item as exchanged with the repository."""

  id: str
  kind: ItemKind
  content: str = ""
  lang_code: str | None = None
  metadata: dict[str, Any] = msgspec.field(default_factory=dict)
  media: dict[str, Any] = msgspec.field(default_factory=dict)
  is_active: bool = True
  created_at: str | None = None
  updated_at: str | None = None


class ResultsRepository(Protocol):
  """Repository contract for the durable store that outlives batch tracking."""

  async def create_record(self, record: ItemRecord) -> None:
    """Persist a new generated item."""

  async def get_record(self, record_id: str) -> ItemRecord | None:
    """Fetch an item by identifier."""

  async def merge_media(self, record_id: str, media: Mapping[str, Any]) -> None:
    """Merge generated media into an item, raising when the write fails."""

  async def stamp_batch_id(self, record_ids: Sequence[str], batch_id: str) -> None:
    """Record which batch produced the media for each item."""

  async def find_by_batch_id(self, batch_id: str) -> list[ItemRecord]:
    """Return active items whose metadata carries ``batch_id``."""
