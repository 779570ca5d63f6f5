"""Repository for generated items using PostgreSQL."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from sqlalchemy import select

from genbatch.core.database import get_session_factory
from genbatch.schema.generated_items import GeneratedItem
from genbatch.storage.results_repo import ItemRecord

logger = logging.getLogger(__name__)


def _to_record(item: GeneratedItem) -> ItemRecord:
  return ItemRecord(
    id=item.id,
    kind=item.kind,
    content=item.content,
    lang_code=item.lang_code,
    metadata=dict(item.item_metadata or {}),
    media=dict(item.media or {}),
    is_active=item.is_active,
    created_at=item.created_at.isoformat() if item.created_at else None,
    updated_at=item.updated_at.isoformat() if item.updated_at else None,
  )


class PostgresResultsRepository:
  """Persist and retrieve generated items from Postgres using SQLAlchemy."""

  def __init__(self) -> None:
    self._session_factory = get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")

  async def create_record(self, record: ItemRecord) -> None:
    async with self._session_factory() as session:
      item = GeneratedItem(id=record.id, kind=record.kind, content=record.content, lang_code=record.lang_code, item_metadata=dict(record.metadata), media=dict(record.media), is_active=record.is_active)
      session.add(item)
      await session.commit()

  async def get_record(self, record_id: str) -> ItemRecord | None:
    async with self._session_factory() as session:
      item = await session.get(GeneratedItem, record_id)
      if item is None:
        return None
      return _to_record(item)

  async def merge_media(self, record_id: str, media: Mapping[str, Any]) -> None:
    """Shallow-merge ``media`` into the stored media map."""
    async with self._session_factory() as session:
      item = await session.get(GeneratedItem, record_id)
      if item is None:
        raise LookupError(f"generated item {record_id} not found")
      # Assign a new dict so SQLAlchemy sees the JSONB change.
      item.media = {**(item.media or {}), **media}
      await session.commit()

  async def stamp_batch_id(self, record_ids: Sequence[str], batch_id: str) -> None:
    if not record_ids:
      return
    async with self._session_factory() as session:
      result = await session.execute(select(GeneratedItem).where(GeneratedItem.id.in_(list(record_ids))))
      items = result.scalars().all()
      for item in items:
        item.item_metadata = {**(item.item_metadata or {}), "batch_id": batch_id}
      await session.commit()

    if len(items) != len(record_ids):
      logger.warning("Batch stamp skipped missing items batch_id=%s expected=%s found=%s", batch_id, len(record_ids), len(items))

  async def find_by_batch_id(self, batch_id: str) -> list[ItemRecord]:
    async with self._session_factory() as session:
      stmt = select(GeneratedItem).where(GeneratedItem.item_metadata["batch_id"].astext == batch_id, GeneratedItem.is_active.is_(True)).order_by(GeneratedItem.created_at.asc())
      result = await session.execute(stmt)
      return [_to_record(item) for item in result.scalars().all()]
