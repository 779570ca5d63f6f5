"""In-memory stand-ins for the ephemeral store and the durable repository."""

from __future__ import annotations

import asyncio
import copy
from collections.abc import Mapping, Sequence
from typing import Any

from genbatch.storage.ephemeral import EphemeralStoreError
from genbatch.storage.results_repo import ItemRecord


class InMemoryEphemeralStore:
  """Dict-backed EphemeralStore that yields to the loop on every command."""

  def __init__(self) -> None:
    self.hashes: dict[str, dict[str, str]] = {}
    self.lists: dict[str, list[str]] = {}
    self.ttls: dict[str, int] = {}
    self.failing = False
    self._condition = asyncio.Condition()

  async def _enter(self) -> None:
    # Yield first so concurrent callers interleave the way they would against Redis.
    await asyncio.sleep(0)
    if self.failing:
      raise EphemeralStoreError("store unavailable")

  async def hset(self, key: str, mapping: Mapping[str, str]) -> None:
    await self._enter()
    self.hashes.setdefault(key, {}).update(mapping)

  async def hgetall(self, key: str) -> dict[str, str]:
    await self._enter()
    return dict(self.hashes.get(key, {}))

  async def expire(self, key: str, seconds: int) -> None:
    await self._enter()
    if key in self.hashes or key in self.lists:
      self.ttls[key] = seconds

  async def rpush(self, key: str, value: str) -> None:
    await self._enter()
    async with self._condition:
      self.lists.setdefault(key, []).append(value)
      self._condition.notify_all()

  async def blpop(self, key: str, timeout: float) -> str | None:
    await self._enter()
    async with self._condition:
      try:
        await asyncio.wait_for(self._condition.wait_for(lambda: bool(self.lists.get(key))), timeout)
      except TimeoutError:
        return None
      values = self.lists[key]
      value = values.pop(0)
      if not values:
        del self.lists[key]
      return value

  def evict(self, key: str) -> None:
    """Drop a key as if its TTL had elapsed."""
    self.hashes.pop(key, None)
    self.lists.pop(key, None)
    self.ttls.pop(key, None)


class InMemoryResultsRepo:
  """Minimal in-memory results repo for fan-out and API tests."""

  def __init__(self, records: Sequence[ItemRecord] = ()) -> None:
    self.records: dict[str, ItemRecord] = {record.id: record for record in records}
    self.failing_merges: set[str] = set()
    self.merge_calls: list[tuple[str, dict[str, Any]]] = []

  async def create_record(self, record: ItemRecord) -> None:
    self.records[record.id] = record

  async def get_record(self, record_id: str) -> ItemRecord | None:
    return self.records.get(record_id)

  async def merge_media(self, record_id: str, media: Mapping[str, Any]) -> None:
    self.merge_calls.append((record_id, copy.deepcopy(dict(media))))
    if record_id in self.failing_merges:
      raise ConnectionError("database unavailable")
    record = self.records.get(record_id)
    if record is None:
      raise LookupError(f"generated item {record_id} not found")
    record.media = {**record.media, **media}

  async def stamp_batch_id(self, record_ids: Sequence[str], batch_id: str) -> None:
    for record_id in record_ids:
      record = self.records.get(record_id)
      if record is not None:
        record.metadata = {**record.metadata, "batch_id": batch_id}

  async def find_by_batch_id(self, batch_id: str) -> list[ItemRecord]:
    return [record for record in self.records.values() if record.is_active and record.metadata.get("batch_id") == batch_id]
