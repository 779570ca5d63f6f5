"""Ephemeral key-value store used for batch state and reply hand-off."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Protocol

from redis import asyncio as aioredis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class EphemeralStoreError(Exception):
  """The ephemeral store could not be reached or rejected the command."""


class EphemeralStore(Protocol):
  """Minimal command surface the orchestration core needs from the store."""

  async def hset(self, key: str, mapping: Mapping[str, str]) -> None:
    """Write one or more hash fields."""

  async def hgetall(self, key: str) -> dict[str, str]:
    """Read every field of a hash; empty when the key is absent."""

  async def expire(self, key: str, seconds: int) -> None:
    """Set a TTL on a key."""

  async def rpush(self, key: str, value: str) -> None:
    """Append a value to a list."""

  async def blpop(self, key: str, timeout: float) -> str | None:
    """Pop the head of a list, waiting up to ``timeout`` seconds; ``None`` on timeout."""


@contextmanager
def _translate_errors(command: str, key: str) -> Iterator[None]:
  try:
    yield
  except (RedisError, OSError) as exc:
    raise EphemeralStoreError(f"{command} {key} failed: {exc}") from exc


class RedisEphemeralStore:
  """EphemeralStore backed by redis-py's asyncio client."""

  def __init__(self, client: aioredis.Redis) -> None:
    self._client = client

  @classmethod
  def from_url(cls, url: str) -> RedisEphemeralStore:
    client = aioredis.from_url(url, decode_responses=True, health_check_interval=30)
    return cls(client)

  async def ping(self) -> bool:
    with _translate_errors("PING", "-"):
      return bool(await self._client.ping())

  async def hset(self, key: str, mapping: Mapping[str, str]) -> None:
    with _translate_errors("HSET", key):
      await self._client.hset(key, mapping=dict(mapping))

  async def hgetall(self, key: str) -> dict[str, str]:
    with _translate_errors("HGETALL", key):
      return dict(await self._client.hgetall(key))

  async def expire(self, key: str, seconds: int) -> None:
    with _translate_errors("EXPIRE", key):
      await self._client.expire(key, seconds)

  async def rpush(self, key: str, value: str) -> None:
    with _translate_errors("RPUSH", key):
      await self._client.rpush(key, value)

  async def blpop(self, key: str, timeout: float) -> str | None:
    # A zero timeout means "block forever" to Redis; callers always bound the wait.
    if timeout <= 0:
      raise ValueError("blpop timeout must be positive")
    with _translate_errors("BLPOP", key):
      result = await self._client.blpop([key], timeout=timeout)
    if result is None:
      return None
    _, value = result
    return value

  async def close(self) -> None:
    await self._client.aclose()


def build_ephemeral_store(redis_url: str | None) -> RedisEphemeralStore | None:
  """Return a store for the configured URL, or ``None`` when Redis is not configured."""
  if not redis_url:
    logger.warning("GENBATCH_REDIS_URL not set; batch tracking and replies are disabled.")
    return None
  return RedisEphemeralStore.from_url(redis_url)
