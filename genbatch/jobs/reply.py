"""One-shot reply hand-off between a background producer and a waiting consumer."""

from __future__ import annotations

import logging
from typing import Any

import msgspec

from genbatch.core.exceptions import ReplyChannelError, ReplyTimeoutError
from genbatch.storage.ephemeral import EphemeralStore, EphemeralStoreError

logger = logging.getLogger(__name__)

REPLY_KEY_PREFIX = "speaking:reply:"


def reply_key(request_id: str) -> str:
  return f"{REPLY_KEY_PREFIX}{request_id}"


class ReplyChannel:
  """Delivers at most one payload per request id through a short-lived list.

  The producer pushes and then sets a TTL so unclaimed replies expire. The consumer
  blocks on a bounded pop and removes the payload it receives, so a second consume for
  the same request id waits out its timeout.
  """

  def __init__(self, store: EphemeralStore | None, ttl_seconds: int) -> None:
    self._store = store
    self._ttl_seconds = ttl_seconds

  async def produce(self, request_id: str, payload: Any) -> None:
    if self._store is None:
      logger.warning("Ephemeral store not configured; reply dropped request_id=%s", request_id)
      return
    key = reply_key(request_id)
    data = msgspec.json.encode(payload).decode("utf-8")
    try:
      await self._store.rpush(key, data)
      await self._store.expire(key, self._ttl_seconds)
    except EphemeralStoreError as exc:
      logger.error("Failed to publish reply request_id=%s error=%s", request_id, exc)
      return
    logger.info("Reply published request_id=%s", request_id)

  async def consume(self, request_id: str, timeout: float) -> Any:
    """Wait up to ``timeout`` seconds for the reply and return its decoded payload."""
    if self._store is None:
      raise ReplyChannelError("ephemeral store not configured")
    try:
      raw = await self._store.blpop(reply_key(request_id), timeout)
    except EphemeralStoreError as exc:
      raise ReplyChannelError(str(exc)) from exc

    if raw is None:
      raise ReplyTimeoutError(request_id, timeout)

    try:
      return msgspec.json.decode(raw)
    except msgspec.DecodeError as exc:
      raise ReplyChannelError(f"undecodable reply for {request_id}") from exc
