"""Detached background tasks for work that outlives the request that started it."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

logger = logging.getLogger(__name__)

# The event loop only keeps weak references to tasks; hold them here until they finish.
_background_tasks: set[asyncio.Task[Any]] = set()


def spawn_background(coro: Coroutine[Any, Any, Any], *, name: str | None = None) -> asyncio.Task[Any]:
  """Schedule ``coro`` without awaiting it and log any exception it ends with."""
  task = asyncio.create_task(coro, name=name)
  _background_tasks.add(task)
  task.add_done_callback(_on_task_done)
  return task


def _on_task_done(task: asyncio.Task[Any]) -> None:
  _background_tasks.discard(task)
  if task.cancelled():
    logger.warning("Background task cancelled name=%s", task.get_name())
    return
  try:
    _ = task.result()
  except Exception as exc:  # noqa: BLE001
    logger.error("Background task failed name=%s error=%s", task.get_name(), exc, exc_info=True)


def pending_background_tasks() -> int:
  return len(_background_tasks)
