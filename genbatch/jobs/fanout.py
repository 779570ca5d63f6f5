"""Concurrent fan-out of generation jobs and their sub-tasks."""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from genbatch.core.exceptions import DurabilityError
from genbatch.jobs.tracker import BatchTracker
from genbatch.services.tasks import spawn_background
from genbatch.storage.results_repo import ResultsRepository

logger = logging.getLogger(__name__)


class JobWorkingSet:
  """Mutable accumulation map for one job, shared by that job's sub-tasks only."""

  def __init__(self, initial: Mapping[str, Any] | None = None) -> None:
    self._data: dict[str, Any] = copy.deepcopy(dict(initial or {}))
    self._lock = asyncio.Lock()

  async def set(self, key: str, value: Any) -> None:
    async with self._lock:
      self._data[key] = value

  async def set_in(self, path: Sequence[str | int], value: Any) -> None:
    """Assign ``value`` at a nested path of existing dicts and lists."""
    if not path:
      raise ValueError("path must not be empty")
    async with self._lock:
      target: Any = self._data
      for step in path[:-1]:
        target = target[step]
      target[path[-1]] = value

  async def snapshot(self) -> dict[str, Any]:
    async with self._lock:
      return copy.deepcopy(self._data)


SubTask = Callable[[JobWorkingSet], Awaitable[None]]


@dataclass
class JobSpec:
  """A named job: the durable record it fills and the sub-tasks that fill it."""

  name: str
  record_id: str
  working_set: JobWorkingSet = field(default_factory=JobWorkingSet)
  subtasks: list[SubTask] = field(default_factory=list)


def _describe(exc: BaseException) -> str:
  message = str(exc)
  return message if message else type(exc).__name__


class FanoutExecutor:
  """Runs every job of a batch concurrently and reports each job's outcome.

  A job is marked processing before its sub-tasks start, its sub-tasks run concurrently
  and are all joined, and the merged output is persisted before the job is reported
  terminal. Failures stay inside the job that produced them.
  """

  def __init__(self, tracker: BatchTracker, results_repo: ResultsRepository) -> None:
    self._tracker = tracker
    self._results_repo = results_repo

  async def run_fanout(self, batch_id: str, specs: Sequence[JobSpec]) -> None:
    logger.info("Fan-out started batch_id=%s jobs=%s", batch_id, [spec.name for spec in specs])
    outcomes = await asyncio.gather(*(self._run_job(batch_id, spec) for spec in specs), return_exceptions=True)
    for spec, outcome in zip(specs, outcomes, strict=True):
      if isinstance(outcome, BaseException):
        logger.error("Job runner crashed batch_id=%s job=%s error=%s", batch_id, spec.name, outcome)
    logger.info("Fan-out finished batch_id=%s", batch_id)

  def launch_fanout(self, batch_id: str, specs: Sequence[JobSpec]) -> None:
    """Schedule ``run_fanout`` in the background and return immediately."""
    spawn_background(self.run_fanout(batch_id, list(specs)), name=f"fanout:{batch_id}")

  async def _run_job(self, batch_id: str, spec: JobSpec) -> None:
    await self._tracker.update_job(batch_id, spec.name, "processing")
    try:
      outcomes = await asyncio.gather(*(subtask(spec.working_set) for subtask in spec.subtasks), return_exceptions=True)
      errors = [_describe(outcome) for outcome in outcomes if isinstance(outcome, BaseException)]
      for error in errors:
        logger.error("Sub-task failed batch_id=%s job=%s error=%s", batch_id, spec.name, error)

      try:
        await self._persist(spec)
      except DurabilityError as exc:
        logger.error("%s batch_id=%s job=%s", exc, batch_id, spec.name)
        await self._tracker.update_job(batch_id, spec.name, "failed", f"persist failed: {_describe(exc.__cause__ or exc)}")
        return

      if errors:
        await self._tracker.update_job(batch_id, spec.name, "failed", "; ".join(errors))
      else:
        await self._tracker.update_job(batch_id, spec.name, "completed")
    except Exception as exc:  # noqa: BLE001
      logger.error("Job crashed batch_id=%s job=%s error=%s", batch_id, spec.name, exc, exc_info=True)
      await self._tracker.update_job(batch_id, spec.name, "failed", _describe(exc))

  async def _persist(self, spec: JobSpec) -> None:
    snapshot = await spec.working_set.snapshot()
    try:
      await self._results_repo.merge_media(spec.record_id, snapshot)
    except Exception as exc:
      raise DurabilityError(spec.record_id, exc) from exc
