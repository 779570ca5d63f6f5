"""Domain models for batches of generation jobs."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Literal

# "unknown" is never written; it marks a job whose record is missing or unreadable.
JobStatus = Literal["pending", "processing", "completed", "failed", "unknown"]
BatchStatus = Literal["processing", "completed", "failed"]

WRITABLE_JOB_STATUSES: frozenset[str] = frozenset({"pending", "processing", "completed", "failed"})


@dataclass
class JobState:
  """State of one named job inside a batch."""

  name: str
  status: JobStatus
  started_at: str | None = None
  completed_at: str | None = None
  error: str | None = None


@dataclass
class BatchView:
  """Point-in-time view of a batch and its jobs as read from the ephemeral store."""

  batch_id: str
  reference_id: str
  status: BatchStatus
  total_jobs: int
  completed_jobs: int
  created_at: str
  jobs: list[JobState] = field(default_factory=list)
  job_set_known: bool = True
  result: bytes | None = None


def derive_batch_status(jobs: Iterable[JobState], total_jobs: int | None) -> tuple[BatchStatus, int]:
  """Return ``(status, completed_jobs)`` computed from the current job records.

  ``total_jobs`` is ``None`` when the batch's job set cannot be established; such a
  batch is never reported as completed.
  """
  completed = 0
  has_failed = False
  for job in jobs:
    if job.status == "completed":
      completed += 1
    elif job.status == "failed":
      has_failed = True

  if has_failed:
    return "failed", completed
  if total_jobs is not None and total_jobs > 0 and completed == total_jobs:
    return "completed", completed
  return "processing", completed
