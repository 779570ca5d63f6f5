"""Wire models for the HTTP surface."""

from __future__ import annotations

from typing import Any, Literal

import msgspec

from genbatch.jobs.models import JobState
from genbatch.storage.results_repo import ItemRecord


class BatchStatusResponse(msgspec.Struct):
  """Live batch status read from the ephemeral store."""

  batch_id: str
  reference_id: str
  status: str
  total_jobs: int
  completed_jobs: int
  created_at: str
  job_set_known: bool
  jobs: list[JobState]
  result: Any = None
  source: Literal["ephemeral"] = "ephemeral"


class DurableBatchResponse(msgspec.Struct):
  """Durable items of a batch whose live status has expired; job outcomes are no longer known."""

  batch_id: str
  items: list[ItemRecord]
  status: Literal["expired"] = "expired"
  source: Literal["durable"] = "durable"


class SpeakingReplyRequest(msgspec.Struct):
  transcript: str


class SpeakingReplyAccepted(msgspec.Struct):
  request_id: str
