"""Batch/job status tracking on top of the ephemeral store."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime

import msgspec

from genbatch.jobs.models import WRITABLE_JOB_STATUSES, BatchView, JobState, JobStatus, derive_batch_status
from genbatch.storage.ephemeral import EphemeralStore, EphemeralStoreError

logger = logging.getLogger(__name__)

_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def _now() -> str:
  return datetime.now(UTC).strftime(_TIMESTAMP_FORMAT)


def batch_key(batch_id: str) -> str:
  return f"batch:{batch_id}"


def jobs_key(batch_id: str) -> str:
  return f"batch:{batch_id}:jobs"


def _encode_job(job: JobState) -> str:
  return msgspec.json.encode(job).decode("utf-8")


def _decode_job(name: str, raw: str | None) -> JobState:
  """Decode a stored job record, reporting missing or corrupt records as unknown."""
  if raw is None:
    return JobState(name=name, status="unknown")
  try:
    job = msgspec.json.decode(raw, type=JobState)
  except (msgspec.DecodeError, msgspec.ValidationError):
    logger.warning("Undecodable job record job=%s", name)
    return JobState(name=name, status="unknown")
  # The field name is authoritative over whatever the record claims.
  job.name = name
  return job


def _decode_job_names(raw: str | None) -> list[str] | None:
  if raw is None:
    return None
  try:
    names = msgspec.json.decode(raw, type=list[str])
  except (msgspec.DecodeError, msgspec.ValidationError):
    return None
  return names


def _parse_int(raw: str | None) -> int:
  try:
    return int(raw) if raw is not None else 0
  except ValueError:
    return 0


class BatchTracker:
  """Tracks a batch of named jobs and derives the batch status from their records.

  Writes are best-effort: when the store is absent or failing, the tracker logs and
  returns so the work it describes is never blocked. Reads return ``None`` in the same
  situations, which tells callers to fall back to the durable store.
  """

  def __init__(self, store: EphemeralStore | None, ttl_seconds: int) -> None:
    self._store = store
    self._ttl_seconds = ttl_seconds

  @property
  def enabled(self) -> bool:
    return self._store is not None

  async def create_batch(self, batch_id: str, reference_id: str, job_names: Sequence[str], *, started: Iterable[str] = ()) -> None:
    """Register a batch with a fixed, ordered set of job names."""
    names = list(job_names)
    if not names:
      raise ValueError("a batch needs at least one job")
    if len(set(names)) != len(names):
      raise ValueError(f"duplicate job names in batch: {names}")
    started_names = set(started)
    unknown_started = started_names.difference(names)
    if unknown_started:
      raise ValueError(f"started jobs not in batch: {sorted(unknown_started)}")

    if self._store is None:
      logger.warning("Ephemeral store not configured; batch not tracked batch_id=%s", batch_id)
      return

    created_at = _now()
    jobs: dict[str, str] = {}
    for name in names:
      if name in started_names:
        job = JobState(name=name, status="processing", started_at=created_at)
      else:
        job = JobState(name=name, status="pending")
      jobs[name] = _encode_job(job)

    metadata = {
      "reference_id": reference_id,
      "status": "processing",
      "created_at": created_at,
      "total_jobs": str(len(names)),
      "completed_jobs": "0",
      "job_names": msgspec.json.encode(names).decode("utf-8"),
    }

    try:
      await self._store.hset(batch_key(batch_id), metadata)
      await self._store.hset(jobs_key(batch_id), jobs)
      await self._store.expire(batch_key(batch_id), self._ttl_seconds)
      await self._store.expire(jobs_key(batch_id), self._ttl_seconds)
    except EphemeralStoreError as exc:
      logger.warning("Failed to create batch batch_id=%s error=%s", batch_id, exc)
      return

    logger.info("Created batch batch_id=%s reference_id=%s jobs=%s", batch_id, reference_id, names)

  async def update_job(self, batch_id: str, job_name: str, status: JobStatus, error: str | None = None) -> None:
    """Record a job transition and refresh the batch aggregate.

    Updates for a batch whose keys have expired, or were never written, are dropped so a
    late writer cannot recreate the batch without a TTL.
    """
    if status not in WRITABLE_JOB_STATUSES:
      raise ValueError(f"cannot write job status {status!r}")
    if self._store is None:
      return

    now = _now()
    try:
      metadata = await self._store.hgetall(batch_key(batch_id))
      if not metadata:
        logger.warning("Batch missing or expired; job update dropped batch_id=%s job=%s status=%s", batch_id, job_name, status)
        return
      names = _decode_job_names(metadata.get("job_names"))
      if names is not None and job_name not in names:
        logger.warning("Job not part of batch; update dropped batch_id=%s job=%s", batch_id, job_name)
        return
      existing = await self._store.hgetall(jobs_key(batch_id))
      if not existing:
        logger.warning("Job records expired; job update dropped batch_id=%s job=%s status=%s", batch_id, job_name, status)
        return

      job = _decode_job(job_name, existing.get(job_name))
      if job.status == "unknown":
        job = JobState(name=job_name, status="pending")
      job.status = status
      if status == "processing":
        job.started_at = now
      elif status == "completed":
        job.completed_at = now
        job.error = None
      elif status == "failed":
        job.completed_at = now
        job.error = error
      await self._store.hset(jobs_key(batch_id), {job_name: _encode_job(job)})
      await self._refresh_aggregate(batch_id, names)
    except EphemeralStoreError as exc:
      logger.warning("Failed to update job batch_id=%s job=%s status=%s error=%s", batch_id, job_name, status, exc)
      return

    if status == "failed":
      logger.warning("Job failed batch_id=%s job=%s error=%s", batch_id, job_name, error)
    else:
      logger.info("Job updated batch_id=%s job=%s status=%s", batch_id, job_name, status)

  async def _refresh_aggregate(self, batch_id: str, names: list[str] | None) -> None:
    # Re-read after the write so concurrent updates to sibling jobs are counted.
    records = await self._store.hgetall(jobs_key(batch_id))
    jobs = _collect_jobs(names, records)
    status, completed = derive_batch_status(jobs, len(names) if names is not None else None)
    await self._store.hset(batch_key(batch_id), {"status": status, "completed_jobs": str(completed)})

  async def get_batch(self, batch_id: str) -> BatchView | None:
    """Read the batch and recompute its aggregate from the current job records."""
    if self._store is None:
      return None
    try:
      metadata = await self._store.hgetall(batch_key(batch_id))
      if not metadata:
        return None
      records = await self._store.hgetall(jobs_key(batch_id))
    except EphemeralStoreError as exc:
      logger.warning("Failed to read batch batch_id=%s error=%s", batch_id, exc)
      return None

    names = _decode_job_names(metadata.get("job_names"))
    if names is None:
      logger.warning("Job set unreadable batch_id=%s", batch_id)
    jobs = _collect_jobs(names, records)
    total_jobs = len(names) if names is not None else _parse_int(metadata.get("total_jobs"))
    status, completed = derive_batch_status(jobs, len(names) if names is not None else None)
    result = metadata.get("result")

    return BatchView(
      batch_id=batch_id,
      reference_id=metadata.get("reference_id", ""),
      status=status,
      total_jobs=total_jobs,
      completed_jobs=completed,
      created_at=metadata.get("created_at", ""),
      jobs=jobs,
      job_set_known=names is not None,
      result=result.encode("utf-8") if result is not None else None,
    )

  async def set_batch_result(self, batch_id: str, payload: bytes | str) -> None:
    """Attach an opaque JSON payload to the batch, unless the batch is gone."""
    if self._store is None:
      return
    text = payload.decode("utf-8") if isinstance(payload, bytes) else payload
    try:
      if not await self._store.hgetall(batch_key(batch_id)):
        logger.warning("Batch missing or expired; result dropped batch_id=%s", batch_id)
        return
      await self._store.hset(batch_key(batch_id), {"result": text})
    except EphemeralStoreError as exc:
      logger.warning("Failed to store batch result batch_id=%s error=%s", batch_id, exc)


def _collect_jobs(names: list[str] | None, records: dict[str, str]) -> list[JobState]:
  if names is None:
    return [_decode_job(name, records[name]) for name in sorted(records)]
  return [_decode_job(name, records.get(name)) for name in names]
