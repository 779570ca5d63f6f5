import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from urllib.parse import urlparse

from fastapi import FastAPI

from genbatch.config import get_settings
from genbatch.core.database import dispose_engine
from genbatch.core.logging import initialize_logging
from genbatch.jobs.fanout import FanoutExecutor
from genbatch.jobs.reply import ReplyChannel
from genbatch.jobs.tracker import BatchTracker
from genbatch.services.speaking import SpeakingService
from genbatch.storage.ephemeral import EphemeralStoreError, build_ephemeral_store
from genbatch.storage.postgres_results_repo import PostgresResultsRepository


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Set up logging and build the orchestration components for request handlers.

  `app.state.executor` is exposed for host handlers that launch media batches through
  `genbatch.services.media.start_media_batch`; it is `None` without a database.
  """
  settings = get_settings()
  logger = logging.getLogger("genbatch.core.lifespan")

  initialize_logging(settings)
  logger.info("Starting genbatch environment=%s redis=%s database=%s", settings.environment, _redact_url(settings.redis_url), _redact_url(settings.pg_dsn))

  store = build_ephemeral_store(settings.redis_url)
  if store is not None:
    # An unreachable Redis degrades tracking to durable fallback; it does not block startup.
    try:
      await store.ping()
    except EphemeralStoreError as exc:
      logger.warning("Redis not reachable at startup: %s", exc)

  results_repo: PostgresResultsRepository | None = None
  try:
    results_repo = PostgresResultsRepository()
  except RuntimeError:
    logger.warning("Database not configured; durable fallback and media batches are disabled.")

  tracker = BatchTracker(store, settings.batch_ttl_seconds)
  channel = ReplyChannel(store, settings.reply_ttl_seconds)
  app.state.tracker = tracker
  app.state.reply_channel = channel
  app.state.results_repo = results_repo
  app.state.executor = FanoutExecutor(tracker, results_repo) if results_repo is not None else None
  app.state.speaking_service = SpeakingService(channel, reply_timeout_seconds=settings.reply_timeout_seconds)

  try:
    yield
  finally:
    if store is not None:
      await store.close()
    await dispose_engine()
    logger.info("Shutdown complete.")


def _redact_url(raw: str | None) -> str:
  """Redact credentials from a connection URL while keeping host/db visible."""
  if not raw:
    return "<unset>"

  parsed = urlparse(raw)
  if not parsed.scheme:
    return "<invalid>"

  host = parsed.hostname or ""
  port = f":{parsed.port}" if parsed.port else ""
  return f"{parsed.scheme}://{host}{port}{parsed.path}"
