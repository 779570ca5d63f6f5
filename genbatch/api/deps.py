"""Shared FastAPI dependencies resolving the components built at startup."""

from __future__ import annotations

from fastapi import Request

from genbatch.jobs.tracker import BatchTracker
from genbatch.services.speaking import SpeakingService
from genbatch.storage.results_repo import ResultsRepository


def get_tracker(request: Request) -> BatchTracker:
  return request.app.state.tracker


def get_results_repo(request: Request) -> ResultsRepository | None:
  """Durable repository, or ``None`` when no database is configured."""
  return getattr(request.app.state, "results_repo", None)


def get_speaking_service(request: Request) -> SpeakingService:
  return request.app.state.speaking_service
