"""Shared fixtures for orchestration and API tests."""

from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
  sys.path.insert(0, str(ROOT))

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from genbatch.api.deps import get_results_repo, get_speaking_service, get_tracker  # noqa: E402
from genbatch.jobs.fanout import FanoutExecutor  # noqa: E402
from genbatch.jobs.reply import ReplyChannel  # noqa: E402
from genbatch.jobs.tracker import BatchTracker  # noqa: E402
from genbatch.main import app  # noqa: E402
from genbatch.services.speaking import SpeakingService  # noqa: E402
from tests.fakes import InMemoryEphemeralStore, InMemoryResultsRepo  # noqa: E402


@pytest.fixture
def anyio_backend() -> str:
  return "asyncio"


@pytest.fixture
def store() -> InMemoryEphemeralStore:
  return InMemoryEphemeralStore()


@pytest.fixture
def results_repo() -> InMemoryResultsRepo:
  return InMemoryResultsRepo()


@pytest.fixture
def tracker(store: InMemoryEphemeralStore) -> BatchTracker:
  return BatchTracker(store, ttl_seconds=86400)


@pytest.fixture
def channel(store: InMemoryEphemeralStore) -> ReplyChannel:
  return ReplyChannel(store, ttl_seconds=60)


@pytest.fixture
def executor(tracker: BatchTracker, results_repo: InMemoryResultsRepo) -> FanoutExecutor:
  return FanoutExecutor(tracker, results_repo)


@pytest.fixture
def speaking_service(channel: ReplyChannel) -> SpeakingService:
  return SpeakingService(channel, reply_timeout_seconds=0.5)


@pytest.fixture
async def async_client(tracker: BatchTracker, results_repo: InMemoryResultsRepo, speaking_service: SpeakingService):
  app.dependency_overrides[get_tracker] = lambda: tracker
  app.dependency_overrides[get_results_repo] = lambda: results_repo
  app.dependency_overrides[get_speaking_service] = lambda: speaking_service
  async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
    yield client
  app.dependency_overrides.clear()
