from __future__ import annotations

import pytest


@pytest.mark.anyio
async def test_reply_is_returned_after_it_was_started(async_client) -> None:
  started = await async_client.post("/v1/speaking/replies", json={"transcript": "good evening"})
  assert started.status_code == 202
  request_id = started.json()["request_id"]

  response = await async_client.get("/v1/speaking/reply", params={"request_id": request_id})

  assert response.status_code == 200
  assert response.json() == {"ai_text": 'I heard you say: "good evening". That\'s great!', "audio_url": f"https://storage.example.com/tts/{request_id}.mp3"}


@pytest.mark.anyio
async def test_reply_timeout_is_retryable(async_client) -> None:
  response = await async_client.get("/v1/speaking/reply", params={"request_id": "req_00000000"})

  assert response.status_code == 408
  body = response.json()
  assert body["detail"] == "AI reply not ready, please try again"
  assert body["retryable"] is True


@pytest.mark.anyio
async def test_second_poll_after_delivery_times_out(async_client, channel) -> None:
  await channel.produce("req_once", {"ai_text": "hi", "audio_url": "https://cdn.test/hi.mp3"})

  first = await async_client.get("/v1/speaking/reply", params={"request_id": "req_once"})
  second = await async_client.get("/v1/speaking/reply", params={"request_id": "req_once"})

  assert first.status_code == 200
  assert second.status_code == 408


@pytest.mark.anyio
async def test_store_outage_is_reported_as_unavailable(async_client, store) -> None:
  store.failing = True

  response = await async_client.get("/v1/speaking/reply", params={"request_id": "req_1"})

  assert response.status_code == 503
  assert response.json()["detail"] == "Reply channel unavailable"


@pytest.mark.anyio
async def test_invalid_start_payload_is_rejected(async_client) -> None:
  response = await async_client.post("/v1/speaking/replies", json={"text": "missing transcript"})
  assert response.status_code == 400
