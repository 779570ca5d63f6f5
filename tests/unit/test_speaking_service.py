from __future__ import annotations

import re

import pytest

from genbatch.core.exceptions import ReplyChannelError, ReplyTimeoutError
from genbatch.jobs.reply import reply_key
from genbatch.services.speaking import FALLBACK_REPLY_TEXT, SpeakingReply, SpeakingService


class StubResponder:
  def __init__(self, reply: str | None = None, error: Exception | None = None) -> None:
    self.prompts: list[str] = []
    self._reply = reply
    self._error = error

  async def chat(self, prompt: str) -> str:
    self.prompts.append(prompt)
    if self._error is not None:
      raise self._error
    return self._reply or ""


class StubSpeech:
  def __init__(self, fail: bool = False) -> None:
    self._fail = fail

  async def generate_image(self, owner_id: str, prompt: str) -> str:
    raise NotImplementedError

  async def synthesize_speech(self, owner_id: str, object_key: str, text: str, voice: str) -> str:
    if self._fail:
      raise RuntimeError("tts unavailable")
    return f"https://cdn.test/{object_key}"


@pytest.mark.anyio
async def test_reply_round_trip_through_background_producer(channel) -> None:
  responder = StubResponder(reply="Nice to meet you too!")
  service = SpeakingService(channel, responder=responder, reply_timeout_seconds=1)

  request_id = service.start_reply("nice to meet you")
  assert re.fullmatch(r"req_[0-9a-f]{8}", request_id)

  reply = await service.get_reply(request_id)
  assert reply == SpeakingReply(ai_text="Nice to meet you too!", audio_url=f"https://storage.example.com/tts/{request_id}.mp3")
  assert '"nice to meet you"' in responder.prompts[0]


@pytest.mark.anyio
async def test_responder_failure_substitutes_fallback_text(channel) -> None:
  service = SpeakingService(channel, responder=StubResponder(error=RuntimeError("quota")), reply_timeout_seconds=1)

  await service.produce_reply("req_abc", "hello")
  reply = await service.get_reply("req_abc")
  assert reply.ai_text == FALLBACK_REPLY_TEXT


@pytest.mark.anyio
async def test_without_responder_the_transcript_is_echoed(channel) -> None:
  service = SpeakingService(channel, reply_timeout_seconds=1)

  await service.produce_reply("req_abc", "good morning")
  reply = await service.get_reply("req_abc")
  assert reply.ai_text == 'I heard you say: "good morning". That\'s great!'


@pytest.mark.anyio
async def test_reply_audio_uses_speech_when_available(channel) -> None:
  service = SpeakingService(channel, responder=StubResponder(reply="ok"), media=StubSpeech(), reply_timeout_seconds=1)
  await service.produce_reply("req_abc", "hi")
  assert (await service.get_reply("req_abc")).audio_url == "https://cdn.test/tts/req_abc.mp3"

  failing = SpeakingService(channel, responder=StubResponder(reply="ok"), media=StubSpeech(fail=True), reply_timeout_seconds=1)
  await failing.produce_reply("req_def", "hi")
  assert (await failing.get_reply("req_def")).audio_url == "https://storage.example.com/tts/req_def.mp3"


@pytest.mark.anyio
async def test_get_reply_times_out_when_nothing_was_produced(speaking_service) -> None:
  with pytest.raises(ReplyTimeoutError):
    await speaking_service.get_reply("req_missing")


@pytest.mark.anyio
async def test_get_reply_rejects_malformed_payload(channel, speaking_service) -> None:
  await channel.produce("req_odd", {"unexpected": True})
  with pytest.raises(ReplyChannelError):
    await speaking_service.get_reply("req_odd")


@pytest.mark.anyio
async def test_reply_key_layout(channel, store) -> None:
  await channel.produce("req_1", {"ai_text": "a", "audio_url": "b"})
  assert list(store.lists) == [reply_key("req_1")] == ["speaking:reply:req_1"]
