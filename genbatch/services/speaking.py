"""Two-step voice chat: issue a request id now, deliver the AI reply later."""

from __future__ import annotations

import logging
from typing import Protocol

import msgspec

from genbatch.core.exceptions import ReplyChannelError
from genbatch.jobs.reply import ReplyChannel
from genbatch.services.media import DEFAULT_VOICE, MediaGenerator
from genbatch.services.tasks import spawn_background
from genbatch.utils.ids import generate_request_id

logger = logging.getLogger(__name__)

FALLBACK_REPLY_TEXT = "I'm sorry, I couldn't process your message. Please try again."
PLACEHOLDER_AUDIO_URL = "https://storage.example.com/tts/{request_id}.mp3"


class ChatResponder(Protocol):
  """Conversational model used to answer the learner."""

  async def chat(self, prompt: str) -> str:
    """Return the model's reply to ``prompt``."""


class SpeakingReply(msgspec.Struct):
  """Reply payload delivered to the waiting client."""

  ai_text: str
  audio_url: str


def _build_prompt(transcript: str) -> str:
  return f'You are a helpful language learning assistant. The user said: "{transcript}". Respond naturally and helpfully in 1-2 sentences.'


class SpeakingService:
  """Produces AI replies in the background and hands them to the polling client."""

  def __init__(self, channel: ReplyChannel, *, responder: ChatResponder | None = None, media: MediaGenerator | None = None, reply_timeout_seconds: float = 10.0) -> None:
    self._channel = channel
    self._responder = responder
    self._media = media
    self._reply_timeout_seconds = reply_timeout_seconds

  def start_reply(self, transcript: str) -> str:
    """Return a fresh request id and start producing its reply in the background."""
    request_id = generate_request_id()
    logger.info("Spawning AI reply request_id=%s", request_id)
    spawn_background(self.produce_reply(request_id, transcript), name=f"speaking:{request_id}")
    return request_id

  async def produce_reply(self, request_id: str, transcript: str) -> None:
    ai_text = await self._reply_text(request_id, transcript)
    audio_url = await self._reply_audio(request_id, ai_text)
    await self._channel.produce(request_id, SpeakingReply(ai_text=ai_text, audio_url=audio_url))

  async def _reply_text(self, request_id: str, transcript: str) -> str:
    if self._responder is None or not transcript:
      return f'I heard you say: "{transcript}". That\'s great!'
    try:
      return await self._responder.chat(_build_prompt(transcript))
    except Exception as exc:  # noqa: BLE001
      logger.error("Chat responder failed request_id=%s error=%s", request_id, exc, exc_info=True)
      return FALLBACK_REPLY_TEXT

  async def _reply_audio(self, request_id: str, ai_text: str) -> str:
    placeholder = PLACEHOLDER_AUDIO_URL.format(request_id=request_id)
    if self._media is None:
      return placeholder
    try:
      return await self._media.synthesize_speech(request_id, f"tts/{request_id}.mp3", ai_text, DEFAULT_VOICE)
    except Exception as exc:  # noqa: BLE001
      logger.error("Reply speech synthesis failed request_id=%s error=%s", request_id, exc)
      return placeholder

  async def get_reply(self, request_id: str) -> SpeakingReply:
    """Wait for the reply; raises ``ReplyTimeoutError`` when it is not ready yet."""
    payload = await self._channel.consume(request_id, self._reply_timeout_seconds)
    try:
      return msgspec.convert(payload, SpeakingReply)
    except msgspec.ValidationError as exc:
      raise ReplyChannelError(f"malformed reply for {request_id}: {exc}") from exc
