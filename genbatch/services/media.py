"""Media generation for freshly generated items, run as a tracked batch."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Protocol

from genbatch.jobs.fanout import FanoutExecutor, JobSpec, JobWorkingSet, SubTask
from genbatch.jobs.tracker import BatchTracker
from genbatch.storage.results_repo import ItemRecord, ResultsRepository
from genbatch.utils.ids import generate_batch_id

logger = logging.getLogger(__name__)

DEFAULT_VOICE = "en-US-AvaMultilingualNeural"
_VOICES = {"zh-CN": "zh-CN-XiaoxiaoNeural", "th": "th-TH-PremwadeeNeural", "en-US": DEFAULT_VOICE}


class MediaGenerator(Protocol):
  """Image and speech generation that uploads its output and returns a public URL."""

  async def generate_image(self, owner_id: str, prompt: str) -> str:
    """Generate an image for ``prompt`` and return its URL."""

  async def synthesize_speech(self, owner_id: str, object_key: str, text: str, voice: str) -> str:
    """Synthesize ``text`` with ``voice``, store it under ``object_key`` and return its URL."""


def select_voice(lang_code: str | None) -> str:
  return _VOICES.get(lang_code or "", DEFAULT_VOICE)


def build_scenario_job(name: str, record: ItemRecord, target_lang: str, generator: MediaGenerator) -> JobSpec:
  """Image plus one audio clip per AI script line of a conversation scenario."""
  script = [dict(line) for line in record.metadata.get("script", []) if isinstance(line, dict)]
  working_set = JobWorkingSet({"script": script})
  subtasks: list[SubTask] = []

  image_prompt = record.metadata.get("image_prompt")
  if image_prompt:

    async def image(ws: JobWorkingSet) -> None:
      url = await generator.generate_image(record.id, image_prompt)
      await ws.set("image_url", url)

    subtasks.append(image)

  voice = select_voice(target_lang)
  for index, line in enumerate(script):
    text = line.get("text")
    if line.get("speaker") != "ai" or not text:
      continue

    async def line_audio(ws: JobWorkingSet, index: int = index, text: str = text) -> None:
      url = await generator.synthesize_speech(record.id, f"scenarios/{record.id}-line-{index}.mp3", text, voice)
      await ws.set_in(("script", index, "audio_url"), url)

    subtasks.append(line_audio)

  return JobSpec(name=name, record_id=record.id, working_set=working_set, subtasks=subtasks)


def build_learning_item_job(name: str, record: ItemRecord, target_lang: str, generator: MediaGenerator, native_lang: str = "th") -> JobSpec:
  """Image, content audio and native-language meaning audio for a learning item."""
  subtasks: list[SubTask] = []

  image_prompt = record.media.get("image_prompt") or record.metadata.get("image_prompt")
  if image_prompt:

    async def image(ws: JobWorkingSet) -> None:
      url = await generator.generate_image(record.id, image_prompt)
      await ws.set("image_url", url)

    subtasks.append(image)

  if record.content:

    async def content_audio(ws: JobWorkingSet) -> None:
      url = await generator.synthesize_speech(record.id, f"learning-items/{record.id}-context.mp3", record.content, select_voice(target_lang))
      await ws.set("audio_url", url)

    subtasks.append(content_audio)

  meanings: dict[str, Any] = record.metadata.get("meanings") or {}
  meaning_text = meanings.get(native_lang)
  if meaning_text:

    async def meaning_audio(ws: JobWorkingSet) -> None:
      url = await generator.synthesize_speech(record.id, f"learning-items/{record.id}-meaning.mp3", meaning_text, select_voice(native_lang))
      await ws.set("meaning_audio_url", url)

    subtasks.append(meaning_audio)

  return JobSpec(name=name, record_id=record.id, working_set=JobWorkingSet(), subtasks=subtasks)


def build_job(name: str, record: ItemRecord, target_lang: str, generator: MediaGenerator) -> JobSpec:
  if record.kind == "scenario":
    return build_scenario_job(name, record, target_lang, generator)
  if record.kind == "learning_item":
    return build_learning_item_job(name, record, target_lang, generator)
  raise ValueError(f"no media job for item kind {record.kind!r}")


async def start_media_batch(
  *,
  tracker: BatchTracker,
  executor: FanoutExecutor,
  results_repo: ResultsRepository,
  generator: MediaGenerator,
  reference_id: str,
  items: Sequence[tuple[str, ItemRecord]],
  target_lang: str,
) -> str:
  """Create a batch with one job per ``(job_name, record)`` pair and launch its fan-out.

  Returns the batch id immediately; media generation continues in the background.
  Items are stamped before the batch is tracked, so a failed stamp leaves no batch
  stuck in processing.
  """
  specs = [build_job(name, record, target_lang, generator) for name, record in items]
  batch_id = generate_batch_id()
  await results_repo.stamp_batch_id([record.id for _, record in items], batch_id)
  await tracker.create_batch(batch_id, reference_id, [spec.name for spec in specs])
  executor.launch_fanout(batch_id, specs)
  logger.info("Media batch launched batch_id=%s reference_id=%s jobs=%s", batch_id, reference_id, len(specs))
  return batch_id
