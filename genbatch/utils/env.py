"""Read local ``.env`` settings into ``os.environ`` before configuration is built."""

from __future__ import annotations

import os
from collections.abc import Iterable
from pathlib import Path

_QUOTES = ("'", '"')


def default_env_path() -> Path:
  """``GENBATCH_ENV_FILE`` when set, else ``.env`` beside the ``genbatch`` package."""
  explicit = os.getenv("GENBATCH_ENV_FILE")
  if explicit:
    return Path(explicit)
  return Path(__file__).resolve().parents[2] / ".env"


def _unquote(value: str) -> str:
  if len(value) > 1 and value[0] in _QUOTES and value[-1] == value[0]:
    return value[1:-1]
  # Unquoted values may carry a trailing `# comment`.
  return value.split(" #", 1)[0].rstrip()


def parse_env_lines(lines: Iterable[str]) -> dict[str, str]:
  """Parse ``KEY=value`` lines; blank, comment and malformed lines are skipped."""
  parsed: dict[str, str] = {}
  for raw in lines:
    entry = raw.strip()
    if entry.startswith("export "):
      entry = entry[len("export ") :].lstrip()
    name, sep, value = entry.partition("=")
    name = name.strip()
    if not sep or not name or name.startswith("#"):
      continue
    parsed[name] = _unquote(value.strip())
  return parsed


def load_env_file(path: Path, *, override: bool = False) -> dict[str, str]:
  """Apply ``path`` to the environment and return the variables that were set.

  Variables already present in the environment win unless ``override`` is set.
  A missing file is not an error.
  """
  if not path.is_file():
    return {}

  applied: dict[str, str] = {}
  for name, value in parse_env_lines(path.read_text(encoding="utf-8").splitlines()).items():
    if name in os.environ and not override:
      continue
    os.environ[name] = value
    applied[name] = value
  return applied
