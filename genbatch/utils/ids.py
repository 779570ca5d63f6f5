"""Identifier utilities."""

from __future__ import annotations

import uuid


def generate_batch_id() -> str:
  """Return a new caller-visible batch identifier."""
  return str(uuid.uuid4())


def generate_request_id() -> str:
  """Return a short reply-channel request identifier."""
  return f"req_{uuid.uuid4().hex[:8]}"
