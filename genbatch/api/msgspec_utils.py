"""Utility helpers for msgspec request decoding and response encoding."""

from __future__ import annotations

from typing import TypeVar

import msgspec
from fastapi import HTTPException, Request, status
from starlette.responses import Response

T = TypeVar("T", bound=msgspec.Struct)


async def decode_msgspec_request(request: Request, struct_type: type[T]) -> T:
  """Decode an HTTP JSON request body into a msgspec.Struct value."""
  try:
    return msgspec.json.decode(await request.body(), type=struct_type)
  except (msgspec.DecodeError, msgspec.ValidationError) as exc:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid request payload: {exc}") from exc


def encode_msgspec_response(payload: object, *, status_code: int = 200) -> Response:
  """Encode a msgspec-serializable value as a JSON HTTP response."""
  return Response(content=msgspec.json.encode(payload), status_code=status_code, media_type="application/json")
