import logging
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse


class GenbatchError(Exception):
  """Base class for orchestration errors surfaced to callers."""


class ReplyTimeoutError(GenbatchError):
  """No reply arrived within the consumer's wait bound; the caller should retry."""

  def __init__(self, request_id: str, timeout: float) -> None:
    super().__init__(f"AI reply not ready for {request_id} after {timeout:g}s")
    self.request_id = request_id
    self.timeout = timeout


class ReplyChannelError(GenbatchError):
  """The reply channel could not be read (store unavailable or payload corrupt)."""


class DurabilityError(GenbatchError):
  """Merging a generated result into the durable store failed."""

  def __init__(self, record_id: str, cause: BaseException) -> None:
    super().__init__(f"persist failed for {record_id}: {cause}")
    self.record_id = record_id


def _error_payload(detail: Any, *, request_id: str | None = None, retryable: bool | None = None) -> dict[str, Any]:
  """Build a safe error payload that avoids leaking internal details to clients."""
  payload: dict[str, Any] = {"detail": detail}
  # Attach a request id so support can correlate client reports to server logs.
  if request_id:
    payload["requestId"] = request_id
  if retryable is not None:
    payload["retryable"] = retryable
  return payload


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
  """Global exception handler to catch unhandled errors."""
  logger = logging.getLogger("uvicorn.error")
  request_id = getattr(request.state, "request_id", None)
  logger.error("Global exception request_id=%s path=%s error_type=%s", request_id, request.url.path, type(exc).__name__, exc_info=True)
  return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=_error_payload("Internal Server Error", request_id=request_id))


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
  """Handle FastAPI HTTPExceptions while avoiding leaking internal diagnostics."""
  request_id = getattr(request.state, "request_id", None)
  if exc.status_code >= 500:
    logger = logging.getLogger("uvicorn.error")
    logger.error("HTTPException request_id=%s path=%s status_code=%s detail=%s", request_id, request.url.path, exc.status_code, exc.detail)
    return JSONResponse(status_code=exc.status_code, content=_error_payload("Internal Server Error", request_id=request_id))

  # Preserve 4xx details for client-correctable errors.
  return JSONResponse(status_code=exc.status_code, content=_error_payload(exc.detail, request_id=request_id))


async def reply_timeout_exception_handler(request: Request, exc: ReplyTimeoutError) -> JSONResponse:
  """Translate a reply wait timeout into a retryable response."""
  request_id = getattr(request.state, "request_id", None)
  logging.getLogger("uvicorn.error").info("Reply not ready request_id=%s reply_request_id=%s", request_id, exc.request_id)
  return JSONResponse(status_code=status.HTTP_408_REQUEST_TIMEOUT, content=_error_payload("AI reply not ready, please try again", request_id=request_id, retryable=True))


async def reply_channel_exception_handler(request: Request, exc: ReplyChannelError) -> JSONResponse:
  """Report reply channel outages without exposing store details."""
  request_id = getattr(request.state, "request_id", None)
  logging.getLogger("uvicorn.error").error("Reply channel failure request_id=%s error=%s", request_id, exc, exc_info=True)
  return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=_error_payload("Reply channel unavailable", request_id=request_id, retryable=True))
