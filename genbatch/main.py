from __future__ import annotations

from fastapi import FastAPI, HTTPException

from genbatch import __version__
from genbatch.api.routes import batches, speaking
from genbatch.core.exceptions import ReplyChannelError, ReplyTimeoutError, global_exception_handler, http_exception_handler, reply_channel_exception_handler, reply_timeout_exception_handler
from genbatch.core.lifespan import lifespan
from genbatch.core.middleware import RequestLoggingMiddleware

app = FastAPI(lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None)

# Add exception handlers
app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(ReplyTimeoutError, reply_timeout_exception_handler)
app.add_exception_handler(ReplyChannelError, reply_channel_exception_handler)

# Add middleware
app.add_middleware(RequestLoggingMiddleware)


@app.get("/health", include_in_schema=False)
async def health_check() -> dict[str, str]:
  """Return a simple health status."""
  return {"status": "ok", "version": __version__}


app.include_router(batches.router, prefix="/v1/batches", tags=["batches"])
app.include_router(speaking.router, prefix="/v1/speaking", tags=["speaking"])
