import logging

from fastapi import APIRouter, Depends, Query, Request, status
from starlette.responses import Response

from genbatch.api.deps import get_speaking_service
from genbatch.api.models import SpeakingReplyAccepted, SpeakingReplyRequest
from genbatch.api.msgspec_utils import decode_msgspec_request, encode_msgspec_response
from genbatch.services.speaking import SpeakingService

router = APIRouter()
logger = logging.getLogger("genbatch.api.routes.speaking")


@router.post("/replies")
async def start_reply(request: Request, service: SpeakingService = Depends(get_speaking_service)) -> Response:  # noqa: B008
  """Accept a transcript and start producing the AI reply in the background."""
  payload = await decode_msgspec_request(request, SpeakingReplyRequest)
  request_id = service.start_reply(payload.transcript)
  return encode_msgspec_response(SpeakingReplyAccepted(request_id=request_id), status_code=status.HTTP_202_ACCEPTED)


@router.get("/reply")
async def get_reply(  # noqa: B008
  request_id: str = Query(..., min_length=1),  # noqa: B008
  service: SpeakingService = Depends(get_speaking_service),  # noqa: B008
) -> Response:
  """Wait briefly for the AI reply; a timeout is reported as retryable."""
  reply = await service.get_reply(request_id)
  return encode_msgspec_response(reply)
