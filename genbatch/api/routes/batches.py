import logging

import msgspec
from fastapi import APIRouter, Depends, HTTPException, status
from starlette.responses import Response

from genbatch.api.deps import get_results_repo, get_tracker
from genbatch.api.models import BatchStatusResponse, DurableBatchResponse
from genbatch.api.msgspec_utils import encode_msgspec_response
from genbatch.jobs.models import BatchView
from genbatch.jobs.tracker import BatchTracker
from genbatch.storage.results_repo import ResultsRepository

router = APIRouter()
logger = logging.getLogger("genbatch.api.routes.batches")


def _decode_result(view: BatchView) -> object:
  if view.result is None:
    return None
  try:
    return msgspec.json.decode(view.result)
  except msgspec.DecodeError:
    logger.warning("Batch result is not valid JSON batch_id=%s", view.batch_id)
    return None


@router.get("/{batch_id}")
async def get_batch_status(  # noqa: B008
  batch_id: str,
  tracker: BatchTracker = Depends(get_tracker),  # noqa: B008
  results_repo: ResultsRepository | None = Depends(get_results_repo),  # noqa: B008
) -> Response:
  """Return live batch status, falling back to durable items once it has expired."""
  view = await tracker.get_batch(batch_id)
  if view is not None:
    payload = BatchStatusResponse(
      batch_id=view.batch_id,
      reference_id=view.reference_id,
      status=view.status,
      total_jobs=view.total_jobs,
      completed_jobs=view.completed_jobs,
      created_at=view.created_at,
      job_set_known=view.job_set_known,
      jobs=view.jobs,
      result=_decode_result(view),
    )
    return encode_msgspec_response(payload)

  if results_repo is not None:
    items = await results_repo.find_by_batch_id(batch_id)
    if items:
      logger.info("Serving batch from durable store batch_id=%s items=%s", batch_id, len(items))
      return encode_msgspec_response(DurableBatchResponse(batch_id=batch_id, items=items))

  # Live status and durable items are both gone, so the batch is reported as expired.
  raise HTTPException(status_code=status.HTTP_410_GONE, detail="Batch expired or not found")
