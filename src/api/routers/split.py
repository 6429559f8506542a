from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import get_logger, get_service, get_tracker, require_credentials
from api.schemas import SplitImageRequest
from api.utils import run_tracked
from image_splitter.core import SplitService, validate_request
from image_splitter.errors import InvalidRequestError, SplitError
from image_splitter.logging import JsonLogger
from image_splitter.tracker import RunTracker

router = APIRouter(tags=["split"])


@router.post(
    "/split-image",
    summary="Split a remote image into chunks",
    dependencies=[Depends(require_credentials)],
)
async def split_image(
    payload: SplitImageRequest,
    service: SplitService = Depends(get_service),
    tracker: RunTracker = Depends(get_tracker),
    logger: JsonLogger = Depends(get_logger),
) -> dict[str, Any]:
    request = payload.to_domain()
    try:
        validate_request(request)
    except InvalidRequestError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    try:
        result = await run_tracked(tracker, service.handle, request)
    except SplitError as exc:
        logger.print_error(exc, {"code": exc.code, "url": request.url})
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    logger.print_info(
        "image split",
        {"run_id": result.run_id, "chunks": str(len(result.chunks)), "url": request.url},
    )
    return result.to_response()


__all__ = ["router"]
