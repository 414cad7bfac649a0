from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from starlette.responses import PlainTextResponse, Response

from core import status_codes
from core.config import SERVICE_NAME
from core.ids import new_request_id
from core.logging import set_request_id
from infra.multipart import InvalidContentType, MultipartReader
from utils.time import Stopwatch
from utils.validate import check_upload_request

router = APIRouter(tags=["upload"])
logger = logging.getLogger(__name__)


@router.get("/", response_class=PlainTextResponse)
async def status():
    return f"{SERVICE_NAME} running..."


@router.post("/")
async def upload(request: Request):
    request_id = new_request_id()
    set_request_id(request_id)
    sw = Stopwatch()

    cfg = request.app.state.cfg
    service = request.app.state.service
    stats = request.app.state.stats

    stats.add_processing(request_id)

    check = check_upload_request(
        authorization=request.headers.get("authorization"),
        content_length=request.headers.get("content-length"),
        max_bytes=cfg.upload.max_request_bytes,
        bad_request_code=status_codes.BAD_REQUEST,
        too_large_code=status_codes.PAYLOAD_TOO_LARGE,
    )
    if not check.ok:
        logger.warning(f"[/] Upload request rejected. status_code={check.code}, content_length={check.content_length}")
        stats.finish_rejected(request_id)
        return Response(status_code=check.code)

    try:
        reader = MultipartReader(
            request.stream(),
            request.headers.get("content-type"),
            max_bytes=cfg.upload.max_request_bytes,
            chunk_size=cfg.upload.read_chunk_bytes,
        )
    except InvalidContentType as e:
        logger.warning(f"[/] Upload request rejected. error={e}")
        stats.finish_rejected(request_id)
        return Response(status_code=status_codes.BAD_REQUEST)

    logger.info(f"[/] Upload request received. content_length={check.content_length}")
    try:
        result = await service.handle(request.headers.get("authorization"), reader.parts())
    except Exception:
        logger.exception(f"[/] Unexpected error during upload. elapsed={sw.elapsed_ms()}ms")
        stats.finish_failed(request_id)
        raise

    if result.ok:
        size = sum(f.size_bytes for f in result.files)
        logger.info(
            f"[/] Upload finished. files={len(result.files)}, size={size}bytes, elapsed={sw.elapsed_ms()}ms"
        )
        stats.finish_success(request_id, files=len(result.files), size_bytes=size)
    elif result.status_code == status_codes.FORBIDDEN:
        stats.finish_rejected(request_id)
    else:
        logger.warning(f"[/] Upload failed. status_code={result.status_code}, elapsed={sw.elapsed_ms()}ms")
        stats.finish_failed(request_id)

    return result.to_response()
