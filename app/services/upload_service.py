# app/services/upload_service.py
from __future__ import annotations

import logging
from pathlib import Path
from typing import AsyncIterable, AsyncIterator, Awaitable, Callable, List, Optional

from core import status_codes
from core.ids import generate_upload_name
from core.response import UploadedFile, UploadResponse, ok, fail
from infra.files import WriteError, write_stream
from infra.multipart import StreamReadError, UploadPart
from services.credentials import CredentialStore

logger = logging.getLogger(__name__)

Writer = Callable[[Path, AsyncIterable[bytes]], Awaitable[int]]

NO_FILENAME = "<none>"


class UploadService:
    """
    主业务编排：
    - 校验 Authorization（每个请求一次，先于读取任何 part）
    - 逐个读取 part（串行，不并发）：生成落盘名 -> 流式写盘
    - 任一 part 写失败立即返回 500，已经写好的文件保留，剩余 part 不再处理
    - 全部成功返回 200，body 为落盘名列表
    """

    def __init__(
        self,
        credentials: CredentialStore,
        uploads_dir: Path,
        writer: Writer = write_stream,
    ):
        self.credentials = credentials
        self.uploads_dir = uploads_dir
        self.writer = writer

    async def handle(self, credential: Optional[str], parts: AsyncIterator[UploadPart]) -> UploadResponse:
        identifier = self.credentials.authorize(credential)
        if identifier is None:
            logger.warning("[AUTH] Rejected upload with unknown key")
            return fail(status_codes.FORBIDDEN)

        logger.info(f"{identifier} is uploading some files:")

        files: List[UploadedFile] = []
        try:
            async for part in parts:
                orig_filename = part.filename if part.filename is not None else NO_FILENAME
                name = generate_upload_name(part.filename)
                target_path = self.uploads_dir / name

                try:
                    size = await self.writer(target_path, part.chunks)
                except WriteError as e:
                    logger.warning(
                        f"An error occurred while attempting to write {name} (orig: {orig_filename}). error={e.cause!r}"
                    )
                    return fail(status_codes.INTERNAL_ERROR)

                logger.info(f"Uploaded {name} (orig: {orig_filename})")
                logger.debug(f"[WRITE] {name} size={size}bytes")
                files.append(UploadedFile(name=name, original_filename=orig_filename, size_bytes=size))
        except StreamReadError as e:
            logger.warning(f"An error occurred while reading the request body. uploaded={len(files)}, error={e}")
            return fail(status_codes.INTERNAL_ERROR)

        return ok(files)
