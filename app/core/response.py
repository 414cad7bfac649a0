# app/core/response.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from starlette.responses import PlainTextResponse, Response

from core import status_codes


@dataclass(frozen=True)
class UploadedFile:
    # 落盘名 + 原始文件名（原始文件名只出现在日志里）
    name: str
    original_filename: str
    size_bytes: int = 0


@dataclass(frozen=True)
class UploadResponse:
    status_code: int
    body: str = ""
    files: List[UploadedFile] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status_code == status_codes.OK

    def to_response(self) -> Response:
        if self.ok:
            return PlainTextResponse(self.body, status_code=self.status_code)
        return Response(status_code=self.status_code)


def ok(files: List[UploadedFile]) -> UploadResponse:
    """
    成功：200，body 为落盘名，每行一个
    """
    return UploadResponse(
        status_code=status_codes.OK,
        body="\n".join(f.name for f in files),
        files=list(files),
    )


def fail(code: int) -> UploadResponse:
    """
    失败：非 200，body 固定为空
    """
    return UploadResponse(status_code=code)
