# app/utils/validate.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class RequestCheck:
    ok: bool
    code: int
    content_length: Optional[int]


def check_upload_request(
    authorization: Optional[str],
    content_length: Optional[str],
    max_bytes: int,
    bad_request_code: int,
    too_large_code: int,
) -> RequestCheck:
    """
    上传请求的前置校验（在鉴权之前，不读请求体）：
    - Content-Length 不是整数：bad_request_code
    - Content-Length 超过上限：too_large_code
    - 缺少 Authorization：bad_request_code
    没有 Content-Length（chunked）时放行，读请求体时再按 max_bytes 限制。
    """
    length: Optional[int] = None
    if content_length is not None:
        try:
            length = int(content_length)
        except ValueError:
            return RequestCheck(ok=False, code=bad_request_code, content_length=None)
        if length < 0:
            return RequestCheck(ok=False, code=bad_request_code, content_length=None)
        if length > max_bytes:
            return RequestCheck(ok=False, code=too_large_code, content_length=length)

    if authorization is None:
        return RequestCheck(ok=False, code=bad_request_code, content_length=length)

    return RequestCheck(ok=True, code=0, content_length=length)
