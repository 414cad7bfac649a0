# app/infra/multipart.py
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import AsyncIterable, AsyncIterator, Deque, List, Optional, Tuple

from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header
from starlette.requests import ClientDisconnect

logger = logging.getLogger(__name__)

_HEADERS = "headers"
_DATA = "data"
_PART_END = "part_end"

Headers = List[Tuple[bytes, bytes]]


class StreamReadError(Exception):
    """读取请求体失败"""


class PayloadTooLarge(StreamReadError):
    def __init__(self, limit: int):
        super().__init__(f"request body exceeds {limit} bytes")
        self.limit = limit


class InvalidContentType(ValueError):
    """不是 multipart/form-data 或缺少 boundary"""


@dataclass
class UploadPart:
    filename: Optional[str]
    field_name: Optional[str]
    chunks: AsyncIterator[bytes]


def parse_boundary(content_type: Optional[str]) -> bytes:
    if not content_type:
        raise InvalidContentType("missing Content-Type")
    ctype, params = parse_options_header(content_type)
    if ctype.lower() != b"multipart/form-data":
        raise InvalidContentType(f"expected multipart/form-data, got {ctype.decode('latin-1')}")
    boundary = params.get(b"boundary")
    if not boundary:
        raise InvalidContentType("multipart/form-data without boundary")
    return boundary


def _parse_disposition(headers: Headers) -> Tuple[Optional[str], Optional[str]]:
    for name, value in headers:
        if name == b"content-disposition":
            _, options = parse_options_header(value)
            field_name = options.get(b"name")
            filename = options.get(b"filename")
            return (
                field_name.decode("utf-8", "replace") if field_name is not None else None,
                filename.decode("utf-8", "replace") if filename is not None else None,
            )
    return None, None


class MultipartReader:
    """
    把请求体字节流解析成惰性的 part 序列：

        reader = MultipartReader(request.stream(), content_type, max_bytes)
        async for part in reader.parts():
            async for chunk in part.chunks:
                ...

    - 只有消费方要下一个 part / 下一个 chunk 时才从网络读数据，第 N+1 个 part 不会先于第 N 个被读取
    - 消费方没读完的 part，切到下一个 part 前会被丢弃（drain）
    - 解析错误：之前完整的 part 照常产出，之后的内容视为不存在
    - 客户端断开：视为流结束
    - 请求体超过 max_bytes：抛 PayloadTooLarge
    """

    def __init__(
        self,
        stream: AsyncIterable[bytes],
        content_type: Optional[str],
        max_bytes: int,
        chunk_size: int = 64 * 1024,
    ):
        self._stream = stream.__aiter__()
        self._max_bytes = max_bytes
        self._chunk_size = chunk_size
        self._parser = MultipartParser(
            parse_boundary(content_type),
            callbacks={
                "on_part_begin": self._on_part_begin,
                "on_part_data": self._on_part_data,
                "on_part_end": self._on_part_end,
                "on_header_field": self._on_header_field,
                "on_header_value": self._on_header_value,
                "on_header_end": self._on_header_end,
                "on_headers_finished": self._on_headers_finished,
            },
        )

        self._events: Deque[Tuple[str, object]] = deque()
        self._pending = b""
        self._pending_pos = 0
        self._received = 0
        self._exhausted = False
        self._in_part = False

        self._header_field = b""
        self._header_value = b""
        self._headers: Headers = []

    @property
    def received_bytes(self) -> int:
        return self._received

    # parser 回调：只负责把事件放进队列

    def _on_part_begin(self) -> None:
        self._headers = []

    def _on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field += data[start:end]

    def _on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def _on_header_end(self) -> None:
        self._headers.append((self._header_field.lower(), self._header_value))
        self._header_field = b""
        self._header_value = b""

    def _on_headers_finished(self) -> None:
        self._events.append((_HEADERS, self._headers))

    def _on_part_data(self, data: bytes, start: int, end: int) -> None:
        self._events.append((_DATA, data[start:end]))

    def _on_part_end(self) -> None:
        self._events.append((_PART_END, None))

    async def _read_chunk(self) -> Optional[bytes]:
        while True:
            try:
                chunk = await self._stream.__anext__()
            except StopAsyncIteration:
                return None
            except ClientDisconnect:
                logger.warning(f"[MULTIPART] Client disconnected. received={self._received}bytes")
                return None
            if not chunk:
                continue
            self._received += len(chunk)
            if self._received > self._max_bytes:
                raise PayloadTooLarge(self._max_bytes)
            return chunk

    def _finish(self) -> None:
        self._exhausted = True
        try:
            self._parser.finalize()
        except MultipartParseError as e:
            logger.warning(f"[MULTIPART] Body ended inside a part. error={e}")

    async def _pump(self) -> None:
        # 每次最多喂给 parser chunk_size 字节，队列里的数据量也就不超过一个 chunk
        if self._pending_pos >= len(self._pending):
            chunk = await self._read_chunk()
            if chunk is None:
                self._finish()
                return
            self._pending = chunk
            self._pending_pos = 0

        piece = self._pending[self._pending_pos:self._pending_pos + self._chunk_size]
        self._pending_pos += len(piece)
        try:
            self._parser.write(piece)
        except MultipartParseError as e:
            logger.warning(f"[MULTIPART] Malformed multipart body, ignoring the rest. error={e}")
            self._exhausted = True

    async def _next_event(self) -> Optional[Tuple[str, object]]:
        while not self._events:
            if self._exhausted:
                return None
            await self._pump()
        return self._events.popleft()

    async def _part_chunks(self) -> AsyncIterator[bytes]:
        while self._in_part:
            event = await self._next_event()
            if event is None:
                self._in_part = False
                return
            kind, payload = event
            if kind == _DATA:
                yield payload
            elif kind == _PART_END:
                self._in_part = False

    async def parts(self) -> AsyncIterator[UploadPart]:
        while True:
            event = await self._next_event()
            if event is None:
                return
            kind, payload = event
            if kind != _HEADERS:
                continue

            field_name, filename = _parse_disposition(payload)
            self._in_part = True
            yield UploadPart(filename=filename, field_name=field_name, chunks=self._part_chunks())

            if self._in_part:
                async for _ in self._part_chunks():
                    pass
