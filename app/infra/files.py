# app/infra/files.py
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import AsyncIterable, BinaryIO

logger = logging.getLogger(__name__)


class WriteError(Exception):
    """读 chunk 或写盘失败"""

    def __init__(self, target_path: Path, cause: BaseException):
        super().__init__(f"failed to write {target_path}: {cause}")
        self.target_path = target_path
        self.cause = cause


def ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def _open_for_write(target_path: Path) -> BinaryIO:
    return open(target_path, "wb")


def _close(f: BinaryIO) -> None:
    f.flush()
    f.close()


def _abandon(f: BinaryIO, target_path: Path) -> None:
    try:
        if not f.closed:
            f.close()
        target_path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"[WRITE] Failed to remove partial file. path={target_path}, error={e}")


async def write_stream(target_path: Path, chunks: AsyncIterable[bytes]) -> int:
    """
    把字节流逐块写入 target_path（不存在则创建，存在则截断），返回写入字节数。
    - 不在内存里拼接整个文件，内存占用只有一个 chunk
    - 读 chunk 或写盘任一失败立即中止，抛 WriteError，不重试
    - 失败时删除本次写了一半的文件
    - 成功返回前文件已 flush 并关闭
    """
    try:
        f = await asyncio.to_thread(_open_for_write, target_path)
    except OSError as e:
        raise WriteError(target_path, e) from e

    total = 0
    done = False
    try:
        async for chunk in chunks:
            if not chunk:
                continue
            await asyncio.to_thread(f.write, chunk)
            total += len(chunk)
        await asyncio.to_thread(_close, f)
        done = True
    except Exception as e:
        # 读失败（客户端流异常）和写失败（磁盘满等）一视同仁
        raise WriteError(target_path, e) from e
    finally:
        if not done:
            await asyncio.to_thread(_abandon, f, target_path)

    return total
