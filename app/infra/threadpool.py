# app/infra/threadpool.py
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

from core.config import AppConfig


def create_threadpool(cfg: AppConfig) -> ThreadPoolExecutor:
    """
    创建线程池：文件打开/写入/关闭等阻塞调用 offload 到这里，避免阻塞事件循环。
    启动时设为 loop 的默认 executor，asyncio.to_thread 会用到它。
    """
    workers = cfg.server.threadpool_workers
    return ThreadPoolExecutor(max_workers=workers, thread_name_prefix="ssu")
