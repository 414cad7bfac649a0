# app/core/stats.py
from __future__ import annotations

import time
from dataclasses import dataclass, field
from threading import Lock
from typing import Set


@dataclass
class ServiceStats:
    """服务运行状态统计"""
    start_time: float = field(default_factory=time.time)
    total_requests: int = 0
    success_count: int = 0
    failed_count: int = 0
    rejected_count: int = 0
    files_written: int = 0
    bytes_written: int = 0
    processing_ids: Set[str] = field(default_factory=set)
    _lock: Lock = field(default_factory=Lock, repr=False)

    def add_processing(self, request_id: str) -> None:
        with self._lock:
            self.total_requests += 1
            self.processing_ids.add(request_id)

    def finish_success(self, request_id: str, files: int, size_bytes: int) -> None:
        with self._lock:
            self.success_count += 1
            self.files_written += files
            self.bytes_written += size_bytes
            self.processing_ids.discard(request_id)

    def finish_failed(self, request_id: str) -> None:
        with self._lock:
            self.failed_count += 1
            self.processing_ids.discard(request_id)

    def finish_rejected(self, request_id: str) -> None:
        """403/400/413 等没有进入写盘阶段的请求"""
        with self._lock:
            self.rejected_count += 1
            self.processing_ids.discard(request_id)

    def get_snapshot(self) -> dict:
        now = time.time()

        # 锁内只复制数据
        with self._lock:
            start_time = self.start_time
            total_requests = self.total_requests
            success_count = self.success_count
            failed_count = self.failed_count
            rejected_count = self.rejected_count
            files_written = self.files_written
            bytes_written = self.bytes_written
            processing_ids = list(self.processing_ids)

        uptime_seconds = int(now - start_time)
        return {
            "start_time": time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(start_time)),
            "uptime_seconds": uptime_seconds,
            "uptime_formatted": self._format_uptime(uptime_seconds),
            "total_requests": total_requests,
            "success_count": success_count,
            "failed_count": failed_count,
            "rejected_count": rejected_count,
            "files_written": files_written,
            "bytes_written": bytes_written,
            "processing_count": len(processing_ids),
            "processing_ids": sorted(processing_ids),
        }

    @staticmethod
    def _format_uptime(seconds: int) -> str:
        days = seconds // 86400
        hours = (seconds % 86400) // 3600
        minutes = (seconds % 3600) // 60
        secs = seconds % 60

        parts = []
        if days > 0:
            parts.append(f"{days}d")
        if hours > 0:
            parts.append(f"{hours}h")
        if minutes > 0:
            parts.append(f"{minutes}m")
        parts.append(f"{secs}s")

        return " ".join(parts)
