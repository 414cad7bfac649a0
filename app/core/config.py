# app/core/config.py
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

# Python 3.11+ 用 tomllib；3.10 可用 tomli 替代
import tomli as tomllib

SERVICE_NAME = "super-simple-upload"


@dataclass(frozen=True)
class ServerConfig:
    host: str = "0.0.0.0"
    # 环境变量 PORT 优先
    port: int = 8080
    # 线程池：文件写入等阻塞 IO（异步接口会把重活丢到线程池）
    threadpool_workers: int = 8
    # 日志级别（DEBUG, INFO, WARNING, ERROR）
    log_level: str = "INFO"
    log_dir: str = "logs"
    version: str = "1.0.0"


@dataclass(frozen=True)
class UploadConfig:
    uploads_dir: str = "uploads"
    # key -> identifier 的 JSON 对象
    keys_file: str = "keys.json"

    # 服务保护：单个请求体上限（默认 1GB）
    max_request_mb: int = 1024
    read_chunk_kb: int = 64

    credential_lock_timeout_s: float = 1.0

    @property
    def max_request_bytes(self) -> int:
        return self.max_request_mb * 1024 * 1024

    @property
    def read_chunk_bytes(self) -> int:
        return self.read_chunk_kb * 1024


@dataclass(frozen=True)
class AppConfig:
    server: ServerConfig = ServerConfig()
    upload: UploadConfig = UploadConfig()
    # 相对路径以配置文件所在目录为基准
    base_dir: Path = Path(".")

    def resolve(self, p: str) -> Path:
        path = Path(p)
        return path if path.is_absolute() else (self.base_dir / path).resolve()


def _get_table(d: Dict[str, Any], key: str) -> Dict[str, Any]:
    v = d.get(key, {})
    return v if isinstance(v, dict) else {}


def _port_from_env(default: int) -> int:
    raw = os.environ.get("PORT")
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"PORT env var is not a valid port: {raw!r}") from None


def load_config(path: str | Path = "config.toml") -> AppConfig:
    """
    从 config.toml 读取配置。
    - 文件不存在时全部使用默认值
    - 缺失字段使用 dataclass 默认值
    - 类型尽量做强转，避免 toml 里写成字符串导致的类型问题
    - 环境变量 PORT 覆盖 server.port
    """
    p = Path(path)
    raw = tomllib.loads(p.read_text(encoding="utf-8")) if p.exists() else {}

    server = _get_table(raw, "server")
    upload = _get_table(raw, "upload")

    server_cfg = ServerConfig(
        host=str(server.get("host", ServerConfig.host)),
        port=_port_from_env(int(server.get("port", ServerConfig.port))),
        threadpool_workers=int(server.get("threadpool_workers", ServerConfig.threadpool_workers)),
        log_level=str(server.get("log_level", ServerConfig.log_level)).upper(),
        log_dir=str(server.get("log_dir", ServerConfig.log_dir)),
        version=str(server.get("version", ServerConfig.version)),
    )

    upload_cfg = UploadConfig(
        uploads_dir=str(upload.get("uploads_dir", UploadConfig.uploads_dir)),
        keys_file=str(upload.get("keys_file", UploadConfig.keys_file)),
        max_request_mb=int(upload.get("max_request_mb", UploadConfig.max_request_mb)),
        read_chunk_kb=int(upload.get("read_chunk_kb", UploadConfig.read_chunk_kb)),
        credential_lock_timeout_s=float(
            upload.get("credential_lock_timeout_s", UploadConfig.credential_lock_timeout_s)
        ),
    )

    # 基础校验：避免明显错误配置
    if not 0 < server_cfg.port < 65536:
        raise ValueError(f"server.port must be in 1..65535, got {server_cfg.port}")
    if server_cfg.threadpool_workers <= 0:
        raise ValueError("server.threadpool_workers must be > 0")
    valid_log_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
    if server_cfg.log_level not in valid_log_levels:
        raise ValueError(f"server.log_level must be one of {valid_log_levels}, got {server_cfg.log_level}")
    if upload_cfg.max_request_mb <= 0:
        raise ValueError("upload.max_request_mb must be > 0")
    if upload_cfg.read_chunk_kb <= 0:
        raise ValueError("upload.read_chunk_kb must be > 0")
    if upload_cfg.credential_lock_timeout_s <= 0:
        raise ValueError("upload.credential_lock_timeout_s must be > 0")

    return AppConfig(server=server_cfg, upload=upload_cfg, base_dir=p.resolve().parent)
