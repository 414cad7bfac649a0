# app/services/credentials.py
from __future__ import annotations

import json
import logging
from pathlib import Path
from threading import Lock
from types import MappingProxyType
from typing import Mapping, Optional

logger = logging.getLogger(__name__)


class CredentialStoreError(Exception):
    """keys.json 不存在或无法解析，启动阶段致命"""


class CredentialStore:
    """
    key -> identifier 的只读映射，进程启动时构建一次，之后只读。
    读取时加锁；拿不到锁按未授权处理，不向调用方抛异常。
    """

    def __init__(self, keys: Mapping[str, str], lock_timeout_s: float = 1.0):
        self._keys = MappingProxyType(dict(keys))
        self._lock = Lock()
        self._lock_timeout_s = lock_timeout_s

    def __len__(self) -> int:
        return len(self._keys)

    def authorize(self, key: Optional[str]) -> Optional[str]:
        """返回 key 对应的 identifier；未授权返回 None"""
        if key is None:
            return None
        # 阻塞式 acquire：临界区只有一次 dict 查找，持锁时间极短，不会卡住事件循环
        if not self._lock.acquire(timeout=self._lock_timeout_s):
            logger.warning("[AUTH] Failed to acquire credential lock, treating as unauthorized")
            return None
        try:
            return self._keys.get(key)
        finally:
            self._lock.release()


def load_credential_store(path: str | Path, lock_timeout_s: float = 1.0) -> CredentialStore:
    p = Path(path)
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise CredentialStoreError(f"Could not read {p}") from e
    except (OSError, UnicodeDecodeError) as e:
        raise CredentialStoreError(f"Could not read {p}: {e}") from e
    except json.JSONDecodeError as e:
        raise CredentialStoreError(f"Could not parse {p}: {e}") from e

    if not isinstance(raw, dict):
        raise CredentialStoreError(f"Could not parse {p}: expected a JSON object")
    for v in raw.values():
        if not isinstance(v, str):
            raise CredentialStoreError(f"Could not parse {p}: identifier for a key must be a string")

    store = CredentialStore(raw, lock_timeout_s=lock_timeout_s)
    logger.info(f"[AUTH] Loaded {len(store)} upload keys from {p}")
    return store
