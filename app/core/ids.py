# app/core/ids.py
from __future__ import annotations

import random
import re
import string
import uuid

# A-Z a-z 0-9 - _ ~ 共 65 个字符，顺序固定
GEN_STR_CHARSET = string.ascii_uppercase + string.ascii_lowercase + string.digits + "-_~"

# 有扩展名时随机部分 5 位，无扩展名时 6 位
NAME_LENGTH_WITH_EXT = 5
NAME_LENGTH_NO_EXT = 6

_EXTENSION_RE = re.compile(r"\w+")
_sysrand = random.SystemRandom()

# 能覆盖整个字符集的最少位数
_SAMPLE_BITS = (len(GEN_STR_CHARSET) - 1).bit_length()


def new_request_id() -> str:
    """
    生成 request_id：默认 UUID4（无状态、低冲突、简单可靠）
    """
    return uuid.uuid4().hex


def _sample_char(rng: random.Random) -> str:
    # 取 32 位随机数的高 7 位（0..127），>= 65 则重抽（拒绝采样，不用取模）
    n = len(GEN_STR_CHARSET)
    while True:
        v = rng.getrandbits(32) >> (32 - _SAMPLE_BITS)
        if v < n:
            return GEN_STR_CHARSET[v]


def generate_random_string(length: int, rng: random.Random | None = None) -> str:
    """
    从 GEN_STR_CHARSET 中等概率抽取 length 个字符。
    不检查是否与已生成的名字重复。
    """
    if length < 0:
        raise ValueError(f"length must be >= 0, got {length}")
    r = rng or _sysrand
    return "".join(_sample_char(r) for _ in range(length))


def split_extension(filename: str | None) -> str | None:
    """
    取最后一个 '.' 之后的部分作为扩展名；为空或含非单词字符（如 '/'）时视为没有扩展名。
    """
    if not filename or "." not in filename:
        return None
    ext = filename.rsplit(".", 1)[1]
    if not _EXTENSION_RE.fullmatch(ext):
        return None
    return ext


def generate_upload_name(original_filename: str | None, rng: random.Random | None = None) -> str:
    """
    上传文件落盘名：photo.jpg -> 'aB3_~.jpg'，archive -> 'Zk9-Qa'
    """
    ext = split_extension(original_filename)
    if ext is None:
        return generate_random_string(NAME_LENGTH_NO_EXT, rng)
    return f"{generate_random_string(NAME_LENGTH_WITH_EXT, rng)}.{ext}"
