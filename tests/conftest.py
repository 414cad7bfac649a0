import json
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
APP_DIR = ROOT / "app"
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))


@pytest.fixture
def service_root(tmp_path, monkeypatch):
    """临时目录里的 config.toml + keys.json"""
    monkeypatch.delenv("PORT", raising=False)
    (tmp_path / "keys.json").write_text(json.dumps({"abc123": "alice"}), encoding="utf-8")
    (tmp_path / "config.toml").write_text(
        "[server]\n"
        'log_dir = "logs"\n'
        "threadpool_workers = 2\n"
        "[upload]\n"
        'uploads_dir = "uploads"\n'
        'keys_file = "keys.json"\n'
        "read_chunk_kb = 4\n",
        encoding="utf-8",
    )
    return tmp_path
