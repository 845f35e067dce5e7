from __future__ import annotations

import sys
from pathlib import Path

import pytest

BASE_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = BASE_DIR / "src"

sys.path.insert(0, str(SRC_DIR))

from pelycan_client.config import ClientConfig  # noqa: E402
from pelycan_client.http_client import HttpClient  # noqa: E402
from pelycan_client.kv_store import KeyValueStore  # noqa: E402

API_BASE_URL = "https://api.example.com"


@pytest.fixture
def config(tmp_path: Path) -> ClientConfig:
    return ClientConfig(
        env_name="test",
        api_base_url=API_BASE_URL,
        connect_timeout_seconds=1.0,
        read_timeout_seconds=1.0,
        storage_path=str(tmp_path / "storage.json"),
    )


@pytest.fixture
def store(tmp_path: Path) -> KeyValueStore:
    return KeyValueStore(tmp_path / "storage.json")


@pytest.fixture
def http(config: ClientConfig) -> HttpClient:
    return HttpClient(config)
