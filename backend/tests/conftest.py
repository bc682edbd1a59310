"""Общие фикстуры: секрет токенов и чистое in-memory состояние."""
import pytest

from xo_rooms.config import get_config
from xo_rooms.directory import directory
from xo_rooms.ws_manager import manager

TEST_SECRET = "test-secret"


@pytest.fixture(autouse=True)
def auth_env(monkeypatch):
    monkeypatch.setenv("AUTH_SECRET", TEST_SECRET)
    monkeypatch.setenv("TOKEN_TTL_SECONDS", "3600")
    monkeypatch.delenv("DEBUG", raising=False)
    get_config.cache_clear()
    yield get_config()
    get_config.cache_clear()


@pytest.fixture(autouse=True)
def clear_state():
    directory.clear()
    manager.clear()
    yield
    directory.clear()
    manager.clear()
