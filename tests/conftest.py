from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

# Keep tests independent of any developer .env and of real provider keys.
os.environ.setdefault("LLM_API_KEY", "test-key")
os.environ.setdefault("BEGIN_DELAY_SECONDS", "0")


@pytest.fixture()
def settings_env(monkeypatch):
    """Set environment overrides and rebuild the cached settings around a test."""

    from config.settings import get_settings

    def apply(**values: str) -> None:
        for key, value in values.items():
            monkeypatch.setenv(key.upper(), value)
        get_settings.cache_clear()

    yield apply
    get_settings.cache_clear()


@pytest.fixture()
def app():
    import main

    yield main.app
    main.app.dependency_overrides.clear()
