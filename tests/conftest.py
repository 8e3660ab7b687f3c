from __future__ import annotations

import os

import pytest

from dynavest.config import Settings

USER = "0x1111111111111111111111111111111111111111"
FEE_RECEIVER = "0x2222222222222222222222222222222222222222"


@pytest.fixture(autouse=True)
def isolate_settings_from_host_env(monkeypatch: pytest.MonkeyPatch):
    original_env_file = Settings.model_config.get("env_file")
    Settings.model_config["env_file"] = None

    settings_env_keys: set[str] = set()
    for field in Settings.model_fields.values():
        if isinstance(field.alias, str):
            settings_env_keys.add(field.alias)

    for key in list(os.environ):
        if key in settings_env_keys or key in {"HTTPX_LOG_LEVEL", "HTTPCORE_LOG_LEVEL"}:
            monkeypatch.delenv(key, raising=False)

    yield

    Settings.model_config["env_file"] = original_env_file


@pytest.fixture
def user() -> str:
    return USER


@pytest.fixture
def fee_receiver() -> str:
    return FEE_RECEIVER
