"""
Test conftest — isolate TASKPULL_ environment variables and the settings
singleton so config tests are not affected by the developer's or CI
environment.
"""
import os

import pytest


@pytest.fixture(autouse=True)
def _isolate_settings_env(monkeypatch):
    """Remove TASKPULL_* env vars for every test so Settings() behaves as
    if nothing is configured unless the test explicitly sets it.
    Also disables .env file loading so local developer .env files don't
    leak into tests."""
    for var in list(os.environ):
        if var.upper().startswith("TASKPULL_"):
            monkeypatch.delenv(var, raising=False)

    # Disable .env file loading by patching Settings.model_config
    import taskpull.config.settings as settings_module
    from pydantic_settings import SettingsConfigDict
    patched_config = SettingsConfigDict(
        env_prefix="TASKPULL_",
        env_file=None,
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )
    monkeypatch.setattr(settings_module.Settings, "model_config", patched_config)

    settings_module.reset_settings()
    yield
    settings_module.reset_settings()
