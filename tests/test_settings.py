from __future__ import annotations

from datetime import timedelta

import pytest
from pydantic import ValidationError

from platebot.preferences import SettingsStore, UserSettings
from platebot.settings import Settings


def test_defaults():
    settings = Settings()

    assert settings.rate_limit_window == timedelta(minutes=1)
    assert settings.rate_limit_max_requests == 10
    assert settings.api_timeout_seconds == 5.0
    assert settings.api_retry_attempts == 3
    assert settings.api_retry_delay == timedelta(seconds=1)
    assert settings.cache_ttl == timedelta(minutes=5)
    assert settings.cache_cleanup_interval == timedelta(minutes=1)


def test_reads_environment_names():
    settings = Settings.model_validate(
        {
            "TELEGRAM_BOT_TOKEN": "123:abc",
            "RATE_LIMIT_WINDOW_MS": "30000",
            "RATE_LIMIT_MAX_REQUESTS": "5",
            "API_TIMEOUT": "2500",
            "CACHE_MAX_SIZE": "50",
            "PATH": "/usr/bin",
        }
    )

    assert settings.telegram_bot_token == "123:abc"
    assert settings.rate_limit_window == timedelta(seconds=30)
    assert settings.rate_limit_max_requests == 5
    assert settings.api_timeout_seconds == 2.5
    assert settings.cache_max_size == 50


def test_rejects_non_positive_limits():
    with pytest.raises(ValidationError):
        Settings.model_validate({"RATE_LIMIT_MAX_REQUESTS": "0"})


def test_user_settings_toggle_and_language():
    prefs = UserSettings(user_id="7")

    assert "vehicle_type" not in prefs.enabled_fields()
    assert prefs.toggle_field("vehicle_type") is True
    assert "vehicle_type" in prefs.enabled_fields()
    assert prefs.toggle_field("nope") is None

    assert prefs.set_language("ru")
    assert not prefs.set_language("de")
    assert prefs.language == "ru"


def test_settings_store_get_and_reset():
    store = SettingsStore()
    store.get(7).compact_mode = True

    assert store.get("7").compact_mode is True
    assert store.reset(7).compact_mode is False
    assert len(store) == 1
