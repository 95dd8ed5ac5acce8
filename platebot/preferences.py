"""
Per-user display preferences, held in memory for the life of the process.
"""

from datetime import datetime

from pydantic import BaseModel, Field

SUPPORTED_LANGUAGES = ("he", "en", "ar", "ru")

# Fields shown on a vehicle card, in display order
DISPLAY_FIELDS = (
    "manufacturer",
    "model",
    "year",
    "color",
    "engine_volume",
    "fuel_type",
    "ownership_type",
    "test_date",
    "disability_permit",
    "vehicle_type",
    "registration_date",
)

_DEFAULT_OFF = {"vehicle_type", "registration_date"}


def default_display_fields() -> dict[str, bool]:
    return {name: name not in _DEFAULT_OFF for name in DISPLAY_FIELDS}


class UserSettings(BaseModel):
    """Display preferences for one user."""

    user_id: str
    language: str = "he"
    display_fields: dict[str, bool] = Field(default_factory=default_display_fields)
    compact_mode: bool = False
    notifications: bool = True
    updated_at: datetime = Field(default_factory=datetime.now)

    def toggle_field(self, field_name: str) -> bool | None:
        """Flip a display field. Returns its new state, or None if unknown."""
        if field_name not in self.display_fields:
            return None
        self.display_fields[field_name] = not self.display_fields[field_name]
        self.updated_at = datetime.now()
        return self.display_fields[field_name]

    def set_language(self, language: str) -> bool:
        if language not in SUPPORTED_LANGUAGES:
            return False
        self.language = language
        self.updated_at = datetime.now()
        return True

    def enabled_fields(self) -> list[str]:
        return [name for name in DISPLAY_FIELDS if self.display_fields.get(name)]


class SettingsStore:
    """In-memory map of user id -> UserSettings."""

    def __init__(self):
        self._settings: dict[str, UserSettings] = {}

    def get(self, user_id: str | int) -> UserSettings:
        key = str(user_id)
        if key not in self._settings:
            self._settings[key] = UserSettings(user_id=key)
        return self._settings[key]

    def reset(self, user_id: str | int) -> UserSettings:
        key = str(user_id)
        self._settings[key] = UserSettings(user_id=key)
        return self._settings[key]

    def __len__(self) -> int:
        return len(self._settings)
