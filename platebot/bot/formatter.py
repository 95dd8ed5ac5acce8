"""Message formatters for Telegram replies."""

from dataclasses import dataclass

from telegram import InlineKeyboardButton, InlineKeyboardMarkup
from telegram.constants import ParseMode

from platebot.datasource.vehicle import VehicleRecord
from platebot.preferences import DISPLAY_FIELDS, SUPPORTED_LANGUAGES, UserSettings
from platebot.services.errors import ErrorClassification, ErrorCode
from platebot.services.rate_limiter import RateLimitResult


@dataclass
class FormattedMessage:
    text: str
    reply_markup: InlineKeyboardMarkup | None = None
    parse_mode: str | None = ParseMode.MARKDOWN


def escape_md(text: str) -> str:
    """Escape special Markdown characters for safe display."""
    for char in ["_", "*", "`", "["]:
        text = text.replace(char, "\\" + char)
    return text


def _keyboard(*rows: list[tuple[str, str]]) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        [[InlineKeyboardButton(label, callback_data=data) for label, data in row] for row in rows]
    )


FIELD_LABELS = {
    "manufacturer": "🏭 Manufacturer",
    "model": "🚗 Model",
    "year": "📅 Year",
    "color": "🎨 Color",
    "engine_volume": "⚙️ Engine",
    "fuel_type": "⛽ Fuel",
    "ownership_type": "👤 Ownership",
    "test_date": "🔍 Test valid until",
    "disability_permit": "♿ Disability permit",
    "vehicle_type": "🚙 Vehicle type",
    "registration_date": "🛣️ On road since",
}

LANGUAGE_LABELS = {"he": "עברית", "en": "English", "ar": "العربية", "ru": "Русский"}

ERROR_MESSAGES = {
    ErrorCode.NETWORK_TIMEOUT: "⏱️ The registry took too long to answer. Please try again.",
    ErrorCode.NETWORK_ERROR: "🌐 Could not reach the registry. Please try again later.",
    ErrorCode.API_SERVER_ERROR: "🛠️ The registry is having problems. Please try again later.",
    ErrorCode.RATE_LIMIT_EXCEEDED: "🚦 The registry is busy. Please wait a minute and retry.",
    ErrorCode.API_NOT_FOUND: "🔍 No results found.",
    ErrorCode.API_ERROR: "❌ The registry rejected the request.",
    ErrorCode.API_INVALID_RESPONSE: "❌ The registry sent an unexpected answer.",
    ErrorCode.INVALID_IDENTIFIER: "❌ That is not a valid plate number. Send 7-8 digits.",
    ErrorCode.UNKNOWN_ERROR: "❌ Something went wrong. Please try again later.",
}


def main_menu_keyboard() -> InlineKeyboardMarkup:
    return _keyboard(
        [("🔍 New search", "new_search"), ("❓ Help", "help")],
        [("⚙️ Settings", "settings")],
    )


def format_welcome() -> FormattedMessage:
    text = (
        "👋 *Welcome to PlateBot*\n\n"
        "Send an Israeli licence plate number (7-8 digits) and I will look it up "
        "in the national vehicle registry.\n\n"
        "Examples: `12345678`, `123-45-678`, `12.345.67`"
    )
    return FormattedMessage(text, main_menu_keyboard())


def format_help() -> FormattedMessage:
    text = (
        "❓ *Help*\n\n"
        "• Send a plate number to search (separators `-` `.` and spaces are fine)\n"
        "• /settings: choose which fields to show and your language\n"
        "• /start: main menu\n\n"
        "Data source: data.gov.il"
    )
    return FormattedMessage(text, _keyboard([("🏠 Main menu", "main_menu")]))


def format_main_menu() -> FormattedMessage:
    return FormattedMessage("🏠 *Main menu*\n\nSend a plate number to search.", main_menu_keyboard())


def format_new_search() -> FormattedMessage:
    return FormattedMessage("🔍 Send the plate number to search for.", None, None)


def format_searching() -> FormattedMessage:
    return FormattedMessage(
        "⏳ Searching the registry...", _keyboard([("✖️ Cancel", "cancel_search")]), None
    )


def format_search_in_progress() -> FormattedMessage:
    return FormattedMessage("⏳ A search for this plate is already running...", None, None)


def format_search_cancelled() -> FormattedMessage:
    return FormattedMessage(
        "❌ *Search cancelled*\n\nSend a new plate number to search.",
        _keyboard([("🔍 New search", "new_search"), ("❓ Help", "help")]),
    )


def format_retry_prompt() -> FormattedMessage:
    return FormattedMessage(
        "🔄 *Try again*\n\nSend the plate number again.",
        _keyboard([("❓ Help", "help"), ("🏠 Main menu", "main_menu")]),
    )


def _field_value(record: VehicleRecord, name: str, has_permit: bool) -> str:
    if name == "disability_permit":
        return "Yes" if has_permit else "No"
    if name == "engine_volume" and record.engine_volume:
        return f"{record.engine_volume} cc"
    return getattr(record, name, "")


def format_vehicle(
    record: VehicleRecord, settings: UserSettings, has_permit: bool = False
) -> FormattedMessage:
    """Format a vehicle card with the fields the user enabled."""
    lines = [f"🚘 *{escape_md(record.title)}*", f"Plate: `{record.license_plate}`", ""]

    for name in settings.enabled_fields():
        value = _field_value(record, name, has_permit)
        if not value:
            continue
        label = FIELD_LABELS.get(name, name)
        if settings.compact_mode:
            label = label.split(" ", 1)[0]
        lines.append(f"{label}: {escape_md(value)}")

    if len(lines) == 3:
        lines.append("No fields selected for display.")

    return FormattedMessage(
        "\n".join(lines),
        _keyboard([("🔍 New search", "new_search"), ("⚙️ Settings", "settings_fields")]),
    )


def format_no_results(identifier: str) -> FormattedMessage:
    return FormattedMessage(
        f"🔍 No vehicle found for plate `{identifier}`.",
        _keyboard([("🔍 New search", "new_search"), ("❓ Help", "help")]),
    )


def format_error(classification: ErrorClassification) -> FormattedMessage:
    """User-facing text for a classified failure."""
    rows = []
    if classification.retryable:
        rows.append([("🔄 Try again", "retry_search")])
    rows.append([("🔍 New search", "new_search"), ("❓ Help", "help")])
    return FormattedMessage(ERROR_MESSAGES[classification.code], _keyboard(*rows), None)


def format_rate_limit(result: RateLimitResult, window_seconds: float) -> FormattedMessage:
    minutes, seconds = divmod(result.retry_after, 60)
    if minutes and seconds:
        wait = f"{minutes} min {seconds} s"
    elif minutes:
        wait = f"{minutes} min"
    else:
        wait = f"{seconds} s"

    text = (
        "⏳ Too many requests!\n\n"
        f"Please wait {wait} before your next search.\n\n"
        f"💡 Limit: {result.limit} requests per {int(window_seconds)} s"
    )
    return FormattedMessage(text, None, None)


def format_settings_menu(settings: UserSettings) -> FormattedMessage:
    text = (
        "⚙️ *Settings*\n\n"
        f"Language: {LANGUAGE_LABELS.get(settings.language, settings.language)}\n"
        f"Compact mode: {'on' if settings.compact_mode else 'off'}\n"
        f"Notifications: {'on' if settings.notifications else 'off'}"
    )
    return FormattedMessage(
        text,
        _keyboard(
            [("📋 Display fields", "settings_fields"), ("🌐 Language", "settings_language")],
            [("📐 Compact mode", "settings_compact"), ("🔔 Notifications", "settings_notifications")],
            [("♻️ Reset", "settings_reset"), ("🏠 Main menu", "main_menu")],
        ),
    )


def format_fields_menu(settings: UserSettings) -> FormattedMessage:
    rows = []
    for name in DISPLAY_FIELDS:
        mark = "✅" if settings.display_fields.get(name) else "⬜"
        rows.append([(f"{mark} {FIELD_LABELS[name]}", f"toggle_field_{name}")])
    rows.append([("💾 Save", "save_fields")])
    return FormattedMessage("📋 *Display fields*\n\nTap a field to toggle it.", _keyboard(*rows))


def format_language_menu(settings: UserSettings) -> FormattedMessage:
    row = [
        (("• " if code == settings.language else "") + LANGUAGE_LABELS[code], f"set_language_{code}")
        for code in SUPPORTED_LANGUAGES
    ]
    return FormattedMessage(
        "🌐 *Language*", _keyboard(row, [("⬅️ Back", "settings")])
    )


def format_unrecognized_text() -> FormattedMessage:
    return FormattedMessage(
        "🤔 I did not understand that. Send a plate number or use /help.", None, None
    )


def format_unsupported(message_type: str = "other") -> FormattedMessage:
    if message_type == "other":
        return FormattedMessage("📎 Only text messages are supported.", None, None)
    kind = message_type.replace("_", " ")
    return FormattedMessage(
        f"📎 I can't read {kind} messages. Only text messages are supported.", None, None
    )
