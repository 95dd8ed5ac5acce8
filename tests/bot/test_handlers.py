from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from telegram.error import TelegramError

from platebot.bot.handlers import BotHandlers
from platebot.datasource.vehicle import VehicleRecord
from platebot.preferences import SettingsStore
from platebot.services.guard import SearchGuard

RECORD = VehicleRecord(
    license_plate="1234567",
    manufacturer="Toyota",
    model="Corolla",
    year=2020,
    color="White",
    vehicle_type="M1",
)


class StubLookup:
    def __init__(self, record=None, permit=False):
        self.record = record
        self.permit = permit

    async def search_vehicle(self, plate):
        return self.record

    async def check_disability_permit(self, plate):
        return self.permit


@pytest.fixture
def bot():
    return SimpleNamespace(
        send_message=AsyncMock(return_value=SimpleNamespace(message_id=100)),
        edit_message_text=AsyncMock(),
        answer_callback_query=AsyncMock(),
    )


def _handlers(bot, lookup=None) -> BotHandlers:
    return BotHandlers(bot, lookup or StubLookup(), SearchGuard(), SettingsStore())


def _callback_kwargs(**extra):
    return {"sender_id": 7, "chat_id": 70, "message_id": 9, "callback_id": "cb", **extra}


@pytest.mark.asyncio
async def test_search_edits_searching_message_with_vehicle_card(bot):
    handlers = _handlers(bot, StubLookup(RECORD, permit=True))

    handled = await handlers.handle_identifier_search(
        identifier="1234567", message_id=5, sender_id=7, chat_id=70
    )

    assert handled is True
    searching = bot.send_message.await_args.kwargs
    assert "Searching" in searching["text"]
    assert searching["reply_to_message_id"] == 5
    card = bot.edit_message_text.await_args.kwargs
    assert card["message_id"] == 100
    assert "Toyota Corolla 2020" in card["text"]
    assert "Disability permit: Yes" in card["text"]
    # off by default
    assert "M1" not in card["text"]


@pytest.mark.asyncio
async def test_search_without_record_reports_no_results(bot):
    handlers = _handlers(bot, StubLookup(None))

    await handlers.handle_identifier_search(
        identifier="7654321", message_id=5, sender_id=7, chat_id=70
    )

    assert "No vehicle found" in bot.edit_message_text.await_args.kwargs["text"]


@pytest.mark.asyncio
async def test_duplicate_search_is_rejected_while_in_flight(bot):
    handlers = _handlers(bot, StubLookup(RECORD))
    handlers.guard.try_acquire(SearchGuard.make_key(7, "1234567"))

    handled = await handlers.handle_identifier_search(
        identifier="1234567", message_id=5, sender_id=7, chat_id=70
    )

    assert handled is False
    busy = bot.send_message.await_args.kwargs
    assert "already running" in busy["text"]
    assert busy["reply_to_message_id"] == 5
    bot.edit_message_text.assert_not_awaited()


@pytest.mark.asyncio
async def test_edit_failure_falls_back_to_new_message(bot):
    bot.edit_message_text.side_effect = TelegramError("message is not modified")
    handlers = _handlers(bot)

    await handlers.handle_help_callback(**_callback_kwargs())

    bot.answer_callback_query.assert_awaited_once()
    assert bot.send_message.await_count == 1


@pytest.mark.asyncio
async def test_toggle_field_updates_settings(bot):
    handlers = _handlers(bot)

    assert await handlers.handle_toggle_field_callback(
        field_name="color", **_callback_kwargs()
    )

    assert handlers.settings_store.get(7).display_fields["color"] is False


@pytest.mark.asyncio
async def test_toggle_unknown_field_is_refused(bot):
    handlers = _handlers(bot)

    assert not await handlers.handle_toggle_field_callback(
        field_name="price", **_callback_kwargs()
    )
    assert bot.answer_callback_query.await_args.kwargs["text"] == "Unknown field"


@pytest.mark.asyncio
async def test_set_language(bot):
    handlers = _handlers(bot)

    assert await handlers.handle_set_language_callback(language="en", **_callback_kwargs())
    assert handlers.settings_store.get(7).language == "en"
    assert not await handlers.handle_set_language_callback(language="fr", **_callback_kwargs())


@pytest.mark.asyncio
async def test_compact_toggle_and_reset(bot):
    handlers = _handlers(bot)

    await handlers.handle_compact_settings_callback(**_callback_kwargs())
    assert handlers.settings_store.get(7).compact_mode is True

    await handlers.handle_reset_settings_callback(**_callback_kwargs())
    assert handlers.settings_store.get(7).compact_mode is False


@pytest.mark.asyncio
async def test_unsupported_message_without_chat_sends_nothing(bot):
    handlers = _handlers(bot)

    assert not await handlers.handle_unsupported_message(
        message_type="other", sender_id=7, chat_id=None
    )
    bot.send_message.assert_not_awaited()
