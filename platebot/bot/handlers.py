"""Handlers for routed bot actions. Method names match RouteAction values."""

from typing import Any

from loguru import logger
from telegram import Bot, Message
from telegram.error import TelegramError

from platebot.bot import formatter
from platebot.bot.formatter import FormattedMessage
from platebot.datasource.vehicle import VehicleLookupService
from platebot.preferences import SettingsStore
from platebot.services.errors import (
    ErrorClassification,
    ErrorCode,
    classification_for,
    log_classified,
)
from platebot.services.guard import SearchGuard


class BotHandlers:
    """
    One coroutine per RouteAction, called with the routing payload as
    keyword arguments. Each returns True when the action was handled.
    """

    def __init__(
        self,
        bot: Bot,
        lookup: VehicleLookupService,
        guard: SearchGuard,
        settings_store: SettingsStore,
    ):
        self.bot = bot
        self.lookup = lookup
        self.guard = guard
        self.settings_store = settings_store

    # Commands

    async def handle_start_command(self, sender_id, chat_id) -> bool:
        logger.info(f"/start from user {sender_id}")
        await self.send(chat_id, formatter.format_welcome())
        return True

    async def handle_help_command(self, sender_id, chat_id) -> bool:
        await self.send(chat_id, formatter.format_help())
        return True

    async def handle_settings_command(self, sender_id, chat_id) -> bool:
        settings = self.settings_store.get(sender_id)
        await self.send(chat_id, formatter.format_settings_menu(settings))
        return True

    # Search

    async def handle_identifier_search(
        self, identifier, message_id, sender_id, chat_id
    ) -> bool:
        """Look up a plate, guarded against a duplicate search by the same user.

        The "searching" reply quotes the user's message and is later edited
        into the result.
        """
        key = SearchGuard.make_key(sender_id, identifier)

        with self.guard.hold(key) as acquired:
            if not acquired:
                await self.send(
                    chat_id, formatter.format_search_in_progress(), reply_to=message_id
                )
                return False

            logger.info(f"Searching plate {identifier} for user {sender_id}")
            searching = await self.send(
                chat_id, formatter.format_searching(), reply_to=message_id
            )

            try:
                record = await self.lookup.search_vehicle(identifier)
                has_permit = False
                if record is not None:
                    has_permit = await self.lookup.check_disability_permit(identifier)
            except Exception as e:
                classification = log_classified(
                    e, {"user_id": sender_id, "chat_id": chat_id, "identifier": identifier}
                )
                await self.edit_or_send(
                    chat_id, searching.message_id, formatter.format_error(classification)
                )
                return False

            if record is None:
                reply = formatter.format_no_results(identifier)
            else:
                settings = self.settings_store.get(sender_id)
                reply = formatter.format_vehicle(record, settings, has_permit)

            await self.edit_or_send(chat_id, searching.message_id, reply)
            return True

    async def handle_invalid_identifier(self, invalid_input, sender_id, chat_id) -> bool:
        logger.info(f"Invalid plate from user {sender_id}: {invalid_input!r}")
        await self.send_error(chat_id, classification_for(ErrorCode.INVALID_IDENTIFIER))
        return True

    # Navigation callbacks

    async def handle_help_callback(self, sender_id, chat_id, message_id, callback_id) -> bool:
        await self.answer(callback_id)
        await self.edit_or_send(chat_id, message_id, formatter.format_help())
        return True

    async def handle_settings_callback(self, sender_id, chat_id, message_id, callback_id) -> bool:
        await self.answer(callback_id)
        settings = self.settings_store.get(sender_id)
        await self.edit_or_send(chat_id, message_id, formatter.format_settings_menu(settings))
        return True

    async def handle_new_search_callback(
        self, sender_id, chat_id, message_id, callback_id
    ) -> bool:
        await self.answer(callback_id)
        await self.send(chat_id, formatter.format_new_search())
        return True

    async def handle_main_menu_callback(
        self, sender_id, chat_id, message_id, callback_id
    ) -> bool:
        await self.answer(callback_id)
        await self.edit_or_send(chat_id, message_id, formatter.format_main_menu())
        return True

    async def handle_cancel_search_callback(
        self, sender_id, chat_id, message_id, callback_id
    ) -> bool:
        # An issued lookup runs to completion; only the message changes
        await self.answer(callback_id, "Search cancelled")
        await self.edit_or_send(chat_id, message_id, formatter.format_search_cancelled())
        return True

    async def handle_retry_search_callback(
        self, sender_id, chat_id, message_id, callback_id
    ) -> bool:
        await self.answer(callback_id, "Trying again...")
        await self.edit_or_send(chat_id, message_id, formatter.format_retry_prompt())
        return True

    # Settings callbacks

    async def handle_fields_settings_callback(
        self, sender_id, chat_id, message_id, callback_id
    ) -> bool:
        await self.answer(callback_id)
        settings = self.settings_store.get(sender_id)
        await self.edit_or_send(chat_id, message_id, formatter.format_fields_menu(settings))
        return True

    async def handle_language_settings_callback(
        self, sender_id, chat_id, message_id, callback_id
    ) -> bool:
        await self.answer(callback_id)
        settings = self.settings_store.get(sender_id)
        await self.edit_or_send(chat_id, message_id, formatter.format_language_menu(settings))
        return True

    async def handle_compact_settings_callback(
        self, sender_id, chat_id, message_id, callback_id
    ) -> bool:
        settings = self.settings_store.get(sender_id)
        settings.compact_mode = not settings.compact_mode
        await self.answer(callback_id, f"Compact mode {'on' if settings.compact_mode else 'off'}")
        await self.edit_or_send(chat_id, message_id, formatter.format_settings_menu(settings))
        return True

    async def handle_notifications_settings_callback(
        self, sender_id, chat_id, message_id, callback_id
    ) -> bool:
        settings = self.settings_store.get(sender_id)
        settings.notifications = not settings.notifications
        await self.answer(
            callback_id, f"Notifications {'on' if settings.notifications else 'off'}"
        )
        await self.edit_or_send(chat_id, message_id, formatter.format_settings_menu(settings))
        return True

    async def handle_reset_settings_callback(
        self, sender_id, chat_id, message_id, callback_id
    ) -> bool:
        settings = self.settings_store.reset(sender_id)
        await self.answer(callback_id, "Settings reset")
        await self.edit_or_send(chat_id, message_id, formatter.format_settings_menu(settings))
        return True

    async def handle_toggle_field_callback(
        self, field_name, sender_id, chat_id, message_id, callback_id
    ) -> bool:
        settings = self.settings_store.get(sender_id)
        state = settings.toggle_field(field_name)
        if state is None:
            await self.answer(callback_id, "Unknown field")
            return False

        await self.answer(callback_id)
        await self.edit_or_send(chat_id, message_id, formatter.format_fields_menu(settings))
        return True

    async def handle_save_fields_callback(
        self, sender_id, chat_id, message_id, callback_id
    ) -> bool:
        settings = self.settings_store.get(sender_id)
        await self.answer(callback_id, "Saved")
        await self.edit_or_send(chat_id, message_id, formatter.format_settings_menu(settings))
        return True

    async def handle_set_language_callback(
        self, language, sender_id, chat_id, message_id, callback_id
    ) -> bool:
        settings = self.settings_store.get(sender_id)
        if not settings.set_language(language):
            await self.answer(callback_id, "Unsupported language")
            return False

        await self.answer(callback_id)
        await self.edit_or_send(chat_id, message_id, formatter.format_settings_menu(settings))
        return True

    # Fallbacks

    async def handle_unrecognized_text(self, text, sender_id, chat_id) -> bool:
        await self.send(chat_id, formatter.format_unrecognized_text())
        return True

    async def handle_unrecognized_callback(
        self, callback_data, sender_id, chat_id, message_id, callback_id
    ) -> bool:
        logger.warning(f"Unrecognized callback from user {sender_id}: {callback_data!r}")
        await self.answer(callback_id, "Unknown action")
        return False

    async def handle_unsupported_message(self, message_type, sender_id, chat_id) -> bool:
        logger.debug(f"Unsupported {message_type} message from user {sender_id}")
        if chat_id is not None:
            await self.send(chat_id, formatter.format_unsupported(message_type))
        return False

    async def handle_routing_error(self, error, event_kind, sender_id, chat_id) -> bool:
        log_classified(error, {"event_kind": event_kind, "user_id": sender_id, "chat_id": chat_id})
        return False

    # Telegram I/O

    async def send(self, chat_id, message: FormattedMessage, reply_to=None) -> Message:
        return await self.bot.send_message(
            chat_id=chat_id,
            text=message.text,
            parse_mode=message.parse_mode,
            reply_markup=message.reply_markup,
            reply_to_message_id=reply_to,
        )

    async def edit_or_send(self, chat_id, message_id, message: FormattedMessage) -> Any:
        """Edit a message in place; send a new one if editing fails."""
        if message_id is None:
            return await self.send(chat_id, message)
        try:
            return await self.bot.edit_message_text(
                text=message.text,
                chat_id=chat_id,
                message_id=message_id,
                parse_mode=message.parse_mode,
                reply_markup=message.reply_markup,
            )
        except TelegramError as e:
            logger.warning(f"Failed to edit message {message_id}, sending new one: {e}")
            return await self.send(chat_id, message)

    async def answer(self, callback_id, text: str | None = None) -> None:
        if callback_id is None:
            return
        try:
            await self.bot.answer_callback_query(callback_query_id=callback_id, text=text)
        except TelegramError as e:
            logger.warning(f"Failed to answer callback {callback_id}: {e}")

    async def send_error(
        self, chat_id, classification: ErrorClassification, message_id=None
    ) -> None:
        await self.edit_or_send(chat_id, message_id, formatter.format_error(classification))
