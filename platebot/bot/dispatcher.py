"""Telegram update dispatcher: admission, routing, and handler dispatch."""

from datetime import datetime
from typing import Any, Awaitable, Callable

from loguru import logger
from telegram import Update
from telegram.ext import ContextTypes

from platebot.bot import formatter
from platebot.bot.handlers import BotHandlers
from platebot.bot.router import EventKind, EventRouter, InboundEvent, RouteAction
from platebot.services.errors import log_classified
from platebot.services.rate_limiter import RateLimiter
from platebot.utils import format_uptime

ActionHandler = Callable[..., Awaitable[Any]]

# Checked in order; the first attribute set on the message names its type
CONTENT_TYPES = (
    "sticker",
    "photo",
    "video",
    "video_note",
    "animation",
    "voice",
    "audio",
    "document",
    "location",
    "contact",
    "poll",
)


def content_type_of(message: Any) -> str | None:
    """Name of the non-text content a message carries, if any."""
    if message is None:
        return None
    for name in CONTENT_TYPES:
        if getattr(message, name, None):
            return name
    return "other"


def event_from_update(update: Update) -> InboundEvent:
    """Extract the fields the router needs from a Telegram update."""
    query = update.callback_query
    if query is not None:
        message = query.message
        return InboundEvent(
            kind=EventKind.CALLBACK,
            sender_id=query.from_user.id,
            chat_id=message.chat.id if message else None,
            message_id=message.message_id if message else None,
            data=query.data,
            callback_id=query.id,
        )

    message = update.effective_message
    user = update.effective_user
    chat = update.effective_chat
    sender_id = user.id if user else None
    chat_id = chat.id if chat else None

    if message is not None and message.text is not None:
        return InboundEvent(
            kind=EventKind.TEXT,
            sender_id=sender_id,
            chat_id=chat_id,
            message_id=message.message_id,
            text=message.text,
        )

    return InboundEvent(
        kind=EventKind.OTHER,
        sender_id=sender_id,
        chat_id=chat_id,
        message_id=message.message_id if message else None,
        content_type=content_type_of(message),
    )


def build_dispatch_table(handlers: object) -> dict[RouteAction, ActionHandler]:
    """Bind every RouteAction to the handler method of the same name."""
    table = {}
    missing = []
    for action in RouteAction:
        fn = getattr(handlers, action.value, None)
        if fn is None:
            missing.append(action.value)
        else:
            table[action] = fn
    if missing:
        raise ValueError(f"Handlers missing for actions: {missing}")
    return table


class UpdateDispatcher:
    """Runs each inbound event through admission, routing, and dispatch."""

    def __init__(
        self,
        router: EventRouter,
        rate_limiter: RateLimiter,
        handlers: BotHandlers,
    ):
        self.router = router
        self.rate_limiter = rate_limiter
        self.handlers = handlers
        self._table = build_dispatch_table(handlers)

        self.messages_processed = 0
        self.errors_handled = 0
        self.rate_limited = 0
        self.start_time = datetime.now()
        self.last_activity: datetime | None = None

    async def handle_message(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """python-telegram-bot entry point for messages."""
        await self.process(event_from_update(update))

    async def handle_callback(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """python-telegram-bot entry point for callback queries."""
        await self.process(event_from_update(update))

    async def process(self, event: InboundEvent) -> bool:
        self.messages_processed += 1
        self.last_activity = datetime.now()

        if event.kind is EventKind.CALLBACK:
            logger.debug(f"Callback from {event.sender_id}: {event.data}")
        else:
            logger.debug(f"Message from {event.sender_id}: {event.text or '[non-text]'}")

        try:
            # Button presses only navigate existing messages; every message is throttled
            if event.kind is not EventKind.CALLBACK:
                identity = event.sender_id if event.sender_id is not None else event.chat_id
                decision = self.rate_limiter.check(identity)
                if not decision.allowed:
                    self.rate_limited += 1
                    logger.warning(
                        f"Rate limited user {identity}, retry after {decision.retry_after}s"
                    )
                    await self.handlers.send(
                        event.chat_id,
                        formatter.format_rate_limit(
                            decision, self.rate_limiter.window.total_seconds()
                        ),
                    )
                    return False

            result = self.router.route(event)
            handler = self._table[result.action]
            return bool(await handler(**result.payload))

        except Exception as e:
            self.errors_handled += 1
            classification = log_classified(
                e, {"event_kind": event.kind.value, "user_id": event.sender_id}
            )
            if event.chat_id is not None:
                # Callback failures replace the button message; others get a new one
                edit_id = event.message_id if event.kind is EventKind.CALLBACK else None
                try:
                    await self.handlers.send_error(
                        event.chat_id, classification, message_id=edit_id
                    )
                except Exception as send_error:
                    logger.error(f"Failed to send error message: {send_error}")
            return False

    def get_stats(self) -> dict[str, Any]:
        uptime = datetime.now() - self.start_time
        return {
            "messages_processed": self.messages_processed,
            "errors_handled": self.errors_handled,
            "rate_limited": self.rate_limited,
            "uptime": format_uptime(uptime),
            "last_activity": self.last_activity.isoformat() if self.last_activity else None,
            "router": self.router.get_stats(),
            "rate_limiter": self.rate_limiter.get_stats(),
            "guard": self.handlers.guard.get_stats().to_dict(),
            "lookup": self.handlers.lookup.get_stats(),
        }
