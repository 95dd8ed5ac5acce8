from loguru import logger
from telegram import BotCommand
from telegram.ext import (
    Application,
    ApplicationBuilder,
    CallbackQueryHandler,
    MessageHandler,
    filters,
)

from platebot.bot.dispatcher import UpdateDispatcher
from platebot.bot.router import EventRouter


def create_application(token: str) -> Application:
    """Build the python-telegram-bot application (not started)."""
    if not token:
        raise ValueError("TELEGRAM_BOT_TOKEN is required")
    return ApplicationBuilder().token(token).build()


def register_handlers(application: Application, dispatcher: UpdateDispatcher) -> None:
    """Send every message and callback query through the dispatcher."""
    application.add_handler(CallbackQueryHandler(dispatcher.handle_callback))
    application.add_handler(MessageHandler(filters.ALL, dispatcher.handle_message))
    logger.info("Registered message and callback handlers")


async def publish_commands(application: Application) -> None:
    """Advertise the supported commands in the Telegram client menu."""
    commands = [
        BotCommand(c["command"].lstrip("/"), c["description"])
        for c in EventRouter.supported_commands()
    ]
    await application.bot.set_my_commands(commands)
