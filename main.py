"""
PlateBot main entry point
Wires the lookup pipeline to Telegram long polling
"""

import asyncio

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

from platebot.bot.dispatcher import UpdateDispatcher
from platebot.bot.handlers import BotHandlers
from platebot.bot.router import EventRouter
from platebot.bot.telegram import create_application, publish_commands, register_handlers
from platebot.datasource.vehicle import VehicleLookupService
from platebot.preferences import SettingsStore
from platebot.services.cache import ResultCache
from platebot.services.fetcher import ResilientFetcher
from platebot.services.guard import SearchGuard
from platebot.services.rate_limiter import RateLimiter
from platebot.settings import global_settings
from platebot.utils import configure_logging


def log_stats(dispatcher: UpdateDispatcher) -> None:
    """Periodic runtime stats job."""
    stats = dispatcher.get_stats()
    logger.info(
        f"Stats: {stats['messages_processed']} messages, "
        f"{stats['errors_handled']} errors, {stats['rate_limited']} rate limited, "
        f"uptime {stats['uptime']}"
    )


async def main() -> None:
    """Main function"""
    settings = global_settings
    configure_logging(settings.log_level)
    logger.info("Starting PlateBot...")

    if not settings.telegram_bot_token:
        logger.error("TELEGRAM_BOT_TOKEN is required in environment variables")
        return

    # Created inside the running loop so their sweeps start immediately
    cache = ResultCache(
        max_size=settings.cache_max_size,
        default_ttl=settings.cache_ttl,
        cleanup_interval=settings.cache_cleanup_interval,
    )
    rate_limiter = RateLimiter(
        window=settings.rate_limit_window,
        max_requests=settings.rate_limit_max_requests,
    )
    fetcher = ResilientFetcher(
        base_url=settings.lookup_base_url,
        timeout=settings.api_timeout_seconds,
        max_retries=settings.api_retry_attempts,
        base_delay=settings.api_retry_delay,
    )
    lookup = VehicleLookupService(
        fetcher,
        cache,
        vehicle_resource_id=settings.vehicle_resource_id,
        disability_resource_id=settings.disability_resource_id,
    )

    application = create_application(settings.telegram_bot_token)
    handlers = BotHandlers(application.bot, lookup, SearchGuard(), SettingsStore())
    dispatcher = UpdateDispatcher(EventRouter(), rate_limiter, handlers)
    register_handlers(application, dispatcher)

    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        log_stats,
        trigger="interval",
        seconds=settings.stats_interval_seconds,
        args=[dispatcher],
        id="runtime_stats",
        name="Runtime stats",
        replace_existing=True,
    )

    try:
        async with application:
            await publish_commands(application)
            await application.start()
            await application.updater.start_polling()
            scheduler.start()
            logger.info("PlateBot is running. Press Ctrl+C to stop.")

            try:
                while True:
                    await asyncio.sleep(60)
            finally:
                logger.info("Stopping polling...")
                await application.updater.stop()
                await application.stop()

    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.info("Received interrupt signal, shutting down...")
    except Exception as e:
        logger.error(f"Error in main loop: {e}")
    finally:
        if scheduler.running:
            scheduler.shutdown(wait=False)

        cache.destroy()
        rate_limiter.destroy()
        await fetcher.close()

        logger.info("PlateBot stopped")


if __name__ == "__main__":
    asyncio.run(main())
