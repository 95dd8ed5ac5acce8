"""Telegram bot for Israeli vehicle registry lookups."""
