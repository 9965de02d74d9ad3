"""Integration adapters for channelwatch.

Adapters implement the core ports on top of Telethon, the Telegram Bot API
and SQLite.
"""
