"""Core domain package for channelwatch.

Core holds matching, scanning and delivery logic without any Telegram or
storage-specific code, keeping the business logic portable.
"""
