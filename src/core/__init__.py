"""Core domain package for nagwatch.

Core holds normalization, keyword matching and the reminder escalation state
machine without any Telegram or storage-specific code.
"""
