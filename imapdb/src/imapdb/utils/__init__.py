"""Expose the public utility surface for imapdb (structured logging)."""

from .logging import JsonLogger, get_logger

__all__ = ["JsonLogger", "get_logger"]
