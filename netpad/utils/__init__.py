"""Utility functions for NetPad Deploy."""

from netpad.utils.logging import configure_logging, get_logger

__all__ = [
    "configure_logging",
    "get_logger",
]
