"""Utility modules for nahui."""

from nahui.utils.logging import get_logger, setup_logging

__all__ = ["get_logger", "setup_logging"]
