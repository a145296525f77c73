"""Core configuration and utilities for labformula."""

from labformula.core.config import Settings, get_settings, settings
from labformula.core.logging import get_logger, setup_logging

__all__ = ["Settings", "get_settings", "settings", "get_logger", "setup_logging"]
