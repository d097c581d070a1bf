"""Configuration module for BookChat: settings and logging."""
from .settings import Settings, settings
from .logger import install_crash_handlers, install_asyncio_crash_handler  # Importing also configures the log sinks

__all__ = ["Settings", "settings", "install_crash_handlers", "install_asyncio_crash_handler"]
