"""
Settings, structured logging and application exceptions.
"""

from opportunity_crawler.core.config import Settings, get_settings
from opportunity_crawler.core.logging import LoggerMixin, get_logger, setup_logging

__all__ = ["Settings", "get_settings", "LoggerMixin", "get_logger", "setup_logging"]
