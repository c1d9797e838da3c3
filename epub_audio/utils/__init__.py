"""
epub_audio Utilities Module - Logging setup.
"""

from epub_audio.utils.logging_config import configure_logging, get_logger, processing_log

__all__ = ["configure_logging", "get_logger", "processing_log"]
