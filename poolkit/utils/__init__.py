"""
Utilities for poolkit.
"""

from .logging import (
    JSONFormatter,
    LoggingContext,
    StructuredLogger,
    clear_context,
    configure_logging,
    get_context_data,
    get_logger,
)

__all__ = [
    'JSONFormatter',
    'LoggingContext',
    'StructuredLogger',
    'clear_context',
    'configure_logging',
    'get_context_data',
    'get_logger',
]
