"""
Monitoring module for the agent ensemble.

This module provides structured logging with correlation IDs.
"""

from .structured_logger import (
    StructuredLogger,
    LoggingContext,
    get_correlation_id,
    get_logger,
    configure_logging,
)

__all__ = [
    'StructuredLogger',
    'LoggingContext',
    'get_correlation_id',
    'get_logger',
    'configure_logging',
]
