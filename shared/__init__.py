"""
FITSIGHT Shared Module

Common utilities used across all services.
"""

from .utils import setup_logger, parse_log_level, LOG_FORMAT, LOG_DATE_FORMAT

__all__ = [
    'setup_logger',
    'parse_log_level',
    'LOG_FORMAT',
    'LOG_DATE_FORMAT',
]
