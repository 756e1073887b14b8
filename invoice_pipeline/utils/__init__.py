"""
Utility Module for the Invoice Extraction Pipeline.

This module provides common utilities used across all other modules:
    - Logging configuration
    - Exceptions with stable error codes
    - File name helpers
"""

from .logger import setup_logger, get_logger
from .helpers import ensure_directory, get_file_extension, strip_extension

__all__ = [
    'setup_logger',
    'get_logger',
    'ensure_directory',
    'get_file_extension',
    'strip_extension'
]
