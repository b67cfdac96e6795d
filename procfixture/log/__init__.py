"""
Logging module for procfixture.
This module provides functionality to set up console and file logging.
"""

from .setup import MainFormatter, setup_logging

__all__ = ["MainFormatter", "setup_logging"]
