"""
Logging Configuration Module
============================

Responsibility:
- Colour-coded console output via colorama.
- Rotating UTF-8 log file (logs/search.log).
"""

from .logging_config import ColoredFormatter, LoggingConfigurator

__all__ = ['ColoredFormatter', 'LoggingConfigurator']
