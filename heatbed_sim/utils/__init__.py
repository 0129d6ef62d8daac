"""
Heated Bed Simulator - Utilities Module
=======================================
Logging and timing helpers.
"""

from .logger import (
    BedSimLogger,
    BedSimFormatter,
    PerformanceTracker,
    get_logger,
    initialize_logger,
    timed_function,
    log_section,
)

__all__ = [
    'BedSimLogger',
    'BedSimFormatter',
    'PerformanceTracker',
    'get_logger',
    'initialize_logger',
    'timed_function',
    'log_section',
]
