"""
Heated Bed Simulator - Logging System
=====================================
Console/file logging with colour support and performance tracking.

Author: Heated Bed Thermal Simulation Tool
Version: 1.0.0
"""

import logging
import os
import sys
import time
import threading
from datetime import datetime
from typing import Optional, Dict, Any, Callable
from functools import wraps
from contextlib import contextmanager


LOGGER_NAME = 'heatbed_sim'


def _safe_isatty(stream) -> bool:
    """Return True if stream looks like a tty; never raise."""
    try:
        return bool(getattr(stream, "isatty", lambda: False)())
    except (AttributeError, ValueError, OSError):
        return False


def _get_console_stream():
    """
    Embedding hosts can set sys.stdout/sys.stderr to None.
    Returning None is fine: logging.StreamHandler(None) falls back to sys.stderr.
    """
    for name in ("stdout", "__stdout__", "stderr", "__stderr__"):
        s = getattr(sys, name, None)
        if s is not None:
            return s
    return None


class BedSimFormatter(logging.Formatter):
    """Formatter with optional ANSI colours."""

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
        'RESET': '\033[0m',
    }

    def __init__(self, use_colors: bool = True, stream=None):
        super().__init__()
        if stream is None:
            stream = _get_console_stream()
        self.use_colors = bool(use_colors and _safe_isatty(stream))

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime('%Y-%m-%d %H:%M:%S.%f')[:-3]
        level = record.levelname
        location = f"[{record.module}.{record.funcName}:{record.lineno}]"
        message = record.getMessage()

        if self.use_colors:
            color = self.COLORS.get(level, '')
            reset = self.COLORS['RESET']
            formatted = f"{timestamp} {color}{level:8s}{reset} {location} {message}"
        else:
            formatted = f"{timestamp} {level:8s} {location} {message}"

        if record.exc_info:
            formatted += '\n' + self.formatException(record.exc_info)

        return formatted


class PerformanceTracker:
    """Tracks wall-clock timings of named operations."""

    def __init__(self):
        self.timings: Dict[str, list] = {}
        self.lock = threading.Lock()

    def record_timing(self, operation: str, duration_s: float):
        with self.lock:
            self.timings.setdefault(operation, []).append(duration_s)

    def get_stats(self, operation: str) -> Dict[str, float]:
        """Get statistics for an operation."""
        with self.lock:
            times = self.timings.get(operation)
            if not times:
                return {'count': 0, 'total': 0.0, 'mean': 0.0, 'min': 0.0, 'max': 0.0}

            return {
                'count': len(times),
                'total': sum(times),
                'mean': sum(times) / len(times),
                'min': min(times),
                'max': max(times)
            }

    def get_all_stats(self) -> Dict[str, Dict[str, float]]:
        return {op: self.get_stats(op) for op in list(self.timings)}

    def clear(self):
        with self.lock:
            self.timings.clear()


class BedSimLogger:
    """Main logger class for the heated bed simulator."""

    def __init__(self,
                 log_dir: Optional[str] = None,
                 log_level: int = logging.DEBUG,
                 console_level: int = logging.INFO,
                 enable_file_logging: bool = False,
                 enable_performance_tracking: bool = True):
        self.log_dir = log_dir
        self.log_level = log_level
        self.console_level = console_level
        self.current_log_file: Optional[str] = None

        self.logger = logging.getLogger(LOGGER_NAME)
        self.logger.setLevel(log_level)
        self.logger.handlers = []  # Clear any existing handlers

        stream = _get_console_stream()
        console_handler = logging.StreamHandler(stream)
        console_handler.setLevel(console_level)
        console_handler.setFormatter(BedSimFormatter(use_colors=True, stream=stream))
        self.logger.addHandler(console_handler)

        if enable_file_logging:
            self._setup_file_handler()

        self.performance = PerformanceTracker() if enable_performance_tracking else None

        self.simulation_id: Optional[str] = None
        self.simulation_start_time: Optional[float] = None

    def _setup_file_handler(self):
        if not self.log_dir:
            self.log_dir = os.path.join(os.path.expanduser('~'), '.heatbed_sim', 'logs')

        os.makedirs(self.log_dir, exist_ok=True)

        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        log_file = os.path.join(self.log_dir, f'heatbed_sim_{timestamp}.log')

        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(self.log_level)
        file_handler.setFormatter(BedSimFormatter(use_colors=False))
        self.logger.addHandler(file_handler)

        self.current_log_file = log_file
        self.logger.info(f"Log file created: {log_file}")

    def set_log_level(self, level: int):
        self.logger.setLevel(level)
        self.log_level = level

    def set_console_level(self, level: int):
        for handler in self.logger.handlers:
            if isinstance(handler, logging.StreamHandler) and not isinstance(handler, logging.FileHandler):
                handler.setLevel(level)
        self.console_level = level

    def debug(self, message: str, *args, **kwargs):
        self.logger.debug(message, *args, **kwargs)

    def info(self, message: str, *args, **kwargs):
        self.logger.info(message, *args, **kwargs)

    def warning(self, message: str, *args, **kwargs):
        self.logger.warning(message, *args, **kwargs)

    def error(self, message: str, *args, **kwargs):
        self.logger.error(message, *args, **kwargs)

    def exception(self, message: str, *args, **kwargs):
        self.logger.exception(message, *args, **kwargs)

    # Simulation lifecycle logging
    def start_simulation(self, sim_id: str, params: Dict[str, Any]):
        """Log simulation start with parameters."""
        self.simulation_id = sim_id
        self.simulation_start_time = time.time()

        self.info("=" * 60)
        self.info(f"SIMULATION STARTED: {sim_id}")
        self.info("=" * 60)
        for key, value in params.items():
            self.info(f"  {key}: {value}")
        self.info("-" * 60)

    def end_simulation(self, success: bool = True, message: str = ""):
        """Log simulation end with summary."""
        duration = time.time() - self.simulation_start_time if self.simulation_start_time else 0.0

        status = "COMPLETED" if success else "FAILED"
        self.info("-" * 60)
        self.info(f"SIMULATION {status}: {self.simulation_id} in {duration:.2f}s")
        if message:
            self.info(f"Message: {message}")

        if self.performance:
            for op, s in self.performance.get_all_stats().items():
                self.info(f"  {op}: {s['count']} calls, total={s['total']:.3f}s, mean={s['mean']:.4f}s")
            self.performance.clear()

        self.info("=" * 60)
        self.simulation_id = None
        self.simulation_start_time = None

    def log_tick(self, tick: int, control_temp: float, wattage: float,
                 min_temp: float, max_temp: float):
        self.debug(f"tick {tick}: Tctl={control_temp:.2f}°C, P={wattage:.1f}W, "
                   f"Tmin={min_temp:.2f}°C, Tmax={max_temp:.2f}°C")

    def log_grid_stats(self, count_x: int, count_y: int, layers: int,
                       heater_x: int, heater_y: int):
        self.info(f"Grid: {count_x}x{count_y}x{layers} cells, heater footprint {heater_x}x{heater_y} cells")


_logger: Optional[BedSimLogger] = None


def get_logger() -> BedSimLogger:
    """Get the global logger instance."""
    global _logger
    if _logger is None:
        _logger = BedSimLogger()
    return _logger


def initialize_logger(log_dir: Optional[str] = None,
                      log_level: int = logging.DEBUG,
                      console_level: int = logging.INFO,
                      enable_file_logging: bool = False) -> BedSimLogger:
    """Initialize the global logger with custom settings."""
    global _logger
    _logger = BedSimLogger(
        log_dir=log_dir,
        log_level=log_level,
        console_level=console_level,
        enable_file_logging=enable_file_logging
    )
    return _logger


def timed_function(operation_name: Optional[str] = None):
    """Decorator to time function execution."""
    def decorator(func: Callable):
        @wraps(func)
        def wrapper(*args, **kwargs):
            logger = get_logger()
            op_name = operation_name or func.__name__
            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                logger.error(f"{op_name} failed after {time.perf_counter() - start:.3f}s: {e}")
                raise
            duration = time.perf_counter() - start
            if logger.performance:
                logger.performance.record_timing(op_name, duration)
            return result
        return wrapper
    return decorator


@contextmanager
def log_section(section_name: str):
    """Context manager for logging a section of code."""
    logger = get_logger()
    logger.info(f"--- {section_name} ---")
    start = time.time()
    try:
        yield
    except Exception as e:
        logger.error(f"--- {section_name} failed after {time.time() - start:.3f}s: {e} ---")
        raise
    logger.info(f"--- {section_name} completed in {time.time() - start:.3f}s ---")


__all__ = [
    'BedSimLogger',
    'BedSimFormatter',
    'PerformanceTracker',
    'get_logger',
    'initialize_logger',
    'timed_function',
    'log_section',
]
