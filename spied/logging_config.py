"""
Logging for SPIED.

Two sinks:
- The debug flow file (logs/debug_flow.txt) receives every message from every
  level, so a finished run can be audited step by step.
- The "SPIED" logger writes info and above to logs/processing.log. In
  DEBUG_MODE it also echoes everything, debug included, to stdout.

Import the functions rather than the logger:
    from spied.logging_config import debug_log, info, warning, Timer

Messages start with a component tag: "[INDEX]", "[STATS]", "[PATTERNS]",
"[PHRASES]", "[CONTROLLER]".

warning() is for anything skipped rather than failed: NaN scores, sentence
ids missing from storage, label rounds isolated after an error.
"""

import logging
import sys
import threading
import time

from spied.config import DEBUG_FLOW_FILE, DEBUG_MODE, LOG_DATE_FORMAT, LOG_FILE, LOG_FORMAT

FLOW_FORMAT = "[%(asctime)s.%(msecs)03d] %(message)s"

_logger = logging.getLogger('SPIED')
_flow = logging.getLogger('SPIED.flow')
_flow.propagate = False
_flow.setLevel(logging.DEBUG)
_flow_lock = threading.Lock()


def _attach_handlers() -> None:
    _logger.setLevel(logging.DEBUG if DEBUG_MODE else logging.INFO)
    if _logger.handlers:
        return
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    try:
        file_handler = logging.FileHandler(LOG_FILE, encoding='utf-8')
    except OSError:
        file_handler = None  # logs dir not writable
    if file_handler is not None:
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(formatter)
        _logger.addHandler(file_handler)
    if DEBUG_MODE:
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(formatter)
        _logger.addHandler(console)


def _flow_write(message: str) -> None:
    """Append one line to the debug flow file, opening it on first use."""
    with _flow_lock:
        if not _flow.handlers:
            try:
                handler = logging.FileHandler(DEBUG_FLOW_FILE, mode='w', encoding='utf-8')
            except OSError:
                return
            handler.setFormatter(logging.Formatter(FLOW_FORMAT, datefmt="%H:%M:%S"))
            _flow.addHandler(handler)
            _flow.debug(f"=== SPIED run (DEBUG_MODE={DEBUG_MODE}) ===")
    _flow.debug(message)


def _format_duration(seconds: float) -> str:
    if seconds < 1:
        return f"{seconds * 1000:.0f} ms"
    if seconds < 60:
        return f"{seconds:.2f}s"
    return f"{seconds / 60:.1f}m"


_attach_handlers()


class Timer:
    """
    Context manager that logs how long a block took.

        with Timer("SufficientStats[PERSON]"):
            aggregator.compute(...)

    writes "Starting SufficientStats[PERSON]..." and then
    "SufficientStats[PERSON] took 842 ms" through debug_log. The elapsed
    time is kept in duration_ms after the block exits.
    """

    def __init__(self, operation_name: str, auto_log: bool = True):
        self.operation_name = operation_name
        self.auto_log = auto_log
        self.duration_ms: float | None = None
        self._start: float | None = None

    def __enter__(self):
        if self.auto_log:
            debug_log(f"Starting {self.operation_name}...")
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        elapsed = time.perf_counter() - self._start
        self.duration_ms = elapsed * 1000
        if self.auto_log:
            debug_log(f"{self.operation_name} took {_format_duration(elapsed)}")
        return False


def debug_log(message: str):
    """
    Log a debug message.

    Always written to the debug flow file; echoed to stdout in DEBUG_MODE.

    Example:
        debug_log("[STATS] Sampled 500 of 1000 sentences")
    """
    _flow_write(message)
    _logger.debug(message)


def debug(message: str):
    debug_log(message)


def info(message: str):
    _flow_write(f"[INFO] {message}")
    _logger.info(message)


def warning(message: str):
    _flow_write(f"[WARNING] {message}")
    _logger.warning(message)


def error(message: str, exc_info: bool = False):
    """Log an error; the traceback is attached only in DEBUG_MODE."""
    _flow_write(f"[ERROR] {message}")
    _logger.error(message, exc_info=exc_info and DEBUG_MODE)


def critical(message: str, exc_info: bool = True):
    _flow_write(f"[CRITICAL] {message}")
    _logger.critical(message, exc_info=exc_info and DEBUG_MODE)


def debug_timing(operation: str, elapsed_seconds: float):
    """Log an already measured duration. Prefer Timer for new code."""
    debug_log(f"{operation} took {_format_duration(elapsed_seconds)}")


def close_debug_log():
    """Flush and close the debug flow file. A later message reopens it."""
    with _flow_lock:
        for handler in list(_flow.handlers):
            _flow.removeHandler(handler)
            handler.close()


__all__ = [
    'debug_log',
    'debug',
    'debug_timing',
    'info',
    'warning',
    'error',
    'critical',
    'close_debug_log',
    'Timer',
    'DEBUG_MODE',
]
