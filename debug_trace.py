"""
debug_trace.py

Trace instrumentation for the sanitizer and render pipeline.

Tracing is off by default. Switch it on with ``configure(True)``, the
``[debug]`` settings section, or the ``--trace`` CLI flag. Output can be
narrowed to a few categories (``NORM``, ``REPAIR``, ``VALID``,
``FALLBACK``, ``TIER``, ``MMDC``, ``SESSION``); ``ERROR`` lines are never
filtered out.
"""

import sys
import traceback
from datetime import datetime
from functools import wraps

# Set to True to enable debug tracing
DEBUG_TRACE = False

# Log file (None for stderr only)
LOG_FILE = None

# Categories to print (None for all)
CATEGORIES = None

_log_file = None


def configure(enabled: bool = True, log_file=None, categories=None):
    """Switch tracing on or off, choose the log file and category filter."""
    global DEBUG_TRACE, LOG_FILE, CATEGORIES
    close_log()
    DEBUG_TRACE = enabled
    LOG_FILE = log_file or None
    CATEGORIES = frozenset(c.upper() for c in categories) if categories else None


def configure_from_settings():
    """Apply the ``[debug]`` section of the persisted settings."""
    from settings import get_settings
    debug = get_settings().settings.debug
    configure(debug.trace, debug.log_file, debug.categories)


def _wanted(category: str) -> bool:
    if not DEBUG_TRACE:
        return False
    return CATEGORIES is None or category == "ERROR" or category in CATEGORIES


def _open_log():
    global _log_file, LOG_FILE
    if LOG_FILE and _log_file is None:
        try:
            _log_file = open(LOG_FILE, "a", encoding="utf-8")
        except OSError as e:
            print(f"debug_trace: cannot open {LOG_FILE}: {e}", file=sys.stderr)
            # Fall back to stderr only
            LOG_FILE = None
    return _log_file


def trace(msg: str, category: str = "INFO"):
    """Print a timestamped trace line to stderr and the log file."""
    if not _wanted(category):
        return

    stamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]
    line = f"[{stamp}] [{category}] {msg}"
    print(line, file=sys.stderr, flush=True)

    log = _open_log()
    if log is not None:
        log.write(line + "\n")
        log.flush()


def trace_exception(msg: str = "Exception"):
    """Trace the exception currently being handled, with its traceback."""
    if not DEBUG_TRACE:
        return
    trace(f"{msg}: {traceback.format_exc()}", "ERROR")


def trace_call(category: str = "CALL"):
    """Decorator that traces entry, exit and exceptions of a function.

    The check happens per call, so functions decorated at import time
    start tracing as soon as tracing is switched on.
    """
    def decorator(func):
        name = func.__qualname__

        @wraps(func)
        def wrapper(*args, **kwargs):
            if not _wanted(category):
                return func(*args, **kwargs)
            trace(f">>> {name}", category)
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                trace(f"!!! {name} raised {type(e).__name__}: {e}", "ERROR")
                raise
            trace(f"<<< {name}", category)
            return result
        return wrapper
    return decorator


def close_log():
    """Close the log file if one is open."""
    global _log_file
    if _log_file is not None:
        _log_file.close()
        _log_file = None
