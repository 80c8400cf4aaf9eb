"""
debug_trace.py

Debug instrumentation for following model mutations.
Enable by setting the SEQBUML_DEBUG_TRACE environment variable to 1.
"""

import logging
import os
from functools import wraps

# Set SEQBUML_DEBUG_TRACE=1 to enable debug tracing
DEBUG_TRACE = os.environ.get("SEQBUML_DEBUG_TRACE", "") not in ("", "0")

log = logging.getLogger("seqbuml.trace")


def trace(msg: str, category: str = "INFO"):
    """Log a trace message tagged with *category*."""
    if not DEBUG_TRACE:
        return
    level = logging.ERROR if category == "ERROR" else logging.DEBUG
    log.log(level, "[%s] %s", category, msg)


def trace_exception(msg: str = "Exception"):
    """Log the exception currently being handled."""
    if not DEBUG_TRACE:
        return
    log.exception(msg)


def trace_call(category: str = "CALL"):
    """Decorator to trace function calls."""
    def decorator(func):
        if not DEBUG_TRACE:
            return func

        @wraps(func)
        def wrapper(*args, **kwargs):
            func_name = func.__qualname__
            trace(f">>> {func_name}", category)
            try:
                result = func(*args, **kwargs)
                trace(f"<<< {func_name}", category)
                return result
            except Exception as e:
                trace(f"!!! {func_name} raised {type(e).__name__}: {e}", "ERROR")
                raise
        return wrapper
    return decorator
