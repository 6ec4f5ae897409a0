"""
Utility functions for exception logging that never raise themselves.
"""

import logging

from corsproxy.utils import mask_value


def _safe_str(obj) -> str:
    """
    Safely convert an object to string, handling cases where __str__ or __repr__ might fail.

    Args:
        obj: The object to convert to string

    Returns:
        A string representation of the object, falling back to safe alternatives
    """
    try:
        return str(obj)
    except Exception:
        try:
            return repr(obj)
        except Exception:
            try:
                return f"<{type(obj).__name__} object (string conversion failed)>"
            except Exception:
                return "<object (all string conversions failed)>"


def _safe_get_exceptions(exception_group) -> list:
    try:
        return list(exception_group.exceptions)
    except Exception:
        return []


def format_exception_message(exception: Exception) -> str:
    """
    Format an exception message for the caller, including sub-exceptions of
    exception groups. Never raises.
    """
    try:
        if exception is None:
            return "None"

        sub_exceptions = []
        if hasattr(exception, "exceptions"):
            sub_exceptions = _safe_get_exceptions(exception)

        if not sub_exceptions:
            message = _safe_str(exception)
            return message or type(exception).__name__

        sub_exception_strs = [
            f"{type(sub_exc).__name__}: {_safe_str(sub_exc)}"
            for sub_exc in sub_exceptions
        ]
        return f"{_safe_str(exception)} (Sub-exceptions: {'; '.join(sub_exception_strs)})"
    except Exception:
        try:
            return f"<{type(exception).__name__} (formatting failed)>"
        except Exception:
            return "<exception (all formatting failed)>"


def log_exception_with_details(
    logger: logging.Logger,
    prefix: str,
    exception: Exception,
    level: int = logging.ERROR,
    secret: str = "",
) -> None:
    """
    Log an exception with its traceback, masking ``secret`` in the message.
    Exception groups get one line per sub-exception.

    Args:
        logger: The logger instance to use
        prefix: Prefix for the log message (e.g., "[Proxy]")
        exception: The exception to log
        level: The logging level to use (default: ERROR)
        secret: Value to mask in the rendered message (e.g. a cookie string)
    """
    try:
        safe_prefix = _safe_str(prefix) if prefix is not None else ""
        safe_exception_str = mask_value(_safe_str(exception), secret)

        sub_exceptions = []
        if exception is not None and hasattr(exception, "exceptions"):
            sub_exceptions = _safe_get_exceptions(exception)

        if sub_exceptions:
            logger.log(
                level,
                f"{safe_prefix} Exception with {len(sub_exceptions)} sub-exceptions: {safe_exception_str}",
            )
            for i, sub_exc in enumerate(sub_exceptions):
                sub_exc_str = mask_value(_safe_str(sub_exc), secret)
                logger.log(
                    level,
                    f"{safe_prefix} Sub-exception {i+1}: {type(sub_exc).__name__}: {sub_exc_str}",
                    exc_info=sub_exc,
                )
        else:
            logger.log(
                level,
                f"{safe_prefix} Exception: {safe_exception_str}",
                exc_info=exception if exception is not None else False,
            )
    except Exception:
        # Logging must never take the request down with it
        try:
            logger.log(logging.ERROR, f"{prefix} Exception (logging failed)")
        except Exception:
            pass
