"""Secure logging helpers that keep secrets out of production logs."""

import logging
import re
from typing import Any

from portal_auth.config import get_settings

_PATH_PATTERN = re.compile(r"['\"]?(/[a-zA-Z0-9_./\-]+|[A-Z]:\\[^\s'\"]+)['\"]?")
_URL_PATTERN = re.compile(r"(postgresql|postgres|sqlite|redis|rediss|http|https)(\+\w+)?://\S+")
_EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+")
# Bearer tokens and token hashes are long runs of URL-safe characters
_TOKEN_PATTERN = re.compile(r"[a-zA-Z0-9_\-]{32,}")

MAX_LOGGED_MESSAGE_LENGTH = 200


def sanitize_exception_message(error: Exception) -> str:
    """Strip paths, connection URLs, emails and token-like strings from an error message.

    Args:
        error: The exception to sanitize

    Returns:
        Message suitable for production logs
    """
    error_msg = str(error)
    # URLs first, so their path component is not half-replaced as a file path
    error_msg = _URL_PATTERN.sub("[URL]", error_msg)
    error_msg = _PATH_PATTERN.sub("[PATH]", error_msg)
    error_msg = _EMAIL_PATTERN.sub("[EMAIL]", error_msg)
    error_msg = _TOKEN_PATTERN.sub("[TOKEN]", error_msg)

    if len(error_msg) > MAX_LOGGED_MESSAGE_LENGTH:
        error_msg = error_msg[: MAX_LOGGED_MESSAGE_LENGTH - 3] + "..."
    return error_msg


def _log(
    logger: logging.Logger,
    level: int,
    message: str,
    error: Exception | None,
    extra: dict[str, Any],
) -> None:
    if get_settings().debug:
        if error is not None:
            logger.log(level, "%s: %s", message, error, exc_info=level >= logging.ERROR, extra=extra)
        else:
            logger.log(level, message, extra=extra)
        return

    # Outside debug mode, extra context is dropped since it may hold identifiers
    if error is not None:
        logger.log(level, "%s: %s", message, sanitize_exception_message(error))
    else:
        logger.log(level, message)


def log_error(
    logger: logging.Logger,
    message: str,
    error: Exception | None = None,
    **kwargs: Any,
) -> None:
    """Log an error, with full detail only in debug mode.

    Args:
        logger: The logger instance to use
        message: Generic log message without sensitive data
        error: Optional exception to include
        **kwargs: Additional context, logged only in debug mode
    """
    _log(logger, logging.ERROR, message, error, kwargs)


def log_warning(
    logger: logging.Logger,
    message: str,
    error: Exception | None = None,
    **kwargs: Any,
) -> None:
    """Log a warning, with full detail only in debug mode.

    Args:
        logger: The logger instance to use
        message: Generic log message without sensitive data
        error: Optional exception to include
        **kwargs: Additional context, logged only in debug mode
    """
    _log(logger, logging.WARNING, message, error, kwargs)
