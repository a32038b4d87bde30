"""
Error taxonomy and logging helpers.

ModerationError subclasses carry an HTTP status and a user-safe message; the
app-level handler renders them as {"success": false, "error": message}.
ExternalServiceUnavailable is internal to the classifier wrappers and never
reaches a response.

The log_* helpers go through current_app.logger inside an app context and the
"roadway" logger otherwise (CLI, worker threads without a context).
"""

from __future__ import annotations
import logging
import re
from flask import current_app, has_app_context

logger = logging.getLogger("roadway")

# Generic messages shown instead of internal error text
GENERIC_MESSAGES = {
    "database": "We're experiencing technical difficulties. Please try again.",
    "validation": "The information provided is invalid. Please check and try again.",
    "permission": "You don't have permission to perform this action.",
    "not_found": "The requested item was not found.",
    "conflict": "This item was changed by someone else. Please refresh and try again.",
}

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
MAX_REASON_LEN = 300


class ModerationError(Exception):
    """Base class for errors surfaced to API callers as a rejected request."""

    status_code = 500
    default_message = GENERIC_MESSAGES["database"]

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"success": False, "error": self.message}


class ValidationError(ModerationError):
    status_code = 400
    default_message = GENERIC_MESSAGES["validation"]


class Forbidden(ModerationError):
    status_code = 403
    default_message = GENERIC_MESSAGES["permission"]


class NotFound(ModerationError):
    status_code = 404
    default_message = GENERIC_MESSAGES["not_found"]


class Conflict(ModerationError):
    status_code = 409
    default_message = GENERIC_MESSAGES["conflict"]


class StoreUnavailable(ModerationError):
    """The hosted store is unreachable or not configured. Always fatal to the request."""

    status_code = 503
    default_message = GENERIC_MESSAGES["database"]


class ExternalServiceUnavailable(Exception):
    """
    Classifier capability unreachable, timed out, or returned an unusable payload.

    Never surfaced to API callers: the moderation wrappers catch it and fail open.
    """


def _logger():
    return current_app.logger if has_app_context() else logger


def sanitize_reason(reason: str | None, fallback: str = "") -> str:
    """
    Bound and clean a classifier-provided reason before it is stored or shown.

    Classifier output is untrusted; strip control characters, collapse
    whitespace and truncate so raw model text never leaks unbounded.
    """
    if not reason or not isinstance(reason, str):
        return fallback
    t = _CONTROL_CHARS.sub("", reason)
    t = re.sub(r"\s+", " ", t).strip()
    if not t:
        return fallback
    return (t[:MAX_REASON_LEN - 1] + "…") if len(t) > MAX_REASON_LEN else t


def sanitize_error(error: Exception, error_type: str = "database", log_prefix: str = "") -> str:
    """
    Log an exception in full and return the generic message for its category.

    Store errors, provider errors and stack traces stay in the logs; callers
    only ever see one of GENERIC_MESSAGES. Expected categories (validation,
    not_found) are logged at info, everything else at error with the traceback.
    """
    detail = f"{log_prefix}: {error}" if log_prefix else str(error)
    if error_type in ("validation", "not_found"):
        _logger().info(detail)
    else:
        _logger().error(detail, exc_info=True)
    return GENERIC_MESSAGES.get(error_type, GENERIC_MESSAGES["database"])


def _with_context(message: str, context: dict) -> str:
    if not context:
        return message
    pairs = ", ".join(f"{key}={value}" for key, value in context.items())
    return f"{message} | Context: {pairs}"


def log_info(message: str, **context) -> None:
    """
    Info log with key=value context, e.g.

        log_info("Post admitted for review", user_id="u1", post_id="p9")
        -> "Post admitted for review | Context: user_id=u1, post_id=p9"
    """
    _logger().info(_with_context(message, context))


def log_warning(message: str, **context) -> None:
    """Degraded but recovered: classifier fail-open, dropped trust update."""
    _logger().warning(_with_context(message, context))


def log_error(message: str, **context) -> None:
    """Lost side effects (trust counters, notifications); no traceback."""
    _logger().error(_with_context(message, context))
