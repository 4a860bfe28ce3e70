"""
Logging utilities for hubfs.

Every warning/error hubfs logs carries an error code (HUBFS-{AREA}-{NUMBER})
both in the message text and in the record's ``extra`` dict, so log pipelines
can filter on it. Context values pass through sanitize_for_logging first:
GitHub credentials must never reach a log sink.

Usage:
    from hubfs.logging_utils import format_error_log, get_log_extra

    logger.error(
        format_error_log("HUBFS-BATCH-001", "Batch commit failed", branch="main"),
        extra=get_log_extra("HUBFS-BATCH-001", branch="main"),
    )
"""

import re
from typing import Any, Dict

# Sensitive field names that should be redacted in logs
SENSITIVE_FIELDS = {
    "password",
    "token",
    "api_key",
    "secret",
    "access_token",
    "authorization",
    "auth_token",
    "github_token",
}

REDACTED = "***REDACTED***"

# Classic (ghp_, gho_, ghu_, ghs_, ghr_) and fine-grained GitHub tokens
_GITHUB_TOKEN_RE = re.compile(r"\b(?:gh[pousr]_[A-Za-z0-9]{16,}|github_pat_[A-Za-z0-9_]{20,})")
_BEARER_RE = re.compile(r"(Bearer)\s+\S+", re.IGNORECASE)


def format_error_log(error_code: str, message: str, **context) -> str:
    """
    Format a log message as "[{ERROR_CODE}] message key1=value1 key2=value2".

    Examples:
        >>> format_error_log("HUBFS-STORE-003", "API error", status=502)
        '[HUBFS-STORE-003] API error status=502'

        >>> format_error_log("HUBFS-BATCH-001", "Batch commit failed")
        '[HUBFS-BATCH-001] Batch commit failed'
    """
    text = f"[{error_code}] {message}"
    if context:
        text += " " + " ".join(
            f"{k}={redact_credentials(str(v))}" for k, v in context.items()
        )
    return text


def get_log_extra(error_code: str, **context) -> Dict[str, Any]:
    """
    Build the ``extra`` dict for a log call.

    Args:
        error_code: Error code to include in extra dict
        **context: Structured fields (branch, path, repository, ...)

    Returns:
        Dictionary with error_code and the sanitized context
    """
    extra: Dict[str, Any] = {"error_code": error_code}
    extra.update(sanitize_for_logging(context))
    return extra


def redact_credentials(text: str) -> str:
    """Mask GitHub tokens and Authorization header values inside free text."""
    text = _BEARER_RE.sub(lambda m: f"{m.group(1)} {REDACTED}", text)
    return _GITHUB_TOKEN_RE.sub(REDACTED, text)


def sanitize_for_logging(data: Any) -> Any:
    """
    Sanitize data for logging by redacting sensitive information.

    Sensitive keys are replaced outright, nested dicts are walked and string
    values are scrubbed of anything that looks like a GitHub credential.

    Examples:
        >>> sanitize_for_logging({"owner": "octo", "token": "ghp_abc"})
        {'owner': 'octo', 'token': '***REDACTED***'}

        >>> sanitize_for_logging("plain string")
        'plain string'
    """
    if isinstance(data, str):
        return redact_credentials(data)

    if not isinstance(data, dict):
        return data

    sanitized = {}
    for key, value in data.items():
        if str(key).lower() in SENSITIVE_FIELDS:
            sanitized[key] = REDACTED
        else:
            sanitized[key] = sanitize_for_logging(value)
    return sanitized
