"""CLI utilities package for hubfs."""

from .output_helpers import (
    content_payload,
    format_json_error,
    format_json_success,
)

__all__ = [
    "content_payload",
    "format_json_error",
    "format_json_success",
]
