"""Output helpers for hubfs CLI commands.

Provides the JSON envelope shared by `hubfs read` and `hubfs write`.
"""

import base64
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from ..exceptions import HubfsError, ObjectStoreError


def format_json_success(data: Any, metadata: Optional[Dict[str, Any]] = None) -> str:
    """Format successful result as JSON with standard structure.

    Args:
        data: The data to include in the response
        metadata: Optional additional metadata; None values are dropped

    Returns:
        JSON string with format: {"success": true, "data": ..., "metadata": {...}}
    """
    result_metadata = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if metadata:
        result_metadata.update({k: v for k, v in metadata.items() if v is not None})

    result = {
        "success": True,
        "data": data,
        "metadata": result_metadata,
    }
    return json.dumps(result, indent=2, default=str)


def format_json_error(
    error: Union[Exception, str], error_type: Optional[str] = None
) -> str:
    """Format a failure as JSON.

    Store errors also report their classification and HTTP status so scripts
    can tell a retryable failure from a permanent one.

    Returns:
        JSON string with format: {"success": false, "error": ..., "error_type": ...}
    """
    if isinstance(error, Exception):
        message = error.message if isinstance(error, HubfsError) else str(error)
        error_type = error_type or type(error).__name__
    else:
        message = error

    result: Dict[str, Any] = {
        "success": False,
        "error": message,
        "error_type": error_type or "Error",
    }
    if isinstance(error, ObjectStoreError):
        result["kind"] = error.kind.value
        result["status_code"] = error.status_code
    return json.dumps(result, indent=2)


def content_payload(
    path: str, content: Union[bytes, str], encoding: Optional[str]
) -> Dict[str, Any]:
    """JSON-safe view of file content; raw bytes are sent base64 encoded."""
    if isinstance(content, bytes):
        return {
            "path": path,
            "encoding": "base64",
            "content": base64.b64encode(content).decode("ascii"),
            "size": len(content),
        }
    return {"path": path, "encoding": encoding, "content": content}
