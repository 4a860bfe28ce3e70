"""Conversion between caller data, raw bytes and the API's base64 transport."""

import base64
import binascii
from typing import Union

from ..exceptions import HubfsConfigError

# Binary-to-text encodings accepted in addition to Python text codecs
BINARY_ENCODINGS = ("base64", "hex")


def to_bytes(data: Union[str, bytes, bytearray], encoding: str = "utf8") -> bytes:
    """Turn caller data into raw bytes. ``encoding`` is ignored for bytes."""
    if isinstance(data, (bytes, bytearray)):
        return bytes(data)
    if not isinstance(data, str):
        raise HubfsConfigError(
            f"Data must be str or bytes, got {type(data).__name__}"
        )
    try:
        if encoding == "base64":
            return base64.b64decode(data)
        if encoding == "hex":
            return bytes.fromhex(data)
        return data.encode(encoding)
    except (LookupError, ValueError, binascii.Error) as e:
        raise HubfsConfigError(f"Cannot encode data as {encoding}: {e}")


def from_bytes(content: bytes, encoding: str) -> str:
    """Render raw bytes as text in the requested encoding."""
    try:
        if encoding == "base64":
            return base64.b64encode(content).decode("ascii")
        if encoding == "hex":
            return content.hex()
        return content.decode(encoding)
    except LookupError as e:
        raise HubfsConfigError(f"Unknown encoding {encoding}: {e}")
    except UnicodeDecodeError as e:
        raise HubfsConfigError(f"Cannot decode content as {encoding}: {e}")


def encode_base64(content: bytes) -> str:
    return base64.b64encode(content).decode("ascii")


def decode_content(content: str, encoding: str = "base64") -> bytes:
    """Decode a content field returned by the contents or blobs API."""
    if encoding == "base64":
        # The API wraps base64 payloads at 60 columns
        return base64.b64decode("".join(content.split()))
    if encoding in ("utf-8", "utf8"):
        return content.encode("utf-8")
    raise ValueError(f"Unsupported content encoding: {encoding}")
