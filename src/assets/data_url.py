"""data: URL encoding helpers for inline image payloads."""

from __future__ import annotations

import base64
import re
from urllib.parse import unquote_to_bytes

_DATA_URL_RE = re.compile(r"^data:([^;,]*)((?:;[^;,]*)*),(.*)$", re.DOTALL)


def encode_data_url(data: bytes, mime_type: str = "image/png") -> str:
    """Encode raw bytes as a base64 data: URL."""
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def decode_data_url(data_url: str) -> tuple[bytes, str]:
    """Decode a data: URL into ``(bytes, mime_type)``.

    Raises:
        ValueError: If the string is not a well-formed data: URL.
    """
    match = _DATA_URL_RE.match(data_url or "")
    if not match:
        raise ValueError("Invalid data URL format")

    mime_type = match.group(1) or "application/octet-stream"
    params = match.group(2)
    payload = match.group(3)

    if ";base64" in params:
        try:
            return base64.b64decode(payload, validate=False), mime_type
        except (ValueError, TypeError) as e:
            raise ValueError(f"Invalid base64 payload: {e}") from e
    return unquote_to_bytes(payload), mime_type
