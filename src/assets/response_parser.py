"""Extract the hosted image URL from an upload endpoint's response.

Sites answer an upload in wildly different shapes. Extraction is a chain:

    1. the strategy's declared parser
    2. well-known keys (``url``, ``src``, ``path``, ``image_url``,
       ``imageUrl``), at top level and under ``data``
    3. a depth-limited scan for the first URL-looking string

The result is absolutized against the endpoint: ``//host/x`` gets
``https:`` and ``/x`` is resolved against the endpoint origin.
"""

from __future__ import annotations

from typing import Any, Callable, Optional
from urllib.parse import urljoin, urlparse

from src.common.logging import setup_logging

logger = setup_logging(module_name="assets.response_parser")

KNOWN_URL_KEYS = ("url", "src", "path", "image_url", "imageUrl")
MAX_SCAN_DEPTH = 4


def _looks_like_url(value: Any) -> bool:
    if not isinstance(value, str) or not value:
        return False
    return value.startswith(("http://", "https://", "//"))


def _from_known_keys(body: Any) -> Optional[str]:
    for container in (body, body.get("data") if isinstance(body, dict) else None):
        if not isinstance(container, dict):
            continue
        for key in KNOWN_URL_KEYS:
            value = container.get(key)
            if isinstance(value, str) and value:
                return value
    return None


def scan_for_url(body: Any, depth: int = 0) -> Optional[str]:
    """Depth-first search for the first URL-looking string value."""
    if depth > MAX_SCAN_DEPTH:
        return None
    if _looks_like_url(body):
        return body
    if isinstance(body, dict):
        children = body.values()
    elif isinstance(body, list):
        children = body
    else:
        return None
    for child in children:
        found = scan_for_url(child, depth + 1)
        if found:
            return found
    return None


def absolutize_url(url: str, endpoint: str) -> str:
    if url.startswith("//"):
        return f"https:{url}"
    if url.startswith("/"):
        parsed = urlparse(endpoint)
        if parsed.scheme and parsed.netloc:
            return urljoin(f"{parsed.scheme}://{parsed.netloc}", url)
    return url


def extract_image_url(
    body: Any,
    endpoint: str,
    parser: Optional[Callable[[Any], Optional[str]]] = None,
) -> Optional[str]:
    """Run the extraction chain over a decoded JSON body.

    Args:
        body: Decoded response body (dict, list or string).
        endpoint: URL the upload was sent to.
        parser: Strategy-specific parser; exceptions from it fall through
            to the generic steps.

    Returns:
        Absolute URL, or None when nothing usable was found.
    """
    url = None
    if parser is not None:
        try:
            url = parser(body)
        except (KeyError, TypeError, AttributeError, IndexError) as e:
            logger.debug("Declared response parser failed for %s: %s", endpoint, e)
            url = None

    if not (isinstance(url, str) and url):
        url = _from_known_keys(body)
    if not url:
        url = scan_for_url(body)
    if not url:
        return None
    return absolutize_url(url, endpoint)
