"""Shared test fixtures for the publishing core."""

import sys
from io import BytesIO
from pathlib import Path

import httpx
import pytest
from PIL import Image

# Ensure src is importable
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from src.assets.models import AssetManifest, ImageAssetEntry


def make_image_bytes(
    width: int = 64,
    height: int = 48,
    color: tuple = (128, 100, 80),
    mode: str = "RGB",
    fmt: str = "PNG",
) -> bytes:
    """Create a test image in the given format."""
    img = Image.new(mode, (width, height), color)
    buf = BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


def make_manifest(*urls: str) -> AssetManifest:
    """Manifest with one pending entry per URL, ids img-0, img-1, ..."""
    return AssetManifest(images=[
        ImageAssetEntry(id=f"img-{i}", original_url=url)
        for i, url in enumerate(urls)
    ])


class RecordingHandler:
    """httpx.MockTransport handler that records every request.

    ``routes`` maps a URL to a response, or to a callable taking the request
    and returning one. Unrouted requests get a 404.
    """

    def __init__(self, routes=None):
        self.routes = routes or {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(str(request.url))
        if route is None:
            return httpx.Response(404)
        if callable(route):
            return route(request)
        # Fresh response per request, the same route may be hit repeatedly
        return httpx.Response(route.status_code, headers=route.headers, content=route.content)

    @property
    def urls(self) -> list[str]:
        return [str(r.url) for r in self.requests]


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def png_bytes() -> bytes:
    return make_image_bytes()


@pytest.fixture
def sample_tree_dict() -> dict:
    """JSON form of a small article as produced by the upstream parser."""
    return {
        "type": "root",
        "children": [
            {"type": "heading", "depth": 2, "children": [{"type": "text", "value": "Intro"}]},
            {
                "type": "paragraph",
                "children": [
                    {"type": "text", "value": "Hello "},
                    {"type": "strong", "children": [{"type": "text", "value": "world"}]},
                ],
            },
            {
                "type": "imageBlock",
                "assetId": "img-0",
                "originalUrl": "https://cdn.example.com/a.png",
                "alt": "diagram",
            },
            {"type": "mathBlock", "tex": "E = mc^2"},
        ],
    }
