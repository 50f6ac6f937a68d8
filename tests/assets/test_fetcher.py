"""Tests for the referrer-aware image downloader."""

import asyncio

import httpx
import pytest

from src.assets.data_url import encode_data_url
from src.assets.errors import FetchError
from src.assets.fetcher import FetchBatch, ImageFetcher, referrer_candidates
from conftest import RecordingHandler, make_manifest

NEUTRAL = "https://www.google.com/"
CSDN_IMAGE = "https://img-blog.csdnimg.cn/2024/a.png"


def _run(handler, fn):
    """Run ``fn(fetcher)`` against a mock transport."""
    async def main():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            fetcher = ImageFetcher(client=client, neutral_referrer=NEUTRAL)
            return await fn(fetcher)

    return asyncio.run(main())


def _png(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, content=b"PNGDATA", headers={"content-type": "image/png"})


class TestReferrerCandidates:
    def test_known_host(self):
        assert referrer_candidates(CSDN_IMAGE, NEUTRAL) == [
            "https://blog.csdn.net/",
            "https://img-blog.csdnimg.cn/",
            NEUTRAL,
            None,
        ]

    def test_unknown_host(self):
        assert referrer_candidates("https://x.io/a.png", NEUTRAL) == ["https://x.io/", NEUTRAL, None]

    def test_no_neutral(self):
        assert referrer_candidates("https://x.io/a.png", "") == ["https://x.io/", None]

    def test_duplicates_removed(self):
        assert referrer_candidates("https://www.google.com/a.png", NEUTRAL) == [NEUTRAL, None]


class TestFetchRemote:
    def test_success_on_first_referrer(self):
        handler = RecordingHandler({CSDN_IMAGE: _png})
        image = _run(handler, lambda f: f.fetch(CSDN_IMAGE))
        assert image.data == b"PNGDATA"
        assert image.mime_type == "image/png"
        assert len(handler.requests) == 1
        assert handler.requests[0].headers["referer"] == "https://blog.csdn.net/"
        assert "Mozilla" in handler.requests[0].headers["user-agent"]

    def test_forbidden_advances_to_next_referrer(self):
        def only_without_referrer(request):
            if "referer" in request.headers:
                return httpx.Response(403)
            return _png(request)

        handler = RecordingHandler({CSDN_IMAGE: only_without_referrer})
        image = _run(handler, lambda f: f.fetch(CSDN_IMAGE))
        assert image.data == b"PNGDATA"
        assert [r.headers.get("referer") for r in handler.requests] == [
            "https://blog.csdn.net/",
            "https://img-blog.csdnimg.cn/",
            NEUTRAL,
            None,
        ]

    def test_unauthorized_also_advances(self):
        responses = iter([httpx.Response(401), httpx.Response(200, content=b"x")])
        handler = RecordingHandler({"https://x.io/a.png": lambda r: next(responses)})
        image = _run(handler, lambda f: f.fetch("https://x.io/a.png"))
        assert image.data == b"x"
        assert len(handler.requests) == 2

    def test_every_referrer_rejected(self):
        handler = RecordingHandler({"https://x.io/a.png": httpx.Response(403)})
        with pytest.raises(FetchError) as exc_info:
            _run(handler, lambda f: f.fetch("https://x.io/a.png"))
        assert exc_info.value.status == 403
        assert len(handler.requests) == 3

    def test_server_error_is_terminal(self):
        handler = RecordingHandler({"https://x.io/a.png": httpx.Response(500)})
        with pytest.raises(FetchError) as exc_info:
            _run(handler, lambda f: f.fetch("https://x.io/a.png"))
        assert exc_info.value.status == 500
        assert len(handler.requests) == 1

    def test_not_found_is_terminal(self):
        handler = RecordingHandler()
        with pytest.raises(FetchError):
            _run(handler, lambda f: f.fetch("https://x.io/missing.png"))
        assert len(handler.requests) == 1

    def test_transport_error(self):
        def boom(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(FetchError, match="request failed"):
            _run(RecordingHandler({"https://x.io/a.png": boom}), lambda f: f.fetch("https://x.io/a.png"))

    def test_mime_guessed_from_url(self):
        handler = RecordingHandler({
            "https://x.io/a.gif": httpx.Response(200, content=b"GIF", headers={"content-type": "text/plain"}),
        })
        assert _run(handler, lambda f: f.fetch("https://x.io/a.gif")).mime_type == "image/gif"


class TestFetchInline:
    def test_data_url(self):
        handler = RecordingHandler()
        url = encode_data_url(b"abc", "image/gif")
        image = _run(handler, lambda f: f.fetch(url))
        assert (image.data, image.mime_type) == (b"abc", "image/gif")
        assert handler.requests == []

    def test_local_with_payload(self):
        payload = encode_data_url(b"xyz", "image/png")
        image = _run(RecordingHandler(), lambda f: f.fetch("local://a1", payload))
        assert image.original_url == "local://a1"
        assert image.data == b"xyz"

    def test_local_without_payload(self):
        with pytest.raises(FetchError, match="inline payload"):
            _run(RecordingHandler(), lambda f: f.fetch("local://a1"))

    def test_blob_url(self):
        with pytest.raises(FetchError):
            _run(RecordingHandler(), lambda f: f.fetch("blob:https://editor.io/1"))

    def test_bad_data_url(self):
        with pytest.raises(FetchError):
            _run(RecordingHandler(), lambda f: f.fetch("data:nocomma"))


class TestFetchAll:
    def test_failures_are_collected(self):
        handler = RecordingHandler({
            "https://x.io/1.png": _png,
            "https://x.io/3.png": _png,
        })
        manifest = make_manifest("https://x.io/1.png", "https://x.io/2.png", "https://x.io/3.png")
        done = []
        batch = _run(handler, lambda f: f.fetch_all(manifest.images, concurrency=2, on_fetched=done.append))
        assert isinstance(batch, FetchBatch)
        assert set(batch.images) == {"https://x.io/1.png", "https://x.io/3.png"}
        assert list(batch.failed) == ["https://x.io/2.png"]
        assert sorted(done) == ["https://x.io/1.png", "https://x.io/2.png", "https://x.io/3.png"]

    def test_merge(self):
        a = FetchBatch(failed={"u1": "x"})
        b = FetchBatch(failed={"u2": "y"})
        assert a.merge(b).failed == {"u1": "x", "u2": "y"}
        assert a.failed == {"u1": "x"}
