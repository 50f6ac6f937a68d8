"""Image downloader with anti-hotlink referrer fallback.

Many image hosts reject requests whose ``Referer`` is not their own site.
Each remote image is tried with a short chain of referrers:

    1. the host's own site, for known anti-hotlink hosts
    2. the image's own origin
    3. a neutral referrer (search engine)
    4. no referrer at all

401/403 advance to the next candidate; any other error status or a
transport error ends the attempt for that image. ``local://`` and
``data:`` images are decoded from their inline payload without I/O.
"""

from __future__ import annotations

import asyncio
import mimetypes
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional
from urllib.parse import urlparse

import httpx

from src.common.config import settings
from src.common.logging import setup_logging

from .data_url import decode_data_url
from .errors import FetchError
from .models import FetchedImage, ImageAssetEntry

logger = setup_logging(module_name="assets.fetcher")

# Image host suffix → site that embeds its images
HOST_REFERRERS: dict[str, str] = {
    "csdnimg.cn": "https://blog.csdn.net/",
    "zhimg.com": "https://www.zhihu.com/",
    "mmbiz.qpic.cn": "https://mp.weixin.qq.com/",
    "jianshu.io": "https://www.jianshu.com/",
    "cnblogs.com": "https://www.cnblogs.com/",
    "byteimg.com": "https://juejin.cn/",
    "juejin.cn": "https://juejin.cn/",
    "hdslb.com": "https://www.bilibili.com/",
}

RETRY_NEXT_REFERRER = (401, 403)


@dataclass
class FetchBatch:
    """Outcome of downloading a set of images, keyed by original URL."""
    images: dict[str, FetchedImage] = field(default_factory=dict)
    failed: dict[str, str] = field(default_factory=dict)

    def merge(self, other: FetchBatch) -> FetchBatch:
        return FetchBatch(
            images={**self.images, **other.images},
            failed={**self.failed, **other.failed},
        )


def _host_referrer(host: str) -> Optional[str]:
    for suffix, referrer in HOST_REFERRERS.items():
        if host == suffix or host.endswith("." + suffix):
            return referrer
    return None


def referrer_candidates(url: str, neutral_referrer: str) -> list[Optional[str]]:
    """Ordered, de-duplicated referrers to try for ``url``; None means no header."""
    parsed = urlparse(url)
    host = (parsed.hostname or "").lower()

    candidates: list[Optional[str]] = []
    for candidate in (
        _host_referrer(host),
        f"{parsed.scheme}://{parsed.netloc}/" if parsed.scheme and parsed.netloc else None,
        neutral_referrer or None,
    ):
        if candidate and candidate not in candidates:
            candidates.append(candidate)
    candidates.append(None)
    return candidates


def _mime_from_response(resp: httpx.Response, url: str) -> str:
    content_type = resp.headers.get("content-type", "").split(";")[0].strip().lower()
    if content_type.startswith("image/"):
        return content_type
    guessed, _ = mimetypes.guess_type(urlparse(url).path)
    return guessed or "image/jpeg"


class ImageFetcher:
    """Downloads image bytes for manifest entries.

    Args:
        client: Shared ``httpx.AsyncClient``. When omitted, one is created
            lazily and closed by ``aclose()``.
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        user_agent: Optional[str] = None,
        neutral_referrer: Optional[str] = None,
    ):
        cfg = settings.pipeline
        self._client = client
        self._owns_client = client is None
        self.timeout = timeout if timeout is not None else cfg.fetch_timeout_seconds
        self.user_agent = user_agent or cfg.user_agent
        self.neutral_referrer = (
            neutral_referrer if neutral_referrer is not None else cfg.neutral_referrer
        )

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(follow_redirects=True, timeout=self.timeout)
        return self._client

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> ImageFetcher:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    # --- Single image ---

    async def fetch(self, url: str, data_url: Optional[str] = None) -> FetchedImage:
        """Return the bytes of one image.

        Raises:
            FetchError: Missing inline payload, undecodable data URL,
                terminal HTTP status or transport error.
        """
        if url.startswith("local://"):
            if not data_url:
                raise FetchError("local image has no inline payload", url=url)
            return self._decode(url, data_url)
        if url.startswith("data:"):
            return self._decode(url, url)
        if url.startswith("blob:"):
            raise FetchError("blob: URLs are only readable inside the page that created them", url=url)
        return await self._fetch_remote(url)

    @staticmethod
    def _decode(url: str, data_url: str) -> FetchedImage:
        try:
            data, mime_type = decode_data_url(data_url)
        except ValueError as e:
            raise FetchError(str(e), url=url) from e
        return FetchedImage(original_url=url, data=data, mime_type=mime_type)

    async def _fetch_remote(self, url: str) -> FetchedImage:
        last_status: Optional[int] = None
        for referrer in referrer_candidates(url, self.neutral_referrer):
            headers = {
                "User-Agent": self.user_agent,
                "Accept": "image/avif,image/webp,image/apng,image/*,*/*;q=0.8",
            }
            if referrer:
                headers["Referer"] = referrer

            try:
                resp = await self.client.get(url, headers=headers, timeout=self.timeout)
            except httpx.HTTPError as e:
                raise FetchError(f"request failed: {e}", url=url) from e

            if resp.status_code in RETRY_NEXT_REFERRER:
                last_status = resp.status_code
                logger.debug(
                    "HTTP %d for %s with referrer %s, trying next",
                    resp.status_code, url, referrer or "<none>",
                )
                continue
            if not resp.is_success:
                raise FetchError(f"HTTP {resp.status_code}", url=url, status=resp.status_code)

            return FetchedImage(
                original_url=url,
                data=resp.content,
                mime_type=_mime_from_response(resp, url),
            )

        raise FetchError(
            f"rejected with every referrer (last HTTP {last_status})",
            url=url,
            status=last_status,
        )

    # --- Batches ---

    async def fetch_all(
        self,
        entries: Iterable[ImageAssetEntry],
        concurrency: int = 3,
        on_fetched: Optional[Callable[[str], None]] = None,
    ) -> FetchBatch:
        """Download every entry, at most ``concurrency`` at a time.

        Failures are recorded in ``FetchBatch.failed``; nothing is raised.
        """
        semaphore = asyncio.Semaphore(max(concurrency, 1))
        batch = FetchBatch()

        async def _one(entry: ImageAssetEntry) -> None:
            async with semaphore:
                try:
                    image = await self.fetch(entry.original_url, entry.metadata.data_url)
                except FetchError as e:
                    logger.warning("Image download failed: %s (%s)", entry.original_url, e)
                    batch.failed[entry.original_url] = str(e)
                else:
                    batch.images[entry.original_url] = image
                if on_fetched is not None:
                    on_fetched(entry.original_url)

        await asyncio.gather(*(_one(e) for e in entries))
        return batch
