"""Image upload pipeline.

Takes a document's asset manifest and a platform's upload strategy and
produces the original→final URL mapping the serializer consumes.

Flow per call:
    1. Nothing to do for hotlink-friendly platforms (no I/O at all)
    2. Images already uploaded to this platform are mapped directly
    3. Download the rest (shared per job through ``JobImageCache``)
    4. Normalize bytes for the platform constraints
    5. Upload with bounded concurrency and rpm pacing

A failing image never fails the call: it is logged, counted in
``stats.failed`` and left out of the mapping, so the serializer keeps its
original URL.

Usage:
    from src.assets import ImageUploadPipeline, get_image_strategy

    async with ImageUploadPipeline() as pipeline:
        outcome = await pipeline.upload(manifest, get_image_strategy("csdn"), "csdn")
    print(outcome.url_mapping, outcome.stats)
"""

from __future__ import annotations

import asyncio
from functools import partial
from typing import Any, Awaitable, Callable, Optional

import httpx

from src.common.config import settings
from src.common.logging import setup_logging

from .errors import UploadError
from .fetcher import FetchBatch, ImageFetcher
from .image_processor import ImageNormalizer, extension_for_mime
from .job_cache import JobImageCache
from .models import (
    AssetManifest,
    FetchedImage,
    ImageAssetEntry,
    ImageUploadResult,
    RateLimit,
    SessionContext,
    UploadOutcome,
    UploadProgress,
    UploadStats,
)
from .rate_limiter import AsyncRateLimiter
from .response_parser import extract_image_url
from .strategies import (
    CsrfTokenSource,
    DelegatedPaste,
    DirectUpload,
    DomPasteConfig,
    ExternalUrlOnly,
    UrlFetchUpload,
)

logger = setup_logging(module_name="assets.pipeline")

PasteHandler = Callable[[bytes, str, DomPasteConfig], Awaitable[Optional[str]]]
ProgressCallback = Callable[[UploadProgress], None]

# Token names sites commonly use when a strategy declares none:
# (source, name, header)
COMMON_CSRF_SOURCES: tuple[tuple[str, str, str], ...] = (
    ("cookie", "_xsrf", "X-Xsrftoken"),
    ("cookie", "XSRF-TOKEN", "X-XSRF-TOKEN"),
    ("cookie", "csrftoken", "X-CSRFToken"),
    ("cookie", "csrf_token", "X-CSRF-Token"),
    ("cookie", "_csrf", "X-CSRF-Token"),
    ("meta", "csrf-token", "X-CSRF-Token"),
    ("meta", "_csrf", "X-CSRF-Token"),
    ("meta", "csrf_token", "X-CSRF-Token"),
)


def _read_session_value(session: SessionContext, source: str, name: str) -> Optional[str]:
    store = {
        "cookie": session.cookies,
        "meta": session.page_meta,
        "localStorage": session.local_storage,
        "header": session.headers,
    }.get(source, {})
    return store.get(name) or None


def resolve_csrf_header(
    session: Optional[SessionContext],
    declared: Optional[CsrfTokenSource] = None,
) -> Optional[tuple[str, str]]:
    """Return ``(header_name, token)`` for an upload request, if any.

    The declared source wins; otherwise the common cookie and meta names
    are tried in order.
    """
    if session is None:
        return None
    if declared is not None:
        token = _read_session_value(session, declared.type, declared.name)
        if token:
            return declared.header_name or "X-CSRF-Token", token
        logger.debug("Declared CSRF token %s:%s not found", declared.type, declared.name)
    for source, name, header in COMMON_CSRF_SOURCES:
        token = _read_session_value(session, source, name)
        if token:
            return header, token
    return None


def _cookie_header(session: Optional[SessionContext]) -> Optional[str]:
    if session is None or not session.cookies:
        return None
    return "; ".join(f"{k}={v}" for k, v in session.cookies.items())


class ImageUploadPipeline:
    """Fetches, normalizes and uploads the images of one document.

    Args:
        client: Shared ``httpx.AsyncClient`` for downloads and uploads.
            Created lazily (and closed by ``aclose()``) when omitted.
        job_cache: Shared download cache; pass the same instance to every
            pipeline that should share downloads within a job.
        concurrency: Upper bound on simultaneous downloads and uploads.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        job_cache: Optional[JobImageCache] = None,
        fetcher: Optional[ImageFetcher] = None,
        normalizer: Optional[ImageNormalizer] = None,
        concurrency: Optional[int] = None,
        upload_timeout: Optional[float] = None,
    ):
        cfg = settings.pipeline
        self._client = client
        self._owns_client = client is None
        self.job_cache = job_cache
        self.fetcher = fetcher or ImageFetcher(client=client)
        self.normalizer = normalizer or ImageNormalizer()
        self.concurrency = max(concurrency or cfg.concurrency, 1)
        self.upload_timeout = upload_timeout or cfg.upload_timeout_seconds

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(follow_redirects=True, timeout=self.upload_timeout)
        return self._client

    async def aclose(self) -> None:
        await self.fetcher.aclose()
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> ImageUploadPipeline:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    # --- Public API ---

    async def upload(
        self,
        manifest: AssetManifest,
        strategy: Any,
        platform_id: str,
        on_progress: Optional[ProgressCallback] = None,
        job_id: Optional[str] = None,
        session: Optional[SessionContext] = None,
        paste_handler: Optional[PasteHandler] = None,
        rate_limit: Optional[RateLimit] = None,
    ) -> UploadOutcome:
        """Upload every manifest image for ``platform_id``.

        Returns:
            UploadOutcome keyed by original URL. Failed images are absent
            from the mapping and counted in ``stats.failed``.

        Raises:
            TypeError: ``strategy`` is not a known strategy variant.
        """
        images = list(manifest.images)
        stats = UploadStats(total=len(images))

        if strategy is None or isinstance(strategy, ExternalUrlOnly):
            logger.debug("%s accepts external images, skipping upload", platform_id)
            return UploadOutcome(url_mapping={}, stats=stats)
        if not isinstance(strategy, (DirectUpload, UrlFetchUpload, DelegatedPaste)):
            raise TypeError(f"Unsupported upload strategy: {type(strategy).__name__}")

        url_mapping: dict[str, str] = {}
        pending: list[ImageAssetEntry] = []
        for image in images:
            existing = image.uploaded_urls.get(platform_id)
            if existing:
                url_mapping[image.original_url] = existing
                stats.success += 1
            else:
                pending.append(image)

        if not pending:
            self._report(on_progress, len(images), len(images), "complete")
            return UploadOutcome(url_mapping=url_mapping, stats=stats)

        logger.info(
            "Uploading %d image(s) to %s via %s (%d already uploaded)",
            len(pending), platform_id, strategy.mode, stats.success,
        )

        # 1. Download
        if isinstance(strategy, UrlFetchUpload):
            fetched = FetchBatch()
        else:
            self._report(on_progress, len(images), stats.success, "downloading")
            fetched = await self._download(pending, job_id)

        # 2. Upload
        limit = self.concurrency
        if rate_limit is not None and rate_limit.concurrent:
            limit = min(limit, rate_limit.concurrent)
        semaphore = asyncio.Semaphore(limit)
        limiter = AsyncRateLimiter(rate_limit.rpm if rate_limit is not None else None)
        completed = stats.success

        async def _one(index: int, entry: ImageAssetEntry) -> ImageUploadResult:
            nonlocal completed
            async with semaphore:
                result = await self._upload_one(
                    index, entry, fetched, strategy, session, paste_handler, limiter,
                )
            completed += 1
            self._report(on_progress, len(images), completed, "uploading", entry.original_url)
            return result

        results = await asyncio.gather(*(_one(i, e) for i, e in enumerate(pending)))

        for result in results:
            if result.success:
                url_mapping[result.original_url] = result.new_url
                stats.success += 1
            else:
                stats.failed += 1

        self._report(on_progress, len(images), len(images), "complete")
        logger.info(
            "%s image upload finished: %d/%d succeeded, %d failed",
            platform_id, stats.success, stats.total, stats.failed,
        )
        return UploadOutcome(url_mapping=url_mapping, stats=stats)

    # --- Stages ---

    async def _download(self, entries: list[ImageAssetEntry], job_id: Optional[str]) -> FetchBatch:
        fetch_batch = partial(self.fetcher.fetch_all, concurrency=self.concurrency)
        try:
            if job_id and self.job_cache is not None:
                return await self.job_cache.get_or_fetch(job_id, entries, fetch_batch)
            return await fetch_batch(entries)
        except Exception as e:
            logger.error("Image download batch failed: %s", e)
            return FetchBatch(failed={entry.original_url: str(e) for entry in entries})

    async def _upload_one(
        self,
        index: int,
        entry: ImageAssetEntry,
        fetched: FetchBatch,
        strategy: Any,
        session: Optional[SessionContext],
        paste_handler: Optional[PasteHandler],
        limiter: AsyncRateLimiter,
    ) -> ImageUploadResult:
        url = entry.original_url
        try:
            if isinstance(strategy, UrlFetchUpload):
                if not url.startswith(("http://", "https://")):
                    raise UploadError("image has no public URL for the platform to fetch", url=url)
                await limiter.wait()
                new_url = await self._upload_by_url(strategy, url, session)
            else:
                image = fetched.images.get(url)
                if image is None:
                    reason = fetched.failed.get(url, "not downloaded")
                    return ImageUploadResult(original_url=url, new_url="", success=False, error=reason)

                normalized = await asyncio.to_thread(
                    self.normalizer.normalize, image.data, image.mime_type, strategy.constraints,
                )
                image = FetchedImage(original_url=url, data=normalized.data, mime_type=normalized.mime_type)

                await limiter.wait()
                if isinstance(strategy, DirectUpload):
                    new_url = await self._upload_direct(strategy, image, index, session)
                else:
                    new_url = await self._upload_paste(strategy, image, paste_handler)
        except UploadError as e:
            logger.warning("Image upload failed: %s (%s)", url, e)
            return ImageUploadResult(original_url=url, new_url="", success=False, error=str(e))
        except Exception as e:
            logger.error("Unexpected error uploading %s: %s", url, e)
            return ImageUploadResult(original_url=url, new_url="", success=False, error=str(e))

        logger.debug("Uploaded: %s → %s", url, new_url)
        return ImageUploadResult(original_url=url, new_url=new_url, success=True)

    # --- Upload modes ---

    def _request_headers(
        self,
        extra: dict[str, str],
        csrf_source: Optional[CsrfTokenSource],
        session: Optional[SessionContext],
    ) -> dict[str, str]:
        headers = {
            "User-Agent": settings.pipeline.user_agent,
            "Accept": "application/json, text/plain, */*",
        }
        headers.update(extra)
        cookie = _cookie_header(session)
        if cookie:
            headers["Cookie"] = cookie
        csrf = resolve_csrf_header(session, csrf_source)
        if csrf:
            headers[csrf[0]] = csrf[1]
        return headers

    async def _upload_direct(
        self,
        strategy: DirectUpload,
        image: FetchedImage,
        index: int,
        session: Optional[SessionContext],
    ) -> str:
        endpoints = (strategy.upload_url, *strategy.fallback_upload_urls)
        filename = f"image-{index}.{extension_for_mime(image.mime_type)}"
        last_error: Optional[UploadError] = None

        for endpoint in endpoints:
            try:
                resp = await self.client.request(
                    strategy.method,
                    endpoint,
                    data=dict(strategy.extra_fields),
                    files={strategy.file_field_name: (filename, image.data, image.mime_type)},
                    headers=self._request_headers(strategy.headers, strategy.csrf_token, session),
                    timeout=self.upload_timeout,
                )
                return self._parse_upload_response(resp, endpoint, strategy.response_parser)
            except httpx.HTTPError as e:
                last_error = UploadError(f"request failed: {e}", url=endpoint)
            except UploadError as e:
                last_error = e
            if endpoint != endpoints[-1]:
                logger.info("Upload to %s failed (%s), trying next endpoint", endpoint, last_error)

        raise last_error

    async def _upload_by_url(
        self,
        strategy: UrlFetchUpload,
        url: str,
        session: Optional[SessionContext],
    ) -> str:
        payload = {**strategy.extra_fields, strategy.url_field_name: url}
        try:
            resp = await self.client.post(
                strategy.fetch_url,
                json=payload,
                headers=self._request_headers(strategy.headers, strategy.csrf_token, session),
                timeout=self.upload_timeout,
            )
        except httpx.HTTPError as e:
            raise UploadError(f"request failed: {e}", url=strategy.fetch_url) from e
        return self._parse_upload_response(resp, strategy.fetch_url, strategy.response_parser)

    async def _upload_paste(
        self,
        strategy: DelegatedPaste,
        image: FetchedImage,
        paste_handler: Optional[PasteHandler],
    ) -> str:
        if paste_handler is None:
            raise UploadError("no paste handler available for this platform", url=image.original_url)

        config = strategy.dom_paste_config
        timeout_ms = config.timeout_ms or settings.pipeline.dom_paste_timeout_ms
        try:
            new_url = await asyncio.wait_for(
                paste_handler(image.data, image.mime_type, config),
                timeout=timeout_ms / 1000,
            )
        except asyncio.TimeoutError as e:
            raise UploadError(
                f"editor did not return an image URL within {timeout_ms}ms",
                url=image.original_url,
            ) from e
        if not new_url:
            raise UploadError("editor returned no image URL", url=image.original_url)
        return new_url

    @staticmethod
    def _parse_upload_response(
        resp: httpx.Response,
        endpoint: str,
        parser: Optional[Callable[[Any], Optional[str]]],
    ) -> str:
        if not resp.is_success:
            raise UploadError(f"HTTP {resp.status_code}", url=endpoint, status=resp.status_code)
        try:
            body: Any = resp.json()
        except ValueError:
            body = resp.text.strip()

        new_url = extract_image_url(body, endpoint, parser)
        if not new_url:
            raise UploadError("no image URL in upload response", url=endpoint, status=resp.status_code)
        return new_url

    @staticmethod
    def _report(
        on_progress: Optional[ProgressCallback],
        total: int,
        completed: int,
        stage: str,
        current: str = "",
    ) -> None:
        if on_progress is None:
            return
        try:
            on_progress(UploadProgress(total=total, completed=completed, stage=stage, current=current))
        except Exception as e:
            logger.warning("Progress callback raised: %s", e)
