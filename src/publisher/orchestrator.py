"""Publish orchestrator: canonical post to per-target payloads.

Orchestrates the flow for each target:
    manifest → image upload → serialize (or rewrite raw body) → adapter

Several targets of one job run concurrently and share downloads through
the job image cache.

Usage:
    orchestrator = PublishOrchestrator(adapters=[CsdnAdapter(), ZhihuAdapter()])
    results = await orchestrator.publish_many("job-42", post, ["csdn", "zhihu"])
"""

from __future__ import annotations

import asyncio
from typing import Any, Iterable, Mapping, Optional

import markdown as md

from src.assets.job_cache import JobImageCache
from src.assets.manifest import build_asset_manifest
from src.assets.models import AssetManifest, AssetRef, SessionContext, UploadOutcome
from src.assets.pipeline import ImageUploadPipeline, ProgressCallback
from src.assets.rewrite import is_local_image_url, replace_image_urls
from src.assets.strategies import PLATFORM_IMAGE_STRATEGIES, ExternalUrlOnly
from src.common.logging import setup_logging
from src.document.nodes import ImageBlockNode, ImageInlineNode, RootNode
from src.document.transformer import visit_tree
from src.serializer import serialize

from .models import (
    CanonicalPost,
    ContentFormat,
    PlatformCapabilities,
    PlatformPayload,
    PreparedPost,
    PublishResult,
    TargetAdapter,
)
from .platforms import choose_content_format, get_capabilities, serialize_options_for

logger = setup_logging(module_name="publisher.orchestrator")


def _tree_image_refs(tree: RootNode) -> list[AssetRef]:
    """Images referenced by the tree, as explicit assets for the manifest."""
    refs: list[AssetRef] = []

    def visitor(node: Any) -> Any:
        if isinstance(node, (ImageBlockNode, ImageInlineNode)) and node.original_url:
            refs.append(AssetRef(
                id=node.asset_id or f"tree-{len(refs)}",
                url=node.original_url,
                alt=node.alt,
                title=node.title,
            ))
        return node

    visit_tree(tree, visitor)
    return refs


class PublishOrchestrator:
    """Prepares and publishes one canonical post to many targets.

    Args:
        adapters: Target adapters, keyed by ``platform_id``.
        pipeline: Upload pipeline; one sharing ``job_cache`` is created
            when omitted.
        strategies: Per-platform upload strategies (defaults to the
            built-in registry).
        sessions: Per-platform browser session state for CSRF tokens.
    """

    def __init__(
        self,
        adapters: Iterable[TargetAdapter] | Mapping[str, TargetAdapter] = (),
        pipeline: Optional[ImageUploadPipeline] = None,
        job_cache: Optional[JobImageCache] = None,
        strategies: Optional[Mapping[str, Any]] = None,
        sessions: Optional[Mapping[str, SessionContext]] = None,
    ):
        if isinstance(adapters, Mapping):
            self.adapters = dict(adapters)
        else:
            self.adapters = {a.platform_id: a for a in adapters}
        self.job_cache = job_cache or JobImageCache()
        self.pipeline = pipeline or ImageUploadPipeline(job_cache=self.job_cache)
        self.strategies = dict(PLATFORM_IMAGE_STRATEGIES if strategies is None else strategies)
        self.sessions = dict(sessions or {})

    async def aclose(self) -> None:
        await self.pipeline.aclose()

    def capabilities_for(self, platform_id: str) -> PlatformCapabilities:
        adapter = self.adapters.get(platform_id)
        if adapter is not None:
            return adapter.capabilities
        return get_capabilities(platform_id) or PlatformCapabilities()

    def build_manifest(self, post: CanonicalPost) -> AssetManifest:
        assets = list(post.assets)
        if post.tree is not None:
            assets.extend(_tree_image_refs(post.tree))
        return build_asset_manifest(post.body_md, assets)

    # --- Public API ---

    async def prepare(
        self,
        job_id: str,
        post: CanonicalPost,
        platform_id: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> PreparedPost:
        """Upload images and render the payload for one target.

        Never fails because of images: unmapped images keep their original
        URL and are reported in ``warnings``.
        """
        capabilities = self.capabilities_for(platform_id)
        adapter = self.adapters.get(platform_id)
        manifest = self.build_manifest(post)
        strategy = self.strategies.get(platform_id)

        logger.info(
            "Preparing %s for %s: %d image(s), strategy=%s",
            post.id, platform_id, len(manifest),
            getattr(strategy, "mode", "none"),
        )

        outcome = await self.pipeline.upload(
            manifest,
            strategy,
            platform_id,
            on_progress=on_progress,
            job_id=job_id,
            session=self.sessions.get(platform_id),
            paste_handler=adapter.paste_image if adapter is not None else None,
            rate_limit=capabilities.rate_limit,
        )

        payload = self._build_payload(job_id, post, platform_id, capabilities, manifest, outcome)
        warnings = self._collect_warnings(platform_id, strategy, capabilities, manifest, outcome)
        for warning in warnings:
            logger.warning("%s: %s", platform_id, warning)

        return PreparedPost(
            platform=platform_id,
            payload=payload,
            stats=outcome.stats,
            url_mapping=outcome.url_mapping,
            warnings=warnings,
        )

    async def publish(
        self,
        job_id: str,
        post: CanonicalPost,
        platform_id: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> PublishResult:
        """Prepare and submit the post to one target."""
        adapter = self.adapters.get(platform_id)
        if adapter is None:
            return PublishResult(
                success=False,
                platform=platform_id,
                error=f"No adapter registered for {platform_id}",
            )

        prepared = await self.prepare(job_id, post, platform_id, on_progress=on_progress)
        try:
            result = await adapter.publish(prepared.payload)
        except Exception as e:
            logger.error("Publishing to %s failed: %s", platform_id, e)
            result = PublishResult(success=False, platform=platform_id, error=str(e))

        if prepared.warnings:
            result.meta.setdefault("warnings", []).extend(prepared.warnings)
        result.meta["image_stats"] = {
            "total": prepared.stats.total,
            "success": prepared.stats.success,
            "failed": prepared.stats.failed,
        }
        if result.success:
            logger.info("%s → %s: %s", post.id, platform_id, result.url or "published")
        else:
            logger.warning("%s → %s failed: %s", post.id, platform_id, result.error)
        return result

    async def publish_many(
        self,
        job_id: str,
        post: CanonicalPost,
        platform_ids: Iterable[str],
    ) -> dict[str, PublishResult]:
        """Publish to several targets concurrently, sharing image downloads."""
        platform_ids = list(dict.fromkeys(platform_ids))
        results = await asyncio.gather(
            *(self.publish(job_id, post, pid) for pid in platform_ids)
        )
        succeeded = sum(1 for r in results if r.success)
        logger.info("Job %s complete: %d/%d targets published", job_id, succeeded, len(results))
        return dict(zip(platform_ids, results))

    # --- Helpers ---

    def _build_payload(
        self,
        job_id: str,
        post: CanonicalPost,
        platform_id: str,
        capabilities: PlatformCapabilities,
        manifest: AssetManifest,
        outcome: UploadOutcome,
    ) -> PlatformPayload:
        mapping = outcome.url_mapping
        fmt = choose_content_format(capabilities)
        options = serialize_options_for(platform_id, capabilities).with_images(
            mapping, manifest.with_uploads(platform_id, mapping),
        )

        if post.tree is not None:
            content = serialize(post.tree, options)
        else:
            rewritten = replace_image_urls(post.body_md, mapping)
            if fmt is ContentFormat.MARKDOWN:
                content = rewritten
            else:
                content = md.markdown(rewritten, extensions=["tables", "fenced_code"])

        cover = None
        if post.cover is not None and post.cover.url:
            cover = mapping.get(post.cover.url, post.cover.url)

        return PlatformPayload(
            title=post.title,
            content_markdown=content if fmt is ContentFormat.MARKDOWN else None,
            content_html=content if fmt is ContentFormat.HTML else None,
            tags=list(post.tags),
            categories=list(post.categories),
            summary=post.summary,
            cover=cover,
            meta={"job_id": job_id, "post_id": post.id, "format": fmt.value},
        )

    @staticmethod
    def _collect_warnings(
        platform_id: str,
        strategy: Any,
        capabilities: PlatformCapabilities,
        manifest: AssetManifest,
        outcome: UploadOutcome,
    ) -> list[str]:
        warnings: list[str] = []
        total = len(manifest)
        if total == 0:
            return warnings

        if strategy is None or isinstance(strategy, ExternalUrlOnly):
            local = [img.original_url for img in manifest.images if is_local_image_url(img.original_url)]
            if local:
                warnings.append(
                    f"{len(local)} local image(s) cannot be hotlinked by {platform_id} "
                    "and were kept as-is"
                )
            remote = total - len(local)
            if remote and not capabilities.external_images:
                warnings.append(
                    f"{remote} of {total} image(s) were not uploaded to {platform_id}, "
                    "which blocks external images; they keep their original URL"
                )
            return warnings

        mapped = len(outcome.url_mapping)
        if mapped < total:
            warnings.append(
                f"{total - mapped} of {total} image(s) were not uploaded to {platform_id} "
                "and keep their original URL"
            )
        return warnings
