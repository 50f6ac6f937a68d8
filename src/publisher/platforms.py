"""Capability matrix of the supported targets.

Maps each platform to the body format it accepts, whether it renders LaTeX,
whether hotlinked images survive, and its publishing rate limit. Also
derives the serializer profile a platform gets by default.

Usage:
    from src.publisher.platforms import get_capabilities, serialize_options_for

    caps = get_capabilities("zhihu")
    options = serialize_options_for("zhihu", caps)
"""

from __future__ import annotations

from typing import Optional

from src.assets.models import RateLimit
from src.serializer.options import SerializeOptions

from .models import ContentFormat, PlatformCapabilities


def _caps(
    markdown: bool,
    html: bool,
    latex: bool = False,
    external_images: bool = True,
    rpm: int = 30,
) -> PlatformCapabilities:
    return PlatformCapabilities(
        supports_markdown=markdown,
        supports_html=html,
        supports_latex=latex,
        external_images=external_images,
        rate_limit=RateLimit(rpm=rpm, concurrent=1),
    )


PLATFORM_CAPABILITIES: dict[str, PlatformCapabilities] = {
    "juejin": _caps(markdown=True, html=False, latex=True),
    "csdn": _caps(markdown=True, html=False, latex=True),
    "zhihu": _caps(markdown=False, html=True, external_images=False),
    "wechat": _caps(markdown=False, html=True, external_images=False),
    "jianshu": _caps(markdown=True, html=False, rpm=20),
    "cnblogs": _caps(markdown=True, html=True, latex=True),
    "51cto": _caps(markdown=True, html=False),
    "tencent-cloud": _caps(markdown=True, html=True),
    "aliyun": _caps(markdown=True, html=False, external_images=False),
    "segmentfault": _caps(markdown=True, html=False),
    "bilibili": _caps(markdown=True, html=True, external_images=False, rpm=20),
    "oschina": _caps(markdown=False, html=True),
    "medium": _caps(markdown=False, html=True, rpm=20),
}


def get_capabilities(platform_id: str) -> Optional[PlatformCapabilities]:
    return PLATFORM_CAPABILITIES.get(platform_id)


def choose_content_format(capabilities: PlatformCapabilities) -> ContentFormat:
    """Markdown when the target takes it, HTML otherwise."""
    if capabilities.supports_markdown or not capabilities.supports_html:
        return ContentFormat.MARKDOWN
    return ContentFormat.HTML


def serialize_options_for(
    platform_id: str,
    capabilities: PlatformCapabilities,
) -> SerializeOptions:
    """Default serializer profile for a target.

    Targets without LaTeX support ask for image math; that mode still emits
    LaTeX until image rendering exists.
    """
    fmt = choose_content_format(capabilities)
    return SerializeOptions.from_settings(
        format=fmt.value,
        platform=platform_id,
        math_mode="latex" if capabilities.supports_latex else "image",
    )
