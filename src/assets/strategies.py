"""Per-platform image upload strategies.

A strategy is a pure value describing how a platform wants to receive
images. The mode tag selects the variant:

    externalUrlOnly    hotlinks are fine, nothing is uploaded
    binaryUpload       multipart POST of the bytes to a site endpoint
    formUpload         same wire shape, classic form endpoint
    domPasteUpload     the target adapter pastes the bytes into its editor
    urlFetch           the site fetches the image itself from a URL

Usage:
    from src.assets.strategies import get_image_strategy, parse_strategy

    strategy = get_image_strategy("zhihu")
    custom = parse_strategy({"mode": "binaryUpload", "uploadUrl": "https://..."})
"""

from __future__ import annotations

from typing import Annotated, Any, Callable, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

ResponseParser = Callable[[Any], Optional[str]]


class _StrategyModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        alias_generator=to_camel,
        arbitrary_types_allowed=True,
    )


class ImageConstraints(_StrategyModel):
    accepted_mime_types: tuple[str, ...] = ("image/jpeg", "image/png", "image/gif")
    max_size_mb: Optional[float] = Field(default=None, alias="maxSizeMB", gt=0)
    max_width: Optional[int] = Field(default=None, gt=0)
    max_height: Optional[int] = Field(default=None, gt=0)


DEFAULT_CONSTRAINTS = ImageConstraints(max_size_mb=5)
WEBP_CONSTRAINTS = ImageConstraints(
    accepted_mime_types=("image/jpeg", "image/png", "image/gif", "image/webp"),
    max_size_mb=10,
)


class CsrfTokenSource(_StrategyModel):
    """Where to read a CSRF token and which header carries it."""
    type: Literal["cookie", "meta", "localStorage", "header"]
    name: str = Field(min_length=1)
    header_name: Optional[str] = None


class DomPasteConfig(_StrategyModel):
    editor_url: str = Field(min_length=1)
    editor_selector: str = Field(min_length=1)
    timeout_ms: Optional[int] = Field(default=None, gt=0)


class ExternalUrlOnly(_StrategyModel):
    mode: Literal["externalUrlOnly"] = "externalUrlOnly"
    constraints: Optional[ImageConstraints] = None


class DirectUpload(_StrategyModel):
    mode: Literal["binaryUpload", "formUpload"] = "binaryUpload"
    constraints: Optional[ImageConstraints] = None
    upload_url: str = Field(min_length=1)
    method: Literal["POST", "PUT"] = "POST"
    file_field_name: str = "file"
    extra_fields: dict[str, str] = Field(default_factory=dict)
    headers: dict[str, str] = Field(default_factory=dict)
    csrf_token: Optional[CsrfTokenSource] = None
    response_parser: Optional[ResponseParser] = Field(default=None, exclude=True)
    fallback_upload_urls: tuple[str, ...] = ()


class UrlFetchUpload(_StrategyModel):
    mode: Literal["urlFetch"] = "urlFetch"
    constraints: Optional[ImageConstraints] = None
    fetch_url: str = Field(min_length=1)
    url_field_name: str = "url"
    extra_fields: dict[str, str] = Field(default_factory=dict)
    headers: dict[str, str] = Field(default_factory=dict)
    csrf_token: Optional[CsrfTokenSource] = None
    response_parser: Optional[ResponseParser] = Field(default=None, exclude=True)


class DelegatedPaste(_StrategyModel):
    mode: Literal["domPasteUpload"] = "domPasteUpload"
    constraints: Optional[ImageConstraints] = None
    dom_paste_config: DomPasteConfig


ImageUploadStrategy = Annotated[
    Union[ExternalUrlOnly, DirectUpload, UrlFetchUpload, DelegatedPaste],
    Field(discriminator="mode"),
]

_strategy_adapter: TypeAdapter = TypeAdapter(ImageUploadStrategy)


def parse_strategy(raw: Any):
    """Validate a strategy description (camelCase or snake_case keys).

    Raises:
        pydantic.ValidationError: Unknown mode, missing endpoint, bad CSRF
            source and similar shape errors.
    """
    if isinstance(raw, (ExternalUrlOnly, DirectUpload, UrlFetchUpload, DelegatedPaste)):
        return raw
    return _strategy_adapter.validate_python(raw)


# --- Response parsers ---


def _dig(data: Any, *path: str) -> Any:
    for key in path:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def _first_str(*values: Any) -> Optional[str]:
    for value in values:
        if isinstance(value, str) and value:
            return value
    return None


def _data_url_or_url(data: Any) -> Optional[str]:
    return _first_str(_dig(data, "data", "url"), _dig(data, "url"))


def _zhihu_url(data: Any) -> Optional[str]:
    return _first_str(_dig(data, "url"), _dig(data, "original_url"))


def _wechat_url(data: Any) -> Optional[str]:
    return _first_str(_dig(data, "cdn_url"), _dig(data, "url"))


def _cnblogs_url(data: Any) -> Optional[str]:
    return _first_str(_dig(data, "message"), _dig(data, "url"))


def _oschina_url(data: Any) -> Optional[str]:
    return _first_str(_dig(data, "url"), _dig(data, "imgUrl"))


# --- Registry ---

PLATFORM_IMAGE_STRATEGIES: dict[str, Any] = {
    "juejin": DelegatedPaste(
        constraints=ImageConstraints(
            accepted_mime_types=("image/png", "image/jpeg", "image/gif"),
            max_size_mb=5,
        ),
        dom_paste_config=DomPasteConfig(
            editor_url="https://juejin.cn/editor/drafts/new?v=2",
            editor_selector=(
                ".markdown-body[contenteditable='true'], .bytemd-editor textarea, "
                ".CodeMirror textarea, .ql-editor"
            ),
            timeout_ms=30000,
        ),
    ),
    "csdn": DirectUpload(
        constraints=DEFAULT_CONSTRAINTS,
        upload_url="https://imgservice.csdn.net/direct/v1.0/image/upload",
        extra_fields={"type": "blog"},
        response_parser=_data_url_or_url,
    ),
    "zhihu": DirectUpload(
        constraints=WEBP_CONSTRAINTS,
        upload_url="https://www.zhihu.com/api/v4/images",
        extra_fields={"source": "article"},
        csrf_token=CsrfTokenSource(type="cookie", name="_xsrf", header_name="x-xsrftoken"),
        response_parser=_zhihu_url,
    ),
    "wechat": DirectUpload(
        constraints=ImageConstraints(max_size_mb=2, max_width=1440),
        upload_url="https://mp.weixin.qq.com/cgi-bin/filetransfer",
        extra_fields={
            "action": "upload_material",
            "f": "json",
            "scene": "1",
            "writetype": "doublewrite",
        },
        response_parser=_wechat_url,
    ),
    "jianshu": DelegatedPaste(
        constraints=WEBP_CONSTRAINTS,
        dom_paste_config=DomPasteConfig(
            editor_url="https://www.jianshu.com/writer",
            editor_selector='.CodeMirror textarea, .CodeMirror, .kalamu-area, [contenteditable="true"]',
            timeout_ms=40000,
        ),
    ),
    "cnblogs": DirectUpload(
        constraints=WEBP_CONSTRAINTS,
        upload_url="https://upload.cnblogs.com/imageuploader/CorsUpload",
        file_field_name="upload",
        response_parser=_cnblogs_url,
    ),
    "51cto": DirectUpload(
        constraints=DEFAULT_CONSTRAINTS,
        upload_url="https://blog.51cto.com/api/upload/image",
        response_parser=_data_url_or_url,
    ),
    "tencent-cloud": DelegatedPaste(
        constraints=WEBP_CONSTRAINTS,
        dom_paste_config=DomPasteConfig(
            editor_url="https://cloud.tencent.com/developer/article/write-new",
            editor_selector='.CodeMirror textarea, .CodeMirror, textarea, [contenteditable="true"]',
            timeout_ms=40000,
        ),
    ),
    "aliyun": DelegatedPaste(
        constraints=WEBP_CONSTRAINTS,
        dom_paste_config=DomPasteConfig(
            editor_url="https://developer.aliyun.com/article/new#/",
            editor_selector=(
                ".mditor textarea, .mditor .CodeMirror textarea, .bytemd-editor textarea, "
                '.CodeMirror textarea, [contenteditable="true"]'
            ),
            timeout_ms=40000,
        ),
    ),
    "segmentfault": DirectUpload(
        constraints=DEFAULT_CONSTRAINTS,
        upload_url="https://segmentfault.com/api/image",
        response_parser=_data_url_or_url,
    ),
    "bilibili": DelegatedPaste(
        constraints=WEBP_CONSTRAINTS,
        dom_paste_config=DomPasteConfig(
            editor_url="https://member.bilibili.com/platform/upload/text/edit",
            editor_selector='.ql-editor, .ProseMirror, [contenteditable="true"]',
            timeout_ms=40000,
        ),
    ),
    "oschina": DirectUpload(
        constraints=DEFAULT_CONSTRAINTS,
        upload_url="https://my.oschina.net/action/ajax/upload_img",
        file_field_name="upload",
        response_parser=_oschina_url,
    ),
    # Medium renders hotlinked images as-is.
    "medium": ExternalUrlOnly(),
}


def get_image_strategy(platform_id: str):
    """Registered strategy for a platform, or None."""
    return PLATFORM_IMAGE_STRATEGIES.get(platform_id)


def supports_image_upload(platform_id: str) -> bool:
    strategy = PLATFORM_IMAGE_STRATEGIES.get(platform_id)
    return strategy is not None and not isinstance(strategy, ExternalUrlOnly)


def get_image_limits(platform_id: str) -> Optional[ImageConstraints]:
    strategy = PLATFORM_IMAGE_STRATEGIES.get(platform_id)
    if strategy is None:
        return None
    return strategy.constraints or DEFAULT_CONSTRAINTS


def check_image_compatibility(
    mime_type: str,
    size_bytes: int,
    platform_id: str,
) -> tuple[bool, str]:
    """Check an image against a platform's limits.

    Returns:
        ``(compatible, reason)``; ``reason`` is empty when compatible.
    """
    constraints = get_image_limits(platform_id)
    if constraints is None:
        return True, ""

    if mime_type not in constraints.accepted_mime_types:
        accepted = "/".join(constraints.accepted_mime_types)
        return False, f"{mime_type} is not accepted by {platform_id}; convert to {accepted}"

    if constraints.max_size_mb:
        size_mb = size_bytes / (1024 * 1024)
        if size_mb > constraints.max_size_mb:
            return False, (
                f"{size_mb:.2f}MB exceeds the {constraints.max_size_mb}MB limit of {platform_id}"
            )

    return True, ""
