# Assets: image discovery, download and per-platform upload
"""
Asset resolution and upload pipeline:
- Manifest builder (Markdown + inline HTML + explicit assets)
- Per-platform upload strategies
- Referrer-aware downloader and per-job single-flight cache
- Upload pipeline producing the original→final URL mapping
"""

from .errors import AssetError, FetchError, ManifestError, UploadError
from .fetcher import FetchBatch, ImageFetcher, referrer_candidates
from .image_processor import ImageNormalizer, NormalizedImage
from .job_cache import JobImageCache
from .manifest import build_asset_manifest, guess_image_format, parse_markdown_image_destination
from .models import (
    AssetManifest,
    AssetRef,
    AssetStatus,
    FetchedImage,
    ImageAssetEntry,
    ImageMetadata,
    RateLimit,
    SessionContext,
    UploadOutcome,
    UploadProgress,
    UploadStats,
)
from .pipeline import ImageUploadPipeline
from .rewrite import is_local_image_url, normalize_markdown_image_destinations, replace_image_urls
from .strategies import (
    PLATFORM_IMAGE_STRATEGIES,
    CsrfTokenSource,
    DelegatedPaste,
    DirectUpload,
    DomPasteConfig,
    ExternalUrlOnly,
    ImageConstraints,
    UrlFetchUpload,
    check_image_compatibility,
    get_image_limits,
    get_image_strategy,
    parse_strategy,
    supports_image_upload,
)

__all__ = [
    "PLATFORM_IMAGE_STRATEGIES",
    "AssetError",
    "AssetManifest",
    "AssetRef",
    "AssetStatus",
    "CsrfTokenSource",
    "DelegatedPaste",
    "DirectUpload",
    "DomPasteConfig",
    "ExternalUrlOnly",
    "FetchBatch",
    "FetchError",
    "FetchedImage",
    "ImageAssetEntry",
    "ImageConstraints",
    "ImageFetcher",
    "ImageMetadata",
    "ImageNormalizer",
    "ImageUploadPipeline",
    "JobImageCache",
    "ManifestError",
    "NormalizedImage",
    "RateLimit",
    "SessionContext",
    "UploadError",
    "UploadOutcome",
    "UploadProgress",
    "UploadStats",
    "UrlFetchUpload",
    "build_asset_manifest",
    "check_image_compatibility",
    "get_image_limits",
    "get_image_strategy",
    "guess_image_format",
    "is_local_image_url",
    "normalize_markdown_image_destinations",
    "parse_markdown_image_destination",
    "parse_strategy",
    "referrer_candidates",
    "replace_image_urls",
    "supports_image_upload",
]
