# Publisher: per-target payloads and publish orchestration
"""
Composes the asset pipeline and the serializer with target adapters:
- Platform capability matrix
- Payload / result models and the TargetAdapter protocol
- PublishOrchestrator (prepare / publish / publish_many)
"""

from .models import (
    CanonicalPost,
    ContentFormat,
    PlatformCapabilities,
    PlatformPayload,
    PreparedPost,
    PublishResult,
    TargetAdapter,
)
from .orchestrator import PublishOrchestrator
from .platforms import (
    PLATFORM_CAPABILITIES,
    choose_content_format,
    get_capabilities,
    serialize_options_for,
)

__all__ = [
    "PLATFORM_CAPABILITIES",
    "CanonicalPost",
    "ContentFormat",
    "PlatformCapabilities",
    "PlatformPayload",
    "PreparedPost",
    "PublishOrchestrator",
    "PublishResult",
    "TargetAdapter",
    "choose_content_format",
    "get_capabilities",
    "serialize_options_for",
]
