"""Serialization profile."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Literal, Mapping, Optional

from src.assets.models import AssetManifest
from src.common.config import settings

OutputFormat = Literal["markdown", "html"]
MathMode = Literal["latex", "image", "html"]
ComplexTableMode = Literal["html", "simplify", "image"]


@dataclass(frozen=True)
class SerializeOptions:
    """How one tree is rendered for one target.

    ``image_url_map`` may be keyed by asset id or by original URL (the
    upload pipeline produces the latter).
    """

    format: OutputFormat = "markdown"
    platform: Optional[str] = None
    image_url_map: Optional[Mapping[str, str]] = None
    assets: Optional[AssetManifest] = None
    math_mode: MathMode = "latex"
    complex_table_mode: ComplexTableMode = "html"
    bullet_marker: Literal["-", "*", "+"] = "-"
    emphasis_marker: Literal["_", "*"] = "_"

    @classmethod
    def from_settings(cls, **overrides) -> SerializeOptions:
        """Options seeded from ``settings.serializer``, then ``overrides``."""
        cfg = settings.serializer
        base = cls(
            math_mode=cfg.math_mode,
            complex_table_mode=cfg.complex_table_mode,
            bullet_marker=cfg.bullet_marker,
            emphasis_marker=cfg.emphasis_marker,
        )
        return replace(base, **overrides)

    def with_images(
        self,
        image_url_map: Optional[Mapping[str, str]],
        assets: Optional[AssetManifest] = None,
    ) -> SerializeOptions:
        return replace(self, image_url_map=image_url_map, assets=assets or self.assets)
