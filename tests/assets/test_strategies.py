"""Tests for upload strategy parsing and the platform registry."""

import pytest
from pydantic import ValidationError

from src.assets.strategies import (
    DEFAULT_CONSTRAINTS,
    PLATFORM_IMAGE_STRATEGIES,
    DelegatedPaste,
    DirectUpload,
    ExternalUrlOnly,
    UrlFetchUpload,
    check_image_compatibility,
    get_image_limits,
    get_image_strategy,
    parse_strategy,
    supports_image_upload,
)


class TestParseStrategy:
    def test_camel_case_direct_upload(self):
        strategy = parse_strategy({
            "mode": "binaryUpload",
            "uploadUrl": "https://site.io/upload",
            "fileFieldName": "image",
            "extraFields": {"type": "blog"},
            "csrfToken": {"type": "cookie", "name": "_xsrf", "headerName": "X-Xsrftoken"},
            "constraints": {"maxSizeMB": 3, "acceptedMimeTypes": ["image/png"]},
        })
        assert isinstance(strategy, DirectUpload)
        assert strategy.file_field_name == "image"
        assert strategy.csrf_token.header_name == "X-Xsrftoken"
        assert strategy.constraints.max_size_mb == 3
        assert strategy.constraints.accepted_mime_types == ("image/png",)

    def test_snake_case_keys(self):
        strategy = parse_strategy({
            "mode": "formUpload",
            "upload_url": "https://site.io/form",
            "method": "PUT",
            "fallback_upload_urls": ["https://site.io/alt"],
        })
        assert strategy.mode == "formUpload"
        assert strategy.method == "PUT"
        assert strategy.fallback_upload_urls == ("https://site.io/alt",)

    def test_other_modes(self):
        assert isinstance(parse_strategy({"mode": "externalUrlOnly"}), ExternalUrlOnly)
        fetch = parse_strategy({"mode": "urlFetch", "fetchUrl": "https://site.io/fetch"})
        assert isinstance(fetch, UrlFetchUpload)
        assert fetch.url_field_name == "url"
        paste = parse_strategy({
            "mode": "domPasteUpload",
            "domPasteConfig": {"editorUrl": "https://site.io/new", "editorSelector": ".editor"},
        })
        assert isinstance(paste, DelegatedPaste)
        assert paste.dom_paste_config.timeout_ms is None

    def test_instances_pass_through(self):
        strategy = ExternalUrlOnly()
        assert parse_strategy(strategy) is strategy

    @pytest.mark.parametrize("raw", [
        {"mode": "carrierPigeon"},
        {"mode": "binaryUpload"},
        {"mode": "binaryUpload", "uploadUrl": ""},
        {"mode": "binaryUpload", "uploadUrl": "https://x", "method": "GET"},
        {"mode": "binaryUpload", "uploadUrl": "https://x", "csrfToken": {"type": "query", "name": "t"}},
        {"mode": "domPasteUpload"},
        {"mode": "externalUrlOnly", "uploadUrl": "https://x"},
        {"mode": "binaryUpload", "uploadUrl": "https://x", "constraints": {"maxSizeMB": 0}},
    ])
    def test_invalid(self, raw):
        with pytest.raises(ValidationError):
            parse_strategy(raw)

    def test_strategies_are_immutable(self):
        strategy = get_image_strategy("csdn")
        with pytest.raises(ValidationError):
            strategy.upload_url = "https://elsewhere"


class TestRegistry:
    def test_modes(self):
        assert isinstance(get_image_strategy("juejin"), DelegatedPaste)
        assert isinstance(get_image_strategy("zhihu"), DirectUpload)
        assert isinstance(get_image_strategy("medium"), ExternalUrlOnly)
        assert get_image_strategy("myspace") is None

    def test_registered_parsers_read_site_responses(self):
        csdn = get_image_strategy("csdn")
        assert csdn.response_parser({"code": 200, "data": {"url": "https://img/c.png"}}) == "https://img/c.png"
        wechat = get_image_strategy("wechat")
        assert wechat.response_parser({"cdn_url": "https://mmbiz/w.png"}) == "https://mmbiz/w.png"
        cnblogs = get_image_strategy("cnblogs")
        assert cnblogs.response_parser({"success": True, "message": "https://img/b.png"}) == "https://img/b.png"

    def test_zhihu_csrf_source(self):
        csrf = get_image_strategy("zhihu").csrf_token
        assert (csrf.type, csrf.name, csrf.header_name) == ("cookie", "_xsrf", "x-xsrftoken")

    def test_supports_image_upload(self):
        assert supports_image_upload("csdn")
        assert supports_image_upload("juejin")
        assert not supports_image_upload("medium")
        assert not supports_image_upload("unknown")

    def test_get_image_limits(self):
        assert get_image_limits("wechat").max_width == 1440
        assert get_image_limits("medium") == DEFAULT_CONSTRAINTS
        assert get_image_limits("unknown") is None

    def test_every_upload_strategy_has_an_endpoint_or_editor(self):
        for platform, strategy in PLATFORM_IMAGE_STRATEGIES.items():
            if isinstance(strategy, DirectUpload):
                assert strategy.upload_url.startswith("https://"), platform
            elif isinstance(strategy, DelegatedPaste):
                assert strategy.dom_paste_config.editor_selector, platform


class TestCompatibility:
    def test_accepted(self):
        assert check_image_compatibility("image/png", 1024, "csdn") == (True, "")

    def test_wrong_mime(self):
        ok, reason = check_image_compatibility("image/webp", 1024, "csdn")
        assert not ok
        assert "image/webp" in reason

    def test_webp_allowed_where_declared(self):
        assert check_image_compatibility("image/webp", 1024, "zhihu")[0]

    def test_too_large(self):
        ok, reason = check_image_compatibility("image/png", 3 * 1024 * 1024, "wechat")
        assert not ok
        assert "2" in reason

    def test_unknown_platform_is_permissive(self):
        assert check_image_compatibility("image/bmp", 10**9, "unknown") == (True, "")
