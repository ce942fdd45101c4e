"""
Tests for extracting share tokens from scanner output and links
"""
import pytest

from innet.components.share_codec import encode_share_token
from innet.components.share_links import (build_share_alias_url,
                                          build_share_url)
from innet.components.token_locator import (extract_alias_slug,
                                            extract_token, locate_token,
                                            percent_decode)
from innet.core.errors import NotFound, ServiceUnavailable

TOKEN = "innet-share:eyJ2IjoxfQ"


@pytest.fixture
def real_token(sample_payload):
    return encode_share_token(sample_payload).token


class TestExtractToken:
    """Resolution order: verbatim, percent-decoded, query, short path, substring"""

    def test_bare_token(self):
        assert extract_token(TOKEN) == TOKEN

    def test_surrounding_whitespace(self):
        assert extract_token(f"\n  {TOKEN}  \t") == TOKEN

    def test_trailing_garbage_is_cut(self):
        assert extract_token(f"{TOKEN} scanned by app") == TOKEN

    def test_percent_encoded_token(self):
        assert extract_token("innet-share%3AeyJ2IjoxfQ") == TOKEN

    def test_long_link(self, real_token):
        url = build_share_url(real_token, "https://innet.app")
        assert extract_token(url) == real_token

    def test_long_link_with_other_params(self):
        url = "https://innet.app/share?utm=qr&token=innet-share%3AeyJ2IjoxfQ#top"
        assert extract_token(url) == TOKEN

    def test_query_value_without_prefix(self):
        assert extract_token("https://innet.app/share?token=eyJ2IjoxfQ") == TOKEN

    def test_uppercase_scheme(self):
        assert extract_token("HTTPS://innet.app/share?token=innet-share%3AeyJ2IjoxfQ") == TOKEN

    def test_token_in_path(self):
        assert extract_token("https://innet.app/share/innet-share%3AeyJ2IjoxfQ") == TOKEN

    def test_short_link_without_resolver(self):
        assert extract_token("https://innet.app/share/Ab3xYz9Kq") is None

    def test_short_link_with_resolver(self):
        seen = []

        def resolve(slug):
            seen.append(slug)
            return TOKEN

        assert extract_token("https://innet.app/share/Ab3xYz9Kq/", resolve_alias=resolve) == TOKEN
        assert seen == ["Ab3xYz9Kq"]

    def test_resolver_not_called_for_long_links(self):
        def resolve(slug):
            raise AssertionError("resolver must not be called")

        assert extract_token(build_share_url(TOKEN, "https://innet.app"), resolve_alias=resolve) == TOKEN

    def test_resolver_errors_do_not_raise(self):
        def resolve(slug):
            raise NotFound()

        assert extract_token("https://innet.app/share/Ab3xYz9Kq", resolve_alias=resolve) is None

    def test_locate_reports_resolver_error(self):
        def resolve(slug):
            raise ServiceUnavailable()

        location = locate_token("https://innet.app/share/Ab3xYz9Kq", resolve_alias=resolve)

        assert not location.ok
        assert location.token is None
        assert isinstance(location.error, ServiceUnavailable)
        assert location.kind == location.error.kind

    def test_locate_found_and_missing(self):
        found = locate_token(f"  {TOKEN}  ")
        assert found.ok and found.kind == "ok" and found.token == TOKEN

        missing = locate_token("hello")
        assert (missing.token, missing.error, missing.kind) == (None, None, "missing")

    def test_token_embedded_in_text(self):
        assert extract_token(f"QR:{TOKEN}") == TOKEN

    def test_partial_url(self):
        assert extract_token("innet.app/share?token=innet-share%3AeyJ2IjoxfQ") == TOKEN

    def test_malformed_percent_encoding_falls_back(self):
        assert extract_token(f"%FF%FE junk {TOKEN}") == TOKEN
        assert extract_token("%E0%A4%A") is None

    @pytest.mark.parametrize(
        "raw",
        [
            None,
            42,
            "",
            "   ",
            "hello world",
            "https://innet.app/",
            "https://innet.app/profile/123",
            "https://innet.app/share?token=",
            "https://[broken/share",
        ],
    )
    def test_nothing_found(self, raw):
        assert extract_token(raw) is None


class TestAliasSlug:
    def test_short_link(self):
        assert extract_alias_slug(build_share_alias_url("Ab3xYz9Kq", "https://innet.app/")) == "Ab3xYz9Kq"

    @pytest.mark.parametrize(
        "raw",
        [
            None,
            "Ab3xYz9Kq",
            "https://innet.app/share?token=innet-share%3AeyJ2IjoxfQ",
            "https://innet.app/share/innet-share%3AeyJ2IjoxfQ",
            "https://innet.app/other/Ab3xYz9Kq",
            "https://innet.app/share/",
        ],
    )
    def test_not_a_short_link(self, raw):
        assert extract_alias_slug(raw) is None


class TestLinkBuilders:
    def test_long_link_shape(self):
        assert build_share_url(TOKEN, "https://innet.app/") == (
            "https://innet.app/share?token=innet-share%3AeyJ2IjoxfQ"
        )

    def test_default_origin_from_settings(self):
        assert build_share_alias_url("Ab3xYz9Kq") == "https://innet.app/share/Ab3xYz9Kq"

    def test_empty_inputs(self):
        assert build_share_url("") == ""
        assert build_share_alias_url("  ") == ""


def test_percent_decode():
    assert percent_decode("a%20b") == "a b"
    assert percent_decode("%FF") == "%FF"
