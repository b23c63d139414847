"""
URL Utility Tests

Tests for URL normalization and the relevance guess.
"""

import pytest

from crawlrank.core.utils import (
    MAX_URL_LENGTH,
    get_domain,
    guess_relevant,
    normalize_url,
    url_key,
    url_path,
)


class TestNormalizeUrl:
    def test_strips_query_fragment_and_www(self):
        result = normalize_url("", "http://WWW.Example.com/a/b?x=1#frag")
        assert result == "http://example.com/a/b"

    def test_removes_default_port(self):
        assert normalize_url("", "http://example.com:80/x") == "http://example.com/x"
        assert normalize_url("", "https://example.com:443/") == "https://example.com"

    def test_keeps_non_default_port(self):
        result = normalize_url("", "http://example.com:8080/x/")
        assert result == "http://example.com:8080/x"

    def test_collapses_duplicate_slashes_and_index_files(self):
        result = normalize_url("", "http://example.com/a//b/index.html")
        assert result == "http://example.com/a/b"

    def test_index_file_at_root(self):
        assert normalize_url("", "http://example.com/index.php") == "http://example.com"

    def test_trailing_slash_is_same_page(self):
        assert normalize_url("", "http://example.com/a/") == normalize_url(
            "", "http://example.com/a"
        )

    def test_path_case_preserved(self):
        assert normalize_url("", "http://Example.COM/Path") == "http://example.com/Path"

    def test_resolves_relative_links(self):
        base = "http://example.com/dir/page"
        assert normalize_url(base, "../other") == "http://example.com/other"
        assert normalize_url(base, "sibling") == "http://example.com/dir/sibling"
        assert normalize_url(base, "/root") == "http://example.com/root"

    def test_protocol_relative_link(self):
        result = normalize_url("https://example.com/", "//cdn.example.com/lib")
        assert result == "http://cdn.example.com/lib"

    def test_punycode_host_decoded(self):
        result = normalize_url("", "http://xn--e1afmkfd.xn--p1ai/")
        assert result == "http://пример.рф"

    @pytest.mark.parametrize(
        "link",
        [
            None,
            "",
            "mailto:someone@example.com",
            "javascript:void(0)",
            "ftp://example.com/file",
            "http://example.com:99999/",
            "relative/without/base",
        ],
    )
    def test_rejects_invalid(self, link):
        assert normalize_url("", link) is None

    def test_rejects_overlong_url(self):
        link = "http://example.com/" + "a" * MAX_URL_LENGTH
        assert normalize_url("", link) is None


class TestUrlHelpers:
    def test_url_key_is_case_insensitive(self):
        assert url_key("http://example.com/Page") == url_key("http://example.com/page")

    def test_get_domain_includes_port(self):
        assert get_domain("http://example.com:8080/x") == "example.com:8080"
        assert get_domain("https://example.com/x") == "example.com"

    def test_url_path(self):
        assert url_path("http://example.com") == "/"
        assert url_path("http://example.com/a/b") == "/a/b"


class TestGuessRelevant:
    @pytest.mark.parametrize(
        "url",
        [
            "http://example.com",
            "http://example.com/page",
            "https://example.com/page.html",
            "http://example.com/script.php",
            "http://example.com/v1.2.3-release-notes",
        ],
    )
    def test_html_candidates(self, url):
        assert guess_relevant(url) is True

    @pytest.mark.parametrize(
        "url",
        [
            "http://example.com/doc.pdf",
            "http://example.com/archive.tar.gz",
            "http://example.com/image.JPG",
            "http://git.example.com/repo",
            "http://svn.example.com/trunk",
            "http://example.com/%E4%B8%AD%E6%96%87%E5%AD%97",
        ],
    )
    def test_rejected(self, url):
        assert guess_relevant(url) is False

    def test_cyrillic_path_allowed(self):
        assert guess_relevant("http://example.com/%D0%BF%D1%80%D0%B8%D0%B2%D0%B5%D1%82")

    def test_loose_only_checks_scheme(self):
        assert guess_relevant("http://example.com/doc.pdf", loose=True) is True
        assert guess_relevant("http://git.example.com/repo", loose=True) is True
        assert guess_relevant("ftp://example.com/page", loose=True) is False
