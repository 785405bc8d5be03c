import pytest

from accessibility_scanner.platform.utils.url_validator import normalize_url, validate_url


class TestNormalizeUrl:
    def test_adds_https_when_scheme_missing(self):
        assert normalize_url("example.com") == ("https://example.com", True)

    def test_keeps_existing_scheme(self):
        assert normalize_url("http://example.com") == ("http://example.com", False)
        assert normalize_url("https://example.com/a?b=1") == ("https://example.com/a?b=1", False)

    def test_scheme_check_is_case_insensitive(self):
        assert normalize_url("HTTPS://Example.com") == ("HTTPS://Example.com", False)

    def test_strips_whitespace(self):
        assert normalize_url("  example.com/path ") == ("https://example.com/path", True)


class TestValidateUrl:
    @pytest.mark.parametrize("url, expected", [
        ("example.com", "https://example.com"),
        ("www.example.com/about", "https://www.example.com/about"),
        ("http://localhost:8080", "http://localhost:8080"),
        ("https://example.com", "https://example.com"),
    ])
    def test_valid_urls(self, url, expected):
        is_valid, normalized, error = validate_url(url)
        assert is_valid is True
        assert normalized == expected
        assert error == ""

    @pytest.mark.parametrize("url", ["", "   "])
    def test_empty_url(self, url):
        is_valid, _, error = validate_url(url)
        assert is_valid is False
        assert error == "URL cannot be empty"

    def test_missing_host(self):
        is_valid, normalized, error = validate_url("http://")
        assert is_valid is False
        assert normalized == "http://"
        assert error.startswith("Invalid URL format")

    def test_error_mentions_added_scheme(self):
        is_valid, normalized, error = validate_url("exa mple.com")
        assert is_valid is False
        assert normalized == "https://exa mple.com"
        assert error.startswith("Invalid URL format after adding https:// scheme")
