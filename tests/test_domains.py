"""Tests for domain normalization and rule resolution."""

from clicksand.domains import is_match, normalize_domain, resolve_rule


class TestNormalizeDomain:
    def test_strips_www_and_case(self):
        assert normalize_domain(" WWW.YouTube.com ") == "youtube.com"

    def test_only_leading_www(self):
        assert normalize_domain("docs.www.example.com") == "docs.www.example.com"

    def test_empty(self):
        assert normalize_domain("") == ""
        assert normalize_domain(None) == ""


class TestIsMatch:
    def test_exact(self):
        assert is_match("youtube.com", "youtube.com")

    def test_www_is_same_site(self):
        assert is_match("www.youtube.com", "youtube.com")

    def test_subdomain(self):
        assert is_match("m.youtube.com", "youtube.com")

    def test_suffix_without_dot_is_not_a_match(self):
        assert not is_match("notyoutube.com", "youtube.com")

    def test_parent_does_not_match_child_pattern(self):
        assert not is_match("google.com", "docs.google.com")

    def test_empty_pattern(self):
        assert not is_match("youtube.com", "")


class TestResolveRule:
    RULES = {"youtube.com": "yt", "google.com": "google", "docs.google.com": "docs"}

    def test_exact_key_first(self):
        assert resolve_rule("docs.google.com", self.RULES) == "docs"

    def test_normalized_key(self):
        assert resolve_rule("www.youtube.com", self.RULES) == "yt"

    def test_suffix_match(self):
        assert resolve_rule("music.youtube.com", self.RULES) == "yt"

    def test_first_suffix_pattern_wins(self):
        # sheets.docs.google.com matches both google.com and docs.google.com
        assert resolve_rule("sheets.docs.google.com", self.RULES) == "google"

    def test_no_match(self):
        assert resolve_rule("example.org", self.RULES) is None

    def test_empty_inputs(self):
        assert resolve_rule("", self.RULES) is None
        assert resolve_rule("youtube.com", {}) is None
