"""Tests for brand, traffic source, landing page and state classifiers."""

import pytest

from scripts.lib.classifiers import (
    classify_landing_page,
    extract_brand,
    extract_state,
    normalize_traffic_source,
)
from scripts.lib.errors import ConfigError
from scripts.lib.rules import load_rules, read_rules


class TestExtractBrand:
    def test_known_token_is_case_insensitive(self):
        assert extract_brand("ACME Corp") == "Acme"
        assert extract_brand("acme corp") == "Acme"

    def test_first_known_token_wins(self):
        assert extract_brand("Hospeco Brands Group") == "Hospeco"
        assert extract_brand("Triad Supply LLC") == "Triad"

    def test_generic_suffix_returns_preceding_text(self):
        assert extract_brand("Bright Cleaning, LLC") == "Bright Cleaning"
        assert extract_brand("Global Corp") == "Global"

    def test_generic_suffix_alone_is_the_token(self):
        assert extract_brand("Corp") == "Corp"

    def test_first_word_fallback(self):
        assert extract_brand("Northwind Traders") == "Northwind"

    def test_short_or_article_first_word_is_other(self):
        assert extract_brand("The Best Shop") == "Other"
        assert extract_brand("AB Co") == "Other"
        assert extract_brand("") == "Other"


class TestNormalizeTrafficSource:
    @pytest.mark.parametrize("raw, expected", [
        ("ORGANIC_SEARCH", "Organic Search"),
        ("PAID_SEARCH", "Paid Search"),
        ("PAID_SOCIAL", "Paid Search"),
        ("SOCIAL_MEDIA", "Social Media"),
        ("EMAIL_MARKETING", "Email Marketing"),
        ("DIRECT_TRAFFIC", "Direct Traffic"),
        ("REFERRALS", "Referral"),
        ("OFFLINE", "Offline"),
    ])
    def test_categories(self, raw, expected):
        assert normalize_traffic_source(raw) == expected

    def test_missing_is_unknown(self):
        assert normalize_traffic_source(None) == "Unknown"
        assert normalize_traffic_source("") == "Unknown"
        assert normalize_traffic_source("Unknown") == "Unknown"

    def test_unmatched_passes_through(self):
        assert normalize_traffic_source("OTHER_CAMPAIGNS") == "OTHER_CAMPAIGNS"


class TestClassifyLandingPage:
    def test_root_is_homepage(self):
        assert classify_landing_page("https://example.com/") == "Homepage"
        assert classify_landing_page("https://example.com") == "Homepage"

    def test_named_pages(self):
        assert classify_landing_page("https://example.com/pricing?plan=pro") == "Pricing"
        assert classify_landing_page("https://example.com/blog/how-to") == "Blog"
        assert classify_landing_page("https://example.com/products/mops") == "Product Pages"
        assert classify_landing_page("https://example.com/case-studies/acme") == "Case Studies"

    def test_unmatched_path_is_truncated(self):
        path = "/" + "x" * 40
        assert classify_landing_page("https://example.com" + path) == path[:30] + "..."

    def test_short_unmatched_path_is_kept(self):
        assert classify_landing_page("https://example.com/careers") == "/careers"

    def test_unparseable_url_uses_raw_string(self):
        assert classify_landing_page("not a url") == "not a url"
        raw = "www.example.com/" + "y" * 40
        assert classify_landing_page(raw) == raw[:40] + "..."

    def test_blank_is_none(self):
        assert classify_landing_page(None) is None
        assert classify_landing_page("   ") is None


class TestExtractState:
    def test_state_before_zip(self):
        assert extract_state("123 Main St, Columbus, OH 43215") == "OH"

    def test_zip_plus_four_and_comma(self):
        assert extract_state("9 Elm Rd, Austin, TX, 78701-1234") == "TX"

    def test_without_zip_is_none(self):
        assert extract_state("123 Main St, Columbus, OH") is None
        assert extract_state("Columbus, Ohio 43215") is None
        assert extract_state(None) is None


class TestRules:
    def test_default_rules_load(self):
        rules = load_rules()
        assert rules.brands.fallback_label == "Other"
        assert rules.landing_pages.root_label == "Homepage"

    def test_stage_estimates_descend(self):
        estimates = load_rules().stage_value_estimates
        assert (
            estimates["customer"]
            > estimates["salesqualifiedlead"]
            > estimates["marketingqualifiedlead"]
            > estimates["lead"]
            > estimates["subscriber"]
            > estimates["default"]
        )

    def test_missing_file_is_config_error(self, tmp_path):
        with pytest.raises(ConfigError):
            read_rules(tmp_path / "missing.yaml")

    def test_invalid_file_is_config_error(self, tmp_path):
        path = tmp_path / "rules.yaml"
        path.write_text("brands: [not, a, mapping]\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            read_rules(path)

    def test_malformed_yaml_is_config_error(self, tmp_path):
        path = tmp_path / "rules.yaml"
        path.write_text("brands: {unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            read_rules(path)
