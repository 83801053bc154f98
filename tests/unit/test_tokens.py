"""Unit tests for name tokens, similarity and email helpers."""

from __future__ import annotations

import pytest

from resolution.tokens import (
    company_name_from_domain,
    domain_similarity,
    email_domain,
    extract_name_from_email,
    levenshtein_distance,
    name_tokens,
    normalize_name,
    similarity,
)


@pytest.mark.unit
class TestNameTokens:
    def test_empty_and_non_string_inputs_yield_no_tokens(self):
        assert name_tokens("") == set()
        assert name_tokens("   ") == set()
        assert name_tokens(None) == set()
        assert name_tokens(42) == set()

    def test_two_part_name_yields_abbreviations(self):
        tokens = name_tokens("John Smith")
        assert {"john smith", "john", "smith", "john s", "j smith", "j s"} <= tokens

    def test_punctuation_is_stripped_before_splitting(self):
        tokens = name_tokens("Dr. Mary-Jane O'Neil")
        assert "dr maryjane oneil" in tokens
        assert "maryjane" in tokens
        assert "d m o" in tokens

    def test_single_letter_parts_are_not_tokens(self):
        tokens = name_tokens("J Smith")
        assert tokens == {"j smith", "smith"}

    def test_single_word_name(self):
        assert name_tokens("Cher") == {"cher"}

    def test_unicode_letters_survive_normalization(self):
        assert normalize_name("  José   Núñez ") == "josé núñez"
        assert "núñez" in name_tokens("José Núñez")


@pytest.mark.unit
class TestSimilarity:
    def test_identical_strings(self):
        assert similarity("smith", "smith") == 1.0

    def test_one_substitution(self):
        assert similarity("smith", "smyth") == pytest.approx(0.8)
        assert 0.7 < similarity("smith", "smyth") < 0.95

    def test_empty_strings(self):
        assert similarity("", "") == 1.0
        assert similarity("", "a") == 0.0
        assert similarity("a", "") == 0.0

    def test_case_insensitive(self):
        assert similarity("Smith", "SMITH") == 1.0

    def test_levenshtein_distance(self):
        assert levenshtein_distance("kitten", "sitting") == 3
        assert levenshtein_distance("", "abc") == 3
        assert levenshtein_distance("abc", "abc") == 0


@pytest.mark.unit
class TestEmailHelpers:
    def test_email_domain_is_lowercased(self):
        assert email_domain("Jane@Example.COM") == "example.com"

    def test_email_domain_missing(self):
        assert email_domain("not-an-email") == ""
        assert email_domain(None) == ""

    def test_domain_similarity(self):
        assert domain_similarity("a@insight.com", "b@INSIGHT.com") == 1.0
        assert domain_similarity("a@scale.com", "b@scalevp.com") == pytest.approx(1 - 2 / 11)
        assert domain_similarity("a@scale.com", None) == 0.0

    @pytest.mark.parametrize(
        ("domain", "expected"),
        [
            ("insightpartners.com", "Insightpartners"),
            ("scale-venture.io", "Scale Venture"),
            ("foo_bar.co.uk", "Foo Bar"),
            ("localhost", None),
        ],
    )
    def test_company_name_from_domain(self, domain, expected):
        assert company_name_from_domain(domain) == expected

    def test_extract_name_from_email(self):
        assert extract_name_from_email("jane.doe@example.com") == "Jane Doe"
        assert extract_name_from_email("jdoe@example.com") == "Jdoe"
