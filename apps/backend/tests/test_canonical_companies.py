"""
Unit tests for core/canonical_companies.py
"""

from core.canonical_companies import (
    CANONICAL_COMPANIES,
    CanonicalIndex,
    find_canonical_company,
    get_canonical_index,
)


class TestCanonicalLookup:
    def test_exact_alias(self):
        assert find_canonical_company("Google LLC").canonical_name == "Google"
        assert find_canonical_company("Amazon.com Inc").canonical_name == "Amazon"
        assert find_canonical_company("MSFT").canonical_name == "Microsoft"

    def test_case_insensitive_and_whitespace(self):
        assert find_canonical_company("google   llc").canonical_name == "Google"
        assert find_canonical_company("  MICROSOFT  ").canonical_name == "Microsoft"

    def test_normalized_form(self):
        assert find_canonical_company("Microsoft Corporation India").canonical_name == "Microsoft"
        assert find_canonical_company("Infosys Technologies Pvt Ltd").canonical_name == "Infosys"
        assert find_canonical_company("2100 Microsoft").canonical_name == "Microsoft"

    def test_containment_with_overlap(self):
        assert find_canonical_company("Databricks AI").canonical_name == "Databricks"

    def test_low_overlap_containment_is_not_a_hit(self):
        assert find_canonical_company("Salesforce Engineering Partners") is None

    def test_substring_inside_a_word_is_not_a_hit(self):
        assert find_canonical_company("Targetron Systems") is None

    def test_unknown(self):
        assert find_canonical_company("Acme Robotics") is None
        assert find_canonical_company("") is None
        assert find_canonical_company(None) is None

    def test_entry_carries_industry_and_rank(self):
        entry = find_canonical_company("Amazon Development Center")
        assert entry.canonical_name == "Amazon"
        assert entry.industry
        assert "AWS" in entry.aliases


class TestCanonicalIndex:
    def test_global_index_is_cached(self):
        assert get_canonical_index() is get_canonical_index()

    def test_custom_table(self):
        index = CanonicalIndex([c for c in CANONICAL_COMPANIES if c.canonical_name == "Stripe"])
        assert index.find("Stripe").canonical_name == "Stripe"
        assert index.find("Google LLC") is None
