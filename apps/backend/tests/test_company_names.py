"""
Unit tests for core/company_names.py

Covers:
- sanitation of scraped company strings
- validation rejection reasons
- the normalized comparison key (idempotence, brand preservation)
"""

import pytest

from core.company_names import (
    check_company_name,
    normalize_company_name,
    sanitize_company_name,
    validate_company_name,
)


class TestSanitize:
    def test_decodes_html_entities(self):
        assert sanitize_company_name("Procter &amp; Gamble") == "Procter & Gamble"
        assert sanitize_company_name("AT&amp;T") == "AT&T"

    def test_strips_work_at_prefix(self):
        assert sanitize_company_name("Work at Stripe") == "Stripe"

    def test_keeps_first_part_of_tagline(self):
        assert sanitize_company_name("Acme Corp | Building the future of payments") == "Acme Corp"

    def test_short_pipe_parts_are_kept(self):
        assert sanitize_company_name("A | B") == "A | B"

    def test_strips_long_numeric_id_prefix(self):
        assert sanitize_company_name("12345-Acme Robotics") == "Acme Robotics"

    def test_strips_spreadsheet_numbering(self):
        assert sanitize_company_name("01 Hypertherm") == "Hypertherm"

    def test_keeps_numbered_brands(self):
        assert sanitize_company_name("1Password") == "1Password"
        assert sanitize_company_name("3M") == "3M"
        assert sanitize_company_name("7-Eleven") == "7-Eleven"

    def test_strips_trailing_parenthetical(self):
        assert sanitize_company_name("Acme Robotics (Remote)") == "Acme Robotics"

    def test_collapses_whitespace_and_caps_length(self):
        assert sanitize_company_name("  Acme    Robotics  ") == "Acme Robotics"
        assert len(sanitize_company_name("A" * 150)) == 100

    def test_empty(self):
        assert sanitize_company_name(None) == ""
        assert sanitize_company_name("") == ""


class TestValidate:
    @pytest.mark.parametrize("name,reason", [
        ("", "empty"),
        ("#REF!", "spreadsheet error value"),
        ("#N/A", "spreadsheet error value"),
        ("Test Company", "test data"),
        ("Sample Company Ltd", "test data"),
        ("Confidential", "confidential employer"),
        ("Stealth Startup", "confidential employer"),
        ("Client of Big Bank", "recruiter placeholder"),
        ("mysite.com", "personal domain"),
        ("*Acme", "malformed"),
        ("Acme.", "malformed"),
        ("XY", "too short"),
        ("Inc", "generic word"),
        ("LLC", "generic word"),
        ("Hiring for a client", "hiring-for phrase"),
        ("123 Main Street", "street address"),
        ("Acme &#39; Labs", "html entity"),
        ("Acme\x07Labs", "control characters"),
        ("1234", "too few letters"),
    ])
    def test_rejections(self, name, reason):
        result = validate_company_name(name)
        assert result.valid is False
        assert result.reason == reason

    @pytest.mark.parametrize("name", [
        "Acme Robotics", "HP", "3M", "IBM", "AT&T", "Bill.com", "1Password", "Microsoft", "Tech Mahindra",
    ])
    def test_accepts_real_names(self, name):
        result = validate_company_name(name)
        assert result.valid is True
        assert result.name == name


class TestCheckCompanyName:
    def test_email_rejected_before_sanitation(self):
        result = check_company_name("jobs@acme.com")
        assert result.valid is False
        assert result.reason == "email address"

    def test_sanitizes_then_validates(self):
        result = check_company_name("Work at Stripe")
        assert result.valid is True
        assert result.name == "Stripe"

    def test_entity_decoded_name_is_valid(self):
        result = check_company_name("Procter &amp; Gamble")
        assert result.valid is True
        assert result.name == "Procter & Gamble"

    def test_whitespace_only(self):
        assert check_company_name("   ").reason == "empty"
        assert check_company_name(None).reason == "empty"


class TestNormalize:
    def test_strips_corporate_suffixes(self):
        assert normalize_company_name("Google LLC") == "google"
        assert normalize_company_name("Microsoft Corp") == "microsoft"
        assert normalize_company_name("Infosys Technologies Pvt Ltd") == "infosys"

    def test_strips_generic_phrases(self):
        assert normalize_company_name("Amazon Development Center") == "amazon"
        assert normalize_company_name("Amazon Data Services") == "amazon"

    def test_strips_domain_and_suffix(self):
        assert normalize_company_name("Amazon.com Inc") == "amazon"

    def test_strips_location_qualifiers(self):
        assert normalize_company_name("Acme - BLR") == "acme"
        assert normalize_company_name("Acme Robotics - Bangalore") == "acme robotics"
        assert normalize_company_name("Acme Inc (Bangalore)") == "acme"

    def test_suffix_words_mid_string_are_kept(self):
        assert normalize_company_name("Tech Mahindra") == "tech mahindra"
        assert normalize_company_name("Solutions Architects Guild") == "solutions architects guild"

    def test_drops_noise_tokens(self):
        assert normalize_company_name("The Home Depot") == "home depot"

    def test_numeric_prefix_removed(self):
        assert normalize_company_name("2100 Microsoft") == "microsoft"
        assert normalize_company_name("2100 NVIDIA USA") == "nvidia"

    def test_brand_digits_preserved(self):
        assert normalize_company_name("360bet") == "360bet"
        assert normalize_company_name("3M") == "3m"
        assert normalize_company_name("99 Ranch Market") == "99 ranch market"
        assert normalize_company_name("1Password") == "1password"

    def test_falls_back_when_everything_is_stripped(self):
        assert normalize_company_name("Inc.") == "inc"

    def test_empty(self):
        assert normalize_company_name("") == ""
        assert normalize_company_name(None) == ""
        assert normalize_company_name("   ") == ""

    @pytest.mark.parametrize("name", [
        "Google LLC",
        "Amazon.com Inc",
        "Amazon Development Centre India",
        "2100 Microsoft",
        "2100 NVIDIA USA",
        "360bet",
        "Infosys Technologies Pvt Ltd",
        "Acme Robotics - Bangalore",
        "Acme Inc (Bangalore)",
        "The Home Depot",
        "Tata Consultancy Services Limited",
        "Globex Corporation International Holdings",
        "12 34 Labs Inc",
        "Inc.",
        "a.b.c co",
        "Acme Inc. Ltd. LLC",
    ])
    def test_idempotent(self, name):
        once = normalize_company_name(name)
        assert normalize_company_name(once) == once
