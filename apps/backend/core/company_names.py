"""
Company name cleanup: sanitation, validity checks and the normalized comparison key.

sanitize_company_name() repairs the display string we store.
check_company_name() rejects strings that are not real employers.
normalize_company_name() builds the lowercase key used for fuzzy matching only.
"""
import html
import logging
import re
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

MAX_COMPANY_NAME_LENGTH = 100

KNOWN_NUMBERED_BRANDS = re.compile(
    r"^(1-800|1-888|1-877|1800|1888|1877|1st|2nd|3rd|21st|100x|10x|1password|1mg|3m|8am|8vc|360|365|23andme|7-eleven|99designs)",
    re.IGNORECASE,
)
KNOWN_FEW_ALPHA = re.compile(r"^(3M|100x|10x|8am|8VC|1mg|1X|H1|R1|S3|N2)$", re.IGNORECASE)
KNOWN_SHORT = re.compile(r"^(3M|HP|GE|EA|AT&T|IBM|AMD)$", re.IGNORECASE)
KNOWN_DOMAIN_BRANDS = re.compile(
    r"^(Bill|Cars|Alarm|Realtor|Crypto|Blockchain|Shine|Impact|Wealth|Job|You|Media|Code|Water|Visit|Capital)\.(com|org|net|io)$",
    re.IGNORECASE,
)

EMAIL_PATTERN = re.compile(r"@.*\.[a-z]{2,}$", re.IGNORECASE)
EXCEL_ERROR_PATTERN = re.compile(r"^#(REF|NAME|VALUE|DIV|N/A|NULL|NUM)!?", re.IGNORECASE)
TEST_DATA_PATTERN = re.compile(r"(test|sample|demo|placeholder|example|abc|xyz).*company", re.IGNORECASE)
CONFIDENTIAL_PATTERN = re.compile(
    r"^(confidential|anonymous|undisclosed|not disclosed|private employer|stealth|stealth startup)$",
    re.IGNORECASE,
)
CLIENT_OF_PATTERN = re.compile(r"^(a\s+)?client\s+of\s+", re.IGNORECASE)
WORK_AT_PATTERN = re.compile(r"^work\s+at\s+", re.IGNORECASE)
PERSONAL_DOMAIN_PATTERN = re.compile(r"^[a-z0-9-]+\.(com|org|net|co\.uk)$", re.IGNORECASE)
MALFORMED_PATTERN = re.compile(r"^[*.]|\.$")
GENERIC_PATTERN = re.compile(
    r"^(company|inc|llc|ltd|org|organization|business|enterprise|firm|unknown|n/?a|none|null|employer)$",
    re.IGNORECASE,
)
HIRING_FOR_PATTERN = re.compile(r"hiring\s+for", re.IGNORECASE)
NUMBERED_PREFIX_PATTERN = re.compile(r"^\d{1,2}\s+[A-Z]", re.IGNORECASE)
ADDRESS_PATTERNS = (
    re.compile(
        r"^\d+\s+.*\b(street|avenue|road|rd|blvd|boulevard|drive|dr|lane|ln|way|mill|place|pl|court|ct|circle|cir)\b",
        re.IGNORECASE,
    ),
    re.compile(r"\b\d+\s+(street|avenue|road|rd|blvd|drive)\s*$", re.IGNORECASE),
)
HTML_ENTITY_PATTERN = re.compile(r"&#\d+;|&amp;|&lt;|&gt;|&quot;")
CONTROL_CHAR_PATTERN = re.compile(r"[\x00-\x1f\x7f]")

FREEMAIL_MARKERS = ("@gmail", "@yahoo", "@outlook")


@dataclass
class NameCheck:
    """Outcome of validating a raw company string"""
    valid: bool
    name: str
    reason: Optional[str] = None


def sanitize_company_name(name: Optional[str]) -> str:
    """
    Repair common scraping artifacts without changing the brand.

    Decodes HTML entities, strips "Work at" prefixes, keeps the first segment of
    "Company | long tagline" strings, drops spreadsheet-style numeric prefixes
    ("01 Hypertherm") and trailing parenthetical qualifiers.
    """
    if not name:
        return ""

    cleaned = html.unescape(name.strip()).replace("\xa0", " ")

    if "@" in cleaned and not any(marker in cleaned for marker in FREEMAIL_MARKERS):
        cleaned = re.sub(r"\s{2,}", " ", cleaned.replace("@", " ")).strip()

    cleaned = WORK_AT_PATTERN.sub("", cleaned).strip()

    if "|" in cleaned:
        parts = [p.strip() for p in cleaned.split("|")]
        if len(parts[0]) >= 3 and len(parts[1]) > 10:
            cleaned = parts[0]

    cleaned = re.sub(r"^\d{4,}-", "", cleaned).strip()

    if NUMBERED_PREFIX_PATTERN.match(cleaned) and not KNOWN_NUMBERED_BRANDS.match(cleaned):
        cleaned = re.sub(r"^\d{1,2}\s+", "", cleaned).strip()

    if re.search(r"\([^)]+\)\s*$", cleaned):
        without_paren = re.sub(r"\s*\([^)]+\)\s*$", "", cleaned).strip()
        if len(without_paren) >= 3:
            cleaned = without_paren

    cleaned = re.sub(r"\s{2,}", " ", cleaned).strip()
    return cleaned[:MAX_COMPANY_NAME_LENGTH]


def validate_company_name(name: Optional[str]) -> NameCheck:
    """Check an already-sanitized name. Returns NameCheck with a reason when rejected."""
    trimmed = (name or "").strip()

    if not trimmed:
        return NameCheck(False, trimmed, "empty")
    if EXCEL_ERROR_PATTERN.match(trimmed):
        return NameCheck(False, trimmed, "spreadsheet error value")
    if TEST_DATA_PATTERN.search(trimmed):
        return NameCheck(False, trimmed, "test data")
    if CONFIDENTIAL_PATTERN.match(trimmed):
        return NameCheck(False, trimmed, "confidential employer")
    if CLIENT_OF_PATTERN.match(trimmed):
        return NameCheck(False, trimmed, "recruiter placeholder")
    if re.search(r"@.*\.\w{2,}$", trimmed):
        return NameCheck(False, trimmed, "email address")
    if WORK_AT_PATTERN.match(trimmed):
        return NameCheck(False, trimmed, "work-at phrase")
    if PERSONAL_DOMAIN_PATTERN.match(trimmed) and not KNOWN_DOMAIN_BRANDS.match(trimmed):
        return NameCheck(False, trimmed, "personal domain")
    if MALFORMED_PATTERN.search(trimmed):
        return NameCheck(False, trimmed, "malformed")
    if len(trimmed) <= 2 and not KNOWN_SHORT.match(trimmed):
        return NameCheck(False, trimmed, "too short")
    if GENERIC_PATTERN.match(trimmed):
        return NameCheck(False, trimmed, "generic word")
    if HIRING_FOR_PATTERN.search(trimmed):
        return NameCheck(False, trimmed, "hiring-for phrase")
    if NUMBERED_PREFIX_PATTERN.match(trimmed) and not KNOWN_NUMBERED_BRANDS.match(trimmed):
        return NameCheck(False, trimmed, "numbered prefix")
    if any(pattern.search(trimmed) for pattern in ADDRESS_PATTERNS):
        return NameCheck(False, trimmed, "street address")
    if HTML_ENTITY_PATTERN.search(trimmed):
        return NameCheck(False, trimmed, "html entity")
    if CONTROL_CHAR_PATTERN.search(trimmed):
        return NameCheck(False, trimmed, "control characters")

    alpha_count = sum(1 for ch in trimmed if ch.isascii() and ch.isalpha())
    if alpha_count < 2 and not KNOWN_FEW_ALPHA.match(trimmed):
        return NameCheck(False, trimmed, "too few letters")

    return NameCheck(True, trimmed)


def check_company_name(raw_name: Optional[str]) -> NameCheck:
    """Full check in scraper order: email pre-check, sanitize, validate"""
    raw = (raw_name or "").strip()
    if EMAIL_PATTERN.search(raw):
        return NameCheck(False, raw, "email address")
    return validate_company_name(sanitize_company_name(raw))


# --- Normalized comparison key ---

LOCATION_CITIES = (
    "bangalore", "bengaluru", "mumbai", "delhi", "new delhi", "gurgaon", "gurugram", "noida",
    "hyderabad", "pune", "chennai", "kolkata", "london", "new york", "nyc", "san francisco",
    "seattle", "austin", "boston", "chicago", "toronto", "vancouver", "singapore", "sydney",
    "berlin", "paris", "amsterdam", "dublin", "remote",
)
_CITY_ALT = "|".join(re.escape(c) for c in LOCATION_CITIES)
LOCATION_QUALIFIER = re.compile(r"\s+[-–—|/]\s*(?:[a-z]{2,3}\d{0,2}|" + _CITY_ALT + r")\s*$")
PAREN_LOCATION_QUALIFIER = re.compile(r"\s*\((?:" + _CITY_ALT + r"|[a-z]{2,3})\)\s*$")

GENERIC_PHRASES = (
    "development center", "development centre", "data services", "research and development",
    "research & development", "r&d center", "r&d centre", "technology center", "technology centre",
    "innovation center", "innovation centre", "global capability center", "global business services",
    "shared services", "delivery center", "delivery centre", "engineering center", "engineering centre",
)
GENERIC_PHRASE_PATTERN = re.compile(
    r"(?<!\w)(?:" + "|".join(re.escape(p) for p in GENERIC_PHRASES) + r")(?!\w)"
)

TRAILING_SUFFIXES = (
    "private limited", "pvt ltd", "pvt", "ltd", "limited", "llc", "llp", "lp", "inc", "incorporated",
    "corp", "corporation", "co", "company", "plc", "gmbh", "ag", "sa", "bv", "pty", "group", "holdings",
    "technologies", "technology", "tech", "solutions", "services", "systems", "software", "consulting",
    "india", "usa", "us", "uk", "global", "international", "worldwide", "americas", "emea", "apac",
)
TRAILING_SUFFIX_PATTERN = re.compile(
    r"[\s,]+(?:" + "|".join(re.escape(s) for s in TRAILING_SUFFIXES) + r")\.?$"
)
DOMAIN_SUFFIX_PATTERN = re.compile(r"\.(?:com|io|ai|co|net|org)$")

NOISE_TOKENS = frozenset({
    "the", "inc", "llc", "ltd", "pvt", "corp", "co", "plc", "gmbh",
    "limited", "incorporated", "corporation",
})

BRAND_NUMERIC_PREFIX = re.compile(r"^\d{1,2}\s+[a-z]", re.IGNORECASE)


def _strip_punctuation(value: str) -> str:
    value = re.sub(r"[^\w\s]", "", value)
    return re.sub(r"\s+", " ", value).strip()


def _normalize_pass(name: str) -> str:
    value = re.sub(r"\s+", " ", name.lower()).strip()

    value = LOCATION_QUALIFIER.sub("", value)
    value = PAREN_LOCATION_QUALIFIER.sub("", value)

    value = GENERIC_PHRASE_PATTERN.sub(" ", value)
    value = re.sub(r"\s+", " ", value).strip()

    while True:
        stripped = DOMAIN_SUFFIX_PATTERN.sub("", value)
        stripped = TRAILING_SUFFIX_PATTERN.sub("", stripped).strip()
        if stripped == value:
            break
        value = stripped

    value = _strip_punctuation(value)

    keeps_number = bool(BRAND_NUMERIC_PREFIX.match(name.strip()) or KNOWN_NUMBERED_BRANDS.match(name.strip()))
    if not keeps_number:
        value = re.sub(r"^(?:\d+\s+)+", "", value)

    tokens = [t for t in value.split() if t not in NOISE_TOKENS]
    if len(tokens) > 1:
        tokens = [t for t in tokens if len(t) >= 2]
    value = " ".join(tokens)

    if len(value) < 2:
        value = _strip_punctuation(name.lower())
    return value


def normalize_company_name(name: Optional[str]) -> str:
    """
    Lowercase comparison key for fuzzy matching. Never used as a display name.

    Idempotent: normalize_company_name(normalize_company_name(x)) == normalize_company_name(x).
    """
    if not name or not name.strip():
        return ""

    current = _normalize_pass(name)
    # Each pass only deletes characters, so this settles within len(name) passes
    for _ in range(len(current) + 1):
        following = _normalize_pass(current)
        if following == current:
            break
        current = following
    return current
