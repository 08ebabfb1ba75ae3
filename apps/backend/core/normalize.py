"""
Derived job fields computed at insert time.

Turns the loose strings a source gives us (title, location, contract type,
free-text description) into the classified columns of the jobs table:
- department, country, currency and workplace type from keywords
- experience range from "N+ years" style phrases or seniority words
- priority and expiry from posting age
- tags string
"""

from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional, Tuple
import re


DEFAULT_COUNTRY = 'United States'
DEFAULT_CURRENCY = 'USD'
DEFAULT_JOB_TYPE = 'Full-time'

COUNTRY_CODES = {
    'us': 'United States',
    'ca': 'Canada',
    'gb': 'United Kingdom',
    'in': 'India',
    'au': 'Australia',
    'sg': 'Singapore',
    'de': 'Germany',
    'fr': 'France',
    'nl': 'Netherlands',
}

# (country, keywords) checked in order, first hit wins
COUNTRY_KEYWORDS: List[Tuple[str, Tuple[str, ...]]] = [
    ('India', ('india', 'bangalore', 'bengaluru', 'mumbai', 'delhi', 'hyderabad', 'pune', 'chennai')),
    ('Canada', ('canada', 'toronto', 'vancouver', 'montreal')),
    ('United Kingdom', ('united kingdom', 'uk', 'england', 'london', 'manchester')),
    ('Australia', ('australia', 'sydney', 'melbourne')),
    ('Singapore', ('singapore',)),
    ('Germany', ('germany', 'berlin', 'munich')),
    ('France', ('france', 'paris')),
    ('Netherlands', ('netherlands', 'amsterdam')),
    ('Remote', ('remote', 'worldwide', 'anywhere')),
]

COUNTRY_CURRENCY = {
    'India': 'INR',
    'Canada': 'CAD',
    'United Kingdom': 'GBP',
    'Australia': 'AUD',
    'Singapore': 'SGD',
    'Germany': 'EUR',
    'France': 'EUR',
    'Netherlands': 'EUR',
}

DEPARTMENT_KEYWORDS: List[Tuple[str, Tuple[str, ...]]] = [
    ('Engineering', ('engineer', 'developer', 'software', 'devops', 'sre')),
    ('Data Science', ('data scientist', 'analyst', 'ml', 'machine learning')),
    ('Product', ('product manager', 'product owner')),
    ('Design', ('designer', 'ux', 'ui')),
    ('Marketing', ('marketing', 'growth', 'seo')),
    ('Sales', ('sales', 'business development', 'account executive')),
    ('Management', ('manager', 'director', 'lead', 'head of')),
]
DEFAULT_DEPARTMENT = 'Technology'

EXPERIENCE_PATTERNS = (
    re.compile(r'(\d+)\+?\s*years?\s+(?:of\s+)?experience'),
    re.compile(r'(\d+)\s*-\s*\d+\s*years'),
    re.compile(r'minimum\s+(?:of\s+)?(\d+)\s*years'),
)
EXPERIENCE_RANGE = re.compile(r'(\d+)\s*-\s*(\d+)\s*years')

MAX_TAGS_LENGTH = 500


def _contains_any(text: str, keywords) -> bool:
    return any(re.search(r'\b' + re.escape(k) + r'\b', text) for k in keywords)


def country_name(code: Optional[str]) -> str:
    """Map an ISO-2 code used in search queries to a display name"""
    if not code:
        return DEFAULT_COUNTRY
    return COUNTRY_CODES.get(code.lower(), code.upper())


def extract_country(location: Optional[str]) -> str:
    if not location:
        return DEFAULT_COUNTRY
    text = location.lower()
    for country, keywords in COUNTRY_KEYWORDS:
        if _contains_any(text, keywords):
            return country
    return DEFAULT_COUNTRY


def detect_currency(location: Optional[str]) -> str:
    """Salary currency implied by the location string, USD when unknown"""
    return COUNTRY_CURRENCY.get(extract_country(location), DEFAULT_CURRENCY)


def extract_department(title: Optional[str]) -> str:
    if not title:
        return DEFAULT_DEPARTMENT
    text = title.lower()
    for department, keywords in DEPARTMENT_KEYWORDS:
        if _contains_any(text, keywords):
            return department
    return DEFAULT_DEPARTMENT


def extract_min_experience(title: Optional[str], description: Optional[str]) -> int:
    """
    Minimum years of experience.

    Explicit phrases win ("5+ years of experience", "3-5 years",
    "minimum of 2 years"); otherwise inferred from seniority words.
    """
    content = f"{title or ''} {description or ''}".lower()

    for pattern in EXPERIENCE_PATTERNS:
        match = pattern.search(content)
        if match:
            return int(match.group(1))

    if _contains_any(content, ('senior', 'sr', 'lead', 'principal', 'staff')):
        return 5
    if _contains_any(content, ('mid', 'intermediate')):
        return 3
    return 0


def extract_max_experience(title: Optional[str], description: Optional[str]) -> int:
    min_exp = extract_min_experience(title, description)
    content = f"{title or ''} {description or ''}".lower()

    range_match = EXPERIENCE_RANGE.search(content)
    if range_match:
        return int(range_match.group(2))

    if _contains_any(content, ('senior', 'lead', 'principal', 'staff')):
        return max(min_exp + 5, 10)
    if _contains_any(content, ('mid', 'intermediate')):
        return max(min_exp + 3, 7)
    if _contains_any(content, ('junior', 'entry', 'trainee', 'graduate')):
        return max(min_exp + 2, 3)
    return max(min_exp + 3, 5)


def map_job_type(contract_type: Optional[str]) -> str:
    """Map a source's contract/schedule string onto Full-time, Part-time, Contract, Internship, Freelance or Temporary"""
    if not contract_type:
        return DEFAULT_JOB_TYPE

    value = contract_type.lower()
    if 'contract' in value or 'freelance' in value:
        return 'Contract'
    if 'part-time' in value or 'part_time' in value or 'part time' in value:
        return 'Part-time'
    if 'intern' in value:
        return 'Internship'
    if 'temporary' in value or re.search(r'\btemp\b', value):
        return 'Temporary'
    return DEFAULT_JOB_TYPE


def detect_workplace_type(location: Optional[str] = '', title: Optional[str] = '',
                          description: Optional[str] = '') -> str:
    content = f"{location or ''} {title or ''} {description or ''}".lower()
    if 'remote' in content or 'work from home' in content or re.search(r'\bwfh\b', content):
        return 'Remote'
    if 'hybrid' in content:
        return 'Hybrid'
    return 'Onsite'


def job_age_days(posted_at: Optional[datetime], now: datetime) -> int:
    if posted_at is None:
        return 0
    return max(0, (now - posted_at).days)


def calculate_priority(age_days: int) -> str:
    """High when posted within 3 days, Normal within a week, Low otherwise"""
    if age_days <= 3:
        return 'High'
    if age_days <= 7:
        return 'Normal'
    return 'Low'


def calculate_expiry(posted_at: datetime, age_days: int, now: datetime) -> datetime:
    """Fresh postings live 60 days from posting; older ones get 30 days from now"""
    if age_days <= 7:
        return posted_at + timedelta(days=60)
    return now + timedelta(days=30)


def build_tags(source: str, job_type: str, workplace_type: str, requirements: Optional[str] = None) -> str:
    tags = f"{source}, {job_type}, {workplace_type}"
    if requirements:
        tags += f", {requirements[:100]}"
    return tags[:MAX_TAGS_LENGTH]


def parse_salary_amount(value: Any) -> Optional[int]:
    """
    Parse a salary bound from a number or a string such as "$120,000" or "85k".

    Returns:
        Whole currency units, or None when missing, zero or unparseable
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        amount = float(value)
    elif isinstance(value, str):
        match = re.search(r'(\d[\d,]*(?:\.\d+)?)\s*([kK])?', value)
        if not match:
            return None
        try:
            amount = float(match.group(1).replace(',', ''))
        except ValueError:
            return None
        if match.group(2):
            amount *= 1000
    else:
        return None

    if amount <= 0:
        return None
    return int(round(amount))


def ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
