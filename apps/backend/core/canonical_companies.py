"""
Curated table of well-known employers and their common name variants.

Used to map scraped company strings such as "Amazon Development Center" or
"Google LLC" onto one display name, and to mark the resulting organization
as well known.
"""
import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from core.company_names import normalize_company_name

logger = logging.getLogger(__name__)

SUBSTRING_OVERLAP_RATIO = 0.7


@dataclass(frozen=True)
class CanonicalCompany:
    canonical_name: str
    aliases: Tuple[str, ...]
    industry: str
    rank: Optional[int] = None


def _c(name: str, aliases: List[str], industry: str, rank: Optional[int] = None) -> CanonicalCompany:
    return CanonicalCompany(name, tuple(aliases), industry, rank)


CANONICAL_COMPANIES: List[CanonicalCompany] = [
    # Big tech
    _c("Apple", ["Apple Inc", "Apple Inc.", "Apple Computer"], "Technology", 3),
    _c("Microsoft", ["Microsoft Corp", "Microsoft Corporation", "MSFT", "Microsft", "Microsoft India"], "Technology", 14),
    _c("Amazon", [
        "Amazon.com", "Amazon Inc", "Amazon.com Inc", "Amazon.com Services", "Amazon Web Services", "AWS",
        "Amazon Development Center", "Amazon Data Services", "Amazon Development Centre India",
    ], "E-commerce & Technology", 2),
    _c("Google", ["Alphabet", "Alphabet Inc", "Google LLC", "Google Inc", "YouTube", "Waymo", "DeepMind"], "Technology", 8),
    _c("Meta", ["Meta Platforms", "Meta Platforms Inc", "Facebook", "Facebook Inc", "Instagram", "WhatsApp"], "Technology", 31),
    _c("Tesla", ["Tesla Inc", "Tesla Motors", "Tesla Energy"], "Automotive & Energy", 47),
    _c("NVIDIA", ["Nvidia Corp", "Nvidia Corporation", "NVDA", "NVIDIA USA", "2100 NVIDIA", "2100 NVIDIA USA"], "Technology", 134),
    _c("IBM", ["International Business Machines", "IBM Corp", "IBM India", "Red Hat"], "Technology", 71),
    _c("Intel", ["Intel Corp", "Intel Corporation", "INTC"], "Technology", 58),
    _c("Oracle", ["Oracle Corp", "Oracle Corporation", "ORCL"], "Technology", 91),
    _c("Cisco", ["Cisco Systems", "Cisco Systems Inc"], "Technology", 82),
    _c("Dell", ["Dell Technologies", "Dell Inc", "Dell Computer"], "Technology", 48),
    _c("HP", ["HP Inc", "Hewlett-Packard", "Hewlett Packard"], "Technology", 63),
    _c("Hewlett Packard Enterprise", ["HPE", "HP Enterprise"], "Technology", 107),
    _c("Salesforce", ["Salesforce.com", "Salesforce Inc"], "Technology", 136),
    _c("Adobe", ["Adobe Inc", "Adobe Systems"], "Technology", 230),
    _c("Netflix", ["Netflix Inc"], "Technology", 115),
    _c("PayPal", ["PayPal Holdings"], "Technology", 201),
    _c("Uber", ["Uber Technologies"], "Technology", 143),
    _c("Airbnb", ["Airbnb Inc"], "Technology"),
    _c("Spotify", ["Spotify Technology"], "Technology"),
    _c("Snap", ["Snap Inc", "Snapchat"], "Technology"),
    _c("LinkedIn", ["LinkedIn Corp", "LinkedIn Corporation"], "Technology"),
    _c("VMware", ["VMware Inc"], "Technology"),
    _c("ServiceNow", ["ServiceNow Inc"], "Technology"),
    _c("Workday", ["Workday Inc"], "Technology"),
    _c("Zoom", ["Zoom Video Communications", "Zoom Communications"], "Technology"),
    _c("Atlassian", ["Atlassian Corporation"], "Technology"),
    _c("Stripe", ["Stripe Inc"], "Financial Technology"),
    _c("Shopify", ["Shopify Inc"], "E-commerce & Technology"),
    _c("Intuit", ["Intuit Inc"], "Technology", 289),
    _c("Autodesk", ["Autodesk Inc"], "Technology"),
    _c("Qualcomm", ["Qualcomm Inc"], "Technology", 112),
    _c("Broadcom", ["Broadcom Inc", "Avago"], "Technology", 123),
    _c("Texas Instruments", ["Texas Instruments Inc"], "Technology", 193),
    _c("AMD", ["Advanced Micro Devices", "AMD Inc"], "Technology", 167),
    _c("Micron Technology", ["Micron"], "Technology", 132),
    _c("Palo Alto Networks", ["PANW"], "Technology"),
    _c("CrowdStrike", ["CrowdStrike Holdings"], "Technology"),
    _c("Snowflake", ["Snowflake Inc"], "Technology"),
    _c("Databricks", ["Databricks Inc"], "Technology"),
    _c("MongoDB", ["MongoDB Inc"], "Technology"),
    _c("Twilio", ["Twilio Inc"], "Technology"),
    _c("Okta", ["Okta Inc"], "Technology"),
    _c("HubSpot", ["HubSpot Inc"], "Technology"),
    # IT services and consulting
    _c("Tata Consultancy Services", ["TCS", "Tata Consulting", "TCS Ltd"], "IT Services"),
    _c("Infosys", ["Infosys Technologies", "Infosys Ltd", "Infosys Limited"], "IT Services"),
    _c("Wipro", ["Wipro Technologies", "Wipro Ltd", "Wipro Limited"], "IT Services"),
    _c("HCL Technologies", ["HCL", "HCL Tech", "HCLTech"], "IT Services"),
    _c("Tech Mahindra", ["Tech Mahindra Ltd"], "IT Services"),
    _c("Cognizant", ["Cognizant Technology Solutions", "CTS"], "IT Services", 185),
    _c("Accenture", ["Accenture plc", "Accenture Ltd", "Accenture Solutions"], "Consulting"),
    _c("Capgemini", ["Capgemini SE", "Capgemini India"], "Consulting"),
    _c("Deloitte", ["Deloitte Consulting", "Deloitte Touche Tohmatsu"], "Consulting"),
    # Finance and insurance
    _c("JPMorgan Chase", ["JP Morgan", "JPMorgan", "J.P. Morgan", "JPM"], "Financial Services", 15),
    _c("Bank of America", ["BofA", "Bank of America Corp"], "Financial Services", 29),
    _c("Wells Fargo", ["Wells Fargo & Company", "WFC"], "Financial Services", 35),
    _c("Goldman Sachs", ["Goldman Sachs Group"], "Financial Services", 55),
    _c("Morgan Stanley", ["Morgan Stanley & Co"], "Financial Services", 61),
    _c("Citigroup", ["Citi", "Citibank", "Citicorp"], "Financial Services", 36),
    _c("American Express", ["AmEx", "American Express Company"], "Financial Services", 77),
    _c("Capital One", ["Capital One Financial"], "Financial Services", 92),
    _c("Berkshire Hathaway", ["Berkshire", "BRK"], "Financial Services", 6),
    # Retail and consumer
    _c("Walmart", ["Wal-Mart", "Walmart Inc", "Walmart Stores", "Walmart Global Tech"], "Retail", 1),
    _c("Costco", ["Costco Wholesale", "Costco Wholesale Corp"], "Retail", 11),
    _c("Target", ["Target Corp", "Target Corporation"], "Retail", 32),
    _c("Home Depot", ["The Home Depot", "Home Depot Inc"], "Retail", 18),
    _c("Procter & Gamble", ["P&G", "Procter and Gamble"], "Consumer Goods", 43),
    _c("PepsiCo", ["Pepsi", "PepsiCo Inc"], "Food & Beverage", 44),
    _c("Coca-Cola", ["The Coca-Cola Company", "Coke"], "Food & Beverage", 89),
    _c("Starbucks", ["Starbucks Corp", "Starbucks Corporation"], "Food & Beverage"),
    # Healthcare and pharma
    _c("UnitedHealth Group", ["UnitedHealthcare", "United Health", "Optum"], "Healthcare", 5),
    _c("CVS Health", ["CVS", "CVS Pharmacy", "Aetna"], "Healthcare", 4),
    _c("Pfizer", ["Pfizer Inc"], "Pharmaceuticals", 66),
    _c("Johnson & Johnson", ["J&J", "JNJ"], "Healthcare", 37),
    _c("AbbVie", ["AbbVie Inc"], "Pharmaceuticals"),
    _c("Eli Lilly", ["Eli Lilly and Company"], "Pharmaceuticals"),
    # Industrial, auto, telecom, energy
    _c("Ford", ["Ford Motor", "Ford Motor Company"], "Automotive", 21),
    _c("General Motors", ["General Motors Company"], "Automotive", 25),
    _c("Boeing", ["The Boeing Company", "Boeing Co"], "Aerospace", 52),
    _c("Lockheed Martin", ["Lockheed Martin Corp"], "Aerospace & Defense", 56),
    _c("AT&T", ["AT&T Inc", "American Telephone & Telegraph"], "Telecommunications", 13),
    _c("Verizon", ["Verizon Communications", "Verizon Wireless"], "Telecommunications", 20),
    _c("T-Mobile", ["T-Mobile US", "T-Mobile USA"], "Telecommunications", 41),
    _c("ExxonMobil", ["Exxon Mobil", "Exxon"], "Energy", 7),
    _c("Chevron", ["Chevron Corp", "Chevron Corporation"], "Energy", 10),
    _c("3M", ["3M Company", "Minnesota Mining"], "Industrial", 102),
    _c("Honeywell", ["Honeywell International"], "Industrial", 94),
    _c("General Electric", ["GE Aerospace", "GE Vernova"], "Industrial", 64),
    _c("Disney", ["Walt Disney", "The Walt Disney Company", "Walt Disney Co"], "Media & Entertainment", 48),
    _c("Comcast", ["Comcast Corp", "Xfinity", "NBCUniversal"], "Telecommunications", 33),
    _c("FedEx", ["Federal Express", "FedEx Corp"], "Logistics", 40),
    _c("UPS", ["United Parcel Service", "UPS Inc"], "Logistics", 34),
]


class CanonicalIndex:
    """
    Lookup structure over the canonical table.

    Match tiers, first hit wins:
    1. exact, case-insensitive, on the canonical name or any alias
    2. normalized form equals the normalized canonical name or an alias
    3. whole-word containment between normalized forms with at least 70% overlap
    """

    def __init__(self, companies: List[CanonicalCompany]):
        self.companies = companies
        self._exact: Dict[str, CanonicalCompany] = {}
        self._normalized: Dict[str, CanonicalCompany] = {}
        self._canonical_normalized: List[Tuple[str, CanonicalCompany]] = []

        for company in companies:
            for name in (company.canonical_name,) + company.aliases:
                self._exact.setdefault(_collapse(name).lower(), company)
                self._normalized.setdefault(normalize_company_name(name), company)
            self._canonical_normalized.append((normalize_company_name(company.canonical_name), company))

    def find(self, raw_name: Optional[str]) -> Optional[CanonicalCompany]:
        if not raw_name or not raw_name.strip():
            return None

        key = _collapse(raw_name).lower()
        if key in self._exact:
            return self._exact[key]

        normalized = normalize_company_name(raw_name)
        if not normalized:
            return None
        if normalized in self._normalized:
            return self._normalized[normalized]

        for canonical_norm, company in self._canonical_normalized:
            if _contains_word(normalized, canonical_norm) or _contains_word(canonical_norm, normalized):
                shorter = min(len(normalized), len(canonical_norm))
                longer = max(len(normalized), len(canonical_norm))
                if longer and shorter / longer >= SUBSTRING_OVERLAP_RATIO:
                    return company

        return None


def _collapse(value: str) -> str:
    return re.sub(r"\s+", " ", value).strip()


def _contains_word(haystack: str, needle: str) -> bool:
    if not needle or len(needle) > len(haystack):
        return False
    return re.search(r"(?<!\w)" + re.escape(needle) + r"(?!\w)", haystack) is not None


_index: Optional[CanonicalIndex] = None


def get_canonical_index() -> CanonicalIndex:
    global _index
    if _index is None:
        _index = CanonicalIndex(CANONICAL_COMPANIES)
        logger.info(f"[canonical] Indexed {len(CANONICAL_COMPANIES)} well-known companies")
    return _index


def find_canonical_company(raw_name: Optional[str]) -> Optional[CanonicalCompany]:
    """Look up a raw company string in the canonical table"""
    return get_canonical_index().find(raw_name)

