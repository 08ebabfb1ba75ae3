"""
Organization resolution: map a raw company string to one organization id.

Resolution order:
1. canonical table lookup (well-known employers override the raw name)
2. exact name match against stored organizations
3. fuzzy match over a bounded candidate set (normalized edit-distance >= 0.85)
4. create a new organization, recovering from a concurrent insert of the same name

Matched organizations are back-filled with fresh enrichment and promoted to
the canonical name when the raw name was a known alias.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

from core.canonical_companies import CanonicalCompany, find_canonical_company
from core.company_names import check_company_name, normalize_company_name
from core.similarity import DEFAULT_MATCH_THRESHOLD, similarity
from .enrichment import backfill_updates
from .models import DEFAULT_INDUSTRY, DEFAULT_SIZE, NewOrganization, Organization, OrganizationEnrichment
from .store import DuplicateOrganizationError, JobStore

logger = logging.getLogger(__name__)

CANDIDATE_LENGTH_WINDOW = 10
CANDIDATE_LIMIT = 500
MIN_HINT_LENGTH = 3


class InvalidCompanyName(ValueError):
    """Raised when resolve() is handed a name that fails validation"""

    def __init__(self, name: str, reason: str):
        super().__init__(f"invalid company name {name!r}: {reason}")
        self.name = name
        self.reason = reason


@dataclass
class Resolution:
    organization_id: int
    name: str
    matched_by: str
    created: bool = False
    promoted: bool = False


def candidate_hints(normalized_name: str, canonical: Optional[CanonicalCompany] = None) -> List[str]:
    """Tokens a stored near-duplicate of this name is likely to contain"""
    names = [normalized_name]
    if canonical is not None:
        names.extend(normalize_company_name(n) for n in (canonical.canonical_name,) + canonical.aliases)
    hints = []
    for name in names:
        for token in name.split():
            if len(token) >= MIN_HINT_LENGTH and token not in hints:
                hints.append(token)
    return hints


class OrganizationMatcher:
    """Resolves company names to organization ids against a JobStore"""

    def __init__(
        self,
        store: JobStore,
        threshold: float = DEFAULT_MATCH_THRESHOLD,
        length_window: int = CANDIDATE_LENGTH_WINDOW,
        candidate_limit: int = CANDIDATE_LIMIT,
    ):
        self.store = store
        self.threshold = threshold
        self.length_window = length_window
        self.candidate_limit = candidate_limit

    def resolve(self, raw_name: str, enrichment: Optional[OrganizationEnrichment] = None) -> Resolution:
        """
        Return the organization for raw_name, creating it if nothing matches.

        Raises:
            InvalidCompanyName: if the name fails validation. Callers are expected
                to check names first and skip the job instead.
        """
        check = check_company_name(raw_name)
        if not check.valid:
            raise InvalidCompanyName(raw_name, check.reason)

        name = check.name
        canonical = find_canonical_company(name)
        display_name = canonical.canonical_name if canonical else name

        existing, matched_by = self._find_existing(name, display_name, canonical)
        if existing is None:
            return self._create(display_name, canonical, enrichment)

        promoted = self._update_existing(existing, canonical, enrichment)
        final_name = canonical.canonical_name if promoted else existing.name
        logger.debug(f"[matching] '{raw_name}' -> organization {existing.id} '{final_name}' ({matched_by})")
        return Resolution(existing.id, final_name, matched_by, promoted=promoted)

    def _find_existing(self, name: str, display_name: str, canonical: Optional[CanonicalCompany]):
        found = self.store.find_organization_by_name(display_name)
        if found:
            return found, "exact"
        if name.lower() != display_name.lower():
            found = self.store.find_organization_by_name(name)
            if found:
                return found, "exact_alias"

        best = self.find_best_candidate(display_name, canonical)
        if best:
            return best, "fuzzy"
        return None, None

    def find_best_candidate(self, display_name: str,
                            canonical: Optional[CanonicalCompany] = None) -> Optional[Organization]:
        """
        Highest-scoring stored organization at or above the threshold.

        A candidate whose own stored name maps to the same canonical entry
        scores 1.0 regardless of spelling ("MSFT Corp" for Microsoft).
        Ties keep the lowest id.
        """
        target = normalize_company_name(display_name)
        candidates = self.store.find_organization_candidates(
            len(display_name), self.length_window, self.candidate_limit,
            hints=candidate_hints(target, canonical),
        )

        best: Optional[Organization] = None
        best_score = 0.0
        for candidate in candidates:
            if canonical is not None and find_canonical_company(candidate.name) == canonical:
                score = 1.0
            else:
                score = similarity(target, normalize_company_name(candidate.name))
            if score > best_score or (best is not None and score == best_score and candidate.id < best.id):
                best, best_score = candidate, score

        if best is not None and best_score >= self.threshold:
            logger.info(
                f"[matching] Fuzzy match '{display_name}' ~ '{best.name}' "
                f"(score={best_score:.2f}, {len(candidates)} candidates)"
            )
            return best
        return None

    def _create(self, display_name: str, canonical: Optional[CanonicalCompany],
                enrichment: Optional[OrganizationEnrichment]) -> Resolution:
        enrichment = enrichment or OrganizationEnrichment()
        industry = canonical.industry if canonical else (enrichment.industry or DEFAULT_INDUSTRY)
        new_org = NewOrganization(
            name=display_name,
            industry=industry,
            size=enrichment.size or DEFAULT_SIZE,
            description=enrichment.description,
            logo_url=enrichment.logo_url,
            website=enrichment.website,
            linkedin_url=enrichment.linkedin_url,
            is_well_known=canonical is not None,
        )

        try:
            organization_id = self.store.create_organization(new_org)
        except DuplicateOrganizationError:
            # Another writer created the same name between our lookup and insert
            winner = self.store.find_organization_by_name(new_org.name)
            if winner is None:
                raise
            logger.info(f"[matching] Lost create race for '{new_org.name}', using organization {winner.id}")
            return Resolution(winner.id, winner.name, "race")

        logger.info(f"[matching] Created organization {organization_id} '{new_org.name}' (well_known={new_org.is_well_known})")
        return Resolution(organization_id, new_org.name, "created", created=True)

    def _update_existing(self, existing: Organization, canonical: Optional[CanonicalCompany],
                         enrichment: Optional[OrganizationEnrichment]) -> bool:
        """Back-fill empty fields and promote to the canonical name. Returns True if promoted."""
        updates = backfill_updates(existing, enrichment)

        promote = canonical is not None and existing.name != canonical.canonical_name
        if promote:
            updates["name"] = canonical.canonical_name
            updates["industry"] = canonical.industry
            updates["is_well_known"] = True
        elif canonical is not None and not existing.is_well_known:
            updates["is_well_known"] = True

        if not updates:
            return False

        try:
            self.store.update_organization(existing.id, updates)
        except DuplicateOrganizationError:
            # The canonical name is already taken by another row; keep this one as is
            logger.warning(
                f"[matching] Could not promote organization {existing.id} '{existing.name}' "
                f"to '{canonical.canonical_name}': name already in use"
            )
            backfill = backfill_updates(existing, enrichment)
            if backfill:
                self.store.update_organization(existing.id, backfill)
            return False

        if promote:
            logger.info(f"[matching] Promoted organization {existing.id} '{existing.name}' -> '{canonical.canonical_name}'")
        return promote
