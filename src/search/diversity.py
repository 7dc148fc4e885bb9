"""
Diversity selection for search results.

Repeated searches for the same niche should surface companies the owner has not
seen yet. Candidates are split into three tiers by normalized domain:

1. fresh          - neither seen for this niche nor saved
2. repeat-unsaved - seen for this niche, not saved
3. saved-fallback - already saved by the owner

Tiers are drained strictly in that order. With `randomize` the members of each
tier are shuffled (never across tiers).
"""
import logging
import random
import string
from typing import AbstractSet, Iterable, List, Optional, Sequence

from src.core.utils import normalize_domain
from src.search.data_types import CompanyCandidate, SelectionResult, SelectionStats

logger = logging.getLogger(__name__)

NICHE_KEY_MAX_LENGTH = 100
NICHE_STOP_WORDS = frozenset({
    "the", "a", "an", "for", "of", "in", "and", "companies", "company", "startups",
})

_PUNCTUATION_TABLE = str.maketrans({ch: " " for ch in string.punctuation})


def derive_niche_key(query: str) -> str:
    """
    Derive a stable niche key from a free-text query.

    Case, punctuation, whitespace, word order and filler words do not change the
    key, so "Logistics SaaS companies" and "saas, logistics" share one niche.
    """
    if not query:
        return "general"

    text = query.lower().translate(_PUNCTUATION_TABLE)
    tokens = [t for t in text.split() if t not in NICHE_STOP_WORDS]
    if not tokens:
        tokens = text.split()
    if not tokens:
        return "general"

    key = "_".join(sorted(set(tokens)))
    return key[:NICHE_KEY_MAX_LENGTH].rstrip("_")


def normalize_domains(websites: Iterable[Optional[str]]) -> frozenset:
    """Build a read-only DomainSet from raw websites/domains."""
    return frozenset(d for d in (normalize_domain(w) for w in websites) if d)


def _dedupe_by_domain(candidates: Sequence[CompanyCandidate]) -> List[CompanyCandidate]:
    """
    First occurrence per domain wins.

    Website-less candidates share no domain key, so they are never grouped:
    each one is kept as a distinct company (and later fails enrichment on its
    own with "Company has no website").
    """
    seen = set()
    unique = []
    for candidate in candidates:
        domain = normalize_domain(candidate.website)
        if domain:
            if domain in seen:
                continue
            seen.add(domain)
        unique.append(candidate)
    return unique


def select_diverse_companies(
    candidates: Sequence[CompanyCandidate],
    seen_domains: AbstractSet[str],
    desired_count: int,
    randomize: bool = True,
    saved_domains: Optional[AbstractSet[str]] = None,
    rng: Optional[random.Random] = None,
) -> SelectionResult:
    """
    Select up to `desired_count` candidates, preferring fresh domains.

    Args:
        candidates: Discovery output, in discovery order.
        seen_domains: Normalized domains already shown to this owner for the niche.
        desired_count: Maximum number of companies to return.
        randomize: Shuffle within each tier; False keeps discovery order.
        saved_domains: Normalized domains the owner has already saved.
        rng: Random source used for shuffling (injectable for tests).
    """
    stats = SelectionStats(requested=desired_count)
    if not candidates or desired_count <= 0:
        return SelectionResult(selected=[], stats=stats)

    saved_domains = saved_domains or frozenset()
    rng = rng or random.Random()

    fresh: List[CompanyCandidate] = []
    repeat_unsaved: List[CompanyCandidate] = []
    saved_fallback: List[CompanyCandidate] = []

    for candidate in _dedupe_by_domain(candidates):
        domain = normalize_domain(candidate.website)
        if domain in saved_domains:
            saved_fallback.append(candidate)
        elif domain in seen_domains:
            repeat_unsaved.append(candidate)
        else:
            fresh.append(candidate)

    if randomize:
        for tier in (fresh, repeat_unsaved, saved_fallback):
            rng.shuffle(tier)

    selected: List[CompanyCandidate] = []
    tier_counts = []
    for tier in (fresh, repeat_unsaved, saved_fallback):
        take = tier[:max(0, desired_count - len(selected))]
        selected.extend(take)
        tier_counts.append(len(take))

    stats.fresh, stats.repeat_unseen_saved, stats.repeat_seen = tier_counts
    stats.fallback_used = stats.repeat_seen > 0

    logger.info(
        f"Diversity selection: {len(selected)}/{desired_count} selected from {len(candidates)} candidates "
        f"(fresh={stats.fresh}, repeat={stats.repeat_unseen_saved}, saved={stats.repeat_seen}) "
        f"-> {[c.name for c in selected]}"
    )

    return SelectionResult(selected=selected, stats=stats)
