"""
Organization name normalization and matching.

Org names show up in several spellings across wiki pages:
- Portal: "Team Liquid"
- Transfer rows: "Liquid" (data-highlighting-class) or "Team Liquid" (title)
- Roster captions: "TEAM LIQUID"

Slugs are the stable key ("team-liquid"). When a transfer mentions an org
by a variant spelling, OrgResolver maps it onto an existing slug if the
names are similar enough, otherwise a new organization is created.
"""

import logging
import re
import unicodedata
from typing import Optional

import jellyfish
from rapidfuzz import fuzz
from sqlalchemy import select
from sqlalchemy.orm import Session

from compsync.config import settings
from compsync.db.models import Organization
from compsync.scrape.tournament_identity import slugify

logger = logging.getLogger(__name__)

# Words that do not help distinguish one org from another
_NOISE_WORDS = {"team", "esports", "esport", "gaming", "clan", "the"}


def normalize_org_name(name: str) -> str:
    """
    Normalize an org name for comparison.

    Examples:
        >>> normalize_org_name("Team Liquid")
        'liquid'
        >>> normalize_org_name("FaZe Clan")
        'faze'
    """
    if not name:
        return ""

    normalized = unicodedata.normalize("NFD", name.lower().strip())
    normalized = "".join(c for c in normalized if unicodedata.category(c) != "Mn")
    normalized = re.sub(r"[^a-z0-9 ]+", " ", normalized)

    words = [w for w in normalized.split() if w not in _NOISE_WORDS]
    # An org called just "Team" keeps its name
    if not words:
        words = normalized.split()
    return " ".join(words)


def org_slug(name: str) -> str:
    """Slug used as the organization primary key."""
    return slugify(name)


def compare_org_names(name1: str, name2: str) -> float:
    """
    Similarity between two org names, 0.0 to 1.0.

    Best of Jaro-Winkler (typos, shared prefixes) and token sort ratio
    (word order) on the normalized names.
    """
    n1 = normalize_org_name(name1)
    n2 = normalize_org_name(name2)

    if not n1 or not n2:
        return 0.0
    if n1 == n2:
        return 1.0

    jw_score = jellyfish.jaro_winkler_similarity(n1, n2)
    token_sort = fuzz.token_sort_ratio(n1, n2) / 100.0
    return max(jw_score, token_sort)


class OrgResolver:
    """
    Resolves free-text org names onto organization slugs.

    Known organizations are loaded once; orgs created through the resolver
    are added to the in-memory index so later rows in the same run find
    them.

    Usage:
        resolver = OrgResolver(session)
        slug = resolver.resolve_or_create("Liquid")
    """

    def __init__(self, db: Session, threshold: Optional[float] = None):
        self.db = db
        self.threshold = threshold if threshold is not None else settings.org_match_threshold
        self._names: dict[str, str] = {}
        self._loaded = False

    def _load(self) -> None:
        if self._loaded:
            return
        rows = self.db.execute(select(Organization.slug, Organization.name)).all()
        for slug, name in rows:
            self._names[slug] = name
        self._loaded = True

    def match(self, name: str) -> Optional[str]:
        """
        Existing slug for a name, or None.

        Exact slug match first, then the most similar known name at or
        above the threshold.
        """
        self._load()
        slug = org_slug(name)
        if slug in self._names:
            return slug

        best_slug: Optional[str] = None
        best_score = 0.0
        for known_slug, known_name in self._names.items():
            score = compare_org_names(name, known_name)
            if score > best_score:
                best_slug, best_score = known_slug, score

        if best_slug is not None and best_score >= self.threshold:
            logger.debug("Matched org '%s' to %s (%.2f)", name, best_slug, best_score)
            return best_slug
        return None

    def resolve_or_create(self, name: Optional[str]) -> Optional[str]:
        """Slug for the name, creating a bare Organization if nothing matches."""
        if not name:
            return None

        existing = self.match(name)
        if existing:
            return existing

        slug = org_slug(name)
        if not slug:
            return None

        self.db.add(Organization(slug=slug, name=name))
        self.db.flush()
        self._names[slug] = name
        logger.info("Created organization %s from name '%s'", slug, name)
        return slug

    def remember(self, slug: str, name: str) -> None:
        """Add an org upserted elsewhere to the in-memory index."""
        self._load()
        self._names[slug] = name

    def reload(self) -> None:
        """
        Forget the in-memory index; the next lookup reads it from the database.

        Called after a savepoint rollback, which may have discarded orgs
        this resolver created or remembered.
        """
        self._names.clear()
        self._loaded = False
