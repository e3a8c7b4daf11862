"""Cache key schema for applytrack.

Key format: {prefix}_{owner}_{entity_type}[_{qualifier}]

Where:
- prefix: "user" (owner scope namespace)
- owner: owner identifier with "%" and "_" percent-escaped, so an owner
  id can never bleed into the entity segment
- entity_type: one of EntityType ("applications", "resumes", ...)
- qualifier: optional variant ("doc_<id>", "stream_20_initial", ...)

Example: user_u1_applications, user_u1_applications_stream_20_initial
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from urllib.parse import unquote


class EntityType(str, Enum):
    """Cacheable entity types, one fixed key segment each."""

    APPLICATIONS = "applications"
    RESUMES = "resumes"
    COVER_LETTERS = "cover_letters"
    SETTINGS = "settings"
    TARGETS = "targets"
    TODAY_TARGET = "today_target"
    SCHEDULES = "schedules"


# Longest first so parse_key never matches a shorter entity inside a longer one
_ENTITIES_BY_LENGTH = sorted(EntityType, key=lambda e: len(e.value), reverse=True)


def _escape_owner(owner_id: str) -> str:
    if not owner_id:
        raise ValueError("owner_id must be a non-empty string")
    return owner_id.replace("%", "%25").replace("_", "%5F")


@dataclass(frozen=True, slots=True)
class CacheKey:
    """Typed cache key: entity type + owner id + optional qualifier.

    Equal CacheKey values always render to byte-identical strings.
    """

    entity: EntityType
    owner_id: str
    qualifier: str | None = None

    def __str__(self) -> str:
        return CacheKeys.render(self)

    def qualified(self, qualifier: str) -> CacheKey:
        """Return a key for a variant of the same entity and owner."""
        return CacheKey(self.entity, self.owner_id, qualifier)


class CacheKeys:
    """Cache key generator following consistent naming convention."""

    PREFIX = "user"

    @classmethod
    def render(cls, key: CacheKey) -> str:
        """Render a typed key into its string form."""
        base = f"{cls.PREFIX}_{_escape_owner(key.owner_id)}_{key.entity.value}"
        if key.qualifier:
            return f"{base}_{key.qualifier}"
        return base

    @classmethod
    def for_entity(
        cls, entity: EntityType, owner_id: str, qualifier: str | None = None
    ) -> CacheKey:
        """Key for any entity type."""
        return CacheKey(entity, owner_id, qualifier)

    @classmethod
    def applications(cls, owner_id: str) -> CacheKey:
        """Key for an owner's job applications."""
        return CacheKey(EntityType.APPLICATIONS, owner_id)

    @classmethod
    def resumes(cls, owner_id: str) -> CacheKey:
        """Key for an owner's resumes."""
        return CacheKey(EntityType.RESUMES, owner_id)

    @classmethod
    def cover_letters(cls, owner_id: str) -> CacheKey:
        """Key for an owner's cover letters."""
        return CacheKey(EntityType.COVER_LETTERS, owner_id)

    @classmethod
    def settings(cls, owner_id: str) -> CacheKey:
        """Key for an owner's profile settings."""
        return CacheKey(EntityType.SETTINGS, owner_id)

    @classmethod
    def targets(cls, owner_id: str) -> CacheKey:
        """Key for an owner's daily targets."""
        return CacheKey(EntityType.TARGETS, owner_id)

    @classmethod
    def today_target(cls, owner_id: str) -> CacheKey:
        """Key for the owner's target for the current day."""
        return CacheKey(EntityType.TODAY_TARGET, owner_id)

    @classmethod
    def schedules(cls, owner_id: str) -> CacheKey:
        """Key for an owner's reminder schedule."""
        return CacheKey(EntityType.SCHEDULES, owner_id)

    @classmethod
    def document(cls, entity: EntityType, owner_id: str, doc_id: str) -> CacheKey:
        """Key for a single document of an entity collection."""
        return CacheKey(entity, owner_id, f"doc_{doc_id}")

    @classmethod
    def stream_page(
        cls,
        entity: EntityType,
        owner_id: str,
        page_size: int,
        position: str | None = None,
    ) -> CacheKey:
        """Key for one page of a paginated stream.

        The first page uses the "initial" marker; continuation pages are
        keyed by the cursor position they start after.
        """
        if position is None:
            return CacheKey(entity, owner_id, f"stream_{page_size}_initial")
        return CacheKey(entity, owner_id, f"stream_{page_size}_after_{position}")

    @classmethod
    def parse_key(cls, key: str) -> CacheKey | None:
        """Parse a cache key string back into a typed key.

        Returns None if the key doesn't match the expected format.
        """
        head = f"{cls.PREFIX}_"
        if not key.startswith(head):
            return None

        owner_escaped, sep, remainder = key[len(head) :].partition("_")
        if not owner_escaped or not sep:
            return None

        for entity in _ENTITIES_BY_LENGTH:
            if remainder == entity.value:
                return CacheKey(entity, unquote(owner_escaped))
            if remainder.startswith(f"{entity.value}_"):
                qualifier = remainder[len(entity.value) + 1 :]
                return CacheKey(entity, unquote(owner_escaped), qualifier or None)

        return None

    @classmethod
    def entity_label(cls, key: str | CacheKey) -> str:
        """Entity name of a key for metrics labels ("other" if unknown)."""
        if isinstance(key, CacheKey):
            return key.entity.value
        parsed = cls.parse_key(key)
        return parsed.entity.value if parsed else "other"

    @classmethod
    def owner_pattern(cls, owner_id: str) -> str:
        """Regex matching every key of one owner."""
        return f"^{cls.PREFIX}_{re.escape(_escape_owner(owner_id))}_"

    @classmethod
    def stream_pattern(cls, entity: EntityType, owner_id: str) -> str:
        """Regex matching every cached stream page of an entity for one owner."""
        return (
            f"^{cls.PREFIX}_{re.escape(_escape_owner(owner_id))}_"
            f"{re.escape(entity.value)}_stream_"
        )

    @classmethod
    def entity_pattern(cls, entity: EntityType, owner_id: str) -> str:
        """Regex matching an entity's base key and all of its qualified variants."""
        return (
            f"^{cls.PREFIX}_{re.escape(_escape_owner(owner_id))}_"
            f"{re.escape(entity.value)}(?:_|$)"
        )
