"""TTL policy table: entity type -> time-to-live in seconds."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from applytrack.cache.keys import CacheKey, CacheKeys, EntityType
from applytrack.config import Settings

# Defaults mirror Settings; kept here so policy works without environment
DEFAULT_TTL = 120.0
STREAM_TTL = 120.0

DEFAULT_ENTITY_TTLS: Mapping[EntityType, float] = MappingProxyType(
    {
        EntityType.APPLICATIONS: 300.0,
        EntityType.RESUMES: 600.0,
        EntityType.COVER_LETTERS: 600.0,
        EntityType.SETTINGS: 900.0,
        EntityType.TARGETS: 300.0,
        EntityType.TODAY_TARGET: 60.0,
        EntityType.SCHEDULES: 900.0,
    }
)


@dataclass(frozen=True)
class TtlPolicy:
    """Static mapping of entity type to TTL with a default for unknown keys."""

    entity_ttls: Mapping[EntityType, float] = field(default_factory=lambda: DEFAULT_ENTITY_TTLS)
    default_ttl: float = DEFAULT_TTL
    stream_ttl: float = STREAM_TTL

    @classmethod
    def from_settings(cls, settings: Settings) -> TtlPolicy:
        """Build the policy table from application settings."""
        return cls(
            entity_ttls=MappingProxyType(
                {
                    EntityType.APPLICATIONS: settings.applications_ttl,
                    EntityType.RESUMES: settings.resumes_ttl,
                    EntityType.COVER_LETTERS: settings.cover_letters_ttl,
                    EntityType.SETTINGS: settings.settings_ttl,
                    EntityType.TARGETS: settings.targets_ttl,
                    EntityType.TODAY_TARGET: settings.today_target_ttl,
                    EntityType.SCHEDULES: settings.schedules_ttl,
                }
            ),
            default_ttl=settings.default_ttl,
            stream_ttl=settings.stream_ttl,
        )

    def ttl_for(self, key: str | CacheKey | EntityType) -> float:
        """TTL for an entity type or a key (default TTL for unregistered keys)."""
        if isinstance(key, EntityType):
            entity: EntityType | None = key
        elif isinstance(key, CacheKey):
            entity = key.entity
        else:
            parsed = CacheKeys.parse_key(key)
            entity = parsed.entity if parsed else None

        if entity is None:
            return self.default_ttl
        return self.entity_ttls.get(entity, self.default_ttl)
