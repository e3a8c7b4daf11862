"""Tests for cache key generation."""

import re

import pytest

from applytrack.cache.keys import CacheKey, CacheKeys, EntityType


class TestCacheKeys:
    """Test cache key generation."""

    def test_applications_key(self) -> None:
        """Applications key has correct format."""
        assert str(CacheKeys.applications("u1")) == "user_u1_applications"

    def test_settings_key(self) -> None:
        """Settings key has correct format."""
        assert str(CacheKeys.settings("u1")) == "user_u1_settings"

    def test_today_target_key(self) -> None:
        """Today target key has its own entity segment."""
        assert str(CacheKeys.today_target("u1")) == "user_u1_today_target"

    def test_document_key(self) -> None:
        """Document keys qualify the entity key."""
        key = CacheKeys.document(EntityType.RESUMES, "u1", "r9")
        assert str(key) == "user_u1_resumes_doc_r9"

    def test_stream_page_keys(self) -> None:
        """Stream page keys encode page size and position."""
        initial = CacheKeys.stream_page(EntityType.APPLICATIONS, "u1", 20)
        after = CacheKeys.stream_page(EntityType.APPLICATIONS, "u1", 20, "abc")
        assert str(initial) == "user_u1_applications_stream_20_initial"
        assert str(after) == "user_u1_applications_stream_20_after_abc"

    def test_keys_are_deterministic(self) -> None:
        """Same arguments always produce identical keys."""
        assert CacheKeys.resumes("u1") == CacheKeys.resumes("u1")
        assert str(CacheKeys.resumes("u1")) == str(CacheKeys.resumes("u1"))
        assert hash(CacheKeys.resumes("u1")) == hash(CacheKeys.resumes("u1"))

    def test_entity_types_never_collide(self) -> None:
        """Every entity renders a distinct key for the same owner."""
        keys = {str(CacheKeys.for_entity(entity, "u1")) for entity in EntityType}
        assert len(keys) == len(EntityType)

    def test_owner_ids_with_underscores_do_not_collide(self) -> None:
        """Underscores in owner ids cannot bleed into the entity segment."""
        a = CacheKeys.for_entity(EntityType.SETTINGS, "a_b")
        b = CacheKeys.for_entity(EntityType.SETTINGS, "a")
        assert str(a) == "user_a%5Fb_settings"
        assert str(a) != str(b)
        assert not re.search(CacheKeys.owner_pattern("a"), str(a))

    def test_empty_owner_rejected(self) -> None:
        """An empty owner id is a programming error."""
        with pytest.raises(ValueError):
            str(CacheKeys.applications(""))

    def test_qualified(self) -> None:
        """qualified() keeps entity and owner."""
        key = CacheKeys.targets("u1").qualified("2026-01-10")
        assert key == CacheKey(EntityType.TARGETS, "u1", "2026-01-10")


class TestParseKey:
    """Test parsing rendered keys."""

    def test_parse_valid_key(self) -> None:
        """Valid key is parsed correctly."""
        result = CacheKeys.parse_key("user_u1_applications")
        assert result == CacheKey(EntityType.APPLICATIONS, "u1")

    def test_parse_qualified_key(self) -> None:
        """Qualifier is returned as-is."""
        result = CacheKeys.parse_key("user_u1_applications_stream_20_initial")
        assert result is not None
        assert result.entity is EntityType.APPLICATIONS
        assert result.qualifier == "stream_20_initial"

    def test_parse_prefers_longest_entity(self) -> None:
        """today_target is not read as an unknown entity."""
        result = CacheKeys.parse_key("user_u1_today_target")
        assert result == CacheKey(EntityType.TODAY_TARGET, "u1")

    def test_parse_round_trips_escaped_owner(self) -> None:
        """Escaped owner ids decode back to the original."""
        key = CacheKeys.document(EntityType.COVER_LETTERS, "x_y%z", "d1")
        assert CacheKeys.parse_key(str(key)) == key

    def test_parse_invalid_key_returns_none(self) -> None:
        """Invalid key returns None."""
        assert CacheKeys.parse_key("invalid") is None
        assert CacheKeys.parse_key("user_u1_unknown") is None
        assert CacheKeys.parse_key("other_u1_applications") is None

    def test_entity_label(self) -> None:
        """Metric label falls back to "other" for foreign keys."""
        assert CacheKeys.entity_label("user_u1_resumes") == "resumes"
        assert CacheKeys.entity_label("user_u1_apps") == "other"


class TestPatterns:
    """Test invalidation patterns."""

    def test_owner_pattern_matches_only_that_owner(self) -> None:
        """Owner pattern does not match owners sharing a prefix."""
        pattern = re.compile(CacheKeys.owner_pattern("u1"))
        assert pattern.search("user_u1_applications")
        assert pattern.search("user_u1_resumes_doc_r1")
        assert not pattern.search("user_u10_applications")

    def test_entity_pattern_matches_variants(self) -> None:
        """Entity pattern covers base key and qualified variants only."""
        pattern = re.compile(CacheKeys.entity_pattern(EntityType.TARGETS, "u1"))
        assert pattern.search("user_u1_targets")
        assert pattern.search("user_u1_targets_doc_t1")
        assert not pattern.search("user_u1_today_target")
        assert not pattern.search("user_u1_applications")

    def test_stream_pattern(self) -> None:
        """Stream pattern matches pages but not the list key."""
        pattern = re.compile(CacheKeys.stream_pattern(EntityType.APPLICATIONS, "u1"))
        assert pattern.search("user_u1_applications_stream_20_initial")
        assert not pattern.search("user_u1_applications")
