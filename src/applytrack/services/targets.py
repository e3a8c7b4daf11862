"""Daily target service."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

from applytrack.cache import CacheKeys, EntityType
from applytrack.documents import DocumentQuery, FieldFilter, FilterOp, OrderBy, SortDirection
from applytrack.models import Target, status_color_for
from applytrack.services.base import OwnedCollectionService, utcnow

logger = logging.getLogger(__name__)


class TargetService(OwnedCollectionService[Target]):
    """Targets, most recent day first.

    The target of the current day is cached separately under the
    today_target key, which has a shorter TTL and is invalidated together
    with the target list.
    """

    collection = "targets"
    entity = EntityType.TARGETS
    model = Target
    order_by = OrderBy("current_date", SortDirection.DESC)
    related_entities = (EntityType.TODAY_TARGET,)

    def _prepare_create(self, data: dict[str, Any]) -> dict[str, Any]:
        data.setdefault("current_date", utcnow().date())
        data.setdefault("applications_done", 0)
        data.setdefault(
            "status_color",
            status_color_for(data["applications_done"], data.get("daily_target", 0)),
        )
        return data

    async def today(self, owner_id: str, day: date | None = None) -> Target | None:
        """The owner's target for `day` (default: today, UTC)."""
        day = day or utcnow().date()
        key = CacheKeys.today_target(owner_id).qualified(day.isoformat())
        return await self.cache.fetch_cached(
            key,
            lambda: self._load_for_day(owner_id, day),
            self.cache.ttl_for(EntityType.TODAY_TARGET),
        )

    async def _load_for_day(self, owner_id: str, day: date) -> Target | None:
        result = await self.store.query(
            DocumentQuery(
                collection=self.collection,
                filters=(
                    self._owner_filter(owner_id),
                    FieldFilter("current_date", FilterOp.EQ, day),
                ),
                limit=1,
            )
        )
        return self._convert(result.items[0]) if result.items else None

    async def record_progress(self, owner_id: str, target_id: str, count: int = 1) -> Target:
        """Add `count` applications to a target and recompute its colour.

        Returns:
            The updated target.
        """
        doc = await self._require_owned(owner_id, target_id)
        current = self._convert(doc)
        done = max(0, current.applications_done + count)
        changes = {
            "applications_done": done,
            "status_color": status_color_for(done, current.daily_target),
        }
        await self.update(owner_id, target_id, changes)
        logger.debug(f"Target {target_id} progress {done}/{current.daily_target}")
        return current.model_copy(update=changes)
