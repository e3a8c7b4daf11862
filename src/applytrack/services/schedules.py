"""Reminder schedule service. Each owner has at most one schedule."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from applytrack.cache import EntityType
from applytrack.documents import DocumentQuery
from applytrack.models import Schedule
from applytrack.services.base import OwnedCollectionService

logger = logging.getLogger(__name__)


class ScheduleService(OwnedCollectionService[Schedule]):
    collection = "schedules"
    entity = EntityType.SCHEDULES
    model = Schedule

    async def get_schedule(self, owner_id: str) -> Schedule | None:
        """The owner's schedule, read through the cached schedule list."""
        schedules = await self.list(owner_id)
        return schedules[0] if schedules else None

    async def save(self, owner_id: str, data: Mapping[str, Any]) -> str:
        """Create the owner's schedule or update the existing one.

        The data is validated as a Schedule before anything is written.

        Returns:
            The schedule id.
        """
        Schedule.model_validate({**data, "schedule_id": "pending", "user_id": owner_id})

        result = await self.store.query(
            DocumentQuery(
                collection=self.collection,
                filters=(self._owner_filter(owner_id),),
                limit=1,
            )
        )
        if result.items:
            schedule_id = result.items[0].id
            await self.update(owner_id, schedule_id, data)
            return schedule_id
        return await self.create(owner_id, data)
