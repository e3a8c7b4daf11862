"""Resume service."""

from __future__ import annotations

from typing import Any

from applytrack.cache import EntityType
from applytrack.documents import OrderBy, SortDirection
from applytrack.models import Resume
from applytrack.services.base import OwnedCollectionService, utcnow


class ResumeService(OwnedCollectionService[Resume]):
    """Resumes, newest first."""

    collection = "resumes"
    entity = EntityType.RESUMES
    model = Resume
    order_by = OrderBy("created_at", SortDirection.DESC)

    def _prepare_create(self, data: dict[str, Any]) -> dict[str, Any]:
        data.setdefault("created_at", utcnow())
        return data

    async def update_text(self, owner_id: str, resume_id: str, text: str) -> None:
        """Replace the editable text extracted from a resume."""
        await self.update(owner_id, resume_id, {"editable_text": text})
