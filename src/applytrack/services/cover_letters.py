"""Cover letter service."""

from __future__ import annotations

from typing import Any

from applytrack.cache import EntityType
from applytrack.documents import OrderBy, SortDirection
from applytrack.models import CoverLetter
from applytrack.services.base import OwnedCollectionService, utcnow


class CoverLetterService(OwnedCollectionService[CoverLetter]):
    collection = "cover_letters"
    entity = EntityType.COVER_LETTERS
    model = CoverLetter
    order_by = OrderBy("created_at", SortDirection.DESC)

    def _prepare_create(self, data: dict[str, Any]) -> dict[str, Any]:
        data.setdefault("created_at", utcnow())
        return data
