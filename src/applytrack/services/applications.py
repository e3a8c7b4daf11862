"""Job application service."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping
from typing import Any

from applytrack.cache import EntityType
from applytrack.config import settings
from applytrack.documents import OrderBy, SortDirection
from applytrack.errors import DocumentNotFoundError
from applytrack.models import ApplicationStatus, JobApplication
from applytrack.pagination import PaginatedStreamFetcher
from applytrack.services.base import OwnedCollectionService, to_store_data, utcnow

logger = logging.getLogger(__name__)


class ApplicationService(OwnedCollectionService[JobApplication]):
    """Applications, most recently updated first."""

    collection = "job_applications"
    entity = EntityType.APPLICATIONS
    model = JobApplication
    order_by = OrderBy("last_updated", SortDirection.DESC)

    def _prepare_create(self, data: dict[str, Any]) -> dict[str, Any]:
        now = utcnow()
        data.setdefault("applied_date", now)
        data.setdefault("status", ApplicationStatus.APPLIED)
        data["last_updated"] = now
        return data

    def _prepare_update(self, changes: dict[str, Any]) -> dict[str, Any]:
        changes["last_updated"] = utcnow()
        return changes

    async def update_status(
        self, owner_id: str, job_id: str, status: ApplicationStatus
    ) -> None:
        await self.update(owner_id, job_id, {"status": status})

    async def batch_update(
        self,
        owner_id: str,
        job_ids: Iterable[str],
        changes: Mapping[str, Any],
    ) -> int:
        """Apply the same changes to several applications.

        Ownership of every id is checked before anything is written, so a
        foreign or missing id leaves all documents untouched.

        Returns:
            Number of applications updated.

        Raises:
            DocumentNotFoundError: if any id is missing or not owned.
        """
        ids = list(dict.fromkeys(job_ids))
        if not ids:
            return 0

        await asyncio.gather(*(self._require_owned(owner_id, job_id) for job_id in ids))

        payload = to_store_data(self._prepare_update(dict(changes)))
        payload.pop(self.owner_field, None)
        try:
            results = await asyncio.gather(
                *(self.store.update(self.collection, job_id, payload) for job_id in ids)
            )
        finally:
            # Some writes may have landed even if one failed
            self.invalidate(owner_id)

        updated = sum(1 for ok in results if ok)
        if updated != len(ids):
            missing = next(job_id for job_id, ok in zip(ids, results) if not ok)
            raise DocumentNotFoundError(self.collection, missing)
        logger.info(f"Batch updated {updated} applications for {owner_id}")
        return updated

    def stream_fetcher(
        self,
        default_page_size: int | None = None,
        max_page_size: int | None = None,
    ) -> PaginatedStreamFetcher[JobApplication]:
        """Paginated listing sharing this service's cache and ordering.

        Page size limits default to the configured settings.
        """
        return PaginatedStreamFetcher(
            self.store,
            self.cache,
            collection=self.collection,
            entity=self.entity,
            order_by=self.order_by,
            owner_field=self.owner_field,
            converter=JobApplication.from_document,
            default_page_size=default_page_size or settings.default_page_size,
            max_page_size=max_page_size or settings.max_page_size,
        )
