"""Aggregate loading of everything one user's dashboard needs.

Each part goes through its own service, and therefore through the cache,
so a dashboard load right after a preload costs no store queries and
concurrent loads for the same owner share one fetch per key.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from applytrack.cache import DataCache, get_default_cache
from applytrack.documents import DocumentStore
from applytrack.models import JobApplication, Resume, Schedule, Target, UserProfile
from applytrack.observability.logging import LogContext
from applytrack.services.applications import ApplicationService
from applytrack.services.cover_letters import CoverLetterService
from applytrack.services.profile import ProfileService
from applytrack.services.resumes import ResumeService
from applytrack.services.schedules import ScheduleService
from applytrack.services.targets import TargetService

logger = logging.getLogger(__name__)


@dataclass
class DataServices:
    """All entity services bound to one store and one cache."""

    cache: DataCache
    applications: ApplicationService
    resumes: ResumeService
    cover_letters: CoverLetterService
    targets: TargetService
    schedules: ScheduleService
    profile: ProfileService

    @classmethod
    def create(cls, store: DocumentStore, cache: DataCache | None = None) -> DataServices:
        cache = cache or get_default_cache()
        return cls(
            cache=cache,
            applications=ApplicationService(store, cache),
            resumes=ResumeService(store, cache),
            cover_letters=CoverLetterService(store, cache),
            targets=TargetService(store, cache),
            schedules=ScheduleService(store, cache),
            profile=ProfileService(store, cache),
        )


@dataclass(frozen=True)
class UserData:
    applications: tuple[JobApplication, ...]
    resumes: tuple[Resume, ...]
    profile: UserProfile | None
    today_target: Target | None
    schedule: Schedule | None


async def load_user_data(services: DataServices, owner_id: str) -> UserData:
    """Load the owner's applications, resumes, profile, target and schedule concurrently."""
    with LogContext(owner_id=owner_id):
        applications, resumes, profile, today_target, schedule = await asyncio.gather(
            services.applications.list(owner_id),
            services.resumes.list(owner_id),
            services.profile.get(owner_id),
            services.targets.today(owner_id),
            services.schedules.get_schedule(owner_id),
        )
        logger.debug(
            f"Loaded user data: {len(applications)} applications, {len(resumes)} resumes"
        )
    return UserData(
        applications=applications,
        resumes=resumes,
        profile=profile,
        today_target=today_target,
        schedule=schedule,
    )


async def preload_user_data(services: DataServices, owner_id: str) -> None:
    """Warm the cache with the owner's most used collections.

    Failures are logged; the next regular read simply fetches again.
    """
    results = await asyncio.gather(
        services.applications.list(owner_id),
        services.resumes.list(owner_id),
        return_exceptions=True,
    )
    for result in results:
        if isinstance(result, Exception):
            logger.warning(f"Preload failed for {owner_id}: {result}")


def invalidate_user_data(services: DataServices, owner_id: str) -> int:
    """Drop every cached entry of the owner.

    Returns:
        Number of entries removed.
    """
    return services.cache.invalidate_owner(owner_id)
