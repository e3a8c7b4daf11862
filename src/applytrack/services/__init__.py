"""Cache-aware entity services for applytrack."""

from applytrack.services.applications import ApplicationService
from applytrack.services.base import OwnedCollectionService
from applytrack.services.cover_letters import CoverLetterService
from applytrack.services.profile import ProfileService
from applytrack.services.resumes import ResumeService
from applytrack.services.schedules import ScheduleService
from applytrack.services.targets import TargetService
from applytrack.services.user_data import (
    DataServices,
    UserData,
    invalidate_user_data,
    load_user_data,
    preload_user_data,
)

__all__ = [
    "OwnedCollectionService",
    "ApplicationService",
    "ResumeService",
    "CoverLetterService",
    "TargetService",
    "ScheduleService",
    "ProfileService",
    "DataServices",
    "UserData",
    "load_user_data",
    "preload_user_data",
    "invalidate_user_data",
]
