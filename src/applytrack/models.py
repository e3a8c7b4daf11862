"""Entity models for the job-application tracker.

Cached values are shared by every caller that hits the same key, so all
models are frozen: an update produces a new instance via model_copy().
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any, ClassVar

from pydantic import BaseModel, Field

from applytrack.documents.base import Document

_TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class EntityModel(BaseModel):
    """Base model for documents read from the store."""

    model_config = {
        "frozen": True,
        "extra": "ignore",
        "populate_by_name": True,
    }

    # Field that receives the document id
    id_field: ClassVar[str] = "id"

    @classmethod
    def from_document(cls, doc: Document) -> Any:
        """Build the model from a stored document."""
        return cls.model_validate({**doc.data, cls.id_field: doc.id})

    def to_document_data(self) -> dict[str, Any]:
        """Field data for writing back to the store, without the id."""
        return self.model_dump(exclude={self.id_field})


class ApplicationStatus(str, Enum):
    APPLIED = "Applied"
    INTERVIEWING = "Interviewing"
    OFFER = "Offer"
    REJECTED = "Rejected"
    GHOSTED = "Ghosted"


class JobApplication(EntityModel):
    """A job the user applied for."""

    id_field: ClassVar[str] = "job_id"

    job_id: str
    user_id: str
    company_name: str
    job_title: str
    job_link: str = ""
    job_description: str = ""
    resume_id: str | None = None
    status: ApplicationStatus = ApplicationStatus.APPLIED
    applied_date: datetime
    last_updated: datetime


class Resume(EntityModel):
    id_field: ClassVar[str] = "resume_id"

    resume_id: str
    user_id: str
    resume_name: str
    file_url: str = ""
    editable_text: str = ""
    created_at: datetime


class CoverLetter(EntityModel):
    id_field: ClassVar[str] = "cover_letter_id"

    cover_letter_id: str
    user_id: str
    cover_letter_text: str = ""
    company_name: str | None = None
    job_title: str | None = None
    created_at: datetime


class StatusColor(str, Enum):
    GREEN = "Green"
    YELLOW = "Yellow"
    RED = "Red"


class Target(EntityModel):
    """Daily application target and progress for one day."""

    id_field: ClassVar[str] = "target_id"

    target_id: str
    user_id: str
    daily_target: int = Field(ge=0)
    current_date: date
    applications_done: int = Field(default=0, ge=0)
    status_color: StatusColor = StatusColor.GREEN

    @property
    def completed(self) -> bool:
        return self.applications_done >= self.daily_target


def status_color_for(applications_done: int, daily_target: int) -> StatusColor:
    """Green once the target is met, Yellow from half way, Red below."""
    if applications_done >= daily_target:
        return StatusColor.GREEN
    if applications_done * 2 >= daily_target:
        return StatusColor.YELLOW
    return StatusColor.RED


class Schedule(EntityModel):
    """Reminder and summary email times ("HH:MM") for one user."""

    id_field: ClassVar[str] = "schedule_id"

    schedule_id: str
    user_id: str
    reminder_time: str = Field(pattern=_TIME_PATTERN)
    summary_time: str = Field(pattern=_TIME_PATTERN)
    email_enabled: bool = True
    reminder_email_template: str | None = None
    summary_email_template: str | None = None


class CustomLink(BaseModel):
    model_config = {"frozen": True}

    label: str
    url: str


class UserProfile(EntityModel):
    """Public profile of a user; stored under the user's own id."""

    id_field: ClassVar[str] = "user_id"

    user_id: str
    name: str = ""
    headline: str = ""
    email: str = ""
    phone: str = ""
    location: str = ""
    photo_url: str = ""
    portfolio_url: str = ""
    linkedin_url: str = ""
    github_url: str = ""
    custom_links: tuple[CustomLink, ...] = ()
    updated_at: datetime | None = None
