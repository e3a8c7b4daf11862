"""Tests for entity models."""

from datetime import date, datetime, timezone

import pytest
from pydantic import ValidationError

from applytrack.documents import Document
from applytrack.models import (
    ApplicationStatus,
    JobApplication,
    Schedule,
    StatusColor,
    Target,
    UserProfile,
    status_color_for,
)

NOW = datetime(2026, 1, 10, 12, 0, tzinfo=timezone.utc)


class TestFromDocument:
    """Test document conversion."""

    def test_application(self) -> None:
        """Document id lands in the model's id field."""
        doc = Document(
            id="j1",
            data={
                "user_id": "u1",
                "company_name": "Acme",
                "job_title": "Engineer",
                "status": "Interviewing",
                "applied_date": NOW,
                "last_updated": NOW,
            },
        )
        app = JobApplication.from_document(doc)
        assert app.job_id == "j1"
        assert app.status is ApplicationStatus.INTERVIEWING

    def test_models_are_frozen(self) -> None:
        """Cached models cannot be mutated in place."""
        profile = UserProfile.from_document(Document(id="u1", data={"name": "Ada"}))
        with pytest.raises(ValidationError):
            profile.name = "Bob"

    def test_to_document_data_excludes_id(self) -> None:
        """Writing back omits the id field."""
        target = Target(target_id="t1", user_id="u1", daily_target=5, current_date=date(2026, 1, 10))
        data = target.to_document_data()
        assert "target_id" not in data
        assert data["daily_target"] == 5

    def test_schedule_time_format(self) -> None:
        """Times must be HH:MM."""
        with pytest.raises(ValidationError):
            Schedule(schedule_id="s1", user_id="u1", reminder_time="9am", summary_time="18:00")


class TestStatusColor:
    """Test target status colours."""

    @pytest.mark.parametrize(
        ("done", "target", "color"),
        [
            (5, 5, StatusColor.GREEN),
            (6, 5, StatusColor.GREEN),
            (3, 5, StatusColor.YELLOW),
            (2, 5, StatusColor.RED),
            (0, 0, StatusColor.GREEN),
        ],
    )
    def test_status_color_for(self, done: int, target: int, color: StatusColor) -> None:
        """Colour follows progress against the target."""
        assert status_color_for(done, target) is color
