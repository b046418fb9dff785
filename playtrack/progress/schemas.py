"""Pydantic schemas for training progress.

Write payloads handed to the progress store, and the derived read models
(view rows and aggregate statistics) built by the merger.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from playtrack.catalog.models import Audience

from .models import ProgressStatus


# ==============================================================================
# Store Write Schemas
# ==============================================================================


class ProgressRecordCreate(BaseModel):
    """A progress record without identity (the store assigns it)."""

    content_id: str
    user_id: str
    progress_percentage: int = Field(..., ge=0, le=100)
    completed: bool
    last_viewed_at: datetime
    completed_at: datetime | None = None

    def to_api(self) -> dict[str, Any]:
        """Portal REST body for ``POST /training-progress``."""
        return {
            "training_id": self.content_id,
            "user_id": self.user_id,
            "progress_percentage": self.progress_percentage,
            "completed": self.completed,
            "last_viewed_at": self.last_viewed_at.isoformat(),
            "completed_at": self.completed_at.isoformat()
            if self.completed_at
            else None,
        }


class ProgressRecordUpdate(BaseModel):
    """Partial update of an existing progress record."""

    progress_percentage: int | None = Field(default=None, ge=0, le=100)
    completed: bool | None = None
    last_viewed_at: datetime | None = None
    completed_at: datetime | None = None

    def to_api(self) -> dict[str, Any]:
        """Portal REST body for ``PUT /training-progress/{id}`` (set fields only)."""
        return self.model_dump(mode="json", exclude_none=True)


# ==============================================================================
# Read Models
# ==============================================================================


class StatusFilter(str, Enum):
    """Status partition used to filter view rows."""

    ALL = "all"
    COMPLETED = "completed"
    IN_PROGRESS = "in_progress"
    NOT_STARTED = "not_started"


class ViewRow(BaseModel):
    """A content item joined with the user's progress on it."""

    model_config = ConfigDict(frozen=True)

    content_id: str
    title: str
    description: str = ""
    duration_label: str | None = None
    media_id: str | None = None
    audience: Audience
    progress_percentage: int = Field(default=0, ge=0, le=100)
    completed: bool = False
    status: ProgressStatus = ProgressStatus.NOT_STARTED
    last_viewed_at: datetime | None = None
    completed_at: datetime | None = None


class ViewRowListResponse(BaseModel):
    """List of view rows."""

    items: list[ViewRow]
    total: int


class ProgressStats(BaseModel):
    """Aggregate completion statistics over a set of view rows."""

    total: int = 0
    completed: int = 0
    in_progress: int = 0
    not_started: int = 0
    ratio: float = Field(default=0.0, description="completed / total (0 when empty)")
