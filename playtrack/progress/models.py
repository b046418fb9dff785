"""Training progress entities and storage schema.

Cassandra table definitions for:
- Training progress: one row per (content_id, user_id) with completion state
- Lookup table: records by user, for screen loads

Architecture: Dual-write pattern so records can be read by user and
updated by id.
"""

import math
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from playtrack.catalog.models import ensure_utc_aware, parse_datetime


MIN_PERCENTAGE = 0
MAX_PERCENTAGE = 100


class ProgressStatus(str, Enum):
    """Derived consumption status of a content item."""

    NOT_STARTED = "not_started"  # progress == 0
    IN_PROGRESS = "in_progress"  # 0 < progress < 100
    COMPLETED = "completed"  # progress == 100


# ==============================================================================
# Helper Functions
# ==============================================================================


def clamp_percentage(value: float) -> int:
    """Round (half up) and clamp a raw percentage into [0, 100]."""
    return max(MIN_PERCENTAGE, min(MAX_PERCENTAGE, math.floor(value + 0.5)))


def status_for(percentage: int) -> ProgressStatus:
    """Map a stored percentage onto its status partition."""
    if percentage >= MAX_PERCENTAGE:
        return ProgressStatus.COMPLETED
    if percentage > MIN_PERCENTAGE:
        return ProgressStatus.IN_PROGRESS
    return ProgressStatus.NOT_STARTED


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

# Progress by record id (updates target the id assigned on create)
TRAINING_PROGRESS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.training_progress (
    id UUID PRIMARY KEY,
    content_id TEXT,
    user_id TEXT,
    progress_percentage INT,
    completed BOOLEAN,
    last_viewed_at TIMESTAMP,
    completed_at TIMESTAMP
)
"""

# Lookup: progress by user, clustered by content for one row per pair
TRAINING_PROGRESS_BY_USER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.training_progress_by_user (
    user_id TEXT,
    content_id TEXT,
    id UUID,
    progress_percentage INT,
    completed BOOLEAN,
    last_viewed_at TIMESTAMP,
    completed_at TIMESTAMP,
    PRIMARY KEY (user_id, content_id)
) WITH CLUSTERING ORDER BY (content_id ASC)
"""

PROGRESS_TABLES_CQL = [
    TRAINING_PROGRESS_TABLE_CQL,
    TRAINING_PROGRESS_BY_USER_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class ProgressRecord:
    """One user's consumption state of one content item.

    Attributes:
        id: Store-assigned identity (None until first persisted)
        content_id: Content item id
        user_id: User id
        progress_percentage: Integer percentage watched (0-100)
        completed: True once progress_percentage reached 100
        last_viewed_at: Last write timestamp
        completed_at: First completion timestamp (never overwritten)
    """

    def __init__(
        self,
        content_id: str,
        user_id: str,
        progress_percentage: int = 0,
        completed: bool = False,
        last_viewed_at: datetime | None = None,
        completed_at: datetime | None = None,
        id: str | None = None,
    ):
        self.id = str(id) if id is not None else None
        self.content_id = str(content_id)
        self.user_id = str(user_id)
        self.progress_percentage = clamp_percentage(progress_percentage)
        # Stores may hold a full percentage without the flag
        self.completed = bool(completed) or self.progress_percentage >= MAX_PERCENTAGE
        self.last_viewed_at = ensure_utc_aware(last_viewed_at) or datetime.now(UTC)
        self.completed_at = ensure_utc_aware(completed_at)

    @property
    def status(self) -> ProgressStatus:
        """Status partition of this record."""
        return status_for(self.progress_percentage)

    @property
    def is_persisted(self) -> bool:
        """Check if the store has assigned an identity."""
        return self.id is not None

    @classmethod
    def from_row(cls, row: Any) -> "ProgressRecord":
        """Create ProgressRecord instance from Cassandra row."""
        return cls(
            id=row.id,
            content_id=row.content_id,
            user_id=row.user_id,
            progress_percentage=row.progress_percentage or 0,
            completed=bool(row.completed),
            last_viewed_at=row.last_viewed_at,
            completed_at=row.completed_at,
        )

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "ProgressRecord":
        """Create ProgressRecord instance from a portal REST payload."""
        return cls(
            id=payload.get("id"),
            content_id=payload["training_id"],
            user_id=payload["user_id"],
            progress_percentage=payload.get("progress_percentage") or 0,
            completed=bool(payload.get("completed")),
            last_viewed_at=parse_datetime(payload.get("last_viewed_at")),
            completed_at=parse_datetime(payload.get("completed_at")),
        )

    def copy(self) -> "ProgressRecord":
        """Return an independent copy of this record."""
        return ProgressRecord(**self.to_dict())

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "content_id": self.content_id,
            "user_id": self.user_id,
            "progress_percentage": self.progress_percentage,
            "completed": self.completed,
            "last_viewed_at": self.last_viewed_at,
            "completed_at": self.completed_at,
        }

    def __repr__(self) -> str:
        return (
            f"<ProgressRecord user={self.user_id} content={self.content_id} "
            f"{self.progress_percentage}% completed={self.completed}>"
        )
