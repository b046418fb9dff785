"""Catalog entities for trackable training content.

A ContentItem is owned by the catalog provider; the tracking core only
reads it. Helpers here derive the playable media id and the declared
duration from the raw catalog fields.
"""

import re
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class Audience(str, Enum):
    """Who a training item is meant for."""

    BECARIO = "Becario"
    FACILITADOR = "Facilitador"
    BOTH = "Ambos"


DEFAULT_AUDIENCE = Audience.BECARIO

# Bare player id, e.g. "dQw4w9WgXcQ"
MEDIA_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{11}$")


# ==============================================================================
# Helper Functions
# ==============================================================================


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware (stores may return naive datetimes)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def parse_datetime(value: Any) -> datetime | None:
    """Parse an ISO-8601 string (or pass through a datetime)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc_aware(value)
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    return ensure_utc_aware(parsed)


def extract_media_id(source_ref: str | None) -> str | None:
    """Extract the player media id from a source reference.

    Accepts a bare id, a watch URL (``?v=<id>``), a short URL
    (``youtu.be/<id>``) or an embed URL (``/embed/<id>``).

    Returns:
        The media id, or None if the reference is not recognised.
    """
    if not source_ref:
        return None
    value = source_ref.strip()
    if not value:
        return None

    if MEDIA_ID_PATTERN.match(value):
        return value

    for marker, terminator in (("v=", "&"), ("youtu.be/", "?"), ("/embed/", "?")):
        if marker in value:
            candidate = value.split(marker, 1)[1].split(terminator, 1)[0]
            return candidate or None

    return None


def parse_duration_label(label: str | None) -> int | None:
    """Convert a ``MM:SS`` or ``HH:MM:SS`` label into seconds."""
    if not label:
        return None
    parts = label.strip().split(":")
    if len(parts) not in (2, 3) or not all(p.isdigit() for p in parts):
        return None

    seconds = 0
    for part in parts:
        seconds = seconds * 60 + int(part)
    return seconds


# ==============================================================================
# Entity Classes
# ==============================================================================


class ContentItem:
    """A catalog entry representing one trackable unit of training content.

    Attributes:
        id: Catalog identifier
        title: Display title
        description: Free-text description
        duration_label: Declared duration as shown to users (e.g. "15:30")
        source_ref: Playable media URL or id
        audience: Target audience tag
        created_at: Creation timestamp
    """

    def __init__(
        self,
        id: str,
        title: str,
        description: str = "",
        duration_label: str | None = None,
        source_ref: str | None = None,
        audience: Audience | str | None = None,
        created_at: datetime | None = None,
    ):
        self.id = str(id)
        self.title = title
        self.description = description or ""
        self.duration_label = duration_label
        self.source_ref = source_ref
        self.audience = Audience(audience) if audience else DEFAULT_AUDIENCE
        self.created_at = ensure_utc_aware(created_at)

    @property
    def media_id(self) -> str | None:
        """Player media id derived from the source reference."""
        return extract_media_id(self.source_ref)

    @property
    def duration_seconds(self) -> int | None:
        """Declared duration in seconds, if the label is well formed."""
        return parse_duration_label(self.duration_label)

    def is_for(self, audience: Audience | None) -> bool:
        """Check whether the item is shown to the given audience."""
        if audience is None:
            return True
        return self.audience in (audience, Audience.BOTH)

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "ContentItem":
        """Create a ContentItem from a portal REST payload."""
        return cls(
            id=payload["id"],
            title=payload.get("title") or "",
            description=payload.get("description") or "",
            duration_label=payload.get("tiempo"),
            source_ref=payload.get("url"),
            audience=payload.get("target_audience"),
            created_at=parse_datetime(payload.get("created_at")),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "duration_label": self.duration_label,
            "source_ref": self.source_ref,
            "audience": self.audience.value,
            "created_at": self.created_at,
        }

    def __repr__(self) -> str:
        return f"<ContentItem {self.id} {self.title!r} {self.audience.value}>"
