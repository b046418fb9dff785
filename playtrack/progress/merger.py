"""Joins catalog items with progress records and derives statistics.

Pure functions: no I/O, no mutation of their inputs. Identical inputs
always produce identical outputs.
"""

from collections.abc import Iterable

from playtrack.catalog.models import Audience, ContentItem

from .models import ProgressRecord, ProgressStatus, status_for
from .schemas import ProgressStats, StatusFilter, ViewRow


def to_view_rows(
    items: Iterable[ContentItem],
    records: Iterable[ProgressRecord],
) -> list[ViewRow]:
    """Left-outer-join content items with the user's progress records.

    Items without a record default to progress 0 / not completed.
    Records for unknown content are ignored.
    """
    by_content = {record.content_id: record for record in records}
    rows = []

    for item in items:
        record = by_content.get(item.id)
        percentage = record.progress_percentage if record else 0
        rows.append(
            ViewRow(
                content_id=item.id,
                title=item.title,
                description=item.description,
                duration_label=item.duration_label,
                media_id=item.media_id,
                audience=item.audience,
                progress_percentage=percentage,
                completed=record.completed if record else False,
                status=status_for(percentage),
                last_viewed_at=record.last_viewed_at if record else None,
                completed_at=record.completed_at if record else None,
            )
        )

    return rows


def aggregate(rows: Iterable[ViewRow]) -> ProgressStats:
    """Count rows per status partition.

    The completion ratio is completed / total, and 0 for an empty set.
    """
    counts = dict.fromkeys(ProgressStatus, 0)
    for row in rows:
        counts[row.status] += 1

    total = sum(counts.values())
    completed = counts[ProgressStatus.COMPLETED]

    return ProgressStats(
        total=total,
        completed=completed,
        in_progress=counts[ProgressStatus.IN_PROGRESS],
        not_started=counts[ProgressStatus.NOT_STARTED],
        ratio=completed / total if total else 0.0,
    )


def filter_rows(
    rows: Iterable[ViewRow],
    search_text: str = "",
    status: StatusFilter = StatusFilter.ALL,
    audience: Audience | None = None,
) -> list[ViewRow]:
    """Filter rows by free text, status partition and audience.

    The search is a case-insensitive substring match over title and
    description. Items tagged for both audiences match either audience.
    """
    search = (search_text or "").strip().lower()
    status = StatusFilter(status)

    def matches(row: ViewRow) -> bool:
        if search and search not in row.title.lower() and (
            search not in row.description.lower()
        ):
            return False
        if status is not StatusFilter.ALL and row.status.value != status.value:
            return False
        return audience is None or row.audience in (audience, Audience.BOTH)

    return [row for row in rows if matches(row)]
