"""Merge / persistence policy for progress writes.

Single authority for every progress write. Business rules:
- A non-forced write that does not raise the stored percentage is a no-op
  (duplicate and out-of-order samples can never regress progress).
- A forced write (pause, end, close, switch) persists the candidate even
  when it is lower than the stored value.
- Completion is sticky: once a record is completed, no write lowers it.
- ``completed_at`` is set the first time a record completes, never after.

The in-memory progress map is updated synchronously (optimistic), then the
store call runs as a fire-and-forget task. Writes for the same
(content, user) pair are chained so they reach the store in decision
order and a second write never races the create of the first.
"""

import asyncio
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from functools import partial

import structlog

from playtrack.core.exceptions import TransientStoreError

from .models import MAX_PERCENTAGE, ProgressRecord, clamp_percentage
from .schemas import ProgressRecordCreate, ProgressRecordUpdate
from .store import ProgressStore


logger = structlog.get_logger(__name__)

ProgressKey = tuple[str, str]  # (content_id, user_id)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class PersistDecision:
    """An accepted write, as applied to the in-memory map."""

    content_id: str
    user_id: str
    previous: int
    percentage: int
    completed: bool
    forced: bool
    created: bool


class MergePolicy:
    """Decides which progress samples are persisted, and persists them."""

    def __init__(
        self,
        store: ProgressStore,
        records: Iterable[ProgressRecord] = (),
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self._clock = clock
        self._progress: dict[ProgressKey, ProgressRecord] = {}
        self._tails: dict[ProgressKey, asyncio.Task] = {}
        self._pending: set[asyncio.Task] = set()
        self.load(records)

    # ==========================================================================
    # In-memory progress map
    # ==========================================================================

    def load(self, records: Iterable[ProgressRecord]) -> None:
        """Replace the in-memory map with authoritative store records."""
        self._progress = {(r.content_id, r.user_id): r for r in records}

    def get(self, content_id: str, user_id: str) -> ProgressRecord | None:
        """Known record for a (content, user) pair."""
        return self._progress.get((str(content_id), str(user_id)))

    def records(self) -> list[ProgressRecord]:
        """Every known record."""
        return list(self._progress.values())

    @property
    def pending_writes(self) -> int:
        """Number of store writes not yet resolved."""
        return len(self._pending)

    # ==========================================================================
    # Write decision
    # ==========================================================================

    def persist(
        self,
        content_id: str,
        user_id: str,
        candidate_percentage: float,
        force: bool = False,
    ) -> PersistDecision | None:
        """Apply a candidate percentage and schedule the store write.

        Must be called from the event loop that owns this policy.

        Returns:
            The decision when the write was accepted, None for a no-op.
        """
        key = (str(content_id), str(user_id))
        existing = self._progress.get(key)
        previous = existing.progress_percentage if existing else 0
        percentage = clamp_percentage(candidate_percentage)

        if not force and percentage <= previous:
            return None

        if existing is not None and existing.completed and percentage < MAX_PERCENTAGE:
            logger.debug(
                "progress_regression_ignored",
                content_id=key[0],
                user_id=key[1],
                stored=previous,
                candidate=percentage,
            )
            return None

        completed = percentage >= MAX_PERCENTAGE
        now = self._clock()

        if existing is None:
            record = ProgressRecord(
                content_id=key[0],
                user_id=key[1],
                progress_percentage=percentage,
                completed=completed,
                last_viewed_at=now,
                completed_at=now if completed else None,
            )
            self._progress[key] = record
        else:
            record = existing
            record.progress_percentage = percentage
            record.completed = completed
            record.last_viewed_at = now
            if completed and record.completed_at is None:
                record.completed_at = now

        if completed and not (existing and existing.completed):
            logger.info("training_completed", content_id=key[0], user_id=key[1])

        self._schedule_write(key, record.copy())

        return PersistDecision(
            content_id=key[0],
            user_id=key[1],
            previous=previous,
            percentage=percentage,
            completed=completed,
            forced=force,
            created=existing is None,
        )

    # ==========================================================================
    # Fire-and-forget store writes
    # ==========================================================================

    def _schedule_write(self, key: ProgressKey, snapshot: ProgressRecord) -> None:
        previous_write = self._tails.get(key)
        task = asyncio.create_task(
            self._write(key, snapshot, previous_write),
            name=f"progress_write:{key[0]}",
        )
        self._tails[key] = task
        self._pending.add(task)
        task.add_done_callback(partial(self._forget, key))

    def _forget(self, key: ProgressKey, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if self._tails.get(key) is task:
            del self._tails[key]

    async def _write(
        self,
        key: ProgressKey,
        snapshot: ProgressRecord,
        previous_write: asyncio.Task | None,
    ) -> None:
        if previous_write is not None:
            await asyncio.wait([previous_write])

        current = self._progress.get(key)
        record_id = current.id if current is not None else snapshot.id

        try:
            if record_id is None:
                created = await self.store.create(
                    ProgressRecordCreate(
                        content_id=snapshot.content_id,
                        user_id=snapshot.user_id,
                        progress_percentage=snapshot.progress_percentage,
                        completed=snapshot.completed,
                        last_viewed_at=snapshot.last_viewed_at,
                        completed_at=snapshot.completed_at,
                    )
                )
                # Learn the store-assigned identity for later updates
                current = self._progress.get(key)
                if current is not None and current.id is None:
                    current.id = created.id
                logger.info(
                    "progress_record_created",
                    content_id=key[0],
                    user_id=key[1],
                    record_id=created.id,
                    progress=snapshot.progress_percentage,
                )
            else:
                await self.store.update_by_id(
                    record_id,
                    ProgressRecordUpdate(
                        progress_percentage=snapshot.progress_percentage,
                        completed=snapshot.completed,
                        last_viewed_at=snapshot.last_viewed_at,
                        completed_at=snapshot.completed_at,
                    ),
                )
                logger.debug(
                    "progress_persisted",
                    content_id=key[0],
                    user_id=key[1],
                    record_id=record_id,
                    progress=snapshot.progress_percentage,
                )
        except TransientStoreError as e:
            logger.warning(
                "progress_write_failed",
                content_id=key[0],
                user_id=key[1],
                progress=snapshot.progress_percentage,
                error=e.message,
            )
        except Exception as e:
            logger.exception(
                "progress_write_unexpected_error",
                content_id=key[0],
                user_id=key[1],
                error_type=type(e).__name__,
            )

    async def drain(self) -> None:
        """Wait until every scheduled store write has resolved."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
