"""Periodic playback sampling for one viewing.

While its viewing is playing, the tracker samples the bound player every
``interval`` seconds and hands the computed percentage to the merge
policy with ``force=False``. ``flush()`` stops sampling and issues the
one forced write of a pause, end or close.

The scheduling handle is an ``asyncio.Task`` owned by the tracker. It is
cancelled and cleared by ``stop()``, which every exit path goes through.
"""

import asyncio

import structlog

from playtrack.core.exceptions import PlaybackUnavailable
from playtrack.progress.policy import MergePolicy, PersistDecision

from .capability import PlaybackCapability, read_position


logger = structlog.get_logger(__name__)

DEFAULT_SAMPLE_INTERVAL = 5.0


class ProgressTracker:
    """Samples one player for one (content, user) pair."""

    def __init__(
        self,
        policy: MergePolicy,
        user_id: str,
        content_id: str,
        interval: float = DEFAULT_SAMPLE_INTERVAL,
        player: PlaybackCapability | None = None,
    ) -> None:
        self.policy = policy
        self.user_id = str(user_id)
        self.content_id = str(content_id)
        self.interval = interval
        self.player = player
        self.last_percentage: float | None = None
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        """Check if the periodic sampling task is alive."""
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start periodic sampling (no-op when already running)."""
        if self.is_running:
            return
        self._task = asyncio.create_task(
            self._run(), name=f"progress_tracker:{self.content_id}"
        )
        logger.debug("tracker_started", interval=self.interval)

    def stop(self) -> None:
        """Cancel periodic sampling and clear the scheduling handle."""
        if self._task is not None:
            self._task.cancel()
            self._task = None
            logger.debug("tracker_stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.sample()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception("tracker_sample_failed", error_type=type(e).__name__)

    async def _read_percentage(self) -> float | None:
        if self.player is None:
            return None
        try:
            position, duration = await read_position(self.player)
        except PlaybackUnavailable as e:
            # Expected while the player is still loading its metadata
            logger.debug("sample_skipped", reason=e.message)
            return None
        return position / duration * 100

    async def sample(self, force: bool = False) -> PersistDecision | None:
        """Take one sample and submit it to the merge policy."""
        percentage = await self._read_percentage()
        if percentage is None:
            return None

        self.last_percentage = percentage
        logger.debug("progress_sampled", sample_percentage=percentage, forced=force)
        return self.policy.persist(self.content_id, self.user_id, percentage, force)

    async def flush(self) -> PersistDecision | None:
        """Stop sampling and force-persist the latest known progress.

        Uses a fresh sample when the player can provide one, else the last
        successful sample. Without either there is nothing to persist.
        """
        self.stop()
        percentage = await self._read_percentage()
        if percentage is not None:
            self.last_percentage = percentage
        elif self.last_percentage is None:
            logger.debug("flush_skipped_no_sample")
            return None

        return self.policy.persist(
            self.content_id, self.user_id, self.last_percentage, force=True
        )
