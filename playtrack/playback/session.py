"""Playback session state machine.

One session object tracks at most one viewing at a time:

    IDLE -> OPEN_UNSTARTED -> PLAYING <-> PAUSED -> ENDED -> CLOSED

Opening a new item while a viewing is active releases the old viewing
first (stop sampling, one forced flush), so switching never loses the
latest known progress. Every transition runs inside a ``ViewingContext``
so log lines and the tasks spawned for the viewing carry its identifiers.
"""

from enum import Enum

import structlog

from playtrack.catalog.models import ContentItem
from playtrack.core.context import ViewingContext, generate_id
from playtrack.core.exceptions import InvalidSessionState
from playtrack.progress.policy import MergePolicy

from .capability import PlaybackCapability, PlayerEvent, try_resume
from .tracker import DEFAULT_SAMPLE_INTERVAL, ProgressTracker


logger = structlog.get_logger(__name__)


class SessionState(str, Enum):
    """Playback session states."""

    IDLE = "idle"
    OPEN_UNSTARTED = "open_unstarted"
    PLAYING = "playing"
    PAUSED = "paused"
    ENDED = "ended"
    CLOSED = "closed"


class PlaybackSession:
    """Drives a progress tracker from player lifecycle events."""

    def __init__(
        self,
        policy: MergePolicy,
        user_id: str,
        sample_interval: float = DEFAULT_SAMPLE_INTERVAL,
        autoplay: bool = True,
    ) -> None:
        self.policy = policy
        self.user_id = str(user_id)
        self.sample_interval = sample_interval
        self.autoplay = autoplay
        self.state = SessionState.IDLE
        self.content_id: str | None = None
        self.viewing_id: str | None = None
        self._tracker: ProgressTracker | None = None

    @property
    def tracker(self) -> ProgressTracker | None:
        """Tracker of the active viewing."""
        return self._tracker

    @property
    def player(self) -> PlaybackCapability | None:
        """Player bound to the active viewing."""
        return self._tracker.player if self._tracker else None

    @property
    def is_active(self) -> bool:
        """Check if a viewing is open."""
        return self._tracker is not None

    def _viewing_context(self) -> ViewingContext:
        return ViewingContext(
            user_id=self.user_id,
            content_id=self.content_id,
            viewing_id=self.viewing_id,
        )

    def _active_tracker(self) -> ProgressTracker:
        if self._tracker is None:
            raise InvalidSessionState(
                f"No active content item (session is {self.state.value})"
            )
        return self._tracker

    # ==========================================================================
    # Viewing lifecycle
    # ==========================================================================

    async def open(self, item: ContentItem | str) -> None:
        """Start a viewing of a content item, releasing any active one."""
        content_id = item.id if isinstance(item, ContentItem) else str(item)

        if self._tracker is not None:
            logger.info(
                "viewing_switched",
                from_content_id=self.content_id,
                to_content_id=content_id,
            )
            await self._release()

        self.content_id = content_id
        self.viewing_id = generate_id()
        self._tracker = ProgressTracker(
            self.policy,
            self.user_id,
            content_id,
            interval=self.sample_interval,
        )
        self.state = SessionState.OPEN_UNSTARTED

        with self._viewing_context():
            logger.info("viewing_opened")

    async def close(self) -> None:
        """Close the active viewing. Idempotent on an idle or closed session."""
        if self._tracker is None:
            return

        with self._viewing_context():
            await self._release()
            logger.info("viewing_closed")

        self.content_id = None
        self.viewing_id = None
        self.state = SessionState.CLOSED

    async def _release(self) -> None:
        tracker = self._tracker
        if tracker is None:
            return

        # Events arriving during the flush must see no tracker
        self._tracker = None
        try:
            with self._viewing_context():
                await tracker.flush()
        finally:
            tracker.stop()
            tracker.player = None

    # ==========================================================================
    # Player events
    # ==========================================================================

    async def on_ready(self, player: PlaybackCapability) -> None:
        """Bind the player of the active viewing."""
        try:
            tracker = self._active_tracker()
        except InvalidSessionState as e:
            logger.debug("player_event_ignored", event="ready", reason=e.message)
            return

        tracker.player = player
        with self._viewing_context():
            logger.debug("player_bound")
            if self.autoplay and await try_resume(player):
                logger.debug("player_resumed")

    async def on_playing(self) -> None:
        """Start periodic sampling."""
        try:
            tracker = self._active_tracker()
        except InvalidSessionState as e:
            logger.debug("player_event_ignored", event="playing", reason=e.message)
            return

        self.state = SessionState.PLAYING
        with self._viewing_context():
            tracker.start()

    async def on_paused(self) -> None:
        """Stop sampling and force-persist the paused position."""
        await self._halt(SessionState.PAUSED, allowed={SessionState.PLAYING})

    async def on_ended(self) -> None:
        """Stop sampling and force-persist the final position."""
        await self._halt(
            SessionState.ENDED,
            allowed={SessionState.PLAYING, SessionState.PAUSED},
        )

    async def on_error(self, error: object = None) -> None:
        """Keep the last good progress when the player fails."""
        try:
            tracker = self._active_tracker()
        except InvalidSessionState as e:
            logger.debug("player_event_ignored", event="error", reason=e.message)
            return

        self.state = SessionState.PAUSED
        with self._viewing_context():
            logger.warning("player_error", error=str(error) if error else None)
            await tracker.flush()

    async def _halt(
        self, target: SessionState, allowed: set[SessionState]
    ) -> None:
        try:
            tracker = self._active_tracker()
        except InvalidSessionState as e:
            logger.debug(
                "player_event_ignored", event=target.value, reason=e.message
            )
            return

        if self.state not in allowed:
            # Duplicate pause/end events must not flush twice
            tracker.stop()
            return

        self.state = target
        with self._viewing_context():
            await tracker.flush()

    async def handle_event(
        self,
        event: PlayerEvent | str,
        player: PlaybackCapability | None = None,
        error: object = None,
    ) -> None:
        """Dispatch a player lifecycle event to its transition."""
        event = PlayerEvent(event)

        if event is PlayerEvent.READY:
            if player is None:
                logger.debug(
                    "player_event_ignored", event=event.value, reason="no player"
                )
                return
            await self.on_ready(player)
        elif event is PlayerEvent.PLAYING:
            await self.on_playing()
        elif event is PlayerEvent.PAUSED:
            await self.on_paused()
        elif event is PlayerEvent.ENDED:
            await self.on_ended()
        else:
            await self.on_error(error)
