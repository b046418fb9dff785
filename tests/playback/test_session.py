"""Tests for the playback session state machine.

Tests cover:
- Lifecycle transitions and forced flushes
- Switching items (no lost update, no orphaned timers)
- Idempotent close
- Event dispatch and guarded no-ops
"""

import asyncio

import pytest

from playtrack.catalog.models import ContentItem
from playtrack.core.context import get_content_id, get_viewing_id
from playtrack.playback.capability import PlayerEvent
from playtrack.playback.session import PlaybackSession, SessionState
from playtrack.progress.models import ProgressRecord
from playtrack.progress.policy import MergePolicy
from playtrack.progress.store import InMemoryProgressStore


INTERVAL = 0.01


@pytest.fixture
def session(policy: MergePolicy, user_id: str) -> PlaybackSession:
    """Session with a fast sampling interval."""
    return PlaybackSession(policy, user_id, sample_interval=INTERVAL)


async def play(session: PlaybackSession, item, player, percentage: float) -> None:
    """Open an item, bind its player and play up to a percentage."""
    await session.open(item)
    await session.on_ready(player)
    await session.on_playing()
    player.seek_percent(percentage)
    await asyncio.sleep(INTERVAL * 4)


class TestLifecycle:
    """Tests for the basic transitions."""

    @pytest.mark.asyncio
    async def test_open_ready_playing(self, session, items, player):
        """open → OPEN_UNSTARTED; ready binds; playing starts the tracker."""
        assert session.state == SessionState.IDLE

        await session.open(items[0])
        assert session.state == SessionState.OPEN_UNSTARTED
        assert session.content_id == "c1"
        assert session.viewing_id is not None

        await session.on_ready(player)
        assert session.state == SessionState.OPEN_UNSTARTED
        assert session.player is player
        assert player.resumed == 1

        await session.on_playing()
        assert session.state == SessionState.PLAYING
        assert session.tracker.is_running

        await session.close()

    @pytest.mark.asyncio
    async def test_autoplay_disabled(self, policy, user_id, items, player):
        """Without autoplay the player is not resumed."""
        session = PlaybackSession(policy, user_id, autoplay=False)
        await session.open(items[0])
        await session.on_ready(player)
        assert player.resumed == 0

    @pytest.mark.asyncio
    async def test_pause_flushes_once(self, session, items, player, policy, user_id):
        """Pause stops sampling and forces exactly one write."""
        await play(session, items[0], player, 40)
        tracker = session.tracker

        player.seek_percent(35)
        await session.on_paused()
        await session.on_paused()
        await policy.drain()

        assert session.state == SessionState.PAUSED
        assert tracker.is_running is False
        assert policy.get("c1", user_id).progress_percentage == 35

    @pytest.mark.asyncio
    async def test_resume_after_pause(self, session, items, player, policy, user_id):
        """Playing again restarts periodic sampling."""
        await play(session, items[0], player, 20)
        await session.on_paused()

        await session.on_playing()
        player.seek_percent(60)
        await asyncio.sleep(INTERVAL * 4)

        assert session.state == SessionState.PLAYING
        assert policy.get("c1", user_id).progress_percentage == 60
        await session.close()

    @pytest.mark.asyncio
    async def test_end_completes(self, session, items, player, policy, store, user_id):
        """Natural end at the last position completes the record."""
        await play(session, items[0], player, 90)
        player.seek_percent(100)

        await session.on_ended()
        await policy.drain()

        assert session.state == SessionState.ENDED
        stored = store.find("c1", user_id)[0]
        assert stored.progress_percentage == 100
        assert stored.completed is True
        assert stored.completed_at is not None

    @pytest.mark.asyncio
    async def test_error_keeps_last_good_sample(
        self, session, items, player, policy, user_id
    ):
        """A player error pauses and flushes the last good sample."""
        await play(session, items[0], player, 55)
        player.fail = True

        await session.on_error("media decode failed")
        await policy.drain()

        assert session.state == SessionState.PAUSED
        assert session.tracker.is_running is False
        assert policy.get("c1", user_id).progress_percentage == 55


class TestClose:
    """Tests for close()."""

    @pytest.mark.asyncio
    async def test_close_after_seek_back_lowers_progress(
        self, clock, items, player, user_id
    ):
        """Stored 80, seek back to 75, close: the forced flush stores 75."""
        store = InMemoryProgressStore(
            [ProgressRecord("c1", user_id, progress_percentage=80, id="r-1")]
        )
        policy = MergePolicy(store, await store.list_by_user(user_id), clock=clock)
        session = PlaybackSession(policy, user_id, sample_interval=INTERVAL)

        await play(session, items[0], player, 75)
        assert policy.get("c1", user_id).progress_percentage == 80

        await session.close()
        await policy.drain()

        stored = store.get("r-1")
        assert stored.progress_percentage == 75
        assert stored.completed is False

    @pytest.mark.asyncio
    async def test_close_releases_viewing(self, session, items, player):
        """Close clears the player, content id and timer."""
        await play(session, items[0], player, 10)
        tracker = session.tracker

        await session.close()

        assert session.state == SessionState.CLOSED
        assert session.content_id is None
        assert session.player is None
        assert session.tracker is None
        assert tracker.is_running is False

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, session, items, player, policy, user_id):
        """Closing an idle or closed session does nothing."""
        await session.close()
        assert session.state == SessionState.IDLE

        await play(session, items[0], player, 10)
        await session.close()
        await policy.drain()
        before = policy.get("c1", user_id).last_viewed_at

        await session.close()
        await policy.drain()

        assert session.state == SessionState.CLOSED
        assert policy.get("c1", user_id).last_viewed_at == before

    @pytest.mark.asyncio
    async def test_reopen_after_close(self, session, items):
        """A closed session can open a new viewing."""
        await session.open(items[0])
        await session.close()
        await session.open(items[1])
        assert session.state == SessionState.OPEN_UNSTARTED
        assert session.content_id == "c2"
        await session.close()


class TestSwitch:
    """Tests for opening an item while another is active."""

    @pytest.mark.asyncio
    async def test_switch_flushes_previous_item(
        self, session, items, player, make_player, policy, store, user_id
    ):
        """A's latest position is forced before B starts; A's timer is gone."""
        await play(session, items[0], player, 30)
        old_tracker = session.tracker
        old_viewing = session.viewing_id
        player.seek_percent(45)

        await session.open(items[1])

        assert old_tracker.is_running is False
        assert session.viewing_id != old_viewing
        assert session.state == SessionState.OPEN_UNSTARTED
        assert policy.get("c1", user_id).progress_percentage == 45

        other = make_player(duration=60)
        await session.on_ready(other)
        await session.on_playing()
        other.seek_percent(50)
        await asyncio.sleep(INTERVAL * 4)
        await session.close()
        await policy.drain()

        assert store.find("c1", user_id)[0].progress_percentage == 45
        assert store.find("c2", user_id)[0].progress_percentage == 50

    @pytest.mark.asyncio
    async def test_no_orphaned_timers(self, session, items, player):
        """Only the active viewing has a live sampling task."""
        trackers = []
        for item in items:
            await session.open(item)
            await session.on_ready(player)
            await session.on_playing()
            trackers.append(session.tracker)

        assert [t.is_running for t in trackers] == [False, False, True]
        await session.close()
        assert not any(t.is_running for t in trackers)


class TestEvents:
    """Tests for event dispatch and guards."""

    @pytest.mark.asyncio
    async def test_handle_event_dispatch(self, session, items, player, policy, user_id):
        """Events map onto the transition functions."""
        await session.open(items[0])
        await session.handle_event(PlayerEvent.READY, player=player)
        await session.handle_event("playing")
        assert session.state == SessionState.PLAYING

        player.seek_percent(20)
        await session.handle_event(PlayerEvent.PAUSED)
        assert session.state == SessionState.PAUSED

        await session.handle_event(PlayerEvent.ENDED)
        assert session.state == SessionState.ENDED

        await session.handle_event(PlayerEvent.ERROR, error="boom")
        assert session.state == SessionState.PAUSED
        await policy.drain()
        assert policy.get("c1", user_id).progress_percentage == 20

    @pytest.mark.asyncio
    async def test_events_without_content_are_noops(self, session, player, policy):
        """Tracking without an active content item is a guarded no-op."""
        await session.on_ready(player)
        await session.on_playing()
        await session.on_paused()
        await session.on_ended()
        await session.on_error()

        assert session.state == SessionState.IDLE
        assert session.tracker is None
        assert player.resumed == 0
        assert policy.records() == []

    @pytest.mark.asyncio
    async def test_pause_before_playing_is_ignored(self, session, player, policy):
        """A pause while unstarted neither flushes nor changes state."""
        await session.open(ContentItem(id="x", title="X"))
        await session.on_ready(player)
        await session.on_paused()

        assert session.state == SessionState.OPEN_UNSTARTED
        assert policy.records() == []

    @pytest.mark.asyncio
    async def test_viewing_context_reaches_sampling(self, session, items, make_player):
        """Samples and flushes run with the viewing identifiers bound."""
        seen = []

        class ContextPlayer(make_player):
            def get_current_position(self):
                seen.append((get_content_id(), get_viewing_id()))
                return super().get_current_position()

        player = ContextPlayer()
        await play(session, items[0], player, 10)
        viewing_id = session.viewing_id
        await session.close()

        assert seen
        assert set(seen) == {("c1", viewing_id)}
        assert get_viewing_id() is None


class TestEventsDuringRelease:
    """Tests for player events that arrive while a viewing is being released."""

    @pytest.fixture
    def slow_player(self, make_player):
        """Player whose position query yields to the event loop."""

        class SlowPlayer(make_player):
            async def get_current_position(self):
                await asyncio.sleep(INTERVAL * 5)
                return self.position

        return SlowPlayer()

    @pytest.mark.asyncio
    async def test_playing_during_close_starts_no_timer(
        self, session, items, slow_player
    ):
        """A late "playing" event cannot revive the closing viewing's timer."""
        await play(session, items[0], slow_player, 20)
        tracker = session.tracker

        closing = asyncio.create_task(session.close())
        await asyncio.sleep(0)
        await session.on_playing()
        await closing

        assert session.state == SessionState.CLOSED
        assert session.tracker is None
        assert tracker.is_running is False

    @pytest.mark.asyncio
    async def test_playing_during_switch_starts_no_timer(
        self, session, items, slow_player
    ):
        """Only the new item's tracker exists after a mid-switch event."""
        await play(session, items[0], slow_player, 20)
        old_tracker = session.tracker

        opening = asyncio.create_task(session.open(items[1]))
        await asyncio.sleep(0)
        await session.on_playing()
        await opening

        assert old_tracker.is_running is False
        assert session.content_id == "c2"
        assert session.tracker is not old_tracker
        assert session.tracker.is_running is False
        await session.close()
