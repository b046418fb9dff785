"""Playback capability contract and player lifecycle events.

The media player is not owned by the tracking core. Any object exposing
``get_current_position()`` and ``get_total_duration()`` (plain or
coroutine methods) can be bound to a session; ``resume()`` is optional.
Players must tolerate being queried before their metadata is loaded.
"""

import inspect
import math
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from playtrack.core.exceptions import PlaybackUnavailable


class PlayerEvent(str, Enum):
    """Discrete lifecycle events reported by the player."""

    READY = "ready"
    PLAYING = "playing"
    PAUSED = "paused"
    ENDED = "ended"
    ERROR = "error"


@runtime_checkable
class PlaybackCapability(Protocol):
    """Position/duration queries of an embedded media player."""

    def get_current_position(self) -> Any:
        """Current playback position (time-units, may be awaitable)."""
        ...

    def get_total_duration(self) -> Any:
        """Total media duration (time-units, may be awaitable)."""
        ...


async def _call(method: Any) -> Any:
    result = method()
    if inspect.isawaitable(result):
        result = await result
    return result


async def read_position(player: PlaybackCapability) -> tuple[float, float]:
    """Query position and duration from a player.

    Raises:
        PlaybackUnavailable: If the player fails or reports no usable duration.
    """
    try:
        position = await _call(player.get_current_position)
        duration = await _call(player.get_total_duration)
    except PlaybackUnavailable:
        raise
    except Exception as e:
        raise PlaybackUnavailable(f"Player query failed: {e}") from e

    try:
        position = float(position or 0)
        duration = float(duration or 0)
    except (TypeError, ValueError) as e:
        raise PlaybackUnavailable("Player returned a non-numeric value") from e

    if not math.isfinite(position) or not math.isfinite(duration) or duration <= 0:
        raise PlaybackUnavailable("Duration unknown")

    return position, duration


async def try_resume(player: PlaybackCapability) -> bool:
    """Ask the player to resume when it supports it."""
    resume = getattr(player, "resume", None)
    if resume is None:
        return False
    await _call(resume)
    return True
