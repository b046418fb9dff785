"""Playback session and periodic progress sampling."""

from .capability import PlaybackCapability, PlayerEvent, read_position, try_resume
from .session import PlaybackSession, SessionState
from .tracker import DEFAULT_SAMPLE_INTERVAL, ProgressTracker


__all__ = [
    "DEFAULT_SAMPLE_INTERVAL",
    "PlaybackCapability",
    "PlaybackSession",
    "PlayerEvent",
    "ProgressTracker",
    "SessionState",
    "read_position",
    "try_resume",
]
