"""Playback progress tracking and persistence for training content."""

__version__ = "0.1.0"
