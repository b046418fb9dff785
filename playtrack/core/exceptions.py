"""Tracking error taxonomy.

None of the tracking-path errors are fatal: the tracker and the merge
policy catch them, log them and carry on. Only ``CatalogUnavailable``
reaches the caller, because a screen cannot be built without a catalog.
"""


class TrackingError(Exception):
    """Base tracking error."""

    def __init__(self, message: str, code: str = "tracking_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class TransientStoreError(TrackingError):
    """Progress store failed during list/create/update."""

    def __init__(self, message: str = "Progress store unavailable"):
        super().__init__(message, "store_unavailable")


class PlaybackUnavailable(TrackingError):
    """Player not ready or media duration unknown."""

    def __init__(self, message: str = "Playback not available"):
        super().__init__(message, "playback_unavailable")


class InvalidSessionState(TrackingError):
    """Tracking or flush attempted without an active content item."""

    def __init__(self, message: str = "No active content item"):
        super().__init__(message, "invalid_session_state")


class CatalogUnavailable(TrackingError):
    """Catalog provider failed to list content."""

    def __init__(self, message: str = "Catalog unavailable"):
        super().__init__(message, "catalog_unavailable")
