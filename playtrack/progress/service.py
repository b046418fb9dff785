"""Training progress service layer.

One object per user screen: it loads the catalog and the user's progress
records, owns the merge policy and the playback session, and exposes the
merged rows and statistics the screen renders.
"""

import structlog

from playtrack.catalog.models import Audience, ContentItem
from playtrack.catalog.provider import CatalogProvider
from playtrack.config import get_settings
from playtrack.core.exceptions import TransientStoreError
from playtrack.playback.session import PlaybackSession

from .merger import aggregate, filter_rows, to_view_rows
from .policy import MergePolicy
from .schemas import ProgressStats, StatusFilter, ViewRow
from .store import ProgressStore


logger = structlog.get_logger(__name__)


# ==============================================================================
# Training Progress Service
# ==============================================================================


class TrainingProgressService:
    """Service for a user's training list and playback progress."""

    def __init__(
        self,
        catalog: CatalogProvider,
        store: ProgressStore,
        user_id: str,
        audience: Audience | None = None,
        sample_interval: float | None = None,
    ) -> None:
        if sample_interval is None:
            sample_interval = get_settings().tracking_sample_interval_seconds

        self.catalog = catalog
        self.store = store
        self.user_id = str(user_id)
        self.audience = audience
        self.items: list[ContentItem] = []
        self.policy = MergePolicy(store)
        self.session = PlaybackSession(
            self.policy, self.user_id, sample_interval=sample_interval
        )

    async def load(self) -> None:
        """Fetch the catalog and the user's records.

        The in-memory progress map is replaced with the store's records, so
        any optimistic state lost to failed writes heals here. A store
        failure yields an empty map; a catalog failure propagates.

        Raises:
            CatalogUnavailable: If the catalog cannot be listed.
        """
        self.items = await self.catalog.list_content()

        try:
            records = await self.store.list_by_user(self.user_id)
        except TransientStoreError as e:
            logger.warning(
                "progress_load_failed", user_id=self.user_id, error=e.message
            )
            records = []

        self.policy.load(records)
        logger.info(
            "training_progress_loaded",
            user_id=self.user_id,
            items=len(self.items),
            records=len(records),
        )

    def rows(
        self,
        search: str = "",
        status: StatusFilter = StatusFilter.ALL,
    ) -> list[ViewRow]:
        """Merged view rows, filtered for display."""
        rows = to_view_rows(self.items, self.policy.records())
        return filter_rows(rows, search, status, self.audience)

    def stats(self) -> ProgressStats:
        """Aggregate statistics over the audience's rows."""
        return aggregate(self.rows())

    async def aclose(self) -> None:
        """Close the playback session and wait for outstanding writes."""
        await self.session.close()
        await self.policy.drain()
