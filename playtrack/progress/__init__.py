"""Training progress tracking module.

Provides:
- Progress records and their stores (in-memory, portal REST, Cassandra)
- The merge policy deciding which samples are persisted
- The merger joining catalog items with progress for display
- The per-user training progress service (``playtrack.progress.service``)
"""

from .merger import aggregate, filter_rows, to_view_rows
from .models import (
    PROGRESS_TABLES_CQL,
    ProgressRecord,
    ProgressStatus,
    clamp_percentage,
    status_for,
)
from .policy import MergePolicy, PersistDecision
from .schemas import (
    ProgressRecordCreate,
    ProgressRecordUpdate,
    ProgressStats,
    StatusFilter,
    ViewRow,
)
from .store import (
    CassandraProgressStore,
    HttpProgressStore,
    InMemoryProgressStore,
    ProgressStore,
)


__all__ = [
    "PROGRESS_TABLES_CQL",
    "CassandraProgressStore",
    "HttpProgressStore",
    "InMemoryProgressStore",
    "MergePolicy",
    "PersistDecision",
    "ProgressRecord",
    "ProgressRecordCreate",
    "ProgressRecordUpdate",
    "ProgressStats",
    "ProgressStatus",
    "ProgressStore",
    "StatusFilter",
    "ViewRow",
    "aggregate",
    "clamp_percentage",
    "filter_rows",
    "status_for",
    "to_view_rows",
]
