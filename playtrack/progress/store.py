"""Progress store implementations.

A progress store is generic CRUD persistence for progress records:
list by user, create (store assigns identity) and partial update by id.
The tracking core never deletes records.

Every implementation translates its transport failures into
``TransientStoreError`` so the merge policy can treat them uniformly.
"""

from typing import TYPE_CHECKING, Any, Protocol
from uuid import UUID, uuid4

import httpx
import structlog
from cassandra import DriverException, OperationTimedOut, RequestExecutionException
from cassandra.cluster import NoHostAvailable

from playtrack.core.exceptions import TransientStoreError

from .models import ProgressRecord
from .schemas import ProgressRecordCreate, ProgressRecordUpdate


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)

CASSANDRA_ERRORS = (
    DriverException,
    RequestExecutionException,
    OperationTimedOut,
    NoHostAvailable,
)


class ProgressStore(Protocol):
    """CRUD persistence for progress records."""

    async def list_by_user(self, user_id: str) -> list[ProgressRecord]:
        """List every progress record of a user."""
        ...

    async def create(self, data: ProgressRecordCreate) -> ProgressRecord:
        """Create a record; the store assigns its identity."""
        ...

    async def update_by_id(
        self, record_id: str, data: ProgressRecordUpdate
    ) -> ProgressRecord:
        """Apply a partial update to the record with the given identity."""
        ...


def _apply_update(record: ProgressRecord, data: ProgressRecordUpdate) -> None:
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(record, field, value)


# ==============================================================================
# In-memory Store
# ==============================================================================


class InMemoryProgressStore:
    """Process-local store, used for local runs and tests."""

    def __init__(self, records: list[ProgressRecord] | None = None) -> None:
        self._records: dict[str, ProgressRecord] = {}
        for record in records or []:
            stored = record.copy()
            stored.id = stored.id or str(uuid4())
            self._records[stored.id] = stored

    async def list_by_user(self, user_id: str) -> list[ProgressRecord]:
        return [r.copy() for r in self._records.values() if r.user_id == str(user_id)]

    async def create(self, data: ProgressRecordCreate) -> ProgressRecord:
        record = ProgressRecord(id=str(uuid4()), **data.model_dump())
        self._records[record.id] = record
        return record.copy()

    async def update_by_id(
        self, record_id: str, data: ProgressRecordUpdate
    ) -> ProgressRecord:
        record = self._records.get(str(record_id))
        if record is None:
            raise TransientStoreError(f"Progress record {record_id} not found")
        _apply_update(record, data)
        return record.copy()

    def get(self, record_id: str) -> ProgressRecord | None:
        """Stored copy of a record (test helper)."""
        record = self._records.get(str(record_id))
        return record.copy() if record else None

    def find(self, content_id: str, user_id: str) -> list[ProgressRecord]:
        """All stored records of one (content, user) pair."""
        return [
            r.copy()
            for r in self._records.values()
            if r.content_id == str(content_id) and r.user_id == str(user_id)
        ]


# ==============================================================================
# Portal REST Store
# ==============================================================================


class HttpProgressStore:
    """Progress records kept by the portal REST backend."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        token: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = client

    async def _request(
        self, method: str, path: str, json: dict[str, Any] | None = None
    ) -> Any:
        url = f"{self.base_url}{path}"
        try:
            if self._client is not None:
                response = await self._client.request(
                    method, url, json=json, headers=self._headers
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.request(
                        method, url, json=json, headers=self._headers
                    )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                "progress_store_request_failed",
                method=method,
                path=path,
                status_code=e.response.status_code,
                response_text=e.response.text[:500],
            )
            raise TransientStoreError(
                f"Progress store error: {e.response.status_code}"
            ) from e
        except httpx.RequestError as e:
            logger.error(
                "progress_store_request_error", method=method, path=path, error=str(e)
            )
            raise TransientStoreError(f"Progress store request error: {e}") from e

        payload = response.json()
        # Some endpoints wrap results as {"data": ..., "success": ...}
        if isinstance(payload, dict) and "data" in payload:
            return payload["data"]
        return payload

    async def list_by_user(self, user_id: str) -> list[ProgressRecord]:
        payload = await self._request("GET", f"/training-progress/user/{user_id}")
        return [ProgressRecord.from_api(item) for item in payload or []]

    async def create(self, data: ProgressRecordCreate) -> ProgressRecord:
        payload = await self._request("POST", "/training-progress", json=data.to_api())
        return ProgressRecord.from_api(payload)

    async def update_by_id(
        self, record_id: str, data: ProgressRecordUpdate
    ) -> ProgressRecord:
        payload = await self._request(
            "PUT", f"/training-progress/{record_id}", json=data.to_api()
        )
        return ProgressRecord.from_api(payload)


# ==============================================================================
# Cassandra Store
# ==============================================================================


class CassandraProgressStore:
    """Progress records in Cassandra (dual-write: by id and by user)."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_by_id = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.training_progress
            WHERE id = ?
        """)

        self._upsert_by_id = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.training_progress
            (id, content_id, user_id, progress_percentage, completed,
             last_viewed_at, completed_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """)

        self._get_by_user = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.training_progress_by_user
            WHERE user_id = ?
        """)

        self._upsert_by_user = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.training_progress_by_user
            (user_id, content_id, id, progress_percentage, completed,
             last_viewed_at, completed_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """)

    async def _save(self, record: ProgressRecord) -> None:
        record_id = UUID(record.id)
        await self.session.aexecute(
            self._upsert_by_id,
            [
                record_id,
                record.content_id,
                record.user_id,
                record.progress_percentage,
                record.completed,
                record.last_viewed_at,
                record.completed_at,
            ],
        )
        await self.session.aexecute(
            self._upsert_by_user,
            [
                record.user_id,
                record.content_id,
                record_id,
                record.progress_percentage,
                record.completed,
                record.last_viewed_at,
                record.completed_at,
            ],
        )

    async def list_by_user(self, user_id: str) -> list[ProgressRecord]:
        try:
            rows = await self.session.aexecute(self._get_by_user, [str(user_id)])
        except CASSANDRA_ERRORS as e:
            raise TransientStoreError(f"Failed to list progress: {e}") from e
        return [ProgressRecord.from_row(row) for row in rows]

    async def create(self, data: ProgressRecordCreate) -> ProgressRecord:
        record = ProgressRecord(id=str(uuid4()), **data.model_dump())
        try:
            await self._save(record)
        except CASSANDRA_ERRORS as e:
            raise TransientStoreError(f"Failed to create progress: {e}") from e
        return record

    async def update_by_id(
        self, record_id: str, data: ProgressRecordUpdate
    ) -> ProgressRecord:
        try:
            result = await self.session.aexecute(
                self._get_by_id, [UUID(str(record_id))]
            )
            row = result.one()
            if row is None:
                raise TransientStoreError(f"Progress record {record_id} not found")

            record = ProgressRecord.from_row(row)
            _apply_update(record, data)
            await self._save(record)
        except CASSANDRA_ERRORS as e:
            raise TransientStoreError(f"Failed to update progress: {e}") from e
        return record
