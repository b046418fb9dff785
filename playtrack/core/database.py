"""Cassandra bootstrap for the ``cassandra`` progress store backend.

Sessions come from cassandra-asyncio-driver, whose ``Session`` adds an
awaitable ``aexecute()`` on top of cassandra-driver. The progress schema
(keyspace plus the two progress tables) is created on startup when it is
missing, so a fresh cluster needs no manual migration.
"""

import structlog
from cassandra.auth import PlainTextAuthProvider
from cassandra.policies import DCAwareRoundRobinPolicy, TokenAwarePolicy
from cassandra_asyncio.cluster import Cluster

from playtrack.config.settings import Settings, get_settings
from playtrack.progress.models import PROGRESS_TABLES_CQL


logger = structlog.get_logger(__name__)

KEYSPACE_CQL = """
    CREATE KEYSPACE IF NOT EXISTS {keyspace}
    WITH replication = {{{replication}}}
    AND durable_writes = true
"""


def replication_for(settings: Settings) -> str:
    """Replication options for the progress keyspace."""
    if settings.is_production:
        return "'class': 'NetworkTopologyStrategy', 'datacenter1': 3"
    return "'class': 'SimpleStrategy', 'replication_factor': 1"


class ProgressCassandra:
    """Owns the cluster and session used by ``CassandraProgressStore``."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.cluster: Cluster | None = None
        self.session = None

    @property
    def keyspace(self) -> str:
        return self.settings.cassandra_keyspace

    def _build_cluster(self) -> Cluster:
        settings = self.settings
        auth_provider = None
        if settings.cassandra_configured:
            auth_provider = PlainTextAuthProvider(
                username=settings.cassandra_username,
                password=settings.cassandra_password,
            )

        return Cluster(
            contact_points=settings.cassandra_hosts,
            port=settings.cassandra_port,
            auth_provider=auth_provider,
            protocol_version=settings.cassandra_protocol_version,
            load_balancing_policy=TokenAwarePolicy(DCAwareRoundRobinPolicy()),
            connect_timeout=settings.cassandra_connect_timeout,
        )

    def connect(self):
        """Open the session, reusing it when already connected.

        Raises:
            ConnectionError: If no contact point accepts the connection
        """
        if self.session is not None:
            return self.session

        self.cluster = self._build_cluster()
        try:
            self.session = self.cluster.connect()
        except Exception as e:
            logger.error(
                "cassandra_connection_failed",
                hosts=self.settings.cassandra_hosts,
                error=str(e),
            )
            self.cluster.shutdown()
            self.cluster = None
            raise ConnectionError(f"Failed to connect to Cassandra: {e}") from e

        logger.info(
            "cassandra_connected",
            hosts=self.settings.cassandra_hosts,
            port=self.settings.cassandra_port,
        )
        return self.session

    async def ensure_schema(self) -> None:
        """Create the keyspace and progress tables if they do not exist."""
        session = self.connect()
        await session.aexecute(
            KEYSPACE_CQL.format(
                keyspace=self.keyspace, replication=replication_for(self.settings)
            )
        )
        session.set_keyspace(self.keyspace)

        for cql_template in PROGRESS_TABLES_CQL:
            await session.aexecute(cql_template.format(keyspace=self.keyspace))
        logger.info(
            "progress_schema_ready",
            keyspace=self.keyspace,
            tables=len(PROGRESS_TABLES_CQL),
        )

    def close(self) -> None:
        """Shut down the session and the cluster."""
        if self.session is not None:
            self.session.shutdown()
            self.session = None
        if self.cluster is not None:
            self.cluster.shutdown()
            self.cluster = None
            logger.info("cassandra_closed")


_connection: ProgressCassandra | None = None


async def init_async_cassandra(settings: Settings | None = None):
    """Connect and bootstrap the progress schema.

    Returns:
        Session bound to the progress keyspace, with ``aexecute()`` support
    """
    global _connection

    if _connection is None:
        _connection = ProgressCassandra(settings or get_settings())
    await _connection.ensure_schema()
    return _connection.session


async def shutdown_async_cassandra() -> None:
    """Release the connection opened by ``init_async_cassandra``."""
    global _connection

    if _connection is not None:
        _connection.close()
        _connection = None
