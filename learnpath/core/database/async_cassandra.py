"""Async Cassandra database connection using cassandra-asyncio-driver.

Provides:
- Async connection pool management
- Session with aexecute() for non-blocking queries
- Keyspace and table initialization (async)

The cassandra-asyncio-driver extends the standard cassandra-driver
with `session.aexecute()` method for async/await support.
"""

import structlog
from cassandra.auth import PlainTextAuthProvider
from cassandra.policies import DCAwareRoundRobinPolicy, TokenAwarePolicy
from cassandra_asyncio.cluster import Cluster

from learnpath.assessments.models import ASSESSMENTS_TABLES_CQL
from learnpath.catalog.models import CATALOG_TABLES_CQL
from learnpath.certificates.models import CERTIFICATES_TABLES_CQL
from learnpath.config.settings import Settings, get_settings
from learnpath.progress.models import PROGRESS_TABLES_CQL


logger = structlog.get_logger(__name__)

# Creation order: catalog first, then the engine's own tables
TABLE_GROUPS = {
    "catalog": CATALOG_TABLES_CQL,
    "progress": PROGRESS_TABLES_CQL,
    "assessments": ASSESSMENTS_TABLES_CQL,
    "certificates": CERTIFICATES_TABLES_CQL,
}


class AsyncCassandraConnection:
    """Async Cassandra connection manager.

    Manages cluster connection and session lifecycle with async support.
    Uses cassandra-asyncio-driver for non-blocking execute via aexecute().
    """

    _cluster: Cluster | None = None
    _session = None  # Session type from cassandra_asyncio

    @classmethod
    def connect(cls, settings: Settings | None = None):
        """Establish connection to Cassandra cluster.

        Note: Connection is synchronous, but execute calls can be async.

        Returns:
            Active Cassandra session with aexecute() support

        Raises:
            ConnectionError: If connection fails
        """
        if cls._session is not None:
            return cls._session

        settings = settings or get_settings()

        auth_provider = None
        if settings.cassandra_username and settings.cassandra_password:
            auth_provider = PlainTextAuthProvider(
                username=settings.cassandra_username,
                password=settings.cassandra_password,
            )

        cls._cluster = Cluster(
            contact_points=settings.cassandra_hosts,
            port=settings.cassandra_port,
            auth_provider=auth_provider,
            protocol_version=settings.cassandra_protocol_version,
            load_balancing_policy=TokenAwarePolicy(DCAwareRoundRobinPolicy()),
            connect_timeout=settings.cassandra_connect_timeout,
        )

        try:
            cls._session = cls._cluster.connect()
            cls._session.default_timeout = settings.cassandra_request_timeout
            logger.info(
                "async_cassandra_connected",
                hosts=settings.cassandra_hosts,
                port=settings.cassandra_port,
                protocol_version=settings.cassandra_protocol_version,
            )
        except Exception as e:
            logger.error("async_cassandra_connection_failed", error=str(e))
            raise ConnectionError(f"Failed to connect to Cassandra: {e}") from e

        return cls._session

    @classmethod
    def disconnect(cls) -> None:
        """Close connection to Cassandra."""
        if cls._session is not None:
            cls._session.shutdown()
            cls._session = None
            logger.info("async_cassandra_session_closed")

        if cls._cluster is not None:
            cls._cluster.shutdown()
            cls._cluster = None
            logger.info("async_cassandra_cluster_closed")

    @classmethod
    def is_connected(cls) -> bool:
        """Check if connection is active."""
        return cls._session is not None and not cls._session.is_shutdown


async def init_async_keyspace(session, keyspace: str, production: bool) -> None:
    """Create keyspace if not exists (async)."""
    if production:
        replication = """
            'class': 'NetworkTopologyStrategy',
            'datacenter1': 3
        """
    else:
        replication = """
            'class': 'SimpleStrategy',
            'replication_factor': 1
        """

    cql = f"""
        CREATE KEYSPACE IF NOT EXISTS {keyspace}
        WITH replication = {{{replication}}}
        AND durable_writes = true
    """

    await session.aexecute(cql)
    logger.info("async_keyspace_created", keyspace=keyspace)


async def init_async_tables(session, keyspace: str) -> None:
    """Create every table, lookup table and index (async)."""
    for group, statements in TABLE_GROUPS.items():
        for cql_template in statements:
            await session.aexecute(cql_template.format(keyspace=keyspace))
        logger.info("async_tables_created", group=group, keyspace=keyspace)


async def init_async_cassandra(settings: Settings | None = None):
    """Initialize async Cassandra connection and schema.

    Returns:
        Configured Cassandra session with aexecute() support
    """
    settings = settings or get_settings()

    session = AsyncCassandraConnection.connect(settings)
    await init_async_keyspace(
        session, settings.cassandra_keyspace, settings.is_production
    )
    session.set_keyspace(settings.cassandra_keyspace)
    await init_async_tables(session, settings.cassandra_keyspace)

    logger.info("async_cassandra_initialized", keyspace=settings.cassandra_keyspace)
    return session


async def shutdown_async_cassandra() -> None:
    """Shutdown async Cassandra connection."""
    AsyncCassandraConnection.disconnect()
