"""
Snowflake connections for the video repository.

Real connections are opened per request and always closed. Mock mode hands
out an in-memory connection that understands the few statements
SnowflakeVideoRepository issues, so the API runs locally without a
warehouse.
"""

import base64
import logging
from contextlib import contextmanager
from typing import Any, Generator, Optional

from .repositories.videos import SnowflakeConfig, SnowflakeConnection

logger = logging.getLogger(__name__)


class SnowflakeConnectionError(Exception):
    """Raised when Snowflake connection fails."""
    pass


def _private_key_der(pem: bytes) -> bytes:
    """Convert an unencrypted PEM private key to the DER bytes the connector takes."""
    from cryptography.hazmat.backends import default_backend
    from cryptography.hazmat.primitives import serialization

    private_key = serialization.load_pem_private_key(pem, password=None, backend=default_backend())

    return private_key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption()
    )


def build_connect_params(config: SnowflakeConfig) -> dict[str, Any]:
    """
    Keyword arguments for snowflake.connector.connect().

    Credential precedence: base64 key (for platforms that only take env
    vars), then key file, then password.
    """
    params: dict[str, Any] = {
        'account': config.account,
        'user': config.user,
        'database': config.database,
        'schema': config.schema,
        'warehouse': config.warehouse,
    }
    if config.role:
        params['role'] = config.role

    if config.private_key_base64:
        params['private_key'] = _private_key_der(base64.b64decode(config.private_key_base64))
        auth = "key_pair_base64"
    elif config.private_key_path:
        with open(config.private_key_path, 'rb') as key_file:
            params['private_key'] = _private_key_der(key_file.read())
        auth = "key_pair_file"
    elif config.password:
        params['password'] = config.password
        auth = "password"
    else:
        raise SnowflakeConnectionError(
            "No Snowflake credentials: set a password, private_key_path or private_key_base64"
        )

    logger.debug("Snowflake credentials resolved", extra={"auth_method": auth})
    return params


@contextmanager
def get_snowflake_connection(config: SnowflakeConfig) -> Generator[SnowflakeConnection, None, None]:
    """
    Open a Snowflake connection for the duration of the block.

    Usage:
        with get_snowflake_connection(config) as conn:
            repo = SnowflakeVideoRepository(conn)
    """
    import snowflake.connector

    params = build_connect_params(config)

    try:
        conn = snowflake.connector.connect(**params)
    except snowflake.connector.errors.Error as e:
        logger.error(
            "Snowflake connection failed",
            extra={"error": str(e), "account": config.account}
        )
        raise SnowflakeConnectionError(f"Database connection failed: {e}") from e

    try:
        yield conn
    finally:
        try:
            conn.close()
        except Exception as e:
            logger.warning(
                "Error closing Snowflake connection",
                extra={"error": str(e)}
            )


# ---------------------------------------------------------------------------
# Mock Connection for Local Development
# ---------------------------------------------------------------------------

class MockSnowflakeCursor:
    """
    Mock Snowflake cursor for testing.

    Implements just enough of the cursor interface to support
    SnowflakeVideoRepository without a real database, by pattern matching
    the handful of statements the repository issues.
    """

    def __init__(self, storage: dict) -> None:
        self._storage = storage
        self._results: list = []
        self._rowcount: int = 0

    def execute(self, query: str, params: Optional[tuple] = None) -> 'MockSnowflakeCursor':
        logger.debug(
            "Mock cursor execute",
            extra={"query": query[:100], "params": params}
        )

        query_upper = " ".join(query.upper().split())
        self._results = []
        self._rowcount = 0

        if query_upper == 'SELECT 1':
            self._results = [(1,)]

        elif query_upper.startswith('SELECT') and 'FROM VIDEOS' in query_upper:
            self._handle_select(query_upper, params)

        elif query_upper.startswith('INSERT INTO VIDEOS'):
            self._handle_insert(params)

        elif query_upper.startswith('UPDATE VIDEOS'):
            self._handle_update(params)

        return self

    def _handle_select(self, query: str, params: Optional[tuple]) -> None:
        videos = self._storage['videos']

        if 'WHERE VIDEO_ID' in query:
            row = videos.get(str(params[0]))
            self._results = [row] if row else []

        elif 'WHERE USER_ID' in query:
            rows = [row for row in videos.values() if row[1] == str(params[0])]
            # newest first, matching ORDER BY created_at DESC
            self._results = sorted(rows, key=lambda r: r[6], reverse=True)

    def _handle_insert(self, params: Optional[tuple]) -> None:
        video_id = str(params[0])
        self._storage['videos'][video_id] = tuple(params)
        self._rowcount = 1

    def _handle_update(self, params: Optional[tuple]) -> None:
        title, description, thumbnail_url, video_url, updated_at, video_id = params
        existing = self._storage['videos'].get(str(video_id))
        if existing is None:
            return

        self._storage['videos'][str(video_id)] = (
            existing[0], existing[1], title, description,
            thumbnail_url, video_url, existing[6], updated_at,
        )
        self._rowcount = 1

    def fetchone(self):
        if not self._results:
            return None
        return self._results[0]

    def fetchall(self) -> list:
        return self._results

    def close(self) -> None:
        pass

    @property
    def rowcount(self) -> int:
        return self._rowcount


class MockSnowflakeConnection:
    """
    Mock Snowflake connection for local development.

    Stores rows in memory. Not suitable for production, but enough for
    local development, unit tests and CI.
    """

    def __init__(self) -> None:
        # In-memory storage: {table_name: {id: row_tuple}}
        self._storage: dict[str, dict[str, tuple]] = {
            'videos': {},
        }

        logger.info("Initialized mock Snowflake connection (in-memory)")

    def cursor(self) -> MockSnowflakeCursor:
        return MockSnowflakeCursor(self._storage)

    def commit(self) -> None:
        logger.debug("Mock connection commit")

    def rollback(self) -> None:
        logger.debug("Mock connection rollback")

    def close(self) -> None:
        logger.debug("Mock connection close")

    def _clear(self) -> None:
        """Clear all mock storage (for test cleanup)."""
        for table in self._storage.values():
            table.clear()


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

@contextmanager
def create_snowflake_connection(
    config: Optional[SnowflakeConfig] = None,
    mock_connection: Optional[MockSnowflakeConnection] = None,
    mock_mode: bool = False,
) -> Generator[SnowflakeConnection, None, None]:
    """
    Create Snowflake connection based on configuration.

    In mock mode the given mock_connection is reused (so data persists
    across requests), or a fresh one is created.

    Args:
        config: Snowflake configuration (required if not mock_mode)
        mock_connection: Shared mock connection to hand out in mock mode
        mock_mode: If True, yield a mock connection

    Yields:
        SnowflakeConnection implementation (real or mock)
    """
    if mock_mode:
        yield mock_connection or MockSnowflakeConnection()
        return

    if config is None:
        raise ValueError("config is required when not in mock mode")

    with get_snowflake_connection(config) as conn:
        yield conn
