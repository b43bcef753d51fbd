import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Generator

logger = logging.getLogger(__name__)

# Type alias for clarity
Connection = sqlite3.Connection
Cursor = sqlite3.Cursor

SCHEMA_PATH = Path(__file__).parent / "schema.sql"

# Explicit adapters/converters; the implicit sqlite3 defaults are deprecated
sqlite3.register_adapter(date, lambda value: value.isoformat())
sqlite3.register_adapter(datetime, lambda value: value.isoformat(" "))
sqlite3.register_converter("DATE", lambda raw: date.fromisoformat(raw.decode()))
sqlite3.register_converter("TIMESTAMP", lambda raw: datetime.fromisoformat(raw.decode()))


class DatabaseConfig:
    """Database configuration settings."""

    def __init__(self, db_path: Path | str = "data/finance_tracker.db"):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def connection_string(self) -> str:
        """Return the database file path as a string"""
        return str(self.db_path.absolute())


def configure_connection(conn: Connection) -> None:
    """
    Apply standard configuration to a SQLite connection.

    Args:
        conn: SQLite connection to configure
    """
    # Enable foreign key constraints (OFF by default in SQLite!)
    conn.execute("PRAGMA foreign_keys = ON")

    # Return rows as dict-like objects instead of tuples
    conn.row_factory = sqlite3.Row

    # Built-in lower() only folds ASCII
    conn.create_function("unicode_lower", 1, _unicode_lower, deterministic=True)


def _unicode_lower(value):
    return value.lower() if isinstance(value, str) else value


class DatabaseManager:
    """
    Manages SQLite database connections.

    Uses context managers for safe connection handling. A single
    connection is shared between threads, so ``transaction()`` holds a
    lock for the whole block: one thread's transaction never interleaves
    with another's on the same manager. Separate managers on the same
    file are serialized by SQLite's write lock instead.
    """

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self._connection: Connection | None = None
        self._lock = threading.RLock()

    def get_connection(self) -> Connection:
        """
        Get or create a database connection.

        Returns:
            sqlite3.Connection: Active database connection
        """
        with self._lock:
            if self._connection is None:
                self._connection = self._create_connection()
            return self._connection

    def _create_connection(self) -> Connection:
        conn = sqlite3.connect(
            self.config.connection_string,
            detect_types=sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES,
            check_same_thread=False, # Allow multi-threaded access
        )
        configure_connection(conn)
        logger.debug("Opened database %s", self.config.connection_string)
        return conn

    def close(self) -> None:
        """Close the database connection if open."""
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None

    @contextmanager
    def transaction(self, immediate: bool = False) -> Generator[Connection, None, None]:
        """
        Context manager for database transactions.

        Automatically commits on success, rolls back on exception.

        Args:
            immediate: Take the write lock up front (BEGIN IMMEDIATE) so a
                read-modify-write can't interleave with another writer

        Usage:
            with db_manager.transaction() as conn:
                conn.execute("INSERT INTO ...")
                conn.execute("UPDATE ...")
        """
        with self._lock:
            conn = self.get_connection()
            if immediate and not conn.in_transaction:
                conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise

    def __enter__(self) -> "DatabaseManager":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def execute_schema(conn: Connection, schema_path: Path) -> None:
    """
    Execute a SQL schema file.

    Args:
        conn: Database connection
        schema_path: Path to .sql file
    """
    with open(schema_path) as f:
        schema = f.read()

    conn.executescript(schema)
    conn.commit()


def initialize_database(db_manager: DatabaseManager, schema_path: Path = SCHEMA_PATH) -> int:
    """
    Create all tables if they don't exist yet.

    Returns:
        The schema version now in place
    """
    conn = db_manager.get_connection()
    execute_schema(conn, schema_path)

    row = conn.execute(
        "SELECT version FROM schema_version ORDER BY version DESC LIMIT 1"
    ).fetchone()
    version = row["version"] if row else 0
    logger.info("Database ready at %s (schema v%s)", db_manager.config.db_path, version)
    return version
