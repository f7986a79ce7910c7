"""SQLite connection handling for the ledger database."""

import sqlite3
from contextlib import contextmanager
from config import Config, get_migrations_dir

# Seconds a writer waits on a locked database before sqlite3 raises.
BUSY_TIMEOUT = 5.0


class DatabaseManager:
    """Opens connections to the ledger database file.

    Attributes:
        db_path: Location of the SQLite file, from config.
        migrations_dir: Directory holding the numbered ``*.sql`` migrations.
    """

    def __init__(self, config: Config):
        self.config = config
        self.db_path = config.db_path
        self.migrations_dir = get_migrations_dir()

    def exists(self) -> bool:
        return self.db_path.exists()

    @contextmanager
    def connect(self):
        """Yield a connection with foreign keys enforced; closed on exit.

        Callers commit their own writes. Uncommitted work is discarded
        when the connection closes.
        """
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(self.db_path, timeout=BUSY_TIMEOUT)
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
        finally:
            conn.close()
