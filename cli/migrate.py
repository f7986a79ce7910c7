#!/usr/bin/env python3

from logger import get_logger

logger = get_logger()

_MIGRATIONS_TABLE = """
    CREATE TABLE IF NOT EXISTS schema_migrations (
        migration_file TEXT PRIMARY KEY,
        applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
"""


def migration_status(conn, db_manager):
    """Split the available migration files into applied and pending.

    Returns:
        Tuple of (applied, pending) lists of file names, each sorted.
    """
    conn.execute(_MIGRATIONS_TABLE)
    conn.commit()

    applied = {
        row[0]
        for row in conn.execute("SELECT migration_file FROM schema_migrations")
    }

    migrations_dir = db_manager.migrations_dir
    available = (
        sorted(path.name for path in migrations_dir.glob("*.sql"))
        if migrations_dir.exists()
        else []
    )

    return (
        [name for name in available if name in applied],
        [name for name in available if name not in applied],
    )


def apply_pending(conn, db_manager):
    """Apply every pending migration in file-name order.

    Returns:
        The file names that were applied.

    Raises:
        sqlite3.Error: If a migration fails; earlier migrations stay applied.
    """
    _, pending = migration_status(conn, db_manager)
    migrations_dir = db_manager.migrations_dir

    for migration_file in pending:
        sql = (migrations_dir / migration_file).read_text()
        try:
            conn.executescript(sql)
            conn.execute(
                "INSERT INTO schema_migrations (migration_file) VALUES (?)",
                (migration_file,),
            )
            conn.commit()
        except Exception as e:
            conn.rollback()
            logger.error(f"Error applying migration {migration_file}: {e}")
            raise
        logger.info(f"Applied migration: {migration_file}")

    return pending


def cmd_status(args, db_manager):
    """Show migration status."""
    if not db_manager.exists():
        logger.info(
            "Database does not exist. Run 'python -m cli migrate apply' to create it."
        )
        return

    with db_manager.connect() as conn:
        applied, pending = migration_status(conn, db_manager)

    logger.info("Migration Status:")
    logger.info("================")

    if not applied and not pending:
        logger.info("No migrations found.")
        return

    for migration in sorted(applied + pending):
        logger.info(f"{migration}: {'APPLIED' if migration in applied else 'PENDING'}")

    logger.info(f"\nTotal migrations: {len(applied) + len(pending)}")
    logger.info(f"Applied: {len(applied)}")
    logger.info(f"Pending: {len(pending)}")


def cmd_apply(args, db_manager):
    """Apply pending migrations."""
    with db_manager.connect() as conn:
        applied = apply_pending(conn, db_manager)

    if not applied:
        logger.info("No pending migrations.")
        return

    logger.info(f"Successfully applied {len(applied)} migration(s).")


def setup_parser(subparsers):
    """Setup migrate subcommand parser.

    Args:
        subparsers: The subparsers object from the main CLI
    """
    parser = subparsers.add_parser(
        "migrate",
        help="Database migrations",
        description="Manage the ledger's SQLite schema",
    )

    migrate_subparsers = parser.add_subparsers(
        title="subcommands",
        description="Available migration commands",
        dest="subcommand",
        required=True,
    )

    # migrate status
    status_parser = migrate_subparsers.add_parser(
        "status", help="Show migration status"
    )
    status_parser.set_defaults(func=cmd_status)

    # migrate apply
    apply_parser = migrate_subparsers.add_parser(
        "apply", help="Apply pending migrations"
    )
    apply_parser.set_defaults(func=cmd_apply)
