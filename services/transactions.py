"""Transaction service for database operations."""

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, List, Mapping, Optional, Sequence, Union

from errors import NotFoundError, ReferentialIntegrityError
from models.transaction import Transaction
from schemas import TransactionCreateInput, TransactionUpdateInput, validate_input
from services.categories import row_to_category
from logger import get_logger

logger = get_logger()

# SQL Query Constants
_TRANSACTION_INSERT_FIELDS = """id, transaction_date, description, details, amount,
    is_unexpected, source_file, category_id, created_at, updated_at"""

_TRANSACTION_INSERT_PLACEHOLDERS = (
    f"({', '.join(['?'] * len(_TRANSACTION_INSERT_FIELDS.split(',')))})"
)

# Transactions joined with their (optional) category
_TRANSACTION_SELECT = """
    SELECT t.id, t.transaction_date, t.description, t.details, t.amount,
           t.is_unexpected, t.source_file, t.category_id, t.created_at, t.updated_at,
           c.id, c.name, c.color, c.spending_type, c.description, c.created_at, c.updated_at
    FROM transactions t
    LEFT JOIN categories c ON c.id = t.category_id
"""

# Update-input field name -> column name
_UPDATABLE_COLUMNS = {
    "date": "transaction_date",
    "description": "description",
    "details": "details",
    "amount": "amount",
    "is_unexpected": "is_unexpected",
    "source_file": "source_file",
    "category_id": "category_id",
}


def _to_column_value(field: str, value: Any) -> Any:
    if value is None:
        return None
    if field == "date":
        return value.isoformat()
    if field == "amount":
        return float(value)
    if field == "is_unexpected":
        return 1 if value else 0
    return value


class TransactionService:
    """Service for managing transactions.

    Plain persistence: rule application and duplicate detection live in
    IngestionService.
    """

    def __init__(self, db_manager):
        """Initialize the transaction service.

        Args:
            db_manager: Database manager instance for database operations.
        """
        self.db_manager = db_manager

    def create(
        self, draft: Union[TransactionCreateInput, Mapping[str, Any]]
    ) -> Transaction:
        """Create a single transaction in the database.

        Args:
            draft: Transaction fields; id and timestamps are assigned here.

        Returns:
            The persisted Transaction, re-read from the database.

        Raises:
            ValidationError: If the draft is invalid.
            ReferentialIntegrityError: If category_id names an unknown category.
        """
        draft = validate_input(TransactionCreateInput, draft)
        transaction_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc).isoformat()

        with self.db_manager.connect() as conn:
            self._check_category(conn, draft.category_id)
            conn.execute(
                f"""
                INSERT INTO transactions ({_TRANSACTION_INSERT_FIELDS})
                VALUES {_TRANSACTION_INSERT_PLACEHOLDERS}
                """,
                (
                    transaction_id,
                    draft.date.isoformat(),
                    draft.description,
                    draft.details,
                    float(draft.amount),
                    1 if draft.is_unexpected else 0,
                    draft.source_file,
                    draft.category_id,
                    now,
                    now,
                ),
            )
            conn.commit()

        logger.debug(f"Created transaction {transaction_id}: {draft.description}")
        return self.find(transaction_id)

    def update(
        self,
        transaction_id: str,
        patch: Union[TransactionUpdateInput, Mapping[str, Any]],
    ) -> Transaction:
        """Update the provided fields of a single transaction.

        Fields absent from the patch are left untouched; an explicit None for
        an optional field (e.g. category_id) clears it. updated_at is always
        refreshed.

        Args:
            transaction_id: ID of the transaction to update.
            patch: Fields to change.

        Returns:
            The updated Transaction.

        Raises:
            ValidationError: If the patch is invalid.
            NotFoundError: If no transaction has this ID.
            ReferentialIntegrityError: If category_id names an unknown category.
        """
        changes = validate_input(TransactionUpdateInput, patch).changes()

        with self.db_manager.connect() as conn:
            exists = conn.execute(
                "SELECT 1 FROM transactions WHERE id = ?", (transaction_id,)
            ).fetchone()
            if not exists:
                raise NotFoundError("Transaction", transaction_id)

            if changes.get("category_id") is not None:
                self._check_category(conn, changes["category_id"])

            assignments = [f"{_UPDATABLE_COLUMNS[field]} = ?" for field in changes]
            params = [_to_column_value(field, value) for field, value in changes.items()]
            assignments.append("updated_at = ?")
            params.append(datetime.now(timezone.utc).isoformat())

            conn.execute(
                f"UPDATE transactions SET {', '.join(assignments)} WHERE id = ?",
                (*params, transaction_id),
            )
            conn.commit()

        return self.find(transaction_id)

    def delete(self, transaction_id: str) -> Transaction:
        """Delete a transaction by ID.

        Args:
            transaction_id: ID of the transaction to delete.

        Returns:
            The deleted Transaction.

        Raises:
            NotFoundError: If no transaction has this ID.
        """
        transaction = self.find(transaction_id)
        if transaction is None:
            raise NotFoundError("Transaction", transaction_id)

        with self.db_manager.connect() as conn:
            conn.execute("DELETE FROM transactions WHERE id = ?", (transaction_id,))
            conn.commit()

        return transaction

    def find(self, transaction_id: str) -> Optional[Transaction]:
        """Get a single transaction by ID, with its category populated.

        Args:
            transaction_id: The transaction ID.

        Returns:
            Transaction object if found, None otherwise.
        """
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                f"{_TRANSACTION_SELECT} WHERE t.id = ?", (transaction_id,)
            )
            row = cursor.fetchone()

            if row:
                return self._row_to_transaction(row)
            return None

    def find_all(self) -> List[Transaction]:
        """Get every stored transaction.

        Returns:
            List of Transaction objects ordered by date (newest first).
        """
        return self._query(
            f"{_TRANSACTION_SELECT} ORDER BY t.transaction_date DESC, t.rowid DESC"
        )

    def find_uncategorized(self) -> List[Transaction]:
        """Get transactions without a category, newest first."""
        return self._query(
            f"""{_TRANSACTION_SELECT}
            WHERE t.category_id IS NULL
            ORDER BY t.transaction_date DESC, t.rowid DESC"""
        )

    def count_uncategorized(self) -> int:
        """Count transactions without a category."""
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                "SELECT COUNT(*) FROM transactions WHERE category_id IS NULL"
            )
            return cursor.fetchone()[0]

    def find_by_date_range(
        self,
        start_date: date,
        end_date: date,
        *,
        category_ids: Optional[Sequence[str]] = None,
    ) -> List[Transaction]:
        """Get transactions within a date range (inclusive).

        Args:
            start_date: First day of the range.
            end_date: Last day of the range.
            category_ids: Optional list of category IDs to filter by.

        Returns:
            List of Transaction objects ordered by date (newest first).
        """
        query = f"{_TRANSACTION_SELECT} WHERE t.transaction_date >= ? AND t.transaction_date <= ?"
        params: List[Any] = [start_date.isoformat(), end_date.isoformat()]

        if category_ids:
            placeholders = ", ".join(["?"] * len(category_ids))
            query += f" AND t.category_id IN ({placeholders})"
            params.extend(category_ids)

        query += " ORDER BY t.transaction_date DESC, t.rowid DESC"
        return self._query(query, params)

    def _query(self, query: str, params: Sequence[Any] = ()) -> List[Transaction]:
        with self.db_manager.connect() as conn:
            cursor = conn.execute(query, params)
            return [self._row_to_transaction(row) for row in cursor.fetchall()]

    @staticmethod
    def _check_category(conn, category_id: Optional[str]) -> None:
        if category_id is None:
            return
        found = conn.execute(
            "SELECT 1 FROM categories WHERE id = ?", (category_id,)
        ).fetchone()
        if not found:
            raise ReferentialIntegrityError(
                f"Category with id {category_id} does not exist"
            )

    def _row_to_transaction(self, row: tuple) -> Transaction:
        """Convert a joined database row to a Transaction object."""
        return Transaction(
            id=row[0],
            date=date.fromisoformat(row[1]),
            description=row[2],
            details=row[3],
            amount=Decimal(str(row[4])),
            is_unexpected=bool(row[5]),
            source_file=row[6],
            category_id=row[7],
            created_at=datetime.fromisoformat(row[8]),
            updated_at=datetime.fromisoformat(row[9]),
            category=row_to_category(row[10:]) if row[10] else None,
        )
