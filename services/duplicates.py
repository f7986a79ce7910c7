"""Duplicate detection for incoming transactions."""

from datetime import date, datetime
from decimal import Decimal
from logger import get_logger

logger = get_logger()


def _calendar_day(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def _as_stored(amount) -> Decimal:
    # Amounts are stored as REAL; compare at the precision that survives storage
    return Decimal(str(float(amount)))


class DuplicateDetector:
    """Decides whether a draft repeats an already-stored transaction.

    Two transactions are duplicates when they fall on the same calendar day
    and have exactly the same amount. The description is not part of the
    key, so two same-day, same-amount purchases from different merchants
    collide.

    Amounts are stored as SQLite REAL, so a draft amount with more than
    about 15 significant digits is rounded to the stored double before it is
    compared.
    """

    def __init__(self, transactions):
        """Initialize the detector.

        Args:
            transactions: TransactionService used to look up stored transactions.
        """
        self.transactions = transactions

    def is_duplicate(self, candidate) -> bool:
        """Check a draft against every stored transaction.

        Fails open: if the store cannot be read, the error is logged and the
        candidate is treated as new so ingestion is never blocked.

        Args:
            candidate: Draft (or Transaction) with ``date`` and ``amount``.

        Returns:
            True if a stored transaction has the same day and amount.
        """
        try:
            existing = self.transactions.find_all()
        except Exception as e:
            logger.error(f"Duplicate check failed, treating as new transaction: {e}")
            return False

        day = _calendar_day(candidate.date)
        amount = _as_stored(candidate.amount)
        return any(
            _calendar_day(transaction.date) == day and transaction.amount == amount
            for transaction in existing
        )
