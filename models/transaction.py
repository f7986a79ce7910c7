from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from models.category import Category


@dataclass
class Transaction:
    id: str  # opaque uuid, immutable
    date: date
    description: str
    amount: Decimal  # negative = expense, non-negative = income
    created_at: datetime
    updated_at: datetime
    details: Optional[str] = None
    is_unexpected: bool = False
    source_file: Optional[str] = None  # originating CSV file name
    category_id: Optional[str] = None
    category: Optional[Category] = field(default=None, compare=False)


@dataclass(frozen=True)
class SkippedDuplicate:
    """Result of ingesting a draft that matched an existing transaction.

    Never persisted and never counted as a created transaction.
    """

    draft: object  # the validated TransactionCreateInput that was skipped

    @property
    def description(self) -> str:
        return self.draft.description
