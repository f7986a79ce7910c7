"""Category model for transaction categorization."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class SpendingType(str, Enum):
    """How discretionary the spending in a category is."""

    ESSENTIAL = "essential"
    DISCRETIONARY = "discretionary"
    MIXED = "mixed"
    UNCLASSIFIED = "unclassified"


@dataclass
class Category:
    """Represents a user-defined transaction category.

    Attributes:
        id: Unique identifier (generated on creation).
        name: Category name (unique).
        color: Optional display color as a hex string, e.g. "#3b82f6".
        spending_type: Spending classification.
        description: Optional description of what belongs in this category.
        created_at: Timestamp when the category was created.
        updated_at: Timestamp of the last mutation.
    """

    id: str
    name: str
    color: Optional[str]
    spending_type: SpendingType
    description: Optional[str]
    created_at: datetime
    updated_at: datetime
