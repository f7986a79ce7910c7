"""Base provider interface for LLM implementations."""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import List, Optional

from schemas import CategorySuggestion


class LLMProvider(ABC):
    """Abstract base class for LLM providers.

    Each provider can implement suggestions in its own optimal way,
    using provider-specific features like structured outputs.
    """

    @abstractmethod
    def suggest_category(
        self,
        description: str,
        amount: Decimal,
        details: Optional[str] = None,
        existing_category_names: Optional[List[str]] = None,
    ) -> List[CategorySuggestion]:
        """Suggest categories for a single transaction.

        Args:
            description: Transaction description.
            amount: Signed amount (negative = expense).
            details: Optional free-text note.
            existing_category_names: Names of the user's categories; when
                empty the provider may propose new category names.

        Returns:
            Suggestions ordered by decreasing confidence.

        Raises:
            Exception: If the LLM API call fails or times out.
        """
        pass
