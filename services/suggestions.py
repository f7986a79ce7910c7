"""Interactive category suggestions backed by an LLM.

Only used on request for a single transaction, never during bulk CSV import.
Any LLM problem (disabled, misconfigured, timed out, failed) falls back to a
locally computed suggestion so the caller always gets an answer.
"""

from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from decimal import Decimal
from typing import List, Optional

from schemas import CategorySuggestion
from logger import get_logger

logger = get_logger()


class SuggestionService:
    """Category suggestions with a rule-based local fallback."""

    def __init__(self, config, rules, categories, provider=None):
        """Initialize the suggestion service.

        Args:
            config: Application configuration (LLM settings and timeout).
            rules: RuleService used for the local fallback.
            categories: CategoryService used for names in prompts and fallback.
            provider: Optional LLMProvider. When None, one is built from
                config on first use.
        """
        self.config = config
        self.rules = rules
        self.categories = categories
        self._provider = provider

    def _get_provider(self):
        if self._provider is None:
            # Lazy import so the OpenAI client is only loaded when needed
            from llm import get_llm_provider

            self._provider = get_llm_provider(self.config)
        return self._provider

    def suggest_category(
        self,
        description: str,
        amount: Decimal,
        details: Optional[str] = None,
        existing_category_names: Optional[List[str]] = None,
    ) -> List[CategorySuggestion]:
        """Suggest categories for a transaction.

        The provider call is bounded by ``config.llm_timeout_seconds``; once
        it elapses the call is abandoned and the local fallback is returned.

        Args:
            description: Transaction description.
            amount: Signed amount.
            details: Optional free-text note.
            existing_category_names: Category names to choose from; defaults to
                every stored category.

        Returns:
            Suggestions ordered by decreasing confidence. May be empty.
        """
        if existing_category_names is None:
            existing_category_names = [c.name for c in self.categories.find_all()]

        try:
            provider = self._get_provider()
        except ValueError as e:
            logger.error(f"Failed to initialize LLM provider: {e}")
            provider = None

        if provider is not None:
            suggestions = self._call_with_timeout(
                provider, description, amount, details, existing_category_names
            )
            if suggestions:
                return suggestions

        return self.local_suggestions(description)

    def _call_with_timeout(
        self, provider, description, amount, details, existing_category_names
    ) -> List[CategorySuggestion]:
        timeout = self.config.llm_timeout_seconds
        executor = ThreadPoolExecutor(max_workers=1)
        future = executor.submit(
            provider.suggest_category,
            description,
            amount,
            details,
            existing_category_names,
        )
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError:
            logger.warning(
                f"LLM suggestion timed out after {timeout}s, using local fallback"
            )
            return []
        except Exception as e:
            logger.warning(f"LLM suggestion failed, using local fallback: {e}")
            return []
        finally:
            # Do not wait for an abandoned call to finish
            executor.shutdown(wait=False, cancel_futures=True)

    def local_suggestions(self, description: str) -> List[CategorySuggestion]:
        """Suggest the category assigned by the stored rules, if any."""
        rule = self.rules.engine().match_rule(description)
        if rule is None:
            return []

        category = self.categories.find(rule.category_id)
        if category is None:
            return []

        return [
            CategorySuggestion(
                category=category.name,
                confidence=1.0,
                reasoning=f"Matches categorization rule {rule.pattern!r}",
            )
        ]
