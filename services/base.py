"""Base services container for dependency injection."""

from config import Config
from db.manager import DatabaseManager


class Services:
    """Container for all application services.

    This class provides a centralized way to access all services and makes
    it easy to inject mock services for testing.

    Args:
        config: Application configuration object.
        db_manager: Optional database manager for testing. If provided, config is ignored.
        llm_provider: Optional LLM provider for testing. If None, one is built from config
                      when the first suggestion is requested.
    """

    def __init__(self, config: Config, db_manager=None, llm_provider=None):
        """Initialize services with configuration.

        Args:
            config: Config object containing application configuration.
            db_manager: Optional database manager for dependency injection (testing).
                       If None, creates DatabaseManager from config.
            llm_provider: Optional LLM provider for dependency injection (testing).
        """
        self.config = config
        self.db_manager = db_manager or DatabaseManager(config)

        # Lazy import to avoid circular dependencies
        from services.transactions import TransactionService
        from services.categories import CategoryService
        from services.rules import RuleService
        from services.duplicates import DuplicateDetector
        from services.ingestion import IngestionService
        from services.suggestions import SuggestionService

        self.transactions = TransactionService(self.db_manager)
        self.categories = CategoryService(self.db_manager)
        self.rules = RuleService(self.db_manager, self.categories)
        self.duplicates = DuplicateDetector(self.transactions)
        self.ingestion = IngestionService(
            self.transactions,
            self.rules,
            self.duplicates,
            batch_size=config.ingest_batch_size,
        )
        self.suggestions = SuggestionService(
            config, self.rules, self.categories, provider=llm_provider
        )
