"""Transaction ingestion pipeline.

Every way a transaction enters the ledger (manual entry, CSV import) goes
through the same steps: skip duplicates, auto-categorize from rules when no
category was given, then persist. Clearing a transaction's category through
``update`` re-applies the rules in the same call.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, TextIO, Tuple, Union

import ingestion as csv_ingestion
from errors import LedgerError
from models.transaction import SkippedDuplicate, Transaction
from schemas import TransactionCreateInput, TransactionUpdateInput, validate_input
from logger import get_logger

logger = get_logger()

DraftInput = Union[TransactionCreateInput, Mapping[str, Any]]


@dataclass
class IngestResult:
    """Outcome of ingesting a batch of drafts.

    Attributes:
        created: Persisted transactions, in input order.
        skipped_count: Drafts recognised as duplicates and not persisted.
        failed_count: Drafts that raised an error and were dropped.
        auto_categorized_descriptions: Descriptions of created transactions
            whose category was assigned by a rule.
    """

    created: List[Transaction] = field(default_factory=list)
    skipped_count: int = 0
    failed_count: int = 0
    auto_categorized_descriptions: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.created) + self.skipped_count + self.failed_count


@dataclass
class BatchUpdateResult:
    """Outcome of applying one patch to several transactions.

    Attributes:
        updated: Updated transactions, in the order their IDs were given.
        failed: Error message per transaction ID that could not be updated.
    """

    updated: List[Transaction] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)


class IngestionService:
    """Orchestrates duplicate skipping, rule application and persistence."""

    def __init__(self, transactions, rules, duplicates, batch_size: int = 50):
        """Initialize the ingestion service.

        Args:
            transactions: TransactionService used for persistence.
            rules: RuleService used for auto-categorization.
            duplicates: DuplicateDetector used to skip re-imported rows.
            batch_size: How many drafts are handed to the store per chunk.
        """
        self.transactions = transactions
        self.rules = rules
        self.duplicates = duplicates
        self.batch_size = max(1, batch_size)

    def ingest_one(self, draft: DraftInput) -> Union[Transaction, SkippedDuplicate]:
        """Ingest a single draft.

        Args:
            draft: Transaction fields (validated here).

        Returns:
            The persisted Transaction, or a SkippedDuplicate marker if a
            transaction with the same day and amount is already stored.

        Raises:
            ValidationError: If the draft is invalid.
            ReferentialIntegrityError: If the draft names an unknown category.
        """
        result, _ = self._ingest(draft)
        return result

    def ingest_batch(self, drafts: Iterable[DraftInput]) -> IngestResult:
        """Ingest many drafts, tolerating individual failures.

        Drafts are processed in input order, in chunks of batch_size. A
        draft that fails is logged and counted, never retried, and does not
        stop the rest of the batch.

        Args:
            drafts: Drafts to ingest.

        Returns:
            IngestResult with created transactions (input order) and counts.
        """
        drafts = list(drafts)
        result = IngestResult()

        for start in range(0, len(drafts), self.batch_size):
            chunk = drafts[start : start + self.batch_size]
            logger.debug(
                f"Ingesting drafts {start + 1}-{start + len(chunk)} of {len(drafts)}"
            )

            for offset, draft in enumerate(chunk):
                position = start + offset + 1
                try:
                    outcome, auto_categorized = self._ingest(draft)
                except Exception as e:
                    logger.error(f"Failed to ingest draft {position}: {e}")
                    result.failed_count += 1
                    continue

                if isinstance(outcome, SkippedDuplicate):
                    result.skipped_count += 1
                    continue

                result.created.append(outcome)
                if auto_categorized:
                    result.auto_categorized_descriptions.append(outcome.description)

        logger.info(
            f"Ingested {len(result.created)} transaction(s): "
            f"{result.skipped_count} duplicate(s) skipped, "
            f"{result.failed_count} failed, "
            f"{len(result.auto_categorized_descriptions)} auto-categorized"
        )
        return result

    def import_csv(
        self,
        source: TextIO,
        mapping: Optional[csv_ingestion.ColumnMapping] = None,
        source_file: Optional[str] = None,
        date_format: str = "UK",
    ) -> IngestResult:
        """Parse a CSV export and ingest its rows.

        Args:
            source: Open text stream of the CSV file.
            mapping: Column mapping; detected from the header when None.
            source_file: File name recorded on each transaction.
            date_format: Date ordering used when the mapping is detected.

        Returns:
            IngestResult for the mapped rows. Rows that could not be mapped
            are logged by the CSV layer and are not part of the result.
        """
        drafts = csv_ingestion.ingest(source, mapping, source_file, date_format)
        return self.ingest_batch(drafts)

    def update(
        self,
        transaction_id: str,
        patch: Union[TransactionUpdateInput, Mapping[str, Any]],
    ) -> Transaction:
        """Update a transaction, re-applying rules when its category is cleared.

        When the patch explicitly sets category_id to None, the rules are
        matched against the transaction as it will look after the update; a
        match is stored in the same update instead of leaving it uncategorized.

        Args:
            transaction_id: ID of the transaction to update.
            patch: Fields to change.

        Returns:
            The updated Transaction.

        Raises:
            ValidationError: If the patch is invalid.
            NotFoundError: If no transaction has this ID.
        """
        update = validate_input(TransactionUpdateInput, patch)
        changes = update.changes()

        if "category_id" in changes and changes["category_id"] is None:
            current = self.transactions.find(transaction_id)
            if current is not None:
                description = changes.get("description", current.description)
                category_id = self.rules.apply(description)
                if category_id:
                    logger.info(
                        f"Rule re-assigned category {category_id} to transaction {transaction_id}"
                    )
                    changes["category_id"] = category_id

        return self.transactions.update(transaction_id, changes)

    def update_many(
        self,
        transaction_ids: Iterable[str],
        patch: Union[TransactionUpdateInput, Mapping[str, Any]],
    ) -> BatchUpdateResult:
        """Apply the same patch to several transactions.

        Each transaction goes through ``update``, so clearing the category
        re-applies rules per transaction. A transaction that fails is
        recorded in the result and the rest are still updated.

        Raises:
            ValidationError: If the patch itself is invalid; nothing is updated.
        """
        patch = validate_input(TransactionUpdateInput, patch)
        result = BatchUpdateResult()

        for transaction_id in dict.fromkeys(transaction_ids):
            try:
                result.updated.append(self.update(transaction_id, patch))
            except LedgerError as e:
                logger.error(f"Failed to update transaction {transaction_id}: {e}")
                result.failed[transaction_id] = str(e)

        logger.info(
            f"Updated {len(result.updated)} transaction(s), {len(result.failed)} failed"
        )
        return result

    def _ingest(self, draft: DraftInput) -> Tuple[Union[Transaction, SkippedDuplicate], bool]:
        draft = validate_input(TransactionCreateInput, draft)

        if self.duplicates.is_duplicate(draft):
            logger.info(
                f"Skipping duplicate transaction: {draft.date} {draft.amount} {draft.description}"
            )
            return SkippedDuplicate(draft=draft), False

        auto_categorized = False
        if draft.category_id is None:
            category_id = self.rules.apply(draft)
            if category_id:
                draft = draft.model_copy(update={"category_id": category_id})
                auto_categorized = True

        return self.transactions.create(draft), auto_categorized
