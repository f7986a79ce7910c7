import io
from datetime import date
from decimal import Decimal

import pytest

from errors import NotFoundError, ReferentialIntegrityError, ValidationError
from models.transaction import SkippedDuplicate, Transaction
from services.duplicates import DuplicateDetector
from services.ingestion import IngestionService
from tests.helpers import draft, make_category, make_rule


class BrokenLookupStore:
    def find_all(self):
        raise RuntimeError("disk I/O error")


class TestIngestOne:
    """Tests for IngestionService.ingest_one."""

    def test_creates_transaction(self, services):
        """Test that a new draft is persisted and returned."""
        result = services.ingestion.ingest_one(draft("Coffee", "-3.50"))

        assert isinstance(result, Transaction)
        assert services.transactions.find(result.id) is not None

    def test_duplicate_returns_skipped_marker(self, services):
        """Test that a duplicate is not persisted."""
        services.ingestion.ingest_one(draft("Coffee", "-3.50"))

        result = services.ingestion.ingest_one(draft("Tea", "-3.50"))

        assert isinstance(result, SkippedDuplicate)
        assert result.description == "Tea"
        assert len(services.transactions.find_all()) == 1

    def test_reingesting_high_precision_amount_is_skipped(self, services):
        """Test that re-ingesting an amount REAL cannot hold exactly is a duplicate."""
        services.ingestion.ingest_one(draft("Fee", "-0.12345678901234567"))

        result = services.ingestion.ingest_one(draft("Fee", "-0.12345678901234567"))

        assert isinstance(result, SkippedDuplicate)

    def test_rule_sets_missing_category(self, services):
        """Test that a matching rule categorizes an uncategorized draft."""
        transport = make_category(services, "Transport")
        make_rule(services, "UBER", transport.id, priority=5)

        result = services.ingestion.ingest_one(draft("UBER TRIP 482", "-23.50"))

        assert result.category_id == transport.id

    def test_explicit_category_is_kept(self, services):
        """Test that rules never override a category given by the caller."""
        transport = make_category(services, "Transport")
        food = make_category(services, "Food")
        make_rule(services, "UBER", transport.id)

        result = services.ingestion.ingest_one(
            draft("UBER EATS", "-18.00", category_id=food.id)
        )

        assert result.category_id == food.id

    def test_no_rule_leaves_uncategorized(self, services):
        """Test that a draft no rule matches stays uncategorized."""
        result = services.ingestion.ingest_one(draft("Mystery shop"))

        assert result.category_id is None

    def test_invalid_draft_raises(self, services):
        """Test that invalid drafts are rejected before persistence."""
        with pytest.raises(ValidationError):
            services.ingestion.ingest_one(draft(description=""))

        assert services.transactions.find_all() == []

    def test_unknown_category_raises(self, services):
        """Test that a draft with a missing category is rejected."""
        with pytest.raises(ReferentialIntegrityError):
            services.ingestion.ingest_one(draft(category_id="missing"))

    def test_dedup_failure_does_not_block_ingestion(self, services):
        """Test that a failing duplicate check still lets the draft through."""
        pipeline = IngestionService(
            services.transactions,
            services.rules,
            DuplicateDetector(BrokenLookupStore()),
        )

        result = pipeline.ingest_one(draft())

        assert isinstance(result, Transaction)


class TestIngestBatch:
    """Tests for IngestionService.ingest_batch."""

    def test_ten_rows_with_one_duplicate(self, services):
        """Test that a pre-existing duplicate is skipped and order preserved."""
        services.transactions.create(draft("Existing", "-3.00", day=date(2024, 1, 3)))
        drafts = [
            draft(f"Row {n}", f"-{n}.00", day=date(2024, 1, n)) for n in range(1, 11)
        ]

        result = services.ingestion.ingest_batch(drafts)

        assert len(result.created) == 9
        assert result.skipped_count == 1
        assert result.failed_count == 0
        assert [t.description for t in result.created] == [
            f"Row {n}" for n in range(1, 11) if n != 3
        ]

    def test_order_preserved_across_chunks(self, services):
        """Test that results keep input order when drafts span several chunks."""
        assert services.ingestion.batch_size == 3
        drafts = [draft(f"Row {n}", f"-{n}") for n in range(1, 9)]

        result = services.ingestion.ingest_batch(drafts)

        assert [t.description for t in result.created] == [
            f"Row {n}" for n in range(1, 9)
        ]

    def test_duplicates_within_batch_are_skipped(self, services):
        """Test that a later draft duplicating an earlier one is skipped."""
        result = services.ingestion.ingest_batch(
            [draft("First", "-5"), draft("Second", "-5")]
        )

        assert [t.description for t in result.created] == ["First"]
        assert result.skipped_count == 1

    def test_failed_drafts_do_not_abort_batch(self, services):
        """Test that bad drafts are counted and the rest still ingested."""
        drafts = [
            draft("Good 1", "-1"),
            draft("", "-2"),
            draft("Bad category", "-3", category_id="missing"),
            draft("Good 2", "-4"),
        ]

        result = services.ingestion.ingest_batch(drafts)

        assert [t.description for t in result.created] == ["Good 1", "Good 2"]
        assert result.failed_count == 2
        assert result.skipped_count == 0
        assert result.total == 4

    def test_auto_categorized_descriptions(self, services):
        """Test that only rule-categorized transactions are reported."""
        food = make_category(services, "Food")
        travel = make_category(services, "Travel")
        make_rule(services, "TESCO", food.id)

        result = services.ingestion.ingest_batch(
            [
                draft("TESCO STORES", "-10"),
                draft("TESCO METRO", "-11", category_id=travel.id),
                draft("UNKNOWN", "-12"),
            ]
        )

        assert result.auto_categorized_descriptions == ["TESCO STORES"]

    def test_empty_batch(self, services):
        """Test that an empty batch produces an empty result."""
        result = services.ingestion.ingest_batch([])

        assert result.created == []
        assert result.total == 0


class TestImportCsv:
    """Tests for importing a CSV export end to end."""

    def test_rule_categorizes_imported_row(self, services):
        """Test that a CSV row is categorized by a matching rule."""
        transport = make_category(services, "Transport")
        make_rule(services, "UBER", transport.id, priority=5)
        source = io.StringIO(
            "Date,Description,Amount\n2024-01-05,UBER TRIP 482,-23.50\n"
        )

        result = services.ingestion.import_csv(source, source_file="bank.csv")

        transaction = result.created[0]
        assert transaction.category_id == transport.id
        assert transaction.amount == Decimal("-23.50")
        assert transaction.date == date(2024, 1, 5)
        assert transaction.source_file == "bank.csv"
        assert result.auto_categorized_descriptions == ["UBER TRIP 482"]

    def test_reimport_skips_everything(self, services):
        """Test that importing the same file twice creates nothing new."""
        content = (
            "Date,Description,Amount\n"
            "05/01/2024,Coffee,-3.50\n"
            "06/01/2024,Salary,2500.00\n"
        )

        first = services.ingestion.import_csv(io.StringIO(content))
        second = services.ingestion.import_csv(io.StringIO(content))

        assert len(first.created) == 2
        assert second.created == []
        assert second.skipped_count == 2

    def test_us_date_format(self, services):
        """Test that the date format hint orders ambiguous dates."""
        source = io.StringIO("Date,Description,Amount\n01/05/2024,Coffee,-3.50\n")

        result = services.ingestion.import_csv(source, date_format="US")

        assert result.created[0].date == date(2024, 1, 5)

    def test_year_first_export_matches_iso_reimport(self, services):
        """Test that a slash-separated year-first date dedups against ISO."""
        first = services.ingestion.import_csv(
            io.StringIO("Date,Description,Amount\n2024/01/05,Coffee,-3.50\n")
        )
        second = services.ingestion.import_csv(
            io.StringIO("Date,Description,Amount\n2024-01-05,Coffee,-3.50\n")
        )

        assert first.created[0].date == date(2024, 1, 5)
        assert second.skipped_count == 1


class TestUpdateReapplication:
    """Tests for re-applying rules when a category is cleared."""

    def test_clearing_category_reapplies_rules(self, services):
        """Test that a matching rule re-assigns the category in the same update."""
        transport = make_category(services, "Transport")
        other = make_category(services, "Other")
        created = services.ingestion.ingest_one(
            draft("UBER TRIP", "-9", category_id=other.id)
        )
        make_rule(services, "UBER", transport.id)

        updated = services.ingestion.update(created.id, {"category_id": None})

        assert updated.category_id == transport.id

    def test_clearing_uses_new_description(self, services):
        """Test that rules see the description as it is after the update."""
        transport = make_category(services, "Transport")
        other = make_category(services, "Other")
        make_rule(services, "TRAINLINE", transport.id)
        created = services.ingestion.ingest_one(
            draft("Ticket", "-30", category_id=other.id)
        )

        updated = services.ingestion.update(
            created.id, {"category_id": None, "description": "TRAINLINE.COM"}
        )

        assert updated.category_id == transport.id

    def test_clearing_without_match_is_idempotent(self, services):
        """Test that clearing twice with no matching rule stays uncategorized."""
        food = make_category(services, "Food")
        created = services.ingestion.ingest_one(draft(category_id=food.id))

        first = services.ingestion.update(created.id, {"category_id": None})
        second = services.ingestion.update(created.id, {"category_id": None})

        assert first.category_id is None
        assert second.category_id is None

    def test_other_updates_do_not_apply_rules(self, services):
        """Test that rules only run when the category is explicitly cleared."""
        transport = make_category(services, "Transport")
        created = services.ingestion.ingest_one(draft("Ticket", "-30"))
        make_rule(services, "UBER", transport.id)

        updated = services.ingestion.update(created.id, {"description": "UBER TRIP"})

        assert updated.category_id is None

    def test_update_not_found(self, services):
        """Test updating an unknown transaction through the pipeline."""
        with pytest.raises(NotFoundError):
            services.ingestion.update("missing", {"category_id": None})


class TestUpdateMany:
    """Tests for applying one patch to several transactions."""

    def test_assigns_category_to_all(self, services):
        """Test that every listed transaction gets the category, in order."""
        food = make_category(services, "Food")
        first = services.ingestion.ingest_one(draft("Lunch", "-8"))
        second = services.ingestion.ingest_one(draft("Dinner", "-21"))

        result = services.ingestion.update_many(
            [second.id, first.id], {"category_id": food.id}
        )

        assert [t.id for t in result.updated] == [second.id, first.id]
        assert all(t.category_id == food.id for t in result.updated)
        assert result.failed == {}
        assert services.transactions.count_uncategorized() == 0

    def test_clearing_reapplies_rules_per_transaction(self, services):
        """Test that clearing in bulk re-resolves each transaction on its own."""
        transport = make_category(services, "Transport")
        other = make_category(services, "Other")
        uber = services.ingestion.ingest_one(
            draft("UBER TRIP", "-9", category_id=other.id)
        )
        cinema = services.ingestion.ingest_one(
            draft("CINEMA", "-12", category_id=other.id)
        )
        make_rule(services, "UBER", transport.id)

        result = services.ingestion.update_many(
            [uber.id, cinema.id], {"category_id": None}
        )

        categories = {t.id: t.category_id for t in result.updated}
        assert categories == {uber.id: transport.id, cinema.id: None}

    def test_failure_does_not_abort_rest(self, services):
        """Test that an unknown ID is reported and the others still update."""
        food = make_category(services, "Food")
        created = services.ingestion.ingest_one(draft("Lunch", "-8"))

        result = services.ingestion.update_many(
            ["missing", created.id], {"category_id": food.id}
        )

        assert [t.id for t in result.updated] == [created.id]
        assert list(result.failed) == ["missing"]
        assert services.transactions.find(created.id).category_id == food.id

    def test_unknown_category_fails_each(self, services):
        """Test that a patch naming an unknown category fails per transaction."""
        created = services.ingestion.ingest_one(draft("Lunch", "-8"))

        result = services.ingestion.update_many([created.id], {"category_id": "nope"})

        assert result.updated == []
        assert created.id in result.failed

    def test_invalid_patch_raises(self, services):
        """Test that a malformed patch is rejected before any update."""
        created = services.ingestion.ingest_one(draft("Lunch", "-8"))

        with pytest.raises(ValidationError):
            services.ingestion.update_many([created.id], {"amount": None})

    def test_repeated_ids_updated_once(self, services):
        """Test that an ID listed twice is only updated once."""
        food = make_category(services, "Food")
        created = services.ingestion.ingest_one(draft("Lunch", "-8"))

        result = services.ingestion.update_many(
            [created.id, created.id], {"category_id": food.id}
        )

        assert len(result.updated) == 1
