from datetime import date, datetime
from decimal import Decimal

import pytest

from errors import NotFoundError, ReferentialIntegrityError, ValidationError
from tests.helpers import draft, make_category


class TestTransactionCreate:
    """Tests for TransactionService.create."""

    def test_create_assigns_id_and_timestamps(self, services):
        """Test that creating a transaction assigns id and timestamps."""
        transaction = services.transactions.create(
            draft("Tesco Stores", "-12.40", details="weekly shop", source_file="a.csv")
        )

        assert transaction.id
        assert transaction.date == date(2024, 1, 15)
        assert transaction.description == "Tesco Stores"
        assert transaction.amount == Decimal("-12.40")
        assert transaction.details == "weekly shop"
        assert transaction.source_file == "a.csv"
        assert transaction.is_unexpected is False
        assert transaction.category_id is None
        assert transaction.category is None
        assert transaction.created_at == transaction.updated_at

    def test_create_ids_are_unique(self, services):
        """Test that every created transaction gets its own id."""
        first = services.transactions.create(draft(amount="-1"))
        second = services.transactions.create(draft(amount="-2"))

        assert first.id != second.id

    def test_create_truncates_datetime_to_date(self, services):
        """Test that time of day is dropped."""
        transaction = services.transactions.create(
            draft(day=datetime(2024, 3, 1, 18, 45))
        )

        assert transaction.date == date(2024, 3, 1)

    def test_create_accepts_iso_date_string(self, services):
        """Test that an ISO date string is accepted."""
        transaction = services.transactions.create(draft(day="2024-02-29"))

        assert transaction.date == date(2024, 2, 29)

    def test_create_with_category_populates_category(self, services):
        """Test that the category is loaded alongside the transaction."""
        category = make_category(services, "Groceries")

        transaction = services.transactions.create(draft(category_id=category.id))

        assert transaction.category_id == category.id
        assert transaction.category.name == "Groceries"

    def test_create_unknown_category(self, services):
        """Test that an unknown category id is rejected."""
        with pytest.raises(ReferentialIntegrityError):
            services.transactions.create(draft(category_id="missing"))

        assert services.transactions.find_all() == []

    def test_create_requires_description(self, services):
        """Test that an empty description is rejected."""
        with pytest.raises(ValidationError):
            services.transactions.create(draft(description=""))

    def test_create_rejects_non_finite_amount(self, services):
        """Test that NaN amounts are rejected."""
        with pytest.raises(ValidationError):
            services.transactions.create(draft(amount="NaN"))

    def test_create_rejects_non_mapping(self, services):
        """Test that a payload must be a mapping or a schema instance."""
        with pytest.raises(ValidationError):
            services.transactions.create(["not", "a", "draft"])


class TestTransactionUpdate:
    """Tests for TransactionService.update."""

    def test_update_changes_given_fields_only(self, services):
        """Test that omitted fields are untouched and updated_at moves."""
        created = services.transactions.create(draft("Cafe", details="latte"))

        updated = services.transactions.update(
            created.id, {"description": "Cafe Nero", "amount": Decimal("-4.10")}
        )

        assert updated.id == created.id
        assert updated.description == "Cafe Nero"
        assert updated.amount == Decimal("-4.10")
        assert updated.details == "latte"
        assert updated.created_at == created.created_at
        assert updated.updated_at >= created.updated_at

    def test_update_clears_category(self, services):
        """Test that an explicit None clears the category."""
        category = make_category(services)
        created = services.transactions.create(draft(category_id=category.id))

        updated = services.transactions.update(created.id, {"category_id": None})

        assert updated.category_id is None
        assert updated.category is None

    def test_update_unknown_category(self, services):
        """Test that updating to an unknown category is rejected."""
        created = services.transactions.create(draft())

        with pytest.raises(ReferentialIntegrityError):
            services.transactions.update(created.id, {"category_id": "missing"})

    def test_update_cannot_clear_required_field(self, services):
        """Test that required fields cannot be set to None."""
        created = services.transactions.create(draft())

        with pytest.raises(ValidationError):
            services.transactions.update(created.id, {"amount": None})

    def test_update_rejects_id_change(self, services):
        """Test that the id is not an updatable field."""
        created = services.transactions.create(draft())

        with pytest.raises(ValidationError):
            services.transactions.update(created.id, {"id": "other"})

    def test_update_not_found(self, services):
        """Test updating an unknown transaction."""
        with pytest.raises(NotFoundError):
            services.transactions.update("missing", {"description": "x"})


class TestTransactionDelete:
    """Tests for TransactionService.delete."""

    def test_delete_returns_deleted(self, services):
        """Test that delete returns the removed transaction."""
        created = services.transactions.create(draft())

        deleted = services.transactions.delete(created.id)

        assert deleted.id == created.id
        assert services.transactions.find(created.id) is None

    def test_delete_not_found(self, services):
        """Test deleting an unknown transaction."""
        with pytest.raises(NotFoundError):
            services.transactions.delete("missing")


class TestTransactionQueries:
    """Tests for the transaction read operations."""

    def test_find_not_found(self, services):
        """Test that an unknown id returns None."""
        assert services.transactions.find("missing") is None

    def test_find_all_newest_first(self, services):
        """Test ordering by date descending."""
        services.transactions.create(draft("old", "-1", day=date(2024, 1, 1)))
        services.transactions.create(draft("new", "-2", day=date(2024, 3, 1)))
        services.transactions.create(draft("mid", "-3", day=date(2024, 2, 1)))

        descriptions = [t.description for t in services.transactions.find_all()]

        assert descriptions == ["new", "mid", "old"]

    def test_uncategorized(self, services):
        """Test listing and counting uncategorized transactions."""
        category = make_category(services)
        services.transactions.create(draft("a", "-1", category_id=category.id))
        services.transactions.create(draft("b", "-2"))
        services.transactions.create(draft("c", "-3"))

        uncategorized = services.transactions.find_uncategorized()

        assert {t.description for t in uncategorized} == {"b", "c"}
        assert services.transactions.count_uncategorized() == 2

    def test_find_by_date_range_inclusive(self, services):
        """Test that both ends of the range are included."""
        for day in (1, 10, 20, 31):
            services.transactions.create(
                draft(f"day {day}", f"-{day}", day=date(2024, 1, day))
            )

        found = services.transactions.find_by_date_range(
            date(2024, 1, 10), date(2024, 1, 20)
        )

        assert [t.description for t in found] == ["day 20", "day 10"]

    def test_find_by_date_range_with_categories(self, services):
        """Test filtering the range by category."""
        food = make_category(services, "Food")
        travel = make_category(services, "Travel")
        services.transactions.create(draft("lunch", "-1", category_id=food.id))
        services.transactions.create(draft("train", "-2", category_id=travel.id))
        services.transactions.create(draft("other", "-3"))

        found = services.transactions.find_by_date_range(
            date(2024, 1, 1), date(2024, 12, 31), category_ids=[food.id]
        )

        assert [t.description for t in found] == ["lunch"]
