import pytest

from errors import NotFoundError, ReferentialIntegrityError, ValidationError
from tests.helpers import make_category, make_rule


@pytest.fixture
def groceries(services):
    return make_category(services, "Groceries")


class TestRuleCreate:
    """Tests for RuleService.create."""

    def test_create_with_defaults(self, services, groceries):
        """Test creating a literal rule with default flags."""
        rule = make_rule(services, "TESCO", groceries.id)

        assert rule.id
        assert rule.pattern == "TESCO"
        assert rule.is_regex is False
        assert rule.priority == 0
        assert rule.is_enabled is True
        assert rule.category_id == groceries.id
        assert rule.description is None

    def test_create_regex_rule(self, services, groceries):
        """Test creating a regex rule."""
        rule = make_rule(
            services, r"^TESCO\s+STORES", groceries.id, is_regex=True, priority=7
        )

        assert rule.is_regex is True
        assert rule.priority == 7

    def test_create_rejects_invalid_regex(self, services, groceries):
        """Test that a regex that does not compile is rejected."""
        with pytest.raises(ValidationError, match="Invalid regular expression"):
            make_rule(services, "([unclosed", groceries.id, is_regex=True)

    def test_create_allows_regex_chars_in_literal(self, services, groceries):
        """Test that literal patterns are never compiled."""
        rule = make_rule(services, "([unclosed", groceries.id)

        assert rule.pattern == "([unclosed"

    def test_create_requires_category(self, services):
        """Test that a rule without a category is rejected."""
        with pytest.raises(ValidationError):
            services.rules.create({"pattern": "TESCO"})

    def test_create_unknown_category(self, services):
        """Test that a rule must point to an existing category."""
        with pytest.raises(ReferentialIntegrityError):
            make_rule(services, "TESCO", "missing")

        assert services.rules.find_all() == []

    def test_create_requires_pattern(self, services, groceries):
        """Test that an empty pattern is rejected."""
        with pytest.raises(ValidationError):
            make_rule(services, "", groceries.id)


class TestRuleQueries:
    """Tests for the rule read operations."""

    def test_find_all_by_priority_then_insertion(self, services, groceries):
        """Test evaluation order: priority descending, then creation order."""
        make_rule(services, "low", groceries.id, priority=1)
        make_rule(services, "tie-a", groceries.id, priority=5)
        make_rule(services, "high", groceries.id, priority=9)
        make_rule(services, "tie-b", groceries.id, priority=5)

        patterns = [r.pattern for r in services.rules.find_all()]

        assert patterns == ["high", "tie-a", "tie-b", "low"]

    def test_find_enabled(self, services, groceries):
        """Test that disabled rules are excluded."""
        make_rule(services, "on", groceries.id)
        make_rule(services, "off", groceries.id, is_enabled=False)

        assert [r.pattern for r in services.rules.find_enabled()] == ["on"]

    def test_find_by_category(self, services, groceries):
        """Test listing rules for one category."""
        travel = make_category(services, "Travel")
        make_rule(services, "TESCO", groceries.id)
        make_rule(services, "TRAINLINE", travel.id)

        rules = services.rules.find_by_category(travel.id)

        assert [r.pattern for r in rules] == ["TRAINLINE"]

    def test_find_not_found(self, services):
        """Test that an unknown id returns None."""
        assert services.rules.find("missing") is None


class TestRuleUpdate:
    """Tests for RuleService.update."""

    def test_update_fields(self, services, groceries):
        """Test updating priority and enabled flag."""
        rule = make_rule(services, "TESCO", groceries.id)

        updated = services.rules.update(rule.id, {"priority": 3, "is_enabled": False})

        assert updated.priority == 3
        assert updated.is_enabled is False
        assert updated.pattern == "TESCO"
        assert updated.updated_at >= rule.updated_at

    def test_update_to_regex_validates_existing_pattern(self, services, groceries):
        """Test that switching to regex checks the stored pattern compiles."""
        rule = make_rule(services, "([unclosed", groceries.id)

        with pytest.raises(ValidationError):
            services.rules.update(rule.id, {"is_regex": True})

        assert services.rules.find(rule.id).is_regex is False

    def test_update_category(self, services, groceries):
        """Test moving a rule to another category."""
        travel = make_category(services, "Travel")
        rule = make_rule(services, "TESCO", groceries.id)

        updated = services.rules.update(rule.id, {"category_id": travel.id})

        assert updated.category_id == travel.id

    def test_update_unknown_category(self, services, groceries):
        """Test that a rule cannot be pointed at a missing category."""
        rule = make_rule(services, "TESCO", groceries.id)

        with pytest.raises(ReferentialIntegrityError):
            services.rules.update(rule.id, {"category_id": "missing"})

    def test_update_cannot_clear_category(self, services, groceries):
        """Test that the category is required."""
        rule = make_rule(services, "TESCO", groceries.id)

        with pytest.raises(ValidationError):
            services.rules.update(rule.id, {"category_id": None})

    def test_update_not_found(self, services):
        """Test updating an unknown rule."""
        with pytest.raises(NotFoundError):
            services.rules.update("missing", {"priority": 1})


class TestRuleDeleteAndApply:
    """Tests for deleting and applying rules."""

    def test_delete_returns_deleted(self, services, groceries):
        """Test that delete returns the removed rule."""
        rule = make_rule(services, "TESCO", groceries.id)

        deleted = services.rules.delete(rule.id)

        assert deleted.id == rule.id
        assert services.rules.find(rule.id) is None

    def test_delete_not_found(self, services):
        """Test deleting an unknown rule."""
        with pytest.raises(NotFoundError):
            services.rules.delete("missing")

    def test_apply_uses_stored_rules(self, services, groceries):
        """Test that apply matches against the enabled stored rules."""
        travel = make_category(services, "Travel")
        make_rule(services, "UBER", travel.id, priority=1)
        make_rule(services, "UBER EATS", groceries.id, priority=5)

        assert services.rules.apply("UBER EATS LONDON") == groceries.id
        assert services.rules.apply("UBER TRIP") == travel.id
        assert services.rules.apply("NETFLIX") is None

    def test_apply_skips_invalid_stored_regex(self, services, groceries, test_db):
        """Test that a regex corrupted in storage is skipped, not fatal."""
        bad = make_rule(services, "TESCO", groceries.id, priority=9)
        make_rule(services, "TESCO", groceries.id)
        test_db.execute(
            "UPDATE categorization_rules SET pattern = ?, is_regex = 1 WHERE id = ?",
            ("([unclosed", bad.id),
        )

        engine = services.rules.engine()

        assert engine.invalid_rule_ids == [bad.id]
        assert services.rules.apply("TESCO STORES") == groceries.id
