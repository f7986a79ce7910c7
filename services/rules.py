"""Categorization rule service for database operations."""

import re
import uuid
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional, Union

from categorization import RuleEngine
from errors import NotFoundError, ReferentialIntegrityError, ValidationError
from models.rule import CategorizationRule, compile_pattern
from schemas import RuleCreateInput, RuleUpdateInput, validate_input
from logger import get_logger

logger = get_logger()

_RULE_SELECT_FIELDS = """id, pattern, is_regex, description, priority, is_enabled,
       category_id, created_at, updated_at"""

# Highest priority first, then insertion order
_RULE_ORDER = "ORDER BY priority DESC, rowid ASC"


class RuleService:
    """Service for managing categorization rules and applying them."""

    def __init__(self, db_manager, categories):
        """Initialize the rule service.

        Args:
            db_manager: Database manager instance for database operations.
            categories: CategoryService used to check category references.
        """
        self.db_manager = db_manager
        self.categories = categories

    def find_all(self) -> List[CategorizationRule]:
        """Get all rules, highest priority first (ties in creation order)."""
        return self._query(f"SELECT {_RULE_SELECT_FIELDS} FROM categorization_rules {_RULE_ORDER}")

    def find_enabled(self) -> List[CategorizationRule]:
        """Get enabled rules in evaluation order."""
        return self._query(
            f"SELECT {_RULE_SELECT_FIELDS} FROM categorization_rules "
            f"WHERE is_enabled = 1 {_RULE_ORDER}"
        )

    def find_by_category(self, category_id: str) -> List[CategorizationRule]:
        """Get the rules that assign a given category."""
        return self._query(
            f"SELECT {_RULE_SELECT_FIELDS} FROM categorization_rules "
            f"WHERE category_id = ? {_RULE_ORDER}",
            (category_id,),
        )

    def find(self, rule_id: str) -> Optional[CategorizationRule]:
        """Get a single rule by ID.

        Args:
            rule_id: The rule ID to find.

        Returns:
            CategorizationRule if found, None otherwise.
        """
        rules = self._query(
            f"SELECT {_RULE_SELECT_FIELDS} FROM categorization_rules WHERE id = ?",
            (rule_id,),
        )
        return rules[0] if rules else None

    def create(
        self, data: Union[RuleCreateInput, Mapping[str, Any]]
    ) -> CategorizationRule:
        """Create a new categorization rule.

        Args:
            data: Rule fields; a suggestion from categorization.suggest_rule
                can be passed as-is.

        Returns:
            The created rule as stored.

        Raises:
            ValidationError: If the input is invalid or the regex does not compile.
            ReferentialIntegrityError: If the category does not exist.
        """
        rule = validate_input(RuleCreateInput, data)
        self._check_pattern(rule.pattern, rule.is_regex)
        self._check_category(rule.category_id)

        rule_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc).isoformat()

        with self.db_manager.connect() as conn:
            conn.execute(
                f"""
                INSERT INTO categorization_rules ({_RULE_SELECT_FIELDS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    rule_id,
                    rule.pattern,
                    1 if rule.is_regex else 0,
                    rule.description,
                    rule.priority,
                    1 if rule.is_enabled else 0,
                    rule.category_id,
                    now,
                    now,
                ),
            )
            conn.commit()

        logger.info(f"Created rule {rule_id} ({rule.pattern!r} -> {rule.category_id})")
        return self.find(rule_id)

    def update(
        self, rule_id: str, patch: Union[RuleUpdateInput, Mapping[str, Any]]
    ) -> CategorizationRule:
        """Update an existing rule.

        Args:
            rule_id: The rule ID to update.
            patch: Fields to change; omitted fields are left as they are.

        Returns:
            The updated rule.

        Raises:
            ValidationError: If the patch is invalid or leaves an invalid regex.
            NotFoundError: If no rule has this ID.
            ReferentialIntegrityError: If the new category does not exist.
        """
        changes = validate_input(RuleUpdateInput, patch).changes()

        current = self.find(rule_id)
        if current is None:
            raise NotFoundError("Categorization rule", rule_id)

        self._check_pattern(
            changes.get("pattern", current.pattern),
            changes.get("is_regex", current.is_regex),
        )
        if "category_id" in changes:
            self._check_category(changes["category_id"])

        for flag in ("is_regex", "is_enabled"):
            if flag in changes:
                changes[flag] = 1 if changes[flag] else 0
        changes["updated_at"] = datetime.now(timezone.utc).isoformat()

        set_clause = ", ".join(f"{field} = ?" for field in changes)
        with self.db_manager.connect() as conn:
            conn.execute(
                f"UPDATE categorization_rules SET {set_clause} WHERE id = ?",
                (*changes.values(), rule_id),
            )
            conn.commit()

        return self.find(rule_id)

    def delete(self, rule_id: str) -> CategorizationRule:
        """Delete a rule by ID.

        Returns:
            The deleted rule.

        Raises:
            NotFoundError: If no rule has this ID.
        """
        rule = self.find(rule_id)
        if rule is None:
            raise NotFoundError("Categorization rule", rule_id)

        with self.db_manager.connect() as conn:
            conn.execute("DELETE FROM categorization_rules WHERE id = ?", (rule_id,))
            conn.commit()

        return rule

    def engine(self) -> RuleEngine:
        """Build a rule engine over the currently enabled rules."""
        return RuleEngine(self.find_enabled())

    def apply(self, transaction) -> Optional[str]:
        """Find the category the stored rules assign to a transaction.

        Args:
            transaction: Anything with a description (Transaction, draft, str).

        Returns:
            The category ID of the first matching rule, or None.
        """
        engine = self.engine()
        if engine.invalid_rule_ids:
            logger.warning(
                f"{len(engine.invalid_rule_ids)} rule(s) skipped due to invalid patterns"
            )
        return engine.match(transaction)

    def _check_category(self, category_id: str) -> None:
        if self.categories.find(category_id) is None:
            raise ReferentialIntegrityError(
                f"Category with id {category_id} does not exist"
            )

    @staticmethod
    def _check_pattern(pattern: str, is_regex: bool) -> None:
        try:
            compile_pattern(pattern, is_regex)
        except re.error as e:
            raise ValidationError(f"Invalid regular expression {pattern!r}: {e}") from e

    def _query(self, query: str, params=()) -> List[CategorizationRule]:
        with self.db_manager.connect() as conn:
            cursor = conn.execute(query, params)
            return [self._row_to_rule(row) for row in cursor.fetchall()]

    def _row_to_rule(self, row: tuple) -> CategorizationRule:
        """Convert a database row to a CategorizationRule object."""
        return CategorizationRule(
            id=row[0],
            pattern=row[1],
            is_regex=bool(row[2]),
            description=row[3],
            priority=row[4],
            is_enabled=bool(row[5]),
            category_id=row[6],
            created_at=datetime.fromisoformat(row[7]),
            updated_at=datetime.fromisoformat(row[8]),
        )
