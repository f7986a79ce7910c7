"""Category service for database operations."""

import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable, List, Mapping, Optional, Union

from errors import NotFoundError, ReferentialIntegrityError, ValidationError
from models.category import Category, SpendingType
from schemas import CategoryCreateInput, CategoryUpdateInput, validate_input
from logger import get_logger

logger = get_logger()

_CATEGORY_SELECT_FIELDS = (
    "id, name, color, spending_type, description, created_at, updated_at"
)


def row_to_category(row: tuple) -> Category:
    """Convert a database row (in _CATEGORY_SELECT_FIELDS order) to a Category."""
    return Category(
        id=row[0],
        name=row[1],
        color=row[2],
        spending_type=SpendingType(row[3]),
        description=row[4],
        created_at=datetime.fromisoformat(row[5]),
        updated_at=datetime.fromisoformat(row[6]),
    )


class CategoryService:
    """Service for managing categories."""

    def __init__(self, db_manager):
        """Initialize the category service.

        Args:
            db_manager: Database manager instance for database operations.
        """
        self.db_manager = db_manager

    def find_all(self) -> List[Category]:
        """Get all categories from the database.

        Returns:
            List of Category objects, ordered by name.
        """
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                f"SELECT {_CATEGORY_SELECT_FIELDS} FROM categories ORDER BY name"
            )
            return [row_to_category(row) for row in cursor.fetchall()]

    def find(self, category_id: str) -> Optional[Category]:
        """Get a single category by ID.

        Args:
            category_id: The category ID to find.

        Returns:
            Category object if found, None otherwise.
        """
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                f"SELECT {_CATEGORY_SELECT_FIELDS} FROM categories WHERE id = ?",
                (category_id,),
            )
            row = cursor.fetchone()

            if row:
                return row_to_category(row)
            return None

    def find_by_name(self, name: str) -> Optional[Category]:
        """Get a single category by name (case-sensitive).

        Args:
            name: The category name to find.

        Returns:
            Category object if found, None otherwise.
        """
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                f"SELECT {_CATEGORY_SELECT_FIELDS} FROM categories WHERE name = ?",
                (name,),
            )
            row = cursor.fetchone()

            if row:
                return row_to_category(row)
            return None

    def create(
        self, data: Union[CategoryCreateInput, Mapping[str, Any]]
    ) -> Category:
        """Create a new category.

        Args:
            data: Category fields (name required, color/spending_type/description optional).

        Returns:
            The created Category object as stored.

        Raises:
            ValidationError: If the input is invalid or the name is already taken.
        """
        return self.create_many([data])[0]

    def create_many(
        self, items: Iterable[Union[CategoryCreateInput, Mapping[str, Any]]]
    ) -> List[Category]:
        """Create several categories, all or nothing.

        Args:
            items: Category payloads.

        Returns:
            The created categories, in input order.

        Raises:
            ValidationError: If any payload is invalid or any name is taken.
                No category is created in that case.
        """
        inputs = [validate_input(CategoryCreateInput, item) for item in items]
        if not inputs:
            return []

        now = datetime.now(timezone.utc).isoformat()
        ids = [str(uuid.uuid4()) for _ in inputs]

        with self.db_manager.connect() as conn:
            try:
                conn.executemany(
                    f"""
                    INSERT INTO categories ({_CATEGORY_SELECT_FIELDS})
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    [
                        (
                            category_id,
                            item.name,
                            item.color,
                            item.spending_type.value,
                            item.description,
                            now,
                            now,
                        )
                        for category_id, item in zip(ids, inputs)
                    ],
                )
                conn.commit()
            except sqlite3.IntegrityError as e:
                conn.rollback()
                names = ", ".join(item.name for item in inputs)
                raise ValidationError(
                    f"Category name already exists (one of: {names})"
                ) from e

        logger.info(f"Created {len(ids)} category(ies)")
        return [self.find(category_id) for category_id in ids]

    def update(
        self, category_id: str, patch: Union[CategoryUpdateInput, Mapping[str, Any]]
    ) -> Category:
        """Update an existing category.

        Args:
            category_id: The category ID to update.
            patch: Fields to change; omitted fields are left as they are.

        Returns:
            The updated Category object.

        Raises:
            ValidationError: If the patch is invalid or renames onto a taken name.
            NotFoundError: If no category has this ID.
        """
        changes = validate_input(CategoryUpdateInput, patch).changes()

        if self.find(category_id) is None:
            raise NotFoundError("Category", category_id)

        if "spending_type" in changes:
            changes["spending_type"] = changes["spending_type"].value
        changes["updated_at"] = datetime.now(timezone.utc).isoformat()

        set_clause = ", ".join(f"{field} = ?" for field in changes)

        with self.db_manager.connect() as conn:
            try:
                conn.execute(
                    f"UPDATE categories SET {set_clause} WHERE id = ?",
                    (*changes.values(), category_id),
                )
                conn.commit()
            except sqlite3.IntegrityError as e:
                conn.rollback()
                raise ValidationError(
                    f"Category name '{changes.get('name')}' already exists"
                ) from e

        return self.find(category_id)

    def delete(self, category_id: str) -> Category:
        """Delete a category by ID.

        Args:
            category_id: The category ID to delete.

        Returns:
            The deleted Category.

        Raises:
            NotFoundError: If no category has this ID.
            ReferentialIntegrityError: If transactions or rules still reference it.
        """
        category = self.find(category_id)
        if category is None:
            raise NotFoundError("Category", category_id)

        with self.db_manager.connect() as conn:
            transaction_count = conn.execute(
                "SELECT COUNT(*) FROM transactions WHERE category_id = ?",
                (category_id,),
            ).fetchone()[0]
            rule_count = conn.execute(
                "SELECT COUNT(*) FROM categorization_rules WHERE category_id = ?",
                (category_id,),
            ).fetchone()[0]

            if transaction_count or rule_count:
                raise ReferentialIntegrityError(
                    f"Cannot delete category '{category.name}' because it is used by "
                    f"{transaction_count} transaction(s) and {rule_count} rule(s)"
                )

            conn.execute("DELETE FROM categories WHERE id = ?", (category_id,))
            conn.commit()

        logger.info(f"Deleted category '{category.name}' ({category_id})")
        return category
