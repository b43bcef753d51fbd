import sqlite3
from datetime import datetime
from typing import List, Optional

from finance_tracker.database.connection import DatabaseManager
from finance_tracker.domain.exceptions import CategoryNotFoundError, InvalidRequestError
from finance_tracker.domain.models import Category
from finance_tracker.repositories.base import CategoryRepository


class SQLiteCategoryRepository(CategoryRepository):
    """SQLite implementation of the CategoryRepository."""

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    def save(self, category: Category) -> Category:
        """Insert a category. Names are unique regardless of case."""
        try:
            with self.db.transaction() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO categories (name, parent_id, is_default, is_active, sort_order)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        category.name,
                        category.parent_id,
                        int(category.is_default),
                        int(category.is_active),
                        category.sort_order,
                    ),
                )
                category.id = cursor.lastrowid
        except sqlite3.IntegrityError as e:
            raise InvalidRequestError(
                f"Category '{category.name}' already exists",
                details={"sqlite_error": str(e)},
            ) from e

        return category

    def get_by_id(self, category_id: int) -> Optional[Category]:
        conn = self.db.get_connection()
        row = conn.execute(
            "SELECT * FROM categories WHERE id = ?", (category_id,)
        ).fetchone()
        return self._row_to_category(row) if row else None

    def get_by_name(self, name: str) -> Optional[Category]:
        conn = self.db.get_connection()
        row = conn.execute(
            "SELECT * FROM categories WHERE lower(name) = lower(?)", (name,)
        ).fetchone()
        return self._row_to_category(row) if row else None

    def get_all(self, include_inactive: bool = False) -> List[Category]:
        query = "SELECT * FROM categories"
        if not include_inactive:
            query += " WHERE is_active = 1"
        query += " ORDER BY sort_order, name"

        conn = self.db.get_connection()
        return [self._row_to_category(row) for row in conn.execute(query).fetchall()]

    def get_defaults(self) -> List[Category]:
        conn = self.db.get_connection()
        rows = conn.execute(
            "SELECT * FROM categories WHERE is_default = 1 ORDER BY sort_order, name"
        ).fetchall()
        return [self._row_to_category(row) for row in rows]

    def update(self, category: Category) -> Category:
        if category.id is None:
            raise ValueError("Cannot update category without ID")

        try:
            with self.db.transaction() as conn:
                cursor = conn.execute(
                    """
                    UPDATE categories
                    SET name = ?, parent_id = ?, is_default = ?, is_active = ?,
                        sort_order = ?, updated_at = ?
                    WHERE id = ?
                    """,
                    (
                        category.name,
                        category.parent_id,
                        int(category.is_default),
                        int(category.is_active),
                        category.sort_order,
                        datetime.now(),
                        category.id,
                    ),
                )
                if cursor.rowcount == 0:
                    raise CategoryNotFoundError(f"Category with ID {category.id} not found")
        except sqlite3.IntegrityError as e:
            raise InvalidRequestError(
                f"Category '{category.name}' already exists",
                details={"sqlite_error": str(e)},
            ) from e

        return category

    def delete(self, category_id: int) -> bool:
        with self.db.transaction() as conn:
            cursor = conn.execute("DELETE FROM categories WHERE id = ?", (category_id,))
            return cursor.rowcount > 0

    def _row_to_category(self, row: sqlite3.Row) -> Category:
        return Category(
            id=row["id"],
            name=row["name"],
            parent_id=row["parent_id"],
            is_default=bool(row["is_default"]),
            is_active=bool(row["is_active"]),
            sort_order=row["sort_order"],
        )
