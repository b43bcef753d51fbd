import sqlite3
from datetime import datetime
from typing import List, Optional

from finance_tracker.database.connection import DatabaseManager
from finance_tracker.domain.enums import PatternType
from finance_tracker.domain.exceptions import CategoryNotFoundError, RuleNotFoundError
from finance_tracker.domain.models import CategorizationRule
from finance_tracker.repositories.base import CategorizationRuleRepository

# Evaluation order: priority first, then creation order
_RULE_ORDER = "ORDER BY priority DESC, created_at ASC, id ASC"


class SQLiteCategorizationRuleRepository(CategorizationRuleRepository):
    """SQLite implementation of the CategorizationRuleRepository."""

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    def save(self, rule: CategorizationRule) -> CategorizationRule:
        now = datetime.now()
        rule.created_at = rule.created_at or now
        rule.updated_at = now

        try:
            with self.db.transaction() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO categorization_rules (
                        category_id, pattern, pattern_type, priority,
                        is_active, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        rule.category_id,
                        rule.pattern,
                        rule.pattern_type.value,
                        rule.priority,
                        int(rule.is_active),
                        rule.created_at,
                        rule.updated_at,
                    ),
                )
                rule.id = cursor.lastrowid
        except sqlite3.IntegrityError as e:
            # Only the category foreign key can fail here
            raise CategoryNotFoundError(
                f"Category {rule.category_id} does not exist",
                details={"sqlite_error": str(e)},
            ) from e

        return rule

    def get_by_id(self, rule_id: int) -> Optional[CategorizationRule]:
        conn = self.db.get_connection()
        row = conn.execute(
            "SELECT * FROM categorization_rules WHERE id = ?", (rule_id,)
        ).fetchone()
        return self._row_to_rule(row) if row else None

    def list_active_rules(self) -> List[CategorizationRule]:
        conn = self.db.get_connection()
        rows = conn.execute(
            f"SELECT * FROM categorization_rules WHERE is_active = 1 {_RULE_ORDER}"
        ).fetchall()
        return [self._row_to_rule(row) for row in rows]

    def list_rules(self, offset: int = 0, limit: int = 20) -> List[CategorizationRule]:
        conn = self.db.get_connection()
        rows = conn.execute(
            f"SELECT * FROM categorization_rules {_RULE_ORDER} LIMIT ? OFFSET ?",
            (limit, offset),
        ).fetchall()
        return [self._row_to_rule(row) for row in rows]

    def count_by_category(self, category_id: int) -> int:
        conn = self.db.get_connection()
        row = conn.execute(
            "SELECT COUNT(*) AS n FROM categorization_rules WHERE category_id = ?",
            (category_id,),
        ).fetchone()
        return row["n"]

    def update(self, rule: CategorizationRule) -> CategorizationRule:
        if rule.id is None:
            raise ValueError("Cannot update rule without ID")

        rule.updated_at = datetime.now()
        try:
            with self.db.transaction() as conn:
                cursor = conn.execute(
                    """
                    UPDATE categorization_rules
                    SET category_id = ?, pattern = ?, pattern_type = ?,
                        priority = ?, is_active = ?, updated_at = ?
                    WHERE id = ?
                    """,
                    (
                        rule.category_id,
                        rule.pattern,
                        rule.pattern_type.value,
                        rule.priority,
                        int(rule.is_active),
                        rule.updated_at,
                        rule.id,
                    ),
                )
                if cursor.rowcount == 0:
                    raise RuleNotFoundError(f"Categorization rule with ID {rule.id} not found")
        except sqlite3.IntegrityError as e:
            raise CategoryNotFoundError(
                f"Category {rule.category_id} does not exist",
                details={"sqlite_error": str(e)},
            ) from e

        return rule

    def delete(self, rule_id: int) -> bool:
        with self.db.transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM categorization_rules WHERE id = ?", (rule_id,)
            )
            return cursor.rowcount > 0

    def _row_to_rule(self, row: sqlite3.Row) -> CategorizationRule:
        return CategorizationRule(
            id=row["id"],
            category_id=row["category_id"],
            pattern=row["pattern"],
            pattern_type=PatternType(row["pattern_type"]),
            priority=row["priority"],
            is_active=bool(row["is_active"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
