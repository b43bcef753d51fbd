import logging
import sqlite3
from decimal import Decimal
from typing import List, Optional

from finance_tracker.database.connection import Connection, DatabaseManager
from finance_tracker.domain.enums import PeriodType
from finance_tracker.domain.exceptions import (
    AllocationNotFoundError,
    BudgetNotFoundError,
    CategoryNotFoundError,
    DuplicateAllocationError,
    InvalidRequestError,
)
from finance_tracker.domain.models import Budget, BudgetCategory
from finance_tracker.repositories.base import BudgetRepository

logger = logging.getLogger(__name__)


class SQLiteBudgetRepository(BudgetRepository):
    """
    SQLite implementation of the BudgetRepository.

    Spend updates run inside a single write transaction so that two
    writers touching the same allocation are serialized by SQLite.
    """

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    # ------------------------------------------------------------------
    # Budgets
    # ------------------------------------------------------------------

    def save(self, budget: Budget) -> Budget:
        with self.db.transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO budgets (
                    name, description, period_type, start_date, end_date,
                    total_amount, currency, is_active
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    budget.name,
                    budget.description,
                    budget.period_type.value,
                    budget.start_date,
                    budget.end_date,
                    str(budget.total_amount),
                    budget.currency,
                    int(budget.is_active),
                ),
            )
            budget.id = cursor.lastrowid

        return budget

    def get_by_id(self, budget_id: int) -> Optional[Budget]:
        conn = self.db.get_connection()
        row = conn.execute("SELECT * FROM budgets WHERE id = ?", (budget_id,)).fetchone()
        return self._row_to_budget(row) if row else None

    def get_all(self, active_only: bool = False) -> List[Budget]:
        query = "SELECT * FROM budgets"
        if active_only:
            query += " WHERE is_active = 1"
        query += " ORDER BY start_date DESC, id DESC"

        conn = self.db.get_connection()
        return [self._row_to_budget(row) for row in conn.execute(query).fetchall()]

    def update(self, budget: Budget) -> Budget:
        if budget.id is None:
            raise ValueError("Cannot update budget without ID")

        with self.db.transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE budgets
                SET name = ?, description = ?, period_type = ?, start_date = ?,
                    end_date = ?, total_amount = ?, currency = ?, is_active = ?
                WHERE id = ?
                """,
                (
                    budget.name,
                    budget.description,
                    budget.period_type.value,
                    budget.start_date,
                    budget.end_date,
                    str(budget.total_amount),
                    budget.currency,
                    int(budget.is_active),
                    budget.id,
                ),
            )
            if cursor.rowcount == 0:
                raise BudgetNotFoundError(f"Budget with ID {budget.id} not found")

        return budget

    def delete(self, budget_id: int) -> bool:
        with self.db.transaction() as conn:
            cursor = conn.execute("DELETE FROM budgets WHERE id = ?", (budget_id,))
            return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Allocations
    # ------------------------------------------------------------------

    def add_allocation(self, allocation: BudgetCategory) -> BudgetCategory:
        try:
            with self.db.transaction() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO budget_categories (
                        budget_id, category_id, allocated_amount,
                        spent_amount, alert_threshold
                    ) VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        allocation.budget_id,
                        allocation.category_id,
                        str(allocation.allocated_amount),
                        str(allocation.spent_amount),
                        str(allocation.alert_threshold),
                    ),
                )
                allocation.id = cursor.lastrowid
        except sqlite3.IntegrityError as e:
            if "UNIQUE" in str(e):
                raise DuplicateAllocationError(
                    f"Budget {allocation.budget_id} already has an allocation "
                    f"for category {allocation.category_id}"
                ) from e
            raise CategoryNotFoundError(
                f"Category {allocation.category_id} or budget {allocation.budget_id} does not exist",
                details={"sqlite_error": str(e)},
            ) from e

        return allocation

    def get_allocation(self, budget_id: int, category_id: int) -> Optional[BudgetCategory]:
        return self._fetch_allocation(self.db.get_connection(), budget_id, category_id)

    def get_allocations(self, budget_id: int) -> List[BudgetCategory]:
        conn = self.db.get_connection()
        rows = conn.execute(
            "SELECT * FROM budget_categories WHERE budget_id = ? ORDER BY id",
            (budget_id,),
        ).fetchall()
        return [self._row_to_allocation(row) for row in rows]

    def count_allocations_for_category(self, category_id: int) -> int:
        conn = self.db.get_connection()
        row = conn.execute(
            "SELECT COUNT(*) AS n FROM budget_categories WHERE category_id = ?",
            (category_id,),
        ).fetchone()
        return row["n"]

    def update_allocation(self, allocation: BudgetCategory) -> BudgetCategory:
        with self.db.transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE budget_categories
                SET allocated_amount = ?, alert_threshold = ?
                WHERE budget_id = ? AND category_id = ?
                """,
                (
                    str(allocation.allocated_amount),
                    str(allocation.alert_threshold),
                    allocation.budget_id,
                    allocation.category_id,
                ),
            )
            if cursor.rowcount == 0:
                raise self._allocation_not_found(allocation.budget_id, allocation.category_id)

        return allocation

    def delete_allocation(self, budget_id: int, category_id: int) -> bool:
        with self.db.transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM budget_categories WHERE budget_id = ? AND category_id = ?",
                (budget_id, category_id),
            )
            return cursor.rowcount > 0

    def set_spent_amount(self, budget_id: int, category_id: int, amount: Decimal) -> BudgetCategory:
        """Replace the spent amount. Last writer wins."""
        with self.db.transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE budget_categories SET spent_amount = ?
                WHERE budget_id = ? AND category_id = ?
                """,
                (str(amount), budget_id, category_id),
            )
            if cursor.rowcount == 0:
                raise self._allocation_not_found(budget_id, category_id)

            allocation = self._fetch_allocation(conn, budget_id, category_id)

        logger.info(
            "Set spent amount of budget %s / category %s to %s", budget_id, category_id, amount
        )
        return allocation

    def increment_spent_amount(self, budget_id: int, category_id: int, delta: Decimal) -> BudgetCategory:
        """Read-modify-write under the write lock so concurrent increments don't get lost."""
        with self.db.transaction(immediate=True) as conn:
            allocation = self._fetch_allocation(conn, budget_id, category_id)
            if allocation is None:
                raise self._allocation_not_found(budget_id, category_id)

            new_amount = allocation.spent_amount + delta
            if new_amount < 0:
                raise InvalidRequestError(
                    f"Spent amount can't go below zero (currently {allocation.spent_amount}, change {delta})"
                )

            conn.execute(
                """
                UPDATE budget_categories SET spent_amount = ?
                WHERE budget_id = ? AND category_id = ?
                """,
                (str(new_amount), budget_id, category_id),
            )
            allocation.spent_amount = new_amount

        logger.info(
            "Changed spent amount of budget %s / category %s by %s to %s",
            budget_id, category_id, delta, new_amount,
        )
        return allocation

    def _fetch_allocation(self, conn: Connection, budget_id: int, category_id: int) -> Optional[BudgetCategory]:
        row = conn.execute(
            "SELECT * FROM budget_categories WHERE budget_id = ? AND category_id = ?",
            (budget_id, category_id),
        ).fetchone()
        return self._row_to_allocation(row) if row else None

    @staticmethod
    def _allocation_not_found(budget_id: int, category_id: int) -> AllocationNotFoundError:
        return AllocationNotFoundError(
            f"No allocation for category {category_id} in budget {budget_id}",
            details={"budget_id": budget_id, "category_id": category_id},
        )

    def _row_to_budget(self, row: sqlite3.Row) -> Budget:
        return Budget(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            period_type=PeriodType(row["period_type"]),
            start_date=row["start_date"],
            end_date=row["end_date"],
            total_amount=Decimal(row["total_amount"]),
            currency=row["currency"],
            is_active=bool(row["is_active"]),
        )

    def _row_to_allocation(self, row: sqlite3.Row) -> BudgetCategory:
        return BudgetCategory(
            id=row["id"],
            budget_id=row["budget_id"],
            category_id=row["category_id"],
            allocated_amount=Decimal(row["allocated_amount"]),
            spent_amount=Decimal(row["spent_amount"]),
            alert_threshold=Decimal(row["alert_threshold"]),
        )
