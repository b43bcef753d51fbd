import sqlite3
from datetime import date
from decimal import Decimal
from typing import List, Optional

from finance_tracker.database.connection import Connection, DatabaseManager
from finance_tracker.domain.enums import CategorizationSource, TransactionType
from finance_tracker.domain.exceptions import DuplicateTransactionError, TransactionNotFoundError
from finance_tracker.domain.models import Transaction
from finance_tracker.repositories.base import TransactionRepository

_INSERT = """
    INSERT INTO transactions (
        date, description, merchant, amount, currency, type, account,
        category_id, categorization_confidence, categorization_source, raw_data
    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""


class SQLiteTransactionRepository(TransactionRepository):
    """
    SQLite implementation of the TransactionRepository.

    Handles all database operations for transactions using raw SQL.
    """

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    def save(self, transaction: Transaction) -> Transaction:
        """Save a single transaction."""

        if self.exists(
            transaction.date,
            transaction.description,
            transaction.amount,
            transaction.account
        ):
            raise DuplicateTransactionError(
                f"Transaction already exists: {transaction.description} ({transaction.amount}) "
                f"on {transaction.date}"
            )

        with self.db.transaction() as conn:
            self._insert(conn, transaction)

        return transaction

    def save_many(self, transactions: List[Transaction]) -> List[Transaction]:
        """Save multiple transactions efficiently"""
        saved = []

        with self.db.transaction() as conn:
            for txn in transactions:
                if self.exists(txn.date, txn.description, txn.amount, txn.account):
                    continue

                self._insert(conn, txn)
                saved.append(txn)

        return saved

    def get_by_id(self, transaction_id: int) -> Optional[Transaction]:
        """Retrieve a transaction by ID, or None if it doesn't exist"""
        conn = self.db.get_connection()
        row = conn.execute(
            "SELECT * FROM transactions WHERE id = ?",
            (transaction_id,)
        ).fetchone()

        if row is None:
            return None

        return self._row_to_transaction(row)

    def get_all(
            self,
            start_date: Optional[date] = None,
            end_date: Optional[date] = None,
            transaction_type: Optional[TransactionType] = None,
            category_id: Optional[int] = None,
            account: Optional[str] = None,
    ) -> List[Transaction]:
        """Retrieve transactions with optional filtering."""
        query = "SELECT * FROM transactions WHERE 1=1"
        params = []

        if start_date:
            query += " AND date >= ?"
            params.append(start_date)

        if end_date:
            query += " AND date <= ?"
            params.append(end_date)

        if transaction_type:
            query += " AND type = ?"
            params.append(transaction_type.value)

        if category_id is not None:
            query += " AND category_id = ?"
            params.append(category_id)

        if account:
            query += " AND account = ?"
            params.append(account)

        query += " ORDER BY date DESC, id DESC"

        conn = self.db.get_connection()
        rows = conn.execute(query, params).fetchall()

        return [self._row_to_transaction(row) for row in rows]

    def find_similar_transactions(self, text: str, limit: int = 10) -> List[Transaction]:
        """
        Categorized transactions whose description or merchant contains the
        text, or whose merchant is contained in it. Case-insensitive.
        """
        text = (text or "").strip()
        if not text or limit <= 0:
            return []

        conn = self.db.get_connection()
        rows = conn.execute(
            """
            SELECT * FROM transactions
            WHERE category_id IS NOT NULL
              AND (
                instr(unicode_lower(description), unicode_lower(?)) > 0
                OR instr(unicode_lower(merchant), unicode_lower(?)) > 0
                OR (merchant != '' AND instr(unicode_lower(?), unicode_lower(merchant)) > 0)
              )
            ORDER BY date DESC, id DESC
            LIMIT ?
            """,
            (text, text, text, limit),
        ).fetchall()

        return [self._row_to_transaction(row) for row in rows]

    def update(self, transaction: Transaction) -> Transaction:
        """Update an existing transaction."""
        if transaction.id is None:
            raise ValueError("Cannot update transaction without ID")

        with self.db.transaction() as conn:
            self._update(conn, transaction)

        return transaction

    def update_many(self, transactions: List[Transaction]) -> List[Transaction]:
        """Update several transactions in one database transaction."""
        with self.db.transaction() as conn:
            for txn in transactions:
                if txn.id is None:
                    raise ValueError("Cannot update transaction without ID")
                self._update(conn, txn)

        return transactions

    def delete(self, transaction_id: int) -> bool:
        """Delete a transaction by ID."""
        with self.db.transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM transactions WHERE id = ?",
                (transaction_id,)
            )
            return cursor.rowcount > 0

    def exists(
            self,
            date: date,
            description: str,
            amount: Decimal,
            account: str,
        ) -> bool:
        """Check if a transaction exists for deduplication"""
        conn = self.db.get_connection()
        cursor = conn.execute(
            """
            SELECT 1 FROM transactions
            WHERE date = ? AND description = ? AND amount = ? AND account = ?
            """,
            (date, description, str(amount), account),
        )
        return cursor.fetchone() is not None

    def _insert(self, conn: Connection, txn: Transaction) -> None:
        cursor = conn.execute(
            _INSERT,
            (
                txn.date,
                txn.description,
                txn.merchant or "",
                str(txn.amount), # Store as string for precision
                txn.currency,
                txn.type.value,
                txn.account,
                txn.category_id,
                txn.categorization_confidence,
                txn.categorization_source.value if txn.categorization_source else None,
                txn.raw_data,
            ),
        )
        txn.id = cursor.lastrowid

    def _update(self, conn: Connection, txn: Transaction) -> None:
        cursor = conn.execute(
            """
            UPDATE transactions
            SET description = ?, merchant = ?, amount = ?, currency = ?, type = ?,
                category_id = ?, categorization_confidence = ?, categorization_source = ?
            WHERE id = ?
            """,
            (
                txn.description,
                txn.merchant or "",
                str(txn.amount),
                txn.currency,
                txn.type.value,
                txn.category_id,
                txn.categorization_confidence,
                txn.categorization_source.value if txn.categorization_source else None,
                txn.id,
            )
        )

        if cursor.rowcount == 0:
            raise TransactionNotFoundError(
                f"Transaction with ID {txn.id} not found"
            )

    def _row_to_transaction(self, row: sqlite3.Row) -> Transaction:
        """Convert database row to Transaction object."""
        source = row["categorization_source"]
        return Transaction(
            id=row["id"],
            date=row["date"],
            description=row["description"],
            merchant=row["merchant"],
            amount=Decimal(row["amount"]),
            currency=row["currency"],
            type=TransactionType(row["type"]),
            account=row["account"],
            category_id=row["category_id"],
            categorization_confidence=row["categorization_confidence"],
            categorization_source=CategorizationSource(source) if source else None,
            raw_data=row["raw_data"],
        )
