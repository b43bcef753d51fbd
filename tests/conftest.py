import pytest
from datetime import date
from decimal import Decimal
from pathlib import Path

from finance_tracker.database.connection import DatabaseConfig, DatabaseManager, initialize_database
from finance_tracker.domain.enums import CategorizationSource, TransactionType
from finance_tracker.domain.models import Category, Transaction
from finance_tracker.repositories.sqlite_budget_repository import SQLiteBudgetRepository
from finance_tracker.repositories.sqlite_category_repository import SQLiteCategoryRepository
from finance_tracker.repositories.sqlite_rule_repository import SQLiteCategorizationRuleRepository
from finance_tracker.repositories.sqlite_transaction_repository import SQLiteTransactionRepository


@pytest.fixture
def test_db(tmp_path):
    """
    Create a real test database.

    Use pytest's tmp_path fixture to create a temporary directory.
    Database is automatically cleaned up after each test.
    """
    db_manager = DatabaseManager(DatabaseConfig(tmp_path / "test.db"))
    initialize_database(db_manager)

    yield db_manager

    db_manager.close()


@pytest.fixture
def category_repo(test_db) -> SQLiteCategoryRepository:
    return SQLiteCategoryRepository(test_db)


@pytest.fixture
def rule_repo(test_db) -> SQLiteCategorizationRuleRepository:
    return SQLiteCategorizationRuleRepository(test_db)


@pytest.fixture
def transaction_repo(test_db) -> SQLiteTransactionRepository:
    return SQLiteTransactionRepository(test_db)


@pytest.fixture
def budget_repo(test_db) -> SQLiteBudgetRepository:
    return SQLiteBudgetRepository(test_db)


@pytest.fixture
def food(category_repo) -> Category:
    return category_repo.save(Category(name="Food", is_default=True))


@pytest.fixture
def groceries(category_repo, food) -> Category:
    return category_repo.save(Category(name="Groceries", parent_id=food.id, is_default=True))


@pytest.fixture
def sample_csv() -> Path:
    """Provide a path to a sample CSV statement"""
    return Path(__file__).parent / "fixtures" / "sample_statement.csv"


def make_transaction(
    description: str = "Test Purchase",
    amount: str = "10.00",
    merchant: str = "",
    category_id=None,
    txn_date: date = date(2025, 1, 15),
    account: str = "checking",
    txn_type: TransactionType = TransactionType.DEBIT,
) -> Transaction:
    """Build a transaction with sensible defaults."""
    return Transaction(
        date=txn_date,
        description=description,
        amount=Decimal(amount),
        type=txn_type,
        account=account,
        merchant=merchant,
        category_id=category_id,
        categorization_source=CategorizationSource.MANUAL if category_id else None,
        categorization_confidence=1.0 if category_id else None,
    )


@pytest.fixture
def txn_factory():
    """Factory for transactions, e.g. txn_factory("Walmart", "12.00", category_id=1)"""
    return make_transaction
