import pytest
from datetime import date
from decimal import Decimal

from finance_tracker.domain.enums import CategorizationSource, TransactionType
from finance_tracker.domain.exceptions import DuplicateTransactionError, TransactionNotFoundError
from finance_tracker.repositories.sqlite_transaction_repository import SQLiteTransactionRepository


@pytest.mark.integration
class TestSQLiteTransactionRepository:
    """Test suite for SQLite repository. Uses a real temp db."""

    def test_save_transaction(self, transaction_repo: SQLiteTransactionRepository, txn_factory):
        """Test saving creates a record with an ID."""
        # Act
        saved = transaction_repo.save(txn_factory("Test Purchase", "99.99", merchant="Shop"))

        # Assert
        assert saved.id is not None
        fetched = transaction_repo.get_by_id(saved.id)
        assert fetched.description == "Test Purchase"
        assert fetched.merchant == "Shop"
        assert fetched.amount == Decimal("99.99")
        assert fetched.date == date(2025, 1, 15)
        assert fetched.type == TransactionType.DEBIT

    def test_duplicate_raises(self, transaction_repo, txn_factory):
        transaction_repo.save(txn_factory("Test Purchase"))

        with pytest.raises(DuplicateTransactionError):
            transaction_repo.save(txn_factory("Test Purchase"))

    def test_save_many_skips_duplicates(self, transaction_repo, txn_factory):
        # Arrange
        transaction_repo.save(txn_factory("Coffee"))

        # Act
        saved = transaction_repo.save_many([txn_factory("Coffee"), txn_factory("Tea")])

        # Assert
        assert [t.description for t in saved] == ["Tea"]
        assert len(transaction_repo.get_all()) == 2

    def test_get_all_filters(self, transaction_repo, txn_factory, food):
        # Arrange
        transaction_repo.save(txn_factory("Jan", txn_date=date(2025, 1, 5), category_id=food.id))
        transaction_repo.save(txn_factory("Feb", txn_date=date(2025, 2, 5)))
        transaction_repo.save(txn_factory("Pay", txn_date=date(2025, 2, 6), txn_type=TransactionType.CREDIT))

        # Act & Assert
        assert [t.description for t in transaction_repo.get_all()] == ["Pay", "Feb", "Jan"]
        assert [t.description for t in transaction_repo.get_all(start_date=date(2025, 2, 1))] == ["Pay", "Feb"]
        assert [t.description for t in transaction_repo.get_all(category_id=food.id)] == ["Jan"]
        assert [t.description for t in transaction_repo.get_all(
            transaction_type=TransactionType.CREDIT)] == ["Pay"]

    def test_update_categorization(self, transaction_repo, txn_factory, food):
        # Arrange
        saved = transaction_repo.save(txn_factory("Walmart"))
        saved.category_id = food.id
        saved.categorization_source = CategorizationSource.RULE
        saved.categorization_confidence = 1.0

        # Act
        transaction_repo.update(saved)

        # Assert
        fetched = transaction_repo.get_by_id(saved.id)
        assert fetched.category_id == food.id
        assert fetched.categorization_source == CategorizationSource.RULE
        assert fetched.categorization_confidence == 1.0

    def test_update_missing_raises(self, transaction_repo, txn_factory):
        txn = txn_factory("Ghost")
        txn.id = 999

        with pytest.raises(TransactionNotFoundError):
            transaction_repo.update(txn)


@pytest.mark.integration
class TestFindSimilarTransactions:

    def test_matches_description_and_merchant(self, transaction_repo, txn_factory, food):
        # Arrange
        transaction_repo.save(txn_factory("CORNER DELI #12", category_id=food.id))
        transaction_repo.save(txn_factory("POS 8812", merchant="Corner Deli", category_id=food.id,
                                          txn_date=date(2025, 1, 16)))
        transaction_repo.save(txn_factory("Hardware store", category_id=food.id))

        # Act
        similar = transaction_repo.find_similar_transactions("corner deli")

        # Assert: most recent first
        assert [t.description for t in similar] == ["POS 8812", "CORNER DELI #12"]

    def test_stored_merchant_inside_search_text(self, transaction_repo, txn_factory, food):
        transaction_repo.save(txn_factory("POS 1", merchant="Deli", category_id=food.id))

        similar = transaction_repo.find_similar_transactions("Corner Deli downtown")

        assert len(similar) == 1

    def test_uncategorized_rows_are_excluded(self, transaction_repo, txn_factory):
        transaction_repo.save(txn_factory("Corner Deli"))

        assert transaction_repo.find_similar_transactions("Corner Deli") == []

    def test_limit(self, transaction_repo, txn_factory, food):
        for day in range(1, 6):
            transaction_repo.save(txn_factory("Deli", category_id=food.id, txn_date=date(2025, 1, day)))

        similar = transaction_repo.find_similar_transactions("deli", limit=2)

        assert [t.date.day for t in similar] == [5, 4]

    def test_blank_text_finds_nothing(self, transaction_repo):
        assert transaction_repo.find_similar_transactions("  ") == []

    def test_non_ascii_text_is_case_insensitive(self, transaction_repo, txn_factory, food):
        transaction_repo.save(txn_factory("POS 77", merchant="ÉPICERIE ÖSTERMALM", category_id=food.id))

        similar = transaction_repo.find_similar_transactions("épicerie östermalm")

        assert [t.merchant for t in similar] == ["ÉPICERIE ÖSTERMALM"]
