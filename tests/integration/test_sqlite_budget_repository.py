import threading

import pytest
from datetime import date
from decimal import Decimal

from finance_tracker.database.connection import DatabaseConfig, DatabaseManager
from finance_tracker.domain.exceptions import (
    AllocationNotFoundError,
    DuplicateAllocationError,
    InvalidRequestError,
)
from finance_tracker.domain.models import Budget, BudgetCategory
from finance_tracker.repositories.sqlite_budget_repository import SQLiteBudgetRepository


@pytest.fixture
def budget(budget_repo) -> Budget:
    return budget_repo.save(Budget(
        name="January",
        start_date=date(2025, 1, 1),
        end_date=date(2025, 1, 31),
        total_amount=Decimal("2000.00"),
    ))


@pytest.fixture
def allocation(budget_repo, budget, food) -> BudgetCategory:
    return budget_repo.add_allocation(BudgetCategory(
        budget_id=budget.id,
        category_id=food.id,
        allocated_amount=Decimal("500.00"),
    ))


@pytest.mark.integration
class TestBudgets:

    def test_save_and_get(self, budget_repo, budget):
        fetched = budget_repo.get_by_id(budget.id)

        assert fetched.name == "January"
        assert fetched.total_amount == Decimal("2000.00")
        assert fetched.end_date == date(2025, 1, 31)

    def test_delete_cascades_to_allocations(self, budget_repo, budget, allocation):
        assert budget_repo.delete(budget.id)

        assert budget_repo.get_allocations(budget.id) == []

    def test_active_only(self, budget_repo, budget):
        budget.is_active = False
        budget_repo.update(budget)

        assert budget_repo.get_all(active_only=True) == []
        assert len(budget_repo.get_all()) == 1


@pytest.mark.integration
class TestAllocations:

    def test_allocation_defaults(self, budget_repo, budget, allocation, food):
        fetched = budget_repo.get_allocation(budget.id, food.id)

        assert fetched.allocated_amount == Decimal("500.00")
        assert fetched.spent_amount == Decimal("0")
        assert fetched.alert_threshold == Decimal("0.80")

    def test_duplicate_allocation(self, budget_repo, budget, allocation, food):
        with pytest.raises(DuplicateAllocationError):
            budget_repo.add_allocation(BudgetCategory(
                budget_id=budget.id, category_id=food.id, allocated_amount=Decimal("1"),
            ))

    def test_allocations_keep_insertion_order(self, budget_repo, budget, food, groceries):
        budget_repo.add_allocation(BudgetCategory(budget.id, groceries.id, Decimal("100")))
        budget_repo.add_allocation(BudgetCategory(budget.id, food.id, Decimal("200")))

        assert [a.category_id for a in budget_repo.get_allocations(budget.id)] == [groceries.id, food.id]

    def test_count_allocations_for_category(self, budget_repo, allocation, food, groceries):
        assert budget_repo.count_allocations_for_category(food.id) == 1
        assert budget_repo.count_allocations_for_category(groceries.id) == 0


@pytest.mark.integration
class TestSpentAmount:

    def test_set_spent_amount(self, budget_repo, budget, allocation, food):
        updated = budget_repo.set_spent_amount(budget.id, food.id, Decimal("120.50"))

        assert updated.spent_amount == Decimal("120.50")
        assert budget_repo.get_allocation(budget.id, food.id).spent_amount == Decimal("120.50")

    def test_set_spent_amount_replaces(self, budget_repo, budget, allocation, food):
        budget_repo.set_spent_amount(budget.id, food.id, Decimal("300"))
        budget_repo.set_spent_amount(budget.id, food.id, Decimal("40"))

        assert budget_repo.get_allocation(budget.id, food.id).spent_amount == Decimal("40")

    def test_set_spent_amount_without_allocation(self, budget_repo, budget, groceries):
        with pytest.raises(AllocationNotFoundError):
            budget_repo.set_spent_amount(budget.id, groceries.id, Decimal("1"))

    def test_increment_spent_amount(self, budget_repo, budget, allocation, food):
        budget_repo.increment_spent_amount(budget.id, food.id, Decimal("10.25"))
        updated = budget_repo.increment_spent_amount(budget.id, food.id, Decimal("4.75"))

        assert updated.spent_amount == Decimal("15.00")

    def test_increment_below_zero_is_rejected(self, budget_repo, budget, allocation, food):
        budget_repo.increment_spent_amount(budget.id, food.id, Decimal("10"))

        with pytest.raises(InvalidRequestError):
            budget_repo.increment_spent_amount(budget.id, food.id, Decimal("-10.01"))

        assert budget_repo.get_allocation(budget.id, food.id).spent_amount == Decimal("10")

    def test_increment_without_allocation(self, budget_repo, budget, groceries):
        with pytest.raises(AllocationNotFoundError):
            budget_repo.increment_spent_amount(budget.id, groceries.id, Decimal("1"))

    def test_concurrent_increments_are_not_lost(self, test_db, budget, allocation, food):
        # Arrange: each writer gets its own connection to the same file
        db_path = test_db.config.db_path
        errors = []

        def add_spend():
            manager = DatabaseManager(DatabaseConfig(db_path))
            repo = SQLiteBudgetRepository(manager)
            try:
                for _ in range(20):
                    repo.increment_spent_amount(budget.id, food.id, Decimal("1"))
            except Exception as e:
                errors.append(e)
            finally:
                manager.close()

        threads = [threading.Thread(target=add_spend) for _ in range(4)]

        # Act
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        # Assert
        assert errors == []
        assert SQLiteBudgetRepository(test_db).get_allocation(budget.id, food.id).spent_amount == Decimal("80")

    def test_concurrent_increments_on_shared_manager(self, test_db, budget, allocation, food):
        # Arrange: every thread goes through the same connection
        repo = SQLiteBudgetRepository(test_db)
        errors = []

        def add_spend():
            try:
                for _ in range(200):
                    repo.increment_spent_amount(budget.id, food.id, Decimal("1"))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=add_spend) for _ in range(4)]

        # Act
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        # Assert
        assert errors == []
        assert repo.get_allocation(budget.id, food.id).spent_amount == Decimal("800")

    def test_failed_increment_does_not_block_other_threads(self, test_db, budget, allocation, food):
        repo = SQLiteBudgetRepository(test_db)

        with pytest.raises(InvalidRequestError):
            repo.increment_spent_amount(budget.id, food.id, Decimal("-1"))

        worker = threading.Thread(
            target=repo.increment_spent_amount, args=(budget.id, food.id, Decimal("3"))
        )
        worker.start()
        worker.join(timeout=5)

        assert not worker.is_alive()
        assert repo.get_allocation(budget.id, food.id).spent_amount == Decimal("3")
