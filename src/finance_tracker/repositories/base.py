from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from typing import List, Optional

from finance_tracker.domain.models import (
    Budget,
    BudgetCategory,
    CategorizationRule,
    Category,
    Transaction,
)
from finance_tracker.domain.enums import TransactionType


class CategoryRepository(ABC):
    """Abstract repository for the category catalog."""

    @abstractmethod
    def save(self, category: Category) -> Category:
        """Insert a category and return it with its ID populated."""
        pass

    @abstractmethod
    def get_by_id(self, category_id: int) -> Optional[Category]:
        """Return the category, or None if it doesn't exist."""
        pass

    @abstractmethod
    def get_by_name(self, name: str) -> Optional[Category]:
        """Case-insensitive lookup by name."""
        pass

    @abstractmethod
    def get_all(self, include_inactive: bool = False) -> List[Category]:
        """All categories ordered by sort_order then name."""
        pass

    @abstractmethod
    def get_defaults(self) -> List[Category]:
        pass

    @abstractmethod
    def update(self, category: Category) -> Category:
        """
        Update an existing category.

        Raises:
            CategoryNotFoundError: If the category doesn't exist
        """
        pass

    @abstractmethod
    def delete(self, category_id: int) -> bool:
        """Delete a category. Returns False if it didn't exist."""
        pass


class CategorizationRuleRepository(ABC):
    """
    Abstract repository for categorization rules.

    Rules are process-wide. Implementations must return rules ordered by
    descending priority, ties broken by creation order (oldest first).
    """

    @abstractmethod
    def save(self, rule: CategorizationRule) -> CategorizationRule:
        pass

    @abstractmethod
    def get_by_id(self, rule_id: int) -> Optional[CategorizationRule]:
        pass

    @abstractmethod
    def list_active_rules(self) -> List[CategorizationRule]:
        """Every active rule in evaluation order."""
        pass

    @abstractmethod
    def list_rules(self, offset: int = 0, limit: int = 20) -> List[CategorizationRule]:
        """One page of rules (active and inactive) in evaluation order."""
        pass

    @abstractmethod
    def count_by_category(self, category_id: int) -> int:
        """Number of rules pointing at a category."""
        pass

    @abstractmethod
    def update(self, rule: CategorizationRule) -> CategorizationRule:
        """
        Update an existing rule.

        Raises:
            RuleNotFoundError: If the rule doesn't exist
        """
        pass

    @abstractmethod
    def delete(self, rule_id: int) -> bool:
        pass


class TransactionRepository(ABC):
    """
    Abstract repository for transaction persistence.

    The repository pattern abstracts the data access, making it easy
    to swap storage backends in the future.
    """

    @abstractmethod
    def save(self, transaction: Transaction) -> Transaction:
        """
        Save a transaction to the repository.

        Args:
            transaction: Transaction to save

        Returns:
            Transaction with ID populated

        Raises:
            DuplicateTransactionError: If transaction already exists
        """
        pass

    @abstractmethod
    def save_many(self, transactions: List[Transaction]) -> List[Transaction]:
        """
        Save multiple transactions in a single operation, skipping duplicates.

        Returns:
            List of saved transactions with IDs
        """
        pass

    @abstractmethod
    def get_by_id(self, transaction_id: int) -> Optional[Transaction]:
        pass

    @abstractmethod
    def get_all(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        transaction_type: Optional[TransactionType] = None,
        category_id: Optional[int] = None,
        account: Optional[str] = None,
    ) -> List[Transaction]:
        """
        Retrieve transactions with optional filtering.

        Args:
            start_date: Filter transactions on or after this date
            end_date: Filter transactions on or before this date
            transaction_type: Filter by DEBIT or CREDIT
            category_id: Filter by category
            account: Filter by account identifier

        Returns:
            List of matching transactions, most recent first
        """
        pass

    @abstractmethod
    def find_similar_transactions(self, text: str, limit: int = 10) -> List[Transaction]:
        """
        Find categorized transactions whose description or merchant
        overlaps ``text`` as a case-insensitive substring (either way round).

        Returns:
            At most ``limit`` transactions, most recent first
        """
        pass

    @abstractmethod
    def update(self, transaction: Transaction) -> Transaction:
        """
        Update an existing transaction.

        Raises:
            TransactionNotFoundError: If transaction doesn't exist
        """
        pass

    @abstractmethod
    def update_many(self, transactions: List[Transaction]) -> List[Transaction]:
        pass

    @abstractmethod
    def delete(self, transaction_id: int) -> bool:
        pass

    @abstractmethod
    def exists(
        self,
        date: date,
        description: str,
        amount: Decimal,
        account: str,
    ) -> bool:
        """
        Check if a transaction already exists.

        Used for deduplication during imports.
        """
        pass


class BudgetRepository(ABC):
    """Abstract repository for budgets and their per-category allocations."""

    @abstractmethod
    def save(self, budget: Budget) -> Budget:
        pass

    @abstractmethod
    def get_by_id(self, budget_id: int) -> Optional[Budget]:
        pass

    @abstractmethod
    def get_all(self, active_only: bool = False) -> List[Budget]:
        pass

    @abstractmethod
    def update(self, budget: Budget) -> Budget:
        """
        Raises:
            BudgetNotFoundError: If the budget doesn't exist
        """
        pass

    @abstractmethod
    def delete(self, budget_id: int) -> bool:
        """Delete a budget and its allocations."""
        pass

    @abstractmethod
    def add_allocation(self, allocation: BudgetCategory) -> BudgetCategory:
        """
        Raises:
            DuplicateAllocationError: If the budget already has this category
        """
        pass

    @abstractmethod
    def get_allocation(self, budget_id: int, category_id: int) -> Optional[BudgetCategory]:
        pass

    @abstractmethod
    def get_allocations(self, budget_id: int) -> List[BudgetCategory]:
        """Allocations of one budget in the order they were added."""
        pass

    @abstractmethod
    def count_allocations_for_category(self, category_id: int) -> int:
        pass

    @abstractmethod
    def update_allocation(self, allocation: BudgetCategory) -> BudgetCategory:
        """
        Persist allocated_amount and alert_threshold.

        Raises:
            AllocationNotFoundError: If no allocation matches
        """
        pass

    @abstractmethod
    def delete_allocation(self, budget_id: int, category_id: int) -> bool:
        pass

    @abstractmethod
    def set_spent_amount(self, budget_id: int, category_id: int, amount: Decimal) -> BudgetCategory:
        """
        Replace the spent amount of an allocation.

        Raises:
            AllocationNotFoundError: If no allocation matches
        """
        pass

    @abstractmethod
    def increment_spent_amount(self, budget_id: int, category_id: int, delta: Decimal) -> BudgetCategory:
        """
        Atomically add ``delta`` to the spent amount of an allocation.

        Raises:
            AllocationNotFoundError: If no allocation matches
            InvalidRequestError: If the result would be negative
        """
        pass
