import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Union

from finance_tracker.categorization import CategorizationEngine, parse_pattern_type
from finance_tracker.domain.enums import CategorizationSource, PatternType
from finance_tracker.domain.exceptions import (
    CategoryNotFoundError,
    InvalidRequestError,
    RuleNotFoundError,
    TransactionNotFoundError,
)
from finance_tracker.domain.models import (
    CategorizationRequest,
    CategorizationResult,
    CategorizationRule,
    Category,
    Transaction,
)
from finance_tracker.repositories.base import (
    CategorizationRuleRepository,
    CategoryRepository,
    TransactionRepository,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE_LIMIT = 20
MAX_PAGE_LIMIT = 100


class CategorizationService:
    """
    Categorization use cases: rule management, ad-hoc categorization and
    applying results to stored transactions.

    Changing rules never touches transactions that were already
    categorized. Categorization is a point-in-time decision.
    """

    def __init__(
        self,
        rules: CategorizationRuleRepository,
        categories: CategoryRepository,
        transactions: TransactionRepository,
        engine: Optional[CategorizationEngine] = None,
    ):
        self.rules = rules
        self.categories = categories
        self.transactions = transactions
        self._engine = engine

    @property
    def engine(self) -> CategorizationEngine:
        """Lazy-load categorization engine"""
        if self._engine is None:
            self._engine = CategorizationEngine(self.rules, self.categories, self.transactions)
        return self._engine

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def create_rule(
        self,
        category_id: int,
        pattern: str,
        pattern_type: Union[str, PatternType] = PatternType.KEYWORD,
        priority: int = 0,
        is_active: bool = True,
    ) -> CategorizationRule:
        """
        Create a categorization rule.

        Raises:
            InvalidRequestError: Empty pattern, unknown pattern type or
                non-integer priority
            CategoryNotFoundError: If the target category doesn't exist
        """
        rule = CategorizationRule(
            category_id=category_id,
            pattern=self._validate_pattern(pattern),
            pattern_type=parse_pattern_type(pattern_type),
            priority=self._validate_priority(priority),
            is_active=bool(is_active),
        )
        self._require_category(category_id)

        saved = self.rules.save(rule)
        logger.info("Created rule %s: %r -> category %s (priority %s)",
                    saved.id, saved.pattern, saved.category_id, saved.priority)
        return saved

    def get_rule(self, rule_id: int) -> CategorizationRule:
        rule = self.rules.get_by_id(rule_id)
        if rule is None:
            raise RuleNotFoundError(f"Categorization rule with ID {rule_id} not found")
        return rule

    def list_rules(self, offset: int = 0, limit: int = DEFAULT_PAGE_LIMIT) -> List[CategorizationRule]:
        """
        One page of rules, highest priority first, then oldest first.

        Raises:
            InvalidRequestError: If offset is negative or limit is outside 1-100
        """
        if isinstance(offset, bool) or not isinstance(offset, int) or offset < 0:
            raise InvalidRequestError(f"Offset must be a non-negative integer, got {offset!r}")
        if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= MAX_PAGE_LIMIT:
            raise InvalidRequestError(f"Limit must be between 1 and {MAX_PAGE_LIMIT}, got {limit!r}")

        return self.rules.list_rules(offset=offset, limit=limit)

    def update_rule(
        self,
        rule_id: int,
        *,
        pattern: Optional[str] = None,
        pattern_type: Optional[Union[str, PatternType]] = None,
        priority: Optional[int] = None,
        is_active: Optional[bool] = None,
        category_id: Optional[int] = None,
    ) -> CategorizationRule:
        """Partially update a rule. Only the given fields change."""
        rule = self.get_rule(rule_id)

        if pattern is not None:
            rule.pattern = self._validate_pattern(pattern)
        if pattern_type is not None:
            rule.pattern_type = parse_pattern_type(pattern_type)
        if priority is not None:
            rule.priority = self._validate_priority(priority)
        if is_active is not None:
            rule.is_active = bool(is_active)
        if category_id is not None:
            self._require_category(category_id)
            rule.category_id = category_id

        updated = self.rules.update(rule)
        logger.info("Updated rule %s", rule_id)
        return updated

    def delete_rule(self, rule_id: int) -> None:
        if not self.rules.delete(rule_id):
            raise RuleNotFoundError(f"Categorization rule with ID {rule_id} not found")
        logger.info("Deleted rule %s", rule_id)

    # ------------------------------------------------------------------
    # Categorization
    # ------------------------------------------------------------------

    def categorize(
        self,
        description: str,
        merchant: str = "",
        amount: Union[Decimal, int, float, str] = 0,
    ) -> CategorizationResult:
        """Categorize free-form transaction details without storing anything."""
        raw_amount = amount
        try:
            amount = Decimal(str(amount))
        except InvalidOperation:
            raise InvalidRequestError(f"Invalid amount: {raw_amount!r}")
        if not amount.is_finite():
            raise InvalidRequestError(f"Invalid amount: {raw_amount!r}")

        return self.engine.categorize(CategorizationRequest(
            description=description or "",
            merchant=merchant or "",
            amount=amount,
        ))

    def categorize_transaction(self, transaction_id: int, overwrite: bool = False) -> CategorizationResult:
        """
        Categorize a stored transaction and save the outcome.

        Already-categorized transactions are left alone unless overwrite
        is set. Nothing is written when no category was found.
        """
        transaction = self._require_transaction(transaction_id)

        if transaction.is_categorized and not overwrite:
            category = self.categories.get_by_id(transaction.category_id)
            return CategorizationResult(
                source=transaction.categorization_source or CategorizationSource.MANUAL,
                confidence=transaction.categorization_confidence or 0.0,
                category_id=transaction.category_id,
                category_name=category.name if category else None,
            )

        result = self.engine.categorize_transaction(transaction)
        if result.is_categorized:
            self.transactions.update(self.engine.apply(transaction, result))

        return result

    def categorize_transactions(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        overwrite: bool = False
    ) -> int:
        """
        Categorize existing transactions in the database.

        Args:
            start_date: Only categorize transactions on or after this date
            end_date: Only categorize transactions on or before this date
            overwrite: If True, re-categorize already categorized transactions

        Returns:
            Number of transactions that received a category

        Example:
            ```
            # Categorize all uncategorized transactions
            count = service.categorize_transactions()
            ```
        """
        transactions = self.transactions.get_all(
            start_date=start_date,
            end_date=end_date
        )

        if not transactions:
            return 0

        categorized = self.engine.categorize_many(transactions, overwrite=overwrite)

        # Only write rows whose category actually changed
        to_update = [
            new for old, new in zip(transactions, categorized)
            if new.is_categorized and (
                new.category_id != old.category_id
                or new.categorization_source != old.categorization_source
            )
        ]

        if to_update:
            self.transactions.update_many(to_update)

        logger.info("Categorized %d of %d transactions", len(to_update), len(transactions))
        return len(to_update)

    def assign_category(self, transaction_id: int, category_id: int) -> Transaction:
        """Manually set a transaction's category."""
        transaction = self._require_transaction(transaction_id)
        self._require_category(category_id)

        transaction.category_id = category_id
        transaction.categorization_source = CategorizationSource.MANUAL
        transaction.categorization_confidence = 1.0
        return self.transactions.update(transaction)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_pattern(pattern: str) -> str:
        if pattern is None or not str(pattern).strip():
            raise InvalidRequestError("Pattern cannot be empty")
        return str(pattern).strip()

    @staticmethod
    def _validate_priority(priority) -> int:
        # bool is an int subclass; True is not a priority
        if isinstance(priority, bool) or not isinstance(priority, int):
            raise InvalidRequestError(f"Priority must be an integer, got {priority!r}")
        return priority

    def _require_category(self, category_id: int) -> Category:
        category = self.categories.get_by_id(category_id)
        if category is None:
            raise CategoryNotFoundError(
                f"Category with ID {category_id} not found",
                details={"category_id": category_id},
            )
        return category

    def _require_transaction(self, transaction_id: int) -> Transaction:
        transaction = self.transactions.get_by_id(transaction_id)
        if transaction is None:
            raise TransactionNotFoundError(f"Transaction with ID {transaction_id} not found")
        return transaction
