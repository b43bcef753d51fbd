import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Union

from finance_tracker.budgets.analysis import DEFAULT_ALERT_THRESHOLD, BudgetAnalyzer
from finance_tracker.domain.enums import PeriodType
from finance_tracker.domain.exceptions import (
    AllocationNotFoundError,
    BudgetNotFoundError,
    CategoryNotFoundError,
    InvalidRequestError,
)
from finance_tracker.domain.models import DEFAULT_CURRENCY, Budget, BudgetCategory, BudgetSummary
from finance_tracker.repositories.base import BudgetRepository, CategoryRepository

logger = logging.getLogger(__name__)

Amount = Union[Decimal, int, float, str]


def _to_decimal(value: Amount, field_name: str) -> Decimal:
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation:
        raise InvalidRequestError(f"Invalid {field_name}: {value!r}")
    if not amount.is_finite():
        raise InvalidRequestError(f"Invalid {field_name}: {value!r}")
    return amount


class BudgetService:
    """
    Budget use cases: budgets, their category allocations, spend updates
    and summaries.

    Summaries are recomputed from the stored allocations on every call.
    Nothing derived is cached.
    """

    def __init__(
        self,
        budgets: BudgetRepository,
        categories: CategoryRepository,
        analyzer: Optional[BudgetAnalyzer] = None,
        default_alert_threshold: Decimal = DEFAULT_ALERT_THRESHOLD,
    ):
        self.budgets = budgets
        self.categories = categories
        self.analyzer = analyzer or BudgetAnalyzer()
        self.default_alert_threshold = default_alert_threshold

    # ------------------------------------------------------------------
    # Budgets
    # ------------------------------------------------------------------

    def create_budget(
        self,
        name: str,
        start_date: date,
        total_amount: Amount,
        *,
        end_date: Optional[date] = None,
        period_type: Union[str, PeriodType] = PeriodType.MONTHLY,
        currency: str = DEFAULT_CURRENCY,
        description: str = "",
    ) -> Budget:
        """
        Create a budget.

        Raises:
            InvalidRequestError: Missing name, non-positive total, end date
                before start date or unknown period type
        """
        budget = Budget(
            name=self._validate_name(name),
            start_date=start_date,
            total_amount=self._validate_positive(total_amount, "total amount"),
            end_date=end_date,
            period_type=self._parse_period_type(period_type),
            currency=(currency or DEFAULT_CURRENCY).upper(),
            description=description or "",
        )
        self._validate_dates(budget.start_date, budget.end_date)

        saved = self.budgets.save(budget)
        logger.info("Created budget %s (%s, %s)", saved.id, saved.name, saved.total_amount)
        return saved

    def get_budget(self, budget_id: int) -> Budget:
        budget = self.budgets.get_by_id(budget_id)
        if budget is None:
            raise BudgetNotFoundError(f"Budget with ID {budget_id} not found")
        return budget

    def list_budgets(self, active_only: bool = False) -> List[Budget]:
        return self.budgets.get_all(active_only=active_only)

    def update_budget(
        self,
        budget_id: int,
        *,
        name: Optional[str] = None,
        total_amount: Optional[Amount] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        is_active: Optional[bool] = None,
        description: Optional[str] = None,
    ) -> Budget:
        budget = self.get_budget(budget_id)

        if name is not None:
            budget.name = self._validate_name(name)
        if total_amount is not None:
            budget.total_amount = self._validate_positive(total_amount, "total amount")
        if start_date is not None:
            budget.start_date = start_date
        if end_date is not None:
            budget.end_date = end_date
        if is_active is not None:
            budget.is_active = bool(is_active)
        if description is not None:
            budget.description = description
        self._validate_dates(budget.start_date, budget.end_date)

        return self.budgets.update(budget)

    def delete_budget(self, budget_id: int) -> None:
        if not self.budgets.delete(budget_id):
            raise BudgetNotFoundError(f"Budget with ID {budget_id} not found")
        logger.info("Deleted budget %s", budget_id)

    # ------------------------------------------------------------------
    # Allocations
    # ------------------------------------------------------------------

    def add_allocation(
        self,
        budget_id: int,
        category_id: int,
        allocated_amount: Amount,
        alert_threshold: Optional[Amount] = None,
    ) -> BudgetCategory:
        """
        Allocate part of a budget to a category.

        Raises:
            InvalidRequestError: Non-positive amount or threshold outside (0, 1]
            BudgetNotFoundError / CategoryNotFoundError: Unknown references
            DuplicateAllocationError: If the category is already allocated
        """
        self.get_budget(budget_id)
        self._require_category(category_id)

        if alert_threshold is None:
            alert_threshold = self.default_alert_threshold

        allocation = BudgetCategory(
            budget_id=budget_id,
            category_id=category_id,
            allocated_amount=self._validate_positive(allocated_amount, "allocated amount"),
            alert_threshold=self._validate_threshold(alert_threshold),
        )
        saved = self.budgets.add_allocation(allocation)
        logger.info("Allocated %s of budget %s to category %s",
                    saved.allocated_amount, budget_id, category_id)
        return saved

    def update_allocation(
        self,
        budget_id: int,
        category_id: int,
        *,
        allocated_amount: Optional[Amount] = None,
        alert_threshold: Optional[Amount] = None,
    ) -> BudgetCategory:
        allocation = self._require_allocation(budget_id, category_id)

        if allocated_amount is not None:
            allocation.allocated_amount = self._validate_positive(allocated_amount, "allocated amount")
        if alert_threshold is not None:
            allocation.alert_threshold = self._validate_threshold(alert_threshold)

        return self.budgets.update_allocation(allocation)

    def remove_allocation(self, budget_id: int, category_id: int) -> None:
        if not self.budgets.delete_allocation(budget_id, category_id):
            raise AllocationNotFoundError(
                f"Budget {budget_id} has no allocation for category {category_id}",
                details={"budget_id": budget_id, "category_id": category_id},
            )

    def list_allocations(self, budget_id: int) -> List[BudgetCategory]:
        self.get_budget(budget_id)
        return self.budgets.get_allocations(budget_id)

    # ------------------------------------------------------------------
    # Spend and summaries
    # ------------------------------------------------------------------

    def get_summary(self, budget_id: int, sort_alerts: bool = False) -> BudgetSummary:
        """
        Totals and alerts for a budget, computed from its current allocations.

        Raises:
            BudgetNotFoundError: If the budget doesn't exist
        """
        budget = self.get_budget(budget_id)
        allocations = self.budgets.get_allocations(budget_id)
        return self.analyzer.summarize(allocations, budget=budget, sort_alerts=sort_alerts)

    def set_spent_amount(self, budget_id: int, category_id: int, amount: Amount) -> BudgetCategory:
        """
        Replace the spent amount of one allocation.

        Raises:
            InvalidRequestError: If the amount is negative
            AllocationNotFoundError: If no allocation matches
        """
        amount = _to_decimal(amount, "spent amount")
        if amount < 0:
            raise InvalidRequestError(f"Spent amount cannot be negative, got {amount}")

        return self.budgets.set_spent_amount(budget_id, category_id, amount)

    def add_spent_amount(self, budget_id: int, category_id: int, delta: Amount) -> BudgetCategory:
        """
        Add to the spent amount of one allocation in a single atomic step.

        Concurrent callers never lose each other's updates. A negative
        delta (a refund) is allowed as long as the total stays >= 0.

        Raises:
            InvalidRequestError: If the total would become negative
            AllocationNotFoundError: If no allocation matches
        """
        delta = _to_decimal(delta, "spent amount")
        return self.budgets.increment_spent_amount(budget_id, category_id, delta)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_name(name: str) -> str:
        if name is None or not str(name).strip():
            raise InvalidRequestError("Budget name is required")
        return str(name).strip()

    @staticmethod
    def _validate_positive(value: Amount, field_name: str) -> Decimal:
        amount = _to_decimal(value, field_name)
        if amount <= 0:
            raise InvalidRequestError(f"The {field_name} must be greater than 0, got {amount}")
        return amount

    @staticmethod
    def _validate_threshold(value: Amount) -> Decimal:
        threshold = _to_decimal(value, "alert threshold")
        if not Decimal("0") < threshold <= Decimal("1"):
            raise InvalidRequestError(f"Alert threshold must be in (0, 1], got {threshold}")
        return threshold

    @staticmethod
    def _validate_dates(start_date: date, end_date: Optional[date]) -> None:
        if start_date is None:
            raise InvalidRequestError("Budget start date is required")
        if end_date is not None and end_date < start_date:
            raise InvalidRequestError(
                f"End date {end_date} is before start date {start_date}"
            )

    @staticmethod
    def _parse_period_type(value: Union[str, PeriodType]) -> PeriodType:
        if isinstance(value, PeriodType):
            return value
        try:
            return PeriodType(str(value).lower())
        except ValueError:
            valid = ", ".join(p.value for p in PeriodType)
            raise InvalidRequestError(f"Unknown period type '{value}'. Expected one of: {valid}")

    def _require_category(self, category_id: int) -> None:
        if self.categories.get_by_id(category_id) is None:
            raise CategoryNotFoundError(f"Category with ID {category_id} not found")

    def _require_allocation(self, budget_id: int, category_id: int) -> BudgetCategory:
        allocation = self.budgets.get_allocation(budget_id, category_id)
        if allocation is None:
            raise AllocationNotFoundError(
                f"Budget {budget_id} has no allocation for category {category_id}",
                details={"budget_id": budget_id, "category_id": category_id},
            )
        return allocation
