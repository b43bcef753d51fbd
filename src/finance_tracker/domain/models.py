from dataclasses import dataclass, field
from decimal import Decimal
from datetime import date, datetime
from typing import List, Optional
from finance_tracker.domain.enums import (
    AlertType,
    CategorizationSource,
    PatternType,
    PeriodType,
    TransactionType,
)

DEFAULT_CURRENCY = "USD"


@dataclass
class Category:
    """A spending category, optionally nested under a parent"""
    name: str
    parent_id: Optional[int] = None
    is_default: bool = False
    is_active: bool = True
    sort_order: int = 0
    id: Optional[int] = None

    def __repr__(self):
        return f"Category({self.id}, {self.name!r})"


@dataclass
class CategorizationRule:
    """
    A prioritized keyword-to-category mapping.

    Higher priority wins. Rules with equal priority are evaluated in
    creation order.
    """
    category_id: int
    pattern: str
    pattern_type: PatternType = PatternType.KEYWORD
    priority: int = 0
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    id: Optional[int] = None

    def __repr__(self):
        state = "" if self.is_active else ", inactive"
        return f"CategorizationRule({self.id}, {self.pattern!r} -> {self.category_id}, p={self.priority}{state})"


@dataclass
class Transaction:
    """Core domain model representing a single transaction"""
    date: date
    description: str
    amount: Decimal
    type: TransactionType
    account: str
    merchant: str = ""
    currency: str = DEFAULT_CURRENCY
    category_id: Optional[int] = None
    categorization_confidence: Optional[float] = None
    categorization_source: Optional[CategorizationSource] = None
    raw_data: Optional[str] = None
    id: Optional[int] = None

    def __hash__(self):
        """Hash for duplicate detection"""
        return hash((self.date, self.description, self.amount, self.type))

    @property
    def signed_amount(self):
        """Return amount with sign for net calculations"""
        return self.amount if self.type == TransactionType.CREDIT else -self.amount

    @property
    def is_categorized(self) -> bool:
        return self.category_id is not None

    def __repr__(self):
        sign = "+" if self.type == TransactionType.CREDIT else "-"
        return f"Transaction({self.date}, {self.description[:30]}, {sign}${self.amount})"


@dataclass
class Budget:
    """A spending plan for one period"""
    name: str
    start_date: date
    total_amount: Decimal
    end_date: Optional[date] = None
    period_type: PeriodType = PeriodType.MONTHLY
    currency: str = DEFAULT_CURRENCY
    description: str = ""
    is_active: bool = True
    id: Optional[int] = None


@dataclass
class BudgetCategory:
    """
    The allocation of a budget to one category.

    spent_amount is a running total maintained by transaction processing;
    analysis only ever reads it.
    """
    budget_id: int
    category_id: int
    allocated_amount: Decimal
    spent_amount: Decimal = Decimal("0")
    alert_threshold: Decimal = Decimal("0.80")
    id: Optional[int] = None

    @property
    def remaining_amount(self) -> Decimal:
        return self.allocated_amount - self.spent_amount


@dataclass(frozen=True)
class CategorizationRequest:
    """The descriptive fields of a transaction that categorization looks at"""
    description: str = ""
    merchant: str = ""
    amount: Decimal = Decimal("0")


@dataclass(frozen=True)
class CategorySuggestion:
    """A runner-up category seen during similarity search"""
    category_id: int
    category_name: str
    confidence: float


@dataclass(frozen=True)
class CategorizationResult:
    """Outcome of a single categorization call"""
    source: CategorizationSource
    confidence: float = 0.0
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    matched_pattern: Optional[str] = None
    rule_id: Optional[int] = None
    alternatives: List[CategorySuggestion] = field(default_factory=list)

    @property
    def is_categorized(self) -> bool:
        return self.category_id is not None


@dataclass(frozen=True)
class BudgetAlert:
    """A threshold crossing for one allocation"""
    category_id: int
    allocated_amount: Decimal
    spent_amount: Decimal
    threshold: Decimal
    alert_type: AlertType
    message: str


@dataclass
class BudgetSummary:
    """Totals and alerts derived from a budget's allocations"""
    total_allocated: Decimal
    total_spent: Decimal
    remaining_amount: Decimal
    spending_progress: Decimal
    alerts: List[BudgetAlert] = field(default_factory=list)
    allocations: List[BudgetCategory] = field(default_factory=list)
    budget: Optional[Budget] = None

    @property
    def is_over_budget(self) -> bool:
        return self.total_spent > self.total_allocated
