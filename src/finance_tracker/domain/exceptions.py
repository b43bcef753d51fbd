"""Exception hierarchy for the finance tracker.

Engines and services raise these; the CLI maps them to error output.
Storage errors that have a domain meaning (missing rows, uniqueness
violations) are translated into the matching class here.
"""
from typing import Any, Dict, Optional


class FinanceTrackerError(Exception):
    """Base exception for all finance tracker errors.

    Attributes:
        message: Human-readable description
        details: Additional context for logging (not shown to users)
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class InvalidRequestError(FinanceTrackerError):
    """Raised when input is malformed or violates a validation rule."""
    pass


class CategoryCycleError(InvalidRequestError):
    """Raised when a parent link would make a category its own ancestor."""
    pass


class NotFoundError(FinanceTrackerError):
    """Base class for lookups by id that found nothing."""
    pass


class CategoryNotFoundError(NotFoundError):
    """Raised when a category does not exist.

    Seen during categorization this means a rule points at a deleted
    category, which is a referential-integrity problem in the rule set.
    """
    pass


class RuleNotFoundError(NotFoundError):
    """Raised when a categorization rule cannot be found."""
    pass


class BudgetNotFoundError(NotFoundError):
    """Raised when a budget cannot be found."""
    pass


class AllocationNotFoundError(NotFoundError):
    """Raised when no allocation exists for a budget/category pair."""
    pass


class TransactionNotFoundError(NotFoundError):
    """Raised when a transaction cannot be found."""
    pass


class DuplicateTransactionError(FinanceTrackerError):
    """Raised when attempting to save a duplicate transaction."""
    pass


class DuplicateAllocationError(FinanceTrackerError):
    """Raised when a budget already has an allocation for a category."""
    pass


class StatementFormatError(FinanceTrackerError):
    """Raised when a statement file can't be read as a statement."""
    pass
