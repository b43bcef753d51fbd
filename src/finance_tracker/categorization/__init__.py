"""
Categorization system for the finance tracker.

Assigns a category to a transaction by walking a chain of user-defined,
prioritized rules, falling back to similar past transactions.

Quick Start:
    >>> from finance_tracker.categorization import CategorizationEngine
    >>>
    >>> engine = CategorizationEngine(rule_repo, category_repo, transaction_repo)
    >>> result = engine.categorize(request)
    >>> print(f"Categorized as: {result.category_name} ({result.source.value})")
"""
from finance_tracker.categorization.categorizer import (
    CategorizationEngine,
    RULE_CONFIDENCE,
    DEFAULT_SIMILARITY_LIMIT,
)
from finance_tracker.categorization.base import RuleLink
from finance_tracker.categorization.rules import (
    KeywordRule,
    RULE_TYPES,
    parse_pattern_type,
    rule_link_for,
)
from finance_tracker.categorization.similarity import SIMILARITY_MAX_CONFIDENCE

__all__ = [
    "CategorizationEngine",
    "RuleLink",
    "KeywordRule",
    "RULE_TYPES",
    "RULE_CONFIDENCE",
    "DEFAULT_SIMILARITY_LIMIT",
    "SIMILARITY_MAX_CONFIDENCE",
    "parse_pattern_type",
    "rule_link_for",
]
