import logging
from dataclasses import replace
from decimal import Decimal
from typing import Iterable, List, Optional

from finance_tracker.categorization.base import RuleLink
from finance_tracker.categorization.rules import rule_link_for
from finance_tracker.categorization.similarity import (
    amount_similarity,
    dominant_category,
    similarity_confidence,
)
from finance_tracker.domain.enums import CategorizationSource
from finance_tracker.domain.exceptions import CategoryNotFoundError, InvalidRequestError
from finance_tracker.domain.models import (
    CategorizationRequest,
    CategorizationResult,
    CategorizationRule,
    Category,
    CategorySuggestion,
    Transaction,
)
from finance_tracker.repositories.base import (
    CategorizationRuleRepository,
    CategoryRepository,
    TransactionRepository,
)

logger = logging.getLogger(__name__)

RULE_CONFIDENCE = 1.0
DEFAULT_SIMILARITY_LIMIT = 10


class CategorizationEngine:
    """
    Main engine for categorizing transactions.

    For each request:
    1. Builds a chain of the active rules, highest priority first
       (equal priorities keep the order the repository supplied)
    2. Returns the first rule that matches, with confidence 1.0
    3. Otherwise looks at similar categorized transactions
    4. Otherwise returns an uncategorized result (source "none")

    The engine holds no state of its own and never writes to any
    collaborator. Persisting the result is up to the caller.

    Usage:
        engine = CategorizationEngine(rule_repo, category_repo, transaction_repo)

        result = engine.categorize(CategorizationRequest(
            description="Walmart grocery purchase",
            merchant="Walmart",
        ))
        categorized = engine.categorize_many(transactions)
    """

    def __init__(
        self,
        rules: CategorizationRuleRepository,
        categories: CategoryRepository,
        transactions: Optional[TransactionRepository] = None,
        similarity_limit: int = DEFAULT_SIMILARITY_LIMIT,
    ):
        """
        Initialize categorization engine.

        Args:
            rules: Source of the active rule set
            categories: Category lookup for resolving rule targets
            transactions: Similarity search collaborator. Without it the
                engine falls straight through to an uncategorized result.
            similarity_limit: Max similar transactions to inspect
        """
        self.rules = rules
        self.categories = categories
        self.transactions = transactions
        self.similarity_limit = similarity_limit

    def categorize(self, request: CategorizationRequest) -> CategorizationResult:
        """
        Categorize a single request.

        Raises:
            InvalidRequestError: If description and merchant are both empty
            CategoryNotFoundError: If the winning rule (or the dominant similar
                category) points at a category that no longer exists

        Example:
            ```
            >>> result = engine.categorize(CategorizationRequest("Walmart grocery purchase", "Walmart"))
            >>> result.category_name, result.source, result.confidence
            ('Food', <CategorizationSource.RULE: 'rule'>, 1.0)
            ```
        """
        self._validate(request)

        chain = self.build_rule_chain(self.rules.list_active_rules())
        rule = chain.find_match(request) if chain else None

        if rule is not None:
            result = self._result_from_rule(rule)
        else:
            result = self._categorize_by_similarity(request)

        logger.debug(
            "Categorized %r / %r -> %s (%s, %.2f)",
            request.description,
            request.merchant,
            result.category_name,
            result.source.value,
            result.confidence,
        )
        return result

    def categorize_transaction(self, transaction: Transaction) -> CategorizationResult:
        """Categorize a transaction by its description, merchant and amount."""
        return self.categorize(CategorizationRequest(
            description=transaction.description or "",
            merchant=transaction.merchant or "",
            amount=transaction.amount,
        ))

    @staticmethod
    def apply(transaction: Transaction, result: CategorizationResult) -> Transaction:
        """
        Return a copy of the transaction carrying the result.

        Uncategorized results never clear an existing category; on an
        uncategorized transaction they only record the source.
        """
        if not result.is_categorized:
            if transaction.is_categorized:
                return transaction
            return replace(
                transaction,
                categorization_source=result.source,
                categorization_confidence=result.confidence,
            )

        return replace(
            transaction,
            category_id=result.category_id,
            categorization_source=result.source,
            categorization_confidence=result.confidence,
        )

    def categorize_many(
        self,
        transactions: List[Transaction],
        overwrite: bool = False
    ) -> List[Transaction]:
        """
        Categorize multiple transactions.

        Args:
            transactions: List of transactions to categorize
            overwrite: If True, re-categorize even if already categorized.
                      If False, only categorize uncategorized transactions.

        Returns:
            New list in the same order, one entry per input transaction
        """
        categorized = []

        for txn in transactions:
            if not overwrite and txn.is_categorized:
                categorized.append(txn)
                continue

            if not (txn.description or "").strip() and not (txn.merchant or "").strip():
                logger.warning("Skipping transaction %s with no description or merchant", txn.id)
                categorized.append(txn)
                continue

            result = self.categorize_transaction(txn)
            categorized.append(self.apply(txn, result))

        return categorized

    @staticmethod
    def build_rule_chain(rules: Iterable[CategorizationRule]) -> Optional[RuleLink]:
        """
        Build the chain of responsibility for a rule set.

        Inactive rules are dropped. The sort is stable, so rules with the
        same priority stay in the order they were supplied.

        Returns:
            Head of the chain, or None if there are no active rules
        """
        active = [rule for rule in rules if rule.is_active]
        ordered = sorted(active, key=lambda rule: rule.priority, reverse=True)

        links = [rule_link_for(rule) for rule in ordered]
        if not links:
            return None

        for i in range(len(links) - 1):
            links[i].set_next(links[i + 1])

        return links[0]

    def _validate(self, request: CategorizationRequest) -> None:
        description = (request.description or "").strip()
        merchant = (request.merchant or "").strip()
        if not description and not merchant:
            raise InvalidRequestError("Description or merchant is required to categorize")

    def _get_category(self, category_id: int, referenced_by: str) -> Category:
        category = self.categories.get_by_id(category_id)
        if category is None:
            raise CategoryNotFoundError(
                f"Category {category_id} referenced by {referenced_by} does not exist",
                details={"category_id": category_id},
            )
        return category

    def _result_from_rule(self, rule: CategorizationRule) -> CategorizationResult:
        category = self._get_category(rule.category_id, f"rule {rule.id}")
        return CategorizationResult(
            source=CategorizationSource.RULE,
            confidence=RULE_CONFIDENCE,
            category_id=category.id,
            category_name=category.name,
            matched_pattern=rule.pattern,
            rule_id=rule.id,
        )

    def _categorize_by_similarity(self, request: CategorizationRequest) -> CategorizationResult:
        """Fall back to the most common category among similar transactions."""
        uncategorized = CategorizationResult(source=CategorizationSource.NONE, confidence=0.0)

        if self.transactions is None:
            return uncategorized

        merchant = (request.merchant or "").strip()
        search_text = merchant or (request.description or "").strip()

        similar = self.transactions.find_similar_transactions(search_text, self.similarity_limit)
        if not similar:
            return uncategorized

        winner = dominant_category(similar)
        if winner is None:
            return uncategorized

        category = self._get_category(winner.category_id, "similar transactions")
        amount = Decimal(str(request.amount)) if request.amount is not None else Decimal("0")
        confidence = similarity_confidence(winner.share, amount_similarity(amount, similar))

        alternatives = []
        for vote in winner.runners_up:
            alternative = self.categories.get_by_id(vote.category_id)
            if alternative is None:
                # Only the winner has to resolve; a stale runner-up is just dropped
                logger.warning("Similar transaction references missing category %s", vote.category_id)
                continue
            alternatives.append(CategorySuggestion(
                category_id=alternative.id,
                category_name=alternative.name,
                confidence=round(vote.count / winner.total, 4),
            ))

        return CategorizationResult(
            source=CategorizationSource.SIMILARITY,
            confidence=confidence,
            category_id=category.id,
            category_name=category.name,
            alternatives=alternatives,
        )

    def __repr__(self) -> str:
        return f"CategorizationEngine(similarity_limit={self.similarity_limit})"
