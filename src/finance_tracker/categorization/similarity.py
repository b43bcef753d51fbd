"""
Fallback scoring for transactions no rule matched.

Looks at how textually similar, already-categorized transactions were
categorized and picks the most common category among them.
"""
from collections import Counter
from decimal import Decimal
from typing import List, NamedTuple, Optional, Sequence

from finance_tracker.domain.models import Transaction

SIMILARITY_MAX_CONFIDENCE = 0.8

# Used when the similar set has no usable amounts to compare against
NEUTRAL_AMOUNT_SIMILARITY = 0.5


class CategoryVote(NamedTuple):
    category_id: int
    count: int


class DominantCategory(NamedTuple):
    category_id: int
    count: int
    total: int
    runners_up: List[CategoryVote]

    @property
    def share(self) -> float:
        return self.count / self.total


def dominant_category(transactions: Sequence[Transaction]) -> Optional[DominantCategory]:
    """
    Find the most common category among similar transactions.

    Uncategorized transactions don't vote. Ties go to the category seen
    first, so the result is stable for a fixed input order.

    Returns:
        The winner with its vote count, or None if nothing carried a category
    """
    votes = Counter(
        txn.category_id for txn in transactions if txn.category_id is not None
    )
    if not votes:
        return None

    # Counter keeps first-insertion order and most_common() sorts stably
    ranked = votes.most_common()
    best_id, best_count = ranked[0]

    return DominantCategory(
        category_id=best_id,
        count=best_count,
        total=sum(votes.values()),
        runners_up=[CategoryVote(cid, count) for cid, count in ranked[1:]],
    )


def amount_similarity(amount: Decimal, transactions: Sequence[Transaction]) -> float:
    """
    Score how close ``amount`` is to the mean amount of ``transactions``.

    1.0 means identical to the mean, 0.0 means at least 100% away.
    """
    amounts = [abs(Decimal(txn.amount)) for txn in transactions if txn.amount is not None]
    if not amounts:
        return NEUTRAL_AMOUNT_SIMILARITY

    mean = sum(amounts, Decimal("0")) / len(amounts)
    if mean == 0:
        return NEUTRAL_AMOUNT_SIMILARITY

    similarity = 1 - abs(abs(Decimal(amount)) - mean) / mean
    return float(max(Decimal("0"), min(Decimal("1"), similarity)))


def similarity_confidence(share: float, amount_score: float) -> float:
    """Blend category share and amount closeness, always below a rule match."""
    return round(min(SIMILARITY_MAX_CONFIDENCE, (share + amount_score) / 2), 4)
