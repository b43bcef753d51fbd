"""
Budget spend analysis.

Turns a budget's allocations into totals and tiered alerts. Pure
computation over the allocations it is handed: nothing is read from or
written to storage here.
"""
import logging
from decimal import Decimal
from typing import Iterable, List, Optional

from finance_tracker.domain.enums import AlertType
from finance_tracker.domain.models import Budget, BudgetAlert, BudgetCategory, BudgetSummary

logger = logging.getLogger(__name__)

OVER_BUDGET_RATIO = Decimal("1")
CRITICAL_THRESHOLD = Decimal("0.90")
DEFAULT_ALERT_THRESHOLD = Decimal("0.80")

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


def _as_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


class BudgetAnalyzer:
    """
    Computes BudgetSummary values from allocations.

    Alert tiers for an allocation with ratio = spent / allocated:
    - ratio >= 1.0              -> over_budget
    - ratio >= alert_threshold  -> warning
    - ratio >= 0.90             -> critical
    The checks run in that order, so an allocation whose alert_threshold
    is below 0.90 reports warning, never critical.

    Usage:
        analyzer = BudgetAnalyzer()
        summary = analyzer.summarize(allocations, budget=budget)
        for alert in summary.alerts:
            print(alert.alert_type.value, alert.message)
    """

    def classify(self, allocation: BudgetCategory) -> Optional[BudgetAlert]:
        """
        Work out the alert for one allocation.

        Returns:
            The alert, or None when the allocation is under every threshold
            or has nothing allocated
        """
        allocated = _as_decimal(allocation.allocated_amount)
        spent = _as_decimal(allocation.spent_amount)
        threshold = _as_decimal(allocation.alert_threshold)

        if allocated <= 0:
            return None

        ratio = spent / allocated
        percent_used = ratio * _HUNDRED

        if ratio >= OVER_BUDGET_RATIO:
            alert_type = AlertType.OVER_BUDGET
            message = (
                f"You've exceeded your budget for this category by ${spent - allocated:.2f}"
            )
        elif ratio >= threshold:
            alert_type = AlertType.WARNING
            message = f"You've used {percent_used:.1f}% of your budget for this category"
        elif ratio >= CRITICAL_THRESHOLD:
            alert_type = AlertType.CRITICAL
            message = f"You're approaching your budget limit ({percent_used:.1f}% used)"
        else:
            return None

        return BudgetAlert(
            category_id=allocation.category_id,
            allocated_amount=allocated,
            spent_amount=spent,
            threshold=threshold,
            alert_type=alert_type,
            message=message,
        )

    def generate_alerts(self, allocations: Iterable[BudgetCategory]) -> List[BudgetAlert]:
        """Alerts in the same order as the allocations they came from."""
        alerts = []
        for allocation in allocations:
            alert = self.classify(allocation)
            if alert is not None:
                alerts.append(alert)
        return alerts

    def summarize(
        self,
        allocations: Iterable[BudgetCategory],
        budget: Optional[Budget] = None,
        sort_alerts: bool = False,
    ) -> BudgetSummary:
        """
        Aggregate allocations into a summary.

        Allocations with nothing allocated still add their spent amount to
        the totals; they are only left out of alerting.

        Args:
            allocations: The budget's allocations
            budget: Budget the allocations belong to, carried on the summary
            sort_alerts: Order alerts most severe first instead of
                allocation order

        Returns:
            A freshly computed BudgetSummary
        """
        allocations = list(allocations)

        total_allocated = sum((_as_decimal(a.allocated_amount) for a in allocations), _ZERO)
        total_spent = sum((_as_decimal(a.spent_amount) for a in allocations), _ZERO)

        if total_allocated > 0:
            spending_progress = total_spent / total_allocated * _HUNDRED
        else:
            spending_progress = _ZERO

        alerts = self.generate_alerts(allocations)
        if sort_alerts:
            alerts = self.sort_by_severity(alerts)

        logger.debug(
            "Summarized %d allocations: %s of %s spent, %d alerts",
            len(allocations), total_spent, total_allocated, len(alerts),
        )

        return BudgetSummary(
            total_allocated=total_allocated,
            total_spent=total_spent,
            remaining_amount=total_allocated - total_spent,
            spending_progress=spending_progress,
            alerts=alerts,
            allocations=allocations,
            budget=budget,
        )

    @staticmethod
    def sort_by_severity(alerts: Iterable[BudgetAlert]) -> List[BudgetAlert]:
        """Most severe first; equal tiers keep their original order."""
        return sorted(alerts, key=lambda alert: alert.alert_type.severity, reverse=True)
