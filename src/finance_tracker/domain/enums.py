from enum import Enum

class TransactionType(Enum):
    """Represents whether money is coming in or out"""
    DEBIT = "Debit" # out
    CREDIT = "Credit" # in


class PatternType(Enum):
    """How a categorization rule's pattern is matched against a transaction"""
    KEYWORD = "keyword"


class CategorizationSource(Enum):
    """Where a transaction's category came from"""
    RULE = "rule"
    SIMILARITY = "similarity"
    NONE = "none"
    MANUAL = "manual" # never produced by the engine


class AlertType(Enum):
    """Budget alert tiers"""
    WARNING = "warning"
    CRITICAL = "critical"
    OVER_BUDGET = "over_budget"

    @property
    def severity(self) -> int:
        """Higher is worse"""
        return _ALERT_SEVERITY[self]


_ALERT_SEVERITY = {
    AlertType.WARNING: 1,
    AlertType.CRITICAL: 2,
    AlertType.OVER_BUDGET: 3,
}


class PeriodType(Enum):
    """Planning period a budget covers"""
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"
    CUSTOM = "custom"
