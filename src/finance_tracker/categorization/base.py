from abc import ABC, abstractmethod
from typing import Optional

from finance_tracker.domain.models import CategorizationRequest, CategorizationRule


class RuleLink(ABC):
    """
    Abstract base class for one link in a categorization rule chain.

    Implements Chain of Responsibility:
    - Each link wraps one stored rule and tries to match a request
    - If it can't it passes to the next link
    - Links are ordered by priority before the chain is built

    Usage:
        Create chain: highest priority -> lowest priority
        ```
        first = KeywordRule(walmart_rule)
        first.set_next(KeywordRule(costco_rule)).set_next(KeywordRule(shell_rule))

        rule = first.find_match(request)
        ```
    """

    def __init__(self, rule: CategorizationRule):
        self.rule = rule
        self._next_rule: Optional['RuleLink'] = None

    @property
    def next_rule(self) -> Optional['RuleLink']:
        return self._next_rule

    def set_next(self, link: 'RuleLink') -> 'RuleLink':
        """
        Set the next link in the chain.

        Args:
            link: The link to try if this one doesn't match

        Returns:
            The link that was set (for chaining)

        Example:
            `link1.set_next(link2).set_next(link3)`
        """
        self._next_rule = link
        return link

    @abstractmethod
    def _matches(self, request: CategorizationRequest) -> bool:
        """
        Check if this link's rule matches the request.

        Subclasses implement their pattern-type specific logic here.
        """
        pass

    def find_match(self, request: CategorizationRequest) -> Optional[CategorizationRule]:
        """
        Walk the chain starting at this link and return the first matching rule.

        The chain is walked iteratively so long rule sets don't hit the
        recursion limit.

        Returns:
            The winning rule, or None if no link matched
        """
        current: Optional[RuleLink] = self
        while current is not None:
            if current._matches(request):
                return current.rule
            current = current._next_rule

        return None

    def __len__(self) -> int:
        length = 0
        current: Optional[RuleLink] = self
        while current is not None:
            length += 1
            current = current._next_rule
        return length

    def __repr__(self):
        return f"{self.__class__.__name__}({self.rule.pattern!r}, priority={self.rule.priority})"
