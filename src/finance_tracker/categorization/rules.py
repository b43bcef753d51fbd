from typing import Dict, Type, Union

from finance_tracker.categorization.base import RuleLink
from finance_tracker.domain.enums import PatternType
from finance_tracker.domain.exceptions import InvalidRequestError
from finance_tracker.domain.models import CategorizationRequest, CategorizationRule


class KeywordRule(RuleLink):
    """
    Link that matches a keyword in a transaction's description or merchant.

    Features:
    - Case-insensitive substring matching
    - Description and merchant are checked independently, so a keyword
      can't accidentally match across the two fields

    Example:
        ```
        # Match "Walmart grocery purchase" / merchant "WALMART" -> Food
        rule = KeywordRule(CategorizationRule(category_id=food.id, pattern="walmart"))
        ```
    """

    def __init__(self, rule: CategorizationRule):
        super().__init__(rule)

        # Pre-process keyword to lowercase for case-insensitive matching
        self._keyword = rule.pattern.lower()

    def _matches(self, request: CategorizationRequest) -> bool:
        """Check if the keyword appears in either field"""
        if not self._keyword:
            return False

        for text in (request.description, request.merchant):
            if text and self._keyword in text.lower():
                return True

        return False


# One link class per pattern type. New variants (regex, model-backed)
# register here without changing the engine's signature.
RULE_TYPES: Dict[PatternType, Type[RuleLink]] = {
    PatternType.KEYWORD: KeywordRule,
}


def parse_pattern_type(value: Union[str, PatternType]) -> PatternType:
    """
    Convert a user-supplied pattern type into a supported PatternType.

    Raises:
        InvalidRequestError: If the pattern type is unknown or has no link class
    """
    if isinstance(value, PatternType):
        pattern_type = value
    else:
        try:
            pattern_type = PatternType(str(value).strip().lower())
        except ValueError:
            supported = ", ".join(t.value for t in RULE_TYPES)
            raise InvalidRequestError(
                f"Invalid pattern type: {value!r}. Supported: {supported}",
                details={"pattern_type": value},
            )

    if pattern_type not in RULE_TYPES:
        raise InvalidRequestError(f"Pattern type '{pattern_type.value}' is not supported")

    return pattern_type


def rule_link_for(rule: CategorizationRule) -> RuleLink:
    """Wrap a stored rule in the link class for its pattern type."""
    link_class = RULE_TYPES.get(rule.pattern_type)
    if link_class is None:
        raise InvalidRequestError(
            f"Rule {rule.id} has unsupported pattern type '{rule.pattern_type}'"
        )
    return link_class(rule)
