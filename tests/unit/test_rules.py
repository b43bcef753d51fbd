import pytest

from finance_tracker.categorization import KeywordRule, parse_pattern_type, rule_link_for
from finance_tracker.domain.enums import PatternType
from finance_tracker.domain.exceptions import InvalidRequestError
from finance_tracker.domain.models import CategorizationRequest, CategorizationRule


def keyword_rule(pattern, priority=0, rule_id=1) -> KeywordRule:
    return KeywordRule(CategorizationRule(id=rule_id, category_id=1, pattern=pattern, priority=priority))


@pytest.mark.unit
class TestKeywordRule:
    """Test keyword matching"""

    @pytest.mark.parametrize("description", [
        "WALMART SUPERCENTER",
        "walmart.com order",
        "Purchase at WalMart",
    ])
    def test_case_insensitive_substring(self, description):
        link = keyword_rule("walmart")

        assert link.find_match(CategorizationRequest(description=description)) is link.rule

    def test_checks_merchant(self):
        link = keyword_rule("costco")

        assert link.find_match(CategorizationRequest(description="POS 9912", merchant="COSTCO WHOLESALE"))

    def test_does_not_match_across_fields(self):
        """'shop' + 'ify' must not join into 'shopify'"""
        link = keyword_rule("shopify")

        assert link.find_match(CategorizationRequest(description="coffee shop", merchant="ify")) is None

    def test_no_match_returns_none(self):
        link = keyword_rule("netflix")

        assert link.find_match(CategorizationRequest(description="Spotify")) is None


@pytest.mark.unit
class TestChain:

    def test_passes_to_next_link(self):
        # Arrange
        first = keyword_rule("walmart", rule_id=1)
        second = keyword_rule("starbucks", rule_id=2)
        first.set_next(second)

        # Act
        matched = first.find_match(CategorizationRequest(description="Starbucks #42"))

        # Assert
        assert matched.id == 2

    def test_first_match_wins(self):
        first = keyword_rule("star", rule_id=1)
        first.set_next(keyword_rule("starbucks", rule_id=2))

        matched = first.find_match(CategorizationRequest(description="Starbucks #42"))

        assert matched.id == 1

    def test_set_next_returns_link_for_chaining(self):
        first = keyword_rule("a", rule_id=1)
        third = keyword_rule("c", rule_id=3)

        first.set_next(keyword_rule("b", rule_id=2)).set_next(third)

        assert len(first) == 3
        assert first.next_rule.next_rule is third

    def test_long_chain_does_not_recurse(self):
        # Arrange
        head = keyword_rule("<0>", rule_id=0)
        link = head
        for i in range(1, 5000):
            link = link.set_next(keyword_rule(f"<{i}>", rule_id=i))

        # Act
        matched = head.find_match(CategorizationRequest(description="<4999>"))

        # Assert
        assert matched.id == 4999


@pytest.mark.unit
class TestPatternTypes:

    @pytest.mark.parametrize("value", ["keyword", "KEYWORD", " Keyword ", PatternType.KEYWORD])
    def test_parse_keyword(self, value):
        assert parse_pattern_type(value) == PatternType.KEYWORD

    @pytest.mark.parametrize("value", ["regex", "", "ml"])
    def test_unknown_type_is_rejected(self, value):
        with pytest.raises(InvalidRequestError):
            parse_pattern_type(value)

    def test_rule_link_for_keyword(self):
        rule = CategorizationRule(category_id=1, pattern="uber")

        assert isinstance(rule_link_for(rule), KeywordRule)
