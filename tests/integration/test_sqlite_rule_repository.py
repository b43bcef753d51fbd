import pytest
from datetime import datetime

from finance_tracker.domain.exceptions import CategoryNotFoundError, RuleNotFoundError
from finance_tracker.domain.models import CategorizationRule


@pytest.mark.integration
class TestSQLiteRuleRepository:

    def test_save_and_get(self, rule_repo, food):
        saved = rule_repo.save(CategorizationRule(category_id=food.id, pattern="walmart", priority=1))

        fetched = rule_repo.get_by_id(saved.id)
        assert fetched.pattern == "walmart"
        assert fetched.priority == 1
        assert isinstance(fetched.created_at, datetime)

    def test_save_with_unknown_category(self, rule_repo):
        with pytest.raises(CategoryNotFoundError):
            rule_repo.save(CategorizationRule(category_id=404, pattern="walmart"))

    def test_rules_ordered_by_priority_then_creation(self, rule_repo, food):
        # Arrange
        for pattern, priority, minute in [("a", 1, 1), ("b", 5, 3), ("c", 5, 2), ("d", 0, 0)]:
            rule_repo.save(CategorizationRule(
                category_id=food.id,
                pattern=pattern,
                priority=priority,
                created_at=datetime(2025, 1, 1, 12, minute),
            ))

        # Act
        rules = rule_repo.list_rules(offset=0, limit=20)

        # Assert
        assert [r.pattern for r in rules] == ["c", "b", "a", "d"]

    def test_list_active_rules_excludes_inactive(self, rule_repo, food):
        rule_repo.save(CategorizationRule(category_id=food.id, pattern="on"))
        rule_repo.save(CategorizationRule(category_id=food.id, pattern="off", is_active=False))

        assert [r.pattern for r in rule_repo.list_active_rules()] == ["on"]

    def test_paging(self, rule_repo, food):
        for i in range(5):
            rule_repo.save(CategorizationRule(category_id=food.id, pattern=f"p{i}", priority=10 - i))

        page = rule_repo.list_rules(offset=2, limit=2)

        assert [r.pattern for r in page] == ["p2", "p3"]

    def test_update_and_delete(self, rule_repo, food):
        # Arrange
        rule = rule_repo.save(CategorizationRule(category_id=food.id, pattern="walmart"))

        # Act
        rule.priority = 9
        rule_repo.update(rule)

        # Assert
        assert rule_repo.get_by_id(rule.id).priority == 9
        assert rule_repo.count_by_category(food.id) == 1
        assert rule_repo.delete(rule.id)
        assert rule_repo.get_by_id(rule.id) is None
        assert not rule_repo.delete(rule.id)

    def test_update_missing_rule(self, rule_repo, food):
        with pytest.raises(RuleNotFoundError):
            rule_repo.update(CategorizationRule(id=77, category_id=food.id, pattern="x"))
