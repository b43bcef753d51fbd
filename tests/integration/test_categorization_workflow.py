import pytest
from datetime import date
from decimal import Decimal

from finance_tracker.categorization import CategorizationEngine
from finance_tracker.domain.enums import CategorizationSource
from finance_tracker.domain.exceptions import CategoryCycleError, InvalidRequestError
from finance_tracker.services.categorization_service import CategorizationService
from finance_tracker.services.category_service import CategoryService
from finance_tracker.services.transaction_service import TransactionService


@pytest.fixture
def category_service(category_repo, rule_repo, budget_repo) -> CategoryService:
    return CategoryService(category_repo, rule_repo, budget_repo)


@pytest.fixture
def categorization_service(rule_repo, category_repo, transaction_repo) -> CategorizationService:
    return CategorizationService(rule_repo, category_repo, transaction_repo)


@pytest.mark.integration
class TestCategorizationWorkflow:
    """Rules, similarity and storage working together on a real database"""

    def test_walmart_purchase_is_food(self, categorization_service, food):
        # Arrange
        categorization_service.create_rule(food.id, "walmart", priority=1)

        # Act
        result = categorization_service.categorize(
            "Walmart grocery purchase", merchant="Walmart", amount="84.12",
        )

        # Assert
        assert result.category_name == "Food"
        assert result.source == CategorizationSource.RULE
        assert result.confidence == 1.0

    def test_rule_priority_on_real_storage(self, categorization_service, food, groceries):
        categorization_service.create_rule(food.id, "walmart", priority=1)
        categorization_service.create_rule(groceries.id, "walmart grocery", priority=5)

        result = categorization_service.categorize("Walmart grocery purchase")

        assert result.category_id == groceries.id

    def test_disabled_rule_falls_through(self, categorization_service, food, groceries):
        # Arrange
        rule = categorization_service.create_rule(groceries.id, "walmart", priority=5)
        categorization_service.create_rule(food.id, "walmart", priority=1)

        # Act
        categorization_service.update_rule(rule.id, is_active=False)
        result = categorization_service.categorize("WALMART")

        # Assert
        assert result.category_id == food.id

    def test_similarity_learns_from_history(self, categorization_service, transaction_repo, txn_factory, food):
        # Arrange
        for day in (1, 2, 3):
            transaction_repo.save(txn_factory(
                "Corner Deli", "12.00", merchant="Corner Deli", category_id=food.id,
                txn_date=date(2025, 1, day),
            ))

        # Act
        result = categorization_service.categorize("CORNER DELI 0042", merchant="Corner Deli", amount="12.00")

        # Assert
        assert result.source == CategorizationSource.SIMILARITY
        assert result.category_id == food.id
        assert result.confidence == 0.8

    def test_nothing_known_is_uncategorized(self, categorization_service, food):
        result = categorization_service.categorize("Mystery charge")

        assert result.source == CategorizationSource.NONE
        assert result.category_id is None

    def test_blank_request_is_rejected(self, categorization_service):
        with pytest.raises(InvalidRequestError):
            categorization_service.categorize("", merchant="")

    def test_rule_changes_do_not_touch_categorized_transactions(
            self, categorization_service, transaction_repo, txn_factory, food, groceries
    ):
        # Arrange
        rule = categorization_service.create_rule(food.id, "walmart")
        saved = transaction_repo.save(txn_factory("Walmart"))
        categorization_service.categorize_transaction(saved.id)

        # Act
        categorization_service.update_rule(rule.id, category_id=groceries.id)
        categorization_service.categorize_transactions()

        # Assert
        assert transaction_repo.get_by_id(saved.id).category_id == food.id

    def test_import_and_categorize(self, rule_repo, category_repo, transaction_repo, sample_csv, food):
        # Arrange
        CategorizationService(rule_repo, category_repo, transaction_repo).create_rule(food.id, "walmart")
        engine = CategorizationEngine(rule_repo, category_repo, transaction_repo)
        service = TransactionService(transaction_repo, categorization_engine=engine)

        # Act
        first = service.import_statement(sample_csv, "checking", categorize=True)
        second = service.import_statement(sample_csv, "checking")

        # Assert
        assert first.new_transactions == 5
        assert first.categorized == 1
        assert second.new_transactions == 0
        assert second.duplicates_skipped == 5
        walmart = [t for t in transaction_repo.get_all() if t.merchant == "Walmart"][0]
        assert walmart.category_id == food.id
        assert walmart.amount == Decimal("84.12")


@pytest.mark.integration
class TestCategoryHierarchy:

    def test_cycle_is_rejected(self, category_service, food, groceries):
        produce = category_service.create_category("Produce", parent_id=groceries.id)

        with pytest.raises(CategoryCycleError):
            category_service.update_category(food.id, parent_id=produce.id)

    def test_duplicate_name_is_rejected(self, category_service, food):
        with pytest.raises(InvalidRequestError):
            category_service.create_category("FOOD")

    def test_seed_defaults_from_packaged_config(self, category_service, rule_repo):
        from finance_tracker.config.settings import ConfigLoader

        created = category_service.seed_defaults(
            ConfigLoader.load_categories_config(), ConfigLoader.load_rules_config(),
        )

        assert created > 0
        assert category_service.find_by_name("Groceries").parent_id == category_service.find_by_name("Food").id
        assert rule_repo.list_active_rules()
        assert category_service.seed_defaults(ConfigLoader.load_categories_config()) == 0

    def test_delete_referenced_category_is_rejected(self, category_service, categorization_service, food):
        categorization_service.create_rule(food.id, "walmart")

        with pytest.raises(InvalidRequestError):
            category_service.delete_category(food.id)
