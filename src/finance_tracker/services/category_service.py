import logging
from typing import Any, Dict, List, Optional

from finance_tracker.domain.exceptions import (
    CategoryCycleError,
    CategoryNotFoundError,
    InvalidRequestError,
)
from finance_tracker.domain.models import CategorizationRule, Category
from finance_tracker.categorization import parse_pattern_type
from finance_tracker.repositories.base import (
    BudgetRepository,
    CategorizationRuleRepository,
    CategoryRepository,
)

logger = logging.getLogger(__name__)


class CategoryService:
    """
    Manages the category catalog.

    Parent links form a tree. Every change that sets a parent walks the
    ancestor chain and refuses anything that would close a loop.
    """

    def __init__(
        self,
        categories: CategoryRepository,
        rules: CategorizationRuleRepository,
        budgets: BudgetRepository,
    ):
        self.categories = categories
        self.rules = rules
        self.budgets = budgets

    def create_category(
        self,
        name: str,
        parent_id: Optional[int] = None,
        is_default: bool = False,
        sort_order: int = 0,
    ) -> Category:
        """
        Create a category.

        Raises:
            InvalidRequestError: If the name is empty or already taken
            CategoryNotFoundError: If the parent doesn't exist
            CategoryCycleError: If the parent's own ancestry already loops
        """
        name = self._validate_name(name)
        if parent_id is not None:
            self.get_category(parent_id)
            self.ancestors(parent_id)

        category = self.categories.save(Category(
            name=name,
            parent_id=parent_id,
            is_default=is_default,
            sort_order=sort_order,
        ))
        logger.info("Created category %s (%s)", category.id, category.name)
        return category

    def get_category(self, category_id: int) -> Category:
        category = self.categories.get_by_id(category_id)
        if category is None:
            raise CategoryNotFoundError(f"Category with ID {category_id} not found")
        return category

    def find_by_name(self, name: str) -> Category:
        category = self.categories.get_by_name(name)
        if category is None:
            raise CategoryNotFoundError(f"Category '{name}' not found")
        return category

    def list_categories(self, include_inactive: bool = False) -> List[Category]:
        return self.categories.get_all(include_inactive=include_inactive)

    def list_default_categories(self) -> List[Category]:
        return self.categories.get_defaults()

    def update_category(
        self,
        category_id: int,
        *,
        name: Optional[str] = None,
        parent_id: Optional[int] = None,
        clear_parent: bool = False,
        is_active: Optional[bool] = None,
        sort_order: Optional[int] = None,
    ) -> Category:
        """
        Rename, re-parent, (de)activate or reorder a category.

        Raises:
            CategoryCycleError: If the new parent is the category itself or
                one of its descendants
        """
        category = self.get_category(category_id)

        if name is not None:
            category.name = self._validate_name(name)
        if clear_parent:
            category.parent_id = None
        elif parent_id is not None:
            self.get_category(parent_id)
            ancestor_ids = {ancestor.id for ancestor in self.ancestors(parent_id)}
            if category_id == parent_id or category_id in ancestor_ids:
                raise CategoryCycleError(
                    f"Category {category_id} can't be nested under {parent_id}: "
                    f"it would become its own ancestor",
                    details={"category_id": category_id, "parent_id": parent_id},
                )
            category.parent_id = parent_id
        if is_active is not None:
            category.is_active = bool(is_active)
        if sort_order is not None:
            category.sort_order = sort_order

        return self.categories.update(category)

    def delete_category(self, category_id: int) -> None:
        """
        Delete a category nothing refers to.

        Raises:
            InvalidRequestError: While rules or budget allocations use it.
                Deactivate it instead.
        """
        self.get_category(category_id)

        rule_count = self.rules.count_by_category(category_id)
        allocation_count = self.budgets.count_allocations_for_category(category_id)
        if rule_count or allocation_count:
            raise InvalidRequestError(
                f"Category {category_id} is used by {rule_count} rule(s) and "
                f"{allocation_count} budget allocation(s); deactivate it instead",
            )

        self.categories.delete(category_id)
        logger.info("Deleted category %s", category_id)

    def ancestors(self, category_id: int) -> List[Category]:
        """
        Parent chain of a category, nearest first.

        Raises:
            CategoryCycleError: If the stored chain loops back on itself
        """
        chain: List[Category] = []
        seen = {category_id}
        current = self.get_category(category_id)

        while current.parent_id is not None:
            if current.parent_id in seen:
                raise CategoryCycleError(
                    f"Category hierarchy loops at category {current.parent_id}",
                    details={"category_id": category_id},
                )
            seen.add(current.parent_id)
            parent = self.categories.get_by_id(current.parent_id)
            if parent is None:
                break
            chain.append(parent)
            current = parent

        return chain

    def seed_defaults(
        self,
        categories_config: Dict[str, Any],
        rules_config: Optional[Dict[str, Any]] = None,
    ) -> int:
        """
        Load the default catalog (and optionally default rules).

        Existing categories are matched by name and left alone, so running
        this twice is harmless. Rules are only added for categories created
        in this run.

        Returns:
            Number of categories created
        """
        created: Dict[str, Category] = {}

        for entry in categories_config.get("categories", []):
            if self.categories.get_by_name(entry["name"]) is not None:
                continue

            parent_id = None
            if entry.get("parent"):
                parent_id = self.find_by_name(entry["parent"]).id

            category = self.create_category(
                name=entry["name"],
                parent_id=parent_id,
                is_default=True,
                sort_order=entry.get("sort_order", 0),
            )
            created[category.name.lower()] = category

        for rule_def in (rules_config or {}).get("rules", []):
            category = created.get(rule_def["category"].lower())
            if category is None:
                continue

            pattern_type = parse_pattern_type(rule_def.get("type", "keyword"))
            for pattern in rule_def["patterns"]:
                self.rules.save(CategorizationRule(
                    category_id=category.id,
                    pattern=pattern,
                    pattern_type=pattern_type,
                    priority=int(rule_def.get("priority", 0)),
                ))

        logger.info("Seeded %d default categories", len(created))
        return len(created)

    @staticmethod
    def _validate_name(name: str) -> str:
        if name is None or not str(name).strip():
            raise InvalidRequestError("Category name is required")
        return str(name).strip()
