#!/usr/bin/env python3
"""
Initialize the finance tracker database.

Run this script to create the database schema and load the default
categories and rules. Same as `finance-tracker init-db`.
"""
import sys

from finance_tracker.config.settings import ConfigLoader, load_settings
from finance_tracker.database.connection import DatabaseConfig, DatabaseManager, initialize_database
from finance_tracker.repositories.sqlite_budget_repository import SQLiteBudgetRepository
from finance_tracker.repositories.sqlite_category_repository import SQLiteCategoryRepository
from finance_tracker.repositories.sqlite_rule_repository import SQLiteCategorizationRuleRepository
from finance_tracker.services.category_service import CategoryService


def main():
    """initialize the database."""
    settings = load_settings({"db_path": sys.argv[1] if len(sys.argv) > 1 else None})
    print(f"Initializing database at: {settings.db_path}")

    with DatabaseManager(DatabaseConfig(settings.db_path)) as db:
        version = initialize_database(db)

        service = CategoryService(
            SQLiteCategoryRepository(db),
            SQLiteCategorizationRuleRepository(db),
            SQLiteBudgetRepository(db),
        )
        created = service.seed_defaults(
            ConfigLoader.load_categories_config(),
            ConfigLoader.load_rules_config(),
        )

    print("✓ Database initialized successfully!")
    print(f"  Schema version: {version}")
    print(f"  Default categories added: {created}")


if __name__ == "__main__":
    main()
