import pytest
from rich.console import Console
from typer.testing import CliRunner

from finance_tracker import cli as cli_module
from finance_tracker.cli import app

runner = CliRunner()


@pytest.fixture
def cli(tmp_path, monkeypatch):
    """Run CLI commands against a fresh database, with logs kept in tmp_path"""
    monkeypatch.chdir(tmp_path)
    # Wide enough that messages are never wrapped
    monkeypatch.setattr(cli_module, "console", Console(width=200))
    monkeypatch.delenv("FINANCE_TRACKER_DB", raising=False)
    db_path = tmp_path / "cli.db"

    def invoke(*args):
        return runner.invoke(app, ["--db", str(db_path), *args])

    return invoke


@pytest.mark.integration
class TestCli:
    """Smoke tests for the command line"""

    def test_init_db_seeds_defaults(self, cli):
        result = cli("init-db")

        assert result.exit_code == 0
        assert "default categories added" in result.output

        listing = cli("categories", "list")
        assert "Groceries" in listing.output

    def test_categorize_with_default_rules(self, cli):
        cli("init-db")

        result = cli("categorize", "Walmart grocery purchase", "--merchant", "Walmart")

        assert result.exit_code == 0
        assert "Food" in result.output
        assert "rule" in result.output

    def test_categorize_blank_input_fails(self, cli):
        result = cli("categorize", "  ")

        assert result.exit_code == 1
        assert "Error" in result.output

    def test_rule_lifecycle(self, cli):
        cli("init-db", "--skip-defaults")
        cli("categories", "add", "Coffee")

        added = cli("rules", "add", "Coffee", "blue bottle", "--priority", "7")
        assert added.exit_code == 0

        listing = cli("rules", "list")
        assert "blue bottle" in listing.output

        assert cli("rules", "delete", "1").exit_code == 0
        assert cli("rules", "show", "1").exit_code == 1

    def test_rules_list_rejects_large_page(self, cli):
        result = cli("rules", "list", "--limit", "500")

        assert result.exit_code == 1

    def test_budget_summary(self, cli):
        # Arrange
        cli("init-db")
        assert cli("budgets", "create", "January", "2000", "--start", "2025-01-01").exit_code == 0
        assert cli("budgets", "allocate", "1", "Groceries", "1000").exit_code == 0
        assert cli("budgets", "allocate", "1", "Dining Out", "500").exit_code == 0
        cli("budgets", "set-spent", "1", "Groceries", "950")
        cli("budgets", "add-spent", "1", "Dining Out", "600")

        # Act
        result = cli("budgets", "summary", "1", "--by-severity")

        # Assert
        assert result.exit_code == 0
        assert "exceeded your budget for this category by $100.00" in result.output
        assert "95.0% of your budget" in result.output
        assert result.output.index("OVER_BUDGET") < result.output.index("WARNING")

    def test_set_spent_without_allocation_fails(self, cli):
        cli("init-db")
        cli("budgets", "create", "January", "2000", "--start", "2025-01-01")

        result = cli("budgets", "set-spent", "1", "Travel", "10")

        assert result.exit_code == 1

    def test_import_dry_run(self, cli, sample_csv):
        cli("init-db")

        result = cli("transactions", "import", str(sample_csv), "--account", "checking", "--dry-run")

        assert result.exit_code == 0
        assert "DRY RUN" in result.output
        assert "Would import: 5" in result.output
        assert cli("transactions", "list").output.count("checking") == 0
