import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Dict, Iterator, List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from finance_tracker.budgets import BudgetAnalyzer
from finance_tracker.categorization import CategorizationEngine
from finance_tracker.config.settings import AppSettings, ConfigLoader, load_settings
from finance_tracker.database.connection import DatabaseConfig, DatabaseManager, initialize_database
from finance_tracker.domain.enums import AlertType, PeriodType, TransactionType
from finance_tracker.domain.exceptions import FinanceTrackerError
from finance_tracker.domain.models import BudgetSummary, CategorizationResult, Category
from finance_tracker.logger import get_logger, setup_logging
from finance_tracker.repositories.sqlite_budget_repository import SQLiteBudgetRepository
from finance_tracker.repositories.sqlite_category_repository import SQLiteCategoryRepository
from finance_tracker.repositories.sqlite_rule_repository import SQLiteCategorizationRuleRepository
from finance_tracker.repositories.sqlite_transaction_repository import SQLiteTransactionRepository
from finance_tracker.services.budget_service import BudgetService
from finance_tracker.services.categorization_service import CategorizationService
from finance_tracker.services.category_service import CategoryService
from finance_tracker.services.transaction_service import TransactionService

app = typer.Typer(
    name="finance-tracker",
    help="Categorize transactions and track spending against budgets",
    add_completion=False,
)
categories_app = typer.Typer(help="Manage the category catalog")
rules_app = typer.Typer(help="Manage categorization rules")
transactions_app = typer.Typer(help="Import, list and categorize transactions")
budgets_app = typer.Typer(help="Plan budgets and track spending")

app.add_typer(categories_app, name="categories")
app.add_typer(rules_app, name="rules")
app.add_typer(transactions_app, name="transactions")
app.add_typer(budgets_app, name="budgets")

console = Console()
logger = get_logger("cli")

ALERT_STYLES = {
    AlertType.WARNING: "yellow",
    AlertType.CRITICAL: "bold yellow",
    AlertType.OVER_BUDGET: "bold red",
}


@dataclass
class Services:
    categories: CategoryService
    categorization: CategorizationService
    transactions: TransactionService
    budgets: BudgetService


class State:
    verbose: bool = False
    settings: Optional[AppSettings] = None
    db_manager: Optional[DatabaseManager] = None
    services: Optional[Services] = None


state = State()


def build_services(db_manager: DatabaseManager, settings: AppSettings) -> Services:
    """Wire repositories, engine and services on one database."""
    category_repo = SQLiteCategoryRepository(db_manager)
    rule_repo = SQLiteCategorizationRuleRepository(db_manager)
    transaction_repo = SQLiteTransactionRepository(db_manager)
    budget_repo = SQLiteBudgetRepository(db_manager)

    engine = CategorizationEngine(
        rule_repo,
        category_repo,
        transaction_repo,
        similarity_limit=settings.similarity_limit,
    )

    return Services(
        categories=CategoryService(category_repo, rule_repo, budget_repo),
        categorization=CategorizationService(rule_repo, category_repo, transaction_repo, engine=engine),
        transactions=TransactionService(transaction_repo, categorization_engine=engine),
        budgets=BudgetService(
            budget_repo,
            category_repo,
            analyzer=BudgetAnalyzer(),
            default_alert_threshold=settings.default_alert_threshold,
        ),
    )


@app.callback()
def main(
    verbose: bool = typer.Option(
        False,
        "--verbose", "-v",
        help="Enable verbose output",
    ),
    db: Optional[Path] = typer.Option(
        None,
        "--db",
        help="Path to the SQLite database (overrides settings and FINANCE_TRACKER_DB)",
    ),
):
    """
    Finance Tracker - Categorize transactions and keep budgets on track.
    """
    if state.db_manager is not None:
        state.db_manager.close()

    settings = load_settings({
        "db_path": db,
        "log_level": "DEBUG" if verbose else None,
    })
    setup_logging(settings, console=verbose)

    state.verbose = verbose
    state.settings = settings
    state.db_manager = DatabaseManager(DatabaseConfig(settings.db_path))
    initialize_database(state.db_manager)
    state.services = build_services(state.db_manager, settings)


@contextmanager
def handle_errors() -> Iterator[None]:
    """Report failures in red and exit with code 1."""
    try:
        yield
    except (FinanceTrackerError, FileNotFoundError, sqlite3.Error) as e:
        logger.error("%s: %s", type(e).__name__, e)
        console.print(f"[bold red]Error:[/bold red] {e}")
        if state.verbose:
            console.print_exception()
        raise typer.Exit(code=1)


def _parse_date(value: Optional[str], option: str) -> Optional[date]:
    if value is None:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise typer.BadParameter(f"expected YYYY-MM-DD, got {value!r}", param_hint=option)


def _category_names() -> Dict[int, str]:
    return {c.id: c.name for c in state.services.categories.list_categories(include_inactive=True)}


def _print_result(result: CategorizationResult) -> None:
    if not result.is_categorized:
        console.print("[yellow]No category found[/yellow] (source: none)")
        return

    lines = [
        f"[bold]Category:[/bold] {result.category_name}",
        f"[bold]Source:[/bold] {result.source.value}",
        f"[bold]Confidence:[/bold] {result.confidence:.2f}",
    ]
    if result.matched_pattern:
        lines.append(f"[bold]Matched:[/bold] '{result.matched_pattern}' (rule {result.rule_id})")
    for alt in result.alternatives:
        lines.append(f"[dim]  also seen: {alt.category_name} ({alt.confidence:.2f})[/dim]")

    console.print(Panel.fit("\n".join(lines), title="Categorization", border_style="cyan"))


# ═══════════════════════════════════════════════════════════
# SETUP
# ═══════════════════════════════════════════════════════════

@app.command(name="init-db")
def init_db(
    skip_defaults: bool = typer.Option(
        False,
        "--skip-defaults",
        help="Only create the schema, don't load default categories and rules",
    ),
):
    """
    Create the database and load the default categories and rules.

    Safe to run again: existing categories are left untouched.
    """
    with handle_errors():
        console.print(f"Database: [cyan]{state.settings.db_path}[/cyan]")
        if skip_defaults:
            console.print("[green]✓[/green] Schema ready")
            return

        created = state.services.categories.seed_defaults(
            ConfigLoader.load_categories_config(),
            ConfigLoader.load_rules_config(),
        )
        console.print(f"[green]✓[/green] Schema ready, {created} default categories added")


@app.command(name="categorize")
def categorize(
    description: str = typer.Argument(..., help="Transaction description"),
    merchant: str = typer.Option("", "--merchant", "-m", help="Merchant name"),
    amount: str = typer.Option("0", "--amount", "-a", help="Transaction amount"),
):
    """
    Categorize a transaction without storing it.

    Examples:
        finance-tracker categorize "Walmart grocery purchase" --merchant Walmart
    """
    with handle_errors():
        result = state.services.categorization.categorize(description, merchant, amount)
        _print_result(result)


# ═══════════════════════════════════════════════════════════
# CATEGORIES
# ═══════════════════════════════════════════════════════════

@categories_app.command(name="add")
def categories_add(
    name: str = typer.Argument(..., help="Category name"),
    parent: Optional[str] = typer.Option(None, "--parent", "-p", help="Parent category name"),
):
    """Add a category."""
    with handle_errors():
        parent_id = state.services.categories.find_by_name(parent).id if parent else None
        category = state.services.categories.create_category(name, parent_id=parent_id)
        console.print(f"[green]✓[/green] Added category {category.name} (id {category.id})")


@categories_app.command(name="list")
def categories_list(
    all_: bool = typer.Option(False, "--all", help="Include inactive categories"),
):
    """List categories."""
    with handle_errors():
        categories: List[Category] = state.services.categories.list_categories(include_inactive=all_)
        names = {c.id: c.name for c in categories}

        table = Table(title="Categories")
        table.add_column("ID", justify="right", style="dim")
        table.add_column("Name", style="cyan")
        table.add_column("Parent", style="white")
        table.add_column("Default", justify="center")
        table.add_column("Active", justify="center")

        for category in categories:
            table.add_row(
                str(category.id),
                category.name,
                names.get(category.parent_id, "") if category.parent_id else "",
                "✓" if category.is_default else "",
                "✓" if category.is_active else "[red]✗[/red]",
            )
        console.print(table)


@categories_app.command(name="rename")
def categories_rename(
    category_id: int = typer.Argument(..., help="Category ID"),
    name: str = typer.Argument(..., help="New name"),
):
    """Rename a category."""
    with handle_errors():
        category = state.services.categories.update_category(category_id, name=name)
        console.print(f"[green]✓[/green] Category {category.id} is now {category.name}")


@categories_app.command(name="deactivate")
def categories_deactivate(
    category_id: int = typer.Argument(..., help="Category ID"),
):
    """Hide a category from new use without deleting it."""
    with handle_errors():
        category = state.services.categories.update_category(category_id, is_active=False)
        console.print(f"[green]✓[/green] Deactivated {category.name}")


# ═══════════════════════════════════════════════════════════
# RULES
# ═══════════════════════════════════════════════════════════

@rules_app.command(name="add")
def rules_add(
    category: str = typer.Argument(..., help="Target category name"),
    pattern: str = typer.Argument(..., help="Keyword to look for"),
    priority: int = typer.Option(0, "--priority", "-p", help="Higher priorities are tried first"),
    pattern_type: str = typer.Option("keyword", "--type", "-t", help="Pattern type"),
):
    """
    Add a categorization rule.

    Examples:
        finance-tracker rules add Groceries "whole foods" --priority 10
    """
    with handle_errors():
        category_id = state.services.categories.find_by_name(category).id
        rule = state.services.categorization.create_rule(
            category_id, pattern, pattern_type=pattern_type, priority=priority,
        )
        console.print(f"[green]✓[/green] Added rule {rule.id}: '{rule.pattern}' -> {category}")


@rules_app.command(name="list")
def rules_list(
    offset: int = typer.Option(0, "--offset", help="Rules to skip"),
    limit: Optional[int] = typer.Option(None, "--limit", "-l", help="Page size (1-100)"),
):
    """List rules, highest priority first."""
    with handle_errors():
        rules = state.services.categorization.list_rules(
            offset=offset,
            limit=limit if limit is not None else state.settings.rules_page_limit,
        )
        names = _category_names()

        table = Table(title="Categorization Rules")
        table.add_column("ID", justify="right", style="dim")
        table.add_column("Priority", justify="right")
        table.add_column("Pattern", style="cyan")
        table.add_column("Type")
        table.add_column("Category", style="magenta")
        table.add_column("Active", justify="center")

        for rule in rules:
            table.add_row(
                str(rule.id),
                str(rule.priority),
                rule.pattern,
                rule.pattern_type.value,
                names.get(rule.category_id, str(rule.category_id)),
                "✓" if rule.is_active else "[red]✗[/red]",
            )
        console.print(table)


@rules_app.command(name="show")
def rules_show(rule_id: int = typer.Argument(..., help="Rule ID")):
    """Show one rule."""
    with handle_errors():
        rule = state.services.categorization.get_rule(rule_id)
        category = state.services.categories.get_category(rule.category_id)
        console.print(Panel.fit(
            f"[bold]Pattern:[/bold] {rule.pattern} ({rule.pattern_type.value})\n"
            f"[bold]Category:[/bold] {category.name}\n"
            f"[bold]Priority:[/bold] {rule.priority}\n"
            f"[bold]Active:[/bold] {'yes' if rule.is_active else 'no'}\n"
            f"[bold]Created:[/bold] {rule.created_at or '-'}",
            title=f"Rule {rule.id}",
            border_style="cyan",
        ))


@rules_app.command(name="update")
def rules_update(
    rule_id: int = typer.Argument(..., help="Rule ID"),
    pattern: Optional[str] = typer.Option(None, "--pattern", help="New keyword"),
    priority: Optional[int] = typer.Option(None, "--priority", "-p", help="New priority"),
    category: Optional[str] = typer.Option(None, "--category", "-c", help="New target category name"),
    active: Optional[bool] = typer.Option(None, "--active/--inactive", help="Enable or disable the rule"),
):
    """Change a rule. Transactions already categorized are not revisited."""
    with handle_errors():
        category_id = state.services.categories.find_by_name(category).id if category else None
        rule = state.services.categorization.update_rule(
            rule_id,
            pattern=pattern,
            priority=priority,
            is_active=active,
            category_id=category_id,
        )
        console.print(f"[green]✓[/green] Updated rule {rule.id}")


@rules_app.command(name="delete")
def rules_delete(rule_id: int = typer.Argument(..., help="Rule ID")):
    """Delete a rule."""
    with handle_errors():
        state.services.categorization.delete_rule(rule_id)
        console.print(f"[green]✓[/green] Deleted rule {rule_id}")


# ═══════════════════════════════════════════════════════════
# TRANSACTIONS
# ═══════════════════════════════════════════════════════════

@transactions_app.command(name="import")
def transactions_import(
    filepath: Path = typer.Argument(
        ...,
        help="Path to a CSV statement",
        exists=True,
        file_okay=True,
        dir_okay=False,
    ),
    account: str = typer.Option(..., "--account", "-a", help="Account the statement belongs to"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Preview without saving to database"),
    categorize: bool = typer.Option(False, "--categorize", help="Categorize new transactions while importing"),
):
    """
    Import transactions from a CSV statement.

    Examples:
        finance-tracker transactions import statement.csv --account checking
        finance-tracker transactions import statement.csv --account checking --dry-run --categorize
    """
    with handle_errors():
        console.print(Panel.fit(
            f"[bold cyan]Import Configuration[/bold cyan]\n"
            f"File: {filepath}\n"
            f"Account: {account}\n"
            f"Mode: {'DRY RUN' if dry_run else 'LIVE'}\n"
            f"Categorize: {'YES' if categorize else 'NO'}",
            border_style="cyan",
        ))

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("Importing transactions...", total=None)
            result = state.services.transactions.import_statement(
                filepath=filepath,
                account=account,
                dry_run=dry_run,
                categorize=categorize,
            )
            progress.update(task, completed=True)

        console.print(f"\n[bold]Found {result.total_parsed} transactions[/bold]")

        if result.imported:
            names = _category_names()
            preview_table = Table(title="Preview (first 5)")
            preview_table.add_column("Date", style="cyan")
            preview_table.add_column("Description", style="white")
            preview_table.add_column("Category", style="magenta")
            preview_table.add_column("Amount", justify="right")

            for txn in result.imported[:5]:
                amount_color = "green" if txn.type == TransactionType.CREDIT else "red"
                preview_table.add_row(
                    str(txn.date),
                    txn.description[:40],
                    names.get(txn.category_id, "Uncategorized"),
                    f"[{amount_color}]${txn.amount:.2f}[/{amount_color}]",
                )
            console.print(preview_table)

        if dry_run:
            console.print("[yellow]DRY RUN - No changes made[/yellow]")
            console.print(f"[green]✓[/green] Would import: {result.new_transactions}")
            console.print(f"[yellow]⏭️[/yellow]  Would skip: {result.duplicates_skipped}")
        else:
            console.print(f"[bold green]✓ Imported {result.new_transactions} new transactions[/bold green]")
            if result.duplicates_skipped > 0:
                console.print(f"[yellow]⏭️  Skipped {result.duplicates_skipped} duplicates[/yellow]")


@transactions_app.command(name="list")
def transactions_list(
    start: Optional[str] = typer.Option(None, "--from", help="Start date (YYYY-MM-DD)"),
    end: Optional[str] = typer.Option(None, "--to", help="End date (YYYY-MM-DD)"),
    account: Optional[str] = typer.Option(None, "--account", "-a", help="Only this account"),
    category: Optional[str] = typer.Option(None, "--category", "-c", help="Only this category"),
    limit: int = typer.Option(25, "--limit", "-l", help="Rows to show"),
):
    """List stored transactions, most recent first."""
    start_date = _parse_date(start, "--from")
    end_date = _parse_date(end, "--to")

    with handle_errors():
        category_id = state.services.categories.find_by_name(category).id if category else None
        transactions = state.services.transactions.get_transactions(
            start_date=start_date,
            end_date=end_date,
            category_id=category_id,
            account=account,
        )
        names = _category_names()

        txn_table = Table(show_header=True, padding=(0, 1))
        txn_table.add_column("ID", justify="right", style="dim")
        txn_table.add_column("Date", style="cyan", width=12)
        txn_table.add_column("Description", style="white", max_width=40)
        txn_table.add_column("Category", style="magenta")
        txn_table.add_column("Source", style="dim")
        txn_table.add_column("Account", justify="right")
        txn_table.add_column("Amount", justify="right", width=12)

        for txn in transactions[:limit]:
            desc = txn.description[:37] + "..." if len(txn.description) > 40 else txn.description
            if txn.type == TransactionType.DEBIT:
                amount_str = f"[red]-${txn.amount:,.2f}[/red]"
            else:
                amount_str = f"[green]+${txn.amount:,.2f}[/green]"

            txn_table.add_row(
                str(txn.id),
                str(txn.date),
                desc,
                names.get(txn.category_id, "Uncategorized"),
                txn.categorization_source.value if txn.categorization_source else "",
                txn.account,
                amount_str,
            )

        console.print(txn_table)
        if len(transactions) > limit:
            console.print(f"\n[dim]Showing {limit} of {len(transactions)} transactions[/dim]")


@transactions_app.command(name="categorize")
def transactions_categorize(
    start: Optional[str] = typer.Option(None, "--from", help="Start date (YYYY-MM-DD)"),
    end: Optional[str] = typer.Option(None, "--to", help="End date (YYYY-MM-DD)"),
    overwrite: bool = typer.Option(False, "--overwrite", help="Re-categorize transactions that already have a category"),
):
    """Categorize stored transactions."""
    start_date = _parse_date(start, "--from")
    end_date = _parse_date(end, "--to")

    with handle_errors():
        count = state.services.categorization.categorize_transactions(
            start_date=start_date,
            end_date=end_date,
            overwrite=overwrite,
        )
        console.print(f"[bold green]✓ Categorized {count} transactions[/bold green]")


# ═══════════════════════════════════════════════════════════
# BUDGETS
# ═══════════════════════════════════════════════════════════

@budgets_app.command(name="create")
def budgets_create(
    name: str = typer.Argument(..., help="Budget name"),
    total: str = typer.Argument(..., help="Total amount"),
    start: str = typer.Option(..., "--start", help="Start date (YYYY-MM-DD)"),
    end: Optional[str] = typer.Option(None, "--end", help="End date (YYYY-MM-DD)"),
    period: str = typer.Option(PeriodType.MONTHLY.value, "--period", help="monthly, quarterly, yearly or custom"),
):
    """Create a budget."""
    start_date = _parse_date(start, "--start")
    end_date = _parse_date(end, "--end")

    with handle_errors():
        budget = state.services.budgets.create_budget(
            name, start_date, total, end_date=end_date, period_type=period,
        )
        console.print(f"[green]✓[/green] Created budget {budget.name} (id {budget.id})")


@budgets_app.command(name="list")
def budgets_list(
    active_only: bool = typer.Option(False, "--active", help="Only active budgets"),
):
    """List budgets."""
    with handle_errors():
        table = Table(title="Budgets")
        table.add_column("ID", justify="right", style="dim")
        table.add_column("Name", style="cyan")
        table.add_column("Period")
        table.add_column("From")
        table.add_column("To")
        table.add_column("Total", justify="right")

        for budget in state.services.budgets.list_budgets(active_only=active_only):
            table.add_row(
                str(budget.id),
                budget.name,
                budget.period_type.value,
                str(budget.start_date),
                str(budget.end_date or ""),
                f"{budget.total_amount:,.2f} {budget.currency}",
            )
        console.print(table)


@budgets_app.command(name="allocate")
def budgets_allocate(
    budget_id: int = typer.Argument(..., help="Budget ID"),
    category: str = typer.Argument(..., help="Category name"),
    amount: str = typer.Argument(..., help="Amount allocated to the category"),
    threshold: Optional[str] = typer.Option(None, "--threshold", help="Warning threshold in (0, 1]"),
):
    """Allocate part of a budget to a category."""
    with handle_errors():
        category_id = state.services.categories.find_by_name(category).id
        allocation = state.services.budgets.add_allocation(
            budget_id, category_id, amount, alert_threshold=threshold,
        )
        console.print(
            f"[green]✓[/green] Allocated ${allocation.allocated_amount:,.2f} to {category} "
            f"(warn at {allocation.alert_threshold * 100:.0f}%)"
        )


def _print_summary(summary: BudgetSummary, names: Dict[int, str]) -> None:
    progress_style = "red" if summary.is_over_budget else "green"
    console.print(Panel(
        f"[bold]Allocated:[/bold] ${summary.total_allocated:>10,.2f}\n"
        f"[bold]Spent:[/bold]     ${summary.total_spent:>10,.2f}\n"
        f"{'─' * 30}\n"
        f"[bold]Remaining:[/bold] ${summary.remaining_amount:>10,.2f}\n"
        f"[{progress_style}]{summary.spending_progress:.1f}% used[/{progress_style}]",
        title=f"[bold]{summary.budget.name if summary.budget else 'Budget'}[/bold]",
        border_style="cyan",
        padding=(1, 2),
    ))

    if summary.allocations:
        table = Table(show_header=True, box=None, padding=(0, 2))
        table.add_column("Category", style="cyan", no_wrap=True)
        table.add_column("Allocated", justify="right")
        table.add_column("Spent", justify="right")
        table.add_column("Remaining", justify="right")

        for allocation in summary.allocations:
            table.add_row(
                names.get(allocation.category_id, str(allocation.category_id)),
                f"${allocation.allocated_amount:,.2f}",
                f"${allocation.spent_amount:,.2f}",
                f"${allocation.remaining_amount:,.2f}",
            )
        console.print(table)

    if summary.alerts:
        console.print("\n[bold]Alerts[/bold]")
        for alert in summary.alerts:
            style = ALERT_STYLES[alert.alert_type]
            console.print(
                f"  [{style}]{alert.alert_type.value.upper()}[/{style}] "
                f"{names.get(alert.category_id, alert.category_id)}: {alert.message}"
            )


@budgets_app.command(name="summary")
def budgets_summary(
    budget_id: int = typer.Argument(..., help="Budget ID"),
    by_severity: bool = typer.Option(False, "--by-severity", help="Most severe alerts first"),
):
    """Show totals and alerts for a budget."""
    with handle_errors():
        summary = state.services.budgets.get_summary(budget_id, sort_alerts=by_severity)
        _print_summary(summary, _category_names())


@budgets_app.command(name="set-spent")
def budgets_set_spent(
    budget_id: int = typer.Argument(..., help="Budget ID"),
    category: str = typer.Argument(..., help="Category name"),
    amount: str = typer.Argument(..., help="New spent amount"),
):
    """Replace the spent amount of an allocation."""
    with handle_errors():
        category_id = state.services.categories.find_by_name(category).id
        allocation = state.services.budgets.set_spent_amount(budget_id, category_id, amount)
        console.print(f"[green]✓[/green] {category}: ${allocation.spent_amount:,.2f} spent")


@budgets_app.command(name="add-spent")
def budgets_add_spent(
    budget_id: int = typer.Argument(..., help="Budget ID"),
    category: str = typer.Argument(..., help="Category name"),
    amount: str = typer.Argument(..., help="Amount to add (negative for a refund)"),
):
    """Add to the spent amount of an allocation."""
    with handle_errors():
        category_id = state.services.categories.find_by_name(category).id
        allocation = state.services.budgets.add_spent_amount(budget_id, category_id, amount)
        console.print(f"[green]✓[/green] {category}: ${allocation.spent_amount:,.2f} spent")


def cli_main():
    """Entry point for the CLI"""
    app()


if __name__ == "__main__":
    cli_main()
