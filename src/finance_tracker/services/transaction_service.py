import logging
from datetime import date
from pathlib import Path
from typing import List, Optional, Union

from finance_tracker.categorization import CategorizationEngine
from finance_tracker.domain.enums import TransactionType
from finance_tracker.domain.models import Transaction
from finance_tracker.parsers.base import StatementParser
from finance_tracker.parsers.csv_statement import CsvStatementParser
from finance_tracker.repositories.base import TransactionRepository
from finance_tracker.services.models import ImportResult

logger = logging.getLogger(__name__)


class TransactionService:

    def __init__(
        self,
        repository: TransactionRepository,
        categorization_engine: Optional[CategorizationEngine] = None,
        parser: Optional[StatementParser] = None,
    ):
        self.repository = repository
        self.categorization_engine = categorization_engine
        self.parser = parser or CsvStatementParser()

    def import_statement(
        self,
        filepath: Union[str, Path],
        account: str,
        dry_run: bool = False,
        categorize: bool = False,
    ) -> ImportResult:
        """
        Import transactions from a statement file

        Args:
            filepath: The path to the statement file
            account: Account identifier the statement belongs to
            dry_run: Preview without saving
            categorize: Categorize new transactions before they are saved

        Returns:
            An ImportResult.

        Raises:
            ValueError: If categorize is set but no engine was configured
        """
        if categorize and self.categorization_engine is None:
            raise ValueError("Categorization requested but no categorization engine is configured")

        transactions = self.parser.parse(filepath, account)

        new_transactions = []
        skipped = []
        for txn in transactions:
            if self.repository.exists(
                date=txn.date,
                description=txn.description,
                amount=txn.amount,
                account=txn.account,
            ):
                skipped.append(txn)
            else:
                new_transactions.append(txn)

        if categorize:
            new_transactions = self.categorization_engine.categorize_many(new_transactions)

        if not dry_run:
            saved = self.repository.save_many(new_transactions)
            # Rows repeated within the same file are only saved once
            saved_ids = {id(t) for t in saved}
            skipped.extend(t for t in new_transactions if id(t) not in saved_ids)
            new_transactions = saved

        logger.info(
            "Imported %s for %s: %d parsed, %d new, %d skipped%s",
            filepath, account, len(transactions), len(new_transactions), len(skipped),
            " (dry run)" if dry_run else "",
        )

        return ImportResult(
            total_parsed=len(transactions),
            new_transactions=len(new_transactions),
            duplicates_skipped=len(skipped),
            imported=new_transactions,
            skipped=skipped,
            filepath=str(filepath),
            account=account,
            dry_run=dry_run,
        )

    def get_transactions(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        transaction_type: Optional[TransactionType] = None,
        category_id: Optional[int] = None,
        account: Optional[str] = None,
    ) -> List[Transaction]:
        """
        Query transactions with optional filters.

        Args:
            start_date: Include transactions on or after this date
            end_date: Include transactions on or before this date
            transaction_type: Filter by DEBIT or CREDIT
            category_id: Filter by category
            account: Filter by account identifier (e.g., 'checking')

        Returns:
            List of transactions matching all provided filters

        Example:
            ### Get all January 2025 expenses
            transactions = service.get_transactions(
                start_date=date(2025, 1, 1),
                end_date=date(2025, 1, 31),
                transaction_type=TransactionType.DEBIT
            )
        """
        return self.repository.get_all(
            start_date=start_date,
            end_date=end_date,
            transaction_type=transaction_type,
            category_id=category_id,
            account=account,
        )
