import json
import logging
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import List, Optional, Union

import pandas as pd

from finance_tracker.domain.enums import TransactionType
from finance_tracker.domain.exceptions import StatementFormatError
from finance_tracker.domain.models import DEFAULT_CURRENCY, Transaction
from finance_tracker.parsers.base import StatementParser

logger = logging.getLogger(__name__)


class CsvStatementParser(StatementParser):
    """
    Parser for generic CSV statement exports.

    Expected columns (header names are matched case-insensitively):
    - Date, Description, Amount (required)
    - Merchant, Currency (optional)

    Amounts are signed: negative is money going out (debit), positive is
    money coming in (credit). Transactions store the absolute value plus
    the type.
    """

    DATE_COL = "date"
    DESCRIPTION_COL = "description"
    AMOUNT_COL = "amount"
    MERCHANT_COL = "merchant"
    CURRENCY_COL = "currency"

    REQUIRED_COLUMNS = (DATE_COL, DESCRIPTION_COL, AMOUNT_COL)

    def validate_file(self, filepath: Union[str, Path]) -> None:
        path = Path(filepath)

        if not path.exists():
            raise FileNotFoundError(f"File does not exist on path {path}")

        if path.suffix.lower() != ".csv":
            raise StatementFormatError(f"File must be .csv, got {path.suffix}")

        self._validate_columns(self._read(path, nrows=0))

    def parse(self, filepath: Union[str, Path], account: str) -> List[Transaction]:
        """
        Parse a CSV statement.

        Rows that can't be read (bad date, bad amount, blank description)
        are skipped with a warning rather than failing the whole file.
        """
        self.validate_file(filepath)
        df = self._read(Path(filepath))

        transactions = []
        for index, row in df.iterrows():
            try:
                transaction = self._parse_row(row, account)
            except (ValueError, InvalidOperation) as e:
                logger.warning("Skipping row %s of %s: %s", index, filepath, e)
                continue
            transactions.append(transaction)

        logger.info("Parsed %d transactions from %s", len(transactions), filepath)
        return transactions

    def _read(self, path: Path, nrows: Optional[int] = None) -> pd.DataFrame:
        try:
            # Keep every cell as text; amounts go straight to Decimal
            df = pd.read_csv(path, dtype=str, keep_default_na=False, nrows=nrows)
        except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
            raise StatementFormatError(f"Failed to read CSV file {path}: {e}")

        df.columns = [str(col).strip().lower() for col in df.columns]
        return df

    def _validate_columns(self, df: pd.DataFrame) -> None:
        """Ensure all required columns are present"""
        missing = [col for col in self.REQUIRED_COLUMNS if col not in df.columns]
        if missing:
            raise StatementFormatError(
                f"Missing required columns: {missing}. "
                f"Available columns: {list(df.columns)}"
            )

    def _parse_row(self, row: pd.Series, account: str) -> Transaction:
        description = str(row[self.DESCRIPTION_COL]).strip()
        merchant = str(row.get(self.MERCHANT_COL, "") or "").strip()
        if not description and not merchant:
            raise ValueError("row has no description or merchant")

        raw_date = str(row[self.DATE_COL]).strip()
        parsed_date = pd.to_datetime(raw_date, errors="coerce")
        if pd.isna(parsed_date):
            raise ValueError(f"invalid date {raw_date!r}")

        amount = self._parse_amount(row[self.AMOUNT_COL])
        transaction_type = TransactionType.DEBIT if amount < 0 else TransactionType.CREDIT

        currency = str(row.get(self.CURRENCY_COL, "") or "").strip().upper()

        return Transaction(
            date=parsed_date.date(),
            description=description or merchant,
            amount=abs(amount),
            type=transaction_type,
            account=account,
            merchant=merchant,
            currency=currency or DEFAULT_CURRENCY,
            raw_data=json.dumps(row.to_dict()),
        )

    @staticmethod
    def _parse_amount(value) -> Decimal:
        text = str(value).replace("$", "").replace(",", "").strip()
        # Accounting style negatives: (12.50)
        if text.startswith("(") and text.endswith(")"):
            text = "-" + text[1:-1]
        if not text:
            raise ValueError("missing amount")
        amount = Decimal(text)
        if not amount.is_finite():
            raise ValueError(f"invalid amount {value!r}")
        return amount
