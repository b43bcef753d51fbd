from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Union

from finance_tracker.domain.models import Transaction


class StatementParser(ABC):
    """
    Abstract base class for statement parsers.

    Each file format gets its own concrete parser implementing this
    interface (Strategy pattern).
    """

    @abstractmethod
    def parse(self, filepath: Union[str, Path], account: str) -> List[Transaction]:
        """
        Parse a statement file and return its transactions.

        Args:
            filepath: Path to the statement file
            account: Account identifier stamped on every transaction

        Returns:
            List of Transaction objects

        Raises:
            FileNotFoundError: If file doesn't exist
            StatementFormatError: If the file format is invalid
        """
        pass

    @abstractmethod
    def validate_file(self, filepath: Union[str, Path]) -> None:
        """
        Validate that the file matches the expected format.

        Raises:
            FileNotFoundError: If file doesn't exist
            StatementFormatError: If file format is invalid
        """
        pass
