"""
Service layer models - DTOs for service operations.

These models represent the results of service operations, not domain entities.
"""
from dataclasses import dataclass, field
from typing import List

from finance_tracker.domain.models import Transaction


@dataclass
class ImportResult:
    """
    Result of importing a statement file.

    Provides detailed feedback about what happened during import:
    - How many transactions were parsed
    - Which ones were new vs duplicates
    - How many of the new ones received a category
    """
    total_parsed: int
    new_transactions: int
    duplicates_skipped: int

    imported: List[Transaction] = field(default_factory=list)
    skipped: List[Transaction] = field(default_factory=list)

    filepath: str = ""
    account: str = ""
    dry_run: bool = False

    @property
    def success(self) -> bool:
        """Import is successful if at least one transaction is imported"""
        return self.new_transactions > 0

    @property
    def categorized(self) -> int:
        return sum(1 for txn in self.imported if txn.is_categorized)

    def __str__(self) -> str:
        "Human-readable summary"
        lines = [
            f"Import summary for {self.account}{' (dry run)' if self.dry_run else ''}:",
            f"  File: {self.filepath}",
            f"  Parsed: {self.total_parsed}",
            f"  New transactions: {self.new_transactions}",
            f"  Duplicates skipped: {self.duplicates_skipped}",
        ]
        if self.categorized:
            lines.append(f"  Categorized: {self.categorized}")

        return "\n".join(lines)

    def __post_init__(self):
        """Validate counts match lists"""
        if self.new_transactions != len(self.imported):
            raise ValueError(
                f"Count mismatch: new_transactions={self.new_transactions} "
                f"but len(imported)={len(self.imported)}"
            )
        if self.duplicates_skipped != len(self.skipped):
            raise ValueError(
                f"Count mismatch: duplicates_skipped={self.duplicates_skipped} "
                f"but len(skipped)={len(self.skipped)}"
            )
