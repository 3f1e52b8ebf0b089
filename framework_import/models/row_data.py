from __future__ import annotations

from dataclasses import dataclass

"""FlatRow model for the CSV framework importer.

A FlatRow is one data row of the uploaded CSV after header mapping and
whitespace trimming. Row numbers follow spreadsheet numbering: the header is
row 1, so the first data row is row 2.
"""

__all__ = [
    "FlatRow",
]


@dataclass(frozen=True)
class FlatRow:
    """Single CSV data row (column name -> trimmed string)."""
    row_number: int  # header = 1, 1st data row = 2
    values: dict[str, str]

    def get(self, column: str) -> str:
        """Trimmed value for `column`; absent columns read as ""."""
        return self.values.get(column, "")
