"""Reads GitHub usernames from a delimited file.

The first row is a header only when one of its cells is literally
``username`` (case-insensitive); that column is used, otherwise the first
column. Values are trimmed and checked against the handle grammar. Rows that
fail are counted so the caller can warn about them.
"""

import csv
import io
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from shiptracker.utils.handles import is_valid_handle

logger = logging.getLogger(__name__)

USERNAME_COLUMN = "username"
CANDIDATE_DELIMITERS = ",;\t|"


@dataclass
class CsvImportResult:
    usernames: List[str] = field(default_factory=list)
    invalid_rows: int = 0
    total_rows: int = 0

    @property
    def invalid_rows_message(self) -> Optional[str]:
        if not self.invalid_rows:
            return None
        return f"{self.invalid_rows} rows contain invalid GitHub usernames and will be skipped."


def _sniff_dialect(text: str) -> type:
    sample = text[:4096]
    try:
        return csv.Sniffer().sniff(sample, delimiters=CANDIDATE_DELIMITERS)
    except csv.Error:
        return csv.excel


def parse_usernames_csv(text: str) -> CsvImportResult:
    """Extracts valid usernames from CSV text."""
    result = CsvImportResult()
    rows = [row for row in csv.reader(io.StringIO(text), _sniff_dialect(text))]
    rows = [row for row in rows if any(cell.strip() for cell in row)]
    if not rows:
        return result

    column = 0
    header = [cell.strip().lower() for cell in rows[0]]
    if USERNAME_COLUMN in header:
        column = header.index(USERNAME_COLUMN)
        rows = rows[1:]
        logger.debug(f"CSV header found; reading column {column}")

    for line_number, row in enumerate(rows, start=1):
        result.total_rows += 1
        value = row[column].strip() if column < len(row) else ""
        if is_valid_handle(value):
            result.usernames.append(value)
        else:
            logger.debug(f"Invalid username in CSV row {line_number}: {value!r}")
            result.invalid_rows += 1

    logger.info(
        f"Parsed CSV: {len(result.usernames)} valid username(s), {result.invalid_rows} invalid row(s)"
    )
    return result


def load_usernames_csv(path: Path) -> CsvImportResult:
    """Reads and parses a CSV file from disk (UTF-8, BOM tolerated)."""
    with open(path, "r", encoding="utf-8-sig", newline="") as f:
        return parse_usernames_csv(f.read())
