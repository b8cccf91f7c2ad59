from __future__ import annotations
from pathlib import Path
from typing import Iterable, List, Optional

from ledger.errors import PersistenceReadError, PersistenceWriteError
from ledger.logging_setup import get_logger
from ledger.models import Expense


EXPENSES_FILE = Path("expenses.txt")
DELIMITER = ","

logger = get_logger("ledger.storage")


def parse_line(line: str) -> Optional[Expense]:
    """Turn one stored line into an Expense, or None when it is malformed."""
    parts = line.rstrip("\r\n").split(DELIMITER, 3)
    if len(parts) != 4:
        return None
    date_text, category, amount_text, description = parts
    try:
        amount = float(amount_text)
    except ValueError:
        return None
    return Expense(date=date_text, category=category, amount=amount, description=description)


def format_line(expense: Expense) -> str:
    return DELIMITER.join(
        (expense.date, expense.category, repr(expense.amount), expense.description)
    ) + "\n"


def load_expenses(path: Path = EXPENSES_FILE) -> List[Expense]:
    path = Path(path)
    expenses: List[Expense] = []
    if not path.exists():
        logger.debug("No expense file at %s, starting empty", path)
        return expenses

    try:
        with path.open("r", encoding="utf-8", errors="replace", newline="") as fh:
            for lineno, line in enumerate(fh, 1):
                expense = parse_line(line)
                if expense is None:
                    logger.debug("Skipping malformed line %d in %s", lineno, path)
                    continue
                expenses.append(expense)
    except OSError as e:
        logger.error("Failed reading %s after %d expenses: %s", path, len(expenses), e)
        raise PersistenceReadError(path, expenses) from e

    logger.debug("Loaded %d expenses from %s", len(expenses), path)
    return expenses


def save_expenses(path: Path, expenses: Iterable[Expense]) -> None:
    """Overwrite ``path`` with every expense, one line each."""
    path = Path(path)
    count = 0
    try:
        with path.open("w", encoding="utf-8", newline="") as fh:
            for expense in expenses:
                fh.write(format_line(expense))
                count += 1
    except OSError as e:
        logger.error("Failed writing %s: %s", path, e)
        raise PersistenceWriteError(path) from e

    logger.debug("Saved %d expenses to %s", count, path)
