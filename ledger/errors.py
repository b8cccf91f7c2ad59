"""Exceptions raised by the ledger package."""
from __future__ import annotations
from pathlib import Path
from typing import List

from ledger.models import Expense


class LedgerError(Exception):
    """Base exception for all ledger errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class ValidationError(LedgerError):
    """Raised when a date or amount fails to parse."""


class OutOfRangeError(LedgerError):
    """Raised when a 1-based position falls outside the store."""

    def __init__(self, position: int, size: int):
        self.position = position
        self.size = size
        super().__init__(f"Position {position} is outside 1..{size}")


class PersistenceReadError(LedgerError):
    """Raised when the backing file cannot be read.

    ``records`` holds whatever was parsed before the failure.
    """

    def __init__(self, path: Path, records: List[Expense]):
        self.path = path
        self.records = records
        super().__init__(f"Error reading expense file '{path}'")


class PersistenceWriteError(LedgerError):
    """Raised when the backing file cannot be rewritten."""

    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"Error writing expense file '{path}'")
