from __future__ import annotations
from dataclasses import dataclass


DATE_FORMAT = "%d-%m-%Y"
SUGGESTED_CATEGORIES = ("Food", "Travel", "Bills", "Other")


@dataclass(frozen=True)
class Expense:
    date: str
    category: str
    amount: float
    description: str = ""

    def __str__(self) -> str:
        return f"{self.date} | {self.category} | {self.amount} | {self.description}"
