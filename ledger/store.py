from __future__ import annotations
from typing import Callable, Iterable, Iterator, List, Tuple

from ledger.errors import OutOfRangeError
from ledger.models import Expense


class ExpenseStore:
    """Ordered in-memory expenses, addressed by 1-based position."""

    def __init__(self, expenses: Iterable[Expense] = ()):
        self._expenses: List[Expense] = list(expenses)

    def __len__(self) -> int:
        return len(self._expenses)

    def __iter__(self) -> Iterator[Expense]:
        return iter(self.list())

    def is_empty(self) -> bool:
        return not self._expenses

    def list(self) -> Tuple[Expense, ...]:
        return tuple(self._expenses)

    def add(self, expense: Expense) -> None:
        self._expenses.append(expense)

    def replace_all(self, expenses: Iterable[Expense]) -> None:
        self._expenses[:] = list(expenses)

    def _index(self, position: int) -> int:
        if position < 1 or position > len(self._expenses):
            raise OutOfRangeError(position, len(self._expenses))
        return position - 1

    def get(self, position: int) -> Expense:
        return self._expenses[self._index(position)]

    def remove_at(self, position: int) -> Expense:
        return self._expenses.pop(self._index(position))

    def update_at(self, position: int, mutator: Callable[[Expense], Expense]) -> Expense:
        """Replace the expense at ``position`` with ``mutator(expense)``."""
        i = self._index(position)
        self._expenses[i] = mutator(self._expenses[i])
        return self._expenses[i]
