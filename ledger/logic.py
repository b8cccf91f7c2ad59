import calendar
import re
from dataclasses import dataclass, replace
from datetime import date, datetime
from dateutil.relativedelta import relativedelta
from typing import Iterable, List, Optional, Tuple

from ledger.errors import ValidationError
from ledger.models import DATE_FORMAT, Expense


_DATE_SHAPE = re.compile(r"[0-9]{2}-[0-9]{2}-[0-9]{4}")


@dataclass(frozen=True)
class CategoryFilter:
    matches: Tuple[Expense, ...]
    subtotal: float
    found: bool


def parse_date(text: str) -> Optional[date]:
    """Return the date for an exact DD-MM-YYYY string, else None."""
    if not _DATE_SHAPE.fullmatch(text):
        return None
    try:
        return datetime.strptime(text, DATE_FORMAT).date()
    except ValueError:
        return None


def parse_amount(text: str) -> Optional[float]:
    # float() also takes digit separators like "1_000"; a ledger amount does not
    if "_" in text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def build_expense(t_date: str, category: str, amount: str, desc: str = "") -> Expense:
    if parse_date(t_date) is None:
        raise ValidationError(f"Date must be in DD-MM-YYYY format, got '{t_date}'")
    value = parse_amount(amount)
    if value is None:
        raise ValidationError(f"Amount must be a number, got '{amount}'")
    return Expense(date=t_date, category=category, amount=value, description=desc)


def apply_edit(
        expense: Expense,
        t_date: str = "",
        category: str = "",
        amount: str = "",
        desc: str = "",
) -> Expense:
    """Return ``expense`` with the non-empty, valid replacements applied.

    A bad date or amount keeps the old value; the other fields still apply.
    """
    changes = {}
    if t_date and parse_date(t_date) is not None:
        changes["date"] = t_date
    if category:
        changes["category"] = category
    if amount:
        value = parse_amount(amount)
        if value is not None:
            changes["amount"] = value
    if desc:
        changes["description"] = desc
    return replace(expense, **changes)


def total(expenses: Iterable[Expense]) -> float:
    return sum((e.amount for e in expenses), 0.0)


def filter_by_category(expenses: Iterable[Expense], category: str) -> CategoryFilter:
    wanted = category.lower()
    matches = tuple(e for e in expenses if e.category.lower() == wanted)
    return CategoryFilter(matches=matches, subtotal=total(matches), found=bool(matches))


def month_label(d: date) -> str:
    return f"{calendar.month_name[d.month].capitalize()} {d.year:04d}"


def months_back(count: int, today: Optional[date] = None) -> date:
    """First day of the month ``count - 1`` months before ``today``'s month."""
    if count < 1:
        raise ValueError("Month count must be at least 1")
    today = today or date.today()
    return today.replace(day=1) - relativedelta(months=count - 1)


def monthly_summary(
        expenses: Iterable[Expense],
        since: Optional[date] = None,
        chronological: bool = False,
) -> List[Tuple[str, float]]:
    """Subtotals per calendar month, in first-seen order by default.

    Expenses whose date does not parse are left out.
    """
    groups = {}
    for e in expenses:
        d = parse_date(e.date)
        if d is None:
            continue
        if since is not None and d < since:
            continue
        key = (d.year, d.month)
        if key not in groups:
            groups[key] = [month_label(d), 0.0]
        groups[key][1] += e.amount

    keys = sorted(groups) if chronological else list(groups)
    return [(groups[k][0], groups[k][1]) for k in keys]
