"""Monthly aggregation over an in-memory snapshot of transactions.

Every function here is pure: it reads only its arguments and never touches the
database. Records may be ORM ``Transaction`` rows or ``TransactionRecord``
instances; anything exposing ``type``, ``date``, ``amount``, ``category`` and
``is_recurring`` works.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional, Sequence

from models import TransactionType
from periods import add_months, same_month

ZERO = Decimal("0")


class MalformedTransactionError(ValueError):
    pass


@dataclass(frozen=True)
class TransactionRecord:
    type: TransactionType
    date: date
    amount: Decimal
    category: str
    description: str = ""
    is_recurring: bool = False
    id: Optional[str] = None


@dataclass(frozen=True)
class MonthlyTotals:
    income: Decimal = ZERO
    expense: Decimal = ZERO
    balance: Decimal = ZERO

    def as_dict(self) -> dict[str, float]:
        return {
            "income": float(self.income),
            "expense": float(self.expense),
            "balance": float(self.balance),
        }


@dataclass(frozen=True)
class MonthTotal:
    month: date
    total: Decimal


@dataclass(frozen=True)
class MonthlySummary:
    reference_month: date
    current: MonthlyTotals
    previous: MonthlyTotals
    income_variation: float
    expense_variation: float
    balance_variation: float
    income_by_category: dict[str, Decimal] = field(default_factory=dict)
    expense_by_category: dict[str, Decimal] = field(default_factory=dict)


def _record_type(record) -> TransactionType:
    raw = getattr(record, "type", None)
    if raw is None:
        raise MalformedTransactionError("Transaction is missing its type")
    try:
        return TransactionType(raw)
    except ValueError as exc:
        raise MalformedTransactionError(f"Unknown transaction type: {raw!r}") from exc


def _record_amount(record) -> Decimal:
    raw = getattr(record, "amount", None)
    if raw is None or isinstance(raw, bool):
        raise MalformedTransactionError("Transaction is missing its amount")
    try:
        amount = raw if isinstance(raw, Decimal) else Decimal(str(raw))
    except (InvalidOperation, ValueError) as exc:
        raise MalformedTransactionError(f"Invalid amount: {raw!r}") from exc
    if not amount.is_finite():
        raise MalformedTransactionError(f"Amount must be finite, got {raw!r}")
    if amount <= 0:
        raise MalformedTransactionError(f"Amount must be positive, got {raw!r}")
    return amount


def _record_date(record) -> date:
    raw = getattr(record, "date", None)
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if isinstance(raw, str):
        try:
            return date.fromisoformat(raw)
        except ValueError as exc:
            raise MalformedTransactionError(f"Unparseable date: {raw!r}") from exc
    raise MalformedTransactionError(f"Transaction date is missing or invalid: {raw!r}")


def _record_category(record) -> str:
    raw = getattr(record, "category", None)
    if not isinstance(raw, str) or not raw.strip():
        raise MalformedTransactionError("Transaction is missing its category")
    return raw


def validate_records(transactions: Iterable) -> list:
    """Check every record up front so no call aggregates a partial snapshot."""
    records = list(transactions)
    for record in records:
        _record_type(record)
        _record_amount(record)
        _record_date(record)
    return records


def month_filter(transactions: Iterable, reference_date: date) -> list:
    records = validate_records(transactions)
    return [r for r in records if same_month(_record_date(r), reference_date)]


def monthly_totals(transactions: Iterable) -> MonthlyTotals:
    income = ZERO
    expense = ZERO
    for record in validate_records(transactions):
        if _record_type(record) == TransactionType.income:
            income += _record_amount(record)
        else:
            expense += _record_amount(record)
    return MonthlyTotals(income=income, expense=expense, balance=income - expense)


def period_variation(current, previous) -> float:
    """Percentage change from ``previous`` to ``current``; 0 when previous is 0."""
    current_value = Decimal(str(current))
    previous_value = Decimal(str(previous))
    if previous_value == 0:
        return 0.0
    return float((current_value - previous_value) / previous_value * 100)


def category_totals(
    transactions: Iterable, transaction_type: TransactionType
) -> dict[str, Decimal]:
    totals: dict[str, Decimal] = {}
    for record in validate_records(transactions):
        if _record_type(record) != transaction_type:
            continue
        category = _record_category(record)
        totals[category] = totals.get(category, ZERO) + _record_amount(record)
    return totals


def sorted_category_totals(
    totals: dict[str, Decimal],
) -> list[tuple[str, Decimal]]:
    # stable: equal totals keep first-seen order
    return sorted(totals.items(), key=lambda item: -item[1])


def category_history(
    transactions: Iterable,
    category: str,
    transaction_type: TransactionType,
    reference_date: date,
    window_size: int = 3,
) -> list[MonthTotal]:
    """Totals for one category over the ``window_size`` months ending at the
    reference month, newest first. Months without activity report zero."""
    if window_size < 1:
        raise ValueError("window_size must be at least 1")
    records = validate_records(transactions)
    matching = [
        r
        for r in records
        if _record_type(r) == transaction_type and r.category == category
    ]
    history: list[MonthTotal] = []
    for offset in range(window_size):
        month = add_months(reference_date, -offset)
        total = sum(
            (_record_amount(r) for r in matching if same_month(_record_date(r), month)),
            ZERO,
        )
        history.append(MonthTotal(month=month, total=total))
    return history


def recurring_total(
    transactions: Iterable, transaction_type: TransactionType
) -> tuple[int, Decimal]:
    count = 0
    total = ZERO
    for record in validate_records(transactions):
        if _record_type(record) != transaction_type:
            continue
        if not getattr(record, "is_recurring", False):
            continue
        count += 1
        total += _record_amount(record)
    return count, total


def monthly_summary(transactions: Sequence, reference_date: date) -> MonthlySummary:
    records = validate_records(transactions)
    current_records = month_filter(records, reference_date)
    previous_records = month_filter(records, add_months(reference_date, -1))
    current = monthly_totals(current_records)
    previous = monthly_totals(previous_records)
    return MonthlySummary(
        reference_month=add_months(reference_date, 0),
        current=current,
        previous=previous,
        income_variation=period_variation(current.income, previous.income),
        expense_variation=period_variation(current.expense, previous.expense),
        balance_variation=period_variation(current.balance, previous.balance),
        income_by_category=category_totals(current_records, TransactionType.income),
        expense_by_category=category_totals(current_records, TransactionType.expense),
    )
