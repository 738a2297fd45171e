from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Callable, Iterable, Optional, Sequence

from analytics import (
    category_totals,
    month_filter,
    monthly_totals,
    period_variation,
    recurring_total,
    sorted_category_totals,
    validate_records,
)
from config import get_settings
from models import TransactionType
from periods import add_months

EXPENSE_CHANGE_THRESHOLD = 20.0
MIN_SAVINGS_RATE = 20.0
MAX_FIXED_COST_SHARE = 50.0


class InsightKind(str, Enum):
    alert = "alert"
    warning = "warning"
    success = "success"
    suggestion = "suggestion"


@dataclass(frozen=True)
class Insight:
    kind: InsightKind
    title: str
    message: str

    def as_dict(self) -> dict[str, str]:
        return {"kind": self.kind.value, "title": self.title, "message": self.message}


def format_money(amount: Decimal) -> str:
    symbol = get_settings().currency_symbol
    return f"{symbol} {amount:,.2f}"


def top_expense_category(current: Sequence, previous: Sequence) -> Optional[Insight]:
    ranked = sorted_category_totals(category_totals(current, TransactionType.expense))
    if not ranked:
        return None
    category, total = ranked[0]
    return Insight(
        InsightKind.alert,
        "Top expense category",
        f"You spent {format_money(total)} on {category} this month. "
        "Consider reviewing these expenses.",
    )


def _expense_variation(current: Sequence, previous: Sequence) -> Optional[float]:
    previous_expense = monthly_totals(previous).expense
    if previous_expense <= 0:
        return None
    return period_variation(monthly_totals(current).expense, previous_expense)


def expense_increase(current: Sequence, previous: Sequence) -> Optional[Insight]:
    variation = _expense_variation(current, previous)
    if variation is None or variation <= EXPENSE_CHANGE_THRESHOLD:
        return None
    return Insight(
        InsightKind.warning,
        "Significant increase in expenses",
        f"Your expenses rose {variation:.1f}% compared to last month.",
    )


def expense_decrease(current: Sequence, previous: Sequence) -> Optional[Insight]:
    variation = _expense_variation(current, previous)
    if variation is None or variation >= -EXPENSE_CHANGE_THRESHOLD:
        return None
    return Insight(
        InsightKind.success,
        "Expenses went down",
        f"Great! Your expenses fell {abs(variation):.1f}% compared to last month.",
    )


def low_savings_rate(current: Sequence, previous: Sequence) -> Optional[Insight]:
    totals = monthly_totals(current)
    if totals.income <= 0:
        return None
    savings_rate = float(totals.balance / totals.income * 100)
    if savings_rate >= MIN_SAVINGS_RATE:
        return None
    return Insight(
        InsightKind.suggestion,
        "Low savings rate",
        f"Your savings rate is {savings_rate:.1f}%. "
        f"Aim for at least {MIN_SAVINGS_RATE:.0f}% for healthier finances.",
    )


def high_fixed_costs(current: Sequence, previous: Sequence) -> Optional[Insight]:
    count, recurring = recurring_total(current, TransactionType.expense)
    income = monthly_totals(current).income
    if count == 0 or income <= 0:
        return None
    share = float(recurring / income * 100)
    if share <= MAX_FIXED_COST_SHARE:
        return None
    return Insight(
        InsightKind.alert,
        "High fixed costs",
        f"Recurring expenses take {share:.1f}% of your income. "
        "Consider reviewing subscriptions and other recurring payments.",
    )


Rule = Callable[[Sequence, Sequence], Optional[Insight]]

RULES: tuple[Rule, ...] = (
    top_expense_category,
    expense_increase,
    expense_decrease,
    low_savings_rate,
    high_fixed_costs,
)


def derive_insights(current: Iterable, previous: Iterable) -> list[Insight]:
    current_records = validate_records(current)
    previous_records = validate_records(previous)
    insights: list[Insight] = []
    for rule in RULES:
        insight = rule(current_records, previous_records)
        if insight is not None:
            insights.append(insight)
    return insights


def monthly_insights(transactions: Iterable, reference_date: date) -> list[Insight]:
    records = validate_records(transactions)
    return derive_insights(
        month_filter(records, reference_date),
        month_filter(records, add_months(reference_date, -1)),
    )
