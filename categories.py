import re
from dataclasses import dataclass

from models import TransactionType


@dataclass(frozen=True)
class CategoryOption:
    value: str
    label: str


DEFAULT_CATEGORIES: dict[TransactionType, tuple[CategoryOption, ...]] = {
    TransactionType.income: (
        CategoryOption("salary", "Salary"),
        CategoryOption("freelance", "Freelance"),
        CategoryOption("investment", "Investment"),
        CategoryOption("gift", "Gift"),
        CategoryOption("other", "Other"),
    ),
    TransactionType.expense: (
        CategoryOption("housing", "Housing"),
        CategoryOption("food", "Food"),
        CategoryOption("transportation", "Transportation"),
        CategoryOption("entertainment", "Entertainment"),
        CategoryOption("utilities", "Utilities"),
        CategoryOption("healthcare", "Healthcare"),
        CategoryOption("recurring", "Recurring Payment"),
        CategoryOption("other", "Other"),
    ),
}

_WHITESPACE = re.compile(r"\s+")


def slugify_category(name: str) -> str:
    slug = _WHITESPACE.sub("-", name.strip().lower())
    if not slug:
        raise ValueError("Category name is required")
    return slug


def category_label(value: str) -> str:
    for options in DEFAULT_CATEGORIES.values():
        for option in options:
            if option.value == value:
                return option.label
    return value.replace("-", " ").capitalize()
