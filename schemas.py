import datetime as dt
from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from auth import MAX_PASSWORD_BYTES, password_too_long
from models import TransactionType

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


def _check_password_bytes(value: Optional[str]) -> Optional[str]:
    if value is not None and password_too_long(value):
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    return value


class SignUpIn(BaseModel):
    email: str = Field(..., max_length=254, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=6, max_length=MAX_PASSWORD_BYTES)
    full_name: Optional[str] = Field(default=None, max_length=120)

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, value):
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("password")
    @classmethod
    def _password_bytes(cls, value: str) -> str:
        return _check_password_bytes(value)


class LoginIn(BaseModel):
    email: str = Field(..., max_length=254)
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, value):
        return value.strip().lower() if isinstance(value, str) else value


class ProfileUpdateIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    full_name: Optional[str] = Field(default=None, max_length=120)
    email: Optional[str] = Field(default=None, max_length=254, pattern=EMAIL_PATTERN)
    password: Optional[str] = Field(
        default=None, min_length=6, max_length=MAX_PASSWORD_BYTES
    )
    current_password: Optional[str] = Field(default=None, max_length=128)

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, value):
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("password")
    @classmethod
    def _password_bytes(cls, value: Optional[str]) -> Optional[str]:
        return _check_password_bytes(value)


def _check_recurring_bounds(
    is_recurring: Optional[bool], start: Optional[date], end: Optional[date]
) -> None:
    if is_recurring and start and end and end < start:
        raise ValueError("Recurring end date must not be before the start date")


class TransactionIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: TransactionType
    date: date
    description: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    category: str = Field(..., min_length=1, max_length=100)
    group_id: Optional[str] = None
    is_recurring: bool = False
    recurring_start_date: Optional[date] = None
    recurring_end_date: Optional[date] = None

    @field_validator("description", "category")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @model_validator(mode="after")
    def _recurring_bounds(self) -> "TransactionIn":
        if not self.is_recurring:
            self.recurring_start_date = None
            self.recurring_end_date = None
        _check_recurring_bounds(
            self.is_recurring, self.recurring_start_date, self.recurring_end_date
        )
        return self


class TransactionUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Optional[TransactionType] = None
    date: Optional[dt.date] = None
    description: Optional[str] = Field(default=None, min_length=1, max_length=200)
    amount: Optional[Decimal] = Field(
        default=None, gt=0, max_digits=10, decimal_places=2
    )
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    is_recurring: Optional[bool] = None
    recurring_start_date: Optional[dt.date] = None
    recurring_end_date: Optional[dt.date] = None

    @field_validator("description", "category")
    @classmethod
    def _strip(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @model_validator(mode="after")
    def _recurring_bounds(self) -> "TransactionUpdate":
        _check_recurring_bounds(
            self.is_recurring, self.recurring_start_date, self.recurring_end_date
        )
        return self


class GroupIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)

    @field_validator("name")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class InviteIn(BaseModel):
    email: str = Field(..., max_length=254, pattern=EMAIL_PATTERN)

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, value):
        return value.strip().lower() if isinstance(value, str) else value
