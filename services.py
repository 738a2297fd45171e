from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from rapidfuzz.distance import Levenshtein
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, joinedload

from analytics import (
    category_history,
    monthly_summary,
    monthly_totals,
    sorted_category_totals,
)
from auth import hash_password, verify_password
from categories import (
    DEFAULT_CATEGORIES,
    CategoryOption,
    category_label,
    slugify_category,
)
from insights import monthly_insights
from models import (
    FinancialGroup,
    GroupMember,
    GroupRole,
    Transaction,
    TransactionType,
    User,
)
from periods import local_today, month_label, month_period
from schemas import (
    GroupIn,
    ProfileUpdateIn,
    SignUpIn,
    TransactionIn,
    TransactionUpdate,
)

logger = logging.getLogger(__name__)

FUZZY_CATEGORY_MIN_LENGTH = 4


class NotFoundError(ValueError):
    pass


class PermissionDeniedError(ValueError):
    pass


class AuthenticationError(ValueError):
    pass


class GroupMembershipError(ValueError):
    pass


class CategoryAmbiguous(ValueError):
    pass


@dataclass
class TransactionFilters:
    type: Optional[TransactionType] = None
    query: Optional[str] = None
    month: Optional[date] = None


def member_group_ids(user_id: str):
    return select(GroupMember.group_id).where(GroupMember.user_id == user_id)


class UserService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, user_id: str) -> User:
        user = self.session.get(User, user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    def get_by_email(self, email: str) -> Optional[User]:
        return self.session.scalar(
            select(User).where(func.lower(User.email) == email.strip().lower())
        )

    def sign_up(self, data: SignUpIn) -> User:
        if self.get_by_email(data.email):
            raise ValueError("Email already registered")
        user = User(
            email=data.email,
            full_name=(data.full_name or "").strip() or None,
            password_hash=hash_password(data.password),
        )
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        logger.info(f"user_signed_up: user={user.id}")
        return user

    def authenticate(self, email: str, password: str) -> User:
        user = self.get_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            logger.warning("login_failed: reason=invalid_credentials")
            raise AuthenticationError("Invalid email or password")
        return user

    def update_profile(self, user_id: str, data: ProfileUpdateIn) -> User:
        user = self.get(user_id)
        changes_credentials = (
            data.email is not None and data.email != user.email
        ) or data.password is not None
        if changes_credentials:
            if not data.current_password or not verify_password(
                data.current_password, user.password_hash
            ):
                raise AuthenticationError("Current password is incorrect")
        if data.email is not None and data.email != user.email:
            existing = self.get_by_email(data.email)
            if existing and existing.id != user.id:
                raise ValueError("Email already registered")
            user.email = data.email
        if data.password is not None:
            user.password_hash = hash_password(data.password)
        if data.full_name is not None:
            user.full_name = data.full_name.strip() or None
        self.session.commit()
        self.session.refresh(user)
        logger.info(
            f"profile_updated: user={user.id} credentials_changed={changes_credentials}"
        )
        return user


class CategoryService:
    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id

    def used_categories(self, transaction_type: TransactionType) -> list[str]:
        stmt = (
            select(Transaction.category)
            .where(
                Transaction.user_id == self.user_id,
                Transaction.type == transaction_type,
            )
            .distinct()
            .order_by(Transaction.category)
        )
        return list(self.session.scalars(stmt).all())

    def list_for_type(self, transaction_type: TransactionType) -> list[CategoryOption]:
        options = list(DEFAULT_CATEGORIES[transaction_type])
        known = {option.value for option in options}
        for name in self.used_categories(transaction_type):
            if name not in known:
                options.append(CategoryOption(name, category_label(name)))
                known.add(name)
        return options

    def resolve(self, name: str, transaction_type: TransactionType) -> str:
        slug = slugify_category(name)
        known = {option.value for option in self.list_for_type(transaction_type)}
        if slug in known or len(slug) < FUZZY_CATEGORY_MIN_LENGTH:
            return slug

        best_distance: Optional[int] = None
        best: list[str] = []
        for candidate in sorted(known):
            dist = int(Levenshtein.distance(slug, candidate))
            if best_distance is None or dist < best_distance:
                best_distance = dist
                best = [candidate]
            elif dist == best_distance:
                best.append(candidate)

        if best_distance is not None and best_distance <= 1:
            if len(best) > 1:
                options = ", ".join(best)
                raise CategoryAmbiguous(
                    f"Category '{name}' is ambiguous; matches: {options}"
                )
            return best[0]
        return slug


class GroupService:
    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id

    def get(self, group_id: str) -> FinancialGroup:
        group = self.session.get(FinancialGroup, group_id)
        if not group:
            raise NotFoundError("Group not found")
        return group

    def is_member(self, group_id: str, user_id: Optional[str] = None) -> bool:
        stmt = select(func.count(GroupMember.id)).where(
            GroupMember.group_id == group_id,
            GroupMember.user_id == (user_id or self.user_id),
        )
        return (self.session.execute(stmt).scalar_one() or 0) > 0

    def require_member(self, group_id: str) -> FinancialGroup:
        group = self.get(group_id)
        if not self.is_member(group_id):
            raise PermissionDeniedError("You are not a member of this group")
        return group

    def create(self, data: GroupIn) -> FinancialGroup:
        group = FinancialGroup(name=data.name, created_by=self.user_id)
        group.members = [GroupMember(user_id=self.user_id, role=GroupRole.owner)]
        self.session.add(group)
        self.session.commit()
        self.session.refresh(group)
        logger.info(f"group_created: group={group.id} owner={self.user_id}")
        return group

    def members(self, group_id: str) -> list[GroupMember]:
        stmt = (
            select(GroupMember)
            .options(joinedload(GroupMember.user))
            .where(GroupMember.group_id == group_id)
            .order_by(GroupMember.created_at, GroupMember.id)
        )
        return list(self.session.scalars(stmt).all())

    def list_for_user(self) -> list[dict[str, object]]:
        groups = self.session.scalars(
            select(FinancialGroup)
            .where(FinancialGroup.id.in_(member_group_ids(self.user_id)))
            .order_by(FinancialGroup.created_at, FinancialGroup.id)
        ).all()
        out: list[dict[str, object]] = []
        for group in groups:
            transactions = self.session.scalars(
                select(Transaction).where(Transaction.group_id == group.id)
            ).all()
            out.append(
                {
                    "id": group.id,
                    "name": group.name,
                    "created_by": group.created_by,
                    "created_at": group.created_at.isoformat(),
                    "members": [
                        {
                            "user_id": member.user_id,
                            "role": member.role.value,
                            "email": member.user.email if member.user else None,
                            "full_name": member.user.full_name if member.user else None,
                        }
                        for member in self.members(group.id)
                    ],
                    "summary": monthly_totals(transactions).as_dict(),
                }
            )
        return out

    def invite(self, group_id: str, email: str) -> GroupMember:
        self.require_member(group_id)
        invitee = UserService(self.session).get_by_email(email)
        if not invitee:
            raise NotFoundError("User not found")
        if self.is_member(group_id, invitee.id):
            raise GroupMembershipError("User is already a member of this group")
        member = GroupMember(group_id=group_id, user_id=invitee.id, role=GroupRole.member)
        self.session.add(member)
        self.session.commit()
        self.session.refresh(member)
        logger.info(
            f"group_member_added: group={group_id} user={invitee.id} invited_by={self.user_id}"
        )
        return member


class TransactionService:
    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id

    def _visible(self):
        return or_(
            Transaction.user_id == self.user_id,
            Transaction.group_id.in_(member_group_ids(self.user_id)),
        )

    def _check_date(self, txn_date: date) -> None:
        if txn_date > local_today():
            raise ValueError("Transaction date cannot be in the future")

    def create(self, data: TransactionIn) -> Transaction:
        self._check_date(data.date)
        if data.group_id:
            GroupService(self.session, self.user_id).require_member(data.group_id)
        category = CategoryService(self.session, self.user_id).resolve(
            data.category, data.type
        )
        txn = Transaction(
            user_id=self.user_id,
            group_id=data.group_id,
            type=data.type,
            date=data.date,
            description=data.description,
            amount=data.amount,
            category=category,
            is_recurring=data.is_recurring,
            recurring_start_date=data.recurring_start_date,
            recurring_end_date=data.recurring_end_date,
        )
        self.session.add(txn)
        self.session.commit()
        self.session.refresh(txn)
        logger.info(
            f"transaction_created: id={txn.id} user={self.user_id} group={txn.group_id} type={txn.type.value}"
        )
        return txn

    def get(self, transaction_id: str) -> Transaction:
        txn = self.session.scalar(
            select(Transaction).where(Transaction.id == transaction_id, self._visible())
        )
        if not txn:
            raise NotFoundError("Transaction not found")
        return txn

    def list_visible(
        self, filters: Optional[TransactionFilters] = None
    ) -> list[Transaction]:
        filters = filters or TransactionFilters()
        stmt = (
            select(Transaction)
            .where(self._visible())
            .order_by(
                Transaction.date.desc(),
                Transaction.created_at.desc(),
                Transaction.id.desc(),
            )
        )
        if filters.type:
            stmt = stmt.where(Transaction.type == filters.type)
        if filters.month:
            period = month_period(filters.month)
            stmt = stmt.where(Transaction.date.between(period.start, period.end))
        if filters.query:
            like = f"%{filters.query.strip().lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(Transaction.description).like(like),
                    func.lower(Transaction.category).like(like),
                )
            )
        return list(self.session.scalars(stmt).all())

    def list_for_group(self, group_id: str) -> list[Transaction]:
        GroupService(self.session, self.user_id).require_member(group_id)
        stmt = (
            select(Transaction)
            .where(Transaction.group_id == group_id)
            .order_by(
                Transaction.date.desc(),
                Transaction.created_at.desc(),
                Transaction.id.desc(),
            )
        )
        return list(self.session.scalars(stmt).all())

    def update(self, transaction_id: str, data: TransactionUpdate) -> Transaction:
        txn = self.get(transaction_id)
        changes = data.model_dump(exclude_unset=True)
        for key in ("type", "date", "description", "amount", "category"):
            if key in changes and changes[key] is None:
                raise ValueError(f"Field '{key}' cannot be null")

        if "date" in changes:
            self._check_date(changes["date"])
        new_type = changes.get("type", txn.type)
        if "category" in changes or "type" in changes:
            txn.category = CategoryService(self.session, self.user_id).resolve(
                changes.get("category", txn.category), new_type
            )
        txn.type = new_type
        for key in ("date", "description", "amount"):
            if key in changes:
                setattr(txn, key, changes[key])

        if "is_recurring" in changes and changes["is_recurring"] is not None:
            txn.is_recurring = changes["is_recurring"]
        if "recurring_start_date" in changes:
            txn.recurring_start_date = changes["recurring_start_date"]
        if "recurring_end_date" in changes:
            txn.recurring_end_date = changes["recurring_end_date"]
        if not txn.is_recurring:
            txn.recurring_start_date = None
            txn.recurring_end_date = None
        if (
            txn.recurring_start_date
            and txn.recurring_end_date
            and txn.recurring_end_date < txn.recurring_start_date
        ):
            self.session.rollback()
            raise ValueError("Recurring end date must not be before the start date")

        self.session.commit()
        self.session.refresh(txn)
        logger.info(f"transaction_updated: id={txn.id} user={self.user_id}")
        return txn

    def delete(self, transaction_id: str) -> None:
        txn = self.get(transaction_id)
        self.session.delete(txn)
        self.session.commit()
        logger.info(f"transaction_deleted: id={transaction_id} user={self.user_id}")


class DashboardService:
    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id

    def snapshot(self, group_id: Optional[str] = None) -> list[Transaction]:
        transactions = TransactionService(self.session, self.user_id)
        if group_id:
            return transactions.list_for_group(group_id)
        return transactions.list_visible()

    def monthly(
        self,
        reference: date,
        *,
        group_id: Optional[str] = None,
        history_window: int = 3,
    ) -> dict[str, object]:
        snapshot = self.snapshot(group_id)
        summary = monthly_summary(snapshot, reference)

        def breakdown(transaction_type: TransactionType, totals) -> list[dict]:
            return [
                {
                    "category": category,
                    "label": category_label(category),
                    "total": float(total),
                    "history": [
                        {"month": month_label(entry.month), "total": float(entry.total)}
                        for entry in category_history(
                            snapshot, category, transaction_type, reference, history_window
                        )
                    ],
                }
                for category, total in sorted_category_totals(totals)
            ]

        return {
            "month": month_label(reference),
            "group_id": group_id,
            "totals": summary.current.as_dict(),
            "previous_totals": summary.previous.as_dict(),
            "variations": {
                "income": summary.income_variation,
                "expense": summary.expense_variation,
                "balance": summary.balance_variation,
            },
            "categories": {
                "income": breakdown(TransactionType.income, summary.income_by_category),
                "expense": breakdown(
                    TransactionType.expense, summary.expense_by_category
                ),
            },
            "insights": [i.as_dict() for i in monthly_insights(snapshot, reference)],
        }

    def insights(
        self, reference: date, *, group_id: Optional[str] = None
    ) -> list[dict[str, str]]:
        return [
            i.as_dict() for i in monthly_insights(self.snapshot(group_id), reference)
        ]

    def category_history(
        self,
        category: str,
        transaction_type: TransactionType,
        reference: date,
        *,
        window: int = 3,
        group_id: Optional[str] = None,
    ) -> list[dict[str, object]]:
        history = category_history(
            self.snapshot(group_id),
            slugify_category(category),
            transaction_type,
            reference,
            window,
        )
        return [
            {"month": month_label(entry.month), "total": float(entry.total)}
            for entry in history
        ]
