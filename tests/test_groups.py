from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from database import Base
from models import GroupRole, TransactionType, User
from schemas import GroupIn, TransactionIn
from services import (
    GroupMembershipError,
    GroupService,
    NotFoundError,
    PermissionDeniedError,
    TransactionService,
)


def add_user(session: Session, email: str, full_name: str = "") -> User:
    user = User(email=email, full_name=full_name or None, password_hash="unused")
    session.add(user)
    session.commit()
    return user


def test_creator_becomes_owner() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine, expire_on_commit=False) as session:
        alice = add_user(session, "alice@example.com", "Alice")
        group = GroupService(session, alice.id).create(GroupIn(name="  Home  "))

        assert group.name == "Home"
        assert group.created_by == alice.id
        members = GroupService(session, alice.id).members(group.id)
        assert [(m.user_id, m.role) for m in members] == [(alice.id, GroupRole.owner)]


def test_invite_adds_member_by_email() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine, expire_on_commit=False) as session:
        alice = add_user(session, "alice@example.com")
        bob = add_user(session, "bob@example.com")
        groups = GroupService(session, alice.id)
        group = groups.create(GroupIn(name="Home"))

        member = groups.invite(group.id, "Bob@Example.com")

        assert member.user_id == bob.id
        assert member.role == GroupRole.member
        assert GroupService(session, bob.id).is_member(group.id)


def test_invite_rejects_unknown_email_and_duplicates() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine, expire_on_commit=False) as session:
        alice = add_user(session, "alice@example.com")
        add_user(session, "bob@example.com")
        groups = GroupService(session, alice.id)
        group = groups.create(GroupIn(name="Home"))
        groups.invite(group.id, "bob@example.com")

        with pytest.raises(NotFoundError):
            groups.invite(group.id, "nobody@example.com")
        with pytest.raises(GroupMembershipError):
            groups.invite(group.id, "bob@example.com")
        with pytest.raises(GroupMembershipError):
            groups.invite(group.id, "alice@example.com")


def test_only_members_can_invite() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine, expire_on_commit=False) as session:
        alice = add_user(session, "alice@example.com")
        mallory = add_user(session, "mallory@example.com")
        add_user(session, "bob@example.com")
        group = GroupService(session, alice.id).create(GroupIn(name="Home"))

        with pytest.raises(PermissionDeniedError):
            GroupService(session, mallory.id).invite(group.id, "bob@example.com")
        with pytest.raises(NotFoundError):
            GroupService(session, alice.id).invite("missing", "bob@example.com")


def test_list_for_user_includes_members_and_all_time_summary() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine, expire_on_commit=False) as session:
        alice = add_user(session, "alice@example.com", "Alice")
        bob = add_user(session, "bob@example.com", "Bob")
        carol = add_user(session, "carol@example.com")
        groups = GroupService(session, alice.id)
        home = groups.create(GroupIn(name="Home"))
        groups.invite(home.id, "bob@example.com")
        GroupService(session, carol.id).create(GroupIn(name="Carol only"))

        for on, kind, amount, category in [
            (date(2024, 1, 5), TransactionType.income, "2000", "salary"),
            (date(2024, 2, 5), TransactionType.expense, "300", "utilities"),
            (date(2024, 3, 5), TransactionType.expense, "150.50", "food"),
        ]:
            TransactionService(session, bob.id).create(
                TransactionIn(
                    type=kind,
                    date=on,
                    description=category,
                    amount=Decimal(amount),
                    category=category,
                    group_id=home.id,
                )
            )
        TransactionService(session, alice.id).create(
            TransactionIn(
                type=TransactionType.expense,
                date=date(2024, 3, 6),
                description="Private",
                amount=Decimal("999"),
                category="food",
            )
        )

        listed = GroupService(session, bob.id).list_for_user()

        assert [g["name"] for g in listed] == ["Home"]
        entry = listed[0]
        assert {m["email"] for m in entry["members"]} == {
            "alice@example.com",
            "bob@example.com",
        }
        assert entry["members"][0]["role"] == "owner"
        assert entry["summary"] == {
            "income": 2000.0,
            "expense": 450.5,
            "balance": 1549.5,
        }
