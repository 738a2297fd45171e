import logging
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response
from sqlalchemy import select
from sqlalchemy.orm import Session

from analytics import MalformedTransactionError
from auth import SESSION_COOKIE, issue_session_token, read_session_token
from categories import slugify_category
from config import get_settings
from csrf import CSRF_HEADER, generate_csrf_token, validate_csrf_token
from database import session_scope
from models import GroupMember, Transaction, TransactionType, User
from periods import resolve_month
from schemas import (
    GroupIn,
    InviteIn,
    LoginIn,
    ProfileUpdateIn,
    SignUpIn,
    TransactionIn,
    TransactionUpdate,
)
from services import (
    AuthenticationError,
    CategoryService,
    DashboardService,
    GroupService,
    NotFoundError,
    PermissionDeniedError,
    TransactionFilters,
    TransactionService,
    UserService,
)

settings = get_settings()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Shared Finances")


def _load_app_version() -> str:
    try:
        import tomllib
    except Exception:
        return "unknown"
    try:
        with open("pyproject.toml", "rb") as f:
            data = tomllib.load(f)
        return str(data.get("project", {}).get("version", "unknown"))
    except Exception:
        return "unknown"


APP_VERSION = _load_app_version()


def get_db():
    with session_scope() as session:
        yield session


def current_user_id(request: Request, db: Session = Depends(get_db)) -> str:
    user_id = read_session_token(request.cookies.get(SESSION_COOKIE))
    if not user_id or not db.get(User, user_id):
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user_id


def csrf_protected_user_id(
    request: Request, user_id: str = Depends(current_user_id)
) -> str:
    if not validate_csrf_token(request.headers.get(CSRF_HEADER, ""), user_id):
        raise HTTPException(status_code=400, detail="Invalid CSRF token")
    return user_id


def http_error(exc: ValueError) -> HTTPException:
    if isinstance(exc, MalformedTransactionError):
        logger.error(f"aggregation_failed: error={exc}")
        return HTTPException(status_code=500, detail=f"Malformed transaction: {exc}")
    if isinstance(exc, AuthenticationError):
        return HTTPException(status_code=401, detail=str(exc))
    if isinstance(exc, PermissionDeniedError):
        return HTTPException(status_code=403, detail=str(exc))
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


def month_from_query(month: Optional[str]):
    try:
        return resolve_month(month)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def serialize_user(user: User) -> dict[str, object]:
    return {"id": user.id, "email": user.email, "full_name": user.full_name}


def serialize_transaction(txn: Transaction) -> dict[str, object]:
    return {
        "id": txn.id,
        "user_id": txn.user_id,
        "group_id": txn.group_id,
        "type": txn.type.value,
        "date": txn.date.isoformat(),
        "description": txn.description,
        "amount": float(txn.amount),
        "category": txn.category,
        "is_recurring": txn.is_recurring,
        "recurring_start_date": (
            txn.recurring_start_date.isoformat() if txn.recurring_start_date else None
        ),
        "recurring_end_date": (
            txn.recurring_end_date.isoformat() if txn.recurring_end_date else None
        ),
        "created_at": txn.created_at.isoformat() if txn.created_at else None,
        "updated_at": txn.updated_at.isoformat() if txn.updated_at else None,
    }


def serialize_member(member: GroupMember) -> dict[str, object]:
    return {
        "group_id": member.group_id,
        "user_id": member.user_id,
        "role": member.role.value,
    }


def _start_session(response: Response, user: User) -> dict[str, object]:
    response.set_cookie(
        SESSION_COOKIE,
        issue_session_token(user.id),
        max_age=settings.session_max_age_hours * 3600,
        httponly=True,
        samesite="lax",
    )
    return {"user": serialize_user(user), "csrf_token": generate_csrf_token(user.id)}


@app.get("/")
def root():
    return {"app": app.title, "version": APP_VERSION}


@app.get("/health")
def health(db: Session = Depends(get_db)):
    db.execute(select(1))
    return {"status": "ok"}


@app.post("/auth/signup", status_code=201)
def signup(payload: SignUpIn, response: Response, db: Session = Depends(get_db)):
    try:
        user = UserService(db).sign_up(payload)
    except ValueError as exc:
        raise http_error(exc) from exc
    return _start_session(response, user)


@app.post("/auth/login")
def login(payload: LoginIn, response: Response, db: Session = Depends(get_db)):
    try:
        user = UserService(db).authenticate(payload.email, payload.password)
    except ValueError as exc:
        raise http_error(exc) from exc
    return _start_session(response, user)


@app.post("/auth/logout", status_code=204)
def logout(user_id: str = Depends(csrf_protected_user_id)):
    response = Response(status_code=204)
    response.delete_cookie(SESSION_COOKIE)
    logger.info(f"logout: user={user_id}")
    return response


@app.get("/auth/me")
def me(user_id: str = Depends(current_user_id), db: Session = Depends(get_db)):
    user = UserService(db).get(user_id)
    return {"user": serialize_user(user), "csrf_token": generate_csrf_token(user_id)}


@app.patch("/auth/me")
def update_me(
    payload: ProfileUpdateIn,
    user_id: str = Depends(csrf_protected_user_id),
    db: Session = Depends(get_db),
):
    try:
        user = UserService(db).update_profile(user_id, payload)
    except ValueError as exc:
        raise http_error(exc) from exc
    return {"user": serialize_user(user)}


@app.get("/api/categories")
def api_categories(
    type: TransactionType = Query(...),
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    options = CategoryService(db, user_id).list_for_type(type)
    return [{"value": o.value, "label": o.label} for o in options]


@app.get("/api/transactions")
def api_transactions(
    type: Optional[TransactionType] = None,
    q: Optional[str] = None,
    month: Optional[str] = None,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    filters = TransactionFilters(
        type=type, query=q or None, month=month_from_query(month) if month else None
    )
    items = TransactionService(db, user_id).list_visible(filters)
    return {"items": [serialize_transaction(txn) for txn in items]}


@app.post("/api/transactions", status_code=201)
def api_create_transaction(
    payload: TransactionIn,
    user_id: str = Depends(csrf_protected_user_id),
    db: Session = Depends(get_db),
):
    try:
        txn = TransactionService(db, user_id).create(payload)
    except ValueError as exc:
        raise http_error(exc) from exc
    return serialize_transaction(txn)


@app.get("/api/transactions/{transaction_id}")
def api_get_transaction(
    transaction_id: str,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    try:
        txn = TransactionService(db, user_id).get(transaction_id)
    except ValueError as exc:
        raise http_error(exc) from exc
    return serialize_transaction(txn)


@app.patch("/api/transactions/{transaction_id}")
def api_update_transaction(
    transaction_id: str,
    payload: TransactionUpdate,
    user_id: str = Depends(csrf_protected_user_id),
    db: Session = Depends(get_db),
):
    try:
        txn = TransactionService(db, user_id).update(transaction_id, payload)
    except ValueError as exc:
        raise http_error(exc) from exc
    return serialize_transaction(txn)


@app.delete("/api/transactions/{transaction_id}", status_code=204)
def api_delete_transaction(
    transaction_id: str,
    user_id: str = Depends(csrf_protected_user_id),
    db: Session = Depends(get_db),
):
    try:
        TransactionService(db, user_id).delete(transaction_id)
    except ValueError as exc:
        raise http_error(exc) from exc
    return Response(status_code=204)


@app.get("/api/dashboard")
def api_dashboard(
    month: Optional[str] = None,
    group_id: Optional[str] = None,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    reference = month_from_query(month)
    try:
        return DashboardService(db, user_id).monthly(reference, group_id=group_id)
    except ValueError as exc:
        raise http_error(exc) from exc


@app.get("/api/insights")
def api_insights(
    month: Optional[str] = None,
    group_id: Optional[str] = None,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    reference = month_from_query(month)
    try:
        return DashboardService(db, user_id).insights(reference, group_id=group_id)
    except ValueError as exc:
        raise http_error(exc) from exc


@app.get("/api/categories/{category}/history")
def api_category_history(
    category: str,
    type: TransactionType = Query(...),
    month: Optional[str] = None,
    window: int = Query(3, ge=1, le=24),
    group_id: Optional[str] = None,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    reference = month_from_query(month)
    try:
        history = DashboardService(db, user_id).category_history(
            category, type, reference, window=window, group_id=group_id
        )
    except ValueError as exc:
        raise http_error(exc) from exc
    return {
        "category": slugify_category(category),
        "type": type.value,
        "history": history,
    }


@app.get("/api/groups")
def api_groups(user_id: str = Depends(current_user_id), db: Session = Depends(get_db)):
    return GroupService(db, user_id).list_for_user()


@app.post("/api/groups", status_code=201)
def api_create_group(
    payload: GroupIn,
    user_id: str = Depends(csrf_protected_user_id),
    db: Session = Depends(get_db),
):
    group = GroupService(db, user_id).create(payload)
    return {"id": group.id, "name": group.name, "created_by": group.created_by}


@app.post("/api/groups/{group_id}/invite", status_code=201)
def api_invite_to_group(
    group_id: str,
    payload: InviteIn,
    user_id: str = Depends(csrf_protected_user_id),
    db: Session = Depends(get_db),
):
    try:
        member = GroupService(db, user_id).invite(group_id, payload.email)
    except ValueError as exc:
        raise http_error(exc) from exc
    return serialize_member(member)


@app.get("/api/groups/{group_id}/transactions")
def api_group_transactions(
    group_id: str,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    try:
        items = TransactionService(db, user_id).list_for_group(group_id)
    except ValueError as exc:
        raise http_error(exc) from exc
    return {"items": [serialize_transaction(txn) for txn in items]}


def main():
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()
