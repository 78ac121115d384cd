"""Account and user directory: signup, team members, categories and sessions."""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, List, Optional

from werkzeug.security import check_password_hash, generate_password_hash

from expensechain.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from expensechain.records import AccountRecord, CategoryRecord, UserRecord, UserRole
from expensechain.services.datastore import ExpenseStore
from expensechain.services.validation_service import Violation, parse_amount

logger = logging.getLogger(__name__)

# New accounts start with these monthly budgets and nothing spent.
DEFAULT_CATEGORIES = (
    ("Travel & Transportation", Decimal("5000")),
    ("Meals & Entertainment", Decimal("3000")),
    ("Office Supplies", Decimal("2000")),
    ("Software & Subscriptions", Decimal("8000")),
    ("Training & Education", Decimal("10000")),
    ("Communication", Decimal("1500")),
    ("Marketing", Decimal("6000")),
    ("Other", Decimal("2000")),
)

APPROVER_ROLES = {UserRole.MANAGER, UserRole.ADMIN}


@dataclass(frozen=True)
class AccountSession:
    """Who is acting, in which account, against which store."""

    store: ExpenseStore
    account: AccountRecord
    user: UserRecord


def new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _require(**fields) -> None:
    missing = [Violation(name, f"{name.replace('_', ' ').capitalize()} is required")
               for name, value in fields.items() if not isinstance(value, str) or not value.strip()]
    if missing:
        raise ValidationError(missing)


def create_account(
    store: ExpenseStore,
    company_name: str,
    base_currency_code: str,
    admin_name: str,
    admin_email: str,
    password: str,
    country: Optional[str] = None,
    clock: Callable[[], datetime] = _utcnow,
) -> AccountSession:
    """Create an isolated account with its default categories and Admin user."""
    _require(
        company_name=company_name,
        currency=base_currency_code,
        admin_name=admin_name,
        admin_email=admin_email,
        password=password,
    )
    if store.find_user_by_email(admin_email):
        raise ConflictError("Email already exists.")

    account = store.add_account(
        AccountRecord(
            id=new_id(),
            company_name=company_name.strip(),
            base_currency_code=base_currency_code.strip().upper(),
            created_at=clock(),
            country=country,
        )
    )
    for name, budget in DEFAULT_CATEGORIES:
        store.add_category(CategoryRecord(account_id=account.id, name=name, monthly_budget=budget))

    admin = store.add_user(
        UserRecord(
            id=new_id(),
            account_id=account.id,
            name=admin_name.strip(),
            email=admin_email.strip().lower(),
            role=UserRole.ADMIN,
            password_hash=generate_password_hash(password),
        )
    )
    logger.info("Created account %s for %s with base currency %s",
                account.id, admin.name, account.base_currency_code)
    return AccountSession(store=store, account=account, user=admin)


def add_team_member(
    session: AccountSession,
    name: str,
    email: str,
    role: UserRole,
    password: Optional[str] = None,
    manager_id: Optional[str] = None,
) -> UserRecord:
    if session.user.role is not UserRole.ADMIN:
        raise AuthorizationError("Only admins can add team members.")
    _require(name=name, email=email)
    if password is not None and not isinstance(password, str):
        raise ValidationError([Violation("password", "Password must be text")])

    if manager_id:
        manager = session.store.get_user(manager_id) if isinstance(manager_id, str) else None
        if manager is None or manager.account_id != session.account.id or manager.role not in APPROVER_ROLES:
            raise ValidationError([Violation("manager_id", "Invalid manager selected")])

    user = session.store.add_user(
        UserRecord(
            id=new_id(),
            account_id=session.account.id,
            name=name.strip(),
            email=email.strip().lower(),
            role=role,
            manager_id=manager_id or None,
            password_hash=generate_password_hash(password) if password else None,
        )
    )
    logger.info("Team member %s (%s) added to account %s", user.email, role.value, session.account.id)
    return user


def add_category(session: AccountSession, name: str, monthly_budget) -> CategoryRecord:
    if session.user.role not in APPROVER_ROLES:
        raise AuthorizationError("You do not have permission to manage categories.")
    _require(name=name)
    budget = parse_amount(monthly_budget)
    if budget is None or budget < 0:
        raise ValidationError([Violation("monthly_budget", "Monthly budget must be a non-negative number")])
    return session.store.add_category(
        CategoryRecord(account_id=session.account.id, name=name.strip(), monthly_budget=budget)
    )


def list_team(session: AccountSession) -> List[UserRecord]:
    return session.store.list_users(session.account.id)


def authenticate(store: ExpenseStore, email: str, password: str) -> Optional[UserRecord]:
    if not isinstance(email, str) or not isinstance(password, str):
        return None
    user = store.find_user_by_email(email)
    if user is None or not user.password_hash:
        return None
    return user if check_password_hash(user.password_hash, password) else None


def open_session(store: ExpenseStore, user_id: str) -> AccountSession:
    user = store.get_user(user_id)
    if user is None:
        raise NotFoundError("User not found")
    account = store.get_account(user.account_id)
    if account is None:
        raise NotFoundError("Account not found")
    return AccountSession(store=store, account=account, user=user)
