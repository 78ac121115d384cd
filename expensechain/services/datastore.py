"""Data sources for accounts, users, categories and expenses.

``ExpenseStore`` is selected once when the application starts:
``SqlAlchemyStore`` persists through Flask-SQLAlchemy and ``InMemoryStore``
keeps per-account arenas in process memory for demos and tests.
"""
from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from expensechain.errors import ConflictError, NotFoundError
from expensechain.models import Account, Category, Expense, User
from expensechain.records import (
    AccountRecord,
    CategoryRecord,
    ExpenseRecord,
    ExpenseStatus,
    UserRecord,
)

logger = logging.getLogger(__name__)


def decision_fields(status: ExpenseStatus, actor_id: str, at: datetime, note: Optional[str]) -> dict:
    """Audit columns stamped by a transition to ``status``."""
    if status is ExpenseStatus.APPROVED:
        return {"approved_by": actor_id, "approved_at": at, "approval_comments": note}
    if status is ExpenseStatus.REJECTED:
        return {"rejected_by": actor_id, "rejected_at": at, "rejection_reason": note}
    raise ValueError(f"{status} is not a terminal status")


class ExpenseStore(ABC):
    """Storage contract used by the directory and the ledger."""

    @abstractmethod
    def add_account(self, account: AccountRecord) -> AccountRecord: ...

    @abstractmethod
    def get_account(self, account_id: str) -> Optional[AccountRecord]: ...

    @abstractmethod
    def add_user(self, user: UserRecord) -> UserRecord:
        """Insert ``user``; raises ConflictError when the email is taken."""

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[UserRecord]: ...

    @abstractmethod
    def find_user_by_email(self, email: str) -> Optional[UserRecord]: ...

    @abstractmethod
    def list_users(self, account_id: str) -> List[UserRecord]: ...

    @abstractmethod
    def add_category(self, category: CategoryRecord) -> CategoryRecord: ...

    @abstractmethod
    def list_categories(self, account_id: str) -> List[CategoryRecord]: ...

    @abstractmethod
    def add_expense(self, expense: ExpenseRecord) -> ExpenseRecord:
        """Insert ``expense`` and charge its base amount to the category's spend."""

    @abstractmethod
    def get_expense(self, account_id: str, expense_id: str) -> Optional[ExpenseRecord]: ...

    @abstractmethod
    def list_expenses(self, account_id: str) -> List[ExpenseRecord]:
        """Expenses of one account, most recently submitted first."""

    @abstractmethod
    def transition(
        self,
        account_id: str,
        expense_id: str,
        status: ExpenseStatus,
        actor_id: str,
        at: datetime,
        note: Optional[str] = None,
    ) -> Optional[ExpenseRecord]:
        """Move a pending expense to ``status``.

        Returns the updated record, or None when the expense was no longer
        pending. Only one concurrent caller can win.
        """


@dataclass
class _AccountArena:
    account: AccountRecord
    users: Dict[str, UserRecord] = field(default_factory=dict)
    categories: Dict[str, CategoryRecord] = field(default_factory=dict)
    expenses: Dict[str, ExpenseRecord] = field(default_factory=dict)
    order: List[str] = field(default_factory=list)


class InMemoryStore(ExpenseStore):
    def __init__(self):
        self._arenas: Dict[str, _AccountArena] = {}
        self._user_accounts: Dict[str, str] = {}
        self._emails: Dict[str, str] = {}
        self._lock = threading.RLock()

    def _arena(self, account_id: str) -> _AccountArena:
        arena = self._arenas.get(account_id)
        if arena is None:
            raise NotFoundError(f"Account {account_id} not found")
        return arena

    def add_account(self, account: AccountRecord) -> AccountRecord:
        with self._lock:
            if account.id in self._arenas:
                raise ConflictError(f"Account {account.id} already exists")
            self._arenas[account.id] = _AccountArena(account=account)
        return account

    def get_account(self, account_id: str) -> Optional[AccountRecord]:
        arena = self._arenas.get(account_id)
        return arena.account if arena else None

    def add_user(self, user: UserRecord) -> UserRecord:
        email = user.email.lower()
        with self._lock:
            arena = self._arena(user.account_id)
            if email in self._emails:
                raise ConflictError("Email already exists.")
            arena.users[user.id] = user
            self._user_accounts[user.id] = user.account_id
            self._emails[email] = user.id
        return user

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        account_id = self._user_accounts.get(user_id)
        if account_id is None:
            return None
        return self._arenas[account_id].users.get(user_id)

    def find_user_by_email(self, email: str) -> Optional[UserRecord]:
        user_id = self._emails.get(email.lower())
        return self.get_user(user_id) if user_id else None

    def list_users(self, account_id: str) -> List[UserRecord]:
        arena = self._arenas.get(account_id)
        return list(arena.users.values()) if arena else []

    def add_category(self, category: CategoryRecord) -> CategoryRecord:
        with self._lock:
            arena = self._arena(category.account_id)
            if category.name in arena.categories:
                raise ConflictError("A category with that name already exists.")
            arena.categories[category.name] = category
        return category

    def list_categories(self, account_id: str) -> List[CategoryRecord]:
        arena = self._arenas.get(account_id)
        return list(arena.categories.values()) if arena else []

    def add_expense(self, expense: ExpenseRecord) -> ExpenseRecord:
        with self._lock:
            arena = self._arena(expense.account_id)
            if expense.id in arena.expenses:
                raise ConflictError(f"Expense {expense.id} already exists")
            arena.expenses[expense.id] = expense
            arena.order.append(expense.id)
            category = arena.categories.get(expense.category)
            if category is not None:
                arena.categories[category.name] = replace(
                    category, spent_to_date=category.spent_to_date + expense.base_currency_amount
                )
        return expense

    def get_expense(self, account_id: str, expense_id: str) -> Optional[ExpenseRecord]:
        arena = self._arenas.get(account_id)
        return arena.expenses.get(expense_id) if arena else None

    def list_expenses(self, account_id: str) -> List[ExpenseRecord]:
        arena = self._arenas.get(account_id)
        if not arena:
            return []
        with self._lock:
            return [arena.expenses[expense_id] for expense_id in reversed(arena.order)]

    def transition(self, account_id, expense_id, status, actor_id, at, note=None):
        with self._lock:
            arena = self._arenas.get(account_id)
            current = arena.expenses.get(expense_id) if arena else None
            if current is None or current.status is not ExpenseStatus.PENDING_APPROVAL:
                return None
            updated = replace(current, status=status, **decision_fields(status, actor_id, at, note))
            arena.expenses[expense_id] = updated
        return updated


class SqlAlchemyStore(ExpenseStore):
    """Store backed by the Flask-SQLAlchemy session; needs an application context."""

    def __init__(self, db):
        self.db = db

    @property
    def session(self):
        return self.db.session

    def _commit(self, conflict_message: str) -> None:
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            logger.info("Integrity error: %s", exc.orig)
            raise ConflictError(conflict_message) from exc

    def add_account(self, account: AccountRecord) -> AccountRecord:
        self.session.add(Account.from_record(account))
        self._commit(f"Account {account.id} already exists")
        return account

    def get_account(self, account_id: str) -> Optional[AccountRecord]:
        row = self.session.get(Account, account_id)
        return row.to_record() if row else None

    def add_user(self, user: UserRecord) -> UserRecord:
        if self.find_user_by_email(user.email):
            raise ConflictError("Email already exists.")
        row = User.from_record(user)
        row.email = user.email.lower()
        self.session.add(row)
        self._commit("Email already exists.")
        return row.to_record()

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        row = self.session.get(User, user_id)
        return row.to_record() if row else None

    def find_user_by_email(self, email: str) -> Optional[UserRecord]:
        row = User.query.filter_by(email=email.lower()).first()
        return row.to_record() if row else None

    def list_users(self, account_id: str) -> List[UserRecord]:
        rows = User.query.filter_by(account_id=account_id).order_by(User.created_at.asc()).all()
        return [row.to_record() for row in rows]

    def add_category(self, category: CategoryRecord) -> CategoryRecord:
        self.session.add(
            Category(
                account_id=category.account_id,
                name=category.name,
                monthly_budget=category.monthly_budget,
                spent_to_date=category.spent_to_date,
            )
        )
        self._commit("A category with that name already exists.")
        return category

    def list_categories(self, account_id: str) -> List[CategoryRecord]:
        rows = Category.query.filter_by(account_id=account_id).order_by(Category.id.asc()).all()
        return [row.to_record() for row in rows]

    def add_expense(self, expense: ExpenseRecord) -> ExpenseRecord:
        self.session.add(Expense.from_record(expense))
        self.session.execute(
            update(Category)
            .where(Category.account_id == expense.account_id, Category.name == expense.category)
            .values(spent_to_date=Category.spent_to_date + expense.base_currency_amount)
        )
        self._commit(f"Expense {expense.id} already exists")
        return expense

    def get_expense(self, account_id: str, expense_id: str) -> Optional[ExpenseRecord]:
        row = Expense.query.filter_by(id=expense_id, account_id=account_id).first()
        return row.to_record() if row else None

    def list_expenses(self, account_id: str) -> List[ExpenseRecord]:
        rows = (
            Expense.query.filter_by(account_id=account_id)
            .order_by(Expense.submitted_at.desc(), Expense.seq.desc())
            .all()
        )
        return [row.to_record() for row in rows]

    def transition(self, account_id, expense_id, status, actor_id, at, note=None):
        # Conditional UPDATE: the status guard makes the first writer win.
        result = self.session.execute(
            update(Expense)
            .where(
                Expense.id == expense_id,
                Expense.account_id == account_id,
                Expense.status == ExpenseStatus.PENDING_APPROVAL,
            )
            .values(status=status, **decision_fields(status, actor_id, at, note))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.session.rollback()
            return None
        self.session.commit()
        self.session.expire_all()
        return self.get_expense(account_id, expense_id)
