"""Expense ledger: submission, approval state machine and read projections."""
from __future__ import annotations

import logging
import uuid
from collections import Counter
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, Dict, List, Optional

from expensechain.errors import AuthorizationError, InvalidTransitionError, NotFoundError, ValidationError
from expensechain.records import (
    CategoryRecord,
    ExpenseCandidate,
    ExpenseRecord,
    ExpenseStatus,
    UserRecord,
    UserRole,
)
from expensechain.services import approval_engine, currency_service
from expensechain.services.currency_service import RateTable
from expensechain.services.directory_service import AccountSession
from expensechain.services.validation_service import Violation, parse_amount, parse_expense_date, validate_expense

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_visible(user: UserRecord, expense: ExpenseRecord) -> bool:
    """Employees see their own expenses; every other role sees the whole account."""
    if user.account_id != expense.account_id:
        return False
    return user.role is not UserRole.EMPLOYEE or expense.owner_user_id == user.id


class ExpenseLedger:
    """Owns expense records per account and their PENDING -> APPROVED/REJECTED lifecycle."""

    def __init__(
        self,
        clock: Callable[[], datetime] = _utcnow,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        self._clock = clock
        self._new_id = id_factory

    def today(self) -> date:
        return self._clock().date()

    # -- writes ---------------------------------------------------------------

    def submit(self, session: AccountSession, candidate: ExpenseCandidate, rates: RateTable) -> ExpenseRecord:
        """Validate, normalize and store a new expense awaiting approval.

        Raises ValidationError carrying every violation when the candidate
        is rejected; nothing is stored in that case.
        """
        account = session.account
        categories = [category.name for category in session.store.list_categories(account.id)]
        violations = validate_expense(candidate, categories, self.today())
        if violations:
            raise ValidationError(violations)

        amount = parse_amount(candidate.amount)
        currency = (candidate.currency_code or account.base_currency_code).strip().upper()
        base_amount = currency_service.convert_currency(amount, currency, account.base_currency_code, rates)
        confidence = parse_amount(candidate.ocr_confidence)

        expense = ExpenseRecord(
            id=self._new_id(),
            account_id=account.id,
            owner_user_id=session.user.id,
            original_amount=amount,
            original_currency_code=currency,
            base_currency_amount=base_amount,
            base_currency_code=account.base_currency_code,
            exchange_rate=currency_service.exchange_rate(currency, account.base_currency_code, rates),
            category=candidate.category,
            description=candidate.description.strip(),
            expense_date=parse_expense_date(candidate.expense_date),
            approval_chain=tuple(approval_engine.resolve_approval_chain(base_amount)),
            submitted_at=self._clock(),
            ocr_confidence=int(round(confidence)) if confidence is not None else None,
        )
        session.store.add_expense(expense)
        self._log_activity(session, expense, "submitted")
        return expense

    def approve(self, session: AccountSession, expense_id: str, comments: str = "") -> ExpenseRecord:
        return self._decide(session, expense_id, ExpenseStatus.APPROVED, comments)

    def reject(self, session: AccountSession, expense_id: str, reason: str = "") -> ExpenseRecord:
        return self._decide(session, expense_id, ExpenseStatus.REJECTED, reason)

    def _decide(self, session: AccountSession, expense_id: str, status: ExpenseStatus, note: str) -> ExpenseRecord:
        if note is not None and not isinstance(note, str):
            raise ValidationError([Violation("comments", "Comments must be text")])
        expense = self.get(session, expense_id)
        verb = "approve" if status is ExpenseStatus.APPROVED else "reject"
        if not approval_engine.can_act(session.user, expense):
            raise AuthorizationError(f"You do not have permission to {verb} this expense")
        if expense.status.is_terminal:
            raise InvalidTransitionError(f"Expense is already {expense.status.value.lower()}")

        updated = session.store.transition(
            session.account.id, expense_id, status, session.user.id, self._clock(), note or None
        )
        if updated is None:
            # Another approver closed it between our read and the guarded write.
            current = session.store.get_expense(session.account.id, expense_id)
            state = current.status.value.lower() if current else "gone"
            raise InvalidTransitionError(f"Expense is already {state}")

        self._log_activity(session, updated, status.value.lower())
        return updated

    def _log_activity(self, session: AccountSession, expense: ExpenseRecord, action: str) -> None:
        logger.info(
            "Expense activity: %s - %s by %s (%s %s)",
            action,
            expense.id,
            session.user.name,
            expense.base_currency_amount,
            expense.base_currency_code,
        )

    # -- reads ----------------------------------------------------------------

    def get(self, session: AccountSession, expense_id: str) -> ExpenseRecord:
        expense = session.store.get_expense(session.account.id, expense_id)
        if expense is None or not is_visible(session.user, expense):
            raise NotFoundError("Expense not found")
        return expense

    def list_for(self, session: AccountSession) -> List[ExpenseRecord]:
        return [
            expense
            for expense in session.store.list_expenses(session.account.id)
            if is_visible(session.user, expense)
        ]

    def filter(
        self,
        session: AccountSession,
        status: Optional[ExpenseStatus] = None,
        category: Optional[str] = None,
        expense_date: Optional[date] = None,
    ) -> List[ExpenseRecord]:
        expenses = self.list_for(session)
        if status is not None:
            expenses = [expense for expense in expenses if expense.status is status]
        if category:
            expenses = [expense for expense in expenses if expense.category == category]
        if expense_date is not None:
            expenses = [expense for expense in expenses if expense.expense_date == expense_date]
        return expenses

    def approval_queue(self, session: AccountSession) -> List[ExpenseRecord]:
        """Pending expenses the acting user is allowed to close."""
        return [
            expense
            for expense in self.filter(session, status=ExpenseStatus.PENDING_APPROVAL)
            if approval_engine.can_act(session.user, expense)
        ]

    def category_budgets(self, session: AccountSession) -> List[CategoryRecord]:
        return session.store.list_categories(session.account.id)

    def summary(self, session: AccountSession, months: int = 6) -> Dict[str, object]:
        expenses = self.list_for(session)
        statuses = Counter(expense.status for expense in expenses)
        total = sum((expense.base_currency_amount for expense in expenses), Decimal("0.00"))
        return {
            "base_currency_code": session.account.base_currency_code,
            "total_expenses": float(total),
            "expense_count": len(expenses),
            "pending_approvals": statuses[ExpenseStatus.PENDING_APPROVAL],
            "approved": statuses[ExpenseStatus.APPROVED],
            "rejected": statuses[ExpenseStatus.REJECTED],
            "active_users": len(session.store.list_users(session.account.id)),
            "monthly_totals": self._monthly_totals(expenses, months),
        }

    def _monthly_totals(self, expenses: List[ExpenseRecord], months: int) -> List[Dict[str, object]]:
        today = self.today()
        totals = [Decimal("0.00")] * months
        for expense in expenses:
            months_ago = (today.year - expense.expense_date.year) * 12 + today.month - expense.expense_date.month
            if 0 <= months_ago < months:
                totals[months - 1 - months_ago] += expense.base_currency_amount

        labels = []
        year, month = today.year, today.month
        for _ in range(months):
            labels.append(f"{year:04d}-{month:02d}")
            year, month = (year - 1, 12) if month == 1 else (year, month - 1)
        labels.reverse()
        return [{"month": label, "total": float(total)} for label, total in zip(labels, totals)]
