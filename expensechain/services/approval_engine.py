"""Approval chain resolution and approver authorization."""
from __future__ import annotations

from decimal import Decimal
from typing import List

from expensechain.records import ExpenseRecord, UserRecord, UserRole

FINANCE_REVIEW_THRESHOLD = Decimal("1000")
DIRECTOR_REVIEW_THRESHOLD = Decimal("5000")


def resolve_approval_chain(base_amount: Decimal | float | str) -> List[UserRole]:
    """Return the ordered roles required to close an expense of ``base_amount``.

    ``base_amount`` must already be expressed in the account's base currency.
    """
    amount = Decimal(str(base_amount))
    if amount > DIRECTOR_REVIEW_THRESHOLD:
        return [UserRole.MANAGER, UserRole.FINANCE, UserRole.DIRECTOR]
    if amount > FINANCE_REVIEW_THRESHOLD:
        return [UserRole.MANAGER, UserRole.FINANCE]
    return [UserRole.MANAGER]


def can_act(user: UserRecord, expense: ExpenseRecord) -> bool:
    """Whether ``user`` may approve or reject ``expense``.

    The stored chain is advisory; any authorized approver closes the expense.
    """
    if user.account_id != expense.account_id:
        return False
    if user.role is UserRole.ADMIN:
        return True
    if user.role is UserRole.MANAGER:
        return expense.owner_user_id != user.id
    return False
