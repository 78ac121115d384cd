"""Store-agnostic records exchanged between the engine and its data sources."""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Tuple

from flask_login import UserMixin


class UserRole(enum.Enum):
    EMPLOYEE = "EMPLOYEE"
    MANAGER = "MANAGER"
    FINANCE = "FINANCE"
    DIRECTOR = "DIRECTOR"
    ADMIN = "ADMIN"


class ExpenseStatus(enum.Enum):
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

    @property
    def is_terminal(self) -> bool:
        return self is not ExpenseStatus.PENDING_APPROVAL


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def _money(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


@dataclass(frozen=True)
class AccountRecord:
    id: str
    company_name: str
    base_currency_code: str
    created_at: datetime
    country: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_name": self.company_name,
            "base_currency_code": self.base_currency_code,
            "country": self.country,
            "created_at": _iso(self.created_at),
        }


@dataclass(frozen=True)
class UserRecord(UserMixin):
    id: str
    account_id: str
    name: str
    email: str
    role: UserRole
    manager_id: Optional[str] = None
    password_hash: Optional[str] = field(default=None, repr=False, compare=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "name": self.name,
            "email": self.email,
            "role": self.role.value,
            "manager_id": self.manager_id,
        }


@dataclass(frozen=True)
class CategoryRecord:
    account_id: str
    name: str
    monthly_budget: Decimal
    spent_to_date: Decimal = Decimal("0.00")

    @property
    def utilization(self) -> Decimal:
        """Percentage of the monthly budget already spent."""
        if not self.monthly_budget:
            return Decimal("0")
        return (self.spent_to_date / self.monthly_budget * 100).quantize(Decimal("0.1"))

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "monthly_budget": _money(self.monthly_budget),
            "spent_to_date": _money(self.spent_to_date),
            "remaining": _money(self.monthly_budget - self.spent_to_date),
            "utilization": float(self.utilization),
            "over_budget": self.spent_to_date > self.monthly_budget,
        }


@dataclass(frozen=True)
class ExpenseRecord:
    id: str
    account_id: str
    owner_user_id: str
    original_amount: Decimal
    original_currency_code: str
    base_currency_amount: Decimal
    base_currency_code: str
    exchange_rate: Decimal
    category: str
    description: str
    expense_date: date
    approval_chain: Tuple[UserRole, ...]
    submitted_at: datetime
    status: ExpenseStatus = ExpenseStatus.PENDING_APPROVAL
    ocr_confidence: Optional[int] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    approval_comments: Optional[str] = None
    rejected_by: Optional[str] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "owner_user_id": self.owner_user_id,
            "original_amount": _money(self.original_amount),
            "original_currency_code": self.original_currency_code,
            "base_currency_amount": _money(self.base_currency_amount),
            "base_currency_code": self.base_currency_code,
            "exchange_rate": float(self.exchange_rate),
            "category": self.category,
            "description": self.description,
            "expense_date": _iso(self.expense_date),
            "approval_chain": [role.value for role in self.approval_chain],
            "status": self.status.value,
            "ocr_confidence": self.ocr_confidence,
            "submitted_at": _iso(self.submitted_at),
            "approved_by": self.approved_by,
            "approved_at": _iso(self.approved_at),
            "approval_comments": self.approval_comments,
            "rejected_by": self.rejected_by,
            "rejected_at": _iso(self.rejected_at),
            "rejection_reason": self.rejection_reason,
        }

    def __repr__(self) -> str:
        return f"<Expense id={self.id} status={self.status.value}>"


@dataclass
class ExpenseCandidate:
    """Raw, unvalidated input collected by the UI."""

    amount: object = None
    currency_code: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    expense_date: object = None
    ocr_confidence: object = None

    @classmethod
    def from_payload(cls, payload: dict) -> "ExpenseCandidate":
        return cls(
            amount=payload.get("amount"),
            currency_code=payload.get("currency") or payload.get("currency_code"),
            category=payload.get("category"),
            description=payload.get("description"),
            expense_date=payload.get("date") or payload.get("expense_date"),
            ocr_confidence=payload.get("ocr_confidence"),
        )
