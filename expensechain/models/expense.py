"""Expense model definitions."""
from __future__ import annotations

from decimal import Decimal

from expensechain import db
from expensechain.records import ExpenseRecord, ExpenseStatus, UserRole


class Expense(db.Model):
    __tablename__ = "expenses"

    # Insertion sequence; breaks ties between expenses submitted in the same instant.
    seq = db.Column(db.Integer, primary_key=True, autoincrement=True)
    id = db.Column(db.String(36), unique=True, nullable=False, index=True)
    account_id = db.Column(db.String(36), db.ForeignKey("accounts.id"), nullable=False, index=True)
    owner_user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
    original_amount = db.Column(db.Numeric(12, 2), nullable=False)
    original_currency_code = db.Column(db.String(10), nullable=False)
    base_currency_amount = db.Column(db.Numeric(14, 2), nullable=False)
    base_currency_code = db.Column(db.String(10), nullable=False)
    exchange_rate = db.Column(db.Numeric(18, 4), nullable=False)
    category = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, nullable=False)
    expense_date = db.Column(db.Date, nullable=False)
    approval_chain = db.Column(db.JSON, nullable=False)
    status = db.Column(
        db.Enum(ExpenseStatus, name="expense_status"),
        nullable=False,
        default=ExpenseStatus.PENDING_APPROVAL,
        index=True,
    )
    ocr_confidence = db.Column(db.Integer, nullable=True)
    submitted_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    approved_by = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    approval_comments = db.Column(db.Text, nullable=True)
    rejected_by = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=True)
    rejected_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)

    account = db.relationship("Account", back_populates="expenses")

    @classmethod
    def from_record(cls, record: ExpenseRecord) -> "Expense":
        return cls(
            id=record.id,
            account_id=record.account_id,
            owner_user_id=record.owner_user_id,
            original_amount=record.original_amount,
            original_currency_code=record.original_currency_code,
            base_currency_amount=record.base_currency_amount,
            base_currency_code=record.base_currency_code,
            exchange_rate=record.exchange_rate,
            category=record.category,
            description=record.description,
            expense_date=record.expense_date,
            approval_chain=[role.value for role in record.approval_chain],
            status=record.status,
            ocr_confidence=record.ocr_confidence,
            submitted_at=record.submitted_at,
            approved_by=record.approved_by,
            approved_at=record.approved_at,
            approval_comments=record.approval_comments,
            rejected_by=record.rejected_by,
            rejected_at=record.rejected_at,
            rejection_reason=record.rejection_reason,
        )

    def to_record(self) -> ExpenseRecord:
        return ExpenseRecord(
            id=self.id,
            account_id=self.account_id,
            owner_user_id=self.owner_user_id,
            original_amount=Decimal(self.original_amount),
            original_currency_code=self.original_currency_code,
            base_currency_amount=Decimal(self.base_currency_amount),
            base_currency_code=self.base_currency_code,
            exchange_rate=Decimal(self.exchange_rate),
            category=self.category,
            description=self.description,
            expense_date=self.expense_date,
            approval_chain=tuple(UserRole(role) for role in self.approval_chain),
            submitted_at=self.submitted_at,
            status=self.status,
            ocr_confidence=self.ocr_confidence,
            approved_by=self.approved_by,
            approved_at=self.approved_at,
            approval_comments=self.approval_comments,
            rejected_by=self.rejected_by,
            rejected_at=self.rejected_at,
            rejection_reason=self.rejection_reason,
        )

    def __repr__(self) -> str:
        return f"<Expense id={self.id} status={self.status.value if self.status else None}>"
