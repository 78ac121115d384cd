"""Account and category models."""
from __future__ import annotations

from decimal import Decimal

from expensechain import db
from expensechain.records import AccountRecord, CategoryRecord


class Account(db.Model):
    __tablename__ = "accounts"

    id = db.Column(db.String(36), primary_key=True)
    company_name = db.Column(db.String(255), nullable=False)
    country = db.Column(db.String(120), nullable=True)
    base_currency_code = db.Column(db.String(10), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    users = db.relationship(
        "User",
        back_populates="account",
        lazy="selectin",
        cascade="all, delete-orphan",
    )
    categories = db.relationship(
        "Category",
        back_populates="account",
        lazy="selectin",
        cascade="all, delete-orphan",
    )
    expenses = db.relationship(
        "Expense",
        back_populates="account",
        lazy="select",
        cascade="all, delete-orphan",
    )

    @classmethod
    def from_record(cls, record: AccountRecord) -> "Account":
        return cls(
            id=record.id,
            company_name=record.company_name,
            country=record.country,
            base_currency_code=record.base_currency_code,
            created_at=record.created_at,
        )

    def to_record(self) -> AccountRecord:
        return AccountRecord(
            id=self.id,
            company_name=self.company_name,
            base_currency_code=self.base_currency_code,
            created_at=self.created_at,
            country=self.country,
        )

    def __repr__(self) -> str:
        return f"<Account {self.company_name} ({self.base_currency_code})>"


class Category(db.Model):
    __tablename__ = "categories"
    __table_args__ = (db.UniqueConstraint("account_id", "name", name="uq_category_account_name"),)

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.String(36), db.ForeignKey("accounts.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    monthly_budget = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    spent_to_date = db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("0.00"))

    account = db.relationship("Account", back_populates="categories")

    def to_record(self) -> CategoryRecord:
        return CategoryRecord(
            account_id=self.account_id,
            name=self.name,
            monthly_budget=Decimal(self.monthly_budget),
            spent_to_date=Decimal(self.spent_to_date),
        )

    def __repr__(self) -> str:
        return f"<Category {self.name} account={self.account_id}>"
