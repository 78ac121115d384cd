"""User model."""
from __future__ import annotations

from datetime import datetime, timezone

from expensechain import db
from expensechain.records import UserRecord, UserRole


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.String(36), primary_key=True)
    account_id = db.Column(db.String(36), db.ForeignKey("accounts.id"), nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=True)
    role = db.Column(db.Enum(UserRole, name="user_role"), nullable=False, default=UserRole.EMPLOYEE)
    manager_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    account = db.relationship("Account", back_populates="users")

    @classmethod
    def from_record(cls, record: UserRecord) -> "User":
        return cls(
            id=record.id,
            account_id=record.account_id,
            name=record.name,
            email=record.email,
            role=record.role,
            manager_id=record.manager_id,
            password_hash=record.password_hash,
        )

    def to_record(self) -> UserRecord:
        return UserRecord(
            id=self.id,
            account_id=self.account_id,
            name=self.name,
            email=self.email,
            role=self.role,
            manager_id=self.manager_id,
            password_hash=self.password_hash,
        )

    def __repr__(self) -> str:
        return f"<User {self.email}>"
