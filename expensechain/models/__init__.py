"""Application data models exposed for easy imports."""
from expensechain import db  # noqa: F401
from .account import Account, Category  # noqa: F401
from .user import User  # noqa: F401
from .expense import Expense  # noqa: F401

__all__ = [
    "db",
    "Account",
    "Category",
    "User",
    "Expense",
]
