"""Field-level and business-rule checks for candidate expenses."""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Iterable, List, Optional

from expensechain.records import ExpenseCandidate

MAX_EXPENSE_AMOUNT = Decimal("100000")
MIN_DESCRIPTION_LENGTH = 10
CENTS = Decimal("0.01")
CURRENCY_CODE_PATTERN = re.compile(r"^[A-Za-z]{3}$")


@dataclass(frozen=True)
class Violation:
    field: str
    message: str

    def to_dict(self) -> dict:
        return {"field": self.field, "message": self.message}

    def __str__(self) -> str:
        return self.message


def parse_amount(value) -> Optional[Decimal]:
    """Return ``value`` as a finite Decimal, or None when it is not numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip().replace(",", "")
        if not value:
            return None
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return amount if amount.is_finite() else None


def parse_expense_date(value) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        return None


def one_year_before(today: date) -> date:
    try:
        return today.replace(year=today.year - 1)
    except ValueError:
        # 29 February has no counterpart in the previous year.
        return today.replace(year=today.year - 1, day=28)


def _check_amount(raw) -> List[Violation]:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return [Violation("amount", "Amount is required")]
    amount = parse_amount(raw)
    if amount is None:
        return [Violation("amount", "Amount must be a valid number")]
    if amount <= 0:
        return [Violation("amount", "Amount must be greater than 0")]
    if amount > MAX_EXPENSE_AMOUNT:
        return [Violation("amount", "Amount exceeds maximum limit")]
    if amount != amount.quantize(CENTS):
        return [Violation("amount", "Amount cannot have more than 2 decimal places")]
    return []


def _check_date(raw, today: date) -> List[Violation]:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return [Violation("date", "Date is required")]
    spent_on = parse_expense_date(raw)
    if spent_on is None:
        return [Violation("date", "Date must be in YYYY-MM-DD format")]
    if spent_on > today:
        return [Violation("date", "Date cannot be in the future")]
    if spent_on < one_year_before(today):
        return [Violation("date", "Date cannot be more than one year ago")]
    return []


def _check_currency(raw) -> List[Violation]:
    if raw is None or raw == "":
        return []
    if not isinstance(raw, str) or not CURRENCY_CODE_PATTERN.match(raw.strip()):
        return [Violation("currency", "Currency must be a 3-letter code")]
    return []


def _check_ocr_confidence(raw) -> List[Violation]:
    if raw is None or raw == "":
        return []
    confidence = parse_amount(raw)
    if confidence is None or not 0 <= confidence <= 100:
        return [Violation("ocr_confidence", "OCR confidence must be between 0 and 100")]
    return []


def validate_expense(
    candidate: ExpenseCandidate,
    categories: Iterable[str],
    today: date,
) -> List[Violation]:
    """Collect every violation of ``candidate``; an empty list means it is acceptable."""
    violations: List[Violation] = []
    violations.extend(_check_amount(candidate.amount))
    violations.extend(_check_date(candidate.expense_date, today))
    violations.extend(_check_currency(candidate.currency_code))

    description = candidate.description.strip() if isinstance(candidate.description, str) else ""
    if len(description) < MIN_DESCRIPTION_LENGTH:
        violations.append(
            Violation("description", f"Description must be at least {MIN_DESCRIPTION_LENGTH} characters")
        )

    if not isinstance(candidate.category, str) or candidate.category not in set(categories):
        violations.append(Violation("category", "Invalid category selected"))

    violations.extend(_check_ocr_confidence(candidate.ocr_confidence))
    return violations
