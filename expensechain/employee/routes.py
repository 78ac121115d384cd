"""Employee-facing routes: submission, history, receipts and the dashboard."""
from __future__ import annotations

from typing import Any, Optional

from flask import request
from flask_login import login_required

from expensechain.errors import ValidationError
from expensechain.records import ExpenseCandidate, ExpenseStatus
from expensechain.services.validation_service import Violation, parse_expense_date
from expensechain.utils.helpers import current_session, get_engine, json_response, read_payload

from . import employee_bp


def _status_filter(value: Optional[str]) -> Optional[ExpenseStatus]:
    if not value:
        return None
    try:
        return ExpenseStatus[value.strip().upper()]
    except KeyError:
        raise ValidationError([Violation("status", f"Unknown status '{value}'")])


def _date_filter(value: Optional[str]):
    if not value:
        return None
    parsed = parse_expense_date(value)
    if parsed is None:
        raise ValidationError([Violation("date", "Date must be in YYYY-MM-DD format")])
    return parsed


@employee_bp.route("", methods=["GET"])
@login_required
def list_expenses() -> Any:
    """Expenses visible to the current user, most recent first."""
    expenses = get_engine().ledger.filter(
        current_session(),
        status=_status_filter(request.args.get("status")),
        category=request.args.get("category") or None,
        expense_date=_date_filter(request.args.get("date")),
    )
    return json_response({"expenses": [expense.to_dict() for expense in expenses]})


@employee_bp.route("", methods=["POST"])
@login_required
def submit_expense() -> Any:
    engine = get_engine()
    candidate = ExpenseCandidate.from_payload(read_payload())
    expense = engine.ledger.submit(current_session(), candidate, engine.current_rates())
    return json_response({"expense": expense.to_dict()}, status=201)


@employee_bp.route("/<expense_id>", methods=["GET"])
@login_required
def expense_detail(expense_id: str) -> Any:
    expense = get_engine().ledger.get(current_session(), expense_id)
    return json_response({"expense": expense.to_dict()})


@employee_bp.route("/scan-receipt", methods=["POST"])
@login_required
def scan_receipt() -> Any:
    """Turn an uploaded receipt image into a pre-filled expense draft."""
    upload = request.files.get("receipt")
    if upload is None or not upload.filename:
        return json_response({"error": "No receipt uploaded."}, status=400)

    draft = get_engine().scan_receipt(upload.read(), upload.filename)
    return json_response({"draft": draft.to_dict()})


@employee_bp.route("/summary", methods=["GET"])
@login_required
def summary() -> Any:
    return json_response(get_engine().ledger.summary(current_session()))


@employee_bp.route("/categories", methods=["GET"])
@login_required
def categories() -> Any:
    budgets = get_engine().ledger.category_budgets(current_session())
    return json_response({"categories": [category.to_dict() for category in budgets]})
