"""Manager approval routes."""
from __future__ import annotations

from typing import Any

from flask_login import login_required

from expensechain.records import UserRole
from expensechain.utils.helpers import current_session, get_engine, json_response, read_payload, role_required

from . import manager_bp


@manager_bp.route("/pending", methods=["GET"])
@login_required
@role_required(UserRole.MANAGER, UserRole.ADMIN)
def pending_approvals() -> Any:
    """Pending expenses the current approver may act on."""
    queue = get_engine().ledger.approval_queue(current_session())
    return json_response({"expenses": [expense.to_dict() for expense in queue]})


@manager_bp.route("/<expense_id>/approve", methods=["POST"])
@login_required
@role_required(UserRole.MANAGER, UserRole.ADMIN)
def approve_expense(expense_id: str) -> Any:
    payload = read_payload()
    expense = get_engine().ledger.approve(current_session(), expense_id, payload.get("comments", ""))
    return json_response({"expense": expense.to_dict()})


@manager_bp.route("/<expense_id>/reject", methods=["POST"])
@login_required
@role_required(UserRole.MANAGER, UserRole.ADMIN)
def reject_expense(expense_id: str) -> Any:
    payload = read_payload()
    expense = get_engine().ledger.reject(current_session(), expense_id, payload.get("reason", ""))
    return json_response({"expense": expense.to_dict()})
