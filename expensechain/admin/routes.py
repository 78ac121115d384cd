"""Administrative routes for managing the team and expense categories."""
from __future__ import annotations

from typing import Any

from flask_login import login_required

from expensechain.errors import ValidationError
from expensechain.records import UserRole
from expensechain.services import directory_service
from expensechain.services.validation_service import Violation
from expensechain.utils.helpers import current_session, json_response, read_payload, role_required

from . import admin_bp


@admin_bp.route("/users", methods=["GET"])
@login_required
@role_required(UserRole.ADMIN)
def list_users() -> Any:
    team = directory_service.list_team(current_session())
    return json_response({"users": [user.to_dict() for user in team]})


@admin_bp.route("/users", methods=["POST"])
@login_required
@role_required(UserRole.ADMIN)
def add_user() -> Any:
    """Add a team member to the admin's account."""
    payload = read_payload()
    role_name = payload.get("role") or UserRole.EMPLOYEE.value
    if not isinstance(role_name, str) or role_name.upper() not in UserRole.__members__:
        raise ValidationError([Violation("role", f"Unknown role '{role_name}'")])
    role = UserRole[role_name.upper()]

    user = directory_service.add_team_member(
        current_session(),
        name=payload.get("name", ""),
        email=payload.get("email", ""),
        role=role,
        password=payload.get("password"),
        manager_id=payload.get("manager_id"),
    )
    return json_response({"user": user.to_dict()}, status=201)


@admin_bp.route("/categories", methods=["POST"])
@login_required
@role_required(UserRole.ADMIN, UserRole.MANAGER)
def add_category() -> Any:
    payload = read_payload()
    category = directory_service.add_category(
        current_session(), payload.get("name", ""), payload.get("monthly_budget")
    )
    return json_response({"category": category.to_dict()}, status=201)
