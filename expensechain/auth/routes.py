"""Authentication routes."""
from __future__ import annotations

from typing import Any

from flask import current_app
from flask_login import current_user, login_required, login_user, logout_user
from flask_wtf.csrf import generate_csrf

from expensechain.services.directory_service import authenticate, create_account
from expensechain.utils.helpers import current_session, get_engine, json_response, read_payload

from . import auth_bp


@auth_bp.route("/signup", methods=["POST"])
def signup() -> Any:
    """Create a company account and sign its first Admin in."""
    payload = read_payload()
    engine = get_engine()

    country = payload.get("country")
    country = country.strip() or None if isinstance(country, str) else None
    currency_code = payload.get("currency_code") or payload.get("currency")
    if not currency_code and country:
        currency_code = engine.countries.currency_for_country(country)
    currency_code = currency_code or current_app.config["DEFAULT_CURRENCY"]

    session = create_account(
        engine.store,
        company_name=payload.get("company_name", ""),
        base_currency_code=currency_code,
        admin_name=payload.get("admin_name") or payload.get("name", ""),
        admin_email=payload.get("admin_email") or payload.get("email", ""),
        password=payload.get("password", ""),
        country=country,
    )
    login_user(session.user)
    return json_response(
        {"account": session.account.to_dict(), "user": session.user.to_dict()},
        status=201,
    )


@auth_bp.route("/login", methods=["POST"])
def login() -> Any:
    payload = read_payload()
    user = authenticate(get_engine().store, payload.get("email", ""), payload.get("password", ""))
    if user is None:
        return json_response({"error": "Invalid email or password."}, status=401)

    login_user(user, remember=bool(payload.get("remember")))
    current_app.logger.info("User %s logged in", user.email)
    return json_response({"user": user.to_dict()})


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout() -> Any:
    logout_user()
    return json_response({"message": "Logged out."})


@auth_bp.route("/me", methods=["GET"])
@login_required
def me() -> Any:
    session = current_session()
    return json_response({"user": current_user.to_dict(), "account": session.account.to_dict()})


@auth_bp.route("/csrf-token", methods=["GET"])
def csrf_token() -> Any:
    return json_response({"csrf_token": generate_csrf()})


@auth_bp.route("/countries", methods=["GET"])
def countries() -> Any:
    """Country list for the signup currency picker."""
    return json_response({"countries": [country.to_dict() for country in get_engine().countries.fetch_countries()]})
