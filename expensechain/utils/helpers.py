"""General helper utilities."""
from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Callable, Dict

from flask import current_app, jsonify, request
from flask_login import current_user

from expensechain.errors import AuthenticationError, AuthorizationError, ExpenseChainError
from expensechain.records import UserRole

logger = logging.getLogger(__name__)

JsonView = Callable[..., Any]


def json_response(payload: Any, status: int = 200):
    """Return a JSON response with status code."""
    return jsonify(payload), status


def read_payload() -> Dict[str, Any]:
    if request.is_json:
        payload = request.get_json(silent=True)
        return payload if isinstance(payload, dict) else {}
    return request.form.to_dict()


def get_engine():
    return current_app.extensions["expensechain"]


def current_session():
    """Open an AccountSession for the logged-in user."""
    from expensechain.services.directory_service import open_session

    return open_session(get_engine().store, current_user.id)


def role_required(*roles: UserRole):
    """Restrict a route to one or more roles."""
    def decorator(view_func: JsonView) -> JsonView:
        @wraps(view_func)
        def wrapped(*args, **kwargs):
            if not current_user.is_authenticated:
                raise AuthenticationError("Authentication required.")
            if current_user.role not in roles:
                raise AuthorizationError("Insufficient permissions.")
            return view_func(*args, **kwargs)

        return wrapped

    return decorator


def register_error_handlers(app) -> None:
    @app.errorhandler(ExpenseChainError)
    def handle_engine_error(error: ExpenseChainError):
        logger.info("%s: %s", error.error_code, error.message)
        return json_response(error.to_dict(), status=error.status_code)

    @app.errorhandler(401)
    def handle_unauthorized(error):
        unauthenticated = AuthenticationError("Authentication required.")
        return json_response(unauthenticated.to_dict(), status=unauthenticated.status_code)
