"""Health check and currency lookups."""
from __future__ import annotations

from typing import Any

from flask import request

from expensechain.errors import ValidationError
from expensechain.services import currency_service
from expensechain.services.validation_service import Violation, parse_amount
from expensechain.utils.helpers import get_engine, json_response

from . import main_bp


@main_bp.route("/health", methods=["GET"])
def health() -> Any:
    return json_response({"status": "ok"})


@main_bp.route("/currencies/rates", methods=["GET"])
def exchange_rates() -> Any:
    return json_response(get_engine().current_rates().to_dict())


@main_bp.route("/currencies/convert", methods=["GET"])
def convert() -> Any:
    """Convert ``amount`` between two currencies using the current rate table."""
    amount = parse_amount(request.args.get("amount"))
    if amount is None:
        raise ValidationError([Violation("amount", "Amount must be a valid number")])
    source = request.args.get("from", "USD").upper()
    target = request.args.get("to", "USD").upper()

    rates = get_engine().current_rates()
    converted = currency_service.convert_currency(amount, source, target, rates)
    return json_response(
        {
            "amount": float(amount),
            "from": source,
            "to": target,
            "converted": float(converted),
            "rate": float(currency_service.exchange_rate(source, target, rates)),
            "source": rates.source,
        }
    )
